"""
Logging infrastructure for the Shellwire engine.
"""

from .setup import InterceptHandler, setup_logging

__all__ = [
    'InterceptHandler',
    'setup_logging',
]
