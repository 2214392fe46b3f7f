"""
Application layer: session registry.
"""

from .registry import SessionRegistry

__all__ = [
    'SessionRegistry',
]
