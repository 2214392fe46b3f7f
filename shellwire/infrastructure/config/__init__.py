"""
Configuration management for the Shellwire engine.
"""

from .loader import ConfigLoader
from .models import (
    ApplicationConfig,
    LoggingConfig,
    ReconnectConfig,
    SSHConfig,
    TerminalConfig,
)

__all__ = [
    'ConfigLoader',
    'ApplicationConfig',
    'LoggingConfig',
    'ReconnectConfig',
    'SSHConfig',
    'TerminalConfig',
]
