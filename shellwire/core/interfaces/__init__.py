"""
Core interfaces for the Shellwire engine.
"""

from .lifecycle import IHealthCheckable
from .session import (
    ICredentialStore,
    IHostKeyVerifier,
    IRemoteProtocol,
    IRemoteSession,
    StateListener,
)

__all__ = [
    'IHealthCheckable',
    'ICredentialStore',
    'IHostKeyVerifier',
    'IRemoteProtocol',
    'IRemoteSession',
    'StateListener',
]
