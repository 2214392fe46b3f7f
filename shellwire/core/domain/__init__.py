"""
Domain model for the Shellwire engine.

Contains the session state, error taxonomy, connection metadata and
credential value types.
"""

from .connection import (
    AuthMethod,
    ConnectionConfig,
    ConnectionProfile,
    Credential,
    PasswordCredential,
    PrivateKeyCredential,
)
from .session import (
    ErrorCode,
    NotConnectedError,
    SessionError,
    SessionNotFoundError,
    SessionState,
    SessionStatus,
)

__all__ = [
    'AuthMethod',
    'ConnectionConfig',
    'ConnectionProfile',
    'Credential',
    'PasswordCredential',
    'PrivateKeyCredential',
    'ErrorCode',
    'NotConnectedError',
    'SessionError',
    'SessionNotFoundError',
    'SessionState',
    'SessionStatus',
]
