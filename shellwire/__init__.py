"""
Shellwire - interactive remote shell sessions over SSH.

This package provides a client-side engine that establishes, maintains and
recovers interactive SSH shell sessions, exposing a byte stream, a write
path and terminal resize control for each session.
"""

__version__ = "0.1.0"

from .core.domain.connection import (
    AuthMethod,
    ConnectionConfig,
    ConnectionProfile,
    PasswordCredential,
    PrivateKeyCredential,
)
from .core.domain.session import ErrorCode, SessionError, SessionState, SessionStatus
from .core.interfaces.lifecycle import IHealthCheckable
from .core.interfaces.session import ICredentialStore, IHostKeyVerifier, IRemoteProtocol, IRemoteSession

__all__ = [
    "AuthMethod",
    "ConnectionConfig",
    "ConnectionProfile",
    "PasswordCredential",
    "PrivateKeyCredential",
    "ErrorCode",
    "SessionError",
    "SessionState",
    "SessionStatus",
    "IHealthCheckable",
    "ICredentialStore",
    "IHostKeyVerifier",
    "IRemoteProtocol",
    "IRemoteSession",
]
