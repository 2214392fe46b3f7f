"""
Session domain model for the Shellwire engine.

Defines the closed error taxonomy surfaced to callers and the tagged
session state value that the session state machine owns.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Closed taxonomy of session failures."""
    AUTH_FAILED = "authFailed"
    TIMEOUT = "timeout"
    HOST_UNREACHABLE = "hostUnreachable"
    CONNECTION_REFUSED = "connectionRefused"
    KEY_NOT_FOUND = "keyNotFound"
    UNKNOWN = "unknown"


class SessionError(Exception):
    """
    Typed session failure.

    Carries a code from the closed taxonomy plus a human readable message.
    Two errors compare equal when both code and message match.
    """

    def __init__(self, code: ErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code
        self.message = message or code.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionError):
            return NotImplemented
        return self.code == other.code and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.code, self.message))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.code.value!r}, {self.message!r})"

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotConnectedError(SessionError):
    """Raised when I/O is requested on a session that is not connected."""

    def __init__(self, message: str = "Session not connected"):
        super().__init__(ErrorCode.UNKNOWN, message)


class SessionNotFoundError(SessionError):
    """Raised when a registry operation names an unknown session."""

    def __init__(self, session_id: str):
        super().__init__(ErrorCode.UNKNOWN, f"No session with id {session_id}")
        self.session_id = session_id


class SessionStatus(Enum):
    """Session lifecycle status."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class SessionState:
    """
    Current state of a session.

    ``attempt`` is only meaningful for ``reconnecting`` and ``error`` only
    for ``failed``; use the class constructors rather than building
    instances directly.
    """
    status: SessionStatus
    attempt: int = 0
    error: Optional[SessionError] = None

    @classmethod
    def idle(cls) -> 'SessionState':
        return cls(SessionStatus.IDLE)

    @classmethod
    def connecting(cls) -> 'SessionState':
        return cls(SessionStatus.CONNECTING)

    @classmethod
    def connected(cls) -> 'SessionState':
        return cls(SessionStatus.CONNECTED)

    @classmethod
    def reconnecting(cls, attempt: int) -> 'SessionState':
        return cls(SessionStatus.RECONNECTING, attempt=attempt)

    @classmethod
    def failed(cls, error: SessionError) -> 'SessionState':
        return cls(SessionStatus.FAILED, error=error)

    @classmethod
    def disconnected(cls) -> 'SessionState':
        return cls(SessionStatus.DISCONNECTED)

    @property
    def is_connected(self) -> bool:
        return self.status == SessionStatus.CONNECTED

    @property
    def is_active(self) -> bool:
        """True while the session is connected or working towards it."""
        return self.status in (
            SessionStatus.CONNECTING,
            SessionStatus.CONNECTED,
            SessionStatus.RECONNECTING,
        )

    def __str__(self) -> str:
        if self.status == SessionStatus.RECONNECTING:
            return f"reconnecting({self.attempt})"
        if self.status == SessionStatus.FAILED and self.error is not None:
            return f"failed({self.error.code.value})"
        return self.status.value
