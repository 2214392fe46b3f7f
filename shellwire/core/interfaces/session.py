"""
Interfaces between the session engine and its collaborators.

The engine exposes ``IRemoteSession`` and ``IRemoteProtocol`` upwards and
consumes ``ICredentialStore`` and ``IHostKeyVerifier`` from below.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, Optional, Sequence

from ..domain.connection import AuthMethod, ConnectionProfile, Credential
from ..domain.session import SessionState

StateListener = Callable[['IRemoteSession', SessionState, SessionState], Any]


class IRemoteSession(ABC):
    """An interactive remote shell session."""

    @property
    @abstractmethod
    def session_id(self) -> str:
        pass

    @property
    @abstractmethod
    def connection_id(self) -> str:
        pass

    @property
    @abstractmethod
    def state(self) -> SessionState:
        pass

    @property
    @abstractmethod
    def output(self) -> AsyncIterator[bytes]:
        """
        Inbound byte chunks of the current connection.

        The sequence is finite and terminates exactly once; every
        successful connect produces a new one.
        """
        pass

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        pass

    @abstractmethod
    async def resize(self, cols: int, rows: int) -> None:
        pass

    @abstractmethod
    async def reconnect(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    def add_state_listener(self, listener: StateListener) -> None:
        pass

    @abstractmethod
    def remove_state_listener(self, listener: StateListener) -> None:
        pass


class IRemoteProtocol(ABC):
    """Factory for sessions speaking one remote-shell protocol."""

    @property
    @abstractmethod
    def protocol_name(self) -> str:
        pass

    @property
    @abstractmethod
    def supported_auth_methods(self) -> Sequence[AuthMethod]:
        pass

    @abstractmethod
    def create_session(self, profile: ConnectionProfile, credential: Credential) -> IRemoteSession:
        """Create an idle session for the given profile."""
        pass

    @abstractmethod
    async def connect(self, profile: ConnectionProfile, credential: Credential) -> IRemoteSession:
        """Create a session and connect it."""
        pass

    @abstractmethod
    async def disconnect(self, session: IRemoteSession) -> None:
        pass


class ICredentialStore(ABC):
    """Secret store keyed by connection identifier."""

    @abstractmethod
    def get_password(self, connection_id: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_password(self, connection_id: str, password: str) -> None:
        pass

    @abstractmethod
    def get_passphrase(self, connection_id: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_passphrase(self, connection_id: str, passphrase: str) -> None:
        pass

    @abstractmethod
    def delete(self, connection_id: str) -> None:
        """Remove every secret stored for the connection."""
        pass


class IHostKeyVerifier(ABC):
    """Pluggable server host key verification hook."""

    @abstractmethod
    def verify(self, host: str, port: int, key: Any) -> bool:
        """
        Decide whether to trust the server host key.

        Args:
            host: Host name or address that was dialled
            port: Remote port
            key: The server's ``asyncssh.SSHKey``

        Returns:
            True to continue the handshake, False to abort it
        """
        pass
