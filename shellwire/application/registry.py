"""
Session registry.

Tracks the live sessions of the application by identifier and routes
caller operations to them. Credentials are pulled from the credential
store at open time when the caller does not supply one.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from ..core.domain.connection import (
    AuthMethod,
    ConnectionProfile,
    Credential,
    PasswordCredential,
    PrivateKeyCredential,
)
from ..core.domain.session import ErrorCode, SessionError, SessionNotFoundError, SessionState
from ..core.interfaces.lifecycle import IHealthCheckable
from ..core.interfaces.session import ICredentialStore, IRemoteProtocol, IRemoteSession
from ..infrastructure.credentials import InMemoryCredentialStore

logger = logging.getLogger(__name__)

RegistryListener = Callable[[str, SessionState, SessionState], Any]


class SessionRegistry(IHealthCheckable):
    """
    Identifier to session table.

    Entries are added only after a successful connect and removed only
    after the session's ``close()`` has returned. Closes on the same
    identifier are serialized.
    """

    def __init__(
        self,
        engine: IRemoteProtocol,
        credential_store: Optional[ICredentialStore] = None
    ):
        self._engine = engine
        self._credential_store = credential_store if credential_store is not None else InMemoryCredentialStore()
        self._sessions: Dict[str, IRemoteSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._listeners: List[RegistryListener] = []

    @property
    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Optional[IRemoteSession]:
        return self._sessions.get(session_id)

    def resolve_credential(self, profile: ConnectionProfile) -> Credential:
        """
        Look up the credential for a profile in the credential store.

        Raises:
            SessionError: ``authFailed`` when no password is stored, or
                ``keyNotFound`` when no key path is configured
        """
        connection_id = profile.connection_id

        if profile.auth_method == AuthMethod.PUBLIC_KEY:
            if not profile.key_path:
                raise SessionError(ErrorCode.KEY_NOT_FOUND, "No SSH key path configured")
            return PrivateKeyCredential(
                path=profile.key_path,
                passphrase=self._credential_store.get_passphrase(connection_id),
            )

        password = self._credential_store.get_password(connection_id)
        if password is None:
            raise SessionError(ErrorCode.AUTH_FAILED, "No password stored for this connection")
        return PasswordCredential(password)

    async def open(self, profile: ConnectionProfile, credential: Optional[Credential] = None) -> str:
        """
        Create and connect a session.

        Args:
            profile: Connection metadata
            credential: Credential to use; resolved from the credential
                store when omitted

        Returns:
            The new session identifier

        Raises:
            SessionError: If the credential is unavailable or connecting
                failed; nothing is stored in that case
        """
        if credential is None:
            credential = self.resolve_credential(profile)

        session = self._engine.create_session(profile, credential)
        session.add_state_listener(self._on_state_change)

        logger.info(f"Opening session {session.session_id} to {profile.display_address}")
        await session.connect()

        self._sessions[session.session_id] = session
        return session.session_id

    async def write(self, session_id: str, data: bytes) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        await session.write(data)

    async def resize(self, session_id: str, cols: int, rows: int) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug(f"Resize ignored for unknown session {session_id}")
            return
        await session.resize(cols, rows)

    async def reconnect(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug(f"Reconnect ignored for unknown session {session_id}")
            return
        await session.reconnect()

    async def close(self, session_id: str) -> None:
        """Close a session and drop it from the table. Unknown ids are ignored."""
        if session_id not in self._sessions:
            return
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            session = self._sessions.get(session_id)
            if session is None:
                return
            try:
                await session.close()
            finally:
                self._sessions.pop(session_id, None)
                self._locks.pop(session_id, None)
            logger.info(f"Session {session_id} removed")

    async def close_all(self) -> None:
        """Close every tracked session, one after another."""
        for session_id in list(self._sessions):
            try:
                await self.close(session_id)
            except Exception as e:
                logger.error(f"Error closing session {session_id}: {e}")

    def state(self, session_id: str) -> SessionState:
        """Current state of a session; unknown identifiers report disconnected."""
        session = self._sessions.get(session_id)
        if session is None:
            return SessionState.disconnected()
        return session.state

    def output_stream(self, session_id: str) -> Any:
        """Inbound byte chunk sequence of the session's current connection."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session.output

    def add_listener(self, listener: RegistryListener) -> None:
        """Register a synchronous ``(session_id, old_state, new_state)`` callback."""
        self._listeners.append(listener)

    def remove_listener(self, listener: RegistryListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            logger.warning("Registry listener not registered")

    def _on_state_change(self, session: IRemoteSession, old: SessionState, new: SessionState) -> None:
        for listener in list(self._listeners):
            try:
                listener(session.session_id, old, new)
            except Exception as e:
                logger.error(f"Registry listener error for session {session.session_id}: {e}")

    async def check_health(self) -> Dict[str, Any]:
        states = {session_id: str(session.state) for session_id, session in self._sessions.items()}
        connected = sum(1 for session in self._sessions.values() if session.state.is_connected)

        return {
            'healthy': True,
            'status': 'running',
            'details': {
                'protocol': self._engine.protocol_name,
                'sessions': len(self._sessions),
                'connected': connected,
                'states': states,
            }
        }
