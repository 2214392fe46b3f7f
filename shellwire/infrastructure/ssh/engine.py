"""
SSH protocol engine.

Builds ``SSHSession`` objects from connection profiles using the shared
reactor, transport connector and application configuration.
"""

import logging
from typing import Optional, Sequence

from ...core.domain.connection import AuthMethod, ConnectionConfig, ConnectionProfile, Credential
from ...core.interfaces.session import IRemoteProtocol, IRemoteSession
from ..config.models import ApplicationConfig
from ..reactor import Reactor
from .session import SSHSession
from .transport import TransportConnector, create_host_key_verifier

logger = logging.getLogger(__name__)


class SSHEngine(IRemoteProtocol):
    """Creates and connects interactive SSH sessions."""

    def __init__(
        self,
        reactor: Reactor,
        config: Optional[ApplicationConfig] = None,
        connector: Optional[TransportConnector] = None
    ):
        self._reactor = reactor
        self._config = config if config is not None else ApplicationConfig()
        if connector is None:
            connector = TransportConnector(create_host_key_verifier(self._config.ssh.host_key_policy))
        self._connector = connector

    @property
    def protocol_name(self) -> str:
        return "ssh"

    @property
    def supported_auth_methods(self) -> Sequence[AuthMethod]:
        return (AuthMethod.PASSWORD, AuthMethod.PUBLIC_KEY)

    @property
    def reactor(self) -> Reactor:
        return self._reactor

    @property
    def config(self) -> ApplicationConfig:
        return self._config

    @property
    def connector(self) -> TransportConnector:
        return self._connector

    def create_session(self, profile: ConnectionProfile, credential: Credential) -> SSHSession:
        """Create an idle session bound to a fresh configuration snapshot."""
        terminal = self._config.terminal
        reconnect = self._config.reconnect

        session = SSHSession(
            connection_id=profile.connection_id,
            config=ConnectionConfig.from_profile(profile, credential),
            reactor=self._reactor,
            connector=self._connector,
            term_type=terminal.term_type,
            cols=terminal.cols,
            rows=terminal.rows,
            max_reconnect_attempts=reconnect.max_attempts,
            base_reconnect_delay=reconnect.base_delay,
            output_buffer_chunks=self._config.ssh.output_buffer_chunks,
        )
        logger.debug(f"Created session {session.session_id} for {profile.display_address}")
        return session

    async def connect(self, profile: ConnectionProfile, credential: Credential) -> SSHSession:
        session = self.create_session(profile, credential)
        await session.connect()
        return session

    async def disconnect(self, session: IRemoteSession) -> None:
        await session.close()
