"""
Secured transport connector.

Opens the TCP connection, runs the SSH handshake through asyncssh and
drives authentication through an ``AuthNegotiator``. Server host keys are
checked by a pluggable ``IHostKeyVerifier``.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import asyncssh

from ...core.domain.connection import ConnectionConfig
from ...core.interfaces.session import IHostKeyVerifier
from .auth import PASSWORD_METHOD, PUBLIC_KEY_METHOD, AuthNegotiator
from .errors import map_error

logger = logging.getLogger(__name__)


class AcceptAllHostKeys(IHostKeyVerifier):
    """Trusts every server host key."""

    def verify(self, host: str, port: int, key: Any) -> bool:
        logger.debug(f"Accepting host key for {host}:{port} without verification")
        return True


class TrustOnFirstUse(IHostKeyVerifier):
    """
    Pins the first host key seen for each host and port.

    Pins live in memory only and are lost when the process exits.
    """

    def __init__(self) -> None:
        self._pins: Dict[Tuple[str, int], str] = {}

    def verify(self, host: str, port: int, key: Any) -> bool:
        fingerprint = key.get_fingerprint('sha256')
        pinned = self._pins.get((host, port))

        if pinned is None:
            self._pins[(host, port)] = fingerprint
            logger.info(f"Pinned host key for {host}:{port}: {fingerprint}")
            return True

        if pinned != fingerprint:
            logger.error(
                f"Host key for {host}:{port} changed: expected {pinned}, got {fingerprint}")
            return False

        return True

    def forget(self, host: str, port: int) -> None:
        self._pins.pop((host, port), None)

    def pinned_fingerprint(self, host: str, port: int) -> Optional[str]:
        return self._pins.get((host, port))


def create_host_key_verifier(policy: str) -> IHostKeyVerifier:
    """Build the verifier for a configured host key policy name."""
    if policy == "accept-all":
        return AcceptAllHostKeys()
    if policy == "tofu":
        return TrustOnFirstUse()
    raise ValueError(f"Unknown host key policy: {policy}")


class SecuredClient(asyncssh.SSHClient):
    """asyncssh client callbacks bound to one connect attempt."""

    def __init__(
        self,
        host: str,
        port: int,
        negotiator: AuthNegotiator,
        verifier: IHostKeyVerifier
    ):
        self._host = host
        self._port = port
        self._negotiator = negotiator
        self._verifier = verifier

    def connection_made(self, conn: asyncssh.SSHClientConnection) -> None:
        logger.debug(f"Transport established to {self._host}:{self._port}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc:
            logger.debug(f"Transport to {self._host}:{self._port} lost: {exc}")

    def validate_host_public_key(self, host: str, addr: Any, port: int, key: asyncssh.SSHKey) -> bool:
        return self._verifier.verify(self._host, self._port, key)

    def auth_banner_received(self, msg: str, lang: str) -> None:
        logger.info(f"Banner from {self._host}: {msg.strip()}")

    def password_auth_requested(self) -> Optional[str]:
        offer = self._negotiator.next_offer([PASSWORD_METHOD])
        return offer.password if offer else None

    def public_key_auth_requested(self) -> Optional[asyncssh.SSHKey]:
        offer = self._negotiator.next_offer([PUBLIC_KEY_METHOD])
        return offer.key if offer else None

    def kbdint_auth_requested(self) -> Optional[str]:
        return None

    def auth_completed(self) -> None:
        logger.info(f"Authenticated to {self._host}:{self._port} as {self._negotiator.username}")


class TransportConnector:
    """Connects and authenticates SSH transports."""

    def __init__(self, host_key_verifier: Optional[IHostKeyVerifier] = None):
        self._verifier = host_key_verifier if host_key_verifier is not None else AcceptAllHostKeys()

    @property
    def host_key_verifier(self) -> IHostKeyVerifier:
        return self._verifier

    async def connect(
        self,
        config: ConnectionConfig,
        negotiator: AuthNegotiator
    ) -> asyncssh.SSHClientConnection:
        """
        Open an authenticated SSH connection.

        Args:
            config: Per-attempt connection snapshot
            negotiator: Single-attempt authentication policy

        Returns:
            The authenticated asyncssh connection

        Raises:
            SessionError: Classified failure of any step
        """
        logger.debug(f"Connecting to {config.address} as {config.username}")

        try:
            negotiator.prepare()
            method = negotiator.method
            return await asyncssh.connect(
                config.host,
                config.port,
                client_factory=lambda: SecuredClient(
                    config.host, config.port, negotiator, self._verifier),
                username=config.username,
                known_hosts=([], [], []),
                client_keys=[],
                agent_path=None,
                password_auth=method == PASSWORD_METHOD,
                public_key_auth=method == PUBLIC_KEY_METHOD,
                kbdint_auth=False,
                host_based_auth=False,
                gss_auth=False,
                connect_timeout=config.connect_timeout,
                keepalive_interval=config.keepalive_interval,
            )
        except Exception as e:
            error = map_error(e)
            logger.warning(f"Connection to {config.address} failed: {error}")
            if error is e:
                raise
            raise error from e
