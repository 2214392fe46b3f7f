"""
Interactive SSH session state machine.

``SSHSession`` owns one session's lifecycle state and its transport and
channel handles. It orchestrates connect and reconnect with exponential
backoff and records classified failures in its state so that every
observer can react, not only the caller.

All methods run on the reactor's event loop. State changes never span an
``await``, which makes each transition a compare-and-set on the single
loop thread.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ...core.domain.connection import ConnectionConfig
from ...core.domain.session import (
    ErrorCode,
    NotConnectedError,
    SessionError,
    SessionState,
    SessionStatus,
)
from ...core.interfaces.session import IRemoteSession, StateListener
from ..reactor import Reactor
from .auth import AuthNegotiator
from .bridge import DEFAULT_MAX_CHUNKS, DataBridge, OutputStream
from .channel import DEFAULT_COLS, DEFAULT_ROWS, DEFAULT_TERM_TYPE, ChannelMultiplexer
from .errors import map_error
from .exceptions import ChannelNotAvailableError
from .transport import TransportConnector

logger = logging.getLogger(__name__)

MAX_RECONNECT_ATTEMPTS = 5
BASE_RECONNECT_DELAY = 1.0


def backoff_delay(attempt: int, base: float = BASE_RECONNECT_DELAY) -> float:
    """Delay in seconds before reconnect attempt ``attempt`` (1-based)."""
    if attempt < 1:
        raise ValueError(f"Reconnect attempt must be at least 1, got {attempt}")
    return base * 2 ** (attempt - 1)


@dataclass
class SessionMetrics:
    """Session traffic and lifecycle counters."""
    connect_attempts: int = 0
    connect_count: int = 0
    disconnect_count: int = 0
    reconnect_attempts: int = 0
    error_count: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    last_error: Optional[str] = None
    connected_at: Optional[float] = None
    created_at: float = field(default_factory=time.time)

    def record_connected(self) -> None:
        self.connect_count += 1
        self.connected_at = time.time()

    def record_error(self, error: SessionError) -> None:
        self.error_count += 1
        self.last_error = str(error)


def _closed_stream() -> OutputStream:
    stream = OutputStream()
    stream.finish()
    return stream


class SSHSession(IRemoteSession):
    """
    One interactive remote shell over SSH.

    A session is created idle, connected once with ``connect()``, and may
    be recovered with ``reconnect()`` until the attempt cap is reached.
    After ``close()`` it cannot be used again.
    """

    def __init__(
        self,
        connection_id: str,
        config: ConnectionConfig,
        reactor: Reactor,
        connector: TransportConnector,
        term_type: str = DEFAULT_TERM_TYPE,
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS,
        max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
        base_reconnect_delay: float = BASE_RECONNECT_DELAY,
        output_buffer_chunks: int = DEFAULT_MAX_CHUNKS,
        session_id: Optional[str] = None
    ):
        self._session_id = session_id or str(uuid.uuid4())
        self._connection_id = connection_id
        self._config = config
        self._reactor = reactor
        self._connector = connector
        self._term_type = term_type
        self._cols = cols
        self._rows = rows
        self._max_reconnect_attempts = max_reconnect_attempts
        self._base_reconnect_delay = base_reconnect_delay
        self._output_buffer_chunks = output_buffer_chunks

        self._state = SessionState.idle()
        self._reconnect_attempt = 0
        self._reconnecting = False
        self._closed = False
        self._generation = 0
        self._multiplexer: Optional[ChannelMultiplexer] = None
        self._bridge: Optional[DataBridge] = None
        self._stream = _closed_stream()
        self._listeners: List[StateListener] = []
        self._disconnect_reason: Optional[SessionError] = None
        self._metrics = SessionMetrics()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def reconnect_attempt(self) -> int:
        return self._reconnect_attempt

    @property
    def output(self) -> OutputStream:
        return self._stream

    @property
    def metrics(self) -> SessionMetrics:
        return self._metrics

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def disconnect_reason(self) -> Optional[SessionError]:
        """Why the last connection dropped; None after an orderly channel close."""
        return self._disconnect_reason

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            logger.warning(f"State listener not registered on session {self._session_id}")

    async def connect(self) -> None:
        """
        Connect an idle session.

        Suspends until handshake, authentication and channel setup have
        all completed or one of them failed.

        Raises:
            SessionError: If the session is not idle or any step failed;
                the failure is also recorded as ``failed(error)``
        """
        if self._state.status != SessionStatus.IDLE:
            raise SessionError(ErrorCode.UNKNOWN, f"Cannot connect from state {self._state}")

        self._transition(SessionState.connecting())
        await self._establish()

    async def write(self, data: bytes) -> None:
        """
        Send bytes to the remote shell.

        Raises:
            NotConnectedError: If the session is not connected
            SessionError: If the channel rejected the write
        """
        bridge = self._bridge
        if not self._state.is_connected or bridge is None:
            raise NotConnectedError()

        try:
            await bridge.write(data)
        except ChannelNotAvailableError as e:
            raise NotConnectedError() from e
        except Exception as e:
            raise map_error(e) from e

        self._metrics.bytes_sent += len(data)

    async def resize(self, cols: int, rows: int) -> None:
        """Resize the remote terminal. Invalid sizes and disconnected sessions are ignored."""
        if cols <= 0 or rows <= 0:
            logger.debug(f"Ignoring invalid terminal size {cols}x{rows}")
            return

        bridge = self._bridge
        if not self._state.is_connected or bridge is None:
            return

        self._cols, self._rows = cols, rows
        try:
            bridge.resize(cols, rows)
        except Exception as e:
            logger.warning(f"Resize failed on session {self._session_id}: {e}")

    async def reconnect(self) -> None:
        """
        Wait for the backoff delay of the next attempt, drop the stale
        transport and connect again.

        The attempt counter persists across calls until a connect
        succeeds. Once the cap is reached the session settles in
        ``failed(timeout)`` without touching the network.

        Raises:
            SessionError: When attempts are exhausted or the retry failed
        """
        if self._closed:
            logger.warning(f"Reconnect ignored, session {self._session_id} is closed")
            return

        if self._reconnecting or self._state.status == SessionStatus.CONNECTING:
            logger.warning(f"Reconnect ignored, session {self._session_id} is already connecting")
            return

        if self._state.status == SessionStatus.IDLE:
            logger.warning(f"Reconnect ignored, session {self._session_id} was never connected")
            return

        if self._reconnect_attempt >= self._max_reconnect_attempts:
            raise self._give_up()

        self._reconnecting = True
        try:
            self._reconnect_attempt += 1
            attempt = self._reconnect_attempt
            self._metrics.reconnect_attempts += 1
            self._transition(SessionState.reconnecting(attempt))

            delay = backoff_delay(attempt, self._base_reconnect_delay)
            logger.info(
                f"Reconnecting session {self._session_id} to {self._config.address} "
                f"(attempt {attempt}/{self._max_reconnect_attempts}) in {delay:g}s")
            await self._reactor.sleep(delay)

            if self._closed:
                logger.info(f"Session {self._session_id} closed during backoff, reconnect abandoned")
                return

            await self._release_handles()
            try:
                await self._establish()
            except SessionError as e:
                if self._closed or attempt < self._max_reconnect_attempts:
                    raise
                raise self._give_up() from e
        finally:
            self._reconnecting = False

    async def close(self) -> None:
        """Close the session. Safe to call repeatedly and from any state."""
        self._closed = True

        if self._transition(SessionState.disconnected()):
            logger.info(f"Session {self._session_id} closed")

        await self._release_handles()

    def get_info(self) -> Dict[str, Any]:
        received = self._metrics.bytes_received
        if self._bridge is not None:
            received += self._bridge.bytes_received

        return {
            'session_id': self._session_id,
            'connection_id': self._connection_id,
            'address': self._config.address,
            'username': self._config.username,
            'state': str(self._state),
            'reconnect_attempt': self._reconnect_attempt,
            'terminal': {'type': self._term_type, 'cols': self._cols, 'rows': self._rows},
            'metrics': {
                'connect_count': self._metrics.connect_count,
                'disconnect_count': self._metrics.disconnect_count,
                'reconnect_attempts': self._metrics.reconnect_attempts,
                'error_count': self._metrics.error_count,
                'bytes_sent': self._metrics.bytes_sent,
                'bytes_received': received,
                'last_error': self._metrics.last_error,
                'connected_at': self._metrics.connected_at,
            }
        }

    def _give_up(self) -> SessionError:
        error = SessionError(ErrorCode.TIMEOUT, "Max reconnect attempts exceeded")
        self._metrics.record_error(error)
        self._transition(SessionState.failed(error))
        logger.error(
            f"Session {self._session_id} gave up after {self._reconnect_attempt} reconnect attempts")
        return error

    async def _establish(self) -> None:
        self._metrics.connect_attempts += 1
        negotiator = AuthNegotiator(self._config.username, self._config.credential)
        multiplexer: Optional[ChannelMultiplexer] = None

        try:
            connection = await self._connector.connect(self._config, negotiator)
            multiplexer = ChannelMultiplexer(connection, self._term_type, self._cols, self._rows)
            bridge: DataBridge = await multiplexer.open(
                lambda: DataBridge(multiplexer, self._output_buffer_chunks))
            if bridge.terminated:
                raise SessionError(ErrorCode.UNKNOWN, "Channel closed during setup")
        except Exception as e:
            if multiplexer is not None:
                await multiplexer.close()

            error = map_error(e)
            self._metrics.record_error(error)

            if self._closed:
                raise SessionError(ErrorCode.UNKNOWN, "Session closed while connecting") from e

            self._transition(SessionState.failed(error))
            logger.error(f"Session {self._session_id} failed to connect to {self._config.address}: {error}")
            if error is e:
                raise
            raise error from e

        if self._closed:
            bridge.finish()
            await multiplexer.close()
            raise SessionError(ErrorCode.UNKNOWN, "Session closed while connecting")

        self._generation += 1
        generation = self._generation
        bridge.set_close_callback(lambda exc: self._on_channel_closed(generation, exc))

        self._multiplexer = multiplexer
        self._bridge = bridge
        self._stream = bridge.stream
        self._disconnect_reason = None
        self._reconnect_attempt = 0
        self._metrics.record_connected()
        self._transition(SessionState.connected())
        logger.info(f"Session {self._session_id} connected to {self._config.address}")

    def _on_channel_closed(self, generation: int, exc: Optional[Exception]) -> None:
        if generation != self._generation or self._closed:
            return

        if not self._transition(SessionState.disconnected(), allowed_from=(SessionStatus.CONNECTED,)):
            return

        if exc is not None:
            self._disconnect_reason = map_error(exc)
            self._metrics.record_error(self._disconnect_reason)
        logger.info(f"Session {self._session_id} channel went inactive")

        multiplexer = self._detach_handles()
        if multiplexer is not None:
            self._reactor.spawn(multiplexer.close(), name=f"teardown-{self._session_id}")

    def _detach_handles(self) -> Optional[ChannelMultiplexer]:
        self._generation += 1
        bridge, multiplexer = self._bridge, self._multiplexer
        self._bridge = None
        self._multiplexer = None

        if bridge is not None:
            bridge.finish()
            self._metrics.bytes_received += bridge.bytes_received
        self._stream.finish()
        return multiplexer

    async def _release_handles(self) -> None:
        multiplexer = self._detach_handles()
        if multiplexer is not None:
            await multiplexer.close()

    def _transition(
        self,
        new_state: SessionState,
        allowed_from: Optional[Iterable[SessionStatus]] = None
    ) -> bool:
        old_state = self._state
        if allowed_from is not None and old_state.status not in allowed_from:
            return False
        if old_state == new_state:
            return False

        self._state = new_state
        if old_state.status == SessionStatus.CONNECTED:
            self._metrics.disconnect_count += 1
        logger.debug(f"Session {self._session_id}: {old_state} -> {new_state}")

        for listener in list(self._listeners):
            try:
                result = listener(self, old_state, new_state)
                if asyncio.iscoroutine(result):
                    self._reactor.spawn(result, name=f"state-listener-{self._session_id}")
            except Exception as e:
                logger.error(f"State listener error on session {self._session_id}: {e}")

        return True
