"""
Test doubles for the asyncssh connection, channel and reactor.

The fakes stand in for an authenticated asyncssh connection and its
session channel so that session behavior can be exercised without a
network.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from shellwire.core.domain.connection import ConnectionConfig
from shellwire.infrastructure.reactor import Reactor


class RecordingReactor(Reactor):
    """Reactor that records backoff delays instead of sleeping."""

    def __init__(self) -> None:
        super().__init__()
        self.sleeps: List[float] = []
        self.on_sleep: Optional[Callable[[float], Awaitable[Any]]] = None

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self.on_sleep is not None:
            await self.on_sleep(seconds)
        await asyncio.sleep(0)


class FakeChannel:
    """Records channel traffic the way an asyncssh client channel receives it."""

    def __init__(self) -> None:
        self.writes: List[bytes] = []
        self.resizes: List[Tuple[int, int, int, int]] = []
        self.closed = False
        self.paused = False
        self.session: Any = None

    def write(self, data: bytes) -> None:
        if self.closed:
            raise BrokenPipeError("Channel is closed")
        self.writes.append(data)

    def change_terminal_size(self, width: int, height: int, pixwidth: int = 0, pixheight: int = 0) -> None:
        self.resizes.append((width, height, pixwidth, pixheight))

    def is_closing(self) -> bool:
        return self.closed

    def pause_reading(self) -> None:
        self.paused = True

    def resume_reading(self) -> None:
        self.paused = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        asyncio.get_running_loop().call_soon(self.session.connection_lost, None)

    def feed(self, data: bytes) -> None:
        """Deliver inbound data from the remote shell."""
        self.session.data_received(data, None)

    def drop(self, exc: Optional[Exception] = None) -> None:
        """Make the channel go inactive from the remote side."""
        self.closed = True
        self.session.connection_lost(exc)


class FakeConnection:
    """Authenticated connection that opens one FakeChannel."""

    def __init__(self, open_error: Optional[Exception] = None, close_during_setup: bool = False) -> None:
        self.channel = FakeChannel()
        self.open_error = open_error
        self.close_during_setup = close_during_setup
        self.create_session_calls: List[Dict[str, Any]] = []
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def create_session(self, session_factory: Callable[[], Any], **kwargs: Any) -> Tuple[FakeChannel, Any]:
        self.create_session_calls.append(kwargs)
        if self.open_error is not None:
            raise self.open_error

        session = session_factory()
        self.channel.session = session
        session.connection_made(self.channel)
        session.session_started()
        if self.close_during_setup:
            self.channel.drop()
        return self.channel, session

    def close(self) -> None:
        self.close_calls += 1

    async def wait_closed(self) -> None:
        pass


class FakeConnector:
    """Transport connector handing out FakeConnections."""

    def __init__(self) -> None:
        self.calls = 0
        self.negotiators: List[Any] = []
        self.connections: List[FakeConnection] = []
        self.failures: List[Exception] = []
        self.error: Optional[Exception] = None
        self.before_return: Optional[Callable[[], Awaitable[Any]]] = None
        self.connection_factory: Callable[[], FakeConnection] = FakeConnection

    @property
    def last_connection(self) -> FakeConnection:
        return self.connections[-1]

    async def connect(self, config: ConnectionConfig, negotiator: Any) -> FakeConnection:
        self.calls += 1
        self.negotiators.append(negotiator)
        await asyncio.sleep(0)

        if self.failures:
            raise self.failures.pop(0)
        if self.error is not None:
            raise self.error

        connection = self.connection_factory()
        self.connections.append(connection)
        if self.before_return is not None:
            await self.before_return()
        return connection


