"""
Tests for the SSH session state machine.
"""

import asyncio
from typing import List, Tuple
from unittest.mock import AsyncMock, Mock

import pytest

from shellwire.core.domain.session import (
    ErrorCode,
    NotConnectedError,
    SessionError,
    SessionState,
    SessionStatus,
)
from shellwire.infrastructure.ssh.session import SSHSession, backoff_delay

from .fakes import FakeConnection, FakeConnector, RecordingReactor


def refused() -> SessionError:
    return SessionError(ErrorCode.CONNECTION_REFUSED, "Connection refused")


class TestBackoffDelay:
    """Test reconnect backoff delays."""

    def test_delays_double_from_one_second(self) -> None:
        assert [backoff_delay(n) for n in range(1, 6)] == [1, 2, 4, 8, 16]

    def test_custom_base(self) -> None:
        assert backoff_delay(3, base=0.5) == 2.0

    def test_attempt_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            backoff_delay(0)


class TestSessionConnect:
    """Test initial connection."""

    async def test_new_session_is_idle(self, session: SSHSession) -> None:
        assert session.state == SessionState.idle()
        assert session.reconnect_attempt == 0
        assert session.output.finished

    async def test_connect_success(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()

        assert session.state == SessionState.connected()
        assert connector.calls == 1
        assert session.metrics.connect_count == 1

    async def test_connect_requests_pty_and_shell(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()

        call = connector.last_connection.create_session_calls[0]
        assert call["term_type"] == "xterm-256color"
        assert call["term_size"] == (80, 24, 0, 0)
        assert call["encoding"] is None

    async def test_connect_uses_fresh_negotiator(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()
        connector.last_connection.channel.drop()
        await session.reconnect()

        assert len(connector.negotiators) == 2
        assert connector.negotiators[0] is not connector.negotiators[1]
        assert connector.negotiators[1].username == "bob"

    async def test_connect_failure_is_recorded_in_state(self, session: SSHSession, connector: FakeConnector) -> None:
        connector.error = SessionError(ErrorCode.AUTH_FAILED, "Permission denied")

        with pytest.raises(SessionError) as exc_info:
            await session.connect()

        assert exc_info.value.code == ErrorCode.AUTH_FAILED
        assert session.state == SessionState.failed(exc_info.value)
        assert session.metrics.last_error == "authFailed: Permission denied"

    async def test_connect_only_from_idle(self, session: SSHSession) -> None:
        await session.connect()

        with pytest.raises(SessionError) as exc_info:
            await session.connect()

        assert exc_info.value.code == ErrorCode.UNKNOWN
        assert session.state.is_connected

    async def test_channel_open_failure_closes_connection(
        self, session: SSHSession, connector: FakeConnector
    ) -> None:
        connector.connection_factory = lambda: FakeConnection(open_error=RuntimeError("PTY request failed"))

        with pytest.raises(SessionError) as exc_info:
            await session.connect()

        assert exc_info.value.code == ErrorCode.UNKNOWN
        assert exc_info.value.message == "PTY request failed"
        assert connector.last_connection.closed
        assert session.state.status == SessionStatus.FAILED

    async def test_channel_closing_during_setup_fails_connect(
        self, session: SSHSession, connector: FakeConnector
    ) -> None:
        connector.connection_factory = lambda: FakeConnection(close_during_setup=True)

        with pytest.raises(SessionError, match="Channel closed during setup"):
            await session.connect()

        assert session.state.status == SessionStatus.FAILED
        assert connector.last_connection.closed

    async def test_close_while_connecting(self, session: SSHSession, connector: FakeConnector) -> None:
        connector.before_return = session.close

        with pytest.raises(SessionError, match="closed while connecting"):
            await session.connect()

        assert session.state == SessionState.disconnected()
        assert connector.last_connection.closed


class TestSessionWrite:
    """Test the write path."""

    async def test_write_when_idle_fails_without_io(self, session: SSHSession, connector: FakeConnector) -> None:
        with pytest.raises(NotConnectedError):
            await session.write(b"ls\n")

        assert connector.calls == 0

    async def test_write_after_close_fails_without_io(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()
        channel = connector.last_connection.channel
        await session.close()

        with pytest.raises(NotConnectedError) as exc_info:
            await session.write(b"ls\n")

        assert exc_info.value.message == "Session not connected"
        assert channel.writes == []

    async def test_writes_arrive_in_call_order(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()
        payloads = [b"ls\n", b"pwd\n", b"whoami\n", b"exit\n"]

        for payload in payloads:
            await session.write(payload)

        assert connector.last_connection.channel.writes == payloads
        assert session.metrics.bytes_sent == sum(len(p) for p in payloads)

    async def test_concurrent_writes_keep_order(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()
        payloads = [f"echo {n}\n".encode() for n in range(20)]

        await asyncio.gather(*(session.write(p) for p in payloads))

        assert connector.last_connection.channel.writes == payloads

    async def test_write_after_channel_dropped(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()
        connector.last_connection.channel.drop()

        with pytest.raises(NotConnectedError):
            await session.write(b"ls\n")


class TestSessionResize:
    """Test terminal resize."""

    async def test_invalid_size_sends_nothing(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()

        await session.resize(0, 24)
        await session.resize(80, -1)

        assert connector.last_connection.channel.resizes == []

    async def test_valid_size_sends_one_request(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()

        await session.resize(100, 40)

        assert connector.last_connection.channel.resizes == [(100, 40, 0, 0)]

    async def test_resize_when_not_connected_is_ignored(self, session: SSHSession) -> None:
        await session.resize(100, 40)

        assert session.state == SessionState.idle()

    async def test_reconnect_keeps_last_size(
        self, session: SSHSession, connector: FakeConnector
    ) -> None:
        await session.connect()
        await session.resize(132, 50)
        connector.last_connection.channel.drop()

        await session.reconnect()

        assert connector.last_connection.create_session_calls[0]["term_size"] == (132, 50, 0, 0)


class TestSessionReconnect:
    """Test reconnect with backoff."""

    async def test_backoff_sequence_and_cap(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.connect()
        connector.error = refused()
        errors: List[SessionError] = []

        for _ in range(5):
            with pytest.raises(SessionError) as exc_info:
                await session.reconnect()
            errors.append(exc_info.value)

        assert reactor.sleeps == [1, 2, 4, 8, 16]
        assert [e.code for e in errors[:4]] == [ErrorCode.CONNECTION_REFUSED] * 4
        assert errors[4].code == ErrorCode.TIMEOUT
        assert session.state.status == SessionStatus.FAILED
        assert session.state.error is not None
        assert session.state.error.code == ErrorCode.TIMEOUT
        assert connector.calls == 6

    async def test_sixth_reconnect_makes_no_network_attempt(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.connect()
        connector.error = refused()
        for _ in range(5):
            with pytest.raises(SessionError):
                await session.reconnect()
        calls = connector.calls

        with pytest.raises(SessionError) as exc_info:
            await session.reconnect()

        assert exc_info.value.code == ErrorCode.TIMEOUT
        assert exc_info.value.message == "Max reconnect attempts exceeded"
        assert connector.calls == calls
        assert len(reactor.sleeps) == 5
        assert session.state == SessionState.failed(exc_info.value)

    async def test_failed_retry_records_error_and_keeps_counter(
        self, session: SSHSession, connector: FakeConnector
    ) -> None:
        await session.connect()
        connector.error = refused()

        with pytest.raises(SessionError):
            await session.reconnect()

        assert session.state == SessionState.failed(refused())
        assert session.reconnect_attempt == 1

    async def test_state_is_reconnecting_during_backoff(
        self, session: SSHSession, reactor: RecordingReactor
    ) -> None:
        await session.connect()
        seen: List[SessionState] = []

        async def capture(seconds: float) -> None:
            seen.append(session.state)

        reactor.on_sleep = capture
        await session.reconnect()

        assert seen == [SessionState.reconnecting(1)]

    async def test_success_resets_attempt_counter(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.connect()
        connector.failures = [refused(), refused()]

        for _ in range(2):
            with pytest.raises(SessionError):
                await session.reconnect()
        assert session.reconnect_attempt == 2

        await session.reconnect()
        assert session.state == SessionState.connected()
        assert session.reconnect_attempt == 0

        connector.last_connection.channel.drop()
        await session.reconnect()
        assert reactor.sleeps == [1, 2, 4, 1]

    async def test_reconnect_replaces_output_stream(
        self, session: SSHSession, connector: FakeConnector
    ) -> None:
        await session.connect()
        first_stream = session.output
        first_connection = connector.last_connection

        await session.reconnect()

        assert session.output is not first_stream
        assert first_stream.finished
        assert not session.output.finished
        assert first_connection.closed
        assert connector.last_connection is not first_connection

    async def test_stale_channel_close_is_ignored(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.connect()
        await session.reconnect()
        await reactor.drain()
        await asyncio.sleep(0)

        assert session.state == SessionState.connected()

    async def test_close_during_backoff_abandons_retry(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.connect()
        reactor.on_sleep = lambda seconds: session.close()

        await session.reconnect()

        assert connector.calls == 1
        assert session.state == SessionState.disconnected()

    async def test_reconnect_before_connect_is_ignored(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.reconnect()

        assert connector.calls == 0
        assert reactor.sleeps == []
        assert session.state == SessionState.idle()

    async def test_reconnect_on_closed_session_is_ignored(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.connect()
        await session.close()

        await session.reconnect()

        assert connector.calls == 1
        assert reactor.sleeps == []
        assert session.state == SessionState.disconnected()

    async def test_concurrent_reconnect_is_ignored(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.connect()
        reactor.on_sleep = lambda seconds: session.reconnect()

        await session.reconnect()

        assert reactor.sleeps == [1]
        assert connector.calls == 2
        assert session.state == SessionState.connected()


class TestSessionClose:
    """Test explicit close and channel loss."""

    async def test_close_is_idempotent(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()

        await session.close()
        await session.close()

        assert session.state == SessionState.disconnected()
        assert connector.last_connection.close_calls == 1
        assert connector.last_connection.channel.closed
        assert session.output.finished

    async def test_close_from_idle(self, session: SSHSession) -> None:
        await session.close()

        assert session.state == SessionState.disconnected()
        assert session.is_closed

    async def test_close_from_failed(self, session: SSHSession, connector: FakeConnector) -> None:
        connector.error = refused()
        with pytest.raises(SessionError):
            await session.connect()

        await session.close()

        assert session.state == SessionState.disconnected()

    async def test_channel_inactive_disconnects_once(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        transitions: List[Tuple[SessionState, SessionState]] = []
        session.add_state_listener(lambda s, old, new: transitions.append((old, new)))
        await session.connect()
        stream = session.output
        channel = connector.last_connection.channel

        channel.feed(b"hello ")
        channel.feed(b"world")
        channel.drop()
        await session.close()
        await reactor.drain()

        disconnects = [new for _, new in transitions if new == SessionState.disconnected()]
        assert len(disconnects) == 1
        assert [chunk async for chunk in stream] == [b"hello ", b"world"]
        assert stream.finished
        assert connector.last_connection.closed

    async def test_channel_inactive_tears_down_transport(
        self, session: SSHSession, connector: FakeConnector, reactor: RecordingReactor
    ) -> None:
        await session.connect()

        connector.last_connection.channel.drop()
        await reactor.drain()

        assert session.state == SessionState.disconnected()
        assert connector.last_connection.close_calls == 1
        assert session.metrics.disconnect_count == 1

    async def test_orderly_close_has_no_disconnect_reason(
        self, session: SSHSession, connector: FakeConnector
    ) -> None:
        await session.connect()

        connector.last_connection.channel.drop()

        assert session.disconnect_reason is None

    async def test_connection_loss_sets_disconnect_reason(
        self, session: SSHSession, connector: FakeConnector
    ) -> None:
        await session.connect()

        connector.last_connection.channel.drop(ConnectionResetError("Connection reset by peer"))

        assert session.disconnect_reason is not None
        assert session.disconnect_reason.message == "Connection reset by peer"
        assert session.state == SessionState.disconnected()

    async def test_closed_session_cannot_connect(self, session: SSHSession) -> None:
        await session.close()

        with pytest.raises(SessionError):
            await session.connect()


class TestSessionListeners:
    """Test state listeners."""

    async def test_listener_sees_every_transition(self, session: SSHSession) -> None:
        listener = Mock()
        session.add_state_listener(listener)

        await session.connect()
        await session.close()

        states = [call.args[2] for call in listener.call_args_list]
        assert states == [
            SessionState.connecting(),
            SessionState.connected(),
            SessionState.disconnected(),
        ]
        assert listener.call_args_list[0].args[0] is session

    async def test_async_listener_runs_on_reactor(
        self, session: SSHSession, reactor: RecordingReactor
    ) -> None:
        listener = AsyncMock()
        session.add_state_listener(listener)

        await session.connect()
        await reactor.drain()

        assert listener.await_count == 2

    async def test_failing_listener_does_not_break_transitions(self, session: SSHSession) -> None:
        session.add_state_listener(Mock(side_effect=RuntimeError("listener failed")))

        await session.connect()

        assert session.state == SessionState.connected()

    async def test_remove_listener(self, session: SSHSession) -> None:
        listener = Mock()
        session.add_state_listener(listener)
        session.remove_state_listener(listener)
        session.remove_state_listener(listener)

        await session.connect()

        listener.assert_not_called()


class TestSessionInfo:
    """Test session info snapshot."""

    async def test_get_info(self, session: SSHSession, connector: FakeConnector) -> None:
        await session.connect()
        connector.last_connection.channel.feed(b"prompt$ ")
        await session.write(b"ls\n")

        info = session.get_info()

        assert info["connection_id"] == "conn-1"
        assert info["address"] == "10.0.0.5:22"
        assert info["state"] == "connected"
        assert info["metrics"]["bytes_sent"] == 3
        assert info["metrics"]["bytes_received"] == 8
