"""
Data bridge between the SSH channel and the session consumer.

Inbound channel data is pushed by asyncssh callbacks into an
``OutputStream`` that a single consumer pulls from. Outbound writes are
forwarded to the channel multiplexer in call order.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Optional

import asyncssh

from .channel import ChannelMultiplexer

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNKS = 256

CloseCallback = Callable[[Optional[Exception]], None]


class OutputStream:
    """
    Finite, ordered sequence of inbound byte chunks.

    The stream terminates exactly once and cannot be restarted. When the
    consumer falls ``max_chunks`` behind, ``on_pause`` is called so the
    producer stops reading from the network; ``on_resume`` is called once
    the backlog drains to half that size. Chunks are never dropped while
    the stream is open.
    """

    def __init__(
        self,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
        on_pause: Optional[Callable[[], None]] = None,
        on_resume: Optional[Callable[[], None]] = None
    ):
        if max_chunks < 1:
            raise ValueError("max_chunks must be at least 1")
        self._max_chunks = max_chunks
        self._on_pause = on_pause
        self._on_resume = on_resume
        self._chunks: Deque[bytes] = deque()
        self._finished = False
        self._paused = False
        self._waiter: Optional['asyncio.Future[None]'] = None

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def buffered(self) -> int:
        return len(self._chunks)

    @property
    def paused(self) -> bool:
        return self._paused

    def feed(self, data: bytes) -> None:
        if self._finished:
            logger.debug(f"Discarding {len(data)} bytes received after stream end")
            return
        if not data:
            return

        self._chunks.append(data)
        self._wakeup()

        if not self._paused and len(self._chunks) >= self._max_chunks:
            self._paused = True
            if self._on_pause:
                self._on_pause()

    def finish(self) -> None:
        """Terminate the stream; buffered chunks stay readable."""
        if self._finished:
            return
        self._finished = True
        self._paused = False
        self._wakeup()

    async def read(self) -> Optional[bytes]:
        """
        Wait for the next chunk.

        Returns:
            The next chunk, or None once the stream has finished and
            every buffered chunk has been read
        """
        while not self._chunks:
            if self._finished:
                return None
            if self._waiter is not None:
                raise RuntimeError("read() called while another coroutine is already waiting")

            self._waiter = asyncio.get_running_loop().create_future()
            try:
                await self._waiter
            finally:
                self._waiter = None

        chunk = self._chunks.popleft()

        if self._paused and len(self._chunks) <= self._max_chunks // 2:
            self._paused = False
            if self._on_resume:
                self._on_resume()

        return chunk

    def _wakeup(self) -> None:
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            waiter.set_result(None)

    def __aiter__(self) -> 'OutputStream':
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.read()
        if chunk is None:
            raise StopAsyncIteration
        return chunk


class DataBridge(asyncssh.SSHClientSession):
    """
    asyncssh session object for the interactive shell channel.

    Fires the registered close callback exactly once, when the channel
    goes inactive or fails. ``finish()`` ends the inbound stream for an
    explicit close without firing it.
    """

    def __init__(self, multiplexer: ChannelMultiplexer, max_chunks: int = DEFAULT_MAX_CHUNKS):
        self._multiplexer = multiplexer
        self._channel: Optional[asyncssh.SSHClientChannel] = None
        self._stream = OutputStream(max_chunks, self._pause_reading, self._resume_reading)
        self._close_callback: Optional[CloseCallback] = None
        self._close_notified = False
        self._error: Optional[Exception] = None
        self._write_lock = asyncio.Lock()
        self._writable = asyncio.Event()
        self._writable.set()
        self.bytes_received = 0
        self.bytes_sent = 0

    @property
    def stream(self) -> OutputStream:
        return self._stream

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def terminated(self) -> bool:
        return self._stream.finished

    def set_close_callback(self, callback: Optional[CloseCallback]) -> None:
        self._close_callback = callback

    # asyncssh session callbacks

    def connection_made(self, chan: Any) -> None:
        self._channel = chan

    def session_started(self) -> None:
        logger.debug("Shell session started")

    def data_received(self, data: bytes, datatype: Optional[int]) -> None:
        self.bytes_received += len(data)
        self._stream.feed(data)

    def pause_writing(self) -> None:
        self._writable.clear()

    def resume_writing(self) -> None:
        self._writable.set()

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc:
            logger.warning(f"Shell channel failed: {exc}")
            self._error = exc
        else:
            logger.debug("Shell channel closed")

        self._stream.finish()
        self._writable.set()
        self._notify_closed(exc)

    # consumer side

    async def write(self, data: bytes) -> None:
        """Forward data to the channel, preserving call order."""
        async with self._write_lock:
            await self._writable.wait()
            self._multiplexer.write(data)
            self.bytes_sent += len(data)

    def resize(self, cols: int, rows: int) -> None:
        self._multiplexer.resize(cols, rows)

    def finish(self) -> None:
        self._stream.finish()

    def _notify_closed(self, exc: Optional[Exception]) -> None:
        if self._close_notified:
            return
        self._close_notified = True

        callback = self._close_callback
        if callback is None:
            return
        try:
            callback(exc)
        except Exception as e:
            logger.error(f"Error in channel close callback: {e}")

    def _pause_reading(self) -> None:
        if self._channel is not None:
            logger.debug("Output backlog full, pausing channel reads")
            self._channel.pause_reading()

    def _resume_reading(self) -> None:
        if self._channel is not None:
            logger.debug("Output backlog drained, resuming channel reads")
            self._channel.resume_reading()
