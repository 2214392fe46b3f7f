"""
Session channel multiplexer.

Owns one authenticated SSH connection and at most one interactive
session channel on it, opened with a pseudo-terminal and a shell.
"""

import logging
from typing import Any, Callable, Optional, Tuple

import asyncssh

from .exceptions import ChannelError, ChannelNotAvailableError

logger = logging.getLogger(__name__)

DEFAULT_TERM_TYPE = "xterm-256color"
DEFAULT_COLS = 80
DEFAULT_ROWS = 24


class ChannelMultiplexer:
    """
    Frames terminal I/O over a single SSH session channel.

    The underlying connection is owned by the multiplexer and is closed
    together with the channel.
    """

    def __init__(
        self,
        connection: asyncssh.SSHClientConnection,
        term_type: str = DEFAULT_TERM_TYPE,
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS
    ):
        self._connection = connection
        self._term_type = term_type
        self._size = (cols, rows)
        self._channel: Optional[asyncssh.SSHClientChannel] = None
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            self._channel is not None
            and not self._closed
            and not self._channel.is_closing()
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def terminal_size(self) -> Tuple[int, int]:
        return self._size

    async def open(self, session_factory: Callable[[], asyncssh.SSHClientSession]) -> Any:
        """
        Open the session channel, then request a PTY and a shell.

        Both requests want a reply; a refusal of either fails the open.

        Args:
            session_factory: Builds the asyncssh session receiving channel events

        Returns:
            The session object produced by ``session_factory``
        """
        if self._opened:
            raise ChannelError("A session channel was already opened on this connection")
        if self._closed:
            raise ChannelError("Connection is closed")

        self._opened = True
        cols, rows = self._size
        channel, session = await self._connection.create_session(
            session_factory,
            term_type=self._term_type,
            term_size=(cols, rows, 0, 0),
            encoding=None,
        )
        self._channel = channel
        logger.debug(f"Opened shell channel ({self._term_type} {cols}x{rows})")
        return session

    def write(self, data: bytes) -> None:
        if not self.is_open:
            raise ChannelNotAvailableError()
        assert self._channel is not None
        self._channel.write(data)

    def resize(self, cols: int, rows: int) -> None:
        """Send a window-change request; ignored for non-positive sizes."""
        if cols <= 0 or rows <= 0:
            return
        if not self.is_open:
            logger.debug("Ignoring resize without an open channel")
            return
        assert self._channel is not None
        self._size = (cols, rows)
        self._channel.change_terminal_size(cols, rows, 0, 0)

    async def close(self) -> None:
        """Close the channel and the connection. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        if self._channel is not None:
            try:
                self._channel.close()
            except Exception as e:
                logger.debug(f"Error closing channel: {e}")

        try:
            self._connection.close()
            await self._connection.wait_closed()
        except Exception as e:
            logger.debug(f"Error closing connection: {e}")

        logger.debug("Channel and connection closed")
