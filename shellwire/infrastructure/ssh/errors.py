"""
Classification of low-level failures into the session error taxonomy.

Classification relies only on exception types and ``errno`` values raised
by asyncssh and the socket layer; message text is carried through for
diagnostics but never inspected.
"""

import asyncio
import errno
import socket

import asyncssh

from ...core.domain.session import ErrorCode, SessionError
from .exceptions import KeyLoadError, KeyLoadFailure

_REFUSED_ERRNOS = frozenset({errno.ECONNREFUSED})
_UNREACHABLE_ERRNOS = frozenset(
    code for code in (
        getattr(errno, 'EHOSTUNREACH', None),
        getattr(errno, 'ENETUNREACH', None),
        getattr(errno, 'EHOSTDOWN', None),
        getattr(errno, 'ENETDOWN', None),
    ) if code is not None
)
_TIMEOUT_ERRNOS = frozenset({errno.ETIMEDOUT})


def _describe(exc: BaseException) -> str:
    text = str(exc)
    if isinstance(exc, asyncssh.Error) and exc.reason:
        text = exc.reason
    return text or exc.__class__.__name__


def map_error(exc: BaseException) -> SessionError:
    """
    Convert an exception raised while connecting or doing I/O into a
    ``SessionError``.

    Args:
        exc: The failure to classify

    Returns:
        A ``SessionError``; an existing ``SessionError`` is returned as is
    """
    if isinstance(exc, SessionError):
        return exc

    message = _describe(exc)

    if isinstance(exc, asyncssh.PermissionDenied):
        return SessionError(ErrorCode.AUTH_FAILED, message)

    if isinstance(exc, KeyLoadError):
        if exc.reason == KeyLoadFailure.KEY_NOT_FOUND:
            return SessionError(ErrorCode.KEY_NOT_FOUND, message)
        return SessionError(ErrorCode.UNKNOWN, message)

    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return SessionError(ErrorCode.TIMEOUT, str(exc) or "Connection timed out")

    if isinstance(exc, ConnectionRefusedError):
        return SessionError(ErrorCode.CONNECTION_REFUSED, message)

    if isinstance(exc, socket.gaierror):
        return SessionError(ErrorCode.HOST_UNREACHABLE, message)

    if isinstance(exc, OSError) and exc.errno is not None:
        if exc.errno in _REFUSED_ERRNOS:
            return SessionError(ErrorCode.CONNECTION_REFUSED, message)
        if exc.errno in _UNREACHABLE_ERRNOS:
            return SessionError(ErrorCode.HOST_UNREACHABLE, message)
        if exc.errno in _TIMEOUT_ERRNOS:
            return SessionError(ErrorCode.TIMEOUT, message)

    return SessionError(ErrorCode.UNKNOWN, message)
