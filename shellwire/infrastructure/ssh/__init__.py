"""
SSH transport, authentication, channel and session state machine.
"""

from .auth import AuthNegotiator, AuthOffer, load_private_key
from .bridge import DataBridge, OutputStream
from .channel import ChannelMultiplexer
from .engine import SSHEngine
from .errors import map_error
from .exceptions import (
    ChannelError,
    ChannelNotAvailableError,
    KeyLoadError,
    KeyLoadFailure,
    SSHException,
)
from .session import SSHSession, SessionMetrics, backoff_delay
from .transport import (
    AcceptAllHostKeys,
    SecuredClient,
    TransportConnector,
    TrustOnFirstUse,
    create_host_key_verifier,
)

__all__ = [
    'AuthNegotiator',
    'AuthOffer',
    'load_private_key',
    'DataBridge',
    'OutputStream',
    'ChannelMultiplexer',
    'SSHEngine',
    'map_error',
    'ChannelError',
    'ChannelNotAvailableError',
    'KeyLoadError',
    'KeyLoadFailure',
    'SSHException',
    'SSHSession',
    'SessionMetrics',
    'backoff_delay',
    'AcceptAllHostKeys',
    'SecuredClient',
    'TransportConnector',
    'TrustOnFirstUse',
    'create_host_key_verifier',
]
