"""
Authentication negotiation for the Shellwire SSH transport.

The negotiator makes at most one credential offer per connection: the
configured password or private key, and only when the server lists the
matching method as acceptable. A rejection is never retried.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import asyncssh

from ...core.domain.connection import Credential, PasswordCredential, PrivateKeyCredential
from .exceptions import KeyLoadError, KeyLoadFailure

logger = logging.getLogger(__name__)

PASSWORD_METHOD = "password"
PUBLIC_KEY_METHOD = "publickey"

SUPPORTED_KEY_ALGORITHMS = frozenset({
    "ssh-ed25519",
    "ssh-ed448",
    "ecdsa-sha2-nistp256",
    "ecdsa-sha2-nistp384",
    "ecdsa-sha2-nistp521",
    "ssh-rsa",
})

KeyLoader = Callable[[str, Optional[str]], Any]


def load_private_key(path: str, passphrase: Optional[str] = None) -> asyncssh.SSHKey:
    """
    Load and decode a private key file.

    Args:
        path: Key file path, ``~`` is expanded
        passphrase: Passphrase for encrypted keys

    Returns:
        The decoded ``asyncssh.SSHKey``

    Raises:
        KeyLoadError: If the file is missing, cannot be parsed, needs a
            passphrase, or holds an unsupported key type
    """
    expanded = os.path.expanduser(path)
    if not os.path.isfile(expanded):
        raise KeyLoadError(KeyLoadFailure.KEY_NOT_FOUND, path)

    try:
        key = asyncssh.read_private_key(expanded, passphrase)
    except asyncssh.KeyEncryptionError as e:
        raise KeyLoadError(KeyLoadFailure.PASSPHRASE_REQUIRED, path, str(e)) from e
    except asyncssh.KeyImportError as e:
        if passphrase is None and _is_encrypted(expanded):
            raise KeyLoadError(KeyLoadFailure.PASSPHRASE_REQUIRED, path, str(e)) from e
        raise KeyLoadError(KeyLoadFailure.INVALID_KEY_FORMAT, path, str(e)) from e
    except OSError as e:
        raise KeyLoadError(KeyLoadFailure.KEY_NOT_FOUND, path, str(e)) from e

    algorithm = key.get_algorithm()
    if algorithm not in SUPPORTED_KEY_ALGORITHMS:
        raise KeyLoadError(KeyLoadFailure.UNSUPPORTED_KEY_TYPE, path, algorithm)

    logger.debug(f"Loaded {algorithm} private key from {path}")
    return key


def _is_encrypted(path: str) -> bool:
    # An encrypted key fails decryption with an empty passphrase instead of
    # failing to parse.
    try:
        asyncssh.read_private_key(path, "")
    except asyncssh.KeyEncryptionError:
        return True
    except (asyncssh.KeyImportError, OSError):
        return False
    return False


@dataclass(frozen=True)
class AuthOffer:
    """A single credential offer for one SSH authentication method."""
    method: str
    username: str
    password: Optional[str] = field(default=None, repr=False)
    key: Any = field(default=None, repr=False)


class AuthNegotiator:
    """
    Single-attempt authentication policy.

    ``prepare()`` loads key material ahead of the network handshake so
    key file problems surface before any connection is made.
    ``next_offer()`` is consulted by the SSH client each time the server
    asks for credentials.
    """

    def __init__(
        self,
        username: str,
        credential: Credential,
        key_loader: KeyLoader = load_private_key
    ):
        self._username = username
        self._credential = credential
        self._key_loader = key_loader
        self._key: Any = None
        self._attempted = False

    @property
    def username(self) -> str:
        return self._username

    @property
    def method(self) -> str:
        """SSH method name matching the configured credential."""
        if isinstance(self._credential, PrivateKeyCredential):
            return PUBLIC_KEY_METHOD
        return PASSWORD_METHOD

    @property
    def attempted(self) -> bool:
        return self._attempted

    def prepare(self) -> None:
        """Load the private key, if the credential is one."""
        if isinstance(self._credential, PrivateKeyCredential) and self._key is None:
            self._key = self._key_loader(self._credential.path, self._credential.passphrase)

    def next_offer(self, available_methods: Sequence[str]) -> Optional[AuthOffer]:
        """
        Produce the credential offer for this round, if any.

        Args:
            available_methods: Methods the server currently accepts

        Returns:
            An ``AuthOffer``, or None when the method is not accepted or
            the single attempt has already been used
        """
        if self._attempted:
            logger.debug(f"Authentication already attempted for {self._username}, not retrying")
            return None

        method = self.method
        if method not in available_methods:
            logger.debug(f"Server does not accept {method} for {self._username}")
            return None

        if isinstance(self._credential, PasswordCredential):
            self._attempted = True
            logger.debug(f"Offering password for {self._username}")
            return AuthOffer(method, self._username, password=self._credential.password)

        self.prepare()
        self._attempted = True
        logger.debug(f"Offering public key for {self._username}")
        return AuthOffer(method, self._username, key=self._key)
