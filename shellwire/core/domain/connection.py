"""
Connection metadata and credential types.

``ConnectionProfile`` mirrors the metadata an external repository keeps
for a saved host. ``ConnectionConfig`` is the immutable per-attempt
snapshot the session works from.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class AuthMethod(Enum):
    """Authentication methods a profile can be configured with."""
    PASSWORD = "password"
    PUBLIC_KEY = "publicKey"


@dataclass(frozen=True)
class PasswordCredential:
    """Password credential."""
    password: str = field(repr=False)


@dataclass(frozen=True)
class PrivateKeyCredential:
    """Private key file credential with an optional passphrase."""
    path: str
    passphrase: Optional[str] = field(default=None, repr=False)


Credential = Union[PasswordCredential, PrivateKeyCredential]


@dataclass
class ConnectionProfile:
    """Saved connection metadata, owned by an external repository."""
    host: str
    username: str
    port: int = 22
    auth_method: AuthMethod = AuthMethod.PASSWORD
    key_path: Optional[str] = None
    name: str = ""
    connect_timeout: float = 30.0
    keepalive_interval: float = 60.0
    connection_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("Host cannot be empty")
        if not self.username:
            raise ValueError("Username cannot be empty")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        if self.connect_timeout <= 0:
            raise ValueError("Connect timeout must be positive")
        if self.keepalive_interval < 0:
            raise ValueError("Keepalive interval cannot be negative")
        if not self.name:
            self.name = self.host

    @property
    def display_address(self) -> str:
        if self.port == 22:
            return f"{self.username}@{self.host}"
        return f"{self.username}@{self.host}:{self.port}"


@dataclass(frozen=True)
class ConnectionConfig:
    """Immutable snapshot used for a single connect attempt."""
    host: str
    port: int
    username: str
    credential: Credential
    connect_timeout: float = 30.0
    keepalive_interval: float = 60.0

    @classmethod
    def from_profile(cls, profile: ConnectionProfile, credential: Credential) -> 'ConnectionConfig':
        """Build a snapshot from saved metadata and a resolved credential."""
        return cls(
            host=profile.host,
            port=profile.port,
            username=profile.username,
            credential=credential,
            connect_timeout=profile.connect_timeout,
            keepalive_interval=profile.keepalive_interval,
        )

    @property
    def auth_method(self) -> AuthMethod:
        if isinstance(self.credential, PrivateKeyCredential):
            return AuthMethod.PUBLIC_KEY
        return AuthMethod.PASSWORD

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"
