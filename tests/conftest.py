"""
Shared fixtures for the Shellwire test suite.
"""

import pytest

from shellwire.core.domain.connection import ConnectionConfig, ConnectionProfile, PasswordCredential
from shellwire.infrastructure.ssh.session import SSHSession

from .fakes import FakeConnector, RecordingReactor


@pytest.fixture
def reactor() -> RecordingReactor:
    return RecordingReactor()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def profile() -> ConnectionProfile:
    return ConnectionProfile(host="10.0.0.5", username="bob", port=22)


@pytest.fixture
def connection_config(profile: ConnectionProfile) -> ConnectionConfig:
    return ConnectionConfig.from_profile(profile, PasswordCredential("pw"))


@pytest.fixture
def session(connection_config: ConnectionConfig, reactor: RecordingReactor, connector: FakeConnector) -> SSHSession:
    return SSHSession(
        connection_id="conn-1",
        config=connection_config,
        reactor=reactor,
        connector=connector,  # type: ignore[arg-type]
    )
