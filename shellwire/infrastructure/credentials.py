"""
In-memory credential store.

Secrets are kept in process memory keyed by connection identifier and are
never written to disk.
"""

import logging
import threading
from typing import Dict, Optional

from ..core.interfaces.session import ICredentialStore

logger = logging.getLogger(__name__)


class InMemoryCredentialStore(ICredentialStore):
    """Thread-safe process-local secret store."""

    def __init__(self) -> None:
        self._passwords: Dict[str, str] = {}
        self._passphrases: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_password(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self._passwords.get(connection_id)

    def set_password(self, connection_id: str, password: str) -> None:
        with self._lock:
            self._passwords[connection_id] = password
        logger.debug(f"Stored password for connection {connection_id}")

    def get_passphrase(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self._passphrases.get(connection_id)

    def set_passphrase(self, connection_id: str, passphrase: str) -> None:
        with self._lock:
            self._passphrases[connection_id] = passphrase
        logger.debug(f"Stored key passphrase for connection {connection_id}")

    def delete(self, connection_id: str) -> None:
        with self._lock:
            self._passwords.pop(connection_id, None)
            self._passphrases.pop(connection_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(set(self._passwords) | set(self._passphrases))
