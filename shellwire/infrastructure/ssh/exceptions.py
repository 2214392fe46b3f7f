from enum import Enum
from typing import Optional


class SSHException(Exception):
    """Base exception class for SSH transport errors"""
    pass


class KeyLoadFailure(Enum):
    """Reasons a private key file could not be used"""
    KEY_NOT_FOUND = "keyNotFound"
    INVALID_KEY_FORMAT = "invalidKeyFormat"
    UNSUPPORTED_KEY_TYPE = "unsupportedKeyType"
    PASSPHRASE_REQUIRED = "passphraseRequired"


_KEY_LOAD_MESSAGES = {
    KeyLoadFailure.KEY_NOT_FOUND: "SSH key file not found",
    KeyLoadFailure.INVALID_KEY_FORMAT: "Invalid SSH key format",
    KeyLoadFailure.UNSUPPORTED_KEY_TYPE: (
        "SSH key type is not supported "
        "(supported: Ed25519, Ed448, ECDSA P256/P384/P521, RSA)"
    ),
    KeyLoadFailure.PASSPHRASE_REQUIRED: "SSH key is encrypted and the passphrase is missing or wrong",
}


class KeyLoadError(SSHException):
    """Exception raised when a private key cannot be loaded"""

    def __init__(self, reason: KeyLoadFailure, path: Optional[str] = None, detail: Optional[str] = None):
        self.reason = reason
        self.path = path
        self.detail = detail
        message = _KEY_LOAD_MESSAGES[reason]
        if path:
            message = f"{message}: {path}"
        super().__init__(message)


class ChannelError(SSHException):
    """Exception raised for session channel errors"""
    pass


class ChannelNotAvailableError(ChannelError):
    """Exception raised when writing without an open channel"""

    def __init__(self, message: str = "No channel is open"):
        super().__init__(message)
