"""Central exception hierarchy for PK Offload."""
from __future__ import annotations

from .models import ErrorKind


class PkOffloadError(Exception):
    """Base exception for all failures"""

    kind: ErrorKind = ErrorKind.SIGNING_ERROR


class InvalidArgument(PkOffloadError):
    """Raised when a required input is missing, empty or out of range"""

    kind = ErrorKind.INVALID_ARGUMENT


class KeySourceError(PkOffloadError):
    """Raised when the persisted key encoding cannot be read"""

    kind = ErrorKind.KEY_SOURCE_NOT_FOUND


class KeySourceNotFound(KeySourceError):
    """Raised when the key source does not exist or is unreadable"""

    kind = ErrorKind.KEY_SOURCE_NOT_FOUND


class KeySourceEmpty(KeySourceError):
    """Raised when the key source exists but holds no bytes"""

    kind = ErrorKind.KEY_SOURCE_EMPTY


class KeyDecodeError(PkOffloadError):
    """Raised when key bytes are not a decodable private key for the scheme"""

    kind = ErrorKind.KEY_DECODE_ERROR


class SigningError(PkOffloadError):
    """Raised when the underlying cryptographic operation fails"""

    kind = ErrorKind.SIGNING_ERROR


class InvalidState(PkOffloadError):
    """Raised when an operation context is used out of order"""

    kind = ErrorKind.INVALID_ARGUMENT


class HandshakeError(PkOffloadError):
    """Raised by the handshake driver for protocol misuse"""


class ConfigError(PkOffloadError):
    """Raised when configuration cannot be loaded or validated"""

    kind = ErrorKind.INVALID_ARGUMENT


__all__ = [
    "ConfigError",
    "HandshakeError",
    "InvalidArgument",
    "InvalidState",
    "KeyDecodeError",
    "KeySourceEmpty",
    "KeySourceError",
    "KeySourceNotFound",
    "PkOffloadError",
    "SigningError",
]
