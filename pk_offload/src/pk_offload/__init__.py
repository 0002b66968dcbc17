"""Asynchronous private-key signing offload for a TLS server's handshake."""
from .exceptions import (
    InvalidArgument,
    KeyDecodeError,
    KeySourceEmpty,
    KeySourceNotFound,
    PkOffloadError,
    SigningError,
)
from .handshake import Connection, HandshakeDriver, HandshakeStatus, RetryPolicy, drive_handshake
from .keys import KeyMaterial, KeyMaterialTracker
from .models import PENDING, Completed, ErrorKind, Failed, OperationState, Outcome, Pending
from .provider import EccSigningProvider, OperationContext, SigningOperationProvider
from .version import __version__

__all__ = [
    "Completed",
    "Connection",
    "EccSigningProvider",
    "ErrorKind",
    "Failed",
    "HandshakeDriver",
    "HandshakeStatus",
    "InvalidArgument",
    "KeyDecodeError",
    "KeyMaterial",
    "KeyMaterialTracker",
    "KeySourceEmpty",
    "KeySourceNotFound",
    "OperationContext",
    "OperationState",
    "Outcome",
    "PENDING",
    "Pending",
    "PkOffloadError",
    "RetryPolicy",
    "SigningError",
    "SigningOperationProvider",
    "__version__",
    "drive_handshake",
]
