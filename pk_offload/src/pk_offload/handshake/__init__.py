"""Handshake-side consumer of the signing callback and its retry loop."""
from .connection import Connection
from .driver import HandshakeDriver, HandshakeResult, HandshakeStatus
from .retry import RetryPolicy, drive_handshake, drive_handshake_async

__all__ = [
    "Connection",
    "HandshakeDriver",
    "HandshakeResult",
    "HandshakeStatus",
    "RetryPolicy",
    "drive_handshake",
    "drive_handshake_async",
]
