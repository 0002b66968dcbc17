"""Demonstration accept loop around the handshake driver."""
from .accept import OffloadServer, build_provider, run_server
from .messages import Alert, ApplicationData, ClientHello, ServerFinished

__all__ = [
    "Alert",
    "ApplicationData",
    "ClientHello",
    "OffloadServer",
    "ServerFinished",
    "build_provider",
    "run_server",
]
