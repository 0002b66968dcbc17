"""Signing operation providers and their per-connection context."""
from .base import SigningOperationProvider
from .context import OperationContext
from .ecc import EccSigningProvider, hash_for_digest, max_signature_size, verify_signature

__all__ = [
    "EccSigningProvider",
    "OperationContext",
    "SigningOperationProvider",
    "hash_for_digest",
    "max_signature_size",
    "verify_signature",
]
