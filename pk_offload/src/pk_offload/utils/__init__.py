"""Utility exports."""
from .validation import ensure_loopback_host, parse_hex_digest

__all__ = ["ensure_loopback_host", "parse_hex_digest"]
