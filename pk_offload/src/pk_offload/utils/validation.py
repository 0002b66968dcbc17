"""Validation helpers for operator-supplied inputs."""
from __future__ import annotations

import binascii
import ipaddress

_LOCAL_HOST_ALIASES = {"localhost"}


def ensure_loopback_host(host: str) -> str:
    """Ensure the provided host string refers to a loopback interface.

    The demonstration server has no business listening on public addresses.

    Raises
    ------
    ValueError
        If ``host`` is empty or not a loopback address or alias.
    """

    host = host.strip()
    if not host:
        raise ValueError("Host must not be empty")
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        alias = host.lower()
        if alias in _LOCAL_HOST_ALIASES:
            return alias
        raise ValueError(f"Host '{host}' must resolve to localhost or loopback") from None
    if not address.is_loopback:
        raise ValueError(f"Host '{host}' must be a loopback address")
    return host


def parse_hex_digest(value: str) -> bytes:
    """Decode a hex digest, tolerating ``:`` separators and surrounding space."""

    cleaned = value.strip().replace(":", "").replace(" ", "")
    if not cleaned:
        raise ValueError("Digest must not be empty")
    try:
        return binascii.unhexlify(cleaned)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Digest is not valid hex: {exc}") from None


__all__ = ["ensure_loopback_host", "parse_hex_digest"]
