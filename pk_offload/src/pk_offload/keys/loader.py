"""Load persisted private-key encodings and decode them into key material.

Every decode is paired with a release: :func:`acquire` is the only way the
signing provider obtains key material, and it releases on all exit paths.
"""
from __future__ import annotations

import base64
import binascii
import contextlib
import os
import re
import stat
from pathlib import Path
from typing import Iterator, Union

import structlog
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..exceptions import (
    InvalidArgument,
    KeyDecodeError,
    KeySourceEmpty,
    KeySourceNotFound,
)
from .material import KeyMaterial, KeyMaterialTracker
from .zeroize import wipe

KeySource = Union[Path, str]

SUPPORTED_SCHEMES = frozenset({"ecc"})

_PEM_PRIVATE_BLOCK = re.compile(
    rb"-----BEGIN ((?:EC |ENCRYPTED )?PRIVATE KEY)-----(.*?)-----END \1-----",
    re.DOTALL,
)
_PEM_MARKER = b"-----BEGIN"

logger = structlog.get_logger(__name__)


def probe(source: KeySource | None) -> Path:
    """Check that ``source`` names a readable, non-empty file without reading it."""

    if source is None or (isinstance(source, str) and not source.strip()):
        raise InvalidArgument("Key source is required")
    path = Path(source).expanduser()
    try:
        info = path.stat()
    except OSError as exc:
        raise KeySourceNotFound(f"Key source not found: {path}") from exc
    if not stat.S_ISREG(info.st_mode):
        raise KeySourceNotFound(f"Key source is not a regular file: {path}")
    if info.st_size == 0:
        raise KeySourceEmpty(f"Key source is empty: {path}")
    if not os.access(path, os.R_OK):
        raise KeySourceNotFound(f"Key source is not readable: {path}")
    return path


def load_encoded(source: KeySource | None) -> bytearray:
    """Read the whole key source into a wipeable buffer."""

    path = probe(source)
    try:
        with path.open("rb") as handle:
            size = os.fstat(handle.fileno()).st_size
            buffer = bytearray(size)
            read = handle.readinto(buffer) or 0
    except OSError as exc:
        raise KeySourceNotFound(f"Key source could not be read: {path}") from exc
    if read == 0:
        wipe(buffer)
        raise KeySourceEmpty(f"Key source is empty: {path}")
    if read < size:
        del buffer[read:]
    return buffer


def pem_to_der(encoded: bytearray | bytes) -> bytearray:
    """Strip PEM armour from a private key block and return the DER payload."""

    match = _PEM_PRIVATE_BLOCK.search(encoded)
    if match is None:
        raise KeyDecodeError("No PEM private key block found")
    body = match.group(2)
    if b":" in body:
        raise KeyDecodeError("PEM headers (legacy encryption) are not supported")
    try:
        der = bytearray(base64.b64decode(b"".join(body.split()), validate=True))
    except (binascii.Error, ValueError) as exc:
        raise KeyDecodeError("PEM body is not valid base64") from exc
    if not der:
        raise KeyDecodeError("PEM body is empty")
    return der


def decode(
    encoded: bytearray | bytes,
    scheme: str = "ecc",
    *,
    password: bytes | None = None,
    tracker: KeyMaterialTracker | None = None,
) -> KeyMaterial:
    """Decode PEM or DER bytes into :class:`KeyMaterial` for ``scheme``.

    The returned material owns a fresh DER buffer; ``encoded`` is left for the
    caller to wipe.
    """

    if scheme not in SUPPORTED_SCHEMES:
        raise InvalidArgument(f"Unsupported signature scheme: {scheme}")
    if not encoded:
        raise KeyDecodeError("Key encoding is empty")

    der = pem_to_der(encoded) if encoded.find(_PEM_MARKER) != -1 else bytearray(encoded)
    try:
        key = serialization.load_der_private_key(bytes(der), password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        wipe(der)
        raise KeyDecodeError(f"Malformed private key encoding: {exc}") from exc
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        wipe(der)
        raise KeyDecodeError(f"Expected an elliptic-curve key, got {type(key).__name__}")
    return KeyMaterial(key, der, tracker=tracker)


@contextlib.contextmanager
def acquire(
    source: KeySource | None,
    scheme: str = "ecc",
    *,
    password: bytes | None = None,
    tracker: KeyMaterialTracker | None = None,
) -> Iterator[KeyMaterial]:
    """Load, decode and yield key material, releasing it however the block exits."""

    encoded = load_encoded(source)
    try:
        material = decode(encoded, scheme, password=password, tracker=tracker)
    finally:
        wipe(encoded)
    logger.debug("pk.key.loaded", curve=material.curve)
    try:
        yield material
    finally:
        material.release()
        logger.debug("pk.key.released", curve=material.curve)


def load_public_key(source: KeySource) -> ec.EllipticCurvePublicKey:
    """Load the server's public key from a PEM public key or certificate."""

    path = probe(source)
    data = path.read_bytes()
    try:
        if b"-----BEGIN CERTIFICATE-----" in data:
            public = x509.load_pem_x509_certificate(data).public_key()
        else:
            public = serialization.load_pem_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise KeyDecodeError(f"Malformed public key encoding: {path}") from exc
    if not isinstance(public, ec.EllipticCurvePublicKey):
        raise KeyDecodeError(f"Expected an elliptic-curve public key in {path}")
    return public


__all__ = [
    "KeySource",
    "SUPPORTED_SCHEMES",
    "acquire",
    "decode",
    "load_encoded",
    "load_public_key",
    "pem_to_der",
    "probe",
]
