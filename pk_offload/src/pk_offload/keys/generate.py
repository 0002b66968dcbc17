# Generate EC server keys for demos and tests.
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..exceptions import InvalidArgument

CURVES: Dict[str, type[ec.EllipticCurve]] = {
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
}


def curve_by_name(name: str) -> ec.EllipticCurve:
    try:
        return CURVES[name.lower()]()
    except KeyError:
        raise InvalidArgument(f"Unsupported curve {name!r}; pick one of {', '.join(CURVES)}") from None


class EccKeyPair:
    def __init__(self, private: ec.EllipticCurvePrivateKey):
        self._priv = private
        self._pub = private.public_key()

    @staticmethod
    def generate(curve: str = "secp256r1") -> "EccKeyPair":
        return EccKeyPair(ec.generate_private_key(curve_by_name(curve)))

    @property
    def curve(self) -> str:
        return self._priv.curve.name

    def public_pem(self) -> bytes:
        return self._pub.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def private_pem(self, *, traditional: bool = False) -> bytes:
        # SEC1 "EC PRIVATE KEY" matches what OpenSSL's ecparam emits
        fmt = serialization.PrivateFormat.TraditionalOpenSSL if traditional else serialization.PrivateFormat.PKCS8
        return self._priv.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=fmt,
            encryption_algorithm=serialization.NoEncryption(),
        )


def write_key_files(
    key_path: Path,
    public_path: Path,
    *,
    curve: str = "secp256r1",
    traditional: bool = False,
    overwrite: bool = False,
) -> Tuple[Path, Path]:
    """Write a fresh private key (mode 0600) and its public key."""

    if key_path.exists() and not overwrite:
        raise InvalidArgument(f"Refusing to overwrite existing key {key_path}")
    pair = EccKeyPair.generate(curve)
    key_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(pair.private_pem(traditional=traditional))
    public_path.parent.mkdir(parents=True, exist_ok=True)
    public_path.write_bytes(pair.public_pem())
    return key_path, public_path


__all__ = ["CURVES", "EccKeyPair", "curve_by_name", "write_key_files"]
