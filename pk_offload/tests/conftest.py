from __future__ import annotations

from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from pk_offload.keys import KeyMaterialTracker
from pk_offload.provider import EccSigningProvider, OperationContext


def write_ec_key(
    path: Path,
    curve: ec.EllipticCurve | None = None,
    *,
    fmt: serialization.PrivateFormat = serialization.PrivateFormat.PKCS8,
    encoding: serialization.Encoding = serialization.Encoding.PEM,
) -> ec.EllipticCurvePrivateKey:
    key = ec.generate_private_key(curve or ec.SECP256R1())
    path.write_bytes(
        key.private_bytes(
            encoding=encoding,
            format=fmt,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return key


@pytest.fixture
def ec_key(tmp_path: Path) -> tuple[Path, ec.EllipticCurvePrivateKey]:
    path = tmp_path / "ecc-key.pem"
    key = write_ec_key(path)
    return path, key


@pytest.fixture
def key_file(ec_key: tuple[Path, ec.EllipticCurvePrivateKey]) -> Path:
    return ec_key[0]


@pytest.fixture
def public_key(ec_key: tuple[Path, ec.EllipticCurvePrivateKey]) -> ec.EllipticCurvePublicKey:
    return ec_key[1].public_key()


@pytest.fixture
def tracker() -> KeyMaterialTracker:
    return KeyMaterialTracker()


@pytest.fixture
def provider(tracker: KeyMaterialTracker) -> EccSigningProvider:
    return EccSigningProvider(simulate_async=True, tracker=tracker)


@pytest.fixture
def sync_provider(tracker: KeyMaterialTracker) -> EccSigningProvider:
    return EccSigningProvider(simulate_async=False, tracker=tracker)


@pytest.fixture
def context(key_file: Path) -> OperationContext:
    return OperationContext(key_source=key_file, connection_id="test-conn")


@pytest.fixture
def make_key():
    return write_ec_key
