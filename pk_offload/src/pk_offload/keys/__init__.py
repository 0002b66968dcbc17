"""Key-material loading and lifecycle."""
from .generate import EccKeyPair, write_key_files
from .loader import acquire, decode, load_encoded, load_public_key, pem_to_der, probe
from .material import KeyMaterial, KeyMaterialTracker
from .zeroize import is_wiped, wipe

__all__ = [
    "EccKeyPair",
    "KeyMaterial",
    "KeyMaterialTracker",
    "acquire",
    "decode",
    "is_wiped",
    "load_encoded",
    "load_public_key",
    "pem_to_der",
    "probe",
    "wipe",
    "write_key_files",
]
