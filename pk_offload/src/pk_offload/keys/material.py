"""Decoded private-key material and its release bookkeeping."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field

from cryptography.hazmat.primitives.asymmetric import ec

from ..exceptions import SigningError
from .zeroize import wipe


@dataclass
class KeyMaterialTracker:
    """Counts decodes and releases so tests can assert nothing is left live."""

    allocated: int = 0
    released: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def on_allocate(self) -> None:
        with self._lock:
            self.allocated += 1

    def on_release(self) -> None:
        with self._lock:
            self.released += 1

    @property
    def outstanding(self) -> int:
        return self.allocated - self.released


class KeyMaterial:
    """Structured EC private key plus the DER bytes it was decoded from.

    Instances are exclusively owned by the signing attempt that decoded them
    and must be released before that attempt returns. ``release`` is
    idempotent; touching the key afterwards raises :class:`SigningError`.
    """

    __slots__ = ("_key", "_der", "_curve", "_tracker")

    def __init__(
        self,
        key: ec.EllipticCurvePrivateKey,
        der: bytearray,
        *,
        tracker: KeyMaterialTracker | None = None,
    ) -> None:
        self._key: ec.EllipticCurvePrivateKey | None = key
        self._der: bytearray | None = der
        self._curve = key.curve.name
        self._tracker = tracker
        if tracker is not None:
            tracker.on_allocate()

    @property
    def curve(self) -> str:
        return self._curve

    @property
    def key_size(self) -> int:
        return self.private_key.curve.key_size

    @property
    def private_key(self) -> ec.EllipticCurvePrivateKey:
        if self._key is None:
            raise SigningError("Key material used after release")
        return self._key

    @property
    def released(self) -> bool:
        return self._key is None

    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self.private_key.public_key()

    def release(self) -> None:
        if self._key is None:
            return
        wipe(self._der)
        self._der = None
        self._key = None
        if self._tracker is not None:
            self._tracker.on_release()

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"KeyMaterial(curve={self._curve!r}, {state})"


__all__ = ["KeyMaterial", "KeyMaterialTracker"]
