"""Best-effort wiping of secret buffers.

Only mutable buffers can be cleared in place. ``bytes`` objects are immutable,
so key encodings are always read into a ``bytearray`` and handed around as
such until they are wiped.
"""
from __future__ import annotations

from typing import Union

Wipeable = Union[bytearray, memoryview]


def wipe(buffer: Wipeable | None) -> None:
    if buffer is None:
        return
    if isinstance(buffer, memoryview):
        if buffer.readonly:
            return
        buffer[:] = b"\x00" * buffer.nbytes
        return
    buffer[:] = b"\x00" * len(buffer)


def is_wiped(buffer: Wipeable) -> bool:
    return not any(bytes(buffer))


__all__ = ["Wipeable", "is_wiped", "wipe"]
