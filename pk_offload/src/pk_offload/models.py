"""Shared domain models used across PK Offload."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    KEY_SOURCE_NOT_FOUND = "KEY_SOURCE_NOT_FOUND"
    KEY_SOURCE_EMPTY = "KEY_SOURCE_EMPTY"
    KEY_DECODE_ERROR = "KEY_DECODE_ERROR"
    SIGNING_ERROR = "SIGNING_ERROR"
    TIMEOUT = "TIMEOUT"
    ABORTED = "ABORTED"


class OperationState(str, Enum):
    IDLE = "IDLE"
    SUBMITTED = "SUBMITTED"


class SignatureFormat(str, Enum):
    DER = "der"
    RAW = "raw"


@dataclass(frozen=True, slots=True)
class SignatureRequest:
    """One invocation's worth of signing input, rebuilt by the caller each time."""

    digest: bytes
    key_ref: Union[Path, str, None]
    capacity: Optional[int] = None

    @property
    def digest_length(self) -> int:
        return len(self.digest)


@dataclass(frozen=True, slots=True)
class Completed:
    signature: bytes
    curve: str

    @property
    def signature_length(self) -> int:
        return len(self.signature)

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Pending:
    @property
    def is_terminal(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Failed:
    kind: ErrorKind
    detail: str = ""

    @property
    def is_terminal(self) -> bool:
        return True


Outcome = Union[Completed, Pending, Failed]

PENDING = Pending()


__all__ = [
    "Completed",
    "ErrorKind",
    "Failed",
    "OperationState",
    "Outcome",
    "PENDING",
    "Pending",
    "SignatureFormat",
    "SignatureRequest",
]
