"""Connection state the handshake driver keeps per peer."""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass, field
from typing import Optional


def _new_connection_id() -> str:
    return secrets.token_hex(6)


@dataclass(eq=False)
class Connection:
    """A peer mid-handshake.

    The transcript digest is derived once and cached, so re-invoking the
    signature step after ``Pending`` signs exactly the same bytes.
    """

    transcript: bytes
    connection_id: str = field(default_factory=_new_connection_id)
    digest_algorithm: str = "sha256"
    polls: int = 0
    completed: bool = False
    derivations: int = 0
    _digest: Optional[bytes] = field(default=None, repr=False)

    def transcript_digest(self) -> bytes:
        if self._digest is None:
            self._digest = hashlib.new(self.digest_algorithm, self.transcript).digest()
            self.derivations += 1
        return self._digest


__all__ = ["Connection"]
