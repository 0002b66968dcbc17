"""Per-connection state tracked across repeated signing invocations."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from ..exceptions import InvalidState
from ..keys.material import KeyMaterial
from ..models import OperationState


@dataclass(eq=False)
class OperationContext:
    """Mutable state for one in-flight signing request.

    Created once per connection, mutated only by the signing provider, and
    returned to ``IDLE`` after every terminal outcome so it can be reused for
    the next request on a new connection.
    """

    key_source: Union[Path, str, None] = None
    connection_id: Optional[str] = None
    state: OperationState = OperationState.IDLE
    attempts: int = 0
    submitted_at: Optional[float] = None
    fingerprint: Optional[str] = field(default=None, repr=False)
    key_handle: Optional[KeyMaterial] = field(default=None, repr=False)

    @property
    def is_idle(self) -> bool:
        return self.state is OperationState.IDLE

    @property
    def is_pending(self) -> bool:
        return self.state is OperationState.SUBMITTED

    def record_attempt(self) -> int:
        self.attempts += 1
        return self.attempts

    def submit(self, fingerprint: Optional[str] = None) -> None:
        if self.state is not OperationState.IDLE:
            raise InvalidState(f"Context already in state {self.state.value}")
        self.state = OperationState.SUBMITTED
        self.fingerprint = fingerprint
        self.submitted_at = time.monotonic()

    def elapsed(self) -> float:
        if self.submitted_at is None:
            return 0.0
        return time.monotonic() - self.submitted_at

    def reset(self) -> None:
        if self.key_handle is not None:
            self.key_handle.release()
            self.key_handle = None
        self.state = OperationState.IDLE
        self.attempts = 0
        self.submitted_at = None
        self.fingerprint = None

    def abort(self) -> bool:
        """Discard any in-flight work. Returns ``True`` if something was pending."""

        was_pending = self.is_pending or self.key_handle is not None
        self.reset()
        return was_pending


__all__ = ["OperationContext"]
