"""Signing provider interface consumed by the handshake driver."""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from ..models import Outcome
from .context import OperationContext


class SigningOperationProvider(ABC):
    """Pluggable private-key signer that may report work as still in progress.

    ``sign`` never blocks on the external unit: it returns ``Pending`` and the
    caller re-invokes it with the same context and digest until a terminal
    ``Completed`` or ``Failed`` arrives. Providers never retry on their own.
    """

    @abstractmethod
    def sign(
        self,
        digest: bytes,
        key_ref: Union[Path, str, None],
        context: OperationContext,
        *,
        capacity: Optional[int] = None,
    ) -> Outcome:  # pragma: no cover - interface
        ...

    def abort(self, context: OperationContext) -> bool:
        """Cancel whatever ``context`` has in flight and return it to idle."""

        return context.abort()

    def __call__(
        self,
        digest: bytes,
        key_ref: Union[Path, str, None],
        context: OperationContext,
        *,
        capacity: Optional[int] = None,
    ) -> Outcome:
        return self.sign(digest, key_ref, context, capacity=capacity)


__all__ = ["SigningOperationProvider"]
