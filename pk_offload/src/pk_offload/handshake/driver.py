"""Stand-in for the TLS engine's signature step.

The driver owns no cryptography of its own. It derives the transcript
digest, hands it to the registered signing callback together with the
connection's :class:`OperationContext`, and maps the three outcomes onto
handshake progress: ``Pending`` becomes a want-retry signal with no other
progress made, ``Completed`` finishes the handshake, ``Failed`` is fatal for
the connection.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

import structlog
from cryptography.hazmat.primitives.asymmetric import ec

from ..exceptions import HandshakeError, InvalidState
from ..models import Completed, ErrorKind, Failed, Outcome, Pending, SignatureFormat
from ..provider.base import SigningOperationProvider
from ..provider.context import OperationContext
from ..provider.ecc import verify_signature
from .connection import Connection

logger = structlog.get_logger(__name__)


class HandshakeStatus(str, Enum):
    WANT_RETRY = "WANT_RETRY"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


@dataclass(slots=True)
class HandshakeResult:
    status: HandshakeStatus
    outcome: Outcome
    polls: int

    @property
    def signature(self) -> Optional[bytes]:
        if isinstance(self.outcome, Completed):
            return self.outcome.signature
        return None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        if isinstance(self.outcome, Failed):
            return self.outcome.kind
        return None


class HandshakeDriver:
    """Drive the server signature step of a handshake one pass at a time."""

    def __init__(
        self,
        *,
        key_ref: Union[Path, str, None] = None,
        verify_key: ec.EllipticCurvePublicKey | None = None,
        signature_format: SignatureFormat | str = SignatureFormat.DER,
        capacity: Optional[int] = None,
    ) -> None:
        self.key_ref = key_ref
        self.verify_key = verify_key
        self.signature_format = SignatureFormat(signature_format)
        self.capacity = capacity
        self._provider: SigningOperationProvider | None = None
        self._contexts: Dict[str, OperationContext] = {}
        self._owners: Dict[int, str] = {}

    @property
    def provider(self) -> SigningOperationProvider | None:
        return self._provider

    def register_signing_callback(self, provider: SigningOperationProvider) -> None:
        self._provider = provider

    def set_operation_context(self, connection: Connection, context: OperationContext) -> None:
        owner = self._owners.get(id(context))
        if owner is not None and owner != connection.connection_id:
            raise InvalidState(f"Operation context already bound to connection {owner}")
        previous = self._contexts.get(connection.connection_id)
        if previous is not None and previous is not context:
            self._owners.pop(id(previous), None)
        if context.connection_id is None:
            context.connection_id = connection.connection_id
        self._contexts[connection.connection_id] = context
        self._owners[id(context)] = connection.connection_id

    def context_for(self, connection: Connection) -> OperationContext:
        try:
            return self._contexts[connection.connection_id]
        except KeyError:
            raise HandshakeError(
                f"No operation context set for connection {connection.connection_id}"
            ) from None

    def signature_step(self, connection: Connection) -> Outcome:
        if self._provider is None:
            raise HandshakeError("No signing callback registered")
        context = self.context_for(connection)
        digest = connection.transcript_digest()
        return self._provider.sign(digest, self.key_ref, context, capacity=self.capacity)

    def accept(self, connection: Connection) -> HandshakeResult:
        """Run one pass of the signature step for ``connection``."""

        if connection.completed:
            raise HandshakeError(f"Handshake already finished for {connection.connection_id}")
        outcome = self.signature_step(connection)
        connection.polls += 1
        log = logger.bind(connection=connection.connection_id, polls=connection.polls)

        if isinstance(outcome, Pending):
            log.debug("handshake.want_retry")
            return HandshakeResult(HandshakeStatus.WANT_RETRY, outcome, connection.polls)

        connection.completed = True
        if isinstance(outcome, Completed) and self.verify_key is not None:
            if not verify_signature(
                self.verify_key,
                connection.transcript_digest(),
                outcome.signature,
                self.signature_format,
            ):
                outcome = Failed(ErrorKind.SIGNING_ERROR, "Signature does not verify under the server key")

        if isinstance(outcome, Completed):
            log.info("handshake.complete", curve=outcome.curve)
            return HandshakeResult(HandshakeStatus.COMPLETE, outcome, connection.polls)
        log.warning("handshake.failed", kind=outcome.kind.value, detail=outcome.detail)
        return HandshakeResult(HandshakeStatus.FAILED, outcome, connection.polls)

    def abort(self, connection: Connection) -> bool:
        context = self._contexts.get(connection.connection_id)
        if context is None:
            return False
        if self._provider is not None:
            return self._provider.abort(context)
        return context.abort()

    def release_connection(self, connection: Connection) -> None:
        """Forget ``connection``, discarding any signing work still in flight."""

        context = self._contexts.get(connection.connection_id)
        if context is None:
            return
        if not context.is_idle:
            self.abort(connection)
        self._contexts.pop(connection.connection_id, None)
        self._owners.pop(id(context), None)
        if context.connection_id == connection.connection_id:
            context.connection_id = None


__all__ = ["HandshakeDriver", "HandshakeResult", "HandshakeStatus"]
