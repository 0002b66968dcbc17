"""ECDSA signing provider that simulates an asynchronous execution unit.

With simulation enabled the first call for a request only submits the work
and reports ``Pending``; the next call with the same context performs the
real signature. Key material is loaded, used and released inside that one
call, so nothing decoded survives between invocations.
"""
from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Dict, Optional, Union

import structlog
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)

from ..exceptions import InvalidArgument, PkOffloadError, SigningError
from ..keys.loader import acquire, probe
from ..keys.material import KeyMaterial, KeyMaterialTracker
from ..models import (
    PENDING,
    Completed,
    ErrorKind,
    Failed,
    Outcome,
    SignatureFormat,
    SignatureRequest,
)
from .base import SigningOperationProvider
from .context import OperationContext

logger = structlog.get_logger(__name__)

_DIGEST_ALGORITHMS: Dict[int, type[hashes.HashAlgorithm]] = {
    20: hashes.SHA1,
    28: hashes.SHA224,
    32: hashes.SHA256,
    48: hashes.SHA384,
    64: hashes.SHA512,
}


def hash_for_digest(length: int) -> hashes.HashAlgorithm:
    """Return the hash algorithm whose output size matches ``length`` bytes."""

    try:
        return _DIGEST_ALGORITHMS[length]()
    except KeyError:
        sizes = ", ".join(str(size) for size in sorted(_DIGEST_ALGORITHMS))
        raise InvalidArgument(f"Digest length {length} is not one of {sizes}") from None


def max_signature_size(key_size: int, signature_format: SignatureFormat | str = SignatureFormat.DER) -> int:
    """Largest signature a curve of ``key_size`` bits can produce.

    DER is ``SEQUENCE { INTEGER r, INTEGER s }`` where each integer may need a
    leading zero byte; raw is the fixed-width ``r || s`` concatenation.
    """

    width = (key_size + 7) // 8
    if SignatureFormat(signature_format) is SignatureFormat.RAW:
        return 2 * width
    integer = 2 + width + 1
    content = 2 * integer
    header = 2 if content < 0x80 else 3
    return content + header


def verify_signature(
    public_key: ec.EllipticCurvePublicKey,
    digest: bytes,
    signature: bytes,
    signature_format: SignatureFormat | str = SignatureFormat.DER,
) -> bool:
    if SignatureFormat(signature_format) is SignatureFormat.RAW:
        width = len(signature) // 2
        if not signature or len(signature) % 2:
            return False
        r = int.from_bytes(signature[:width], "big")
        s = int.from_bytes(signature[width:], "big")
        signature = encode_dss_signature(r, s)
    try:
        public_key.verify(signature, digest, ec.ECDSA(Prehashed(hash_for_digest(len(digest)))))
    except (InvalidSignature, ValueError):
        return False
    return True


def _build_request(
    digest: object,
    key_ref: Union[Path, str, None],
    context: OperationContext,
    capacity: Optional[int],
) -> SignatureRequest:
    if not isinstance(digest, (bytes, bytearray, memoryview)):
        raise InvalidArgument(f"Digest must be bytes, got {type(digest).__name__}")
    return SignatureRequest(
        digest=bytes(digest),
        key_ref=key_ref if key_ref is not None else context.key_source,
        capacity=capacity,
    )


def _fingerprint(request: SignatureRequest) -> str:
    digest = hashlib.sha256(request.digest)
    digest.update(os.fsencode(request.key_ref))
    return digest.hexdigest()


class EccSigningProvider(SigningOperationProvider):
    """ECDSA over a precomputed digest with one simulated unit of latency."""

    def __init__(
        self,
        *,
        simulate_async: bool = True,
        signature_format: SignatureFormat | str = SignatureFormat.DER,
        deterministic: bool = False,
        scheme: str = "ecc",
        password: bytes | None = None,
        tracker: KeyMaterialTracker | None = None,
    ) -> None:
        self.simulate_async = simulate_async
        self.signature_format = SignatureFormat(signature_format)
        self.deterministic = deterministic
        self.scheme = scheme
        self._password = password
        self.tracker = tracker or KeyMaterialTracker()

    def sign(
        self,
        digest: bytes,
        key_ref: Union[Path, str, None],
        context: OperationContext,
        *,
        capacity: Optional[int] = None,
    ) -> Outcome:
        if context is None:
            return Failed(ErrorKind.INVALID_ARGUMENT, "Operation context is required")

        attempt = context.record_attempt()
        log = logger.bind(connection=context.connection_id, attempt=attempt, state=context.state.value)
        submitted = False
        outcome: Outcome
        try:
            request = _build_request(digest, key_ref, context, capacity)
            log = log.bind(digest_len=request.digest_length)
            log.debug("pk.sign.invoked")
            self._validate(request)
            if context.is_pending:
                if context.fingerprint != _fingerprint(request):
                    raise InvalidArgument("Retry does not match the submitted request")
            elif self.simulate_async:
                probe(request.key_ref)
                context.submit(_fingerprint(request))
                submitted = True
                log.info("pk.sign.pending")
                return PENDING
            outcome = self._complete(request, context)
        except PkOffloadError as exc:
            outcome = Failed(exc.kind, str(exc))
        except Exception as exc:
            log.exception("pk.sign.unexpected_error")
            outcome = Failed(ErrorKind.SIGNING_ERROR, f"Unexpected {type(exc).__name__}: {exc}")
        finally:
            if not submitted:
                context.reset()

        if isinstance(outcome, Completed):
            log.info("pk.sign.completed", curve=outcome.curve, sig_len=outcome.signature_length)
        else:
            log.warning("pk.sign.failed", kind=outcome.kind.value, detail=outcome.detail)
        return outcome

    def abort(self, context: OperationContext) -> bool:
        aborted = super().abort(context)
        if aborted:
            logger.info("pk.sign.aborted", connection=context.connection_id)
        return aborted

    def _validate(self, request: SignatureRequest) -> None:
        if not request.digest:
            raise InvalidArgument("Digest must not be empty")
        hash_for_digest(request.digest_length)
        if request.key_ref is None or (isinstance(request.key_ref, str) and not request.key_ref.strip()):
            raise InvalidArgument("Key reference is required")
        if request.capacity is not None and request.capacity <= 0:
            raise InvalidArgument("Output capacity must be positive")

    def _complete(self, request: SignatureRequest, context: OperationContext) -> Completed:
        with acquire(
            request.key_ref,
            self.scheme,
            password=self._password,
            tracker=self.tracker,
        ) as material:
            context.key_handle = material
            try:
                signature = self._sign_with(material, request)
            finally:
                context.key_handle = None
            return Completed(signature=signature, curve=material.curve)

    def _sign_with(self, material: KeyMaterial, request: SignatureRequest) -> bytes:
        limit = max_signature_size(material.key_size, self.signature_format)
        if request.capacity is not None and request.capacity < limit:
            raise InvalidArgument(
                f"Output capacity {request.capacity} is below the {limit} bytes {material.curve} needs"
            )
        try:
            prehashed = Prehashed(hash_for_digest(request.digest_length))
            algorithm = ec.ECDSA(prehashed, deterministic_signing=self.deterministic)
            der = material.private_key.sign(request.digest, algorithm)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningError(f"ECDSA signing failed: {exc}") from exc

        if self.signature_format is SignatureFormat.RAW:
            width = (material.key_size + 7) // 8
            r, s = decode_dss_signature(der)
            return r.to_bytes(width, "big") + s.to_bytes(width, "big")
        return der


__all__ = ["EccSigningProvider", "hash_for_digest", "max_signature_size", "verify_signature"]
