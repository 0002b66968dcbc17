"""Poll loops that re-run the signature step until it reaches a terminal outcome."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from ..models import ErrorKind, Failed
from .connection import Connection
from .driver import HandshakeDriver, HandshakeResult, HandshakeStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds on how long a connection may stay blocked on a pending signature.

    ``None`` for both limits means poll until the provider resolves.
    """

    max_polls: Optional[int] = None
    timeout: Optional[float] = None
    poll_interval: float = 0.0

    def __post_init__(self) -> None:
        if self.max_polls is not None and self.max_polls < 1:
            raise ValueError("max_polls must be at least 1")
        if self.timeout is not None and self.timeout < 0:
            raise ValueError("timeout must not be negative")
        if self.poll_interval < 0:
            raise ValueError("poll_interval must not be negative")

    def exhausted(self, polls: int, elapsed: float) -> bool:
        if self.max_polls is not None and polls >= self.max_polls:
            return True
        if self.timeout is not None and elapsed >= self.timeout:
            return True
        return False


def _timed_out(driver: HandshakeDriver, connection: Connection, result: HandshakeResult, elapsed: float) -> HandshakeResult:
    driver.abort(connection)
    connection.completed = True
    logger.warning(
        "handshake.timeout",
        connection=connection.connection_id,
        polls=result.polls,
        elapsed=round(elapsed, 6),
    )
    outcome = Failed(ErrorKind.TIMEOUT, f"Signing still pending after {result.polls} polls")
    return HandshakeResult(HandshakeStatus.FAILED, outcome, result.polls)


def drive_handshake(
    driver: HandshakeDriver,
    connection: Connection,
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> HandshakeResult:
    """Block the calling thread until the handshake completes or fails."""

    policy = policy or RetryPolicy()
    started = time.monotonic()
    while True:
        result = driver.accept(connection)
        if result.status is not HandshakeStatus.WANT_RETRY:
            return result
        elapsed = time.monotonic() - started
        if policy.exhausted(result.polls, elapsed):
            return _timed_out(driver, connection, result, elapsed)
        if policy.poll_interval:
            sleep(policy.poll_interval)


async def drive_handshake_async(
    driver: HandshakeDriver,
    connection: Connection,
    policy: RetryPolicy | None = None,
) -> HandshakeResult:
    """Event-loop variant: each pass runs in a worker thread so key reads and
    ECDSA never block the loop, and the loop yields between polls.
    """

    policy = policy or RetryPolicy()
    started = time.monotonic()
    while True:
        result = await asyncio.to_thread(driver.accept, connection)
        if result.status is not HandshakeStatus.WANT_RETRY:
            return result
        elapsed = time.monotonic() - started
        if policy.exhausted(result.polls, elapsed):
            return _timed_out(driver, connection, result, elapsed)
        await asyncio.sleep(policy.poll_interval)


__all__ = ["RetryPolicy", "drive_handshake", "drive_handshake_async"]
