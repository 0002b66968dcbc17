"""Thin asyncio accept loop that runs each connection's handshake through the signing callback."""
from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Optional, Type, TypeVar

import structlog
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, ValidationError

from ..config import AppConfig
from ..handshake import (
    Connection,
    HandshakeDriver,
    HandshakeStatus,
    drive_handshake_async,
)
from ..models import Completed
from ..provider import EccSigningProvider, OperationContext, SigningOperationProvider
from .messages import CLIENT_MESSAGES, Alert, ApplicationData, ClientHello, ServerFinished

logger = structlog.get_logger(__name__)

_M = TypeVar("_M", bound=BaseModel)

_SHUTDOWN_COMMAND = "shutdown"


class ConnectionClosed(RuntimeError):
    """Raised when the peer goes away mid-exchange."""


class ProtocolViolation(RuntimeError):
    """Raised when the peer sends something other than the expected message."""


@dataclass(eq=False)
class LineConnection:
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    async def receive(self, timeout: float) -> str:
        try:
            data = await asyncio.wait_for(self.reader.readline(), timeout=timeout)
        except ValueError as exc:
            # readline reports a line longer than the stream limit as ValueError
            raise ProtocolViolation("Message exceeds the line limit") from exc
        if not data:
            raise ConnectionClosed("socket closed")
        try:
            return data.decode("utf-8").rstrip("\r\n")
        except UnicodeDecodeError as exc:
            raise ProtocolViolation("Message is not valid UTF-8") from exc

    async def send(self, message: BaseModel) -> None:
        self.writer.write(message.model_dump_json().encode("utf-8") + b"\n")
        await self.writer.drain()

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionResetError:  # pragma: no cover - race condition
            pass


def build_provider(config: AppConfig) -> EccSigningProvider:
    return EccSigningProvider(
        simulate_async=config.signing.simulate_async,
        signature_format=config.signing.signature_format,
        deterministic=config.signing.deterministic,
    )


class OffloadServer:
    """Accept clients, complete one handshake each, echo one message, repeat."""

    def __init__(
        self,
        config: AppConfig,
        *,
        provider: SigningOperationProvider | None = None,
        verify_key: ec.EllipticCurvePublicKey | None = None,
    ) -> None:
        self.config = config
        self._provider = provider or build_provider(config)
        self._driver = HandshakeDriver(
            key_ref=config.signing.key_file,
            verify_key=verify_key,
            signature_format=config.signing.signature_format,
        )
        self._driver.register_signing_callback(self._provider)
        self._policy = config.retry.policy()
        self._shutdown = asyncio.Event()
        self._server: Optional[asyncio.Server] = None
        self.handshakes_completed = 0
        self.handshakes_failed = 0

    @property
    def driver(self) -> HandshakeDriver:
        return self._driver

    @property
    def port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self.config.server.port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> int:
        self._server = await asyncio.start_server(
            self._handle_client,
            host=self.config.server.host,
            port=self.config.server.port,
            reuse_address=True,
            limit=self.config.server.max_line_bytes,
        )
        logger.info("server.start", host=self.config.server.host, port=self.port)
        return self.port

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        logger.info("server.waiting")
        await self._shutdown.wait()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
        logger.info("server.stop")

    async def stop(self) -> None:
        self._shutdown.set()

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        line = LineConnection(reader, writer)
        peer = writer.get_extra_info("peername")
        logger.info("server.connection.opened", peer=str(peer))
        try:
            await self._serve_connection(line)
        except ConnectionClosed:
            logger.info("server.connection.dropped", peer=str(peer))
        except asyncio.TimeoutError:
            logger.warning("server.connection.timeout", peer=str(peer))
            await self._send_alert(line, "TIMEOUT", "No message within the read timeout")
        except ProtocolViolation as exc:
            logger.warning("server.protocol_error", peer=str(peer), error=str(exc))
            await self._send_alert(line, "PROTOCOL_ERROR", str(exc))
        finally:
            await line.close()
            logger.info("server.connection.closed", peer=str(peer))

    async def _serve_connection(self, line: LineConnection) -> None:
        hello = await self._expect(line, ClientHello)
        connection = Connection(transcript=hello.transcript_bytes())
        context = OperationContext(
            key_source=self.config.signing.key_file,
            connection_id=connection.connection_id,
        )
        self._driver.set_operation_context(connection, context)
        try:
            result = await drive_handshake_async(self._driver, connection, self._policy)
        finally:
            self._driver.release_connection(connection)

        if result.status is not HandshakeStatus.COMPLETE or not isinstance(result.outcome, Completed):
            self.handshakes_failed += 1
            kind = result.error_kind.value if result.error_kind else "HANDSHAKE_FAILED"
            detail = getattr(result.outcome, "detail", None)
            logger.error("server.accept_error", connection=connection.connection_id, kind=kind)
            await line.send(Alert(kind=kind, detail=detail))
            return

        self.handshakes_completed += 1
        logger.info("server.client_connected", connection=connection.connection_id)
        await line.send(
            ServerFinished(
                connection=connection.connection_id,
                curve=result.outcome.curve,
                signature=base64.b64encode(result.outcome.signature).decode("ascii"),
                pending_cycles=result.polls - 1,
            )
        )

        message = await self._expect(line, ApplicationData)
        if len(message.text.encode("utf-8")) > self.config.server.max_message_bytes:
            raise ProtocolViolation(
                f"Message exceeds {self.config.server.max_message_bytes} bytes"
            )
        logger.info("server.client_message", connection=connection.connection_id, text=message.text)
        await line.send(ApplicationData(text=self.config.server.reply))

        if message.text.startswith(_SHUTDOWN_COMMAND):
            logger.info("server.shutdown_requested", connection=connection.connection_id)
            await self.stop()

    async def _expect(self, line: LineConnection, model: Type[_M]) -> _M:
        raw = await line.receive(self.config.server.read_timeout)
        try:
            message = CLIENT_MESSAGES.validate_json(raw)
        except ValidationError as exc:
            raise ProtocolViolation(f"Malformed message: {exc.error_count()} error(s)") from exc
        if not isinstance(message, model):
            raise ProtocolViolation(f"Expected {model.__name__}, got {type(message).__name__}")
        return message

    async def _send_alert(self, line: LineConnection, kind: str, detail: str) -> None:
        try:
            await line.send(Alert(kind=kind, detail=detail))
        except (ConnectionError, RuntimeError):
            logger.debug("server.alert_not_sent", kind=kind)


async def run_server(config: AppConfig, *, verify_key: ec.EllipticCurvePublicKey | None = None) -> None:
    server = OffloadServer(config, verify_key=verify_key)
    await server.serve_forever()


__all__ = ["ConnectionClosed", "LineConnection", "OffloadServer", "ProtocolViolation", "build_provider", "run_server"]
