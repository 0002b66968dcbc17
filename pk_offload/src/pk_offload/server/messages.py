"""Pydantic models for the demonstration server's JSON-lines exchange."""
from __future__ import annotations

import base64
import binascii
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class ClientHello(BaseModel):
    """Opens the handshake; ``transcript`` is the base64 handshake transcript."""

    type: Literal["hello"] = "hello"
    transcript: str

    model_config = ConfigDict(extra="forbid")

    @field_validator("transcript")
    @classmethod
    def _validate_transcript(cls, value: str) -> str:
        try:
            decoded = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("transcript must be base64") from exc
        if not decoded:
            raise ValueError("transcript must not be empty")
        return value

    def transcript_bytes(self) -> bytes:
        return base64.b64decode(self.transcript)

    @classmethod
    def for_transcript(cls, transcript: bytes) -> "ClientHello":
        return cls(transcript=base64.b64encode(transcript).decode("ascii"))


class ServerFinished(BaseModel):
    type: Literal["finished"] = "finished"
    connection: str
    curve: str
    signature: str
    pending_cycles: int = Field(ge=0)

    model_config = ConfigDict(extra="forbid")

    def signature_bytes(self) -> bytes:
        return base64.b64decode(self.signature)


class ApplicationData(BaseModel):
    type: Literal["data"] = "data"
    text: str

    model_config = ConfigDict(extra="forbid")


class Alert(BaseModel):
    """Fatal error; the server closes the connection after sending it."""

    type: Literal["alert"] = "alert"
    kind: str
    detail: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


ClientMessage = Annotated[Union[ClientHello, ApplicationData], Field(discriminator="type")]
ServerMessage = Annotated[Union[ServerFinished, ApplicationData, Alert], Field(discriminator="type")]

CLIENT_MESSAGES: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)
SERVER_MESSAGES: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)


__all__ = [
    "Alert",
    "ApplicationData",
    "CLIENT_MESSAGES",
    "ClientHello",
    "ClientMessage",
    "SERVER_MESSAGES",
    "ServerFinished",
    "ServerMessage",
]
