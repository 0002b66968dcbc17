"""Configuration loading utilities for PK Offload."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError
from .handshake.retry import RetryPolicy
from .models import SignatureFormat
from .paths import default_key_file, runtime_config_dir
from .utils.validation import ensure_loopback_host

_KEY_FILE_ENV = "PKO_KEY_FILE"


class SigningConfig(BaseModel):
    key_file: Path = Field(default_factory=default_key_file, description="PEM private key for the server")
    simulate_async: bool = Field(default=True, description="Report one Pending cycle before signing")
    signature_format: SignatureFormat = Field(default=SignatureFormat.DER)
    deterministic: bool = Field(default=False, description="RFC 6979 nonces instead of random ones")

    @field_validator("key_file")
    @classmethod
    def _expand_key_file(cls, value: Path) -> Path:
        return Path(value).expanduser()


class RetryConfig(BaseModel):
    max_polls: Optional[int] = Field(default=None, ge=1)
    timeout: Optional[float] = Field(default=None, ge=0)
    poll_interval: float = Field(default=0.0, ge=0)

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_polls=self.max_polls,
            timeout=self.timeout,
            poll_interval=self.poll_interval,
        )


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=11111, ge=0, le=65535)
    reply: str = Field(default="I hear ya fa shizzle!\n")
    max_message_bytes: int = Field(default=256, ge=1)
    max_line_bytes: int = Field(default=16384, ge=256, description="Longest JSON line accepted from a client")
    read_timeout: float = Field(default=15.0, gt=0)

    @field_validator("host")
    @classmethod
    def _validate_host(cls, value: str) -> str:
        return ensure_loopback_host(value)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Logging verbosity level")

    def normalized_level(self) -> str:
        return self.level.upper()


class AppConfig(BaseModel):
    signing: SigningConfig = Field(default_factory=SigningConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def config_search_paths(explicit: Optional[Path] = None) -> Iterable[Path]:
    if explicit:
        yield explicit
    yield Path.cwd() / ".pko" / "config.yaml"
    yield runtime_config_dir() / "config.yaml"


def _apply_env(config: AppConfig) -> AppConfig:
    override = os.getenv(_KEY_FILE_ENV)
    if override:
        config.signing.key_file = Path(override).expanduser()
    return config


def load_config(path: Optional[Path] = None) -> AppConfig:
    if path is not None and not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")
    for candidate in config_search_paths(path):
        if candidate.is_file():
            with candidate.open("r", encoding="utf-8") as handle:
                try:
                    data = yaml.safe_load(handle) or {}
                except yaml.YAMLError as exc:
                    raise ConfigError(f"Invalid YAML in {candidate}: {exc}") from exc
            try:
                return _apply_env(AppConfig.model_validate(data))
            except ValidationError as exc:
                raise ConfigError(f"Invalid configuration in {candidate}: {exc}") from exc
    return _apply_env(AppConfig())


def dump_default_config(target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(AppConfig().model_dump(mode="json"), handle, sort_keys=False)


__all__ = [
    "AppConfig",
    "LoggingConfig",
    "RetryConfig",
    "ServerConfig",
    "SigningConfig",
    "dump_default_config",
    "load_config",
]
