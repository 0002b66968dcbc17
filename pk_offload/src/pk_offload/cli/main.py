"""Typer-based command line interface for PK Offload."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from ..config import AppConfig, dump_default_config, load_config
from ..exceptions import ConfigError, PkOffloadError
from ..handshake import Connection, HandshakeDriver, HandshakeStatus, RetryPolicy, drive_handshake
from ..keys import load_public_key, write_key_files
from ..logging import configure_logging
from ..models import Completed, SignatureFormat
from ..paths import public_key_for
from ..provider import EccSigningProvider, OperationContext
from ..utils.validation import parse_hex_digest

app = typer.Typer(help="PK Offload command line interface")


@app.callback()
def main(ctx: typer.Context, config: Optional[Path] = typer.Option(None, "--config", metavar="PATH")) -> None:
    try:
        ctx.obj = load_config(config)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)
    configure_logging(ctx.obj.logging.normalized_level())


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj


@app.command()
def keygen(
    ctx: typer.Context,
    out: Optional[Path] = typer.Option(None, "--out", help="Private key path (defaults to the configured key file)"),
    curve: str = typer.Option("secp256r1", "--curve", help="secp256r1|secp384r1|secp521r1"),
    sec1: bool = typer.Option(False, "--sec1", help="Write an 'EC PRIVATE KEY' block instead of PKCS#8"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing key"),
) -> None:
    """Create an EC key pair for the demonstration server."""
    key_path = out or _config(ctx).signing.key_file
    try:
        key_file, public_file = write_key_files(
            key_path, public_key_for(key_path), curve=curve, traditional=sec1, overwrite=force
        )
    except PkOffloadError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Private key written to {key_file}")
    typer.echo(f"Public key written to {public_file}")


@app.command()
def sign(
    ctx: typer.Context,
    digest: str = typer.Option(..., "--digest", help="Hex digest to sign"),
    key: Optional[Path] = typer.Option(None, "--key", help="PEM private key (defaults to config)"),
    simulate: Optional[bool] = typer.Option(None, "--simulate/--no-simulate", help="Report one Pending cycle first"),
    signature_format: Optional[SignatureFormat] = typer.Option(None, "--format", case_sensitive=False),
    max_polls: Optional[int] = typer.Option(None, "--max-polls", min=1, help="Give up after this many polls"),
) -> None:
    """Sign one digest through the offload callback and its poll loop."""
    config = _config(ctx)
    try:
        digest_bytes = parse_hex_digest(digest)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)

    fmt = signature_format or config.signing.signature_format
    provider = EccSigningProvider(
        simulate_async=config.signing.simulate_async if simulate is None else simulate,
        signature_format=fmt,
        deterministic=config.signing.deterministic,
    )
    context = OperationContext(key_source=key or config.signing.key_file)
    polls = 0
    while True:
        outcome = provider.sign(digest_bytes, None, context)
        polls += 1
        if outcome.is_terminal:
            break
        if max_polls is not None and polls >= max_polls:
            provider.abort(context)
            typer.echo(json.dumps({"status": "failed", "kind": "TIMEOUT", "polls": polls}), err=True)
            raise typer.Exit(code=1)

    if not isinstance(outcome, Completed):
        typer.echo(
            json.dumps({"status": "failed", "kind": outcome.kind.value, "detail": outcome.detail, "polls": polls}),
            err=True,
        )
        raise typer.Exit(code=1)
    typer.echo(
        json.dumps(
            {
                "status": "completed",
                "curve": outcome.curve,
                "format": SignatureFormat(fmt).value,
                "pending_cycles": polls - 1,
                "signature_length": outcome.signature_length,
                "signature": outcome.signature.hex(),
            },
            indent=2,
        )
    )


@app.command()
def handshake(
    ctx: typer.Context,
    transcript: Path = typer.Argument(..., exists=True, readable=True, help="File holding transcript bytes"),
    key: Optional[Path] = typer.Option(None, "--key", help="PEM private key (defaults to config)"),
    verify: Optional[Path] = typer.Option(None, "--verify", help="Public key or certificate to check the signature"),
) -> None:
    """Run the signature step of a handshake locally with the configured retry policy."""
    config = _config(ctx)
    key_file = key or config.signing.key_file
    verify_key = None
    if verify is not None:
        try:
            verify_key = load_public_key(verify)
        except PkOffloadError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=2)

    driver = HandshakeDriver(
        key_ref=key_file,
        verify_key=verify_key,
        signature_format=config.signing.signature_format,
    )
    driver.register_signing_callback(
        EccSigningProvider(
            simulate_async=config.signing.simulate_async,
            signature_format=config.signing.signature_format,
            deterministic=config.signing.deterministic,
        )
    )
    connection = Connection(transcript=transcript.read_bytes())
    driver.set_operation_context(connection, OperationContext(key_source=key_file))
    policy: RetryPolicy = config.retry.policy()
    try:
        result = drive_handshake(driver, connection, policy)
    finally:
        driver.release_connection(connection)

    payload = {"status": result.status.value, "polls": result.polls, "connection": connection.connection_id}
    if result.status is HandshakeStatus.COMPLETE and result.signature is not None:
        payload["signature"] = result.signature.hex()
        typer.echo(json.dumps(payload, indent=2))
        return
    payload["kind"] = result.error_kind.value if result.error_kind else None
    typer.echo(json.dumps(payload, indent=2), err=True)
    raise typer.Exit(code=1)


@app.command()
def serve(
    ctx: typer.Context,
    port: Optional[int] = typer.Option(None, "--port", help="Override the listening port"),
) -> None:
    """Run the demonstration accept loop until a client sends 'shutdown'."""
    from ..server import run_server

    config = _config(ctx)
    if port is not None:
        config.server.port = port
    public_file = public_key_for(config.signing.key_file)
    verify_key = None
    if public_file.is_file():
        try:
            verify_key = load_public_key(public_file)
        except PkOffloadError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=2)
    try:
        asyncio.run(run_server(config, verify_key=verify_key))
    except KeyboardInterrupt:
        pass


@app.command("init-config")
def init_config(target: Path = typer.Argument(Path.cwd() / ".pko" / "config.yaml")) -> None:
    """Write the default configuration as YAML."""
    dump_default_config(target)
    typer.echo(f"Default configuration written to {target}")


@app.command()
def version() -> None:
    from ..version import __version__

    typer.echo(__version__)


if __name__ == "__main__":  # pragma: no cover
    app()
