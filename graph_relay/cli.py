"""Click CLI for running and exercising the relay."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
import uvicorn

from graph_relay.audit.logger import validate_audit_chain
from graph_relay.config import SUPPORTED_SIGNATURE_ALGORITHMS, RelaySettings
from graph_relay.graph.client import GraphClient
from graph_relay.oauth.flow import MissingAppCredentialsError, OAuthFlow
from graph_relay.state import Credential
from graph_relay.webhook.signature import SignatureVerifier


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Meta webhook and OAuth relay."""
    ctx.ensure_object(dict)
    ctx.obj["settings"] = RelaySettings.from_env()


@cli.command()
@click.option("--host", default="0.0.0.0", help="Interface to bind.")
@click.option("--port", type=int, default=None, help="Port to bind (default: $PORT or 5000).")
@click.option("--log-level", default=None, help="Log level (default: $LOG_LEVEL or INFO).")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int | None, log_level: str | None) -> None:
    """Run the HTTP server."""
    settings: RelaySettings = ctx.obj["settings"]
    level = (log_level or settings.log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "graph_relay.server.app:create_app_from_env",
        factory=True,
        host=host,
        port=port or settings.port,
        log_level=level.lower(),
    )


@cli.command()
@click.argument("body_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--secret", default=None, help="Shared secret (default: $APP_SECRET).")
@click.option(
    "--algorithm",
    type=click.Choice(SUPPORTED_SIGNATURE_ALGORITHMS),
    default=None,
    help="HMAC algorithm (default: $WEBHOOK_SIGNATURE_ALGORITHM or sha1).",
)
@click.pass_context
def sign(ctx: click.Context, body_file: Path, secret: str | None, algorithm: str | None) -> None:
    """Print the signature header for a webhook payload file."""
    settings: RelaySettings = ctx.obj["settings"]
    secret = settings.app_secret if secret is None else secret
    if not secret:
        raise click.UsageError("no secret given and APP_SECRET is not set")
    verifier = SignatureVerifier(secret, algorithm or settings.signature_algorithm)
    click.echo(f"{verifier.header_name}: {verifier.sign(body_file.read_bytes())}")


@cli.command("login-url")
@click.pass_context
def login_url(ctx: click.Context) -> None:
    """Print the OAuth dialog URL for the configured app."""
    flow = OAuthFlow(ctx.obj["settings"], GraphClient(), Credential())
    try:
        click.echo(flow.login_url())
    except MissingAppCredentialsError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


@cli.command("verify-audit")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify_audit(log_path: Path) -> None:
    """Check the numbering and hash chain of an audit log."""
    result = validate_audit_chain(log_path)
    if result.valid:
        click.echo(f"OK: {result.entries} entries, chain intact")
        return
    click.echo(
        f"BROKEN: chain breaks at line {result.broken_at_line} ({result.reason})", err=True,
    )
    sys.exit(1)
