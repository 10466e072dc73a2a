"""Patreon Connect CLI - Main entry point."""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import PatreonSettings
from .errors import PatreonError
from .oauth import OAuthClient, OAuthToken, Scope, run_oauth_flow
from .webhooks import WebhookValidator, compute_signature

app = typer.Typer(
    name="patreon",
    help="Patreon OAuth and webhook tools",
    no_args_is_help=True,
)
console = Console()
# Human-readable output goes to stderr so stdout stays pipeable
err_console = Console(stderr=True)

# Sub-command groups
auth_app = typer.Typer(help="OAuth commands")
webhook_app = typer.Typer(help="Webhook signature commands")

app.add_typer(auth_app, name="auth")
app.add_typer(webhook_app, name="webhook")

DEFAULT_SCOPES = [Scope.IDENTITY.value, Scope.IDENTITY_EMAIL.value, Scope.IDENTITY_MEMBERSHIPS.value]


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _settings() -> PatreonSettings:
    return PatreonSettings()


def _oauth_client() -> OAuthClient:
    settings = _settings()
    if not settings.oauth_configured:
        err_console.print(
            Panel(
                "[red]OAuth is not configured.[/red]\n\n"
                "Set your client credentials in the environment or a .env file:\n"
                "  PATREON_CLIENT_ID=your_client_id\n"
                "  PATREON_CLIENT_SECRET=your_client_secret\n"
                "  PATREON_REDIRECT_URI=http://localhost:8080/callback",
                title="Configuration",
            )
        )
        raise typer.Exit(1)
    return OAuthClient.from_settings(settings)


def _print_token(token: OAuthToken) -> None:
    table = Table(title="OAuth Token")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Expires at", token.expires_at.isoformat())
    table.add_row("Scopes", token.scope or "[dim]none reported[/dim]")
    table.add_row("Token type", token.token_type)
    err_console.print(table)
    typer.echo(json.dumps(token.to_dict(), indent=2))


def _fail(error: PatreonError) -> None:
    err_console.print(f"[red]Error:[/red] {error}")
    if getattr(error, "body", ""):
        err_console.print(f"[dim]{error.body}[/dim]")
    raise typer.Exit(1)


# ============================================================================
# Auth Commands
# ============================================================================


@auth_app.command("url")
def auth_url(
    scope: Optional[List[str]] = typer.Option(None, "--scope", "-s", help="Scope to request (repeatable)"),
    state: Optional[str] = typer.Option(None, help="CSRF state value to include"),
):
    """Print the authorization URL."""
    client = _oauth_client()
    typer.echo(client.authorization_url(scope or DEFAULT_SCOPES, state=state))


@auth_app.command("login")
def auth_login(
    scope: Optional[List[str]] = typer.Option(None, "--scope", "-s", help="Scope to request (repeatable)"),
    timeout: float = typer.Option(300.0, help="Seconds to wait for the browser callback"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Don't open a browser"),
):
    """Log in through the browser using a local callback server."""
    client = _oauth_client()

    def show_url(url: str) -> None:
        err_console.print(Panel(f"If the browser doesn't open, visit:\n{url}", title="Patreon Authorization"))

    try:
        token = asyncio.run(
            run_oauth_flow(
                client,
                scopes=scope or DEFAULT_SCOPES,
                timeout=timeout,
                open_browser=not no_browser,
                on_authorization_url=show_url,
            )
        )
    except PatreonError as e:
        _fail(e)
    except TimeoutError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _print_token(token)


@auth_app.command("exchange")
def auth_exchange(code: str = typer.Argument(..., help="Authorization code from the callback")):
    """Exchange an authorization code for tokens."""
    client = _oauth_client()
    try:
        token = asyncio.run(client.exchange_code(code))
    except PatreonError as e:
        _fail(e)
    _print_token(token)


@auth_app.command("refresh")
def auth_refresh(refresh_token: str = typer.Argument(..., help="Refresh token (single use)")):
    """Trade a refresh token for a new token pair."""
    client = _oauth_client()
    try:
        token = asyncio.run(client.refresh_token(refresh_token))
    except PatreonError as e:
        _fail(e)
    _print_token(token)


# ============================================================================
# Webhook Commands
# ============================================================================


def _webhook_secret(secret: Optional[str]) -> str:
    secret = secret or _settings().webhook_secret
    if not secret:
        err_console.print("[red]Error:[/red] no webhook secret (use --secret or PATREON_WEBHOOK_SECRET)")
        raise typer.Exit(1)
    return secret


@webhook_app.command("sign")
def webhook_sign(
    body_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Raw request body"),
    secret: Optional[str] = typer.Option(None, help="Webhook secret (default: PATREON_WEBHOOK_SECRET)"),
):
    """Print the X-Patreon-Signature value for a body."""
    typer.echo(compute_signature(_webhook_secret(secret), body_file.read_bytes()))


@webhook_app.command("verify")
def webhook_verify(
    body_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Raw request body"),
    signature: str = typer.Option(..., "--signature", help="X-Patreon-Signature header value"),
    event: str = typer.Option("", "--event", help="X-Patreon-Event header value"),
    secret: Optional[str] = typer.Option(None, help="Webhook secret (default: PATREON_WEBHOOK_SECRET)"),
):
    """Verify a webhook body and show the decoded event."""
    validator = WebhookValidator(_webhook_secret(secret))
    try:
        parsed = validator.validate_and_parse(body_file.read_bytes(), signature, event)
    except PatreonError as e:
        _fail(e)

    table = Table(title="Webhook Event")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Signature", "valid")
    table.add_row("Event", parsed.event_type.raw or "[dim]none[/dim]")
    table.add_row(
        "Kind",
        parsed.event_type.kind.name if not parsed.event_type.is_unknown else "[yellow]UNKNOWN[/yellow]",
    )
    table.add_row("Resource ID", parsed.resource_id or "[dim]-[/dim]")
    table.add_row("Included", str(len(parsed.included or [])))
    console.print(table)


# ============================================================================
# Main
# ============================================================================


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(f"Patreon Connect v{__version__}")


if __name__ == "__main__":
    app()
