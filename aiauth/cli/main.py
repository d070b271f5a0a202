"""
Command-line interface for aiauth.

Provides login, status, key resolution, manual refresh and direct key
insertion against the shared auth-profiles document.
"""
from __future__ import annotations

import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
from typer import Argument, Option
from typing_extensions import Annotated

from aiauth.application.credential_store import CredentialStore
from aiauth.application.resolver import PriorityResolver
from aiauth.domain.credentials import Credential, CredentialKind, now_ms
from aiauth.domain.exceptions import AuthError, ResolutionError
from aiauth.domain.providers import LoginCallbacks
from aiauth.infrastructure import log_utils
from aiauth.infrastructure.di_container import Container, build_container
from aiauth.utils.formatters import mask_key

console = Console()

app = typer.Typer(
    name="aiauth",
    help="LLM provider auth management.",
    add_completion=False,
    no_args_is_help=True,
)


@dataclass
class ProfileStatus:
    """One row of the ``status`` report."""

    name: str
    kind: str
    provider: str
    masked: str
    status: str


def collect_status(store: CredentialStore, at_ms: Optional[int] = None) -> List[ProfileStatus]:
    """Describe every stored profile without exposing secrets.

    Known kinds come first, sorted by name, followed by unsupported entries.
    """
    reference = now_ms() if at_ms is None else at_ms
    rows: List[ProfileStatus] = []
    for name, cred in sorted(store.profiles().items()):
        if not cred.secret:
            state = "empty"
        elif cred.kind is not CredentialKind.API_KEY and cred.is_expired(reference):
            state = "expired"
        else:
            state = "valid"
        rows.append(
            ProfileStatus(
                name=name,
                kind=cred.kind.value,
                provider=cred.provider,
                masked=mask_key(cred.secret),
                status=state,
            )
        )
    for name, raw in sorted(store.foreign_profiles().items()):
        rows.append(
            ProfileStatus(
                name=name,
                kind=str(raw.get("type")),
                provider=str(raw.get("provider") or "-"),
                masked="-",
                status="unsupported",
            )
        )
    return rows


def _container(ctx: typer.Context) -> Container:
    container = ctx.obj
    if not isinstance(container, Container):
        container = build_container()
        ctx.obj = container
    return container


def _resolver(ctx: typer.Context) -> PriorityResolver:
    return _container(ctx).resolve(PriorityResolver)


@app.callback()
def main(
    ctx: typer.Context,
    store: Annotated[
        Optional[Path],
        Option("--store", help="Path to auth-profiles.json (defaults to AIAUTH_STORE_PATH)."),
    ] = None,
) -> None:
    """LLM provider auth management."""
    if ctx.obj is None:
        try:
            ctx.obj = build_container(store_path=store)
            ctx.obj.resolve(CredentialStore)
        except AuthError as exc:
            typer.echo(f"Failed to load auth store: {exc}", err=True)
            raise typer.Exit(code=1)


def _open_browser(url: str) -> None:
    typer.echo("Open this URL in your browser:")
    typer.echo(url)
    try:
        webbrowser.open(url)
    except webbrowser.Error as exc:
        log_utils.log_message(f"Could not open a browser: {exc}", "DEBUG")


def _prompt(message: str) -> str:
    return typer.prompt(message)


@app.command()
def login(
    ctx: typer.Context,
    provider: Annotated[str, Argument(help="Provider to authenticate with, e.g. anthropic.")],
) -> None:
    """Authenticate with a provider via OAuth."""
    resolver = _resolver(ctx)
    if provider not in resolver.registry:
        typer.echo(f"Unsupported provider: {provider}", err=True)
        raise typer.Exit(code=1)

    try:
        resolver.login(provider, LoginCallbacks(on_auth_url=_open_browser, on_prompt=_prompt))
    except AuthError as exc:
        log_utils.log_message(f"Login to {provider} failed: {exc}", "ERROR")
        typer.echo(f"Login failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo("[OK] Logged in successfully.")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show all configured profiles and whether they are usable."""
    store = _container(ctx).resolve(CredentialStore)
    rows = collect_status(store)
    if not rows:
        typer.echo("No credentials configured.")
        return

    table = Table(title="Auth profiles")
    table.add_column("Profile", style="bold")
    table.add_column("Type")
    table.add_column("Provider")
    table.add_column("Key")
    table.add_column("Status")
    for row in rows:
        colour = {"valid": "green", "expired": "yellow"}.get(row.status, "red")
        table.add_row(row.name, row.kind, row.provider, row.masked, f"[{colour}]{row.status}[/{colour}]")
    console.print(table)


@app.command()
def key(
    ctx: typer.Context,
    provider: Annotated[str, Argument(help="Provider whose key should be printed.")],
) -> None:
    """Print the resolved API key to stdout."""
    try:
        secret = _resolver(ctx).resolve_key(provider)
    except ResolutionError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(secret, nl=False)


@app.command()
def refresh(
    ctx: typer.Context,
    provider: Annotated[str, Argument(help="Provider whose OAuth token should be refreshed.")],
) -> None:
    """Manually refresh a provider's OAuth token."""
    try:
        refreshed = _resolver(ctx).refresh_provider(provider)
    except AuthError as exc:
        log_utils.log_message(f"Failed to refresh {provider}: {exc}", "ERROR")
        typer.echo(f"Refresh failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo("[OK] Token refreshed successfully.")
    typer.echo(f"Access token: {mask_key(refreshed.access)}")


@app.command("set-key")
def set_key(
    ctx: typer.Context,
    provider: Annotated[str, Argument(help="Provider the secret belongs to.")],
    name: Annotated[Optional[str], Option("--name", help="Profile name (default <provider>:default).")] = None,
    kind: Annotated[
        CredentialKind,
        Option("--kind", help="Store as a static api_key or a bearer token."),
    ] = CredentialKind.API_KEY,
    expires: Annotated[int, Option("--expires", help="Token expiry in epoch milliseconds (0 = never).")] = 0,
    secret: Annotated[
        Optional[str],
        Option("--secret", help="Secret value; prompted for (hidden) when omitted."),
    ] = None,
) -> None:
    """Store an API key or bearer token directly."""
    if kind is CredentialKind.OAUTH:
        typer.echo("OAuth credentials are created with `aiauth login`.", err=True)
        raise typer.Exit(code=1)

    value = secret if secret is not None else typer.prompt("Secret", hide_input=True)
    value = value.strip()
    if not value:
        typer.echo("Refusing to store an empty secret.", err=True)
        raise typer.Exit(code=1)

    if kind is CredentialKind.TOKEN:
        credential = Credential.bearer(provider, value, expires=expires)
    else:
        credential = Credential.api_key(provider, value)

    profile = name or f"{provider}:default"
    try:
        _container(ctx).resolve(CredentialStore).set_profile(profile, credential)
    except AuthError as exc:
        typer.echo(f"Failed to save profile: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[OK] Saved {profile} ({mask_key(value)}).")


if __name__ == "__main__":  # pragma: no cover
    app()
