from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeVar, cast

from dotenv import load_dotenv
import typer

from txnsync.adapters.kv.protocol import KeyValueStore
from txnsync.core.config import SyncSettings, load_settings_from_env
from txnsync.core.errors import SyncError
from txnsync.core.factory import (
    create_kv_store,
    create_plaid_workflow,
    create_saltedge_workflow,
)
from txnsync.core.log import configure_logging
from txnsync.orchestrators.cycle import SyncReport
from txnsync.state.connections import ConnectionRegistry
from txnsync.state.credentials import CredentialSet, CredentialStore
from txnsync.state.cursors import SyncCursorStore

# Load environment variables from .env
load_dotenv()

T = TypeVar("T")

app = typer.Typer(help="txnsync: incremental bank transaction sync.")
plaid_app = typer.Typer(help="Plaid items: link, sync, remove.")
saltedge_app = typer.Typer(help="SaltEdge connections: connect, import, disconnect.")
credentials_app = typer.Typer(help="Store API credentials for an environment.")
cursor_app = typer.Typer(help="Inspect or reset sync cursors.")
app.add_typer(plaid_app, name="plaid")
app.add_typer(saltedge_app, name="saltedge")
app.add_typer(credentials_app, name="credentials")
app.add_typer(cursor_app, name="cursor")


@dataclass
class CliState:
    settings: SyncSettings
    _kv: KeyValueStore | None = None

    @property
    def kv(self) -> KeyValueStore:
        if self._kv is None:
            self._kv = create_kv_store(self.settings)
        return self._kv


def _guard(fn: Callable[[], T]) -> T:
    """Run ``fn``; turn ``SyncError`` into a red message and exit code 1."""
    try:
        return fn()
    except SyncError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None


def _state(ctx: typer.Context) -> CliState:
    return cast(CliState, ctx.obj)


def _integration(value: str) -> Literal["plaid", "saltedge"]:
    normalized = value.strip().lower()
    if normalized == "plaid":
        return "plaid"
    if normalized == "saltedge":
        return "saltedge"
    typer.secho(
        f"Error: unknown integration {value!r} (expected plaid or saltedge)",
        fg=typer.colors.RED,
        err=True,
    )
    raise typer.Exit(1)


def _echo_report(report: SyncReport) -> None:
    typer.echo(
        f"{'/'.join(report.scope)}: {report.pages} page(s), "
        f"+{report.appended} appended, ~{report.updated} updated, "
        f"-{report.flagged} flagged"
        + ("" if report.cursor_committed else " (cursor unchanged)")
    )


@app.callback()
def main_callback(
    ctx: typer.Context,
    env: str | None = typer.Option(
        None, "--env", help="Aggregator environment (overrides TXNSYNC_ENVIRONMENT)"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level (overrides TXNSYNC_LOG_LEVEL)"
    ),
) -> None:
    """Load settings and logging before any subcommand runs."""

    def load() -> SyncSettings:
        settings = load_settings_from_env()
        return settings.with_environment(env) if env else settings

    settings = _guard(load)
    configure_logging(log_level or settings.log_level)
    ctx.obj = CliState(settings=settings)


# -------- plaid --------


@plaid_app.command("sync")
def plaid_sync_cmd(
    ctx: typer.Context,
    item: str | None = typer.Option(None, help="Only sync this item id"),
    reset: bool = typer.Option(False, help="Drop the stored cursor first"),
) -> None:
    """Sync transactions for one or all linked Plaid items."""
    state = _state(ctx)

    def run() -> list[SyncReport]:
        workflow = create_plaid_workflow(state.settings, state.kv)
        if item:
            return [workflow.sync_item(item, reset=reset)]
        return workflow.sync_all(reset=reset)

    for report in _guard(run):
        _echo_report(report)


@plaid_app.command("link-token")
def plaid_link_token_cmd(
    ctx: typer.Context,
    user_id: str = typer.Option("txnsync-user", help="Client user id for Link"),
) -> None:
    """Create a Plaid Link token."""
    state = _state(ctx)
    token = _guard(
        lambda: create_plaid_workflow(state.settings, state.kv).create_link_token(
            user_id
        )
    )
    typer.echo(token)


@plaid_app.command("exchange")
def plaid_exchange_cmd(ctx: typer.Context, public_token: str) -> None:
    """Exchange a Link public token and store the access token."""
    state = _state(ctx)
    item_id = _guard(
        lambda: create_plaid_workflow(state.settings, state.kv).exchange_public_token(
            public_token
        )
    )
    typer.echo(f"Linked item {item_id}")


@plaid_app.command("remove")
def plaid_remove_cmd(ctx: typer.Context, item_id: str) -> None:
    """Unlink an item and forget its token and cursor."""
    state = _state(ctx)
    _guard(lambda: create_plaid_workflow(state.settings, state.kv).remove_item(item_id))
    typer.echo(f"Removed item {item_id}")


@plaid_app.command("items")
def plaid_items_cmd(ctx: typer.Context) -> None:
    """List linked Plaid items."""
    state = _state(ctx)
    credentials = CredentialStore(state.kv, state.settings.environment)
    cursors = SyncCursorStore(state.kv, "plaid", state.settings.environment)
    item_ids = _guard(credentials.item_ids)
    if not item_ids:
        typer.echo("No Plaid items found.")
        return
    for item_id in item_ids:
        synced = "synced" if cursors.get(item_id) else "never synced"
        typer.echo(f"{item_id}\t{synced}")


# -------- saltedge --------


@saltedge_app.command("import")
def saltedge_import_cmd(
    ctx: typer.Context,
    reset: bool = typer.Option(False, help="Drop stored cursors first"),
) -> None:
    """Import transactions from every SaltEdge connection."""
    state = _state(ctx)
    reports = _guard(
        lambda: create_saltedge_workflow(state.settings, state.kv).import_all(
            reset=reset
        )
    )
    if not reports:
        typer.echo("No SaltEdge connections found. Connect a bank account first.")
    for report in reports:
        _echo_report(report)


@saltedge_app.command("connect-url")
def saltedge_connect_url_cmd(
    ctx: typer.Context,
    return_to: str | None = typer.Option(None, help="Redirect after linking"),
) -> None:
    """Create a SaltEdge widget URL for linking a bank."""
    state = _state(ctx)
    session = _guard(
        lambda: create_saltedge_workflow(state.settings, state.kv).create_connect_url(
            return_to=return_to
        )
    )
    typer.echo(session.connect_url)
    if session.expires_at:
        typer.echo(f"Expires at {session.expires_at}")


@saltedge_app.command("disconnect")
def saltedge_disconnect_cmd(ctx: typer.Context, connection_id: str) -> None:
    """Remove a connection remotely and forget it locally."""
    state = _state(ctx)
    _guard(
        lambda: create_saltedge_workflow(state.settings, state.kv).disconnect(
            connection_id
        )
    )
    typer.echo(f"Disconnected {connection_id}")


@saltedge_app.command("connections")
def saltedge_connections_cmd(ctx: typer.Context) -> None:
    """List locally known SaltEdge connections and accounts."""
    state = _state(ctx)
    registry = ConnectionRegistry(state.kv, state.settings.environment)
    connection_ids = _guard(registry.connection_ids)
    if not connection_ids:
        typer.echo("No SaltEdge connections stored.")
        return
    for connection_id in connection_ids:
        meta = registry.get_connection(connection_id) or {}
        provider = meta.get("provider_name", "")
        typer.echo(f"{connection_id}\t{provider}\t{meta.get('status', '')}")
        for account in registry.accounts(connection_id):
            typer.echo(
                f"  {account.get('account_id', '')}\t{account.get('name', '')}"
                f"\t{account.get('currency_code', '')}"
            )


# -------- credentials --------


@credentials_app.command("plaid")
def credentials_plaid_cmd(
    ctx: typer.Context,
    client_id: str = typer.Option(..., help="Plaid client id"),
    secret: str = typer.Option(..., help="Plaid secret for this environment"),
) -> None:
    """Store Plaid client id and secret."""
    state = _state(ctx)
    store = CredentialStore(state.kv, state.settings.environment)
    _guard(lambda: store.set("plaid", CredentialSet(client_id, secret)))
    typer.echo(f"Stored Plaid credentials for {state.settings.environment}")


@credentials_app.command("saltedge")
def credentials_saltedge_cmd(
    ctx: typer.Context,
    app_id: str = typer.Option(..., help="SaltEdge App-id"),
    secret: str = typer.Option(..., help="SaltEdge secret"),
    private_key_file: Path = typer.Option(  # noqa: B008
        ..., exists=True, dir_okay=False, help="PEM file with the RSA private key"
    ),
) -> None:
    """Store SaltEdge App-id, secret and signing key."""
    state = _state(ctx)
    store = CredentialStore(state.kv, state.settings.environment)
    pem = private_key_file.read_text(encoding="utf-8")
    _guard(lambda: store.set("saltedge", CredentialSet(app_id, secret, pem)))
    typer.echo(f"Stored SaltEdge credentials for {state.settings.environment}")


# -------- cursor --------


@cursor_app.command("list")
def cursor_list_cmd(
    ctx: typer.Context,
    integration: str = typer.Argument(..., help="plaid or saltedge"),
) -> None:
    """Show scopes that hold a stored cursor."""
    state = _state(ctx)
    cursors = SyncCursorStore(
        state.kv, _integration(integration), state.settings.environment
    )
    scopes = cursors.scopes()
    if not scopes:
        typer.echo("No cursors stored.")
    for scope in scopes:
        typer.echo("/".join(scope))


@cursor_app.command("reset")
def cursor_reset_cmd(
    ctx: typer.Context,
    integration: str = typer.Argument(..., help="plaid or saltedge"),
    scope: list[str] = typer.Argument(  # noqa: B008
        ..., help="Item id, or connection id [account id]"
    ),
) -> None:
    """Delete stored cursors so the next sync refetches full history."""
    state = _state(ctx)
    cursors = SyncCursorStore(
        state.kv, _integration(integration), state.settings.environment
    )
    removed = cursors.delete_prefix(*scope)
    typer.echo(f"Reset {len(removed)} cursor(s)")


def main() -> None:
    app()
