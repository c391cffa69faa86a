"""CLI for outreach_tracker."""

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from outreach_tracker import __version__
from outreach_tracker.config import Settings, get_settings
from outreach_tracker.models import READ_ONLY_FIELDS, Client, StoreResult
from outreach_tracker.storage.backends import JsonFileStorage
from outreach_tracker.store import RecordStore

NOT_FOUND_MESSAGE = "No matching record; nothing changed."


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the collections (overrides OT_DATA_DIR)",
)
@click.pass_context
def main(ctx: click.Context, data_dir: Path | None) -> None:
    """Track clients through a sales pipeline."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir

    # Load settings
    try:
        settings = get_settings()
        ctx.obj["settings"] = settings
    except ValidationError as e:
        ctx.obj["settings_error"] = str(e)
        return

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _get_store(ctx: click.Context) -> RecordStore:
    """Open the store once per invocation (tests may pass one in ctx.obj)."""
    store: RecordStore | None = ctx.obj.get("store")
    if store is not None:
        return store

    settings: Settings | None = ctx.obj.get("settings")
    if settings is None:
        click.echo(f"Error loading settings: {ctx.obj.get('settings_error')}", err=True)
        ctx.exit(1)

    data_dir = ctx.obj.get("data_dir") or settings.data_dir
    store = RecordStore.open(JsonFileStorage(data_dir), key_prefix=settings.key_prefix)
    ctx.obj["store"] = store
    return store


def _report(ctx: click.Context, result: StoreResult) -> None:
    """Show warnings and rejections; rejected input exits with status 1."""
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)
    if result.applied:
        return
    if result.message:
        click.echo(f"Error: {result.message}", err=True)
        ctx.exit(1)
    click.echo(NOT_FOUND_MESSAGE)


def _client_name(client: Client) -> str:
    return client.get("company") or "Unnamed Company"


@main.command()
@click.option("--set", "assignments", multiple=True, metavar="FIELD=VALUE", help="Initial field value")
@click.pass_context
def add(ctx: click.Context, assignments: tuple[str, ...]) -> None:
    """Add a new client at the top of the list."""
    store = _get_store(ctx)

    pairs = []
    for assignment in assignments:
        field_id, sep, value = assignment.partition("=")
        if not sep or not field_id:
            click.echo(f"Error: expected FIELD=VALUE, got '{assignment}'", err=True)
            ctx.exit(1)
        if field_id in READ_ONLY_FIELDS:
            click.echo(f"Error: Field '{field_id}' cannot be changed.", err=True)
            ctx.exit(1)
        pairs.append((field_id, value))

    result = store.create_client()
    _report(ctx, result)
    client = result.item
    for field_id, value in pairs:
        _report(ctx, store.update_client_field(client.id, field_id, value))

    click.echo(f"Created client {client.id}")


@main.command("set")
@click.argument("client_id")
@click.argument("field_id")
@click.argument("value")
@click.pass_context
def set_field(ctx: click.Context, client_id: str, field_id: str, value: str) -> None:
    """Set FIELD_ID of a client to VALUE."""
    store = _get_store(ctx)
    _report(ctx, store.update_client_field(client_id, field_id, value))


@main.command()
@click.argument("client_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, client_id: str, yes: bool) -> None:
    """Delete a client."""
    store = _get_store(ctx)
    if not yes:
        click.confirm("Are you sure you want to delete this client?", abort=True)
    _report(ctx, store.delete_client(client_id))


@main.command()
@click.argument("client_id")
@click.argument("text", required=False)
@click.pass_context
def log(ctx: click.Context, client_id: str, text: str | None) -> None:
    """Add a log entry to a client (prompts when TEXT is omitted)."""
    store = _get_store(ctx)
    if text is None:
        text = click.prompt("Log entry", default="", show_default=False)
    _report(ctx, store.add_log(client_id, text))


@main.command()
@click.argument("client_id")
@click.pass_context
def logs(ctx: click.Context, client_id: str) -> None:
    """Show a client's log, newest first."""
    store = _get_store(ctx)
    client = store.get_client(client_id)
    if client is None:
        click.echo(NOT_FOUND_MESSAGE)
        return

    click.echo(f"Logs for {client.get('company') or 'Client'}")
    for entry in client.logs:
        click.echo(f"  {entry.date}  {entry.text}")


@main.command("list")
@click.option("--search", "term", default="", help="Only clients with a value containing TERM")
@click.pass_context
def list_clients(ctx: click.Context, term: str) -> None:
    """Show clients as a table of the current columns."""
    store = _get_store(ctx)
    columns = store.columns
    clients = store.search(term)

    if not clients:
        click.echo("No clients found. Run 'outreach-tracker add' to get started.")
        return

    click.echo("\t".join(["ID", *(col.label for col in columns), "Logs"]))
    for client in clients:
        cells = [str(client.get(col.id)) for col in columns]
        click.echo("\t".join([client.id, *cells, str(len(client.logs))]))


@main.command()
@click.pass_context
def board(ctx: click.Context) -> None:
    """Show clients grouped by pipeline stage."""
    store = _get_store(ctx)
    for status, clients in store.board().items():
        click.echo(f"{status} ({len(clients)})")
        for client in clients:
            contact = client.get("contact") or "No contact"
            click.echo(f"  - {_client_name(client)} ({contact})")


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show pipeline statistics."""
    store = _get_store(ctx)
    metrics = store.metrics()

    click.echo(f"Total Leads: {metrics.total}")
    click.echo(f"Demo Built: {metrics.demo_built}")
    click.echo(f"Won Deals: {metrics.won}")
    click.echo(f"Conversion Rate: {metrics.conversion_rate}%")
    click.echo("\nPipeline Health:")
    for stage in metrics.pipeline:
        click.echo(f"  {stage.status}: {stage.count} ({stage.percentage:.0f}%)")


@main.group("columns")
def columns_group() -> None:
    """Manage the client columns."""


@columns_group.command("list")
@click.pass_context
def list_columns(ctx: click.Context) -> None:
    """Show columns in display order."""
    store = _get_store(ctx)
    for index, column in enumerate(store.columns):
        line = f"{index}\t{column.id}\t{column.label}\t{column.type}"
        if column.options:
            line += f"\t{', '.join(column.options)}"
        click.echo(line)


@columns_group.command("add")
@click.argument("label", required=False)
@click.option("--position", type=int, default=None, help="Index to insert at (default: last)")
@click.pass_context
def add_column(ctx: click.Context, label: str | None, position: int | None) -> None:
    """Insert a text column."""
    store = _get_store(ctx)
    if label is None:
        label = click.prompt("Column Name?", default="", show_default=False)
    if position is None:
        position = len(store.columns)

    result = store.insert_column(position, label)
    _report(ctx, result)
    click.echo(f"Added column {result.item.id}")


@columns_group.command("rename")
@click.argument("column_id")
@click.argument("label")
@click.pass_context
def rename_column(ctx: click.Context, column_id: str, label: str) -> None:
    """Change the label of a column."""
    store = _get_store(ctx)
    _report(ctx, store.rename_column(column_id, label))


@columns_group.command("delete")
@click.argument("column_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_column(ctx: click.Context, column_id: str, yes: bool) -> None:
    """Delete a column. Client values for it are kept but hidden."""
    store = _get_store(ctx)
    # The last column is refused by the store, no need to ask first
    if len(store.columns) > 1 and not yes:
        click.confirm("Delete this column? This will hide the data for all clients.", abort=True)
    _report(ctx, store.delete_column(column_id))


@main.group("assets")
def assets_group() -> None:
    """Manage the asset vault."""


@assets_group.command("list")
@click.pass_context
def list_assets(ctx: click.Context) -> None:
    """Show stored assets, newest first."""
    store = _get_store(ctx)
    if not store.assets:
        click.echo("Your vault is empty.")
        return
    for asset in store.assets:
        click.echo(f"{asset.name}\t{asset.url}")


@assets_group.command("add")
@click.option("--name", default=None, help="Asset name")
@click.option("--url", default=None, help="Asset URL")
@click.pass_context
def add_asset(ctx: click.Context, name: str | None, url: str | None) -> None:
    """Add a named link to the vault (prompts for missing values)."""
    store = _get_store(ctx)
    if name is None:
        name = click.prompt("Asset Name?", default="", show_default=False)
    if url is None:
        url = click.prompt("URL?", default="", show_default=False)
    _report(ctx, store.add_asset(name, url))


if __name__ == "__main__":
    main()
