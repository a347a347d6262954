"""ItemGate CLI - sign requests and manage items."""

import asyncio
import json
import sys
from collections.abc import Callable, Coroutine
from typing import Any, ParamSpec, TypeVar

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from itemgate.client import ItemClient, ItemClientError, sign_request
from itemgate.common.credentials import CredentialPair, load_credentials
from itemgate.common.errors import FatalConfigError
from itemgate.common.hmac import SignatureScheme
from itemgate.common.settings import Settings

console = Console()

P = ParamSpec("P")
R = TypeVar("R")


def async_command(f: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, R]:
    """Decorator to run async commands."""

    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def _credentials(ctx: click.Context) -> CredentialPair:
    try:
        return load_credentials(ctx.obj["settings"])
    except FatalConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)


def _print_items(items: list[dict[str, Any]], title: str = "Items") -> None:
    if not items:
        console.print("[yellow]No items[/yellow]")
        return

    table = Table(title=title)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="green")
    for item in items:
        table.add_row(str(item.get("id", "")), str(item.get("name", "")))
    console.print(table)


@click.group()
@click.option("--base-url", default=None, help="Item API base URL")
@click.option("--api-key", envvar="ITEMGATE_API_KEY", default=None, help="API key")
@click.option("--secret", envvar="ITEMGATE_SECRET", default=None, help="Shared HMAC secret")
@click.option(
    "--scheme",
    type=click.Choice([scheme.value for scheme in SignatureScheme]),
    default=None,
    help="Signature encoding",
)
@click.pass_context
def cli(
    ctx: click.Context,
    base_url: str | None,
    api_key: str | None,
    secret: str | None,
    scheme: str | None,
) -> None:
    """ItemGate CLI - Signed access to the item API."""
    overrides: dict[str, Any] = {}
    if base_url:
        overrides["client_base_url"] = base_url
    if api_key:
        overrides["api_key"] = api_key
    if secret:
        overrides["secret"] = secret
    if scheme:
        overrides["signature_scheme"] = scheme

    ctx.ensure_object(dict)
    ctx.obj["settings"] = Settings(**overrides)


# === Signing ===


@cli.command("sign")
@click.option("--method", "-m", default="GET", help="HTTP method")
@click.option("--timestamp", "-t", required=True, help="Timestamp token to sign")
@click.option("--body", "-b", default=None, help="JSON body for write methods")
@click.option("--show-canonical", is_flag=True, help="Also print the signed string")
@click.pass_context
def sign_cmd(
    ctx: click.Context,
    method: str,
    timestamp: str,
    body: str | None,
    show_canonical: bool,
) -> None:
    """Print the headers for a signed request."""
    settings: Settings = ctx.obj["settings"]
    credentials = _credentials(ctx)

    parsed = None
    if body is not None:
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            console.print(f"[red]Invalid JSON body: {exc}[/red]")
            sys.exit(1)

    signed = sign_request(
        credentials,
        method,
        settings.protected_path,
        timestamp,
        parsed,
        scheme=SignatureScheme(settings.signature_scheme),
        key_header=settings.key_header,
        signature_header=settings.signature_header,
        timestamp_header=settings.timestamp_header,
    )

    if show_canonical:
        console.print(f"[cyan]canonical:[/cyan] {escape(signed.canonical)}", soft_wrap=True)
    for name, value in signed.headers.items():
        console.print(f"{name}: {value}", soft_wrap=True)
    if signed.body is not None:
        console.print(f"[cyan]body:[/cyan] {escape(signed.body.decode('utf-8'))}", soft_wrap=True)


# === Item Management ===


async def _call(ctx: click.Context, operation: str, *args: Any) -> Any:
    settings: Settings = ctx.obj["settings"]
    async with ItemClient(settings, credentials=_credentials(ctx)) as client:
        try:
            return await getattr(client, operation)(*args)
        except ItemClientError as exc:
            if exc.status_code:
                console.print(f"[red]Error ({exc.status_code}): {exc}[/red]")
            else:
                console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)


@cli.command("list")
@click.pass_context
@async_command
async def list_items(ctx: click.Context) -> None:
    """List all items."""
    items = await _call(ctx, "list_items")
    _print_items(items)


@cli.command("get")
@click.argument("item_id", type=int)
@click.pass_context
@async_command
async def get_item(ctx: click.Context, item_id: int) -> None:
    """Show one item."""
    item = await _call(ctx, "get_item", item_id)
    _print_items([item], title=f"Item {item_id}")


@cli.command("create")
@click.argument("name")
@click.pass_context
@async_command
async def create_item(ctx: click.Context, name: str) -> None:
    """Create an item."""
    item = await _call(ctx, "create_item", name)
    console.print(f"[green]Created item {item['id']}: {item['name']}[/green]")


@cli.command("update")
@click.argument("item_id", type=int)
@click.argument("name")
@click.pass_context
@async_command
async def update_item(ctx: click.Context, item_id: int, name: str) -> None:
    """Rename an item."""
    item = await _call(ctx, "update_item", item_id, name)
    console.print(f"[green]Updated item {item['id']}: {item['name']}[/green]")


@cli.command("delete")
@click.argument("item_id", type=int)
@click.pass_context
@async_command
async def delete_item(ctx: click.Context, item_id: int) -> None:
    """Delete an item."""
    result = await _call(ctx, "delete_item", item_id)
    console.print(f"[green]{result.get('message', 'Deleted')}[/green]")


# === Server ===


@cli.command("serve")
def serve() -> None:
    """Run the item server."""
    from itemgate.server.main import main as run_server

    run_server()


def main() -> None:
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
