"""
Brokex keeper CLI entry point.

Usage:
    brokex-keeper [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from brokex_core import KeeperException, load_settings, setup_logging
from brokex_api.main import build_keeper, create_app
from brokex_api.reporting import build_debug_response, build_results_response

console = Console()

STATUS_STYLES = {
    "closed": "green",
    "failed": "red",
    "skipped": "yellow",
    "valid": "green",
    "invalid": "red",
}


@click.group()
@click.version_option(package_name="brokex-keeper", message="%(prog)s %(version)s")
@click.option("--env-file", type=click.Path(dir_okay=False), help="Read settings from this .env file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, env_file: str | None, verbose: bool):
    """Brokex keeper - confirms pending position closes with oracle proofs."""
    ctx.ensure_object(dict)
    settings = load_settings(env_file)
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.json_logs,
    )
    ctx.obj["settings"] = settings


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address")
@click.option("--port", type=int, default=None, help="Bind port (defaults to the configured port)")
@click.pass_context
def serve(ctx, host: str, port: int | None):
    """Run the keeper HTTP API."""
    import uvicorn

    settings = ctx.obj["settings"]
    app = create_app(settings)
    uvicorn.run(app, host=host, port=port or settings.port, log_config=None)


async def _run_once(settings):
    services = build_keeper(settings)
    try:
        return await services.keeper.run_pass()
    finally:
        await services.close()


async def _inspect(settings):
    services = build_keeper(settings)
    try:
        return await services.keeper.inspect_pending()
    finally:
        await services.close()


def _status_cell(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


@cli.command("run-once")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON results")
@click.pass_context
def run_once(ctx, as_json: bool):
    """Run a single reconciliation pass and print the outcome of each request."""
    try:
        result = asyncio.run(_run_once(ctx.obj["settings"]))
    except KeeperException as e:
        console.print(f"[red]Pass aborted: {e.message}[/red]")
        ctx.exit(1)

    payload = build_results_response(result)
    if as_json:
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(title=f"Pass {result.pass_id} ({result.mode.value})")
    table.add_column("Position", justify="right", style="cyan")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Detail")

    for outcome, item in zip(result, payload["results"]):
        detail = item.get("txHash") or item.get("error") or item.get("reason") or ""
        table.add_row(
            str(outcome.position_id),
            _status_cell(outcome.status.value),
            str(outcome.attempts),
            detail,
        )

    console.print(table)
    counts = result.counts()
    console.print(
        f"[green]{counts['closed']} closed[/green], "
        f"[red]{counts['failed']} failed[/red], "
        f"[yellow]{counts['skipped']} skipped[/yellow]"
    )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON report")
@click.pass_context
def inspect(ctx, as_json: bool):
    """Check the proof for every pending request without submitting anything."""
    try:
        inspections = asyncio.run(_inspect(ctx.obj["settings"]))
    except KeeperException as e:
        console.print(f"[red]Inspection failed: {e.message}[/red]")
        ctx.exit(1)

    payload = build_debug_response(inspections)
    if as_json:
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(title="Pending close requests")
    table.add_column("Position", justify="right", style="cyan")
    table.add_column("Index", justify="right")
    table.add_column("Status")
    table.add_column("Detail")

    for item in payload["debug"]:
        detail = item.get("reason") or f"{item.get('proofLength')} bytes"
        table.add_row(
            str(item["positionId"]),
            str(item["index"]),
            _status_cell(item["status"]),
            detail,
        )

    console.print(table)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
