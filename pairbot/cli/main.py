"""pairbot command line"""

import asyncio
import json
import logging

import httpx
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ..config.loader import load_config
from ..logging import setup_logging

console = Console()
app = typer.Typer(help="WhatsApp pairing code service")

logger = logging.getLogger(__name__)


def _base_url(url: str | None) -> str:
    if url:
        return url.rstrip("/")
    config = load_config()
    host = "127.0.0.1" if config.server.host in ("0.0.0.0", "::") else config.server.host
    return f"http://{host}:{config.server.port}"


@app.command("serve")
def serve(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to pairbot.json"),
    port: int = typer.Option(None, "--port", "-p", help="Override the HTTP port"),
    no_connect: bool = typer.Option(False, "--no-connect", help="Do not start the WhatsApp session"),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level"),
):
    """Run the pairing service"""
    load_dotenv()
    setup_logging(log_level)

    from ..api.server import run_api_server

    config = load_config(config_path)
    if port:
        config.server.port = port
    if no_connect:
        config.connection.auto_connect = False

    console.print(f"[cyan]{config.company.name} WhatsApp Pairing Service v{config.company.version}[/cyan]")
    console.print(f"Visit: http://localhost:{config.server.port}")

    try:
        asyncio.run(run_api_server(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")


@app.command("status")
def status(
    url: str = typer.Option(None, "--url", help="Service base URL"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """Show the status of a running service"""
    try:
        response = httpx.get(f"{_base_url(url)}/status", timeout=10.0)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if json_output:
        console.print(json.dumps(data, indent=2))
        return

    table = Table(title=f"{data.get('company', 'pairbot')} v{data.get('version', '?')}")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    for key in ("status", "statusText", "pairingCodes", "generatedCodes", "lastCode", "qrAttempts", "uptime"):
        table.add_row(key, str(data.get(key, "-")))

    console.print(table)


@app.command("codes")
def list_codes(
    url: str = typer.Option(None, "--url", help="Service base URL"),
    api_key: str = typer.Option(None, "--api-key", envvar="PAIRBOT_ADMIN_API_KEY", help="Admin API key"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """List pairing codes of a running service"""
    load_dotenv()
    if not api_key:
        console.print("[red]Error:[/red] admin API key required (--api-key or PAIRBOT_ADMIN_API_KEY)")
        raise typer.Exit(1)

    try:
        response = httpx.get(
            f"{_base_url(url)}/admin/codes",
            headers={"X-API-Key": api_key},
            timeout=10.0,
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    codes = data.get("codes", [])
    if json_output:
        console.print(json.dumps(codes, indent=2))
        return

    if not codes:
        console.print("[yellow]No pairing codes[/yellow]")
        return

    table = Table(title="Pairing Codes")
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Phone", style="green")
    table.add_column("Status", style="yellow")
    table.add_column("Created", style="blue")
    table.add_column("Expires", style="blue")

    for record in codes:
        table.add_row(
            record["displayCode"],
            record.get("phoneNumber") or "-",
            record["status"],
            (record.get("createdAt") or "-")[:19],
            (record.get("expiresAt") or "-")[:19],
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(codes)} code(s)[/dim]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
