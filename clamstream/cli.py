from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from clamstream.config import settings
from clamstream.core.exceptions import ClamAVError
from clamstream.core.logging import configure_logging

console = Console()
cli_app = typer.Typer(name="clamstream", help="Stream files to a ClamAV daemon for scanning")

EXIT_INFECTED = 1
EXIT_ERROR = 2


def _client(host: str | None, port: int | None, timeout: float | None):
    from clamstream.services.clamav import ClamAVClient

    try:
        return ClamAVClient(
            host=host or settings.clamav_host,
            port=settings.clamav_port if port is None else port,
            timeout=settings.clamav_timeout if timeout is None else timeout,
            chunk_size=settings.clamav_chunk_size,
        )
    except ClamAVError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=EXIT_ERROR)


@cli_app.callback()
def _setup(
    log_level: str = typer.Option(None, "--log-level", help="debug, info, warning or error"),
):
    configure_logging(log_level or settings.clamav_log_level)


@cli_app.command("ping")
def ping(
    host: str = typer.Option(None, "--host", help="clamd host (default: CLAMAV_HOST)"),
    port: int = typer.Option(None, "--port", help="clamd TCP port (default: CLAMAV_PORT)"),
    timeout: float = typer.Option(None, "--timeout", help="Socket timeout in seconds, 0 for none"),
):
    """Check that clamd answers PING."""
    client = _client(host, port, timeout)
    try:
        alive = client.ping()
    except ClamAVError as e:
        console.print(f"[bold red]clamd unreachable:[/bold red] {e.message}")
        raise typer.Exit(code=EXIT_ERROR)

    if alive:
        console.print(f"[bold green]PONG[/bold green] from {client.host}:{client.port}")
    else:
        console.print(f"[yellow]{client.host}:{client.port} did not answer PONG.[/yellow]")
        raise typer.Exit(code=1)


@cli_app.command("scan")
def scan(
    paths: list[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Files to scan"),
    host: str = typer.Option(None, "--host", help="clamd host (default: CLAMAV_HOST)"),
    port: int = typer.Option(None, "--port", help="clamd TCP port (default: CLAMAV_PORT)"),
    timeout: float = typer.Option(None, "--timeout", help="Socket timeout in seconds, 0 for none"),
):
    """Scan files with INSTREAM, one connection per file."""
    client = _client(host, port, timeout)

    table = Table(title="Scan Results")
    table.add_column("File", style="cyan")
    table.add_column("Verdict")
    table.add_column("MD5", style="dim")
    table.add_column("Reply")

    infected = False
    failed = False
    for path in paths:
        try:
            outcome = client.scan_file(path)
        except (ClamAVError, OSError) as e:
            failed = True
            message = e.message if isinstance(e, ClamAVError) else str(e)
            table.add_row(str(path), "[bold red]error[/bold red]", "—", message)
            continue

        if outcome.is_clean:
            verdict = "[green]clean[/green]"
        else:
            infected = True
            verdict = "[bold red]infected[/bold red]"
        table.add_row(str(path), verdict, outcome.content_hash or "—", outcome.reply_text)

    console.print(table)

    if failed:
        raise typer.Exit(code=EXIT_ERROR)
    if infected:
        raise typer.Exit(code=EXIT_INFECTED)


def main():
    cli_app()


if __name__ == "__main__":
    main()
