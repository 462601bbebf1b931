import subprocess
import sys
from typing import Optional

import typer
from rich.console import Console

from config import configure_logging, settings
from database import Database
from library import DEFAULT_SORT, SORT_ORDERS, Library
from utils.ui_helpers import print_list_result, set_output_mode

APP_NAME = "Reading Log CLI"

console = Console()

app = typer.Typer(help=APP_NAME)


def _library() -> Library:
    db = Database(settings.db_file)
    db.initialize()
    return Library(db)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    configure_logging("WARNING")
    if output:
        set_output_mode(output)


@app.command("init-db")
def cli_init_db():
    """Create the books table in the configured database."""
    Database(settings.db_file).initialize()
    print(f"Database ready: {settings.db_file}")


@app.command("list")
def cli_list(
    sort: str = typer.Option(DEFAULT_SORT, "--sort", "-s", help="recent | rating_desc | rating_asc | title"),
    q: Optional[str] = typer.Option(None, "--q", "-q", help="Only books whose title or author contains this"),
):
    """List books from the reading log."""
    if sort not in SORT_ORDERS:
        console.print(f"[bold red]Unknown sort:[/] {sort}. Choose from: {', '.join(SORT_ORDERS)}")
        raise typer.Exit(code=2)
    print_list_result(_library().list_books(q=q, sort=sort))


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Start the web interface with uvicorn."""
    print(f"Starting web UI on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        args.append("--reload")
    try:
        subprocess.run(args, check=False)
    except FileNotFoundError:
        console.print("[bold red]Error:[/] could not start `uvicorn`. Make sure it is installed.")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
