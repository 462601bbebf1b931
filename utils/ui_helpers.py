import json
import os
from typing import Any, List

from rich import box
from rich.console import Console
from rich.table import Table

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "READING_LOG_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _stars(rating: Any) -> str:
    return "★" * rating if rating else "-"

def print_list_result(books: List[Any]) -> None:
    """Print the book list in the current output mode.
    - plain: '[id] Title by Author (rating/5, read date)' lines, or 'No books in library.'
    - json: JSON array of the stored fields
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        payload = [
            {k: v for k, v in b.to_dict().items() if k != "cover_url"}
            for b in books
        ]
        print(json.dumps(payload, ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Reading Log", box=box.SIMPLE_HEAVY, header_style="bold cyan")
        table.add_column("ID", style="magenta", justify="right", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Rating", style="yellow")
        table.add_column("Read", style="green", no_wrap=True)
        for b in books:
            table.add_row(str(b.id), b.title, b.author, _stars(b.rating), b.date_read or "-")
        _console.print(table)
    else:
        for b in books:
            rating = f"{b.rating}/5" if b.rating else "unrated"
            read = b.date_read or "no date"
            print(f"[{b.id}] {b.title} by {b.author} ({rating}, {read})")
