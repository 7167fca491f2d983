import os
import json
from typing import Any, Dict, Iterable, List
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_book_list(books: Iterable[Any]) -> None:
    """Print books in the current output mode.
    - plain: 'Title: ..., Author: ..., ISBN: ..., Status: ...' lines, or 'No books in library.'
    - json: array of book objects
    - rich: table
    """
    books = list(books)
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan")
        table.add_column("ISBN", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Status")
        for b in books:
            status = "[green]Available[/]" if b.available else "[red]Borrowed[/]"
            table.add_row(b.isbn, b.title, b.author, status)
        _console.print(table)
    else:
        for b in books:
            print(f"Title: {b.title}, Author: {b.author}, ISBN: {b.isbn}, Status: {b.status}")

def print_user_list(users: Iterable[Any]) -> None:
    users = list(users)
    mode = get_output_mode()

    if not users:
        print("No registered users.")
        return

    if mode == "json":
        print(json.dumps([u.to_dict() for u in users], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Users", show_lines=True, header_style="bold cyan")
        table.add_column("User ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Borrowed Books", style="white")
        for u in users:
            table.add_row(u.user_id, u.name, "\n".join(u.borrowed_isbns) or "-")
        _console.print(table)
    else:
        for u in users:
            print(f"User ID: {u.user_id}, Name: {u.name}")
            print("Borrowed Books:")
            for isbn in u.borrowed_isbns:
                print(f" - {isbn}")

def print_stats_result(stats: Dict[str, Any]) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{key.replace('_', ' ').title()}:[/] {value}" for key, value in stats.items())
        _console.print(Panel.fit(content, title="Stats", border_style="blue"))
    else:
        for key, value in stats.items():
            print(f"{key.replace('_', ' ').title()}: {value}")

def print_problems(problems: List[str]) -> None:
    if get_output_mode() == "json":
        print(json.dumps({"consistent": not problems, "problems": problems}, ensure_ascii=False))
        return
    if not problems:
        print("Catalog is consistent.")
        return
    for problem in problems:
        print(f"! {problem}")
