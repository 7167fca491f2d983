import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

import typer

from config import settings
from database import ParseError, StorageUnavailableError
from library import Library, OpResult
from ui_helpers import (
    print_book_list,
    print_problems,
    print_stats_result,
    print_user_list,
    set_output_mode,
)

logging.basicConfig(level=getattr(logging, settings.log_level, logging.WARNING))

app = typer.Typer(help=settings.app_name)

# Storage locations chosen by the global options of the current invocation
_storage: Dict[str, Optional[str]] = {"books_file": None, "users_file": None}


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    books_file: Optional[str] = typer.Option(None, "--books-file", help="Books storage file"),
    users_file: Optional[str] = typer.Option(None, "--users-file", help="Users storage file"),
):
    """Global CLI options (output mode and storage files)."""
    if output:
        set_output_mode(output)
    _storage["books_file"] = books_file
    _storage["users_file"] = users_file


@contextmanager
def library_session() -> Iterator[Library]:
    """Open the library from the configured files for a single command."""
    try:
        lib = Library().open(_storage["books_file"], _storage["users_file"])
    except ParseError as e:
        print(f"Could not load library: {e}")
        raise typer.Exit(code=1)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        raise typer.Exit(code=1)
    yield lib


def _report_and_save(lib: Library, result: OpResult) -> None:
    print(result.message)
    if not result.ok:
        return
    try:
        lib.flush()
    except StorageUnavailableError as e:
        print(f"Error: changes were not saved: {e}")
        raise typer.Exit(code=1)


# ------------------------- Books ------------------------- #
@app.command("add")
def cli_add(title: str, author: str, isbn: str):
    """Add a book to the catalog."""
    with library_session() as lib:
        _report_and_save(lib, lib.add_book(title, author, isbn))


@app.command("remove")
def cli_remove(isbn: str):
    """Remove every book with the given ISBN."""
    with library_session() as lib:
        _report_and_save(lib, lib.remove_book(isbn))


@app.command("list")
def cli_list():
    """List all books."""
    with library_session() as lib:
        print_book_list(lib.list_books())


@app.command("search")
def cli_search(query: str):
    """Search books by title or author."""
    with library_session() as lib:
        print_book_list(lib.search_books(query))


@app.command("find")
def cli_find(isbn: str):
    """Find a book by ISBN and show its details."""
    with library_session() as lib:
        book = lib.find_book(isbn)
        if not book:
            print(f"Book with ISBN {isbn} not found.")
            return
        print("Book Found")
        print(f"Title: {book.title}")
        print(f"Author: {book.author}")
        print(f"ISBN: {book.isbn}")
        print(f"Status: {book.status}")


# ------------------------- Users ------------------------- #
@app.command("register")
def cli_register(user_id: str, name: str):
    """Register a new user."""
    with library_session() as lib:
        _report_and_save(lib, lib.register_user(user_id, name))


@app.command("remove-user")
def cli_remove_user(user_id: str):
    """Remove every user with the given ID."""
    with library_session() as lib:
        _report_and_save(lib, lib.remove_user(user_id))


@app.command("users")
def cli_users():
    """List all users and the books they hold."""
    with library_session() as lib:
        print_user_list(lib.list_users())


@app.command("loans")
def cli_loans(user_id: str):
    """Show the books a user currently holds."""
    with library_session() as lib:
        if not lib.find_user(user_id):
            print(f"User with ID {user_id} not found.")
            return
        loans = lib.borrowed_books(user_id)
        if not loans:
            print(f"User {user_id} has no borrowed books.")
            return
        for ref, book in loans:
            if book:
                print(f" - {ref.isbn}: {book.title} by {book.author}")
            else:
                print(f" - {ref.isbn}: (no longer in catalog)")


# ------------------------- Loans ------------------------- #
@app.command("borrow")
def cli_borrow(user_id: str, isbn: str):
    """Lend a book to a user."""
    with library_session() as lib:
        _report_and_save(lib, lib.borrow_book(user_id, isbn))


@app.command("return")
def cli_return(user_id: str, isbn: str):
    """Take a book back from a user."""
    with library_session() as lib:
        _report_and_save(lib, lib.return_book(user_id, isbn))


# ------------------------- Reporting ------------------------- #
@app.command("stats")
def cli_stats():
    """Show library statistics."""
    with library_session() as lib:
        print_stats_result(lib.get_statistics())


@app.command("check")
def cli_check():
    """Report books and loans that disagree with each other."""
    with library_session() as lib:
        problems = lib.check_integrity()
        print_problems(problems)
        if problems:
            raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
