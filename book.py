from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional


class Book:
    """Represents a single book item in the library."""

    def __init__(self, title: str, author: str, isbn: str, available: bool = True) -> None:
        self.title = title.strip()
        self.author = author.strip()
        self.isbn = isbn.strip()
        self.available = available

    @property
    def status(self) -> str:
        return "Available" if self.available else "Borrowed"

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ISBN: {self.isbn}, Status: {self.status})"

    def __repr__(self) -> str:
        return f"Book(title={self.title!r}, author={self.author!r}, isbn={self.isbn!r}, available={self.available!r})"

    def to_dict(self) -> dict:
        return {"title": self.title, "author": self.author, "isbn": self.isbn, "available": self.available}

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            title=data["title"],
            author=data["author"],
            isbn=data["isbn"],
            available=bool(data.get("available", True)),
        )


@dataclass(frozen=True)
class BookRef:
    """A user's hold on a book, kept by ISBN value only.

    The referenced book may have been removed since; ``resolve`` then returns None.
    """
    isbn: str

    def resolve(self, lookup: Callable[[str], Optional[Book]]) -> Optional[Book]:
        return lookup(self.isbn)
