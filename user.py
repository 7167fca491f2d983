from __future__ import annotations

from typing import Iterable, List, Optional

from book import BookRef


class User:
    """A registered library member and the ISBNs they currently hold."""

    def __init__(self, user_id: str, name: str, borrowed_isbns: Optional[Iterable[str]] = None) -> None:
        self.user_id = user_id.strip()
        self.name = name.strip()
        self.borrowed_isbns: List[str] = []
        for isbn in borrowed_isbns or []:
            self.borrow(isbn)

    def borrow(self, isbn: str) -> None:
        if isbn not in self.borrowed_isbns:
            self.borrowed_isbns.append(isbn)

    def return_book(self, isbn: str) -> None:
        self.borrowed_isbns = [b for b in self.borrowed_isbns if b != isbn]

    def holds(self, isbn: str) -> bool:
        return isbn in self.borrowed_isbns

    def loans(self) -> List[BookRef]:
        return [BookRef(isbn) for isbn in self.borrowed_isbns]

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} (User ID: {self.user_id})"

    def __repr__(self) -> str:
        return f"User(user_id={self.user_id!r}, name={self.name!r}, borrowed_isbns={self.borrowed_isbns!r})"

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, "name": self.name, "borrowed_isbns": list(self.borrowed_isbns)}

    @staticmethod
    def from_dict(data: dict) -> "User":
        return User(
            user_id=data["user_id"],
            name=data["name"],
            borrowed_isbns=data.get("borrowed_isbns") or [],
        )
