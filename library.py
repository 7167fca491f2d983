import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import database
from book import Book, BookRef
from config import settings
from database import MalformedPolicy
from user import User

logger = logging.getLogger(__name__)


def _normalize_key(raw: str) -> str:
    # Records strip their identity keys on construction
    return (raw or "").strip()


class Status(Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ALREADY_BORROWED = "already_borrowed"
    DUPLICATE = "duplicate"


class DuplicatePolicy(Enum):
    """What happens when an identity key is added twice."""
    ALLOW = "allow"    # keep both, lookups address the first
    REJECT = "reject"


class RemovalPolicy(Enum):
    """How removals reconcile the other side of a loan."""
    LEAVE = "leave"      # user lists may keep dangling ISBNs, held books stay borrowed
    CASCADE = "cascade"


@dataclass
class OpResult:
    """Outcome of a catalog operation: a result code plus display text."""
    status: Status
    message: str

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "message": self.message}


class Library:
    """Manages the books, the registered users and the loans between them.

    Lookups by ISBN or user ID return the first record added with that key.
    Nothing touches storage until ``open`` / ``flush`` are called.
    """

    def __init__(
        self,
        duplicate_policy: Optional[str] = None,
        removal_policy: Optional[str] = None,
        malformed_policy: Optional[str] = None,
    ) -> None:
        self.duplicate_policy = DuplicatePolicy(duplicate_policy or settings.duplicate_policy)
        self.removal_policy = RemovalPolicy(removal_policy or settings.removal_policy)
        self.malformed_policy = MalformedPolicy(malformed_policy or settings.malformed_policy)
        self.books_file: Optional[str] = None
        self.users_file: Optional[str] = None
        self.books: List[Book] = []
        self.users: List[User] = []
        self._books_by_isbn: Dict[str, Book] = {}
        self._users_by_id: Dict[str, User] = {}

    # ------------------------- Lifecycle ------------------------- #
    def open(self, books_file: Optional[str] = None, users_file: Optional[str] = None) -> "Library":
        """Load both collections, replacing whatever is in memory."""
        self.books_file = books_file or settings.books_file
        self.users_file = users_file or settings.users_file
        self.books = database.load_books(self.books_file, self.malformed_policy)
        self.users = database.load_users(self.users_file, self.malformed_policy)
        self._reindex()
        logger.info(f"Opened library with {len(self.books)} books and {len(self.users)} users")
        return self

    def flush(self) -> None:
        """Write both collections back. Raises StorageUnavailableError on failure."""
        database.save_books(self.books, self.books_file)
        database.save_users(self.users, self.users_file)

    def close(self) -> None:
        self.flush()

    def _reindex(self) -> None:
        self._books_by_isbn = {}
        for book in self.books:
            self._books_by_isbn.setdefault(book.isbn, book)
        self._users_by_id = {}
        for user in self.users:
            self._users_by_id.setdefault(user.user_id, user)

    # ------------------------- Books ------------------------- #
    def add_book(self, title: str, author: str, isbn: str) -> OpResult:
        book = Book(title, author, isbn)
        if book.isbn in self._books_by_isbn:
            if self.duplicate_policy is DuplicatePolicy.REJECT:
                return OpResult(Status.DUPLICATE, f"Book with ISBN {book.isbn} already exists.")
            logger.warning(f"Duplicate ISBN {book.isbn} added; lookups will keep using the first copy")
        self.books.append(book)
        self._books_by_isbn.setdefault(book.isbn, book)
        return OpResult(Status.SUCCESS, "Book added successfully.")

    def remove_book(self, isbn: str) -> OpResult:
        isbn = _normalize_key(isbn)
        removed = [b for b in self.books if b.isbn == isbn]
        if removed:
            self.books = [b for b in self.books if b.isbn != isbn]
            self._books_by_isbn.pop(isbn, None)
            if self.removal_policy is RemovalPolicy.CASCADE:
                for user in self.users:
                    user.return_book(isbn)
        return OpResult(Status.SUCCESS, "Book removed (if it existed).")

    def find_book(self, isbn: str) -> Optional[Book]:
        return self._books_by_isbn.get(_normalize_key(isbn))

    def list_books(self) -> Tuple[Book, ...]:
        return tuple(self.books)

    def search_books(self, query: str) -> List[Book]:
        """Search for books by title or author."""
        needle = query.strip().lower()
        return [b for b in self.books if needle in b.title.lower() or needle in b.author.lower()]

    # ------------------------- Users ------------------------- #
    def register_user(self, user_id: str, name: str) -> OpResult:
        user = User(user_id, name)
        if user.user_id in self._users_by_id:
            if self.duplicate_policy is DuplicatePolicy.REJECT:
                return OpResult(Status.DUPLICATE, f"User with ID {user.user_id} already exists.")
            logger.warning(f"Duplicate user ID {user.user_id} registered; lookups will keep using the first")
        self.users.append(user)
        self._users_by_id.setdefault(user.user_id, user)
        return OpResult(Status.SUCCESS, "User registered successfully.")

    def remove_user(self, user_id: str) -> OpResult:
        user_id = _normalize_key(user_id)
        removed = [u for u in self.users if u.user_id == user_id]
        if removed:
            self.users = [u for u in self.users if u.user_id != user_id]
            self._users_by_id.pop(user_id, None)
            if self.removal_policy is RemovalPolicy.CASCADE:
                for user in removed:
                    for isbn in user.borrowed_isbns:
                        book = self.find_book(isbn)
                        if book:
                            book.available = True
        return OpResult(Status.SUCCESS, "User removed (if existed).")

    def find_user(self, user_id: str) -> Optional[User]:
        return self._users_by_id.get(_normalize_key(user_id))

    def list_users(self) -> Tuple[User, ...]:
        return tuple(self.users)

    def borrowed_books(self, user_id: str) -> List[Tuple[BookRef, Optional[Book]]]:
        """A user's loans with the book each one resolves to (None when dangling)."""
        user = self.find_user(user_id)
        if not user:
            return []
        return [(ref, ref.resolve(self.find_book)) for ref in user.loans()]

    # ------------------------- Loans ------------------------- #
    def borrow_book(self, user_id: str, isbn: str) -> OpResult:
        user = self.find_user(user_id)
        book = self.find_book(isbn)
        if not user or not book:
            return OpResult(Status.NOT_FOUND, "User or Book not found.")
        if not book.available:
            return OpResult(Status.ALREADY_BORROWED, "Book is already borrowed.")
        user.borrow(book.isbn)
        book.available = False
        return OpResult(Status.SUCCESS, "Book borrowed successfully.")

    def return_book(self, user_id: str, isbn: str) -> OpResult:
        # Accepted even when this user never held the book.
        user = self.find_user(user_id)
        book = self.find_book(isbn)
        if not user or not book:
            return OpResult(Status.NOT_FOUND, "User or Book not found.")
        user.return_book(book.isbn)
        book.available = True
        return OpResult(Status.SUCCESS, "Book returned successfully.")

    # ------------------------- Reporting ------------------------- #
    def get_statistics(self) -> Dict[str, Any]:
        """Get library statistics."""
        borrowed = sum(1 for b in self.books if not b.available)
        return {
            "total_books": len(self.books),
            "available_books": len(self.books) - borrowed,
            "borrowed_books": borrowed,
            "total_users": len(self.users),
            "unique_authors": len({b.author for b in self.books}),
        }

    def check_integrity(self) -> List[str]:
        """List every place where book availability and user loans disagree.

        A borrowed book should be held by exactly one user, an available book
        by none, and every held ISBN should name a book in the catalog. Copies
        sharing an ISBN (shadowed duplicates included) are checked together:
        each borrowed copy needs its own holder.
        """
        problems: List[str] = []
        copies: Dict[str, List[Book]] = {}
        for book in self.books:
            copies.setdefault(book.isbn, []).append(book)
        for isbn, group in copies.items():
            holders = [u.user_id for u in self.users if u.holds(isbn)]
            borrowed = sum(1 for b in group if not b.available)
            if not borrowed and holders:
                problems.append(f"Book {isbn} is available but held by {', '.join(holders)}")
            elif borrowed and borrowed != len(holders):
                if len(group) == 1:
                    problems.append(f"Book {isbn} is borrowed but held by {len(holders)} users")
                else:
                    problems.append(f"{borrowed} copies of book {isbn} are borrowed but held by {len(holders)} users")
        for user in self.users:
            for ref in user.loans():
                if ref.resolve(self.find_book) is None:
                    problems.append(f"User {user.user_id} holds unknown ISBN {ref.isbn}")
        return problems
