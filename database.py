"""Text file persistence for the catalog.

Books and users live in two independent line-oriented files:

    title | author | isbn | 1
    user_id | name | isbn1,isbn2,

A backslash escapes the delimiters (and encodes line breaks) inside field
values. Values without them are written verbatim.
"""
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from book import Book
from config import settings
from user import User

logger = logging.getLogger(__name__)

FIELD_SEP = "|"
LIST_SEP = ","
AVAILABLE_FLAG = "1"
BORROWED_FLAG = "0"

_ESCAPES = {"\\": "\\\\", FIELD_SEP: "\\|", LIST_SEP: "\\,", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", FIELD_SEP: FIELD_SEP, LIST_SEP: LIST_SEP, "n": "\n", "r": "\r"}

T = TypeVar("T")


class MalformedPolicy(Enum):
    SKIP = "skip"
    STRICT = "strict"


class ParseError(ValueError):
    """A stored record does not match the expected field layout."""

    def __init__(self, message: str, path: Optional[str] = None, line_no: Optional[int] = None) -> None:
        self.path = path
        self.line_no = line_no
        location = f"{path}:{line_no}: " if path and line_no else ""
        super().__init__(f"{location}{message}")


class StorageUnavailableError(OSError):
    """The storage file could not be written."""
    pass


# ------------------------- Field helpers ------------------------- #
def _escape(value: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def _is_escape(text: str, i: int) -> bool:
    # A backslash before any other character is a literal backslash
    return text[i] == "\\" and i + 1 < len(text) and text[i + 1] in _UNESCAPES


def _unescape(value: str) -> str:
    out = []
    i = 0
    while i < len(value):
        if _is_escape(value, i):
            out.append(_UNESCAPES[value[i + 1]])
            i += 2
            continue
        out.append(value[i])
        i += 1
    return "".join(out)


def _split(line: str, sep: str, maxsplit: int = -1) -> List[str]:
    """Split on unescaped ``sep``. Parts keep their escapes."""
    parts: List[str] = []
    buf: List[str] = []
    i = 0
    while i < len(line):
        ch = line[i]
        if _is_escape(line, i):
            buf.append(line[i:i + 2])
            i += 2
            continue
        if ch == sep and (maxsplit < 0 or len(parts) < maxsplit):
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
        i += 1
    parts.append("".join(buf))
    return parts


def _field(raw: str) -> str:
    return _unescape(raw.strip())


# ------------------------- Record codec ------------------------- #
def encode_book(book: Book) -> str:
    flag = AVAILABLE_FLAG if book.available else BORROWED_FLAG
    return f" {FIELD_SEP} ".join([_escape(book.title), _escape(book.author), _escape(book.isbn), flag])


def decode_book(line: str) -> Book:
    parts = _split(line, FIELD_SEP)
    if len(parts) != 4:
        raise ParseError(f"expected 4 book fields, found {len(parts)}")
    title, author, isbn, flag = parts
    flag = flag.strip()
    if flag not in (AVAILABLE_FLAG, BORROWED_FLAG):
        raise ParseError(f"invalid availability flag {flag!r}")
    return Book.from_dict({
        "title": _field(title),
        "author": _field(author),
        "isbn": _field(isbn),
        "available": flag == AVAILABLE_FLAG,
    })


def encode_user(user: User) -> str:
    borrowed = "".join(f"{_escape(isbn)}{LIST_SEP}" for isbn in user.borrowed_isbns)
    return f"{_escape(user.user_id)} {FIELD_SEP} {_escape(user.name)} {FIELD_SEP} {borrowed}".rstrip()


def decode_user(line: str) -> User:
    parts = _split(line, FIELD_SEP, maxsplit=2)
    if len(parts) != 3:
        raise ParseError("expected user id, name and borrowed list")
    user_id, name, rest = parts
    isbns = [_field(token) for token in _split(rest, LIST_SEP)]
    return User.from_dict({
        "user_id": _field(user_id),
        "name": _field(name),
        "borrowed_isbns": [isbn for isbn in isbns if isbn],
    })


# ------------------------- File I/O ------------------------- #
def _decode_line(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"line is not valid UTF-8: {e.reason} at byte {e.start}") from e


def _read_records(path: str, decode: Callable[[str], T], policy: MalformedPolicy) -> List[T]:
    if not os.path.exists(path):
        logger.info(f"{path} does not exist yet, starting with an empty collection")
        return []
    try:
        with open(path, "rb") as f:
            raw_lines = f.read().split(b"\n")
    except OSError as e:
        logger.warning(f"Could not read {path}, starting with an empty collection: {e}")
        return []

    records: List[T] = []
    for line_no, raw in enumerate(raw_lines, 1):
        if not raw.strip():
            continue
        try:
            records.append(decode(_decode_line(raw.rstrip(b"\r"))))
        except ParseError as e:
            if policy is MalformedPolicy.STRICT:
                raise ParseError(str(e), path=path, line_no=line_no) from e
            logger.warning(f"Skipping malformed record at {path}:{line_no}: {e}")
    logger.info(f"Loaded {len(records)} records from {path}")
    return records


def _write_records(path: str, lines: List[str]) -> None:
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            for line in lines:
                f.write(line + "\n")
    except OSError as e:
        logger.error(f"Failed to write {path}: {e}")
        raise StorageUnavailableError(f"Could not write {path}: {e}") from e
    logger.info(f"Saved {len(lines)} records to {path}")


def load_books(path: Optional[str] = None, policy: Optional[MalformedPolicy] = None) -> List[Book]:
    """Read every book from ``path``. A missing or empty file yields an empty list."""
    policy = policy or MalformedPolicy(settings.malformed_policy)
    return _read_records(path or settings.books_file, decode_book, policy)


def save_books(books: List[Book], path: Optional[str] = None) -> None:
    _write_records(path or settings.books_file, [encode_book(b) for b in books])


def load_users(path: Optional[str] = None, policy: Optional[MalformedPolicy] = None) -> List[User]:
    """Read every user from ``path``. A missing or empty file yields an empty list."""
    policy = policy or MalformedPolicy(settings.malformed_policy)
    return _read_records(path or settings.users_file, decode_user, policy)


def save_users(users: List[User], path: Optional[str] = None) -> None:
    _write_records(path or settings.users_file, [encode_user(u) for u in users])
