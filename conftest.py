import pytest

from config import settings
from library import Library
from ui_helpers import OUTPUT_MODE_ENV

@pytest.fixture
def storage(tmp_path, monkeypatch):
    # Each test gets its own pair of storage files
    books_file = tmp_path / "BooksFile.txt"
    users_file = tmp_path / "UsersFile.txt"
    monkeypatch.setattr(settings, "books_file", str(books_file))
    monkeypatch.setattr(settings, "users_file", str(users_file))
    monkeypatch.setattr(settings, "duplicate_policy", "allow")
    monkeypatch.setattr(settings, "removal_policy", "leave")
    monkeypatch.setattr(settings, "malformed_policy", "skip")
    # Output mode is reset after each test
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")
    return books_file, users_file

@pytest.fixture
def lib(storage):
    books_file, users_file = storage
    return Library().open(str(books_file), str(users_file))
