"""Key-value persistence for the listing store.

A persistence capability is anything with ``get(key)`` and ``set(key, value)``
over serialized strings, the same contract as browser local storage. The
``KeyValueBackend`` keeps each collection as one JSON array under its own key
and rewrites the whole array on every mutation.
"""
from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from book import Book, Profile, guest_profile, sample_books, format_timestamp
from errors import StorageUnavailableError
from search import BookQuery, run_query
from validators import ProfileValidator

logger = logging.getLogger(__name__)

BOOKS_KEY = "books"
PROFILES_KEY = "profiles"
SESSION_KEY = "currentUser"

SeedFactory = Callable[[], Tuple[List[Profile], List[Book]]]


class ListingBackend(ABC):
    """Storage contract shared by the key-value and table adapters."""

    name = "abstract"

    @abstractmethod
    def bootstrap(self, seed: SeedFactory) -> bool:
        """Seed collections that do not exist yet from ``seed()``.

        ``seed`` is only called when something is missing. Returns True if
        anything was seeded.
        """

    @abstractmethod
    def load_books(self) -> List[Book]:
        """All books in insertion order."""

    @abstractmethod
    def query_books(self, query: BookQuery) -> List[Book]:
        """Books matching ``query``, newest first, ties in insertion order."""

    @abstractmethod
    def add_book(self, book: Book) -> None: ...

    @abstractmethod
    def save_book(self, book: Book) -> None: ...

    @abstractmethod
    def remove_book(self, book_id: str) -> bool: ...

    @abstractmethod
    def load_profiles(self) -> List[Profile]: ...

    @abstractmethod
    def add_profile(self, profile: Profile) -> None: ...

    @abstractmethod
    def get_session(self) -> Optional[Profile]: ...

    @abstractmethod
    def set_session(self, profile: Optional[Profile]) -> None: ...

    def get_book(self, book_id: str) -> Optional[Book]:
        for book in self.load_books():
            if book.id == book_id:
                return book
        return None

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        for profile in self.load_profiles():
            if profile.id == profile_id:
                return profile
        return None

    def find_profile_by_email(self, email: str) -> Optional[Profile]:
        wanted = ProfileValidator.normalize_email(email)
        for profile in self.load_profiles():
            if ProfileValidator.normalize_email(profile.email) == wanted:
                return profile
        return None

    def close(self) -> None:
        return None


# ------------------------- Persistence capabilities ------------------------- #
class MemoryStorage:
    """Dict-backed capability; lives as long as the process (one session)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStorage:
    """Directory-backed capability: one ``<key>.json`` file per key."""

    def __init__(self, directory: str) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(value)
        os.replace(tmp, path)


# ------------------------- Backends ------------------------- #
class KeyValueBackend(ListingBackend):
    """Whole-collection JSON persistence over a get/set capability."""

    name = "local"

    def __init__(self, storage) -> None:
        self.storage = storage

    def _read(self, key: str):
        raw = self.storage.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def _write(self, key: str, value) -> None:
        self.storage.set(key, json.dumps(value, ensure_ascii=False))

    def bootstrap(self, seed: SeedFactory) -> bool:
        seeded = False
        missing_profiles = self.storage.get(PROFILES_KEY) is None
        missing_books = self.storage.get(BOOKS_KEY) is None
        if missing_profiles or missing_books:
            profiles, books = seed()
        if missing_profiles:
            self._write(PROFILES_KEY, [p.to_dict() for p in profiles])
            seeded = True
        if missing_books:
            self._write(BOOKS_KEY, [b.to_dict() for b in books])
            seeded = True
        if self.storage.get(SESSION_KEY) is None:
            self._write(SESSION_KEY, None)
        return seeded

    def load_books(self) -> List[Book]:
        return [Book.from_dict(item) for item in self._read(BOOKS_KEY) or []]

    def _save_books(self, books: List[Book]) -> None:
        self._write(BOOKS_KEY, [b.to_dict() for b in books])

    def query_books(self, query: BookQuery) -> List[Book]:
        return run_query(self.load_books(), query)

    def add_book(self, book: Book) -> None:
        books = self.load_books()
        books.append(book)
        self._save_books(books)

    def save_book(self, book: Book) -> None:
        books = [book if b.id == book.id else b for b in self.load_books()]
        self._save_books(books)

    def remove_book(self, book_id: str) -> bool:
        books = self.load_books()
        remaining = [b for b in books if b.id != book_id]
        if len(remaining) == len(books):
            return False
        self._save_books(remaining)
        return True

    def load_profiles(self) -> List[Profile]:
        return [Profile.from_dict(item) for item in self._read(PROFILES_KEY) or []]

    def add_profile(self, profile: Profile) -> None:
        profiles = self.load_profiles()
        profiles.append(profile)
        self._write(PROFILES_KEY, [p.to_dict() for p in profiles])

    def get_session(self) -> Optional[Profile]:
        data = self._read(SESSION_KEY)
        return Profile.from_dict(data) if data else None

    def set_session(self, profile: Optional[Profile]) -> None:
        self._write(SESSION_KEY, profile.to_dict() if profile else None)


class UnavailableBackend(ListingBackend):
    """Used when no persistence capability exists.

    Reads fall back to the built-in demonstration data; anything that would
    have to persist raises ``StorageUnavailableError``.
    """

    name = "unavailable"

    def __init__(self, timestamp: str) -> None:
        self._books = sample_books(timestamp)
        self._profiles = [guest_profile(timestamp)]

    @classmethod
    def from_clock(cls, clock) -> "UnavailableBackend":
        return cls(format_timestamp(clock()))

    def _unavailable(self, action: str):
        raise StorageUnavailableError(f"Cannot {action}: storage is not available")

    def bootstrap(self, seed: SeedFactory) -> bool:
        return False

    def load_books(self) -> List[Book]:
        logger.warning("Storage unavailable, serving demonstration listings")
        return [Book.from_dict(b.to_dict()) for b in self._books]

    def query_books(self, query: BookQuery) -> List[Book]:
        return run_query(self.load_books(), query)

    def add_book(self, book: Book) -> None:
        self._unavailable("create listing")

    def save_book(self, book: Book) -> None:
        self._unavailable("update listing")

    def remove_book(self, book_id: str) -> bool:
        self._unavailable("delete listing")

    def load_profiles(self) -> List[Profile]:
        return [Profile.from_dict(p.to_dict()) for p in self._profiles]

    def add_profile(self, profile: Profile) -> None:
        self._unavailable("signup")

    def get_session(self) -> Optional[Profile]:
        return None

    def set_session(self, profile: Optional[Profile]) -> None:
        # nothing to clear
        if profile is None:
            return
        self._unavailable("log in")
