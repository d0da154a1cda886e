import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from book import Book, Genre, Profile, GUEST_USER_ID, format_timestamp, guest_profile, sample_books
from config import Settings, settings
from errors import DuplicateError, NotFoundError, ValidationError
from search import BookQuery, SearchFilters
from database import SQLBackend
from storage import JsonFileStorage, KeyValueBackend, ListingBackend, UnavailableBackend
from validators import ListingValidator, ProfileValidator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListingStore:
    """Owns the book and profile collections plus the current-user pointer.

    Every public method bootstraps first, so a fresh backend is seeded with
    the guest profile and the demonstration listings on first use.
    """

    def __init__(self, backend: Optional[ListingBackend] = None,
                 clock: Callable[[], datetime] = _utcnow,
                 id_factory: Callable[[], str] = lambda: str(uuid.uuid4())) -> None:
        self.clock = clock
        self.id_factory = id_factory
        self.backend = backend if backend is not None else UnavailableBackend.from_clock(clock)

    def _now(self) -> str:
        return format_timestamp(self.clock())

    # ------------------------- Bootstrap ------------------------- #
    def _seed(self):
        now = self._now()
        ids = [self.id_factory() for _ in range(3)]
        return [guest_profile(now)], sample_books(now, ids)

    def bootstrap(self) -> None:
        """Seed missing collections; existing data is never touched."""
        if self.backend.bootstrap(self._seed):
            logger.info(f"Seeded '{self.backend.name}' storage with guest profile and demonstration listings")

    # ------------------------- Listings ------------------------- #
    def list_books(self, genre: Optional[str] = None) -> List[Book]:
        """Unsold books, newest first, optionally limited to one genre."""
        self.bootstrap()
        if genre:
            genre = ListingValidator.parse_choice("genre", genre, Genre)
        return self.backend.query_books(BookQuery(genre=genre))

    def list_books_by_seller(self, seller_id: str) -> List[Book]:
        """Every book the seller listed, sold ones included."""
        self.bootstrap()
        return self.backend.query_books(BookQuery(seller_id=seller_id, include_sold=True))

    def list_my_books(self) -> List[Book]:
        user = self.get_current_user()
        return self.list_books_by_seller(user.id if user else GUEST_USER_ID)

    def get_book(self, book_id: str) -> Book:
        self.bootstrap()
        book = self.backend.get_book(book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    def create_book(self, fields: Dict[str, Any]) -> Book:
        """Validate ``fields`` and list a new book for the current user (or guest)."""
        cleaned = ListingValidator.parse_new_book(fields)
        self.bootstrap()

        user = self.backend.get_session()
        now = self._now()
        book = Book(
            id=self.id_factory(),
            seller_id=user.id if user else GUEST_USER_ID,
            is_sold=False,
            created_at=now,
            updated_at=now,
            **cleaned,
        )
        self.backend.add_book(book)
        logger.info(f"Listed book {book.id} '{book.title}' for seller {book.seller_id}")
        return book

    def update_book(self, book_id: str, fields: Dict[str, Any]) -> Book:
        cleaned = ListingValidator.parse_book_update(fields)
        book = self.get_book(book_id)
        for name, value in cleaned.items():
            setattr(book, name, value)
        book.updated_at = self._now()
        self.backend.save_book(book)
        logger.info(f"Updated book {book_id}: {', '.join(sorted(cleaned))}")
        return book

    def set_sold(self, book_id: str, is_sold: bool) -> Book:
        return self.update_book(book_id, {"is_sold": bool(is_sold)})

    def delete_book(self, book_id: str) -> bool:
        self.get_book(book_id)
        if not self.backend.remove_book(book_id):
            raise NotFoundError("Book not found")
        logger.info(f"Deleted book {book_id}")
        return True

    def search_books(self, query: str = "", filters: Optional[SearchFilters] = None) -> List[Book]:
        """Case-insensitive text search over unsold books, narrowed by ``filters``."""
        if filters is not None:
            filters = SearchFilters(
                genre=ListingValidator.parse_choice("genre", filters.genre, Genre) if filters.genre else None,
                min_price=ListingValidator.parse_price_bound("minimum price", filters.min_price),
                max_price=ListingValidator.parse_price_bound("maximum price", filters.max_price),
            )
        self.bootstrap()
        return self.backend.query_books(BookQuery.from_filters(query or "", filters))

    def market_stats(self) -> Dict[str, Any]:
        """Per-genre price analytics over every listing, sold or not."""
        self.bootstrap()
        books = self.backend.load_books()
        genres = {}
        for genre in Genre:
            prices = [b.price for b in books if b.genre == genre.value]
            genres[genre.value] = {
                "count": len(prices),
                "average_price": round(sum(prices) / len(prices), 2) if prices else 0.0,
                "min_price": min(prices) if prices else 0.0,
                "max_price": max(prices) if prices else 0.0,
            }
        sold = sum(1 for b in books if b.is_sold)
        return {
            "total_books": len(books),
            "available_books": len(books) - sold,
            "sold_books": sold,
            "genres": genres,
        }

    # ------------------------- Identity ------------------------- #
    def get_profile(self, profile_id: str) -> Profile:
        self.bootstrap()
        profile = self.backend.get_profile(profile_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    def login(self, email: str, password: Optional[str] = None) -> Profile:
        """Log in by email.

        The password is not checked: accounts carry no credentials, so any
        password is accepted for a registered email.
        """
        self.bootstrap()
        profile = self.backend.find_profile_by_email(email or "")
        if profile is None:
            raise NotFoundError("User not found. Please sign up.")
        self.backend.set_session(profile)
        logger.info(f"Profile {profile.id} logged in")
        return profile

    def signup(self, email: str, full_name: Optional[str] = None) -> Profile:
        email = ProfileValidator.validate_email(email)
        self.bootstrap()
        if self.backend.find_profile_by_email(email) is not None:
            raise DuplicateError("User with this email already exists")

        now = self._now()
        profile = Profile(
            id=self.id_factory(),
            email=email,
            full_name=(full_name or "").strip() or None,
            created_at=now,
            updated_at=now,
        )
        self.backend.add_profile(profile)
        self.backend.set_session(profile)
        logger.info(f"Created profile {profile.id}")
        return profile

    def logout(self) -> None:
        self.bootstrap()
        self.backend.set_session(None)

    def get_current_user(self) -> Optional[Profile]:
        """The logged-in profile, or None. Callers fall back to the guest themselves."""
        self.bootstrap()
        return self.backend.get_session()

    def close(self) -> None:
        self.backend.close()


def create_store(config: Optional[Settings] = None) -> ListingStore:
    """Build a store with the backend named by ``STORAGE_BACKEND``."""
    config = config or settings
    backend_name = config.storage_backend
    if backend_name == "local":
        backend: ListingBackend = KeyValueBackend(JsonFileStorage(config.data_dir))
    elif backend_name == "sql":
        backend = SQLBackend(config.database_file)
    elif backend_name in ("none", "unavailable"):
        backend = UnavailableBackend.from_clock(_utcnow)
    else:
        raise ValidationError(f"Unknown storage backend '{backend_name}'. Use 'local' or 'sql'.")
    logger.debug(f"Using '{backend.name}' storage backend")
    return ListingStore(backend)
