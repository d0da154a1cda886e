"""In-memory query engine over book collections.

The key-value backend evaluates every query with these helpers; the table
backend translates the same ``BookQuery`` into SQL and must agree with them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from book import Book, parse_timestamp


@dataclass
class SearchFilters:
    genre: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None


@dataclass
class BookQuery:
    text: str = ""
    genre: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    seller_id: Optional[str] = None
    include_sold: bool = False

    @classmethod
    def from_filters(cls, text: str, filters: Optional[SearchFilters]) -> "BookQuery":
        filters = filters or SearchFilters()
        return cls(text=text or "", genre=filters.genre,
                   min_price=filters.min_price, max_price=filters.max_price)


def matches_text(book: Book, text: str) -> bool:
    """Case-insensitive substring match on title, course code or description."""
    if not text:
        return True
    needle = text.lower()
    return (
        needle in book.title.lower()
        or needle in book.course_code.lower()
        or (book.description is not None and needle in book.description.lower())
    )


def matches(book: Book, query: BookQuery) -> bool:
    if book.is_sold and not query.include_sold:
        return False
    if query.seller_id is not None and book.seller_id != query.seller_id:
        return False
    if query.genre and book.genre != query.genre:
        return False
    if query.min_price is not None and book.price < query.min_price:
        return False
    if query.max_price is not None and book.price > query.max_price:
        return False
    return matches_text(book, query.text)


def newest_first(books: Iterable[Book]) -> List[Book]:
    # sorted() is stable, so equal timestamps keep insertion order
    return sorted(books, key=lambda b: parse_timestamp(b.created_at), reverse=True)


def run_query(books: Iterable[Book], query: BookQuery) -> List[Book]:
    return newest_first(b for b in books if matches(b, query))
