import logging
import os
import sqlite3
from typing import List, Optional

from dotenv import load_dotenv

from book import Book, Profile
from search import BookQuery
from storage import ListingBackend, SeedFactory, BOOKS_KEY, PROFILES_KEY

# Load .env before reading MARKET_DB_FILE so import order does not matter.
load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_FILE = os.environ.get("MARKET_DB_FILE", "market.db")

BOOK_COLUMNS = (
    "id, title, course_code, price, condition, material_type, genre, "
    "description, seller_id, status, created_at, updated_at"
)
PROFILE_COLUMNS = "id, email, full_name, avatar_url, created_at, updated_at"


def _lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if value is not None else None


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database."""
    conn = sqlite3.connect(db_file or DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    # SQLite's own lower() only folds ASCII; use Python's so both backends agree.
    conn.create_function("py_lower", 1, _lower, deterministic=True)
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the marketplace tables if they don't exist."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                course_code TEXT NOT NULL,
                price REAL NOT NULL CHECK(price >= 0),
                condition TEXT NOT NULL,
                material_type TEXT NOT NULL,
                genre TEXT NOT NULL,
                description TEXT,
                seller_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'available' CHECK(status IN ('available', 'sold')),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL,
                full_name TEXT,
                avatar_url TEXT,
                created_at TEXT,
                updated_at TEXT
            )
        """)
        # Single-row table holding the current session pointer
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS session (
                slot INTEGER PRIMARY KEY CHECK(slot = 1),
                profile_id TEXT
            )
        """)
        # Which collections have been initialized (seeded at least once)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS store_meta (
                collection TEXT PRIMARY KEY,
                initialized_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_profiles_email ON profiles(email COLLATE NOCASE)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(created_at)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_seller_id ON books(seller_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_genre ON books(genre)")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Create the schema; seeding is left to the store's bootstrap."""
    create_tables(db_file)


def _book_params(book: Book) -> tuple:
    return (
        book.id, book.title, book.course_code, book.price, book.condition,
        book.material_type, book.genre, book.description, book.seller_id,
        book.status, book.created_at, book.updated_at,
    )


class SQLBackend(ListingBackend):
    """Table-based adapter: one row per book/profile, 'status' instead of is_sold."""

    name = "sql"

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or DATABASE_FILE
        initialize_database(self.db_file)

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    def bootstrap(self, seed: SeedFactory) -> bool:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT collection FROM store_meta")
            initialized = {row[0] for row in cursor.fetchall()}
            if {PROFILES_KEY, BOOKS_KEY} <= initialized:
                return False
            profiles, books = seed()
            seeded = False
            if PROFILES_KEY not in initialized:
                cursor.executemany(
                    f"INSERT OR IGNORE INTO profiles ({PROFILE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    [(p.id, p.email, p.full_name, p.avatar_url, p.created_at, p.updated_at) for p in profiles],
                )
                cursor.execute("INSERT INTO store_meta (collection) VALUES (?)", (PROFILES_KEY,))
                seeded = True
            if BOOKS_KEY not in initialized:
                cursor.executemany(
                    f"INSERT OR IGNORE INTO books ({BOOK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [_book_params(b) for b in books],
                )
                cursor.execute("INSERT INTO store_meta (collection) VALUES (?)", (BOOKS_KEY,))
                seeded = True
            conn.commit()
            return seeded
        finally:
            conn.close()

    def load_books(self) -> List[Book]:
        conn = self._connect()
        try:
            cursor = conn.execute(f"SELECT {BOOK_COLUMNS} FROM books ORDER BY rowid")
            return [Book.from_dict(dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_book(self, book_id: str) -> Optional[Book]:
        conn = self._connect()
        try:
            row = conn.execute(f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
            return Book.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def query_books(self, query: BookQuery) -> List[Book]:
        clauses: List[str] = []
        params: list = []
        if not query.include_sold:
            clauses.append("status = 'available'")
        if query.seller_id is not None:
            clauses.append("seller_id = ?")
            params.append(query.seller_id)
        if query.genre:
            clauses.append("genre = ?")
            params.append(query.genre)
        if query.min_price is not None:
            clauses.append("price >= ?")
            params.append(query.min_price)
        if query.max_price is not None:
            clauses.append("price <= ?")
            params.append(query.max_price)
        if query.text:
            # instr() instead of LIKE so '%' and '_' in the query match literally
            clauses.append(
                "(instr(py_lower(title), ?) > 0 OR instr(py_lower(course_code), ?) > 0 "
                "OR instr(py_lower(description), ?) > 0)"
            )
            needle = query.text.lower()
            params.extend([needle, needle, needle])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT {BOOK_COLUMNS} FROM books {where} ORDER BY created_at DESC, rowid ASC"
        conn = self._connect()
        try:
            cursor = conn.execute(sql, params)
            return [Book.from_dict(dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()

    def add_book(self, book: Book) -> None:
        conn = self._connect()
        try:
            conn.execute(
                f"INSERT INTO books ({BOOK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _book_params(book),
            )
            conn.commit()
        finally:
            conn.close()

    def save_book(self, book: Book) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                UPDATE books SET title = ?, course_code = ?, price = ?, condition = ?,
                       material_type = ?, genre = ?, description = ?, seller_id = ?,
                       status = ?, updated_at = ?
                WHERE id = ?
                """,
                (book.title, book.course_code, book.price, book.condition, book.material_type,
                 book.genre, book.description, book.seller_id, book.status, book.updated_at, book.id),
            )
            conn.commit()
        finally:
            conn.close()

    def remove_book(self, book_id: str) -> bool:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM books WHERE id = ?", (book_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def load_profiles(self) -> List[Profile]:
        conn = self._connect()
        try:
            cursor = conn.execute(f"SELECT {PROFILE_COLUMNS} FROM profiles ORDER BY rowid")
            return [Profile.from_dict(dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        conn = self._connect()
        try:
            row = conn.execute(f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE id = ?", (profile_id,)).fetchone()
            return Profile.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def find_profile_by_email(self, email: str) -> Optional[Profile]:
        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE py_lower(email) = ?",
                (email.strip().lower(),),
            ).fetchone()
            return Profile.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def add_profile(self, profile: Profile) -> None:
        conn = self._connect()
        try:
            conn.execute(
                f"INSERT INTO profiles ({PROFILE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (profile.id, profile.email, profile.full_name, profile.avatar_url,
                 profile.created_at, profile.updated_at),
            )
            conn.commit()
        finally:
            conn.close()

    def get_session(self) -> Optional[Profile]:
        conn = self._connect()
        try:
            row = conn.execute(
                f"""
                SELECT {', '.join('p.' + c.strip() for c in PROFILE_COLUMNS.split(','))}
                FROM session s JOIN profiles p ON p.id = s.profile_id
                WHERE s.slot = 1
                """
            ).fetchone()
            return Profile.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def set_session(self, profile: Optional[Profile]) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO session (slot, profile_id) VALUES (1, ?) "
                "ON CONFLICT(slot) DO UPDATE SET profile_id = excluded.profile_id",
                (profile.id if profile else None,),
            )
            conn.commit()
        finally:
            conn.close()
