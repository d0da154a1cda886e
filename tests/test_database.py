import pytest

from database import SQLBackend, get_db_connection
from store import ListingStore


@pytest.fixture
def db_file(tmp_path):
    return str(tmp_path / "market.db")


@pytest.fixture
def sql_store(db_file, clock):
    return ListingStore(SQLBackend(db_file), clock=clock)


def fetch_status(db_file, book_id):
    conn = get_db_connection(db_file)
    try:
        row = conn.execute("SELECT status FROM books WHERE id = ?", (book_id,)).fetchone()
        return row["status"] if row else None
    finally:
        conn.close()


def test_sold_flag_maps_to_status_column(sql_store, db_file, valid_fields):
    book = sql_store.create_book(valid_fields)
    assert fetch_status(db_file, book.id) == "available"

    sql_store.set_sold(book.id, True)
    assert fetch_status(db_file, book.id) == "sold"
    assert sql_store.get_book(book.id).is_sold is True


def test_seeding_is_recorded_once(sql_store, db_file):
    sql_store.bootstrap()
    conn = get_db_connection(db_file)
    try:
        rows = conn.execute("SELECT collection FROM store_meta ORDER BY collection").fetchall()
    finally:
        conn.close()
    assert [r["collection"] for r in rows] == ["books", "profiles"]


def test_data_survives_new_backend(sql_store, db_file, clock, valid_fields):
    book = sql_store.create_book(valid_fields)
    profile = sql_store.signup("sparky@asu.edu", "Sparky")

    reopened = ListingStore(SQLBackend(db_file), clock=clock)
    assert reopened.get_book(book.id).course_code == "CS101"
    assert reopened.get_current_user().id == profile.id
    assert len(reopened.list_books()) == 4


def test_search_treats_wildcards_literally(sql_store, valid_fields):
    sql_store.create_book(dict(valid_fields, title="100% Pass Guide"))
    assert [b.title for b in sql_store.search_books("100%")] == ["100% Pass Guide"]
    assert sql_store.search_books("_") == []


def test_search_folds_non_ascii_case(sql_store, valid_fields):
    sql_store.create_book(dict(valid_fields, title="ÉTUDES FRANÇAISES", genre="Humanities"))
    assert [b.title for b in sql_store.search_books("études")] == ["ÉTUDES FRANÇAISES"]
