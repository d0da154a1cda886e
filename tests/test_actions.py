import pytest

from actions import MarketActions
from store import ListingStore


@pytest.fixture
def actions(store):
    return MarketActions(store)


@pytest.fixture
def form():
    return {
        "title": "Microeconomics",
        "courseCode": "ECN 211",
        "price": "25.00",
        "condition": "Fair",
        "materialType": "Study Guide",
        "genre": "Business",
        "description": "",
    }


def test_create_book_from_form(actions, form):
    result = actions.create_book(form)
    assert result["success"] == "Book listed successfully"
    book = result["data"][0]
    assert book["course_code"] == "ECN 211"
    assert book["material_type"] == "Study Guide"
    assert book["price"] == 25.0
    assert book["description"] is None


def test_create_book_missing_field(actions, form):
    form.pop("courseCode")
    assert actions.create_book(form) == {"error": "All fields except description are required"}


def test_create_book_bad_price(actions, form):
    form["price"] = "twenty"
    assert actions.create_book(form) == {"error": "Invalid price format"}


def test_update_status_and_delete(actions, form):
    book_id = actions.create_book(form)["data"][0]["id"]

    result = actions.update_book_status(book_id, True)
    assert result["success"] == "Book marked as sold"
    assert result["data"][0]["is_sold"] is True
    assert actions.update_book_status(book_id, False)["success"] == "Book marked as available"

    assert actions.delete_book(book_id) == {"success": "Book deleted successfully"}
    assert actions.delete_book(book_id) == {"error": "Book not found"}
    assert actions.update_book_status(book_id, True) == {"error": "Book not found"}


def test_get_books_and_by_user(actions, form):
    actions.signup("sparky@asu.edu", "Sparky")
    actions.create_book(form)

    everything = actions.get_books()
    assert everything["success"] is True
    assert len(everything["data"]) == 4
    assert [b["title"] for b in actions.get_books("Business")["data"]] == ["Microeconomics"]
    assert [b["title"] for b in actions.get_books_by_user()["data"]] == ["Microeconomics"]


def test_search_with_camel_case_filters(actions):
    result = actions.search_books("intro", {"genre": "STEM", "minPrice": 40, "maxPrice": 50})
    assert [b["title"] for b in result["data"]] == ["Introduction to Computer Science"]
    assert "error" in actions.search_books("", {"colour": "red"})


def test_auth_flow(actions):
    assert actions.login("sparky@asu.edu", "pw") == {"error": "User not found. Please sign up."}

    signed_up = actions.signup("sparky@asu.edu", "Sparky")
    assert signed_up["success"] == "Account created successfully"
    assert actions.signup("Sparky@asu.edu", "Again") == {"error": "User with this email already exists"}

    assert actions.logout() == {"success": "Logged out"}
    logged_in = actions.login("sparky@asu.edu", "anything")
    assert logged_in["success"] == "Login successful"
    assert logged_in["data"][0]["id"] == signed_up["data"][0]["id"]


def test_unexpected_errors_become_results(actions, monkeypatch):
    def boom(genre=None):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(actions.store, "list_books", boom)
    assert actions.get_books() == {"error": "An unexpected error occurred: disk on fire"}


def test_unavailable_storage_reports_error(form):
    actions = MarketActions(ListingStore())
    result = actions.create_book(form)
    assert "storage is not available" in result["error"]
    assert len(actions.get_books()["data"]) == 3
