"""Form-facing actions that never raise.

Each method returns ``{"success": message, "data": [...]}`` or
``{"error": message}`` so a page or form handler can show the outcome
directly. Store errors become the error message; anything unexpected is
logged and reported as such.
"""
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from errors import ListingError, ValidationError
from search import SearchFilters
from store import ListingStore

logger = logging.getLogger(__name__)

Result = Dict[str, Any]

# form field name -> listing field name
FORM_FIELDS = {
    "title": "title",
    "courseCode": "course_code",
    "price": "price",
    "condition": "condition",
    "materialType": "material_type",
    "genre": "genre",
    "description": "description",
}


def _ok(message: Optional[str] = None, data: Any = None) -> Result:
    result: Result = {"success": message or True}
    if data is not None:
        result["data"] = data
    return result


def _error(message: str) -> Result:
    return {"error": message}


class MarketActions:

    def __init__(self, store: ListingStore) -> None:
        self.store = store

    def _run(self, operation: Callable[[], Result]) -> Result:
        try:
            return operation()
        except ListingError as e:
            return _error(str(e))
        except Exception as e:
            logger.exception("Unexpected error in marketplace action")
            return _error(f"An unexpected error occurred: {str(e) or 'Unknown error'}")

    def get_books(self, genre: Optional[str] = None) -> Result:
        return self._run(lambda: _ok(data=[b.to_dict() for b in self.store.list_books(genre)]))

    def get_books_by_user(self) -> Result:
        return self._run(lambda: _ok(data=[b.to_dict() for b in self.store.list_my_books()]))

    def create_book(self, form: Mapping[str, Any]) -> Result:
        fields = {name: form.get(key) for key, name in FORM_FIELDS.items()}

        def create() -> Result:
            book = self.store.create_book(fields)
            return _ok("Book listed successfully", [book.to_dict()])

        return self._run(create)

    def update_book_status(self, book_id: str, is_sold: bool) -> Result:
        def update() -> Result:
            book = self.store.set_sold(book_id, is_sold)
            return _ok(f"Book marked as {'sold' if is_sold else 'available'}", [book.to_dict()])

        return self._run(update)

    def delete_book(self, book_id: str) -> Result:
        def delete() -> Result:
            self.store.delete_book(book_id)
            return _ok("Book deleted successfully")

        return self._run(delete)

    def search_books(self, query: str, filters: Optional[Mapping[str, Any]] = None) -> Result:
        def search() -> Result:
            parsed = None
            if filters:
                unknown = set(filters) - {"genre", "minPrice", "maxPrice"}
                if unknown:
                    raise ValidationError(f"Unknown filter(s): {', '.join(sorted(unknown))}")
                parsed = SearchFilters(
                    genre=filters.get("genre"),
                    min_price=filters.get("minPrice"),
                    max_price=filters.get("maxPrice"),
                )
            return _ok(data=[b.to_dict() for b in self.store.search_books(query, parsed)])

        return self._run(search)

    def login(self, email: str, password: str) -> Result:
        def login() -> Result:
            profile = self.store.login(email, password)
            return _ok("Login successful", [profile.to_dict()])

        return self._run(login)

    def signup(self, email: str, full_name: str) -> Result:
        def signup() -> Result:
            profile = self.store.signup(email, full_name)
            return _ok("Account created successfully", [profile.to_dict()])

        return self._run(signup)

    def logout(self) -> Result:
        def logout() -> Result:
            self.store.logout()
            return _ok("Logged out")

        return self._run(logout)
