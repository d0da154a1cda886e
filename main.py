import logging
import os
import subprocess
import sys
import webbrowser
from typing import Optional

import typer

from config import settings
from errors import ListingError
from search import SearchFilters
from store import ListingStore, create_store
from ui_helpers import (
    set_output_mode,
    print_book_result,
    print_list_result,
    print_profile_result,
    print_stats_result,
)

APP_NAME = "Textbook Marketplace CLI"

logger = logging.getLogger(__name__)


class StoreManager:
    """Lazily built, process-wide ListingStore for CLI commands."""

    _instance: Optional[ListingStore] = None

    @classmethod
    def get_instance(cls) -> ListingStore:
        if cls._instance is None:
            cls._instance = create_store()
        return cls._instance

    @classmethod
    def reset(cls, store: Optional[ListingStore] = None) -> None:
        if cls._instance is not None:
            cls._instance.close()
        cls._instance = store


# --- Typer CLI application ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Global CLI options (output mode, logging)."""
    logging.basicConfig(level=logging.DEBUG if verbose else settings.log_level)
    if output:
        set_output_mode(output)


@app.command("list")
def cli_list(genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Only show one genre")):
    """List books for sale, newest first."""
    try:
        books = StoreManager.get_instance().list_books(genre)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print_list_result(books)


@app.command("search")
def cli_search(
    query: str = typer.Argument("", help="Text to find in title, course code or description"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Filter by genre"),
    min_price: Optional[float] = typer.Option(None, "--min-price", help="Lowest price (inclusive)"),
    max_price: Optional[float] = typer.Option(None, "--max-price", help="Highest price (inclusive)"),
):
    """Search books for sale."""
    filters = SearchFilters(genre=genre, min_price=min_price, max_price=max_price)
    try:
        books = StoreManager.get_instance().search_books(query, filters)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print_list_result(books, empty_message="No matching books found.")


@app.command("show")
def cli_show(book_id: str):
    """Show a single listing."""
    try:
        book = StoreManager.get_instance().get_book(book_id)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print_book_result(book)


@app.command("add")
def cli_add(
    title: str = typer.Option(..., "--title", "-t", prompt=True),
    course_code: str = typer.Option(..., "--course-code", "-c", prompt=True),
    price: str = typer.Option(..., "--price", "-p", prompt=True),
    condition: str = typer.Option(..., "--condition", prompt="Condition (Like New, Good, Fair, Poor)"),
    material_type: str = typer.Option(..., "--material-type", prompt="Material type (Textbook, Lab Manual, Notes, Study Guide)"),
    genre: str = typer.Option(..., "--genre", "-g", prompt="Genre (STEM, Business, Arts, Humanities)"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
):
    """List a book for sale as the current user (or guest)."""
    fields = {
        "title": title,
        "course_code": course_code,
        "price": price,
        "condition": condition,
        "material_type": material_type,
        "genre": genre,
        "description": description,
    }
    try:
        book = StoreManager.get_instance().create_book(fields)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print(f"Book listed successfully: {book.title} ({book.id})")


@app.command("update")
def cli_update(
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    course_code: Optional[str] = typer.Option(None, "--course-code", "-c"),
    price: Optional[str] = typer.Option(None, "--price", "-p"),
    condition: Optional[str] = typer.Option(None, "--condition"),
    material_type: Optional[str] = typer.Option(None, "--material-type"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
):
    """Change fields of an existing listing."""
    fields = {
        name: value
        for name, value in {
            "title": title,
            "course_code": course_code,
            "price": price,
            "condition": condition,
            "material_type": material_type,
            "genre": genre,
            "description": description,
        }.items()
        if value is not None
    }
    try:
        book = StoreManager.get_instance().update_book(book_id, fields)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print(f"Updated: {book.title} ({book.id})")


@app.command("sold")
def cli_sold(
    book_id: str,
    available: bool = typer.Option(False, "--available", help="Mark as available again"),
):
    """Mark a listing as sold (or available with --available)."""
    try:
        StoreManager.get_instance().set_sold(book_id, not available)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print(f"Book marked as {'available' if available else 'sold'}")


@app.command("remove")
def cli_remove(book_id: str):
    """Delete a listing."""
    try:
        StoreManager.get_instance().delete_book(book_id)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print(f"Book {book_id} has been removed.")


@app.command("mine")
def cli_mine():
    """List books sold by the current user (or guest), sold ones included."""
    try:
        books = StoreManager.get_instance().list_my_books()
    except ListingError as e:
        print(f"Error: {e}")
        return
    print_list_result(books, empty_message="You have no listings.")


@app.command("stats")
def cli_stats():
    """Show price statistics per genre."""
    try:
        stats = StoreManager.get_instance().market_stats()
    except ListingError as e:
        print(f"Error: {e}")
        return
    print_stats_result(stats)


@app.command("signup")
def cli_signup(email: str, name: Optional[str] = typer.Option(None, "--name", "-n", help="Full name")):
    """Create an account and log in."""
    try:
        profile = StoreManager.get_instance().signup(email, name)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print(f"Account created successfully. Logged in as {profile.email}")


@app.command("login")
def cli_login(email: str, password: str = typer.Option("", "--password", help="Not verified")):
    """Log in with an existing email."""
    try:
        profile = StoreManager.get_instance().login(email, password)
    except ListingError as e:
        print(f"Error: {e}")
        return
    print(f"Login successful. Welcome, {profile.full_name or profile.email}")


@app.command("logout")
def cli_logout():
    """Log out and continue as guest."""
    try:
        StoreManager.get_instance().logout()
    except ListingError as e:
        print(f"Error: {e}")
        return
    print("Logged out.")


@app.command("whoami")
def cli_whoami():
    """Show the logged-in profile."""
    try:
        profile = StoreManager.get_instance().get_current_user()
    except ListingError as e:
        print(f"Error: {e}")
        return
    print_profile_result(profile)


@app.command("serve")
def cli_serve(open_browser: bool = typer.Option(True, "--open/--no-open", help="Open the API docs in a browser")):
    """Start the HTTP API with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}/docs"
    print(f"Starting API on {url}")
    if open_browser:
        try:
            webbrowser.open(url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open browser: {e}")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args, cwd=os.path.dirname(os.path.abspath(__file__)))
    except KeyboardInterrupt:
        print("Server stopped.")


if __name__ == "__main__":
    app()
