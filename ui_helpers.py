import os
import json
from typing import List, Any, Dict, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable controlling CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "MARKET_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _status(book: Any) -> str:
    return "SOLD" if book.is_sold else "available"

def print_list_result(books: List[Any], empty_message: str = "No books listed.") -> None:
    """Print listings in the current output mode.
    - plain: 'id - Title (COURSE) $price [status]' lines
    - json: array of listing dicts
    - rich: a Rich table
    """
    mode = get_output_mode()

    if not books:
        print(empty_message)
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Listings", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Course", style="white")
        table.add_column("Price", justify="right")
        table.add_column("Condition")
        table.add_column("Genre")
        table.add_column("Status")
        for b in books:
            table.add_row(b.id, b.title, b.course_code, f"${b.price:.2f}", b.condition, b.genre, _status(b))
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} ({b.course_code}) ${b.price:.2f} [{_status(b)}]")

def print_book_result(book: Any) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
        return
    lines = [
        f"Title: {book.title}",
        f"Course: {book.course_code}",
        f"Price: ${book.price:.2f}",
        f"Condition: {book.condition}",
        f"Type: {book.material_type}",
        f"Genre: {book.genre}",
        f"Status: {_status(book)}",
        f"ID: {book.id}",
    ]
    if book.description:
        lines.insert(6, f"Description: {book.description}")
    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="📖 Listing", border_style="blue"))
    else:
        print("\n".join(lines))

def print_profile_result(profile: Optional[Any]) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(profile.to_dict() if profile else None, ensure_ascii=False))
    elif profile is None:
        print("Not logged in (browsing as guest).")
    else:
        print(f"{profile.full_name or '-'} <{profile.email}> (id: {profile.id})")

def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print market statistics in the current output mode.
    - plain: totals followed by one line per genre
    - json: the stats object
    - rich: a table of per-genre prices
    """
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
        return

    genres = stats.get("genres", {})
    if mode == "rich":
        table = Table(title="📊 Market", header_style="bold cyan")
        table.add_column("Genre")
        table.add_column("Listings", justify="right")
        table.add_column("Avg", justify="right")
        table.add_column("Min", justify="right")
        table.add_column("Max", justify="right")
        for name, g in genres.items():
            table.add_row(name, str(g["count"]), f"${g['average_price']:.2f}",
                          f"${g['min_price']:.2f}", f"${g['max_price']:.2f}")
        _console.print(table)
        _console.print(f"[bold]Total:[/] {stats.get('total_books', 0)}  "
                       f"[bold]Available:[/] {stats.get('available_books', 0)}  "
                       f"[bold]Sold:[/] {stats.get('sold_books', 0)}")
    else:
        print(f"Total Books: {stats.get('total_books', 0)}")
        print(f"Available: {stats.get('available_books', 0)}")
        print(f"Sold: {stats.get('sold_books', 0)}")
        for name, g in genres.items():
            print(f"{name}: {g['count']} listed, avg ${g['average_price']:.2f} "
                  f"(min ${g['min_price']:.2f}, max ${g['max_price']:.2f})")
