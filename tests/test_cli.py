import json

import pytest
from typer.testing import CliRunner
from unittest.mock import patch

from main import app, StoreManager

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_store(store):
    StoreManager.reset(store)
    yield store
    StoreManager._instance = None


def add_args(title="Organic Chemistry", price="40"):
    return ["add", "--title", title, "--course-code", "CHM 233", "--price", price,
            "--condition", "Good", "--material-type", "Textbook", "--genre", "STEM"]


def test_list_shows_demo_books():
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "Introduction to Computer Science (CSE 110) $45.99 [available]" in result.stdout


def test_list_json_output():
    result = runner.invoke(app, ["--output", "json", "list", "--genre", "Humanities"])
    assert result.exit_code == 0
    books = json.loads(result.stdout.strip().splitlines()[-1])
    assert [b["course_code"] for b in books] == ["PSY 101"]


def test_list_empty_genre():
    result = runner.invoke(app, ["list", "--genre", "Arts"])
    assert "No books listed." in result.stdout


def test_add_book_success(cli_store):
    result = runner.invoke(app, add_args())
    assert result.exit_code == 0
    assert "Book listed successfully: Organic Chemistry" in result.stdout
    assert cli_store.list_books()[0].title == "Organic Chemistry"


def test_add_book_invalid_price():
    result = runner.invoke(app, add_args(price="lots"))
    assert result.exit_code == 0
    assert "Error: Invalid price format" in result.stdout


def test_search_with_price_filter():
    result = runner.invoke(app, ["search", "intro", "--max-price", "40"])
    assert result.exit_code == 0
    assert "Introduction to Psychology" in result.stdout
    assert "Introduction to Computer Science" not in result.stdout


def test_search_no_results():
    result = runner.invoke(app, ["search", "astrophysics"])
    assert "No matching books found." in result.stdout


def test_sold_and_remove(cli_store):
    book = cli_store.create_book({"title": "Temp", "course_code": "TMP 100", "price": 1,
                                  "condition": "Poor", "material_type": "Notes", "genre": "Arts"})

    result = runner.invoke(app, ["sold", book.id])
    assert "Book marked as sold" in result.stdout
    assert cli_store.get_book(book.id).is_sold is True

    result = runner.invoke(app, ["remove", book.id])
    assert f"Book {book.id} has been removed." in result.stdout

    result = runner.invoke(app, ["remove", book.id])
    assert "Error: Book not found" in result.stdout


def test_update_book(cli_store):
    book = cli_store.list_books()[0]
    result = runner.invoke(app, ["update", book.id, "--price", "12"])
    assert result.exit_code == 0
    assert cli_store.get_book(book.id).price == 12.0


def test_show_book(cli_store):
    book = cli_store.search_books("calculus")[0]
    result = runner.invoke(app, ["show", book.id])
    assert "Title: Calculus for Engineers" in result.stdout
    assert "Condition: Like New" in result.stdout


def test_account_commands():
    result = runner.invoke(app, ["whoami"])
    assert "Not logged in" in result.stdout

    result = runner.invoke(app, ["signup", "sparky@asu.edu", "--name", "Sparky"])
    assert "Account created successfully" in result.stdout

    result = runner.invoke(app, ["signup", "SPARKY@asu.edu"])
    assert "Error: User with this email already exists" in result.stdout

    result = runner.invoke(app, ["whoami"])
    assert "Sparky <sparky@asu.edu>" in result.stdout

    runner.invoke(app, add_args())
    result = runner.invoke(app, ["mine"])
    assert "Organic Chemistry" in result.stdout
    assert "Calculus for Engineers" not in result.stdout

    assert "Logged out." in runner.invoke(app, ["logout"]).stdout
    result = runner.invoke(app, ["login", "nobody@asu.edu"])
    assert "Error: User not found. Please sign up." in result.stdout
    result = runner.invoke(app, ["login", "sparky@asu.edu"])
    assert "Login successful. Welcome, Sparky" in result.stdout


def test_stats():
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Total Books: 3" in result.stdout
    assert "Humanities: 1 listed, avg $30.50" in result.stdout


@patch("subprocess.run")
@patch("webbrowser.open")
def test_serve_command(mock_webbrowser_open, mock_subprocess_run):
    result = runner.invoke(app, ["serve"])
    assert result.exit_code == 0
    assert "Starting API on" in result.stdout
    mock_webbrowser_open.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "api:app" in args
    assert "--host" in args
    assert "--port" in args
