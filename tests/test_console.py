"""Tests for the console front end."""
import sys
from types import SimpleNamespace

import pytest

import admin_console
from admin_console import (
    build_parser,
    delete_book,
    display_books,
    display_borrowings,
    force_return,
    match_cli_id,
)
from library_admin.config import Config
from library_admin.parse import parse_books, parse_borrowings, parse_users
from library_admin.session import ACCESS_DENIED_MESSAGE
from tests.conftest import READER, SEED


def snapshot():
    return parse_books(SEED["books"]), parse_borrowings(SEED["borrowings"]), parse_users(SEED["users"])


def test_parser_subcommands():
    """Test that the edit subcommand parses ids and typed fields."""
    parser = build_parser(Config())

    args = parser.parse_args(["--user-id", "1", "edit", "2", "--year", "1999"])

    assert args.command == "edit"
    assert args.book_id == "2"
    assert args.year == 1999
    assert args.title is None


def test_match_cli_id_handles_int_ids():
    """Test that a command-line id matches an integer record id."""
    books = parse_books([{"id": 5, "title": "A"}])

    assert match_cli_id(books, "5") is books[0]
    assert match_cli_id(books, "6") is None


def test_display_books_shows_borrowers(capsys):
    """Test that the books table lists active borrowers by email."""
    books, borrowings, users = snapshot()

    display_books(books, borrowings, users, "table")

    out = capsys.readouterr().out
    assert "Dune" in out
    assert "reader@library.test (#1)" in out


def test_display_books_null_fields(capsys):
    """Test that null title and author render as empty cells."""
    books = parse_books([{"id": "3", "title": None, "author": None, "year": None}])

    display_books(books, [], [], "table")

    assert "N/A" in capsys.readouterr().out


def test_display_borrowings_active_only(capsys):
    """Test that only unreturned borrowings are listed, unknown books by id."""
    books, borrowings, users = snapshot()

    display_borrowings(borrowings, books, users, only_active=True)

    out = capsys.readouterr().out
    assert "Dune" in out
    assert "book 99" in out


def test_delete_command_blocked_for_borrowed_book(api, screen, capsys):
    """Test that deleting a borrowed book alerts and sends nothing."""
    alerts = []
    args = SimpleNamespace(book_id="1", yes=True)

    ok = screen(lambda controller: delete_book(args, controller), alert=alerts.append)

    assert not ok
    assert alerts
    assert api.requests_for("DELETE") == []


def test_force_return_command(api, screen, capsys):
    """Test that force-return reports the return time and writes a log entry."""
    args = SimpleNamespace(borrowing_id="1")

    ok = screen(lambda controller: force_return(args, controller))

    assert ok
    assert "returned at" in capsys.readouterr().out
    assert len(api.data["logs"]) == 1


def test_force_return_command_empty_update_reply(api, screen, capsys):
    """Test that an empty PUT reply still prints the return time."""
    api.serve("PUT", "/borrowings/1", json={})
    args = SimpleNamespace(borrowing_id="1")

    ok = screen(lambda controller: force_return(args, controller))

    assert ok
    out = capsys.readouterr().out
    assert "returned at" in out
    assert "unknown time" not in out


def test_main_denies_non_admin(monkeypatch, capsys):
    """Test that a non-admin user is turned away with exit code 1."""
    monkeypatch.setattr(sys, "argv", ["admin_console.py", "--user-id", "2", "books"])
    monkeypatch.setattr(admin_console, "load_session", lambda client, user_id: READER)

    with pytest.raises(SystemExit) as exc_info:
        admin_console.main()

    assert exc_info.value.code == 1
    assert ACCESS_DENIED_MESSAGE in capsys.readouterr().out
