#!/usr/bin/env python3
"""Library Admin console - book management screen over the library API."""
import argparse
import asyncio
import sys
import json
from tabulate import tabulate
from library_admin.client import LibraryStoreClient, StoreError
from library_admin.async_client import AsyncLibraryStoreClient
from library_admin.controller import BookManagementController
from library_admin.parse import (
    parse_books,
    parse_borrowings,
    parse_users,
    find_by_id,
    active_borrowings_for_book,
)
from library_admin.session import ACCESS_DENIED_MESSAGE, load_session
from library_admin.config import Config
import logging

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def show_alert(message: str):
    """Blocking message for the administrator."""
    print(f"\n!! {message}\n")


def match_cli_id(records, raw_id: str):
    """Find a record whose id matches a command-line id (ids may be int or str)."""
    return next((r for r in records if str(r.id) == raw_id), None)


def display_books(books, borrowings, users, format_type: str):
    """Display book cards with their active borrowings."""
    if format_type == "table":
        headers = ["ID", "Title", "Author", "Year", "Copies", "Borrowed by"]
        rows = []
        for book in books:
            borrowers = []
            for borrowing in active_borrowings_for_book(borrowings, book.id):
                user = find_by_id(users, borrowing.user_id)
                who = user.email if user else f"user {borrowing.user_id}"
                borrowers.append(f"{who} (#{borrowing.id})")
            rows.append([
                book.id,
                book.title[:50] + "..." if len(book.title) > 50 else book.title,
                book.author[:30] + "..." if len(book.author) > 30 else book.author,
                book.year if book.year is not None else "N/A",
                book.copies if book.copies is not None else "N/A",
                "\n".join(borrowers) or "-"
            ])
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        print(json.dumps([book.to_payload() for book in books], indent=2))

    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.author}")


def display_borrowings(borrowings, books, users, only_active: bool):
    """Display borrowings with resolved book titles and user emails."""
    headers = ["ID", "Book", "User", "Borrowed", "Returned"]
    rows = []
    for borrowing in borrowings:
        if only_active and not borrowing.is_active:
            continue
        book = find_by_id(books, borrowing.book_id)
        user = find_by_id(users, borrowing.user_id)
        rows.append([
            borrowing.id,
            book.title if book else f"book {borrowing.book_id}",
            user.email if user else f"user {borrowing.user_id}",
            borrowing.borrow_date or "Unknown",
            borrowing.return_date or "-"
        ])
    print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))


def fetch_snapshot(client: LibraryStoreClient):
    """Read books, borrowings and users with the blocking client."""
    books = parse_books(client.list("books"))
    borrowings = parse_borrowings(client.list("borrowings"))
    users = parse_users(client.list("users"))
    return books, borrowings, users


def list_books(args, config: Config, client: LibraryStoreClient):
    """Show the book list."""
    books, borrowings, users = fetch_snapshot(client)
    logger.info(f"Found {len(books)} books")
    display_books(books, borrowings, users, args.format)
    return True


def list_borrowings(args, config: Config, client: LibraryStoreClient):
    """Show borrowings."""
    books, borrowings, users = fetch_snapshot(client)
    display_borrowings(borrowings, books, users, args.active)
    return True


async def add_book(args, controller: BookManagementController):
    """Submit the new-book form."""
    controller.change_new_book(
        title=args.title,
        author=args.author,
        description=args.description,
        year=args.year,
        copies=args.copies
    )
    result = await controller.add_book()
    if result.ok:
        print(f"✅ Added '{args.title}'")
    else:
        print(f"❌ {result.error}")
    return result.ok


async def edit_book(args, controller: BookManagementController):
    """Edit one book in place."""
    await controller.load()
    book = match_cli_id(controller.books, args.book_id)
    if book is None:
        print(f"❌ No book with id {args.book_id}")
        return False

    controller.start_edit(book)
    changes = {
        name: getattr(args, name)
        for name in ("title", "author", "description", "year", "copies")
        if getattr(args, name) is not None
    }
    controller.change_edit(**changes)
    result = await controller.update_book()
    if result.ok:
        print(f"✅ Updated book {book.id}")
    else:
        print(f"❌ {result.error}")
    return result.ok


async def delete_book(args, controller: BookManagementController):
    """Delete one book after confirmation."""
    await controller.load()
    book = match_cli_id(controller.books, args.book_id)
    if book is None:
        print(f"❌ No book with id {args.book_id}")
        return False

    controller.start_delete(book)
    if not args.yes:
        answer = input(f"Delete '{book.title}' by {book.author}? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            controller.close_delete_dialog()
            print("Cancelled")
            return True

    result = await controller.delete_book(controller.book_to_delete)
    if result.ok:
        print(f"✅ Deleted book {book.id}")
    elif result.message is None:
        print(f"❌ {result.error}")
    return result.ok


async def force_return(args, controller: BookManagementController):
    """Force the return of a borrowing."""
    await controller.load()
    borrowing = match_cli_id(controller.borrowings, args.borrowing_id)
    borrowing_id = borrowing.id if borrowing else args.borrowing_id

    result = await controller.force_return(borrowing_id)
    if not result.ok:
        print(f"❌ {result.error}")
        return False

    returned_at = result.borrowing.return_date if result.borrowing else "unknown time"
    print(f"✅ Borrowing {borrowing_id} returned at {returned_at}")
    if not result.log_written:
        print("⚠️  No audit log entry was written")
    return True


async def run_screen(handler, args, config: Config, session):
    """Mount the book management screen and dispatch one intent."""
    async with AsyncLibraryStoreClient(
        base_url=args.api_url,
        timeout=config.REQUEST_TIMEOUT
    ) as client:
        controller = BookManagementController(
            client,
            session,
            admin_role=config.ADMIN_ROLE,
            alert=show_alert
        )
        return await handler(args, controller)


SYNC_COMMANDS = {
    "books": list_books,
    "borrowings": list_borrowings,
}

SCREEN_COMMANDS = {
    "add": add_book,
    "edit": edit_book,
    "delete": delete_book,
    "force-return": force_return,
}


def build_parser(config: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Library Admin - book management over the library API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List books with their active borrowings
  %(prog)s --user-id 1 books

  # Add a book
  %(prog)s --user-id 1 add --title "Dune" --author "Frank Herbert" --year 1965 --copies 3

  # Force the return of an overdue borrowing
  %(prog)s --user-id 1 force-return 7
        """
    )
    parser.add_argument("--user-id", default=config.SESSION_USER_ID, help="Signed-in user id (default: $SESSION_USER_ID)")
    parser.add_argument("--api-url", default=config.API_URL, help=f"API origin (default: {config.API_URL})")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Books command
    books_parser = subparsers.add_parser("books", help="List books")
    books_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    # Borrowings command
    borrowings_parser = subparsers.add_parser("borrowings", help="List borrowings")
    borrowings_parser.add_argument("--active", action="store_true", help="Only borrowings not yet returned")

    # Add command
    add_parser = subparsers.add_parser("add", help="Add a book")
    add_parser.add_argument("--title", required=True, help="Title")
    add_parser.add_argument("--author", required=True, help="Author")
    add_parser.add_argument("--description", default="", help="Description")
    add_parser.add_argument("--year", required=True, help="Publication year")
    add_parser.add_argument("--copies", required=True, help="Number of copies")

    # Edit command
    edit_parser = subparsers.add_parser("edit", help="Edit a book")
    edit_parser.add_argument("book_id", help="Book id")
    edit_parser.add_argument("--title", help="New title")
    edit_parser.add_argument("--author", help="New author")
    edit_parser.add_argument("--description", help="New description")
    edit_parser.add_argument("--year", type=int, help="New publication year")
    edit_parser.add_argument("--copies", type=int, help="New number of copies")

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a book")
    delete_parser.add_argument("book_id", help="Book id")
    delete_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    # Force-return command
    return_parser = subparsers.add_parser("force-return", help="Force the return of a borrowing")
    return_parser.add_argument("borrowing_id", help="Borrowing id")

    return parser


def main():
    """Main CLI entry point."""
    config = Config()
    configure_logging(config.LOG_LEVEL)

    parser = build_parser(config)
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        with LibraryStoreClient(base_url=args.api_url, timeout=config.REQUEST_TIMEOUT) as client:
            session = load_session(client, args.user_id)
            if not session.is_admin(config.ADMIN_ROLE):
                print(ACCESS_DENIED_MESSAGE)
                sys.exit(1)

            if args.command in SYNC_COMMANDS:
                ok = SYNC_COMMANDS[args.command](args, config, client)
            else:
                ok = asyncio.run(run_screen(SCREEN_COMMANDS[args.command], args, config, session))

        sys.exit(0 if ok else 1)

    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        sys.exit(0)
    except StoreError as e:
        logger.error(f"❌ Error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
