"""State controller for the book management screen."""
import asyncio
import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional

from library_admin.async_client import AsyncLibraryStoreClient
from library_admin.client import StoreError
from library_admin.config import Config
from library_admin.models import Book, BookDraft, Borrowing, OperationResult, User
from library_admin.parse import (
    BookValidationError,
    find_by_id,
    parse_book_draft,
    parse_books,
    parse_borrowings,
    parse_users,
)
from library_admin.session import AccessDenied, Session
from library_admin.workflow import ForcedReturnResult, ForcedReturnWorkflow

logger = logging.getLogger(__name__)

BOOK_BORROWED_MESSAGE = "Cannot delete a book that is currently borrowed."


class BookManagementController:
    """
    Snapshots of books, users and borrowings plus the transient form state.

    Every mutation re-fetches the collection it touched; snapshots are only
    ever replaced wholesale by a completed fetch.
    """

    def __init__(
        self,
        client: AsyncLibraryStoreClient,
        session: Session,
        admin_role: str = Config.ADMIN_ROLE,
        alert: Optional[Callable[[str], None]] = None,
        workflow: Optional[ForcedReturnWorkflow] = None
    ):
        """
        Args:
            client: Async store client
            session: Current session; mutations need the admin role
            admin_role: Role name that unlocks the screen
            alert: Shows a blocking message to the administrator
            workflow: Forced-return workflow; built from ``client`` if omitted
        """
        self.client = client
        self.session = session
        self.admin_role = admin_role
        self.alert = alert or (lambda message: logger.warning(message))

        self.books: List[Book] = []
        self.users: List[User] = []
        self.borrowings: List[Borrowing] = []

        self.editing_book: Optional[Book] = None
        self.new_book = BookDraft()
        self.book_to_delete: Optional[Book] = None
        self.delete_dialog_open = False

        self.workflow = workflow or ForcedReturnWorkflow(
            client,
            find_user=self.find_user,
            find_book=self.find_book,
            refresh_borrowings=self.fetch_borrowings
        )

    @property
    def is_authorized(self) -> bool:
        return self.session.is_admin(self.admin_role)

    def _require_admin(self):
        if not self.is_authorized:
            raise AccessDenied()

    # Snapshots

    async def fetch_books(self) -> bool:
        """Replace the books snapshot; keeps the old one on failure."""
        try:
            self.books = parse_books(await self.client.list("books"))
        except (StoreError, ValueError) as e:
            logger.error(f"Error fetching books: {e}")
            return False
        return True

    async def fetch_borrowings(self) -> bool:
        """Replace the borrowings snapshot; keeps the old one on failure."""
        try:
            self.borrowings = parse_borrowings(await self.client.list("borrowings"))
        except (StoreError, ValueError) as e:
            logger.error(f"Error fetching borrowings: {e}")
            return False
        return True

    async def fetch_users(self) -> bool:
        """Replace the users snapshot; keeps the old one on failure."""
        try:
            self.users = parse_users(await self.client.list("users"))
        except (StoreError, ValueError) as e:
            logger.error(f"Error fetching users: {e}")
            return False
        return True

    async def load(self) -> Dict[str, bool]:
        """
        Fetch books, borrowings and users concurrently.

        Each slice is independent; one failing fetch leaves the others
        populated.

        Returns:
            Mapping of collection name to whether it loaded
        """
        self._require_admin()
        books, borrowings, users = await asyncio.gather(
            self.fetch_books(),
            self.fetch_borrowings(),
            self.fetch_users()
        )
        return {"books": books, "borrowings": borrowings, "users": users}

    def find_user(self, user_id: Any) -> Optional[User]:
        return find_by_id(self.users, user_id)

    def find_book(self, book_id: Any) -> Optional[Book]:
        return find_by_id(self.books, book_id)

    # New book

    def change_new_book(self, **fields) -> BookDraft:
        self.new_book = dataclasses.replace(self.new_book, **fields)
        return self.new_book

    async def add_book(self) -> OperationResult:
        """
        Validate the draft and create the book.

        The draft is cleared only after the book was stored.
        """
        self._require_admin()
        try:
            book = parse_book_draft(self.new_book)
        except BookValidationError as e:
            logger.error(f"Error adding book: {e}")
            return OperationResult.failure(str(e), data=e.errors)

        try:
            created = await self.client.create("books", book.to_payload())
        except StoreError as e:
            logger.error(f"Error adding book: {e}")
            return OperationResult.failure(str(e))

        self.new_book = BookDraft()
        await self.fetch_books()
        logger.info(f"Added book {book.title!r}")
        return OperationResult.success(created)

    # Edit

    def start_edit(self, book: Book) -> Book:
        self._require_admin()
        self.editing_book = dataclasses.replace(book)
        return self.editing_book

    def change_edit(self, **fields) -> Optional[Book]:
        if self.editing_book is not None:
            self.editing_book = dataclasses.replace(self.editing_book, **fields)
        return self.editing_book

    def cancel_edit(self):
        self.editing_book = None

    async def update_book(self) -> OperationResult:
        """Submit the book in edit mode as a full replacement."""
        self._require_admin()
        book = self.editing_book
        if book is None:
            return OperationResult.failure("No book is being edited")

        try:
            updated = await self.client.replace("books", book.id, book.to_payload())
        except StoreError as e:
            logger.error(f"Error updating book: {e}")
            return OperationResult.failure(str(e))

        self.editing_book = None
        await self.fetch_books()
        logger.info(f"Updated book {book.id}")
        return OperationResult.success(updated)

    # Delete

    def start_delete(self, book: Book):
        self._require_admin()
        self.book_to_delete = book
        self.delete_dialog_open = True

    def close_delete_dialog(self):
        self.delete_dialog_open = False
        self.book_to_delete = None

    async def delete_book(self, book: Book) -> OperationResult:
        """
        Delete a book unless it is still borrowed.

        A borrowed book is rejected before any request goes out and the
        administrator is alerted.
        """
        self._require_admin()
        if book.is_borrowed:
            self.alert(BOOK_BORROWED_MESSAGE)
            return OperationResult.failure("book-borrowed", message=BOOK_BORROWED_MESSAGE)

        try:
            await self.client.delete("books", book.id)
        except StoreError as e:
            logger.error(f"Error deleting book: {e}")
            return OperationResult.failure(str(e))

        self.close_delete_dialog()
        await self.fetch_books()
        logger.info(f"Deleted book {book.id}")
        return OperationResult.success()

    # Forced return

    async def force_return(self, borrowing_id: Any) -> ForcedReturnResult:
        self._require_admin()
        return await self.workflow.run(borrowing_id)
