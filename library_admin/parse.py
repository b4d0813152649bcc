"""Parse library API payloads and validate form drafts."""
import logging
from typing import Dict, Any, List, Optional, Callable, TypeVar
from library_admin.models import Book, BookDraft, Borrowing, User

logger = logging.getLogger(__name__)

T = TypeVar("T")

BOOK_FIELDS = ("id", "title", "author", "description", "year", "copies", "borrowedBy")
USER_FIELDS = ("id", "email", "role")
BORROWING_FIELDS = ("id", "bookId", "userId", "borrowDate", "returnDate")


class BookValidationError(ValueError):
    """Raised when a book draft cannot be turned into a book record."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        fields = ", ".join(f"{name}: {reason}" for name, reason in errors.items())
        super().__init__(f"Invalid book: {fields}")


def _extra(item: Dict[str, Any], known: tuple) -> Dict[str, Any]:
    return {key: value for key, value in item.items() if key not in known}


def parse_book(item: Dict[str, Any]) -> Optional[Book]:
    """
    Parse a single book record.

    Args:
        item: Book object from the ``/books`` collection

    Returns:
        Book object or None if the record has no identity
    """
    book_id = item.get("id")
    if book_id is None or book_id == "":
        logger.warning(f"Skipping book without id: {item!r}")
        return None

    return Book(
        id=book_id,
        title=item.get("title") or "",
        author=item.get("author") or "",
        description=item.get("description") or "",
        year=item.get("year"),
        copies=item.get("copies"),
        borrowed_by=list(item.get("borrowedBy") or []),
        extra=_extra(item, BOOK_FIELDS)
    )


def parse_user(item: Dict[str, Any]) -> Optional[User]:
    """Parse a single user record, or None without an identity."""
    user_id = item.get("id")
    if user_id is None or user_id == "":
        logger.warning(f"Skipping user without id: {item!r}")
        return None

    return User(
        id=user_id,
        email=item.get("email") or "",
        role=item.get("role") or "",
        extra=_extra(item, USER_FIELDS)
    )


def parse_borrowing(item: Dict[str, Any]) -> Optional[Borrowing]:
    """Parse a single borrowing record, or None without an identity."""
    borrowing_id = item.get("id")
    if borrowing_id is None or borrowing_id == "":
        logger.warning(f"Skipping borrowing without id: {item!r}")
        return None

    return Borrowing(
        id=borrowing_id,
        book_id=item.get("bookId"),
        user_id=item.get("userId"),
        borrow_date=item.get("borrowDate"),
        return_date=item.get("returnDate"),
        extra=_extra(item, BORROWING_FIELDS)
    )


def _parse_collection(
    response_json: Any,
    parse_item: Callable[[Dict[str, Any]], Optional[T]]
) -> List[T]:
    if not isinstance(response_json, list):
        raise ValueError(f"Expected a JSON array, got {type(response_json).__name__}")

    records = []
    for item in response_json:
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object record: {item!r}")
            continue
        record = parse_item(item)
        if record:
            records.append(record)
    return records


def parse_books(response_json: Any) -> List[Book]:
    """
    Parse a ``GET /books`` response.

    Args:
        response_json: Decoded JSON array

    Returns:
        Books in server order (records without identity are dropped)
    """
    return _parse_collection(response_json, parse_book)


def parse_users(response_json: Any) -> List[User]:
    """Parse a ``GET /users`` response."""
    return _parse_collection(response_json, parse_user)


def parse_borrowings(response_json: Any) -> List[Borrowing]:
    """Parse a ``GET /borrowings`` response."""
    return _parse_collection(response_json, parse_borrowing)


def _parse_int(value: str) -> int:
    return int(value.strip())


def parse_book_draft(draft: BookDraft) -> Book:
    """
    Validate a new-book draft into a book ready to be created.

    Year and copies must be integers. The new book has no identity yet and
    no active borrowings.

    Args:
        draft: Form state with string-typed numeric fields

    Returns:
        Book with ``id`` None and empty ``borrowed_by``

    Raises:
        BookValidationError: if year or copies is not an integer
    """
    errors = {}
    parsed = {}

    for name in ("year", "copies"):
        raw = getattr(draft, name)
        try:
            parsed[name] = _parse_int(raw)
        except (ValueError, AttributeError):
            errors[name] = f"expected an integer, got {raw!r}"

    if errors:
        raise BookValidationError(errors)

    return Book(
        id=None,
        title=draft.title,
        author=draft.author,
        description=draft.description,
        year=parsed["year"],
        copies=parsed["copies"],
        borrowed_by=[]
    )


def find_by_id(records: List[T], record_id: Any) -> Optional[T]:
    """Return the first record whose ``id`` equals ``record_id``."""
    return next((record for record in records if record.id == record_id), None)


def active_borrowings_for_book(borrowings: List[Borrowing], book_id: Any) -> List[Borrowing]:
    """Borrowings of ``book_id`` that have not been returned."""
    return [b for b in borrowings if b.book_id == book_id and b.is_active]
