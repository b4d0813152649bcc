"""Data models for books, users, borrowings and audit log entries."""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Union

# Identities are kept exactly as the backend returns them
Identifier = Union[int, str]


@dataclass
class Book:
    """Book record as stored by the library API."""
    id: Optional[Identifier]
    title: str
    author: str
    description: str
    year: int
    copies: int
    borrowed_by: List[Identifier] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_borrowed(self) -> bool:
        """True while any borrowing still references this book."""
        return bool(self.borrowed_by)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the wire shape used for POST and PUT."""
        payload = dict(self.extra)
        if self.id is not None:
            payload["id"] = self.id
        payload.update({
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "year": self.year,
            "copies": self.copies,
            "borrowedBy": list(self.borrowed_by),
        })
        return payload


@dataclass
class BookDraft:
    """Input-facing new-book form; numeric fields stay strings until parsed."""
    title: str = ""
    author: str = ""
    description: str = ""
    year: str = ""
    copies: str = ""


@dataclass
class User:
    """Library user; read-only from the admin screen."""
    id: Identifier
    email: str
    role: str
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Borrowing:
    """Link between one user and one book, open until returned."""
    id: Identifier
    book_id: Identifier
    user_id: Identifier
    borrow_date: Optional[str]
    return_date: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return not self.return_date

    def to_payload(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        payload.update({
            "id": self.id,
            "bookId": self.book_id,
            "userId": self.user_id,
            "borrowDate": self.borrow_date,
        })
        if self.return_date is not None:
            payload["returnDate"] = self.return_date
        return payload


@dataclass
class LogEntry:
    """Append-only audit record."""
    date: str
    user_id: Identifier
    action: str
    details: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "userId": self.user_id,
            "action": self.action,
            "details": self.details,
        }


@dataclass
class OperationResult:
    """Outcome of a controller operation, returned to the presentation layer."""
    ok: bool
    error: Optional[str] = None
    message: Optional[str] = None
    data: Any = None

    @classmethod
    def success(cls, data: Any = None) -> "OperationResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        message: Optional[str] = None,
        data: Any = None
    ) -> "OperationResult":
        return cls(ok=False, error=error, message=message, data=data)
