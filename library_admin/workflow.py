"""Forced-return workflow: close a borrowing on behalf of its user and audit it."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from library_admin.async_client import AsyncLibraryStoreClient
from library_admin.client import StoreError
from library_admin.models import Book, Borrowing, LogEntry, User
from library_admin.parse import parse_borrowing

logger = logging.getLogger(__name__)

FORCED_RETURN_ACTION = "Forced book return"


class ForcedReturnState(Enum):
    IDLE = "idle"
    FETCHING_BORROWING = "fetching-borrowing"
    UPDATING_BORROWING = "updating-borrowing"
    RESOLVING_PARTICIPANTS = "resolving-participants"
    WRITING_LOG = "writing-log"
    REFRESHING = "refreshing"
    FAILED = "failed"


@dataclass
class ForcedReturnResult:
    """What happened during one forced return."""
    borrowing_id: Any
    state: ForcedReturnState = ForcedReturnState.IDLE
    trail: List[ForcedReturnState] = field(default_factory=list)
    borrowing: Optional[Borrowing] = None
    log_written: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is ForcedReturnState.IDLE and self.error is None

    def enter(self, state: ForcedReturnState):
        logger.debug(f"Forced return {self.borrowing_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.trail.append(state)


def iso_timestamp(moment: datetime) -> str:
    """Format as UTC ISO-8601 with milliseconds and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def forced_return_details(book: Book, user: User) -> str:
    return f"Administrator forced return of book: {book.title} from user {user.email}"


class ForcedReturnWorkflow:
    """
    Sequential forced-return steps against the remote store.

    Participants are looked up in the caller's cached snapshots, never
    re-fetched. Invocations for the same borrowing run one at a time.
    """

    def __init__(
        self,
        client: AsyncLibraryStoreClient,
        find_user: Callable[[Any], Optional[User]],
        find_book: Callable[[Any], Optional[Book]],
        refresh_borrowings: Callable[[], Awaitable[bool]],
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Args:
            client: Async store client
            find_user: Looks a user up in the cached snapshot
            find_book: Looks a book up in the cached snapshot
            refresh_borrowings: Re-fetches the borrowings snapshot
            clock: Source of the current time
        """
        self.client = client
        self.find_user = find_user
        self.find_book = find_book
        self.refresh_borrowings = refresh_borrowings
        self.clock = clock
        self._locks: Dict[Any, asyncio.Lock] = {}
        self._pending: Dict[Any, int] = {}

    def _lock_for(self, borrowing_id: Any) -> asyncio.Lock:
        lock = self._locks.get(borrowing_id)
        if lock is None:
            lock = self._locks[borrowing_id] = asyncio.Lock()
        return lock

    async def run(self, borrowing_id: Any) -> ForcedReturnResult:
        """
        Force the return of one borrowing.

        Args:
            borrowing_id: Identity of the borrowing to close

        Returns:
            ForcedReturnResult ending in IDLE on success or FAILED
        """
        lock = self._lock_for(borrowing_id)
        self._pending[borrowing_id] = self._pending.get(borrowing_id, 0) + 1
        try:
            async with lock:
                return await self._run(borrowing_id)
        finally:
            self._release(borrowing_id)

    def _release(self, borrowing_id: Any):
        # Drop the lock once nobody holds or waits for it
        self._pending[borrowing_id] -= 1
        if not self._pending[borrowing_id]:
            del self._pending[borrowing_id]
            del self._locks[borrowing_id]

    async def _run(self, borrowing_id: Any) -> ForcedReturnResult:
        result = ForcedReturnResult(borrowing_id)

        result.enter(ForcedReturnState.FETCHING_BORROWING)
        try:
            record = await self.client.get("borrowings", borrowing_id)
        except StoreError as e:
            return self._fail(result, f"Error fetching borrowing: {e}")
        if not isinstance(record, dict):
            return self._fail(result, f"Unexpected borrowing payload: {record!r}")

        result.enter(ForcedReturnState.UPDATING_BORROWING)
        updated = dict(record)
        updated["returnDate"] = iso_timestamp(self.clock())
        try:
            stored = await self.client.replace("borrowings", borrowing_id, updated)
        except StoreError as e:
            return self._fail(result, f"Error forcing return: {e}")
        # Some backends answer a PUT with an empty object
        if isinstance(stored, dict) and stored.get("id") is not None:
            result.borrowing = parse_borrowing(stored)
        else:
            result.borrowing = parse_borrowing(updated)

        result.enter(ForcedReturnState.RESOLVING_PARTICIPANTS)
        user = self.find_user(record.get("userId"))
        book = self.find_book(record.get("bookId"))

        if user and book:
            result.enter(ForcedReturnState.WRITING_LOG)
            entry = LogEntry(
                date=iso_timestamp(self.clock()),
                user_id=user.id,
                action=FORCED_RETURN_ACTION,
                details=forced_return_details(book, user)
            )
            try:
                await self.client.create("logs", entry.to_payload())
                result.log_written = True
            except StoreError as e:
                logger.error(f"Error logging forced return of {borrowing_id}: {e}")
        else:
            logger.warning(
                f"Forced return of {borrowing_id} not logged: "
                f"user {record.get('userId')!r} found={user is not None}, "
                f"book {record.get('bookId')!r} found={book is not None}"
            )

        result.enter(ForcedReturnState.REFRESHING)
        await self.refresh_borrowings()

        result.enter(ForcedReturnState.IDLE)
        logger.info(f"Forced return of borrowing {borrowing_id} completed")
        return result

    def _fail(self, result: ForcedReturnResult, error: str) -> ForcedReturnResult:
        logger.error(error)
        result.error = error
        result.enter(ForcedReturnState.FAILED)
        return result
