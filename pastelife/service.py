"""
Paste service.
Ties id generation, storage and lifecycle rules into create and read.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from pastelife.database import PasteStore
from pastelife.errors import DuplicateIdError, GenerationExhaustedError, ValidationError
from pastelife.ids import generate_id
from pastelife.lifecycle import new_paste

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class CreatedPaste:
    id: str
    url: str


@dataclass(frozen=True)
class PasteView:
    """What a reader is allowed to see of a paste."""

    content: str
    remaining_views: Optional[int]
    expires_at: Optional[str]


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a Z suffix."""
    value = as_utc(value)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _validate_limit(name: str, value) -> None:
    if value is None:
        return
    # bool is an int subclass but never a valid limit
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer >= 1")
    if value < 1:
        raise ValidationError(f"{name} must be an integer >= 1")


class PasteService:
    """Create and read pastes against an injected store."""

    def __init__(
        self,
        store: PasteStore,
        base_url: str,
        id_generator: Callable[[], str] = generate_id,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.base_url = base_url.rstrip("/")
        self.id_generator = id_generator
        self.max_attempts = max_attempts
        self.clock = clock

    def create_paste(
        self,
        content: str,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CreatedPaste:
        """
        Validate input and store a new paste under a fresh id.

        Args:
            content: Text content (required, non-empty)
            ttl_seconds: Optional time-to-live in seconds
            max_views: Optional total number of allowed reads
            now: Creation time; defaults to the service clock

        Returns:
            Paste id and shareable URL

        Raises:
            ValidationError: If any input is invalid
            GenerationExhaustedError: If every generated id collided
            StoreUnavailable: If the store cannot be reached
        """
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("content is required and must be non-empty")
        _validate_limit("ttl_seconds", ttl_seconds)
        _validate_limit("max_views", max_views)

        now = as_utc(now or self.clock())

        for attempt in range(1, self.max_attempts + 1):
            paste = new_paste(self.id_generator(), content, now, ttl_seconds, max_views)
            try:
                self.store.insert(paste)
            except DuplicateIdError:
                logger.warning(f"Paste id collision on attempt {attempt}/{self.max_attempts}")
                continue

            logger.info(f"Paste {paste.id} created")
            return CreatedPaste(id=paste.id, url=self.url_for(paste.id))

        raise GenerationExhaustedError(
            f"Could not allocate a paste id after {self.max_attempts} attempts"
        )

    def read_paste(
        self,
        paste_id: str,
        now: Optional[datetime] = None,
        decrement: bool = True,
    ) -> PasteView:
        """
        Read a paste, consuming one view unless decrement is False.

        Raises:
            PasteNotFound: If the paste is absent or no longer alive
            StoreUnavailable: If the store cannot be reached
        """
        now = as_utc(now or self.clock())
        if decrement:
            paste = self.store.fetch_and_apply_read(paste_id, now, decrement=True)
        else:
            paste = self.store.fetch_only(paste_id, now)

        if paste.remaining_views == 0:
            logger.info(f"Paste {paste_id} served its last view")

        return PasteView(
            content=paste.content,
            remaining_views=paste.remaining_views,
            expires_at=format_timestamp(paste.expires_at) if paste.expires_at else None,
        )

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Physically remove dead pastes from the store."""
        removed = self.store.purge_expired(as_utc(now or self.clock()))
        if removed:
            logger.info(f"Purged {removed} expired pastes")
        return removed

    def url_for(self, paste_id: str) -> str:
        return f"{self.base_url}/p/{paste_id}"
