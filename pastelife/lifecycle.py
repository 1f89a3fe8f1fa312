"""
Paste lifecycle rules.
Pure functions deciding whether a paste is visible and how a read changes it.
Nothing here touches storage; stores apply the results atomically.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True)
class Paste:
    """A stored paste. Only remaining_views changes after creation."""

    id: str
    content: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    max_views: Optional[int] = None
    remaining_views: Optional[int] = None

    def __post_init__(self):
        if (self.max_views is None) != (self.remaining_views is None):
            raise ValueError("remaining_views must be set exactly when max_views is set")
        if self.max_views is not None:
            if self.max_views < 1:
                raise ValueError("max_views must be >= 1")
            if not 0 <= self.remaining_views <= self.max_views:
                raise ValueError("remaining_views must be between 0 and max_views")


@dataclass(frozen=True)
class ReadOutcome:
    """Result of applying one read to a paste."""

    paste: Paste
    visible: bool
    changed: bool = False


def new_paste(
    paste_id: str,
    content: str,
    now: datetime,
    ttl_seconds: Optional[int] = None,
    max_views: Optional[int] = None,
) -> Paste:
    """
    Build a fully-formed paste ready for insertion.

    Args:
        paste_id: Identifier assigned by the caller
        content: Text content
        now: Creation time
        ttl_seconds: Optional time-to-live in seconds
        max_views: Optional total number of allowed reads

    Returns:
        Paste with expires_at and remaining_views initialised
    """
    expires_at = None
    if ttl_seconds is not None:
        expires_at = now + timedelta(seconds=ttl_seconds)

    return Paste(
        id=paste_id,
        content=content,
        created_at=now,
        expires_at=expires_at,
        max_views=max_views,
        remaining_views=max_views,
    )


def is_alive(paste: Paste, now: datetime) -> bool:
    """True if the paste is neither past its expiry nor out of views."""
    if paste.expires_at is not None and now >= paste.expires_at:
        return False
    if paste.remaining_views is not None and paste.remaining_views <= 0:
        return False
    return True


def apply_read(paste: Paste, now: datetime, decrement: bool) -> ReadOutcome:
    """
    Apply a single read to a paste.

    The read that consumes the last view is still visible and leaves
    remaining_views at 0; the paste is dead from then on.

    Args:
        paste: Current stored state
        now: Time of the read
        decrement: Whether the read consumes a view

    Returns:
        ReadOutcome with the post-read paste and whether it was visible
    """
    if not is_alive(paste, now):
        return ReadOutcome(paste=paste, visible=False)

    if not decrement or paste.remaining_views is None:
        return ReadOutcome(paste=paste, visible=True)

    remaining = max(paste.remaining_views - 1, 0)
    return ReadOutcome(
        paste=replace(paste, remaining_views=remaining),
        visible=True,
        changed=True,
    )
