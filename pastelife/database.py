"""
Paste storage backends.
Redis for deployments, with an in-memory store for development and tests.
Both apply reads atomically per paste id so a view budget can never be
overspent by concurrent readers.
"""
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, Iterator, Optional, Set

from redis import Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError, WatchError

from pastelife.config import Settings, settings
from pastelife.errors import DuplicateIdError, PasteNotFound, StoreUnavailable
from pastelife.lifecycle import Paste, apply_read, is_alive

logger = logging.getLogger(__name__)

KEY_PREFIX = "paste:"

# Take one view if any are left. Returns the new count, or -1 when the key
# is gone or its budget is already spent.
DECREMENT_VIEWS_SCRIPT = """
local remaining = tonumber(redis.call('HGET', KEYS[1], 'remaining_views'))
if remaining == nil or remaining <= 0 then
    return -1
end
return redis.call('HINCRBY', KEYS[1], 'remaining_views', -1)
"""


class PasteStore(ABC):
    """Persistence interface used by the paste service."""

    using_fallback = False

    @abstractmethod
    def insert(self, paste: Paste) -> Paste:
        """Insert a new paste. Raises DuplicateIdError if the id is taken."""

    @abstractmethod
    def fetch_only(self, paste_id: str, now: datetime) -> Paste:
        """Return a live paste without consuming a view."""

    @abstractmethod
    def fetch_and_apply_read(self, paste_id: str, now: datetime, decrement: bool) -> Paste:
        """Return a live paste, atomically consuming a view if requested."""

    @abstractmethod
    def purge_expired(self, now: datetime) -> int:
        """Physically delete pastes that are no longer alive."""

    @abstractmethod
    def is_healthy(self) -> bool:
        """Check if the backing medium is reachable."""

    def close(self):
        """Release any held connections."""


class InMemoryPasteStore(PasteStore):
    """Dictionary-backed store with one lock per paste id."""

    def __init__(self, timeout: float = 2.0):
        self.pastes: Dict[str, Paste] = {}
        self.timeout = timeout
        self._locks: Dict[str, threading.Lock] = {}
        # Purged ids stay reserved so a late waiter on a dropped lock never
        # shares the id with a new paste
        self._retired: Set[str] = set()
        self._table_lock = threading.Lock()

    @contextmanager
    def _locked(self, paste_id: str) -> Iterator[None]:
        with self._table_lock:
            lock = self._locks.setdefault(paste_id, threading.Lock())
        if not lock.acquire(timeout=self.timeout):
            raise StoreUnavailable(f"Timed out waiting for paste {paste_id}")
        try:
            yield
        finally:
            lock.release()

    def insert(self, paste: Paste) -> Paste:
        with self._locked(paste.id):
            if paste.id in self.pastes or paste.id in self._retired:
                raise DuplicateIdError(paste.id)
            self.pastes[paste.id] = paste
        return paste

    def fetch_only(self, paste_id: str, now: datetime) -> Paste:
        paste = self.pastes.get(paste_id)
        if paste is None or not is_alive(paste, now):
            raise PasteNotFound(paste_id)
        return paste

    def fetch_and_apply_read(self, paste_id: str, now: datetime, decrement: bool) -> Paste:
        # Unknown ids must not grow the lock table
        if paste_id not in self.pastes:
            raise PasteNotFound(paste_id)

        with self._locked(paste_id):
            paste = self.pastes.get(paste_id)
            if paste is None:
                raise PasteNotFound(paste_id)

            outcome = apply_read(paste, now, decrement)
            if not outcome.visible:
                raise PasteNotFound(paste_id)
            if outcome.changed:
                self.pastes[paste_id] = outcome.paste
            return outcome.paste

    def purge_expired(self, now: datetime) -> int:
        removed = 0
        for paste_id in list(self.pastes):
            with self._locked(paste_id):
                paste = self.pastes.get(paste_id)
                if paste is None or is_alive(paste, now):
                    continue
                del self.pastes[paste_id]
                self._retired.add(paste_id)
                with self._table_lock:
                    self._locks.pop(paste_id, None)
                removed += 1
        return removed

    def is_healthy(self) -> bool:
        return True


def _key(paste_id: str) -> str:
    return f"{KEY_PREFIX}{paste_id}"


def _to_hash(paste: Paste) -> Dict[str, str]:
    """Serialize a paste into Redis hash fields. Absent limits are omitted."""
    data = {
        "id": paste.id,
        "content": paste.content,
        "created_at": paste.created_at.isoformat(),
    }
    if paste.expires_at is not None:
        data["expires_at"] = paste.expires_at.isoformat()
    if paste.max_views is not None:
        data["max_views"] = str(paste.max_views)
        data["remaining_views"] = str(paste.remaining_views)
    return data


def _from_hash(data: Dict[str, str]) -> Paste:
    expires_at = None
    if "expires_at" in data:
        expires_at = datetime.fromisoformat(data["expires_at"])

    max_views = None
    remaining_views = None
    if "max_views" in data:
        max_views = int(data["max_views"])
        remaining_views = int(data["remaining_views"])

    return Paste(
        id=data["id"],
        content=data["content"],
        created_at=datetime.fromisoformat(data["created_at"]),
        expires_at=expires_at,
        max_views=max_views,
        remaining_views=remaining_views,
    )


class RedisPasteStore(PasteStore):
    """
    Redis-backed store. Each paste is a hash under ``paste:{id}``.

    A read that consumes a view ends in a server-side conditional decrement,
    so two readers racing for the last view cannot both get it. Inserts and
    the sweep use WATCH/MULTI transactions.
    """

    def __init__(self, client: Redis, retention_seconds: int = 3600):
        self.redis = client
        self.retention_seconds = retention_seconds
        self._decrement_views = client.register_script(DECREMENT_VIEWS_SCRIPT)

    @classmethod
    def from_url(cls, url: str, timeout: float, retention_seconds: int = 3600) -> "RedisPasteStore":
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client, retention_seconds=retention_seconds)

    @contextmanager
    def _guard(self) -> Iterator[None]:
        """Surface connection failures and timeouts as StoreUnavailable."""
        try:
            yield
        except (ConnectionError, TimeoutError) as e:
            logger.error(f"Redis unavailable: {type(e).__name__}: {e}")
            raise StoreUnavailable(str(e)) from e

    def insert(self, paste: Paste) -> Paste:
        key = _key(paste.id)
        with self._guard(), self.redis.pipeline() as pipe:
            try:
                pipe.watch(key)
                if pipe.exists(key):
                    raise DuplicateIdError(paste.id)
                pipe.multi()
                pipe.hset(key, mapping=_to_hash(paste))
                if paste.expires_at is not None:
                    # Physical cleanup only; visibility is decided by expires_at
                    pipe.pexpireat(key, paste.expires_at + timedelta(seconds=self.retention_seconds))
                pipe.execute()
            except WatchError:
                raise DuplicateIdError(paste.id)
        return paste

    def fetch_only(self, paste_id: str, now: datetime) -> Paste:
        with self._guard():
            data = self.redis.hgetall(_key(paste_id))
        if not data:
            raise PasteNotFound(paste_id)

        paste = _from_hash(data)
        if not is_alive(paste, now):
            raise PasteNotFound(paste_id)
        return paste

    def fetch_and_apply_read(self, paste_id: str, now: datetime, decrement: bool) -> Paste:
        key = _key(paste_id)
        with self._guard():
            data = self.redis.hgetall(key)
        if not data:
            raise PasteNotFound(paste_id)

        outcome = apply_read(_from_hash(data), now, decrement)
        if not outcome.visible:
            raise PasteNotFound(paste_id)
        if not outcome.changed:
            return outcome.paste

        # Another reader may have spent the budget since the HGETALL
        with self._guard():
            remaining = int(self._decrement_views(keys=[key]))
        if remaining < 0:
            logger.info(f"Paste {paste_id} lost the race for its last view")
            raise PasteNotFound(paste_id)
        return replace(outcome.paste, remaining_views=remaining)

    def purge_expired(self, now: datetime) -> int:
        removed = 0
        with self._guard():
            for key in self.redis.scan_iter(match=f"{KEY_PREFIX}*"):
                with self.redis.pipeline() as pipe:
                    try:
                        pipe.watch(key)
                        data = pipe.hgetall(key)
                        if not data or is_alive(_from_hash(data), now):
                            continue
                        pipe.multi()
                        pipe.delete(key)
                        pipe.execute()
                        removed += 1
                    except WatchError:
                        # Touched by a reader; the next sweep will see it
                        continue
        return removed

    def is_healthy(self) -> bool:
        try:
            self.redis.ping()
            return True
        except RedisError as e:
            logger.error(f"Health check failed: {e}")
        return False

    def close(self):
        self.redis.close()


def create_store(config: Optional[Settings] = None) -> PasteStore:
    """
    Build the configured store, falling back to memory if Redis is down.

    Args:
        config: Settings to read; defaults to the module-level settings

    Returns:
        Ready-to-use PasteStore
    """
    config = config or settings

    if config.STORE_BACKEND == "memory":
        logger.info("Using in-memory paste store")
        return InMemoryPasteStore(timeout=config.STORE_TIMEOUT_SECONDS)

    logger.info(f"Attempting to connect to Redis: {config.REDIS_URL[:30]}...")
    store = RedisPasteStore.from_url(
        config.REDIS_URL,
        timeout=config.STORE_TIMEOUT_SECONDS,
        retention_seconds=config.PASTE_RETENTION_SECONDS,
    )
    try:
        store.redis.ping()
        logger.info("Redis connected successfully")
        return store
    except (ConnectionError, TimeoutError) as e:
        logger.error(f"Could not connect to Redis: {type(e).__name__}: {e}")
        logger.warning("Using in-memory fallback. Data will NOT persist across restarts.")
        store.close()
        fallback = InMemoryPasteStore(timeout=config.STORE_TIMEOUT_SECONDS)
        fallback.using_fallback = True
        return fallback
