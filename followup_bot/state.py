"""Mutable state shared across the bot's long-lived components.

Everything the bot remembers between messages lives on a single
``BotState`` instance that the service object creates once and hands to
the components that need it. Nothing here is persisted; reminders have
their own file-backed store.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

V = TypeVar("V")

Clock = Callable[[], datetime]

IDENTITY_TTL_SECONDS = 3600
DEDUP_WINDOW_SECONDS = 300


class TTLCache(Generic[V]):
    """Dictionary whose entries expire a fixed time after being written."""

    def __init__(self, ttl_seconds: float, clock: Clock = datetime.now):
        """Initialize the cache.

        Args:
            ttl_seconds: Lifetime of each entry.
            clock: Source of the current time.
        """
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, Tuple[datetime, V]] = {}

    def set(self, key: str, value: V) -> None:
        """Store a value and evict whatever else has expired."""
        self.prune()
        self._entries[key] = (self._clock(), value)

    def get(self, key: str, default: Optional[V] = None) -> Optional[V]:
        """Return a live entry, or default when absent or expired.

        Expired entries stay readable through ``stale`` until pruned.
        """
        entry = self._entries.get(key)
        if entry is None:
            return default
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl:
            return default
        return value

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        sentinel = object()
        return self.get(key, sentinel) is not sentinel  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._entries)

    def stale(self, key: str, default: Optional[V] = None) -> Optional[V]:
        """Return an entry even if it has expired."""
        entry = self._entries.get(key)
        return entry[1] if entry else default

    def prune(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed.
        """
        cutoff = self._clock() - self.ttl
        expired = [k for k, (stored_at, _) in self._entries.items() if stored_at <= cutoff]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()


class MessageDeduplicator:
    """Remembers recently seen message timestamps.

    Slack redelivers events it believes were not acknowledged. Each
    message timestamp is accepted once; entries older than the window are
    discarded whenever a full window has passed since the last sweep, so
    memory stays bounded regardless of volume.
    """

    def __init__(
        self,
        window_seconds: float = DEDUP_WINDOW_SECONDS,
        clock: Clock = datetime.now,
    ):
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._seen: Dict[str, datetime] = {}
        self._last_prune = clock()

    def check_and_mark(self, message_ts: str) -> bool:
        """Record a message timestamp.

        Args:
            message_ts: Slack message ``ts``.

        Returns:
            True the first time a timestamp is seen inside the window,
            False for a redelivery.
        """
        now = self._clock()
        if now - self._last_prune >= self.window:
            self.prune()

        seen_at = self._seen.get(message_ts)
        if seen_at is not None and now - seen_at < self.window:
            return False

        self._seen[message_ts] = now
        return True

    def prune(self) -> int:
        """Remove entries older than the window."""
        now = self._clock()
        cutoff = now - self.window
        expired = [ts for ts, seen_at in self._seen.items() if seen_at <= cutoff]
        for ts in expired:
            del self._seen[ts]
        self._last_prune = now
        return len(expired)

    def __len__(self) -> int:
        return len(self._seen)


@dataclass
class BotState:
    """Caches owned by the running service.

    Attributes:
        profiles: Slack user id -> profile dict, or None for a failed lookup.
        board_users: Single "users" entry holding the board's user list.
        dedup: Inbound message de-duplication window.
        contact_snapshot: Record id -> last contact date seen by the poller.
        snapshot_seeded: Whether the poller has taken its first snapshot.
    """

    profiles: TTLCache[Optional[Dict[str, Any]]] = field(
        default_factory=lambda: TTLCache(IDENTITY_TTL_SECONDS)
    )
    board_users: TTLCache[Any] = field(
        default_factory=lambda: TTLCache(IDENTITY_TTL_SECONDS)
    )
    dedup: MessageDeduplicator = field(default_factory=MessageDeduplicator)
    contact_snapshot: Dict[str, Optional[date]] = field(default_factory=dict)
    snapshot_seeded: bool = False
