"""
Per-identity usage accounting with rolling daily and per-minute windows.

Windows reset lazily: a counter rolls back to zero the first time the ledger
touches the record after its window has elapsed. There is no background
timer.

Concurrency: each identity has its own lock, so check-then-reserve for one
identity is atomic while different identities never contend.
"""

import logging
import random
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from ..storage.models import UsageRecord
from ..storage.stores import InMemoryUsageStore, UsageStore
from .locks import KeyedLocks

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_MINUTE = 15
DAILY_WINDOW = timedelta(hours=24)
MINUTE_WINDOW = timedelta(seconds=60)


def approximate_token_count(text: str) -> int:
    """Approximate tokens consumed by a response as its character length.

    This is a deliberate proxy, not a tokenizer. Switching to real token
    counts would change how fast quotas are consumed.
    """
    return len(text) if text else 0


@dataclass(frozen=True)
class UsageStatus:
    """Whether an identity may make a request now, and how much is left."""
    can_proceed: bool
    daily_remaining: int
    minute_remaining: int
    next_daily_reset: datetime
    next_minute_reset: datetime


@dataclass(frozen=True)
class UsageStats:
    """Usage summary for administrative display."""
    identity: str
    total_requests: int
    total_tokens: int
    daily_requests: int
    minute_requests: int
    daily_remaining: int
    minute_remaining: int
    can_proceed: bool
    last_daily_reset: datetime
    next_minute_reset: datetime


class UsageLedger:
    """Process-wide usage counters keyed by identity.

    Constructed once per process and passed explicitly to the analyzer.
    """

    def __init__(
        self,
        store: Optional[UsageStore] = None,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the ledger.

        Args:
            store: Record storage (defaults to an in-memory store)
            requests_per_minute: Minute ceiling; the daily ceiling is 24x this
            clock: Source of the current time

        Raises:
            ValueError: If requests_per_minute is not positive
        """
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be > 0")
        self.store = store if store is not None else InMemoryUsageStore()
        self.minute_limit = requests_per_minute
        self.clock = clock
        self._locks = KeyedLocks()
        # In-flight reservations per identity; process-local by nature
        self._pending: Dict[str, int] = {}

    @property
    def daily_limit(self) -> int:
        return self.minute_limit * 24

    def _load(self, identity: str, now: datetime) -> UsageRecord:
        record = self.store.load(identity)
        if record is None:
            record = UsageRecord.fresh(now)
            self.store.save(identity, record)
        return record

    def _roll_windows(self, record: UsageRecord, now: datetime) -> bool:
        """Reset expired windows in place. Returns True if anything changed."""
        changed = False
        if now - record.last_daily_reset > DAILY_WINDOW:
            record.daily_count = 0
            record.last_daily_reset = now
            changed = True
        if now - record.last_minute_reset > MINUTE_WINDOW:
            record.minute_count = 0
            record.last_minute_reset = now
            changed = True
        return changed

    def _status(self, identity: str, record: UsageRecord) -> UsageStatus:
        pending = self._pending.get(identity, 0)
        daily_remaining = max(0, self.daily_limit - record.daily_count - pending)
        minute_remaining = max(0, self.minute_limit - record.minute_count - pending)
        return UsageStatus(
            can_proceed=daily_remaining > 0 and minute_remaining > 0,
            daily_remaining=daily_remaining,
            minute_remaining=minute_remaining,
            next_daily_reset=record.last_daily_reset + DAILY_WINDOW,
            next_minute_reset=record.last_minute_reset + MINUTE_WINDOW,
        )

    def _current(self, identity: str) -> UsageRecord:
        now = self.clock()
        record = self._load(identity, now)
        if self._roll_windows(record, now):
            self.store.save(identity, record)
        return record

    def get(self, identity: str) -> UsageRecord:
        """Return a copy of the identity's record, creating it on first access."""
        with self._locks.hold(identity):
            return replace(self._load(identity, self.clock()))

    def record(self, identity: str, token_count: int = 0) -> UsageRecord:
        """Account one completed request for an identity.

        Expired windows are reset first, then the daily, minute and total
        counters are incremented and token_count is added to total_tokens.
        """
        with self._locks.hold(identity):
            record = self._current(identity)
            record.daily_count += 1
            record.minute_count += 1
            record.total_requests += 1
            record.total_tokens += max(0, token_count)
            self.store.save(identity, record)
            return replace(record)

    def status(self, identity: str) -> UsageStatus:
        """Report whether the identity can make a request now."""
        with self._locks.hold(identity):
            return self._status(identity, self._current(identity))

    def reserve(self, identity: str) -> UsageStatus:
        """Atomically check quota and hold one in-flight slot if allowed.

        Returns the status observed before reserving. A slot is held only
        when can_proceed is True; release() must follow in that case.
        """
        with self._locks.hold(identity):
            status = self._status(identity, self._current(identity))
            if status.can_proceed:
                self._pending[identity] = self._pending.get(identity, 0) + 1
            return status

    def release(self, identity: str) -> None:
        """Free a slot taken by reserve()."""
        with self._locks.hold(identity):
            pending = self._pending.get(identity, 0) - 1
            if pending > 0:
                self._pending[identity] = pending
            else:
                self._pending.pop(identity, None)

    def stats(self, identity: str) -> UsageStats:
        with self._locks.hold(identity):
            record = self._current(identity)
            status = self._status(identity, record)
        return UsageStats(
            identity=identity,
            total_requests=record.total_requests,
            total_tokens=record.total_tokens,
            daily_requests=record.daily_count,
            minute_requests=record.minute_count,
            daily_remaining=status.daily_remaining,
            minute_remaining=status.minute_remaining,
            can_proceed=status.can_proceed,
            last_daily_reset=record.last_daily_reset,
            next_minute_reset=status.next_minute_reset,
        )

    def snapshot(self) -> Dict[str, UsageRecord]:
        """Copies of every stored record, for monitoring."""
        return self.store.load_all()

    def simulate(self, identity: str, requests: int = 1) -> UsageRecord:
        """Record synthetic requests (500-1499 tokens each). Testing/admin only."""
        if requests < 0:
            raise ValueError("requests cannot be negative")
        record = self.get(identity)
        for _ in range(requests):
            record = self.record(identity, random.randint(500, 1499))
        logger.info("Simulated %d requests for %s", requests, identity)
        return record

    def clear(self, identity: str) -> None:
        """Forget all usage for an identity. Testing/admin only."""
        with self._locks.hold(identity):
            self.store.delete(identity)
            self._pending.pop(identity, None)
        logger.info("Cleared usage for %s", identity)
