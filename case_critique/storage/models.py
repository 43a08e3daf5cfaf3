"""
Data models for storage layer.

Defines the per-identity usage counters persisted by the usage stores.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class UsageRecord:
    """Rolling request/token counters for one identity.

    Mutated only by the usage ledger; stores hand out copies.
    """
    daily_count: int
    last_daily_reset: datetime
    minute_count: int
    last_minute_reset: datetime
    total_requests: int = 0
    total_tokens: int = 0

    @classmethod
    def fresh(cls, now: datetime) -> "UsageRecord":
        """Create an empty record whose windows start at now."""
        return cls(
            daily_count=0,
            last_daily_reset=now,
            minute_count=0,
            last_minute_reset=now,
        )
