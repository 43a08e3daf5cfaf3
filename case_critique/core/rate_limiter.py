"""
Coarse per-address rate limiting at the request entry point.

Independent of the usage ledger on purpose: this layer blocks abusive
callers by network address, the ledger enforces per-user quota. The two are
never reconciled.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping, MutableMapping, Optional

from .locks import KeyedLocks

logger = logging.getLogger(__name__)

DEFAULT_EDGE_LIMIT = 15
DEFAULT_EDGE_WINDOW_SECONDS = 60.0

# Callers with no usable address share one bucket, and therefore one quota.
UNKNOWN_ADDRESS = "unknown"


def client_address(headers: Mapping[str, str]) -> str:
    """Best-effort caller address from proxy headers.

    Uses the first X-Forwarded-For hop, then X-Real-IP, then the shared
    "unknown" bucket.
    """
    lowered = {str(name).lower(): value for name, value in headers.items()}
    forwarded = lowered.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = lowered.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return UNKNOWN_ADDRESS


@dataclass
class RateLimitEntry:
    """Request count for one address within its current window."""
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of an edge limiter check."""
    limited: bool
    remaining: int
    reset_in_ms: int


class EdgeRateLimiter:
    """Fixed-window request limiter keyed by caller address."""

    def __init__(
        self,
        limit: int = DEFAULT_EDGE_LIMIT,
        window_seconds: float = DEFAULT_EDGE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        entries: Optional[MutableMapping[str, RateLimitEntry]] = None,
    ):
        if limit <= 0:
            raise ValueError("limit must be > 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._entries: MutableMapping[str, RateLimitEntry] = entries if entries is not None else {}
        self._locks = KeyedLocks()
        self._next_sweep_at = clock() + window_seconds

    def _sweep(self, now: float) -> None:
        """Drop entries whose window has closed, at most once per window."""
        if now < self._next_sweep_at:
            return
        self._next_sweep_at = now + self.window_seconds
        removed = self._locks.discard_idle(
            self._entries,
            lambda entry: now > entry.window_reset_at
        )
        if removed:
            logger.debug("Dropped %d expired edge rate-limit entries", removed)

    def check(self, address: Optional[str]) -> RateLimitDecision:
        """Count a request from address and report whether it is limited.

        A limited request is not counted.
        """
        address = address or UNKNOWN_ADDRESS
        window_ms = int(self.window_seconds * 1000)
        self._sweep(self.clock())
        with self._locks.hold(address):
            now = self.clock()
            entry = self._entries.get(address)
            if entry is None or now > entry.window_reset_at:
                self._entries[address] = RateLimitEntry(
                    count=1,
                    window_reset_at=now + self.window_seconds
                )
                return RateLimitDecision(
                    limited=False,
                    remaining=self.limit - 1,
                    reset_in_ms=window_ms
                )

            reset_in_ms = max(0, int((entry.window_reset_at - now) * 1000))
            if entry.count >= self.limit:
                return RateLimitDecision(limited=True, remaining=0, reset_in_ms=reset_in_ms)

            entry.count += 1
            self._entries[address] = entry
            return RateLimitDecision(
                limited=False,
                remaining=self.limit - entry.count,
                reset_in_ms=reset_in_ms
            )

    def reset(self, address: str) -> None:
        with self._locks.hold(address):
            self._entries.pop(address, None)
