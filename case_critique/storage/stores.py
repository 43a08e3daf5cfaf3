"""
Usage record stores.

The ledger depends only on the UsageStore protocol, so tests run against
the in-memory store and deployments can swap in a durable one.
"""

from dataclasses import replace
from typing import Dict, Optional, Protocol

from .models import UsageRecord


class UsageStore(Protocol):
    """Key-value storage for usage records keyed by identity."""

    def load(self, identity: str) -> Optional[UsageRecord]:
        ...

    def save(self, identity: str, record: UsageRecord) -> None:
        ...

    def delete(self, identity: str) -> None:
        ...

    def load_all(self) -> Dict[str, UsageRecord]:
        ...


class InMemoryUsageStore:
    """Process-local usage store backed by a dict."""

    def __init__(self):
        self._records: Dict[str, UsageRecord] = {}

    def load(self, identity: str) -> Optional[UsageRecord]:
        record = self._records.get(identity)
        return replace(record) if record is not None else None

    def save(self, identity: str, record: UsageRecord) -> None:
        self._records[identity] = replace(record)

    def delete(self, identity: str) -> None:
        self._records.pop(identity, None)

    def load_all(self) -> Dict[str, UsageRecord]:
        return {identity: replace(record) for identity, record in self._records.items()}
