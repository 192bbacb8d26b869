"""Base store interface for subscription, payment and user records."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any


class Store(ABC):
    """Abstract persistence collaborator.

    Records are addressed by ``kind`` (e.g. "subscriptions", "payments",
    "users") and the provider-issued id. Every write must be safe to repeat.
    """

    @abstractmethod
    async def get(self, kind: str, record_id: str) -> dict[str, Any] | None:
        """Return the stored fields for a record, or None."""
        pass

    @abstractmethod
    async def upsert(self, kind: str, record_id: str, fields: dict[str, Any]) -> None:
        """Create the record or merge ``fields`` into it."""
        pass

    @abstractmethod
    async def insert_once(self, kind: str, record_id: str, fields: dict[str, Any]) -> bool:
        """Insert the record unless it exists. Returns True when inserted."""
        pass

    @abstractmethod
    async def has_processed(self, event_key: str) -> bool:
        """Check the event ledger for a delivery already handled."""
        pass

    @abstractmethod
    async def mark_processed(self, event_key: str, event: str) -> None:
        """Record a handled delivery in the event ledger."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Group writes so they commit together or not at all."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass
