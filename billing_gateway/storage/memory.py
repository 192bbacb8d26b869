"""In-process store, used when no database is configured and in tests."""

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Optional

from .base import Store

_MISSING = object()

# Undo entries: ("records", kind, id, previous) or ("processed", key, None, previous)
UndoLog = list[tuple[str, str, Optional[str], Any]]


class MemoryStore(Store):
    def __init__(self) -> None:
        self.records: dict[str, dict[str, dict[str, Any]]] = {}
        self.processed: dict[str, str] = {}
        # Transactions run one at a time; the undo log is bound to the owning task
        self._lock = asyncio.Lock()
        self._undo: ContextVar[Optional[UndoLog]] = ContextVar("memory_store_undo", default=None)

    def _remember_record(self, kind: str, record_id: str) -> None:
        undo = self._undo.get()
        if undo is None or any(e[0] == "records" and e[1] == kind and e[2] == record_id for e in undo):
            return
        previous = self.records.get(kind, {}).get(record_id, _MISSING)
        undo.append(("records", kind, record_id, copy.deepcopy(previous)))

    def _remember_processed(self, event_key: str) -> None:
        undo = self._undo.get()
        if undo is None or any(e[0] == "processed" and e[1] == event_key for e in undo):
            return
        undo.append(("processed", event_key, None, self.processed.get(event_key, _MISSING)))

    def _rollback(self, undo: UndoLog) -> None:
        for scope, key, record_id, previous in reversed(undo):
            if scope == "processed":
                if previous is _MISSING:
                    self.processed.pop(key, None)
                else:
                    self.processed[key] = previous
                continue
            table = self.records.setdefault(key, {})
            if previous is _MISSING:
                table.pop(record_id, None)
            else:
                table[record_id] = previous
            if not table:
                del self.records[key]

    async def get(self, kind: str, record_id: str) -> dict[str, Any] | None:
        record = self.records.get(kind, {}).get(record_id)
        return dict(record) if record is not None else None

    async def upsert(self, kind: str, record_id: str, fields: dict[str, Any]) -> None:
        self._remember_record(kind, record_id)
        self.records.setdefault(kind, {}).setdefault(record_id, {}).update(fields)

    async def insert_once(self, kind: str, record_id: str, fields: dict[str, Any]) -> bool:
        table = self.records.setdefault(kind, {})
        if record_id in table:
            return False
        self._remember_record(kind, record_id)
        table[record_id] = dict(fields)
        return True

    async def has_processed(self, event_key: str) -> bool:
        return event_key in self.processed

    async def mark_processed(self, event_key: str, event: str) -> None:
        self._remember_processed(event_key)
        self.processed.setdefault(event_key, event)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            undo: UndoLog = []
            token = self._undo.set(undo)
            try:
                yield
            except BaseException:
                self._rollback(undo)
                raise
            finally:
                self._undo.reset(token)

    def count(self, kind: str) -> int:
        return len(self.records.get(kind, {}))
