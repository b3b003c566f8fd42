"""Summary registry — the in-memory source of truth for summary entries.

Entries are keyed by id and kept in insertion order. Updates merge field by
field (last write wins, in arrival order). Every call completes without
awaiting, so concurrent pipeline coroutines on one event loop never see a
half-applied update.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from .schemas import EntryStatus, SummaryEntry

logger = logging.getLogger(__name__)

Listener = Callable[[SummaryEntry], None]

_WRITE_ONCE_FIELDS = ("thumbnail_url", "video_url")


class SummaryRegistry:
    def __init__(self) -> None:
        self._entries: dict[str, SummaryEntry] = {}
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def get(self, entry_id: str) -> SummaryEntry | None:
        return self._entries.get(entry_id)

    def list(self) -> list[SummaryEntry]:
        return list(self._entries.values())

    def snapshot(self) -> list[SummaryEntry]:
        """Deep copies, safe to hand to consumers that may hold on to them."""
        return [e.model_copy(deep=True) for e in self._entries.values()]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def upsert(self, entry_id: str, **fields: Any) -> SummaryEntry:
        """Insert a new entry or merge fields into an existing one."""
        current = self._entries.get(entry_id)
        if current is None:
            entry = SummaryEntry(id=entry_id, **fields)
        else:
            for name in _WRITE_ONCE_FIELDS:
                old = getattr(current, name)
                new = fields.get(name)
                if old is not None and new is not None and new != old:
                    raise ValueError(f"{name} of entry {entry_id} is already set")
            entry = current.model_copy(update=fields)

        self._entries[entry_id] = entry
        self._notify(entry)
        return entry

    def add(self, entry: SummaryEntry) -> SummaryEntry:
        if entry.id in self._entries:
            raise ValueError(f"entry {entry.id} already exists")
        self._entries[entry.id] = entry
        self._notify(entry)
        return entry

    def reconcile(self, remote: Iterable[SummaryEntry]) -> int:
        """Insert remote entries we have not seen, in the remote's order.

        Entries already known locally are left alone. Returns the number added.
        """
        added = 0
        for entry in remote:
            if entry.id in self._entries:
                continue
            status = EntryStatus.MAP_ATTACHED if entry.mindmap_json else EntryStatus.NORMALIZED
            self.add(entry.model_copy(update={"status": status}))
            added += 1
        if added:
            logger.info("Registry reconciled: %d remote entr%s added", added, "y" if added == 1 else "ies")
        return added

    def _notify(self, entry: SummaryEntry) -> None:
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:
                logger.exception("Registry listener failed for %s", entry.id)
