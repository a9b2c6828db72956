"""
Raw import timing storage.

The store is filled by the interceptor while a program loads and is read
exactly once by the module graph builder afterwards. It is never shared
through module-level state: create one per profiling run and pass it on.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from importgraph.types import ImportEvent, ModuleRecord

logger = logging.getLogger(__name__)


class EventStore:
    """Append-only map from module id to the import events that loaded it.

    Single writer: callers recording from several threads must serialise
    their calls to :meth:`record`.

    Example:
        >>> store = EventStore()
        >>> _ = store.record("<root>", "app", 12.5, "/src/app/__init__.py")
        >>> store.get("app").import_events[0].elapsed
        12.5
    """

    def __init__(self):
        self._records: Dict[str, ModuleRecord] = {}
        self._seq = 0

    @classmethod
    def from_events(cls, events: Iterable[Sequence]) -> "EventStore":
        """Build a store from ``(parent, imported, elapsed[, location])`` tuples.

        When no location is given the imported id doubles as its location.
        """
        store = cls()
        for event in events:
            if len(event) == 4:
                parent_id, imported_id, elapsed, location = event
            else:
                parent_id, imported_id, elapsed = event
                location = imported_id
            store.record(parent_id, imported_id, elapsed, location)
        return store

    def record(
        self,
        parent_id: str,
        imported_id: str,
        elapsed: float,
        location: Optional[str] = None,
    ) -> ImportEvent:
        """Append an import event, creating the imported module's record on first sight."""
        event = ImportEvent(
            parent_id=parent_id,
            imported_id=imported_id,
            elapsed=elapsed,
            seq=self._seq,
        )
        self._seq += 1

        record = self._records.get(imported_id)
        if record is None:
            record = ModuleRecord(id=imported_id, location=location)
            self._records[imported_id] = record
        elif record.location is None and location is not None:
            record.location = location

        record.import_events.append(event)
        logger.debug(f"Recorded {parent_id} -> {imported_id} ({elapsed:.3f}ms)")
        return event

    def get(self, module_id: str) -> Optional[ModuleRecord]:
        return self._records.get(module_id)

    def records(self) -> List[ModuleRecord]:
        """Return all module records in first-seen order."""
        return list(self._records.values())

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._records

    def __iter__(self) -> Iterator[ModuleRecord]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    @property
    def event_count(self) -> int:
        return self._seq
