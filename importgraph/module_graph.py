import logging
from typing import Dict, List, Optional

from importgraph.base_classes import BasePackageResolver
from importgraph.constants import ROOT_ID
from importgraph.errors import ConsistencyError
from importgraph.event_store import EventStore
from importgraph.types import ExpandedModule, ImportEvent, ModuleRecord

logger = logging.getLogger(__name__)


def _collect_children(store: EventStore) -> Dict[str, List[ImportEvent]]:
    """Invert the imported-by relation into a parent -> direct children mapping.

    Raises:
        ConsistencyError: If an event names a parent other than the root that
            was never recorded as a module itself
    """
    children: Dict[str, List[ImportEvent]] = {}
    for record in store:
        for event in record.import_events:
            children.setdefault(event.parent_id, []).append(event)

    orphans = [
        event
        for parent_id, events in children.items()
        if parent_id != ROOT_ID and parent_id not in store
        for event in events
    ]
    if orphans:
        listed = ", ".join(f"{e.parent_id} -> {e.imported_id}" for e in orphans[:5])
        more = f" and {len(orphans) - 5} more" if len(orphans) > 5 else ""
        raise ConsistencyError(
            f"{len(orphans)} import events come from modules with no module record: {listed}{more}"
        )
    return children


def expand_module(
    record: ModuleRecord,
    children: List[ImportEvent],
    resolver: Optional[BasePackageResolver] = None,
) -> ExpandedModule:
    if not record.location:
        raise ConsistencyError(
            f"Module {record.id} was loaded but its location was never captured"
        )

    # Heaviest first; equal times keep the order the events were observed in.
    ordered = sorted(children, key=lambda event: (-event.elapsed, event.seq))
    total_child_time = sum(event.elapsed for event in ordered)
    # Only the first import does real work; later ones hit the module cache
    # and report near zero, so the slowest event stands in for the real load.
    total_time = max((event.elapsed for event in record.import_events), default=0)
    own_time = total_time - total_child_time

    package = resolver.resolve(record.location) if resolver is not None else None

    module = ExpandedModule(
        id=record.id,
        location=record.location,
        import_events=tuple(record.import_events),
        children=tuple(ordered),
        total_time=total_time,
        total_child_time=total_child_time,
        own_time=own_time,
        package_name=package.name if package else None,
        package_path=package.path if package else None,
    )
    if module.has_negative_own_time:
        logger.warning(
            f"Negative own time for {record.id}: total={total_time:.3f}ms "
            f"children={total_child_time:.3f}ms"
        )
    return module


def build_module_graph(
    store: EventStore,
    resolver: Optional[BasePackageResolver] = None,
) -> Dict[str, ExpandedModule]:
    """
    Expand raw import events into per-module records.

    Args:
        store: Fully populated event store; it is only read
        resolver: Package metadata lookup. Without one no module gets a
            package and the package graph comes out empty.

    Returns:
        Module id to expanded record, in the order modules were first seen

    Raises:
        ConsistencyError: If an event comes from a module that has no record,
            or a loaded module has no location
    """
    children = _collect_children(store)

    modules: Dict[str, ExpandedModule] = {}
    for record in store:
        modules[record.id] = expand_module(record, children.get(record.id, []), resolver)

    logger.info(
        f"Built module graph with {len(modules)} modules from {store.event_count} import events"
    )
    return modules
