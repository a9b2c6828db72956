from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from importgraph.types.events import ImportEvent


class PackageRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    path: str


class ExpandedModule(BaseModel):
    """A module record enriched with its direct children and time attribution."""

    model_config = ConfigDict(frozen=True)

    id: str
    location: str
    import_events: Tuple[ImportEvent, ...] = ()
    children: Tuple[ImportEvent, ...] = Field(
        default=(),
        description="Direct imports made by this module, heaviest first",
    )
    total_time: float = 0
    total_child_time: float = 0
    own_time: float = 0
    package_name: Optional[str] = None
    package_path: Optional[str] = None

    @property
    def has_negative_own_time(self) -> bool:
        # Only happens when the max-of-imports estimate undercuts the child sum.
        return self.own_time < 0


class PackageImport(BaseModel):
    """A cross-package dependency with its raw edge times summed."""

    model_config = ConfigDict(frozen=True)

    parent_path: str
    imported_path: str
    imported_name: str
    elapsed: float = 0


class PackageInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    modules: Tuple[ExpandedModule, ...] = ()
    own_time: float = 0
    total_time: float = 0
    children: Tuple[PackageImport, ...] = ()

    @computed_field
    def external_time(self) -> float:
        return sum(child.elapsed for child in self.children)


class TreeEntry(BaseModel):
    """One row produced by a tree walk, independent of how it gets printed."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    label: str
    depth: int = 0
    total_time: float = 0
    own_time: float = 0
    import_time: float = 0
    repeat: bool = False
    missing: bool = False
