from .events import ImportEvent, ModuleRecord
from .graph import (
    ExpandedModule,
    PackageImport,
    PackageInfo,
    PackageRef,
    TreeEntry,
)

__all__ = [
    "ImportEvent",
    "ModuleRecord",
    "ExpandedModule",
    "PackageImport",
    "PackageInfo",
    "PackageRef",
    "TreeEntry",
]
