"""
Package-level contraction of the module graph.

Modules are grouped by the package that owns them. Import chains that stay
inside one package are walked through, so ``a.x -> a.y -> b.z`` (with ``a.*`` in
package A) surfaces as a single A -> B edge. Every raw boundary-crossing
event is counted once per source package, then merged per target package.
"""

import logging
from typing import Dict, List, Mapping

from importgraph.errors import ConsistencyError
from importgraph.types import ExpandedModule, ImportEvent, PackageImport, PackageInfo

logger = logging.getLogger(__name__)


class _PackageAccumulator:
    """Mutable working state for one package while the contraction runs."""

    def __init__(self, name: str, path: str):
        self.name = name
        self.path = path
        self.modules: List[ExpandedModule] = []
        self.own_time = 0.0
        # Ordered set: the same raw event reached from two modules counts once.
        self.crossings: Dict[ImportEvent, None] = {}


def _get_module(modules: Mapping[str, ExpandedModule], module_id: str) -> ExpandedModule:
    try:
        return modules[module_id]
    except KeyError:
        raise ConsistencyError(f"Import of {module_id} has no module record") from None


def find_crossing_imports(
    module: ExpandedModule, modules: Mapping[str, ExpandedModule]
) -> List[ImportEvent]:
    """Collect the boundary-crossing imports reachable from ``module``.

    Children in the same package are walked through; an edge into another
    package is recorded and not followed. The visited set is keyed by target
    module id, so cycles terminate after each module is entered once.
    """
    crossings: List[ImportEvent] = []
    visited = set()
    stack = list(reversed(module.children))

    while stack:
        event = stack.pop()
        target = _get_module(modules, event.imported_id)
        if target.package_path != module.package_path:
            crossings.append(event)
            continue
        if target.id in visited:
            continue
        visited.add(target.id)
        stack.extend(reversed(target.children))

    return crossings


def build_package_graph(modules: Mapping[str, ExpandedModule]) -> Dict[str, PackageInfo]:
    """
    Contract the module graph into a package graph.

    Args:
        modules: Expanded module records from ``build_module_graph``

    Returns:
        Package path to package record, in the order packages were first seen

    Raises:
        ConsistencyError: If a walked import targets an unknown module, or a
            crossing import targets a package that has no record
    """
    accumulators: Dict[str, _PackageAccumulator] = {}

    for module in modules.values():
        if module.package_path is None:
            continue

        package = accumulators.get(module.package_path)
        if package is None:
            package = _PackageAccumulator(module.package_name, module.package_path)
            accumulators[module.package_path] = package

        package.modules.append(module)
        package.own_time += module.own_time
        for event in find_crossing_imports(module, modules):
            package.crossings.setdefault(event, None)

    packages: Dict[str, PackageInfo] = {}
    for package in accumulators.values():
        children: Dict[str, PackageImport] = {}
        for event in package.crossings:
            target = modules[event.imported_id]
            if target.package_path is None:
                logger.debug(
                    f"Skipping import of {target.id} from {package.name}: module has no package"
                )
                continue
            if target.package_path not in accumulators:
                raise ConsistencyError(
                    f"Package {target.package_path} of module {target.id} has no package record"
                )

            child = children.get(target.package_path)
            elapsed = event.elapsed if child is None else child.elapsed + event.elapsed
            children[target.package_path] = PackageImport(
                parent_path=package.path,
                imported_path=target.package_path,
                imported_name=accumulators[target.package_path].name,
                elapsed=elapsed,
            )

        external_time = sum(child.elapsed for child in children.values())
        packages[package.path] = PackageInfo(
            name=package.name,
            path=package.path,
            modules=tuple(package.modules),
            own_time=package.own_time,
            total_time=package.own_time + external_time,
            children=tuple(children.values()),
        )

    logger.info(f"Contracted {len(modules)} modules into {len(packages)} packages")
    return packages
