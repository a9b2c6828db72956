"""Import graph visualization utilities.

Tree walks produce :class:`TreeEntry` rows, which are then formatted either as
plain indented text or as a Rich tree. The package graph can also be emitted
as a Graphviz ``digraph`` description for other tools to consume.

Every walk owns its visited set. A node printed once is marked REPEAT
everywhere else in the same render instead of being expanded again, which
keeps import cycles finite.
"""

import logging
import os
from typing import Dict, Iterator, List, Mapping, Optional, Set

import rich.text
import rich.tree

from importgraph.constants import (
    DEFAULT_TIME_COLOR,
    HIGH_TIME_COLOR,
    HIGH_TIME_THRESHOLD_MS,
    MEDIUM_TIME_COLOR,
    MEDIUM_TIME_THRESHOLD_MS,
    NOT_FOUND_MARKER,
    REPEAT_MARKER,
    RICH_TIME_STYLES,
    ROOT_ID,
    TREE_INDENT,
)
from importgraph.errors import NotFoundError
from importgraph.types import (
    ExpandedModule,
    ImportEvent,
    PackageImport,
    PackageInfo,
    TreeEntry,
)

logger = logging.getLogger(__name__)


def format_ms(value: float) -> str:
    """One decimal place, without a trailing ``.0``: ``5``, ``3.2``, ``1234567``."""
    text = f"{value:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return "0" if text == "-0" else text


def get_color(time: float) -> str:
    if time >= HIGH_TIME_THRESHOLD_MS:
        return HIGH_TIME_COLOR
    elif time >= MEDIUM_TIME_THRESHOLD_MS:
        return MEDIUM_TIME_COLOR
    else:
        return DEFAULT_TIME_COLOR


def shorten_path(path: str, cwd: Optional[str] = None) -> str:
    """Show ``path`` relative to the working directory when it lies below it."""
    cwd = cwd if cwd is not None else os.getcwd()
    prefix = cwd.rstrip(os.sep) + os.sep
    if path.startswith(prefix):
        return path[len(prefix):]
    return path


def root_edge(modules: Mapping[str, ExpandedModule], root_id: str) -> ImportEvent:
    """Return the edge a render of ``root_id`` starts from.

    That is the root's first recorded importer edge. A root that was never
    observed gets a zero-time placeholder edge, which renders as NOT FOUND.
    """
    module = modules.get(root_id)
    if module is not None and module.import_events:
        return module.import_events[0]
    return ImportEvent(parent_id=ROOT_ID, imported_id=root_id, elapsed=0, seq=0)


def _lookup(nodes: Mapping, node_id: str):
    try:
        return nodes[node_id]
    except KeyError:
        raise NotFoundError(node_id) from None


def walk_module_tree(
    modules: Mapping[str, ExpandedModule],
    root: ImportEvent,
    visited: Optional[Set[str]] = None,
    depth: int = 0,
) -> Iterator[TreeEntry]:
    """Yield one row per module reached from ``root`` in depth-first pre-order.

    Args:
        modules: Expanded module graph
        root: Edge to start from, see :func:`root_edge`
        visited: Ids already printed in this render; a fresh set by default
        depth: Indentation level of ``root``
    """
    if visited is None:
        visited = set()

    try:
        module = _lookup(modules, root.imported_id)
    except NotFoundError as e:
        logger.debug(f"Module tree: {e}")
        yield TreeEntry(node_id=e.node_id, label=e.node_id, depth=depth, missing=True)
        return

    repeat = module.id in visited
    yield TreeEntry(
        node_id=module.id,
        label=module.location,
        depth=depth,
        total_time=module.total_time,
        own_time=module.own_time,
        import_time=root.elapsed,
        repeat=repeat,
    )
    if repeat:
        return

    visited.add(module.id)
    for child in module.children:
        yield from walk_module_tree(modules, child, visited, depth + 1)


def walk_package_tree(
    modules: Mapping[str, ExpandedModule],
    packages: Mapping[str, PackageInfo],
    root: ImportEvent,
    visited: Optional[Set[str]] = None,
) -> Iterator[TreeEntry]:
    """Yield one row per package reached from ``root``.

    A module that belongs to a package is shown as that package and expands
    into the package's cross-package dependencies. A module without a
    package is shown by its location and expands into its own imports.
    """
    if visited is None:
        visited = set()

    def visit_package(package: PackageInfo, elapsed: float, depth: int) -> Iterator[TreeEntry]:
        repeat = package.path in visited
        yield TreeEntry(
            node_id=package.path,
            label=package.name,
            depth=depth,
            total_time=package.total_time,
            own_time=package.own_time,
            import_time=elapsed,
            repeat=repeat,
        )
        if repeat:
            return
        visited.add(package.path)
        for child in package.children:
            yield from visit_package_edge(child, depth + 1)

    def visit_package_edge(edge: PackageImport, depth: int) -> Iterator[TreeEntry]:
        try:
            package = _lookup(packages, edge.imported_path)
        except NotFoundError as e:
            logger.debug(f"Package tree: {e}")
            yield TreeEntry(node_id=e.node_id, label=edge.imported_name, depth=depth, missing=True)
            return
        yield from visit_package(package, edge.elapsed, depth)

    def visit_module_edge(edge: ImportEvent, depth: int) -> Iterator[TreeEntry]:
        try:
            module = _lookup(modules, edge.imported_id)
            package = None
            if module.package_path is not None:
                package = _lookup(packages, module.package_path)
        except NotFoundError as e:
            logger.debug(f"Package tree: {e}")
            yield TreeEntry(node_id=e.node_id, label=e.node_id, depth=depth, missing=True)
            return

        if package is not None:
            yield from visit_package(package, edge.elapsed, depth)
            return

        repeat = module.id in visited
        yield TreeEntry(
            node_id=module.id,
            label=module.location,
            depth=depth,
            total_time=module.total_time,
            own_time=module.own_time,
            import_time=edge.elapsed,
            repeat=repeat,
        )
        if repeat:
            return
        visited.add(module.id)
        for child in module.children:
            yield from visit_module_edge(child, depth + 1)

    yield from visit_module_edge(root, 0)


def format_tree_line(entry: TreeEntry, cwd: Optional[str] = None) -> str:
    pad = TREE_INDENT * entry.depth
    if entry.missing:
        return f"{pad}{entry.label} - {NOT_FOUND_MARKER}"

    line = (
        f"{pad}{shorten_path(entry.label, cwd)} total={format_ms(entry.total_time)}ms "
        f"own={format_ms(entry.own_time)}ms imp={format_ms(entry.import_time)}ms"
    )
    if entry.repeat:
        line += f" {REPEAT_MARKER}"
    return line


def format_tree_lines(entries: Iterator[TreeEntry], cwd: Optional[str] = None) -> List[str]:
    return [format_tree_line(entry, cwd) for entry in entries]


def build_rich_tree(
    entries: Iterator[TreeEntry],
    title: str = "Import times",
    cwd: Optional[str] = None,
) -> rich.tree.Tree:
    """Arrange tree rows into a Rich tree, colored by total time."""
    tree = rich.tree.Tree(f"[bold bright_cyan]{title}[/]", style="bold bright_cyan")
    # Last Rich node seen at each depth; a row hangs off the one above it.
    parents: Dict[int, rich.tree.Tree] = {-1: tree}

    for entry in entries:
        label = rich.text.Text()
        if entry.missing:
            label.append(entry.label, style="bold")
            label.append(f" {NOT_FOUND_MARKER}", style="bold red")
        else:
            label.append(shorten_path(entry.label, cwd), style=RICH_TIME_STYLES[get_color(entry.total_time)])
            label.append(
                f" total={format_ms(entry.total_time)}ms own={format_ms(entry.own_time)}ms "
                f"imp={format_ms(entry.import_time)}ms",
                style="dim",
            )
            if entry.repeat:
                label.append(f" {REPEAT_MARKER}", style="italic yellow")

        parent = parents.get(entry.depth - 1, tree)
        parents[entry.depth] = parent.add(label)

    return tree


def _package_matches(name: str, package_filter: Optional[str]) -> bool:
    return not package_filter or name.startswith(package_filter)


def render_graph_description(
    packages: Mapping[str, PackageInfo],
    package_filter: Optional[str] = None,
) -> List[str]:
    """Describe the package graph as a Graphviz ``digraph``.

    Args:
        packages: Package graph from ``build_package_graph``
        package_filter: Name prefix of packages to draw. Edges into other
            packages are not drawn; their time is summed into the source
            node's ``deps`` figure instead.

    Returns:
        Output lines, starting with ``digraph {`` and ending with ``}``
    """
    lines = ["digraph {"]

    for package in packages.values():
        if not _package_matches(package.name, package_filter):
            continue

        dependency_time = 0.0
        for child in package.children:
            target = packages.get(child.imported_path)
            if target is None:
                logger.warning(f"Graph description: {child.imported_path} - {NOT_FOUND_MARKER}")
                lines.append(f"  // {child.imported_path} - {NOT_FOUND_MARKER}")
                continue
            if not _package_matches(target.name, package_filter):
                dependency_time += child.elapsed
                continue
            lines.append(
                f'  "{package.path}" -> "{target.path}" '
                f'[label="{format_ms(child.elapsed)}ms" color="{get_color(child.elapsed)}"]'
            )

        label = (
            f"{package.name}\\ntotal={format_ms(package.total_time)}ms "
            f"own={format_ms(package.own_time)}ms deps={format_ms(dependency_time)}ms"
        )
        lines.append(f'  "{package.path}" [color="{get_color(package.total_time)}" label="{label}"]')

    lines.append("}")
    return lines
