import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console

from importgraph.constants import LOG_LEVEL_ENV, PACKAGE_FILTER_ENV
from importgraph.errors import ConsistencyError
from importgraph.event_store import EventStore
from importgraph.interceptor import ImportInterceptor
from importgraph.logger import RunLogger
from importgraph.module_graph import build_module_graph
from importgraph.package_graph import build_package_graph
from importgraph.package_resolver import ProjectPackageResolver
from importgraph.types import ExpandedModule, PackageInfo
from importgraph.visualization import (
    build_rich_tree,
    format_tree_lines,
    render_graph_description,
    root_edge,
    walk_module_tree,
    walk_package_tree,
)

app = typer.Typer(help="Measure where import time goes, per module and per package.")

console = Console()
err_console = Console(stderr=True)


class RenderMode(str, Enum):
    tree = "tree"
    packages = "packages"
    graph = "graph"


class TreeStyle(str, Enum):
    basic = "basic"
    rich = "rich"


class _Settings:
    log_level: int = logging.WARNING
    log_dir: Optional[Path] = None


settings = _Settings()


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        envvar=LOG_LEVEL_ENV,
        help="Logging level for diagnostics written to stderr",
    ),
    log_dir: Optional[Path] = typer.Option(
        None,
        help="Directory to also write a log file to",
    ),
):
    """Profile the import time of a Python module or script."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    settings.log_level = level
    settings.log_dir = log_dir


def render(
    mode: RenderMode,
    modules: Dict[str, ExpandedModule],
    packages: Dict[str, PackageInfo],
    root_id: str,
    style: TreeStyle = TreeStyle.basic,
    package_filter: Optional[str] = None,
):
    """Render the graphs for ``mode``; a Rich tree for the rich style, else text lines."""
    if mode == RenderMode.graph:
        return render_graph_description(packages, package_filter)

    root = root_edge(modules, root_id)
    if mode == RenderMode.packages:
        entries = walk_package_tree(modules, packages, root)
    else:
        entries = walk_module_tree(modules, root)

    if style == TreeStyle.rich:
        return build_rich_tree(entries, title=f"Import times for {root_id}")
    return format_tree_lines(entries)


@app.command()
def run(
    target: str = typer.Argument(..., help="Module name or path of a script to profile"),
    args: Optional[List[str]] = typer.Argument(None, help="Arguments passed to a script target"),
    mode: RenderMode = typer.Option(
        RenderMode.tree,
        help="tree: per-module tree, packages: per-package tree, graph: Graphviz description",
    ),
    style: TreeStyle = typer.Option(TreeStyle.basic, help="Output style for the tree modes"),
    package_filter: Optional[str] = typer.Option(
        None,
        "--filter",
        envvar=PACKAGE_FILTER_ENV,
        help="Only draw packages whose name starts with this prefix (graph mode)",
    ),
    output: Optional[Path] = typer.Option(None, help="Write plain text output to this file"),
):
    """Import TARGET with timing enabled and print where the time went."""
    if output is not None:
        style = TreeStyle.basic

    failed = False
    with RunLogger(Path(target).name, level=settings.log_level, log_dir=settings.log_dir) as run_logger:
        run_logger.start_run(target, mode=mode.value, style=style.value, package_filter=package_filter)

        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            root_id = interceptor.run(target, args or [])

        try:
            modules = build_module_graph(store, ProjectPackageResolver())
            packages = build_package_graph(modules)
        except ConsistencyError as e:
            run_logger.log_errors(e, {"target": target})
            err_console.print(f"[bold red]Inconsistent import data: {e}[/bold red]")
            failed = True
        else:
            root = modules.get(root_id)
            run_logger.log_metrics(
                {
                    "import_events": store.event_count,
                    "modules": len(modules),
                    "packages": len(packages),
                    "root_total_ms": root.total_time if root else 0,
                }
            )
            result = render(mode, modules, packages, root_id, style, package_filter)

    if failed:
        raise typer.Exit(1)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text("\n".join(result) + "\n", encoding="utf-8")
        err_console.print(f"[bold green]Wrote {output}[/bold green]")
    elif isinstance(result, list):
        for line in result:
            console.print(line, markup=False, highlight=False, soft_wrap=True)
    else:
        console.print(result)


if __name__ == "__main__":
    app()
