"""importgraph - import time profiling per module and per package"""

import importlib
from typing import Any

__version__ = "0.1.0"

# Submodules are imported lazily so that profiling a program pulls in as
# little of this package (and of pydantic/rich) as possible up front.
_submodules = [
    "constants",
    "errors",
    "event_store",
    "interceptor",
    "logger",
    "module_graph",
    "package_graph",
    "package_resolver",
    "types",
    "visualization",
]

_attributes = {
    "EventStore": "event_store",
    "ImportInterceptor": "interceptor",
    "build_module_graph": "module_graph",
    "build_package_graph": "package_graph",
    "ProjectPackageResolver": "package_resolver",
    "RunLogger": "logger",
    "ConsistencyError": "errors",
    "NotFoundError": "errors",
    "render_graph_description": "visualization",
}


def __getattr__(name: str) -> Any:
    """Lazily import submodules and their contents."""
    if name in globals():
        return globals()[name]

    if name in _submodules:
        module = importlib.import_module(f".{name}", __name__)
        globals()[name] = module
        return module

    if name in _attributes:
        module = importlib.import_module(f".{_attributes[name]}", __name__)
        value = getattr(module, name)
        globals()[name] = value
        return value

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
