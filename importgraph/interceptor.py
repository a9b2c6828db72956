"""
Import interception for timing module loads.

Swaps ``builtins.__import__`` for a wrapper that measures each import and
records ``(parent, imported, elapsed)`` into an :class:`EventStore`. Usage:

    store = EventStore()
    with ImportInterceptor(store) as interceptor:
        root_id = interceptor.run("my_package.app")

Only modules that end up in ``sys.modules`` with a ``__file__`` are recorded;
built-in and frozen modules are skipped. Packages loaded implicitly by
``import a.b.c`` and submodules loaded by ``from package import name`` are
imported one by one first, so each of them is timed and recorded under the
importing module. A module that fails to import is still recorded when its
source file can be found.
"""

import builtins
import importlib.util
import logging
import os
import runpy
import sys
import threading
import time
from typing import Callable, List, Optional, Sequence

from importgraph.constants import ROOT_ID
from importgraph.event_store import EventStore

logger = logging.getLogger(__name__)

MAIN_MODULE_ID = "__main__"


def resolve_imported_name(name: str, globals: Optional[dict], level: int) -> Optional[str]:
    """Turn the arguments of an ``__import__`` call into an absolute module name."""
    if level == 0:
        return name

    globals = globals or {}
    package = globals.get("__package__")
    if package is None:
        package = globals.get("__name__", "")
        if "__path__" not in globals:
            package = package.rpartition(".")[0]

    try:
        return importlib.util.resolve_name("." * level + name, package)
    except (ImportError, ValueError) as e:
        logger.debug(f"Cannot resolve relative import {'.' * level}{name} from {package!r}: {e}")
        return None


def _enclosing_packages(module_id: str) -> List[str]:
    """``a.b.c`` -> ``["a", "a.b"]``"""
    parts = module_id.split(".")
    return [".".join(parts[:i]) for i in range(1, len(parts))]


def _pending_submodules(package_id: str, fromlist: Sequence[str]) -> List[str]:
    """Return the fromlist names importlib will try to load as submodules of ``package_id``."""
    package = sys.modules.get(package_id)
    if package is None or not hasattr(package, "__path__"):
        return []

    names: List[str] = []
    for item in fromlist:
        if item == "*":
            names.extend(name for name in getattr(package, "__all__", ()) if isinstance(name, str))
        else:
            names.append(item)

    return [
        f"{package_id}.{name}"
        for name in dict.fromkeys(names)
        if not hasattr(package, name) and f"{package_id}.{name}" not in sys.modules
    ]


def _source_location(module_id: str) -> Optional[str]:
    """Find the file of a module that failed to import, without importing anything."""
    package = module_id.rpartition(".")[0]
    if package and package not in sys.modules:
        return None
    try:
        spec = importlib.util.find_spec(module_id)
    except (ImportError, ValueError):
        return None
    if spec is None or not spec.has_location or not spec.origin:
        return None
    return os.path.abspath(spec.origin)


class ImportInterceptor:
    """Context manager that times every import made while it is installed.

    Args:
        store: Store receiving the import events
        clock: Monotonic clock in seconds (default: ``time.perf_counter``)
    """

    def __init__(self, store: EventStore, clock: Callable[[], float] = time.perf_counter):
        self.store = store
        self._clock = clock
        self._lock = threading.Lock()
        self._local = threading.local()
        self._original_import: Optional[Callable] = None

    @property
    def installed(self) -> bool:
        return self._original_import is not None

    def install(self) -> None:
        if self.installed:
            raise RuntimeError("Import interceptor is already installed")
        self._original_import = builtins.__import__
        builtins.__import__ = self._timed_import
        logger.debug("Installed import interceptor")

    def uninstall(self) -> None:
        if not self.installed:
            return
        builtins.__import__ = self._original_import
        self._original_import = None
        logger.debug("Removed import interceptor")

    def __enter__(self) -> "ImportInterceptor":
        self.install()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.uninstall()

    @property
    def _stack(self) -> List[str]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    def _timed_import(self, name, globals=None, locals=None, fromlist=(), level=0):
        original_import = self._original_import
        if original_import is None or getattr(self._local, "observing", False):
            # Imports triggered while recording are not part of the profiled program.
            return (original_import or builtins.__import__)(name, globals, locals, fromlist, level)

        imported_id = resolve_imported_name(name, globals, level)
        if imported_id is None:
            return original_import(name, globals, locals, fromlist, level)

        parent_id = self._resolve_parent((globals or {}).get("__name__"))

        # Packages a dotted import pulls in are loaded one at a time, in the
        # order importlib would load them, so each one gets its own event.
        loaded = []
        for package_id in _enclosing_packages(imported_id):
            if package_id not in sys.modules:
                self._timed_load(parent_id, package_id)
                loaded.append(package_id)

        if fromlist:
            if imported_id not in sys.modules:
                self._timed_load(parent_id, imported_id)
                loaded.append(imported_id)
            for submodule_id in _pending_submodules(imported_id, fromlist):
                if self._timed_load(parent_id, submodule_id, optional=True):
                    loaded.append(submodule_id)

        self._stack.append(imported_id)
        start = self._clock()
        try:
            module = original_import(name, globals, locals, fromlist, level)
        except Exception:
            self._observe_failure(parent_id, imported_id, (self._clock() - start) * 1000)
            raise
        finally:
            self._stack.pop()
        elapsed = (self._clock() - start) * 1000

        # A from-import whose modules were all loaded above is already recorded.
        if not (fromlist and loaded):
            self._observe(parent_id, imported_id, elapsed)
        return module

    def _timed_load(self, parent_id: str, module_id: str, optional: bool = False) -> bool:
        """Load ``module_id`` by itself and record it under ``parent_id``.

        With ``optional`` a missing module is not an error, matching how
        ``from package import name`` falls back to a plain attribute.
        """
        self._stack.append(module_id)
        start = self._clock()
        try:
            self._original_import(module_id, None, None, (), 0)
        except ModuleNotFoundError as e:
            if optional and e.name == module_id:
                return False
            self._observe_failure(parent_id, module_id, (self._clock() - start) * 1000)
            raise
        except Exception:
            self._observe_failure(parent_id, module_id, (self._clock() - start) * 1000)
            raise
        finally:
            self._stack.pop()
        self._observe(parent_id, module_id, (self._clock() - start) * 1000)
        return True

    def _resolve_parent(self, name: Optional[str]) -> str:
        """Map the importing module's name to the node its time belongs to.

        Modules loaded before profiling started are never recorded, so an
        import they make at call time goes to the innermost module still
        loading, or to the root when nothing is.
        """
        if not name:
            return ROOT_ID
        if name == ROOT_ID or name in self.store or name in self._stack:
            return name
        stack = self._stack
        return stack[-1] if stack else ROOT_ID

    def _observe(self, parent_id: str, imported_id: str, elapsed: float) -> None:
        if parent_id == imported_id:
            return
        self._local.observing = True
        try:
            module = sys.modules.get(imported_id)
            location = getattr(module, "__file__", None) or _source_location(imported_id)
            if location:
                self.record(parent_id, imported_id, elapsed, os.path.abspath(location))
        finally:
            self._local.observing = False

    def _observe_failure(self, parent_id: str, imported_id: str, elapsed: float) -> None:
        # Gone from sys.modules by now, so the file comes from the finder.
        logger.debug(f"Import of {imported_id} failed after {elapsed:.3f}ms")
        self._observe(parent_id, imported_id, elapsed)

    def record(self, parent_id: str, imported_id: str, elapsed: float, location: str) -> None:
        with self._lock:
            self.store.record(parent_id, imported_id, elapsed, location)

    def _require_installed(self) -> None:
        if not self.installed:
            raise RuntimeError("Import interceptor must be installed before running a target")

    def import_module(self, name: str) -> str:
        """Import ``name`` as the profiled root and return its module id."""
        self._require_installed()
        cwd = os.getcwd()
        added = cwd not in sys.path
        if added:
            sys.path.insert(0, cwd)
        try:
            self._timed_import(name, {"__name__": ROOT_ID}, None, (), 0)
        finally:
            if added:
                sys.path.remove(cwd)
        return name

    def run_path(self, path: str, argv: Sequence[str] = ()) -> str:
        """Run the script at ``path`` as ``__main__`` and return its module id.

        A ``sys.exit`` from the script ends the run but still records it.
        """
        self._require_installed()
        path = os.path.abspath(path)
        script_dir = os.path.dirname(path)
        saved_argv: List[str] = sys.argv
        sys.argv = [path, *argv]
        sys.path.insert(0, script_dir)

        self._stack.append(MAIN_MODULE_ID)
        start = self._clock()
        try:
            runpy.run_path(path, run_name=MAIN_MODULE_ID)
        except SystemExit as e:
            logger.info(f"{path} exited with status {e.code}")
        finally:
            elapsed = (self._clock() - start) * 1000
            self._stack.pop()
            sys.argv = saved_argv
            sys.path.remove(script_dir)

        self.record(ROOT_ID, MAIN_MODULE_ID, elapsed, path)
        return MAIN_MODULE_ID

    def run(self, target: str, argv: Sequence[str] = ()) -> str:
        """Profile ``target``, a script path or a module name.

        Returns:
            Id of the root module to render from
        """
        if target.endswith(".py") or os.path.isfile(target):
            return self.run_path(target, argv)
        if argv:
            logger.warning(f"Ignoring arguments {list(argv)} for module target {target}")
        return self.import_module(target)
