"""Tests for ImportInterceptor."""

import builtins
import sys
import textwrap

import pytest

from importgraph.constants import ROOT_ID
from importgraph.event_store import EventStore
from importgraph.interceptor import ImportInterceptor, resolve_imported_name
from importgraph.module_graph import build_module_graph
from importgraph.visualization import format_tree_lines, root_edge, walk_module_tree

FIXTURE_MODULES = (
    "igfix_pkg",
    "igfix_pkg.helper",
    "igfix_pkg.leaf",
    "igfix_other",
    "igfix_solo",
    "igfix_broken",
    "igfix_deep",
    "igfix_deep.sub",
    "igfix_heavy",
    "igfix_fromdeep",
    "igfix_halfway",
    "igfix_guard",
    "igfix_lazy",
)


@pytest.fixture
def fixture_tree(tmp_path, monkeypatch):
    """Small packages on sys.path.

    igfix_pkg -> helper -> leaf plus igfix_other; igfix_deep, whose __init__
    imports igfix_heavy; and modules that fail or import lazily.
    """
    package = tmp_path / "igfix_pkg"
    package.mkdir()
    (package / "__init__.py").write_text(
        textwrap.dedent(
            """
            import sys
            from . import helper
            import igfix_other
            """
        )
    )
    (package / "helper.py").write_text("from igfix_pkg import leaf\nVALUE = leaf.VALUE\n")
    (package / "leaf.py").write_text("VALUE = 42\n")
    (tmp_path / "igfix_other.py").write_text("import igfix_pkg.leaf\n")
    (tmp_path / "igfix_solo.py").write_text("VALUE = 1\n")
    (tmp_path / "igfix_broken.py").write_text("raise RuntimeError('broken on import')\n")

    deep = tmp_path / "igfix_deep"
    deep.mkdir()
    (deep / "__init__.py").write_text("import igfix_heavy\nCONSTANT = 1\n")
    (deep / "sub.py").write_text("X = 1\n")
    (tmp_path / "igfix_heavy.py").write_text("VALUE = 1\n")
    (tmp_path / "igfix_fromdeep.py").write_text("from igfix_deep import sub, CONSTANT\n")
    (tmp_path / "igfix_halfway.py").write_text("import igfix_solo\nraise RuntimeError('halfway')\n")
    (tmp_path / "igfix_guard.py").write_text(
        "try:\n    import igfix_halfway\nexcept RuntimeError:\n    pass\n"
    )
    (tmp_path / "igfix_lazy.py").write_text("def load():\n    import igfix_solo\n    return igfix_solo\n")

    monkeypatch.syspath_prepend(str(tmp_path))
    yield tmp_path
    for name in FIXTURE_MODULES:
        sys.modules.pop(name, None)


class TestResolveImportedName:
    def test_absolute(self):
        assert resolve_imported_name("os.path", {"__name__": "app"}, 0) == "os.path"

    def test_relative_from_package_attribute(self):
        assert resolve_imported_name("helper", {"__package__": "pkg"}, 1) == "pkg.helper"

    def test_bare_relative(self):
        assert resolve_imported_name("", {"__package__": "pkg.sub"}, 2) == "pkg"

    def test_relative_without_package_attribute(self):
        assert resolve_imported_name("util", {"__name__": "pkg.mod"}, 1) == "pkg.util"
        assert resolve_imported_name("util", {"__name__": "pkg", "__path__": []}, 1) == "pkg.util"

    def test_beyond_top_level(self):
        assert resolve_imported_name("x", {"__package__": "pkg"}, 3) is None


class TestImportInterceptor:
    def test_records_parent_child_edges(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            root_id = interceptor.import_module("igfix_pkg")

        assert root_id == "igfix_pkg"
        root_event = store.get("igfix_pkg").import_events[0]
        assert root_event.parent_id == ROOT_ID
        assert store.get("igfix_pkg").location == str(fixture_tree / "igfix_pkg" / "__init__.py")

        helper_parents = [e.parent_id for e in store.get("igfix_pkg.helper").import_events]
        assert helper_parents == ["igfix_pkg"]
        leaf_parents = [e.parent_id for e in store.get("igfix_pkg.leaf").import_events]
        assert leaf_parents == ["igfix_pkg.helper", "igfix_other"]
        assert [e.parent_id for e in store.get("igfix_other").import_events] == ["igfix_pkg"]

    def test_builtins_and_self_imports_are_skipped(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            interceptor.import_module("igfix_pkg")

        assert store.get("sys") is None
        for record in store:
            for event in record.import_events:
                assert event.parent_id != event.imported_id

    def test_elapsed_comes_from_the_clock(self, fixture_tree):
        ticks = iter(range(10_000))
        store = EventStore()
        with ImportInterceptor(store, clock=lambda: next(ticks)) as interceptor:
            interceptor.import_module("igfix_pkg")

        for record in store:
            for event in record.import_events:
                assert event.elapsed >= 1000
                assert event.elapsed == int(event.elapsed)

    def test_cached_import_is_recorded_again(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            interceptor.import_module("igfix_pkg")
            interceptor.import_module("igfix_pkg")

        assert len(store.get("igfix_pkg").import_events) == 2

    def test_import_hook_is_restored(self, fixture_tree):
        original = builtins.__import__
        store = EventStore()

        with pytest.raises(RuntimeError, match="broken on import"):
            with ImportInterceptor(store) as interceptor:
                assert builtins.__import__ is not original
                interceptor.import_module("igfix_broken")

        assert builtins.__import__ is original
        broken = store.get("igfix_broken")
        assert broken.location == str(fixture_tree / "igfix_broken.py")
        assert broken.import_events[0].parent_id == ROOT_ID

    def test_double_install_is_rejected(self):
        interceptor = ImportInterceptor(EventStore())
        with interceptor:
            with pytest.raises(RuntimeError, match="already installed"):
                interceptor.install()

    def test_target_requires_install(self):
        with pytest.raises(RuntimeError, match="must be installed"):
            ImportInterceptor(EventStore()).import_module("json")

    def test_run_path_records_script_as_main(self, fixture_tree):
        script = fixture_tree / "script.py"
        script.write_text(
            textwrap.dedent(
                """
                import sys
                import igfix_solo
                assert sys.argv[1:] == ["--flag", "value"]
                sys.exit(3)
                """
            )
        )
        saved_argv = list(sys.argv)

        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            root_id = interceptor.run(str(script), ["--flag", "value"])

        assert root_id == "__main__"
        assert sys.argv == saved_argv
        main = store.get("__main__")
        assert main.location == str(script)
        assert main.import_events[0].parent_id == ROOT_ID
        assert [e.parent_id for e in store.get("igfix_solo").import_events] == ["__main__"]

    def test_run_dispatches_module_names(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            assert interceptor.run("igfix_other") == "igfix_other"

        assert "igfix_pkg.leaf" in store


class TestImplicitPackageLoads:
    def test_dotted_import_records_each_package(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            interceptor.import_module("igfix_deep.sub")

        assert [e.parent_id for e in store.get("igfix_deep").import_events] == [ROOT_ID]
        assert [e.parent_id for e in store.get("igfix_deep.sub").import_events] == [ROOT_ID]
        assert [e.parent_id for e in store.get("igfix_heavy").import_events] == ["igfix_deep"]
        assert store.get("igfix_deep").location == str(fixture_tree / "igfix_deep" / "__init__.py")

    def test_package_imports_are_not_charged_to_the_leaf(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            interceptor.import_module("igfix_deep.sub")

        modules = build_module_graph(store)
        assert [e.imported_id for e in modules["igfix_deep"].children] == ["igfix_heavy"]
        assert modules["igfix_deep.sub"].children == ()
        heavy = store.get("igfix_heavy").import_events[0].elapsed
        assert modules["igfix_deep"].total_time >= heavy

        lines = format_tree_lines(walk_module_tree(modules, root_edge(modules, "igfix_deep")))
        assert "igfix_heavy.py" in lines[1]

    def test_from_import_loads_package_then_submodules(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            interceptor.import_module("igfix_fromdeep")

        assert [e.parent_id for e in store.get("igfix_deep").import_events] == ["igfix_fromdeep"]
        assert [e.parent_id for e in store.get("igfix_deep.sub").import_events] == ["igfix_fromdeep"]
        assert [e.parent_id for e in store.get("igfix_heavy").import_events] == ["igfix_deep"]
        # CONSTANT is an attribute of the package, not a module.
        assert "igfix_deep.CONSTANT" not in store

    def test_every_parent_has_a_record(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            interceptor.import_module("igfix_pkg")
            interceptor.import_module("igfix_deep.sub")
            interceptor.import_module("igfix_fromdeep")

        for record in store:
            for event in record.import_events:
                assert event.parent_id == ROOT_ID or event.parent_id in store


class TestFailedAndLazyImports:
    def test_failed_import_keeps_its_children_attached(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            interceptor.import_module("igfix_guard")

        assert "igfix_halfway" not in sys.modules
        assert [e.parent_id for e in store.get("igfix_halfway").import_events] == ["igfix_guard"]
        assert [e.parent_id for e in store.get("igfix_solo").import_events] == ["igfix_halfway"]

        modules = build_module_graph(store)
        assert [e.imported_id for e in modules["igfix_halfway"].children] == ["igfix_solo"]

    def test_missing_module_is_not_recorded(self, fixture_tree):
        store = EventStore()
        with ImportInterceptor(store) as interceptor:
            with pytest.raises(ModuleNotFoundError):
                interceptor.import_module("igfix_does_not_exist")

        assert len(store) == 0

    def test_import_from_module_loaded_before_profiling_goes_to_root(self, fixture_tree):
        import igfix_lazy

        store = EventStore()
        with ImportInterceptor(store):
            igfix_lazy.load()

        assert "igfix_lazy" not in store
        assert [e.parent_id for e in store.get("igfix_solo").import_events] == [ROOT_ID]
