"""Tests for the import hook."""

import importlib.util
import inspect
import os
import sys

from autoreloader.importer import ImportHook, TrackingLoader, remove_bytecode, require


class TestRequire:
    """Tests for require()."""

    def test_loaded_module_is_not_imported_again(self):
        """Already loaded modules report False."""
        assert require("sys") is False

    def test_imports_new_module(self, fixture_lib):
        """A new module is imported and reported as such."""
        assert require("fixture_c") is True
        assert "fixture_c" in sys.modules


class TestImportHook:
    """Tests for ImportHook."""

    def test_install_is_idempotent(self, reloader):
        """Installing twice keeps a single entry in sys.meta_path."""
        hook = reloader.import_hook
        hook.install()

        assert sys.meta_path.count(hook) == 1

    def test_uninstall(self, reloader):
        """Uninstalling removes the hook from sys.meta_path."""
        hook = reloader.import_hook
        hook.uninstall()

        assert not hook.installed
        assert hook not in sys.meta_path

    def test_unknown_module(self, reloader):
        """The hook finds nothing the other finders cannot find."""
        assert reloader.import_hook.find_spec("fixture_does_not_exist", None) is None

    def test_wraps_loader(self, reloader, fixture_lib):
        """Found specs get a tracking loader around the original one."""
        spec = reloader.import_hook.find_spec("fixture_c", None)

        assert isinstance(spec.loader, TrackingLoader)
        assert spec.loader.wrapped.__class__.__name__ == "SourceFileLoader"

    def test_loader_delegates_other_attributes(self, reloader, fixture_lib):
        """Source introspection keeps working through the wrapper."""
        reloader.require("fixture_c")
        module = sys.modules["fixture_c"]

        assert "def count()" in module.__loader__.get_source("fixture_c")
        assert "def count()" in inspect.getsource(module)

    def test_hook_ignores_other_hooks(self, reloader, fixture_lib):
        """Stacked hooks do not wrap loaders twice."""
        other = ImportHook(reloader.tracker)
        sys.meta_path.insert(0, other)
        try:
            reloader.require("fixture_c")
        finally:
            other.uninstall()

        loader = sys.modules["fixture_c"].__spec__.loader
        assert isinstance(loader, TrackingLoader)
        assert not isinstance(loader.wrapped, TrackingLoader)


class TestCachedBytecode:
    """Tests for dropping cached bytecode on unload."""

    def test_missing_bytecode(self, tmp_path):
        """A source file without cached bytecode is left alone."""
        source = tmp_path / "module.py"
        source.write_text("X = 1")

        assert remove_bytecode(str(source)) is False

    def test_same_size_edit_in_same_second_is_picked_up(self, reloader, fixture_lib, monkeypatch):
        """An edit that keeps size and mtime still re-executes from source."""
        monkeypatch.setattr(sys, "dont_write_bytecode", False)
        source = fixture_lib / "fixture_app.py"
        stat = source.stat()

        reloader.require("fixture_app")
        assert sys.modules["fixture_app"].VERSION == "1"
        assert os.path.exists(importlib.util.cache_from_source(str(source)))

        source.write_text(source.read_text().replace('VERSION = "1"', 'VERSION = "2"'))
        os.utime(source, ns=(stat.st_atime_ns, stat.st_mtime_ns))
        reloader.unload()

        assert not os.path.exists(importlib.util.cache_from_source(str(source)))
        reloader.require("fixture_app")
        assert sys.modules["fixture_app"].VERSION == "2"
