"""Import interception.

``ImportHook`` is a meta path finder placed in front of ``sys.meta_path``.
It never finds anything on its own: it asks the finders behind it for a
spec and wraps the spec's loader so that module execution goes through
the load tracker.
"""

import importlib
import importlib.abc
import importlib.machinery
import importlib.util
import logging
import os
import sys
from collections.abc import Iterable, Sequence
from types import ModuleType
from typing import Any

from autoreloader.paths import normalize_path
from autoreloader.tracker import LoadTracker

logger = logging.getLogger(__name__)


def require(name: str) -> bool:
    """Import a module unless it is already loaded.

    Args:
        name: Fully qualified module name.

    Returns:
        True if the module was newly imported, False if it was already loaded.
    """
    if name in sys.modules:
        return False
    importlib.import_module(name)
    return True


def remove_bytecode(path: str) -> bool:
    """Delete the cached bytecode of a source file, if there is any."""
    try:
        cached = importlib.util.cache_from_source(path)
    except NotImplementedError:
        return False
    try:
        os.remove(cached)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not remove cached bytecode {cached}: {e}")
        return False
    return True


class TrackingLoader(importlib.abc.Loader):
    """Loader wrapper that runs ``exec_module`` under the load tracker.

    Any attribute not defined here (``get_source``, ``get_resource_reader``,
    ``is_package``...) is served by the wrapped loader.
    """

    def __init__(self, loader: Any, tracker: LoadTracker):
        self._loader = loader
        self._tracker = tracker

    @property
    def wrapped(self) -> Any:
        return self._loader

    def create_module(self, spec: importlib.machinery.ModuleSpec) -> ModuleType | None:
        create = getattr(self._loader, "create_module", None)
        if create is None:
            return None
        return create(spec)

    def exec_module(self, module: ModuleType) -> None:
        spec = module.__spec__
        path = None
        if spec is not None and spec.has_location and spec.origin:
            path = normalize_path(spec.origin)

        def load() -> bool:
            self._loader.exec_module(module)
            return True

        # The import system registers the module before executing it.
        self._tracker.track_load(path, load, registered=(module.__name__,))

    def __getattr__(self, name: str) -> Any:
        if name == "_loader":
            raise AttributeError(name)
        return getattr(self._loader, name)

    def __repr__(self) -> str:
        return f"<TrackingLoader for {self._loader!r}>"


class ImportHook(importlib.abc.MetaPathFinder):
    """Routes every import through a LoadTracker.

    Install once; the hook stays in place for the life of the process.
    """

    def __init__(self, tracker: LoadTracker):
        self.tracker = tracker

    @property
    def installed(self) -> bool:
        return self in sys.meta_path

    def install(self) -> None:
        if self.installed:
            return
        sys.meta_path.insert(0, self)
        logger.debug("Import hook installed")

    def uninstall(self) -> None:
        """Remove the hook from ``sys.meta_path``.

        Modules already loaded keep their tracking loaders.
        """
        if self.installed:
            sys.meta_path.remove(self)
            logger.debug("Import hook removed")

    def find_spec(
        self,
        fullname: str,
        path: Sequence[str] | None,
        target: ModuleType | None = None,
    ) -> importlib.machinery.ModuleSpec | None:
        for finder in list(sys.meta_path):
            if finder is self or isinstance(finder, ImportHook):
                continue
            find_spec = getattr(finder, "find_spec", None)
            if find_spec is None:
                continue
            spec = find_spec(fullname, path, target)
            if spec is None:
                continue
            loader = spec.loader
            if loader is not None and hasattr(loader, "exec_module") and not isinstance(loader, TrackingLoader):
                spec.loader = TrackingLoader(loader, self.tracker)
            return spec
        return None

    def forget(self, paths: Iterable[str]) -> None:
        """Make the import system reconsider unloaded files as never loaded.

        Module removal from the registry happens through the namespace; this
        drops the cached bytecode of the unloaded source files and the
        finders' cached directory listings. The bytecode check compares
        whole-second mtimes and sizes, so an edit within the same second
        would otherwise run stale code.
        """
        paths = list(paths)
        if not paths:
            return
        for path in paths:
            if path.endswith(".py"):
                remove_bytecode(path)
        importlib.invalidate_caches()
        logger.debug(f"Forgot {len(paths)} loaded files")
