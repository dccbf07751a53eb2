"""Load tracking.

Every module execution runs through ``LoadTracker.track_load``. The
tracker diffs the global namespace around the load and credits the new
symbols to the loaded file, if that file is reloadable.

Loads nest: executing a module imports other modules. Each in-progress
load owns a frame on a per-thread stack; when a nested load finishes, its
symbols are pushed into every enclosing frame so the outer file is not
credited with symbols it did not introduce itself.

Completed units are handed to ``on_load`` only once the outermost load on
the thread returns, after the load lock has been released. The callback
may take other locks without ordering against the load lock.
"""

import contextlib
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from autoreloader.namespace import SymbolNamespace
from autoreloader.paths import PathFilter

logger = logging.getLogger(__name__)


@dataclass
class LoadUnit:
    """A loaded file and the global symbols it introduced."""

    canonical_path: str
    introduced_symbols: set[str] = field(default_factory=set)


class UnloadRecord:
    """Load units awaiting removal, keyed by canonical path.

    Not thread-safe; the owner serializes access with its unload lock.
    """

    def __init__(self) -> None:
        self._units: dict[str, LoadUnit] = {}

    def add(self, unit: LoadUnit) -> None:
        existing = self._units.get(unit.canonical_path)
        if existing is None:
            self._units[unit.canonical_path] = unit
        else:
            existing.introduced_symbols |= unit.introduced_symbols

    def units(self) -> list[LoadUnit]:
        return list(self._units.values())

    def paths(self) -> list[str]:
        return list(self._units)

    def symbols(self) -> set[str]:
        symbols: set[str] = set()
        for unit in self._units.values():
            symbols |= unit.introduced_symbols
        return symbols

    def clear(self) -> None:
        self._units = {}

    def __contains__(self, path: object) -> bool:
        return path in self._units

    def __len__(self) -> int:
        return len(self._units)


class LoadTracker:
    """Records which symbols each reloadable load introduces.

    Args:
        namespace: Global namespace to diff.
        path_filter: Decides which loaded files are reloadable.
        on_load: Called with each reloadable LoadUnit once its load succeeds
            and no load is in progress on the calling thread.
        synchronized: Serialize loads with a re-entrant lock.
    """

    def __init__(
        self,
        namespace: SymbolNamespace,
        path_filter: PathFilter,
        on_load: Callable[[LoadUnit], None],
        synchronized: bool = False,
    ):
        self.namespace = namespace
        self.path_filter = path_filter
        self._on_load = on_load
        self._local = threading.local()
        self._lock: threading.RLock | None = threading.RLock() if synchronized else None

    @property
    def synchronized(self) -> bool:
        return self._lock is not None

    def synchronize(self) -> None:
        """Serialize all subsequent loads."""
        if self._lock is None:
            self._lock = threading.RLock()
            logger.debug("Load tracking is now serialized")

    def desynchronize(self) -> None:
        """Stop locking loads.

        Use this when a load blocks indefinitely (e.g. it starts a server),
        at the cost of racy attribution between concurrent loads.
        """
        if self._lock is not None:
            self._lock = None
            logger.debug("Load tracking is now unsynchronized")

    def _stack(self) -> list[set[str]]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    def _pending(self) -> list[LoadUnit]:
        pending = getattr(self._local, "pending", None)
        if pending is None:
            pending = self._local.pending = []
        return pending

    def depth(self) -> int:
        """Number of loads currently in progress on this thread."""
        return len(self._stack())

    def track_load(
        self,
        path: str | None,
        loader: Callable[[], bool],
        registered: Iterable[str] = (),
    ) -> bool:
        """Run a load and record the symbols it introduces.

        Args:
            path: Canonical path of the file being loaded, None if it has none.
            loader: Performs the load; returns False if the unit was already
                loaded (nothing happened).
            registered: Symbols the host registered for this unit before
                handing over control; they count as introduced by it.

        Returns:
            Whether the unit was newly loaded.

        Raises:
            Exception: Whatever the loader raised, after its partial symbols
                have been removed.
        """
        lock = self._lock
        try:
            with lock if lock is not None else contextlib.nullcontext():
                return self._track(path, loader, registered)
        finally:
            if not self._stack():
                self._flush()

    def _track(
        self,
        path: str | None,
        loader: Callable[[], bool],
        registered: Iterable[str],
    ) -> bool:
        stack = self._stack()
        frame: set[str] = set()
        stack.append(frame)
        before = self.namespace.list_symbol_names() - set(registered)

        try:
            loaded = loader()
        except BaseException:
            stack.pop()
            self._rollback(path, before, frame)
            raise

        stack.pop()
        if not loaded:
            return False

        new_symbols = self.namespace.list_symbol_names() - before - frame
        for enclosing in stack:
            enclosing |= new_symbols

        if self.path_filter.is_reloadable(path):
            logger.debug(f"Tracked {path}: {sorted(new_symbols)}")
            self._pending().append(LoadUnit(canonical_path=path, introduced_symbols=new_symbols))
        return True

    def _flush(self) -> None:
        pending = self._pending()
        self._local.pending = []
        for unit in pending:
            self._on_load(unit)

    def _rollback(self, path: str | None, before: set[str], frame: set[str]) -> None:
        partial = self.namespace.list_symbol_names() - before - frame
        for name in partial:
            self.namespace.remove_symbol(name)
        if partial:
            logger.debug(f"Rolled back failed load of {path}: {sorted(partial)}")
