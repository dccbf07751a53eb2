"""Reload coordination.

Flow of a ``reload`` call:
1. Decide whether to ignore the reload (delay not elapsed, or nothing
   changed) unless the next reload was forced.
2. If not ignored, optionally wait for reload bodies running in other
   threads to finish, then unload every tracked module.
3. Run the body, counting it as in flight, and refresh the
   modification-time baseline afterwards.
"""

import importlib.util
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from autoreloader.clock import Clock, MonotonicClock
from autoreloader.config import ReloaderConfig
from autoreloader.errors import AlreadyActivatedError, InvalidUsageError, NotActivatedError
from autoreloader.hooks import UnloadHook, UnloadHookRegistry
from autoreloader.importer import ImportHook, require
from autoreloader.namespace import ModuleNamespace, SymbolNamespace
from autoreloader.paths import PathFilter
from autoreloader.tracker import LoadTracker, LoadUnit, UnloadRecord
from autoreloader.watcher import (
    ChangeDetector,
    PollingChangeDetector,
    WatchingChangeDetector,
    WatchService,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Marks reload() options that fall back to the activation defaults
_DEFAULT: Any = object()


class ReloadDecision(Enum):
    """What a reload call decided to do before running its body."""

    IGNORE = "ignore"
    UNLOAD = "unload"


@dataclass(frozen=True)
class ReloaderStats:
    """Point-in-time view of the reloader state."""

    tracked_units: int
    tracked_symbols: int
    in_flight: int
    unloads: int
    watching: bool
    sync_loads: bool


def watch_backend_available() -> bool:
    """Whether the watchdog package can be imported."""
    return importlib.util.find_spec("watchdog") is not None


class AutoReloader:
    """Tracks reloadable modules and unloads them on demand.

    Args:
        namespace: Global namespace to track; defaults to ``sys.modules``.
        clock: Time source for the delay option.
        watch_service: Push-based watch service to use when watching is
            enabled; defaults to a watchdog observer.
    """

    def __init__(
        self,
        namespace: SymbolNamespace | None = None,
        clock: Clock | None = None,
        watch_service: WatchService | None = None,
    ):
        self.namespace = namespace or ModuleNamespace()
        self.clock = clock or MonotonicClock()
        self._watch_service = watch_service
        self._activate_lock = threading.Lock()
        self.config: ReloaderConfig | None = None

        self.path_filter = PathFilter()
        self.hooks = UnloadHookRegistry()
        self._record = UnloadRecord()
        # Guards unload bookkeeping and change detection
        self._unload_lock = threading.RLock()
        self._bodies_done = threading.Condition(self._unload_lock)
        self._in_flight = 0
        self._unloads = 0
        self._force_reload = False
        self._last_reloaded = 0.0
        self.tracker: LoadTracker | None = None
        self.import_hook: ImportHook | None = None
        self.detector: ChangeDetector = PollingChangeDetector()

    @property
    def activated(self) -> bool:
        return self.config is not None

    def activate(self, config: ReloaderConfig | None = None, **options: Any) -> None:
        """Set up tracking and install the import hook. Allowed once.

        Args:
            config: Activation options; alternatively pass them as keywords.

        Raises:
            AlreadyActivatedError: If this reloader was already activated.
            pydantic.ValidationError: If an option is invalid.
        """
        with self._activate_lock:
            if self.config is not None:
                raise AlreadyActivatedError()
            if config is None:
                config = ReloaderConfig(**options)
            elif options:
                config = config.model_copy(update=ReloaderConfig(**options).model_dump(exclude_unset=True))

            self.tracker = LoadTracker(
                self.namespace,
                self.path_filter,
                on_load=self._record_load,
                synchronized=config.sync_loads,
            )
            self._last_reloaded = self.clock.now()
            self.detector = self._build_detector(config)
            self.config = config
            self.set_reloadable_paths(config.reloadable_paths)

            self.import_hook = ImportHook(self.tracker)
            self.import_hook.install()
            logger.info(
                f"AutoReloader activated: {len(self.path_filter.roots)} reloadable paths, "
                f"{'watching' if self.detector.watching else 'polling'} for changes"
            )

    def _build_detector(self, config: ReloaderConfig) -> ChangeDetector:
        watch = config.watch_paths
        if watch is False:
            return PollingChangeDetector()
        service = self._watch_service
        if service is None:
            if not watch_backend_available():
                if watch:
                    logger.warning("watchdog is not installed, falling back to polling")
                return PollingChangeDetector()
            from autoreloader.observer import WatchdogService

            service = WatchdogService()
        return WatchingChangeDetector(service, self.path_filter, config.watch_latency)

    def _require_activation(self, operation: str) -> ReloaderConfig:
        if self.config is None:
            raise NotActivatedError(operation)
        return self.config

    def get_reloadable_paths(self) -> tuple[str, ...]:
        return self.path_filter.roots

    def set_reloadable_paths(self, paths: Iterable[str | Path]) -> None:
        """Replace the reloadable roots and re-arm the watcher, if any."""
        roots = self.path_filter.replace(paths)
        if self.detector.watching:
            try:
                self.detector.resubscribe(roots)
            except Exception as e:
                logger.warning(f"Could not watch reloadable paths ({e}), falling back to polling")
                self.detector.stop()
                self.detector = PollingChangeDetector()

    reloadable_paths = property(get_reloadable_paths, set_reloadable_paths)

    def _record_load(self, unit: LoadUnit) -> None:
        with self._unload_lock:
            self._record.add(unit)

    def require(self, name: str) -> bool:
        """Import a module through the tracker unless it is already loaded."""
        self._require_activation("require")
        return require(name)

    def sync_loads(self) -> None:
        self._require_activation("sync_loads")
        self.tracker.synchronize()

    def async_loads(self) -> None:
        self._require_activation("async_loads")
        self.tracker.desynchronize()

    def force_next_reload(self) -> None:
        """Make the next reload unload regardless of delay and changes."""
        self._force_reload = True

    def register_unload_hook(self, callback: UnloadHook | None = None) -> UnloadHook:
        return self.hooks.register(callback)

    def reload(
        self,
        body: Callable[[bool], T] | None = None,
        *,
        delay: float | None = _DEFAULT,
        onchange: bool = _DEFAULT,
        await_before_unload: bool = _DEFAULT,
    ) -> T | None:
        """Unload tracked modules if needed, then run body.

        Args:
            body: Called with True if modules were just unloaded. Its result
                is returned.
            delay: Minimum seconds since the previous reload before unloading
                again; None disables the check.
            onchange: Only unload if a tracked file changed.
            await_before_unload: Wait for bodies running in other threads
                before unloading.

        Returns:
            The body's result, or None without a body.

        Raises:
            InvalidUsageError: If onchange is requested without a body.
        """
        config = self._require_activation("reload")
        if delay is _DEFAULT:
            delay = config.delay
        if onchange is _DEFAULT:
            onchange = config.onchange
        if await_before_unload is _DEFAULT:
            await_before_unload = config.await_before_unload

        if onchange and body is None:
            raise InvalidUsageError("A body must be provided to reload() when onchange is true")

        decision = self._decide(delay, onchange)
        logger.debug(f"Reload decision: {decision.value}")
        unloaded = decision is ReloadDecision.UNLOAD
        if unloaded:
            if await_before_unload and body is not None:
                with self._bodies_done:
                    while self._in_flight:
                        self._bodies_done.wait()
                    self.unload()
            else:
                self.unload()

        result = None
        if body is not None:
            result = self._run_body(body, unloaded)
        if delay is not None:
            self._last_reloaded = self.clock.now()
        return result

    def _decide(self, delay: float | None, onchange: bool) -> ReloadDecision:
        if self._force_reload:
            return ReloadDecision.UNLOAD
        if delay is not None and self.clock.now() - self._last_reloaded < delay:
            return ReloadDecision.IGNORE
        if onchange:
            with self._unload_lock:
                changed = self.detector.has_changed(self._record.paths())
            if not changed:
                return ReloadDecision.IGNORE
        return ReloadDecision.UNLOAD

    def _run_body(self, body: Callable[[bool], T], unloaded: bool) -> T:
        with self._unload_lock:
            self._in_flight += 1
        try:
            result = body(unloaded)
        finally:
            with self._bodies_done:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._bodies_done.notify_all()
        with self._unload_lock:
            self.detector.refresh(self._record.paths())
        return result

    def unload(self) -> None:
        """Remove every tracked module, then run the unload hooks."""
        self._require_activation("unload")
        with self._unload_lock:
            units = self._record.units()
            self._record.clear()
            for unit in units:
                for symbol in unit.introduced_symbols:
                    self.namespace.remove_symbol(symbol)
            self.import_hook.forget(unit.canonical_path for unit in units)
            # Modules imported by hooks are tracked for the next unload
            self.hooks.run()
            self._force_reload = False
            self._unloads += 1
        if units:
            logger.info(f"Unloaded {len(units)} reloadable files")

    def tracked_paths(self) -> list[str]:
        with self._unload_lock:
            return self._record.paths()

    def tracked_symbols(self) -> set[str]:
        with self._unload_lock:
            return self._record.symbols()

    def stats(self) -> ReloaderStats:
        with self._unload_lock:
            return ReloaderStats(
                tracked_units=len(self._record),
                tracked_symbols=len(self._record.symbols()),
                in_flight=self._in_flight,
                unloads=self._unloads,
                watching=self.detector.watching,
                sync_loads=self.tracker is not None and self.tracker.synchronized,
            )


_reloader = AutoReloader()


def get_reloader() -> AutoReloader:
    """The process-wide reloader instance."""
    return _reloader
