"""Watch service backed by watchdog observers.

Events are debounced: changed paths accumulate until no new event has
arrived for ``latency`` seconds, then they are reported in one batch.
"""

import logging
import os
import threading
from collections.abc import Callable, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class DebouncedHandler(FileSystemEventHandler):
    """Collects changed file paths and reports them after a quiet period."""

    def __init__(self, latency: float, on_change: Callable[[list[str]], None]):
        super().__init__()
        self.latency = max(0.0, float(latency))
        self._on_change = on_change
        self._pending: list[str] = []
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed_no_write"):
            return

        paths = [os.fsdecode(event.src_path)]
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            paths.append(os.fsdecode(dest_path))

        with self._lock:
            self._pending.extend(paths)
            if self._timer is not None:
                # Restart the quiet period
                self._timer.cancel()
            self._timer = threading.Timer(self.latency, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def _flush(self) -> None:
        with self._lock:
            paths, self._pending = self._pending, []
            self._timer = None
        if paths:
            self._on_change(paths)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = []


class WatchdogService:
    """WatchService implementation using a watchdog Observer.

    Args:
        observer_factory: Builds the observer; defaults to the platform's
            native observer.
    """

    def __init__(self, observer_factory: Callable[[], Observer] | None = None):
        self._observer_factory = observer_factory or Observer
        self._observer = None
        self._handler: DebouncedHandler | None = None

    @property
    def active(self) -> bool:
        return self._observer is not None

    def subscribe(
        self,
        paths: Sequence[str],
        latency: float,
        on_change: Callable[[list[str]], None],
    ) -> None:
        self.unsubscribe()
        handler = DebouncedHandler(latency, on_change)
        observer = self._observer_factory()

        scheduled = 0
        for path in paths:
            if os.path.isdir(path):
                observer.schedule(handler, path, recursive=True)
            elif os.path.isfile(path):
                observer.schedule(handler, os.path.dirname(path), recursive=False)
            else:
                logger.warning(f"Not watching {path}: no such file or directory")
                continue
            scheduled += 1

        observer.daemon = True
        observer.start()
        self._observer = observer
        self._handler = handler
        logger.debug(f"Watchdog observer started on {scheduled} paths")

    def unsubscribe(self) -> None:
        if self._handler is not None:
            self._handler.cancel()
            self._handler = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=3.0)
            self._observer = None
            logger.debug("Watchdog observer stopped")
