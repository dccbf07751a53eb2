"""Change detection for tracked files.

Two strategies decide whether a reload should unload:
- Polling: compare the modification times of the tracked files with the
  baseline taken after the previous reload.
- Watching: a push-based watch service reports changed paths on a
  background thread; any reloadable path marks the detector dirty.
"""

import logging
import os
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from autoreloader.paths import PathFilter, normalize_path

logger = logging.getLogger(__name__)


def safe_mtime(path: str) -> float | None:
    """Modification time of a file, or None if it is gone."""
    try:
        return os.stat(path).st_mtime
    except OSError:
        return None


@dataclass
class MTimeBaseline:
    """Last observed modification time per tracked file (None = absent)."""

    mtimes: dict[str, float | None] = field(default_factory=dict)

    @classmethod
    def capture(cls, paths: Iterable[str]) -> "MTimeBaseline":
        return cls({path: safe_mtime(path) for path in paths})

    def changed_paths(self, paths: Iterable[str]) -> list[str]:
        """Files whose live mtime differs from the recorded one.

        A file missing from the baseline compares as absent.
        """
        return [path for path in paths if self.mtimes.get(path) != safe_mtime(path)]


class WatchService(Protocol):
    """Push-based file-system change feed."""

    def subscribe(
        self,
        paths: Sequence[str],
        latency: float,
        on_change: Callable[[list[str]], None],
    ) -> None: ...

    def unsubscribe(self) -> None: ...


class ChangeDetector:
    """Base detector; keeps the modification-time baseline up to date."""

    watching = False

    def __init__(self) -> None:
        self.baseline: MTimeBaseline | None = None

    def refresh(self, paths: Iterable[str]) -> MTimeBaseline:
        """Recompute the baseline from the currently tracked files."""
        self.baseline = MTimeBaseline.capture(paths)
        return self.baseline

    def has_changed(self, paths: Sequence[str]) -> bool:
        raise NotImplementedError

    def resubscribe(self, roots: Sequence[str]) -> None:
        """Follow a new root set. Polling has nothing to re-arm."""

    def stop(self) -> None:
        """Release background resources, if any."""


class PollingChangeDetector(ChangeDetector):
    """Detects changes by comparing modification times on demand."""

    def has_changed(self, paths: Sequence[str]) -> bool:
        if self.baseline is None:
            # First check: nothing to compare against
            return True
        changed = self.baseline.changed_paths(paths)
        if changed:
            logger.debug(f"Modified since last reload: {changed}")
        return bool(changed)


class WatchingChangeDetector(ChangeDetector):
    """Detects changes through a watch service subscription.

    The watch callback runs on the service's thread and only ever sets the
    dirty flag.

    Args:
        service: Watch service to subscribe to.
        path_filter: Filters event paths down to reloadable files.
        latency: Quiet period the service waits before reporting events.
    """

    watching = True

    def __init__(self, service: WatchService, path_filter: PathFilter, latency: float = 1.0):
        super().__init__()
        self.service = service
        self.path_filter = path_filter
        self.latency = latency
        self._dirty = False
        self._flag_lock = threading.Lock()

    def _on_change(self, paths: list[str]) -> None:
        if any(self.path_filter.is_reloadable(normalize_path(p)) for p in paths):
            with self._flag_lock:
                self._dirty = True
            logger.debug(f"Reloadable files changed: {paths}")

    def resubscribe(self, roots: Sequence[str]) -> None:
        self.service.unsubscribe()
        self.service.subscribe(list(roots), self.latency, self._on_change)
        logger.info(f"Watching {len(roots)} reloadable paths (latency {self.latency}s)")

    def has_changed(self, paths: Sequence[str]) -> bool:
        with self._flag_lock:
            changed, self._dirty = self._dirty, False
        return changed

    def stop(self) -> None:
        self.service.unsubscribe()
