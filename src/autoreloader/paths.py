"""Reloadable root matching.

Only modules loaded from beneath one of the configured roots are tracked
for unloading. Matching is a plain string-prefix test on normalized
absolute paths, without glob semantics.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def normalize_path(path: str | Path) -> str:
    """Return the absolute, normalized form of a path (symlinks are kept)."""
    return os.path.abspath(os.path.expanduser(os.fspath(path)))


def normalize_paths(paths: Iterable[str | Path]) -> tuple[str, ...]:
    """Normalize a collection of paths into an immutable ordered tuple."""
    return tuple(normalize_path(p) for p in paths)


class PathFilter:
    """Decides whether a file lives under one of the reloadable roots.

    The root set is an immutable snapshot; replacing it affects the next
    check only. Units already recorded under the previous roots are not
    touched.
    """

    def __init__(self, roots: Iterable[str | Path] = ()):
        self._roots: tuple[str, ...] = normalize_paths(roots)

    @property
    def roots(self) -> tuple[str, ...]:
        return self._roots

    def replace(self, roots: Iterable[str | Path]) -> tuple[str, ...]:
        """Swap in a new root set.

        Args:
            roots: New reloadable roots (relative paths are made absolute).

        Returns:
            The normalized roots now in effect.
        """
        self._roots = normalize_paths(roots)
        logger.debug(f"Reloadable roots set to {list(self._roots)}")
        return self._roots

    def is_reloadable(self, path: str | None) -> bool:
        """Check whether an absolute path starts with any reloadable root.

        Args:
            path: Absolute file path, or None for units without a location.

        Returns:
            True if the path falls under a configured root.
        """
        if not path:
            return False
        roots = self._roots
        return any(path.startswith(root) for root in roots)
