"""Transparent hot-reloading of Python modules for development servers.

Usage:

    import autoreloader

    autoreloader.activate(reloadable_paths=["src/myapp"])

    def handle(request):
        return autoreloader.reload(lambda unloaded: myapp_entry(request))

Every module imported from a reloadable path is tracked; ``reload`` drops
them all when one of their files changed so the next import executes the
fresh source.
"""

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

from autoreloader.config import ReloaderConfig
from autoreloader.errors import (
    AlreadyActivatedError,
    AutoReloaderError,
    InvalidUsageError,
    NotActivatedError,
)
from autoreloader.hooks import UnloadHook
from autoreloader.reloader import AutoReloader, ReloaderStats, get_reloader

__version__ = "0.1.0"

T = TypeVar("T")


def activate(config: ReloaderConfig | None = None, **options: Any) -> None:
    """Activate the process-wide reloader. See ``ReloaderConfig`` for options."""
    get_reloader().activate(config, **options)


def reload(body: Callable[[bool], T] | None = None, **options: Any) -> T | None:
    return get_reloader().reload(body, **options)


def unload() -> None:
    get_reloader().unload()


def force_next_reload() -> None:
    get_reloader().force_next_reload()


def register_unload_hook(callback: UnloadHook | None = None) -> UnloadHook:
    return get_reloader().register_unload_hook(callback)


def require(name: str) -> bool:
    return get_reloader().require(name)


def get_reloadable_paths() -> tuple[str, ...]:
    return get_reloader().get_reloadable_paths()


def set_reloadable_paths(paths: Iterable[str | Path]) -> None:
    get_reloader().set_reloadable_paths(paths)


def sync_loads() -> None:
    get_reloader().sync_loads()


def async_loads() -> None:
    get_reloader().async_loads()


__all__ = [
    "AlreadyActivatedError",
    "AutoReloader",
    "AutoReloaderError",
    "InvalidUsageError",
    "NotActivatedError",
    "ReloaderConfig",
    "ReloaderStats",
    "activate",
    "async_loads",
    "force_next_reload",
    "get_reloadable_paths",
    "get_reloader",
    "register_unload_hook",
    "reload",
    "require",
    "set_reloadable_paths",
    "sync_loads",
    "unload",
]
