"""Pytest configuration and fixtures."""

import importlib
import os
import sys
from pathlib import Path

import pytest

from autoreloader.reloader import AutoReloader

FIXTURE_PREFIX = "fixture_"

FIXTURE_MODULES = {
    "fixture_c.py": '''"""Counter module; the count restarts whenever the module is re-executed."""

import colorsys

_calls = 0


def count() -> int:
    global _calls
    _calls += 1
    return _calls
''',
    "fixture_b.py": '''import fixture_c

B = "b"
''',
    "fixture_a/__init__.py": '''import fixture_b
from fixture_a import inner

A = "a"
''',
    "fixture_a/inner.py": '''INNER = "inner"
''',
    "fixture_broken.py": '''import sys
import types

import fixture_c

sys.modules["fixture_side_effect"] = types.ModuleType("fixture_side_effect")
BROKEN = True

raise ValueError("boom")
''',
    "fixture_slow.py": '''"""Blocks at import time until the test opens the gate."""

import fixture_gate

fixture_gate.started.set()
fixture_gate.release.wait(5)
''',
    "fixture_hooked.py": '''HOOKED = True
''',
    "fixture_app.py": '''VERSION = "1"


def app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [f"version {VERSION}".encode()]
''',
}


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 0.0):
        self.current = start

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeWatchService:
    """WatchService that records subscriptions and lets tests emit events."""

    def __init__(self):
        self.subscriptions: list[tuple[list[str], float]] = []
        self.on_change = None
        self.unsubscribed = 0

    def subscribe(self, paths, latency, on_change):
        self.subscriptions.append((list(paths), latency))
        self.on_change = on_change

    def unsubscribe(self):
        self.unsubscribed += 1
        self.on_change = None

    def emit(self, *paths: str) -> None:
        assert self.on_change is not None, "no active subscription"
        self.on_change([str(p) for p in paths])


def bump_mtime(path: Path, seconds: float = 10.0) -> None:
    """Move a file's mtime forward without relying on wall-clock resolution."""
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + seconds))


def _forget_fixture_modules() -> None:
    for name in [n for n in sys.modules if n.startswith(FIXTURE_PREFIX)]:
        del sys.modules[name]


@pytest.fixture
def fixture_lib(tmp_path: Path, monkeypatch) -> Path:
    """Write the fixture modules to a fresh directory on sys.path."""
    lib = tmp_path / "lib"
    for relative, source in FIXTURE_MODULES.items():
        path = lib / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source)

    # Always compile from source so rewritten files are picked up
    monkeypatch.setattr(sys, "dont_write_bytecode", True)
    monkeypatch.syspath_prepend(str(lib))
    importlib.invalidate_caches()
    _forget_fixture_modules()

    yield lib

    _forget_fixture_modules()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_reloader(clock):
    """Build activated reloaders whose import hooks are removed afterwards."""
    created: list[AutoReloader] = []

    def factory(**options) -> AutoReloader:
        watch_service = options.pop("watch_service", None)
        options.setdefault("watch_paths", False)
        reloader = AutoReloader(clock=clock, watch_service=watch_service)
        created.append(reloader)
        reloader.activate(**options)
        return reloader

    yield factory

    for reloader in created:
        if reloader.import_hook is not None:
            reloader.import_hook.uninstall()
        reloader.detector.stop()


@pytest.fixture
def reloader(make_reloader, fixture_lib):
    """Reloader tracking the fixture library, unloading on every reload."""
    return make_reloader(reloadable_paths=[fixture_lib], onchange=False)
