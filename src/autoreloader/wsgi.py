"""WSGI adapter running every request inside a reload body."""

import importlib
import logging
from collections.abc import Callable, Iterable
from typing import Any

from autoreloader.reloader import AutoReloader, get_reloader

logger = logging.getLogger(__name__)

WSGIApp = Callable[[dict[str, Any], Callable[..., Any]], Iterable[bytes]]


def resolve_target(target: str) -> WSGIApp:
    """Import ``"package.module:attribute"`` and return the attribute.

    The attribute defaults to ``app`` when omitted.
    """
    module_name, _, attribute = target.partition(":")
    module = importlib.import_module(module_name)
    obj: Any = module
    for part in (attribute or "app").split("."):
        obj = getattr(obj, part)
    return obj


class ReloadingWSGIApp:
    """Resolves the target application on each request within ``reload``.

    After an unload the target module is imported again, so requests always
    run against the current source. The response is drained inside the
    body; a streaming response would otherwise outlive the in-flight count
    that protects it from a concurrent unload.

    Args:
        target: ``"module:attribute"`` of the wrapped WSGI application.
        reloader: Reloader to use; defaults to the process-wide one.
        **reload_options: Passed to every ``reload`` call.
    """

    def __init__(self, target: str, reloader: AutoReloader | None = None, **reload_options: Any):
        self.target = target
        self.reloader = reloader or get_reloader()
        self.reload_options = reload_options

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> list[bytes]:
        def body(unloaded: bool) -> list[bytes]:
            if unloaded:
                logger.debug(f"Reloaded before {environ.get('REQUEST_METHOD')} {environ.get('PATH_INFO')}")
            app = resolve_target(self.target)
            response = app(environ, start_response)
            try:
                return list(response)
            finally:
                close = getattr(response, "close", None)
                if close is not None:
                    close()

        return self.reloader.reload(body, **self.reload_options)
