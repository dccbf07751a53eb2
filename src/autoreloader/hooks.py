"""Callbacks run on every unload."""

import logging
from collections.abc import Callable

from autoreloader.errors import InvalidUsageError

logger = logging.getLogger(__name__)

UnloadHook = Callable[[], object]


class UnloadHookRegistry:
    """Ordered unload hooks, fired last-registered first."""

    def __init__(self) -> None:
        self._hooks: list[UnloadHook] = []

    def register(self, callback: UnloadHook | None) -> UnloadHook:
        """Register a hook. Returns it, so this also works as a decorator.

        Raises:
            InvalidUsageError: If callback is missing or not callable.
        """
        if callback is None or not callable(callback):
            raise InvalidUsageError("register_unload_hook requires a callable")
        self._hooks.append(callback)
        return callback

    def run(self) -> None:
        """Invoke all hooks in reverse registration order.

        A failing hook is logged and does not prevent the others from running.
        """
        for hook in reversed(self._hooks):
            try:
                hook()
            except Exception:
                logger.exception(f"Unload hook {hook!r} failed")

    def __len__(self) -> int:
        return len(self._hooks)
