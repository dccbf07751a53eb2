"""Global symbol namespace adapter.

The reloader only needs to list, test and remove global symbols. In
Python the process-wide registry of loaded code is ``sys.modules``; a
symbol is the fully qualified name of a module registered there.
"""

import logging
import sys
from collections.abc import MutableMapping
from types import ModuleType
from typing import Protocol

logger = logging.getLogger(__name__)


class SymbolNamespace(Protocol):
    """Operations the load tracker performs on the global namespace."""

    def list_symbol_names(self) -> set[str]: ...

    def has_symbol(self, name: str) -> bool: ...

    def remove_symbol(self, name: str) -> bool: ...


class ModuleNamespace:
    """SymbolNamespace backed by the interpreter's module registry.

    Args:
        modules: Registry to operate on. Defaults to ``sys.modules``.
    """

    def __init__(self, modules: MutableMapping[str, ModuleType] | None = None):
        self._modules = sys.modules if modules is None else modules

    def list_symbol_names(self) -> set[str]:
        # sys.modules may grow while another thread imports
        return set(list(self._modules))

    def has_symbol(self, name: str) -> bool:
        return name in self._modules

    def remove_symbol(self, name: str) -> bool:
        """Remove a module if it is still registered.

        Returns:
            True if the module was present and removed.
        """
        module = self._modules.pop(name, None)
        if module is None:
            return False
        logger.debug(f"Removed module {name}")
        return True
