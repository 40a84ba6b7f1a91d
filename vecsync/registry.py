# vecsync/registry.py
"""
Plugin registries.

Each registry scans a plugins package once, on first lookup, and registers
every class that defines a string `plugin_name` and the registry's marker
method.

Design principle: NO SILENT FALLBACK
- If the user configures "qdrant", they get qdrant or an error
- No magic substitution that could cause confusion
"""

from __future__ import annotations

import importlib
import inspect
import pkgutil
import threading
from typing import Any, Dict, List, Optional, Type

from vecsync.exceptions import ConfigError


class PluginNotFoundError(ConfigError):
    """No plugin is registered under the requested name."""


class PluginRegistry:
    """
    Lazily discovered name → class mapping for one plugin kind.

    Usage:
        VECTOR_DB_REGISTRY = PluginRegistry("vector_db", "vecsync.vector_db.plugins", "create_collection")
        cls = VECTOR_DB_REGISTRY.get("qdrant")
    """

    def __init__(self, kind: str, package: str, marker: str) -> None:
        self.kind = kind
        self._package = package
        self._marker = marker
        self._plugins: Dict[str, Type[Any]] = {}
        self._discovered = False
        self._lock = threading.Lock()

    def register(self, cls: Type[Any]) -> Type[Any]:
        """Register a class explicitly. Usable as a decorator."""
        name = getattr(cls, "plugin_name", None)
        if not isinstance(name, str):
            raise TypeError(f"{cls.__name__} has no string plugin_name")
        self._plugins[name] = cls
        return cls

    def discover(self) -> None:
        with self._lock:
            if self._discovered:
                return
            package = importlib.import_module(self._package)
            for module_info in pkgutil.iter_modules(package.__path__):
                module = importlib.import_module(f"{self._package}.{module_info.name}")
                for _, obj in inspect.getmembers(module, inspect.isclass):
                    if obj.__module__ != module.__name__:
                        continue
                    name = getattr(obj, "plugin_name", None)
                    if isinstance(name, str) and callable(getattr(obj, self._marker, None)):
                        self._plugins.setdefault(name, obj)
            self._discovered = True

    def available(self) -> List[str]:
        self.discover()
        return sorted(self._plugins)

    def get(self, name: str) -> Type[Any]:
        self.discover()
        try:
            return self._plugins[name]
        except KeyError as e:
            raise PluginNotFoundError(
                f"Unknown {self.kind} plugin: {name!r}. Available: {', '.join(self.available())}"
            ) from e

    def create(self, name: str, defaults: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Any:
        """
        Instantiate a plugin by name.

        `defaults` fill in parameters the plugin accepts but kwargs leave
        unset; plugins without such a parameter never see them.
        """
        cls = self.get(name)
        if defaults:
            accepted = inspect.signature(cls).parameters
            for key, value in defaults.items():
                if key in accepted and key not in kwargs:
                    kwargs[key] = value
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise ConfigError(f"Invalid kwargs for {self.kind} plugin {name!r}: {e}") from e


__all__ = ["PluginNotFoundError", "PluginRegistry"]
