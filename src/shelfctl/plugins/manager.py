"""Finding and registering notification plugins.

Two sources feed the pluggy manager: packages that advertise a
``shelfctl.plugins`` entry point, and loose ``*.py`` files dropped into a
library's ``.shelfctl/plugins/`` directory. Any class carrying at least
one ``@hookimpl`` method is instantiated and registered.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
from pathlib import Path
from types import ModuleType

import pluggy

from shelfctl.plugins.hookspecs import ShelfctlHookSpec

PROJECT_NAME = "shelfctl"
ENTRY_POINT_GROUP = "shelfctl.plugins"
LOCAL_MODULE_PREFIX = "shelfctl_local_plugin_"

logger = logging.getLogger(__name__)


class PluginManager:
    """Thin wrapper around :class:`pluggy.PluginManager` for notifier hooks."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(ShelfctlHookSpec)
        self._loaded = False

    def discover_and_load(self, *, local_dir: Path | None = None) -> list[str]:
        """Load entry-point plugins, then any in *local_dir*; return all names."""
        self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        self._instantiate_entry_point_classes()
        if local_dir is not None and local_dir.is_dir():
            for py_file in sorted(local_dir.glob("*.py")):
                if not py_file.name.startswith("_"):
                    self._load_local_file(py_file)
        self._loaded = True
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        name = name or type(plugin).__name__
        self._pm.register(plugin, name=name)
        logger.debug("Registered plugin: %s", name)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        """Hook relay the event bus dispatches ``notify_*`` calls through."""
        return self._pm.hook

    def get_plugins(self) -> list[object]:
        return list(self._pm.get_plugins())

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or type(p).__name__ for p in self._pm.get_plugins()]

    # ------------------------------------------------------------------
    # Local files
    # ------------------------------------------------------------------

    def _load_local_file(self, py_file: Path) -> None:
        """Import *py_file* and register its hook classes.

        Failures are logged and the file skipped; a bad plugin must not
        stop issues and returns from going through.
        """
        module = self._import_file(py_file)
        if module is None:
            return
        for cls in self._hook_classes(module):
            try:
                self.register_plugin(cls(), name=f"{module.__name__}.{cls.__name__}")
            except Exception:
                logger.warning("Could not instantiate %s from %s", cls.__name__, py_file, exc_info=True)

    @staticmethod
    def _import_file(py_file: Path) -> ModuleType | None:
        module_name = f"{LOCAL_MODULE_PREFIX}{py_file.stem}"
        spec = importlib.util.spec_from_file_location(module_name, py_file)
        if spec is None or spec.loader is None:
            logger.warning("Could not create module spec for %s", py_file)
            return None
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            logger.warning("Failed to load local plugin %s", py_file, exc_info=True)
            sys.modules.pop(module_name, None)
            return None
        return module

    @classmethod
    def _hook_classes(cls, module: ModuleType) -> list[type]:
        """Classes defined in *module* itself (not imported) that implement hooks."""
        return [
            obj
            for _, obj in inspect.getmembers(module, inspect.isclass)
            if obj.__module__ == module.__name__ and cls._has_hook_impls(obj)
        ]

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def _instantiate_entry_point_classes(self) -> None:
        """Swap entry-point classes for instances so hooks get a bound ``self``."""
        for plugin in self.get_plugins():
            if not inspect.isclass(plugin) or not self._has_hook_impls(plugin):
                continue
            name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)
            try:
                self._pm.register(plugin(), name=name)
            except Exception:
                logger.warning("Could not instantiate entry-point plugin %s", name, exc_info=True)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """True if any public attribute carries pluggy's ``shelfctl_impl`` marker."""
        return any(
            callable(attr) and getattr(attr, f"{PROJECT_NAME}_impl", None)
            for attr in (getattr(cls, n, None) for n in dir(cls) if not n.startswith("_"))
        )
