"""Decides which plugins observe a record or replay run."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
import logging
import os
from pathlib import Path
from typing import Iterator

from snappack.plugins.base import PLUGIN_CONFIG_ENV_VAR
from snappack.plugins.loader import load_plugin_manager_from_file
from snappack.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

_SCOPED: ContextVar[PluginManager | None] = ContextVar("agentsnap_plugins", default=None)
_NO_PLUGINS = PluginManager()

# (config path, mtime in ns) -> manager built from that file
_config_cache: dict[tuple[str, int], PluginManager] = {}


def resolve_plugin_manager(explicit: PluginManager | None = None) -> PluginManager:
    """Pick the manager for a run.

    An explicit manager on the snapshot or mocker wins, then one enabled with
    ``plugins_enabled`` in the current context, then the file named by
    ``AGENTSNAP_PLUGIN_CONFIG``. A config file is re-read once it changes on disk.
    """
    if explicit is not None:
        return explicit

    scoped = _SCOPED.get()
    if scoped is not None:
        return scoped

    configured = os.getenv(PLUGIN_CONFIG_ENV_VAR, "").strip()
    if not configured:
        return _NO_PLUGINS
    return _manager_for_config(Path(configured))


@contextmanager
def plugins_enabled(source: PluginManager | str | Path) -> Iterator[PluginManager]:
    """Enable a manager, or a plugin config file, for runs inside the block."""
    manager = source if isinstance(source, PluginManager) else load_plugin_manager_from_file(source)
    token = _SCOPED.set(manager)
    try:
        yield manager
    finally:
        _SCOPED.reset(token)


def clear_plugin_config_cache() -> None:
    _config_cache.clear()


def _manager_for_config(path: Path) -> PluginManager:
    key = (str(path), path.stat().st_mtime_ns)
    manager = _config_cache.get(key)
    if manager is None:
        manager = load_plugin_manager_from_file(path)
        # A rewritten file supersedes every earlier version of itself.
        for stale in [cached for cached in _config_cache if cached[0] == key[0]]:
            del _config_cache[stale]
        _config_cache[key] = manager
        logger.info("Loaded %d plugin(s) from %s", len(manager.bindings), path)
    return manager
