"""Reads a plugin config file into a ``PluginManager``.

A config looks like::

    {
      "config_version": 1,
      "plugins": [
        {"entrypoint": "pkg.module:Plugin", "options": {...}, "cases": ["greeting"]}
      ]
    }

``options`` are passed as keyword arguments when the entrypoint is callable,
``enabled: false`` drops the entry, and ``cases`` limits which snapshot cases
the plugin hears about.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any

from snappack.core.entrypoints import EntrypointError, import_entrypoint
from snappack.plugins.base import PLUGIN_API_VERSION, PLUGIN_CONFIG_VERSION
from snappack.plugins.exceptions import PluginConfigError, PluginLoadError
from snappack.plugins.manager import PluginBinding, PluginManager

_ENTRY_KEYS = frozenset({"entrypoint", "options", "enabled", "cases"})


@dataclass(frozen=True, slots=True)
class PluginSpec:
    entrypoint: str
    options: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    cases: frozenset[str] | None = None

    @classmethod
    def from_mapping(cls, payload: Any, *, index: int) -> "PluginSpec":
        label = f"Plugin entry #{index}"
        if not isinstance(payload, dict):
            raise PluginConfigError(f"{label} must be a JSON object.")

        extra = sorted(set(payload) - _ENTRY_KEYS)
        if extra:
            raise PluginConfigError(f"{label} contains unsupported keys: {', '.join(extra)}")

        entrypoint = payload.get("entrypoint")
        if not isinstance(entrypoint, str) or ":" not in entrypoint:
            raise PluginConfigError(f"{label}: 'entrypoint' must look like 'module:attribute'.")

        options = payload.get("options", {})
        if not isinstance(options, dict):
            raise PluginConfigError(f"{label}: 'options' must be an object.")

        enabled = payload.get("enabled", True)
        if not isinstance(enabled, bool):
            raise PluginConfigError(f"{label}: 'enabled' must be true or false.")

        cases = payload.get("cases")
        if cases is not None:
            if not isinstance(cases, list) or not all(isinstance(name, str) for name in cases):
                raise PluginConfigError(f"{label}: 'cases' must be a list of case names.")
            cases = frozenset(cases)

        return cls(entrypoint=entrypoint, options=dict(options), enabled=enabled, cases=cases)


def read_plugin_specs(path: str | Path) -> list[PluginSpec]:
    config_path = Path(path)
    try:
        document = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise PluginConfigError(f"{config_path} is not valid JSON: {error}") from error

    if not isinstance(document, dict):
        raise PluginConfigError(f"{config_path}: plugin config must be a JSON object.")

    version = document.get("config_version")
    if version != PLUGIN_CONFIG_VERSION:
        raise PluginConfigError(
            f"Unsupported plugin config version {version!r} in {config_path} "
            f"(this build reads version {PLUGIN_CONFIG_VERSION})."
        )

    entries = document.get("plugins")
    if not isinstance(entries, list):
        raise PluginConfigError(f"{config_path}: 'plugins' must be a list.")
    return [PluginSpec.from_mapping(entry, index=index) for index, entry in enumerate(entries, start=1)]


def build_plugin(spec: PluginSpec, *, index: int) -> object:
    """Import a PluginSpec's entrypoint and turn it into a plugin instance."""
    try:
        target = import_entrypoint(spec.entrypoint)
    except EntrypointError as error:
        raise PluginLoadError(f"Plugin entry #{index}: {error}") from error

    if callable(target):
        try:
            plugin = target(**spec.options)
        except Exception as error:
            raise PluginLoadError(
                f"Plugin entry #{index}: calling '{spec.entrypoint}' failed: {error}"
            ) from error
    elif spec.options:
        raise PluginLoadError(
            f"Plugin entry #{index}: '{spec.entrypoint}' is not callable, so it takes no options."
        )
    else:
        plugin = target

    declared = str(getattr(plugin, "api_version", PLUGIN_API_VERSION))
    major = PLUGIN_API_VERSION.partition(".")[0]
    if declared.partition(".")[0] != major:
        raise PluginLoadError(
            f"Plugin entry #{index}: '{spec.entrypoint}' targets plugin API {declared}, "
            f"but only {major}.x is supported."
        )
    return plugin


def load_plugin_manager_from_file(path: str | Path) -> PluginManager:
    bindings = [
        PluginBinding(build_plugin(spec, index=index), spec.cases)
        for index, spec in enumerate(read_plugin_specs(path), start=1)
        if spec.enabled
    ]
    return PluginManager(bindings=bindings)
