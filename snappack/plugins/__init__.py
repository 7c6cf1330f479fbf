"""Plugin subsystem for snapshot lifecycle extensions."""

from snappack.plugins.activation import (
    clear_plugin_config_cache,
    plugins_enabled,
    resolve_plugin_manager,
)
from snappack.plugins.base import (
    PLUGIN_API_VERSION,
    PLUGIN_CONFIG_ENV_VAR,
    PLUGIN_CONFIG_VERSION,
    LifecyclePlugin,
    RecordEndEvent,
    RecordLoopEvent,
    RecordStartEvent,
    ReplayEndEvent,
    ReplayStartEvent,
    VerificationEvent,
)
from snappack.plugins.exceptions import PluginConfigError, PluginError, PluginLoadError
from snappack.plugins.loader import PluginSpec, load_plugin_manager_from_file, read_plugin_specs
from snappack.plugins.manager import PluginBinding, PluginDiagnostic, PluginManager
from snappack.plugins.reference import LifecycleTracePlugin

__all__ = [
    "PLUGIN_API_VERSION",
    "PLUGIN_CONFIG_VERSION",
    "PLUGIN_CONFIG_ENV_VAR",
    "PluginError",
    "PluginConfigError",
    "PluginLoadError",
    "RecordStartEvent",
    "RecordLoopEvent",
    "RecordEndEvent",
    "ReplayStartEvent",
    "VerificationEvent",
    "ReplayEndEvent",
    "LifecyclePlugin",
    "PluginBinding",
    "PluginDiagnostic",
    "PluginManager",
    "PluginSpec",
    "LifecycleTracePlugin",
    "read_plugin_specs",
    "load_plugin_manager_from_file",
    "resolve_plugin_manager",
    "plugins_enabled",
    "clear_plugin_config_cache",
]
