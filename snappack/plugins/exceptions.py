"""Plugin subsystem exceptions."""


class PluginError(Exception):
    """Base class for plugin errors."""


class PluginConfigError(PluginError):
    """Plugin config payload is invalid."""


class PluginLoadError(PluginError):
    """Plugin entrypoint could not be imported or instantiated."""
