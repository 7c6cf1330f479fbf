"""Resolve ``module:attribute`` entrypoint strings."""

from __future__ import annotations

import importlib


class EntrypointError(ImportError):
    """Raised when an entrypoint cannot be resolved."""


def import_entrypoint(entrypoint: str) -> object:
    """Import ``module`` and return its ``attribute`` (dotted attributes allowed)."""
    if not isinstance(entrypoint, str) or ":" not in entrypoint:
        raise EntrypointError(f"Entrypoint must be 'module:attribute', got {entrypoint!r}.")

    module_name, _, attribute = entrypoint.partition(":")
    if not module_name or not attribute:
        raise EntrypointError(f"Entrypoint must be 'module:attribute', got {entrypoint!r}.")

    try:
        target: object = importlib.import_module(module_name)
    except Exception as error:
        raise EntrypointError(f"Failed to import module '{module_name}': {error}") from error

    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as error:
            raise EntrypointError(
                f"Could not find attribute '{attribute}' in '{module_name}'."
            ) from error
    return target
