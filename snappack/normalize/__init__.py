"""Snapshot normalization rules and loaders."""

from snappack.normalize.normalizer import (
    DEFAULT_NORMALIZER_CONFIG,
    ELAPSED_SENTINEL,
    ID_SENTINEL,
    IMAGE_URL_SENTINEL,
    TIMESTAMP_SENTINEL,
    TOOL_CALL_ID_SENTINEL,
    CustomNormalizer,
    FieldRule,
    IgnoreRule,
    NormalizerConfig,
    NormalizerConfigError,
    SnapshotNormalizer,
    load_normalizer_config_from_file,
    normalizer_config_from_mapping,
)

__all__ = [
    "DEFAULT_NORMALIZER_CONFIG",
    "ELAPSED_SENTINEL",
    "ID_SENTINEL",
    "IMAGE_URL_SENTINEL",
    "TIMESTAMP_SENTINEL",
    "TOOL_CALL_ID_SENTINEL",
    "CustomNormalizer",
    "FieldRule",
    "IgnoreRule",
    "NormalizerConfig",
    "NormalizerConfigError",
    "SnapshotNormalizer",
    "load_normalizer_config_from_file",
    "normalizer_config_from_mapping",
]
