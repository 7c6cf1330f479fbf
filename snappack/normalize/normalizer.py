"""Field-level normalization that makes agent snapshots comparison-stable."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
import re
from typing import Any, Callable, Literal, Mapping, Union

SearchMode = Literal["any", "key", "path"]
FieldPattern = Union[str, re.Pattern]
NormalizerFunc = Callable[[Any, str], Any]

SEARCH_MODES: tuple[str, ...] = ("any", "key", "path")

ID_SENTINEL = "<<ID>>"
TIMESTAMP_SENTINEL = "<<TIMESTAMP>>"
ELAPSED_SENTINEL = "<<elapsedMs>>"
IMAGE_URL_SENTINEL = "<<image_url>>"
TOOL_CALL_ID_SENTINEL = "<<toolCallId>>"

_UNMATCHED = object()


class NormalizerConfigError(ValueError):
    """Raised when a normalizer config payload is invalid."""


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Replace a matching field's value with a fixed sentinel."""

    pattern: FieldPattern
    replacement: Any = None
    search_mode: SearchMode = "any"

    def __post_init__(self) -> None:
        _validate_pattern(self.pattern)
        if self.search_mode not in SEARCH_MODES:
            raise NormalizerConfigError(
                f"Unsupported search_mode {self.search_mode!r}; expected one of {', '.join(SEARCH_MODES)}."
            )

    def matches(self, key: str, path: str) -> bool:
        return _matches(self.pattern, key, path, self.search_mode)


@dataclass(frozen=True, slots=True)
class IgnoreRule:
    """Drop a matching field entirely."""

    pattern: FieldPattern
    search_mode: SearchMode = "any"

    def __post_init__(self) -> None:
        _validate_pattern(self.pattern)
        if self.search_mode not in SEARCH_MODES:
            raise NormalizerConfigError(
                f"Unsupported search_mode {self.search_mode!r}; expected one of {', '.join(SEARCH_MODES)}."
            )

    def matches(self, key: str, path: str) -> bool:
        return _matches(self.pattern, key, path, self.search_mode)


@dataclass(frozen=True, slots=True)
class CustomNormalizer:
    """Replace a matching field's value with ``normalizer(value, path)``."""

    pattern: FieldPattern
    normalizer: NormalizerFunc

    def __post_init__(self) -> None:
        _validate_pattern(self.pattern)
        if not callable(self.normalizer):
            raise NormalizerConfigError("Custom normalizer must be callable.")

    def matches(self, key: str, path: str) -> bool:
        return _matches(self.pattern, key, path, "any")


@dataclass(frozen=True, slots=True)
class NormalizerConfig:
    """User rules, merged after the built-in defaults."""

    fields_to_normalize: tuple[FieldRule, ...] = field(default_factory=tuple)
    fields_to_ignore: tuple[IgnoreRule, ...] = field(default_factory=tuple)
    custom_normalizers: tuple[CustomNormalizer, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "fields_to_normalize",
            tuple(_coerce_field_rule(rule) for rule in self.fields_to_normalize),
        )
        object.__setattr__(
            self,
            "fields_to_ignore",
            tuple(_coerce_ignore_rule(rule) for rule in self.fields_to_ignore),
        )
        object.__setattr__(self, "custom_normalizers", tuple(self.custom_normalizers))

    def merged_with(self, other: "NormalizerConfig | None") -> "NormalizerConfig":
        if other is None:
            return self
        return NormalizerConfig(
            fields_to_normalize=self.fields_to_normalize + other.fields_to_normalize,
            fields_to_ignore=self.fields_to_ignore + other.fields_to_ignore,
            custom_normalizers=self.custom_normalizers + other.custom_normalizers,
        )


class SnapshotNormalizer:
    """Rewrites JSON-like trees into comparison-stable trees."""

    def __init__(self, config: NormalizerConfig | None = None) -> None:
        self._user_config = config
        self.config = DEFAULT_NORMALIZER_CONFIG.merged_with(config)

    def update_config(self, config: NormalizerConfig | None) -> None:
        self._user_config = config
        self.config = DEFAULT_NORMALIZER_CONFIG.merged_with(config)

    @property
    def user_config(self) -> NormalizerConfig | None:
        return self._user_config

    def normalize(self, value: Any, path: str = "") -> Any:
        if value is None:
            return None

        if isinstance(value, (list, tuple)):
            return [self.normalize(item, f"{path}[{index}]") for index, item in enumerate(value)]

        if isinstance(value, dict):
            result: dict[str, Any] = {}
            for raw_key, child in value.items():
                key = str(raw_key)
                child_path = f"{path}.{key}" if path else key

                if self._should_ignore(key, child_path):
                    continue

                replaced = self._normalize_field(key, child, child_path)
                if replaced is not _UNMATCHED:
                    result[key] = replaced
                elif isinstance(child, (dict, list, tuple)):
                    result[key] = self.normalize(child, child_path)
                else:
                    result[key] = child
            return result

        return value

    def _should_ignore(self, key: str, path: str) -> bool:
        return any(rule.matches(key, path) for rule in self.config.fields_to_ignore)

    def _normalize_field(self, key: str, value: Any, path: str) -> Any:
        for custom in self.config.custom_normalizers:
            if custom.matches(key, path):
                return custom.normalizer(value, path)

        for rule in self.config.fields_to_normalize:
            if rule.matches(key, path):
                if value is None:
                    return None
                return rule.replacement

        return _UNMATCHED


def normalizer_config_from_mapping(config: Mapping[str, Any]) -> NormalizerConfig:
    """Create a normalizer config from a JSON-style mapping."""
    supported_keys = {"fields_to_normalize", "fields_to_ignore"}
    unknown = sorted(set(config.keys()) - supported_keys)
    if unknown:
        raise NormalizerConfigError(
            "Unsupported normalizer config keys: " + ", ".join(unknown)
        )

    normalize_payload = config.get("fields_to_normalize", [])
    ignore_payload = config.get("fields_to_ignore", [])
    if not isinstance(normalize_payload, list):
        raise NormalizerConfigError("normalizer config key 'fields_to_normalize' must be a JSON array.")
    if not isinstance(ignore_payload, list):
        raise NormalizerConfigError("normalizer config key 'fields_to_ignore' must be a JSON array.")

    field_rules: list[FieldRule] = []
    for index, entry in enumerate(normalize_payload, start=1):
        if not isinstance(entry, dict):
            raise NormalizerConfigError(f"fields_to_normalize entry #{index} must be a JSON object.")
        field_rules.append(
            FieldRule(
                pattern=_read_pattern(entry, key="fields_to_normalize", index=index),
                replacement=entry.get("replacement"),
                search_mode=entry.get("search_mode", "any"),
            )
        )

    ignore_rules: list[IgnoreRule] = []
    for index, entry in enumerate(ignore_payload, start=1):
        if isinstance(entry, str):
            ignore_rules.append(IgnoreRule(entry))
            continue
        if not isinstance(entry, dict):
            raise NormalizerConfigError(
                f"fields_to_ignore entry #{index} must be a string or JSON object."
            )
        ignore_rules.append(
            IgnoreRule(
                pattern=_read_pattern(entry, key="fields_to_ignore", index=index),
                search_mode=entry.get("search_mode", "any"),
            )
        )

    return NormalizerConfig(
        fields_to_normalize=tuple(field_rules),
        fields_to_ignore=tuple(ignore_rules),
    )


def load_normalizer_config_from_file(path: str | Path) -> NormalizerConfig:
    """Load normalizer config from a JSON file."""
    config_path = Path(path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise NormalizerConfigError(
            f"Invalid normalizer config JSON ({config_path}): {error}"
        ) from error

    if not isinstance(raw, dict):
        raise NormalizerConfigError(f"Normalizer config must be a JSON object ({config_path}).")
    return normalizer_config_from_mapping(raw)


def _matches(pattern: FieldPattern, key: str, path: str, search_mode: str) -> bool:
    candidates: tuple[str, ...]
    if search_mode == "key":
        candidates = (key,)
    elif search_mode == "path":
        candidates = (path,)
    else:
        candidates = (key, path)

    if isinstance(pattern, re.Pattern):
        return any(pattern.search(candidate) for candidate in candidates)
    return any(candidate == pattern for candidate in candidates)


def _validate_pattern(pattern: Any) -> None:
    if isinstance(pattern, re.Pattern):
        return
    if not isinstance(pattern, str) or not pattern:
        raise NormalizerConfigError("Rule pattern must be a non-empty string or compiled regex.")


def _coerce_field_rule(rule: Any) -> FieldRule:
    if isinstance(rule, FieldRule):
        return rule
    if isinstance(rule, tuple) and 1 <= len(rule) <= 3:
        return FieldRule(*rule)
    raise NormalizerConfigError(f"Invalid normalization rule: {rule!r}")


def _coerce_ignore_rule(rule: Any) -> IgnoreRule:
    if isinstance(rule, IgnoreRule):
        return rule
    if isinstance(rule, (str, re.Pattern)):
        return IgnoreRule(rule)
    raise NormalizerConfigError(f"Invalid ignore rule: {rule!r}")


def _read_pattern(entry: Mapping[str, Any], *, key: str, index: int) -> FieldPattern:
    pattern = entry.get("pattern")
    if not isinstance(pattern, str) or not pattern:
        raise NormalizerConfigError(f"{key} entry #{index} needs a non-empty string 'pattern'.")

    is_regex = entry.get("regex", False)
    if not isinstance(is_regex, bool):
        raise NormalizerConfigError(f"{key} entry #{index} key 'regex' must be boolean.")
    if not is_regex:
        return pattern

    try:
        return re.compile(pattern)
    except re.error as error:
        raise NormalizerConfigError(
            f"Invalid regex in {key} entry #{index}: {pattern!r} ({error})"
        ) from error


# Order matters: the first matching rule wins.
DEFAULT_NORMALIZER_CONFIG = NormalizerConfig(
    fields_to_normalize=(
        FieldRule("toolCallId", TOOL_CALL_ID_SENTINEL),
        FieldRule("tool_call_id", TOOL_CALL_ID_SENTINEL),
        FieldRule(re.compile(r"(?:^id|Id|_id)$"), ID_SENTINEL, search_mode="key"),
        FieldRule("timestamp", TIMESTAMP_SENTINEL),
        FieldRule("created", TIMESTAMP_SENTINEL),
        FieldRule("startTime", TIMESTAMP_SENTINEL),
        FieldRule("elapsedMs", ELAPSED_SENTINEL),
        FieldRule("image_url", IMAGE_URL_SENTINEL),
        FieldRule(re.compile(r"Time$"), TIMESTAMP_SENTINEL, search_mode="key"),
    ),
)
