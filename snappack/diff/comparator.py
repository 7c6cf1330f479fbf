"""Normalized equality checks for snapshot artifacts."""

from __future__ import annotations

from typing import Any

from snappack.core.canonical import canonical_json
from snappack.core.models import VerificationResult
from snappack.diff.engine import collect_value_changes
from snappack.diff.formatting import render_unified_diff, render_value_changes
from snappack.normalize import NormalizerConfig, SnapshotNormalizer


class SnapshotComparator:
    """Compares expected and actual trees after normalization.

    Equality is decided only by canonical serialization. The diff text is a
    debugging aid built after the fact.
    """

    def __init__(
        self,
        normalizer: SnapshotNormalizer | None = None,
        *,
        context_lines: int = 3,
        max_changes: int = 32,
    ) -> None:
        self.normalizer = normalizer or SnapshotNormalizer()
        self.context_lines = context_lines
        self.max_changes = max_changes

    def compare(self, expected: Any, actual: Any) -> VerificationResult:
        normalized_expected = self.normalizer.normalize(expected)
        normalized_actual = self.normalizer.normalize(actual)

        if canonical_json(normalized_expected) == canonical_json(normalized_actual):
            return VerificationResult(equal=True, diff=None)

        changes, truncated = collect_value_changes(
            normalized_expected,
            normalized_actual,
            max_changes=self.max_changes,
        )
        diff = "\n".join(
            [
                render_value_changes(changes, truncated=truncated),
                render_unified_diff(
                    normalized_expected,
                    normalized_actual,
                    context_lines=self.context_lines,
                ),
            ]
        )
        return VerificationResult(equal=False, diff=diff)


def compare(
    expected: Any,
    actual: Any,
    *,
    normalizer_config: NormalizerConfig | None = None,
) -> VerificationResult:
    """Compare two trees with the default rules plus ``normalizer_config``."""
    return SnapshotComparator(SnapshotNormalizer(normalizer_config)).compare(expected, actual)
