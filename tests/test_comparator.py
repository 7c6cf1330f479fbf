from snappack.diff import SnapshotComparator, collect_value_changes, compare
from snappack.normalize import NormalizerConfig, SnapshotNormalizer


def _events(timestamp_key: str, value: int) -> list[dict]:
    return [
        {"type": "user_message", "id": "e1", timestamp_key: value, "content": "hi"},
        {"type": "assistant_message", "id": "e2", timestamp_key: value + 5, "content": "hello"},
    ]


def test_timestamps_are_normalized_before_comparison() -> None:
    result = compare(_events("timestamp", 1000), _events("timestamp", 2000))

    assert result.equal is True
    assert result.diff is None


def test_fields_outside_default_rules_still_differ() -> None:
    result = compare(_events("createdAt", 1000), _events("createdAt", 2000))

    assert result.equal is False
    assert result.diff is not None
    assert "/0/createdAt: 1000 -> 2000" in result.diff
    assert "--- Created Agent Snapshot" in result.diff
    assert "+++ Runtime Agent State" in result.diff


def test_comparison_is_symmetric() -> None:
    left = {"messages": [{"role": "user", "content": "a"}], "id": "x"}
    right = {"messages": [{"role": "user", "content": "b"}], "id": "y"}

    assert compare(left, right).equal == compare(right, left).equal
    assert compare(left, left).equal is True


def test_array_positions_are_compared_in_order() -> None:
    left = [{"type": "a"}, {"type": "b"}]
    right = [{"type": "b"}, {"type": "a"}]

    assert compare(left, right).equal is False


def test_user_normalizer_config_is_applied_to_both_sides() -> None:
    config = NormalizerConfig(fields_to_ignore=("createdAt",))

    assert compare(_events("createdAt", 1), _events("createdAt", 2), normalizer_config=config).equal


def test_collect_value_changes_reports_missing_and_truncation() -> None:
    changes, truncated = collect_value_changes({"a": 1, "b": 2}, {"a": 1})

    assert truncated is False
    assert [(change.path, change.expected, change.actual) for change in changes] == [
        ("/b", 2, "<MISSING>")
    ]

    many_changes, many_truncated = collect_value_changes(
        list(range(10)),
        list(range(10, 20)),
        max_changes=3,
    )
    assert len(many_changes) == 3
    assert many_truncated is True


def test_comparator_reuses_supplied_normalizer() -> None:
    normalizer = SnapshotNormalizer(NormalizerConfig(fields_to_ignore=("noise",)))
    comparator = SnapshotComparator(normalizer)

    assert comparator.compare({"noise": 1, "v": 1}, {"noise": 2, "v": 1}).equal is True
    assert comparator.compare({"v": 1}, {"v": 2}).equal is False
