import json
from pathlib import Path

import pytest

from snappack.config import (
    UPDATE_SNAPSHOTS_ENV_VAR,
    AgentSnapshotOptions,
    ReplayRunConfig,
    SnapshotConfigError,
    VerificationOptions,
    load_replay_config_from_file,
    replay_config_from_mapping,
    resolve_replay_settings,
    resolve_update_snapshots,
)
from snappack.normalize import FieldRule, NormalizerConfig


def test_snapshot_options_derive_case_name_and_fixtures_root(tmp_path: Path) -> None:
    options = AgentSnapshotOptions(snapshot_path=tmp_path / "fixtures" / "weather")

    assert options.case_name == "weather"
    assert options.snapshot_name == "weather"
    assert options.fixtures_root == tmp_path / "fixtures"
    assert options.verification == VerificationOptions()


def test_snapshot_options_reject_empty_path() -> None:
    with pytest.raises(SnapshotConfigError, match="non-empty"):
        AgentSnapshotOptions(snapshot_path="  ")


def test_verification_options_require_booleans() -> None:
    with pytest.raises(SnapshotConfigError, match="verify_llm_requests"):
        VerificationOptions(verify_llm_requests="yes")  # type: ignore[arg-type]

    assert VerificationOptions(verify_event_streams=False).to_dict() == {
        "verify_llm_requests": True,
        "verify_event_streams": False,
    }


def test_replay_config_from_mapping_reads_all_sections() -> None:
    config = replay_config_from_mapping(
        {
            "update_snapshots": True,
            "verification": {"verify_llm_requests": False},
            "normalizer": {
                "fields_to_normalize": [{"pattern": "requestId", "replacement": "<RID>"}],
                "fields_to_ignore": ["debug", {"pattern": "^trace", "regex": True}],
            },
        }
    )

    assert config.update_snapshots is True
    assert config.verification == VerificationOptions(
        verify_llm_requests=False,
        verify_event_streams=True,
    )
    assert config.normalizer_config is not None
    assert config.normalizer_config.fields_to_normalize[0].pattern == "requestId"
    assert len(config.normalizer_config.fields_to_ignore) == 2


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"update": True}, "Unsupported replay config keys: update"),
        ({"update_snapshots": "yes"}, "must be a boolean"),
        ({"verification": {"verify_everything": True}}, "Unsupported verification keys"),
        ({"verification": []}, "'verification' must be an object"),
        ({"normalizer": {"fields_to_ignore": [1]}}, "Invalid normalizer config"),
    ],
)
def test_replay_config_from_mapping_rejects_invalid_payloads(payload, message) -> None:
    with pytest.raises(SnapshotConfigError, match=message):
        replay_config_from_mapping(payload)


def test_load_replay_config_from_file(tmp_path: Path) -> None:
    path = tmp_path / "replay.json"
    path.write_text(
        json.dumps({"verification": {"verify_event_streams": False}}),
        encoding="utf-8",
    )

    config = load_replay_config_from_file(path)

    assert config.update_snapshots is None
    assert config.verification is not None
    assert config.verification.verify_event_streams is False


def test_load_replay_config_from_file_rejects_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "replay.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotConfigError, match="Invalid replay config JSON"):
        load_replay_config_from_file(path)

    path.write_text("[]", encoding="utf-8")
    with pytest.raises(SnapshotConfigError, match="must be a JSON object"):
        load_replay_config_from_file(path)


def test_update_snapshots_env_var_forces_update_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(UPDATE_SNAPSHOTS_ENV_VAR, raising=False)
    assert resolve_update_snapshots(None, False) is False
    assert resolve_update_snapshots(None, True) is True

    monkeypatch.setenv(UPDATE_SNAPSHOTS_ENV_VAR, "true")
    assert resolve_update_snapshots(False) is True

    monkeypatch.setenv(UPDATE_SNAPSHOTS_ENV_VAR, "0")
    assert resolve_update_snapshots(False) is False


def test_resolve_replay_settings_prefers_run_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv(UPDATE_SNAPSHOTS_ENV_VAR, raising=False)
    base_normalizer = NormalizerConfig(fields_to_normalize=(FieldRule("a", "A"),))
    run_normalizer = NormalizerConfig(fields_to_normalize=(FieldRule("b", "B"),))
    options = AgentSnapshotOptions(
        snapshot_path=tmp_path / "case",
        normalizer_config=base_normalizer,
    )

    defaults = resolve_replay_settings(options)
    assert defaults.update_snapshots is False
    assert defaults.normalizer_config is base_normalizer
    assert defaults.verification == VerificationOptions()

    overridden = resolve_replay_settings(
        options,
        ReplayRunConfig(
            update_snapshots=True,
            normalizer_config=run_normalizer,
            verification=VerificationOptions(verify_llm_requests=False),
        ),
    )
    assert overridden.update_snapshots is True
    assert overridden.normalizer_config is run_normalizer
    assert overridden.verification.verify_llm_requests is False
