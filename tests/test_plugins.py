import asyncio
import json
import os
from pathlib import Path

import pytest

from snappack.config import AgentSnapshotOptions
from snappack.demo import ScriptedAgent, ScriptedLLMClient
from snappack.plugins import (
    PLUGIN_CONFIG_ENV_VAR,
    LifecyclePlugin,
    PluginConfigError,
    PluginLoadError,
    PluginManager,
    clear_plugin_config_cache,
    load_plugin_manager_from_file,
    plugins_enabled,
    resolve_plugin_manager,
)
from snappack.snapshot import AgentSnapshot
from snappack.store import SnapshotMismatchError


def _write_plugin_config(
    path: Path,
    *,
    output_path: Path,
    config_version: int = 1,
    cases: list[str] | None = None,
) -> Path:
    entry: dict = {
        "entrypoint": "snappack.plugins.reference:LifecycleTracePlugin",
        "options": {"output_path": str(output_path)},
    }
    if cases is not None:
        entry["cases"] = cases
    path.write_text(
        json.dumps({"config_version": config_version, "plugins": [entry]}),
        encoding="utf-8",
    )
    return path


def _read_hook_trace(trace_path: Path) -> list[dict]:
    return [
        json.loads(line)
        for line in trace_path.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]


def _record_and_replay(fixtures: Path, *, replay_input: str = "hi", case: str = "greeting") -> None:
    options = AgentSnapshotOptions(snapshot_path=fixtures / case)
    asyncio.run(
        AgentSnapshot(ScriptedAgent(ScriptedLLMClient(["Hello!"])), options).generate({"input": "hi"})
    )
    asyncio.run(AgentSnapshot(ScriptedAgent(), options).replay({"input": replay_input}))


def test_reference_plugin_hooks_run_end_to_end(tmp_path: Path) -> None:
    trace_path = tmp_path / "lifecycle.ndjson"
    config_path = _write_plugin_config(tmp_path / "plugins.json", output_path=trace_path)

    with plugins_enabled(config_path) as manager:
        _record_and_replay(tmp_path / "fixtures")

    records = _read_hook_trace(trace_path)
    hooks = [record["hook"] for record in records]

    assert hooks.count("on_record_start") == 1
    assert hooks.count("on_record_loop") == 3
    assert hooks.count("on_record_end") == 1
    assert hooks.count("on_replay_start") == 1
    assert hooks.count("on_verification") == 3
    assert hooks.count("on_replay_end") == 1
    assert manager.diagnostics == []

    record_end = next(record for record in records if record["hook"] == "on_record_end")
    replay_end = next(record for record in records if record["hook"] == "on_replay_end")
    assert record_end["event"]["status"] == "ok"
    assert record_end["event"]["loop_count"] == 1
    assert replay_end["event"]["status"] == "ok"
    assert replay_end["event"]["executed_loop_count"] == 1
    assert {
        record["event"]["status"] for record in records if record["hook"] == "on_verification"
    } == {"pass"}


def test_replay_failure_is_reported_to_plugins(tmp_path: Path) -> None:
    events: list = []

    class _Recorder(LifecyclePlugin):
        def on_verification(self, event) -> None:
            events.append(event)

        def on_replay_end(self, event) -> None:
            events.append(event)

    with plugins_enabled(PluginManager(plugins=(_Recorder(),))):
        with pytest.raises(SnapshotMismatchError):
            _record_and_replay(tmp_path, replay_input="changed")

    verification, replay_end = events
    assert verification.status == "mismatch"
    assert verification.diagnostic_path.endswith("event-stream.actual.jsonl")
    assert replay_end.status == "error"
    assert replay_end.error_type == "SnapshotMismatchError"


def test_plugin_failure_is_isolated_with_diagnostics(tmp_path: Path) -> None:
    class ExplodingPlugin(LifecyclePlugin):
        name = "exploding"

        def on_record_start(self, _event) -> None:
            raise RuntimeError("boom-from-plugin")

    manager = PluginManager(plugins=(ExplodingPlugin(),))

    with plugins_enabled(manager):
        with pytest.warns(RuntimeWarning, match="agentsnap plugin failure"):
            _record_and_replay(tmp_path)

    assert len(manager.diagnostics) == 1
    diagnostic = manager.diagnostics[0]
    assert diagnostic.plugin_name == "exploding"
    assert diagnostic.hook == "on_record_start"
    assert diagnostic.error_type == "RuntimeError"
    assert "boom-from-plugin" in diagnostic.message


def test_load_plugin_manager_rejects_unsupported_config_version(tmp_path: Path) -> None:
    config_path = _write_plugin_config(
        tmp_path / "plugins-invalid.json",
        output_path=tmp_path / "unused.ndjson",
        config_version=99,
    )
    with pytest.raises(PluginConfigError, match="Unsupported plugin config version"):
        load_plugin_manager_from_file(config_path)


def test_load_plugin_manager_rejects_unknown_keys_and_bad_entrypoints(tmp_path: Path) -> None:
    config_path = tmp_path / "plugins.json"
    config_path.write_text(
        json.dumps({"config_version": 1, "plugins": [{"entrypoint": "x:y", "extra": 1}]}),
        encoding="utf-8",
    )
    with pytest.raises(PluginConfigError, match="unsupported keys: extra"):
        load_plugin_manager_from_file(config_path)

    config_path.write_text(
        json.dumps({"config_version": 1, "plugins": [{"entrypoint": "snappack.missing_module:Plugin"}]}),
        encoding="utf-8",
    )
    with pytest.raises(PluginLoadError, match="Failed to import module"):
        load_plugin_manager_from_file(config_path)


def test_disabled_plugins_are_skipped(tmp_path: Path) -> None:
    config_path = tmp_path / "plugins.json"
    config_path.write_text(
        json.dumps(
            {
                "config_version": 1,
                "plugins": [
                    {
                        "entrypoint": "snappack.plugins.reference:LifecycleTracePlugin",
                        "enabled": False,
                    }
                ],
            }
        ),
        encoding="utf-8",
    )

    assert load_plugin_manager_from_file(config_path).plugins == ()


def test_env_plugin_config_auto_activation(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    trace_path = tmp_path / "env-trace.ndjson"
    config_path = _write_plugin_config(tmp_path / "plugins-env.json", output_path=trace_path)
    monkeypatch.setenv(PLUGIN_CONFIG_ENV_VAR, str(config_path))
    clear_plugin_config_cache()

    assert resolve_plugin_manager() is resolve_plugin_manager()
    _record_and_replay(tmp_path / "fixtures")
    records = _read_hook_trace(trace_path)

    assert any(record["hook"] == "on_record_start" for record in records)
    assert any(record["hook"] == "on_replay_end" for record in records)

    clear_plugin_config_cache()


def test_env_plugin_config_is_reloaded_after_edit(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = _write_plugin_config(tmp_path / "plugins.json", output_path=tmp_path / "a.ndjson")
    monkeypatch.setenv(PLUGIN_CONFIG_ENV_VAR, str(config_path))
    clear_plugin_config_cache()

    before = resolve_plugin_manager()
    assert before.plugins[0].output_path == str(tmp_path / "a.ndjson")

    _write_plugin_config(config_path, output_path=tmp_path / "b.ndjson")
    mtime = config_path.stat().st_mtime_ns + 1_000_000_000
    os.utime(config_path, ns=(mtime, mtime))

    after = resolve_plugin_manager()
    assert after is not before
    assert after.plugins[0].output_path == str(tmp_path / "b.ndjson")

    clear_plugin_config_cache()


def test_plugin_scoped_to_cases_only_sees_those_cases(tmp_path: Path) -> None:
    trace_path = tmp_path / "trace.ndjson"
    config_path = _write_plugin_config(
        tmp_path / "plugins.json", output_path=trace_path, cases=["greeting"]
    )

    with plugins_enabled(config_path):
        _record_and_replay(tmp_path / "fixtures", case="greeting")
        _record_and_replay(tmp_path / "fixtures", case="farewell")

    records = _read_hook_trace(trace_path)
    assert records
    assert {record["event"]["case_name"] for record in records} == {"greeting"}


def test_cases_key_must_list_names(tmp_path: Path) -> None:
    config_path = tmp_path / "plugins.json"
    config_path.write_text(
        json.dumps(
            {
                "config_version": 1,
                "plugins": [{"entrypoint": "snappack.plugins.reference:LifecycleTracePlugin", "cases": "greeting"}],
            }
        ),
        encoding="utf-8",
    )
    with pytest.raises(PluginConfigError, match="'cases' must be a list"):
        load_plugin_manager_from_file(config_path)


def test_explicit_manager_wins_over_enabled_one() -> None:
    explicit = PluginManager()
    enabled = PluginManager()

    with plugins_enabled(enabled):
        assert resolve_plugin_manager() is enabled
        assert resolve_plugin_manager(explicit) is explicit
    assert resolve_plugin_manager() is not enabled
