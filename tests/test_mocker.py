import asyncio
from pathlib import Path

import pytest

from snappack.capture import SnapshotRecorder
from snappack.config import VerificationOptions
from snappack.demo import ScriptedAgent, ScriptedLLMClient, get_weather
from snappack.plugins import LifecyclePlugin, PluginManager
from snappack.replay import LLMMocker, MockerState, SnapshotSetupError
from snappack.store import MissingSnapshotError, SnapshotMismatchError, SnapshotStore

_REPLIES = [
    {"content": "Checking.", "tool_calls": [{"name": "get_weather", "arguments": {"city": "Oslo"}}]},
    "Sunny in Oslo.",
]


def _agent(llm_client=None) -> ScriptedAgent:
    return ScriptedAgent(llm_client, tools={"get_weather": get_weather})


def _record(tmp_path: Path, case_name: str = "weather") -> Path:
    agent = _agent(ScriptedLLMClient(_REPLIES))
    recorder = SnapshotRecorder(agent, SnapshotStore(tmp_path), case_name)
    recorder.start()
    asyncio.run(agent.run({"input": "weather?"}))
    recorder.stop()
    return tmp_path / case_name


def _replay(mocker: LLMMocker, agent: ScriptedAgent, run_input: str = "weather?"):
    agent.set_custom_llm_client(mocker.get_mock_llm_client())
    return asyncio.run(agent.run({"input": run_input}))


def test_replay_serves_recorded_responses_and_verifies_every_loop(tmp_path: Path) -> None:
    case_path = _record(tmp_path)
    statuses: list[tuple[str, str, str]] = []

    class _Collector(LifecyclePlugin):
        def on_verification(self, event) -> None:
            statuses.append((event.scope, event.artifact, event.status))

    mocker = LLMMocker(plugin_manager=PluginManager(plugins=(_Collector(),)))
    agent = _agent()
    mocker.setup(agent, case_path, 2)
    final = _replay(mocker, agent)
    mocker.restore()

    assert final["content"] == "Sunny in Oslo."
    assert mocker.state is MockerState.COMPLETED
    assert statuses == [
        ("loop-1", "event_stream", "pass"),
        ("loop-1", "request", "pass"),
        ("loop-2", "event_stream", "pass"),
        ("loop-2", "request", "pass"),
        ("<root>", "final_event_stream", "pass"),
    ]
    assert [event["type"] for event in mocker.event_stream_state_after_loop(2)] == [
        "user_message",
        "assistant_message",
        "tool_call",
        "tool_result",
    ]
    assert len(mocker.final_event_stream_state) == 5


def test_mock_client_is_unavailable_before_setup_and_after_restore(tmp_path: Path) -> None:
    mocker = LLMMocker()

    with pytest.raises(SnapshotSetupError, match="not properly set up"):
        mocker.get_mock_llm_client()

    mocker.setup(_agent(), _record(tmp_path), 2)
    assert mocker.get_mock_llm_client() is not None
    mocker.restore()

    with pytest.raises(SnapshotSetupError):
        mocker.get_mock_llm_client()


def test_restore_detaches_hooks(tmp_path: Path) -> None:
    agent = _agent()
    mocker = LLMMocker()
    mocker.setup(agent, _record(tmp_path), 2)
    assert callable(agent.on_llm_request)

    mocker.restore()

    assert agent.on_llm_request is None
    assert agent.on_agent_loop_end is None


def test_request_mismatch_writes_diagnostic_and_raises(tmp_path: Path) -> None:
    case_path = _record(tmp_path)
    mocker = LLMMocker()
    agent = _agent()
    mocker.setup(agent, case_path, 2, verification=VerificationOptions(verify_event_streams=False))

    with pytest.raises(SnapshotMismatchError) as excinfo:
        _replay(mocker, agent, run_input="different question")
    mocker.restore()

    error = excinfo.value
    assert error.case_name == "weather"
    assert error.scope == "loop-1"
    assert error.artifact == "request"
    assert Path(error.diagnostic_path) == case_path / "loop-1" / "llm-request.actual.jsonl"
    assert Path(error.diagnostic_path).is_file()
    assert "different question" in Path(error.diagnostic_path).read_text(encoding="utf-8")
    assert "loop-1" in str(error)


def test_event_stream_failure_is_reported_before_request_failure(tmp_path: Path) -> None:
    case_path = _record(tmp_path)
    mocker = LLMMocker()
    agent = _agent()
    mocker.setup(agent, case_path, 2)

    with pytest.raises(SnapshotMismatchError) as excinfo:
        _replay(mocker, agent, run_input="different question")
    mocker.restore()

    assert excinfo.value.artifact == "event_stream"
    assert not (case_path / "loop-1" / "llm-request.actual.jsonl").exists()


def test_disabled_verification_skips_both_axes(tmp_path: Path) -> None:
    case_path = _record(tmp_path)
    mocker = LLMMocker()
    agent = _agent()
    mocker.setup(
        agent,
        case_path,
        2,
        verification=VerificationOptions(verify_llm_requests=False, verify_event_streams=False),
    )

    final = _replay(mocker, agent, run_input="different question")
    mocker.restore()

    assert final["content"] == "Sunny in Oslo."
    assert not list(case_path.rglob("*.actual.jsonl"))


def test_update_mode_overwrites_expected_and_continues(tmp_path: Path) -> None:
    case_path = _record(tmp_path)
    mocker = LLMMocker()
    agent = _agent()
    mocker.setup(agent, case_path, 2, update_snapshots=True)

    _replay(mocker, agent, run_input="different question")
    mocker.restore()

    store = SnapshotStore(tmp_path)
    request = store.read("weather", 1, "request")
    assert request["request"]["messages"][1]["content"] == "different question"
    assert (case_path / "loop-1" / "llm-request.actual.jsonl").is_file()


def test_missing_request_artifact_is_fatal_without_update_mode(tmp_path: Path) -> None:
    case_path = _record(tmp_path)
    (case_path / "loop-2" / "llm-request.jsonl").unlink()
    mocker = LLMMocker()
    agent = _agent()
    mocker.setup(agent, case_path, 2)

    with pytest.raises(MissingSnapshotError) as excinfo:
        _replay(mocker, agent)
    mocker.restore()

    assert excinfo.value.scope == "loop-2"
    assert excinfo.value.artifact == "request"


def test_initial_event_stream_is_verified_at_setup(tmp_path: Path) -> None:
    case_path = _record(tmp_path)
    agent = _agent()
    agent.get_event_stream().send("system", content="booted")

    with pytest.raises(MissingSnapshotError) as excinfo:
        LLMMocker().setup(agent, case_path, 2)
    assert excinfo.value.scope == "initial"

    mocker = LLMMocker()
    mocker.setup(agent, case_path, 2, update_snapshots=True)
    mocker.restore()
    assert (case_path / "initial" / "event-stream.jsonl").is_file()


def test_event_stream_state_after_unknown_loop_raises(tmp_path: Path) -> None:
    mocker = LLMMocker()
    mocker.setup(_agent(), _record(tmp_path), 2)

    with pytest.raises(KeyError, match="loop 7"):
        mocker.event_stream_state_after_loop(7)
    mocker.restore()
