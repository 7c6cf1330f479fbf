import asyncio
import inspect
from pathlib import Path

import agentsnap
from snappack.demo import ScriptedAgent, ScriptedLLMClient


def test_public_api_symbol_list_is_explicit_and_stable() -> None:
    assert agentsnap.__all__ == [
        "__version__",
        "AgentSnapshot",
        "AgentSnapshotOptions",
        "AgentSnapshotRunner",
        "CaseConfig",
        "CustomNormalizer",
        "FieldRule",
        "IgnoreRule",
        "LoopCountMismatchError",
        "MissingSnapshotError",
        "NormalizerConfig",
        "ReplayRunConfig",
        "SnapshotCase",
        "SnapshotError",
        "SnapshotGenerationResult",
        "SnapshotMismatchError",
        "SnapshotRunResult",
        "SnapshotSetupError",
        "VerificationOptions",
        "VerificationResult",
        "compare",
        "generate",
        "load_replay_config_from_file",
        "replay",
    ]
    for name in agentsnap.__all__:
        assert hasattr(agentsnap, name)


def test_public_api_function_signatures_and_annotations() -> None:
    expected_parameter_order = {
        "generate": ("agent", "run_options", "snapshot_path", "normalizer_config"),
        "replay": (
            "agent",
            "run_options",
            "snapshot_path",
            "update_snapshots",
            "normalizer_config",
            "verification",
        ),
    }

    for name, parameters in expected_parameter_order.items():
        function = getattr(agentsnap, name)
        signature = inspect.signature(function)
        assert tuple(signature.parameters.keys()) == parameters
        assert inspect.iscoroutinefunction(function)
        assert "return" in function.__annotations__
        assert function.__doc__ is not None
        assert function.__doc__.strip() != ""

        for index, parameter in enumerate(signature.parameters.values()):
            if index < 2:
                assert parameter.kind is inspect.Parameter.POSITIONAL_OR_KEYWORD
                continue
            assert parameter.kind is inspect.Parameter.KEYWORD_ONLY


def test_core_workflow_works_via_public_api_only(tmp_path: Path) -> None:
    snapshot_path = tmp_path / "fixtures" / "public-api"

    generated = asyncio.run(
        agentsnap.generate(
            ScriptedAgent(ScriptedLLMClient(["public hello"])),
            {"input": "hi"},
            snapshot_path=snapshot_path,
        )
    )
    assert generated.loop_count == 1
    assert (snapshot_path / "loop-1" / "llm-response.jsonl").exists()

    replayed = asyncio.run(
        agentsnap.replay(ScriptedAgent(), {"input": "hi"}, snapshot_path=snapshot_path)
    )
    assert replayed.meta.loop_count == 1
    assert replayed.response["content"] == "public hello"

    result = agentsnap.compare({"id": "a", "value": 1}, {"id": "b", "value": 1})
    assert isinstance(result, agentsnap.VerificationResult)
    assert result.equal is True
