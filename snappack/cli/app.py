import asyncio
from dataclasses import dataclass, replace
from importlib.metadata import PackageNotFoundError, version as package_version
import json
import logging
from pathlib import Path
from typing import Any

import typer

from snappack.config import (
    ReplayRunConfig,
    SnapshotConfigError,
    VerificationOptions,
    load_replay_config_from_file,
)
from snappack.core.entrypoints import EntrypointError, import_entrypoint
from snappack.runner import AgentSnapshotRunner
from snappack.store.exceptions import SnapshotError

CASES_ENV_VAR = "AGENTSNAP_CASES"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

app = typer.Typer(help="agentsnap CLI: record and replay agent snapshot cases.")


@dataclass(slots=True)
class _OutputOptions:
    quiet: bool = False
    stable_json: bool = True


_OUTPUT_OPTIONS = _OutputOptions()

_CASES_OPTION = typer.Option(
    None,
    "--cases",
    envvar=CASES_ENV_VAR,
    help="Case registry as module:attribute (an AgentSnapshotRunner or a factory).",
)


def _resolve_cli_version() -> str:
    try:
        return package_version("agentsnap")
    except PackageNotFoundError:
        from agentsnap import __version__ as local_version

        return local_version


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(_resolve_cli_version())
    raise typer.Exit()


@app.callback()
def app_options(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show agentsnap version and exit.",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level for harness diagnostics (DEBUG, INFO, WARNING, ERROR).",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        help="Suppress non-error text output.",
    ),
    stable_json: bool = typer.Option(
        True,
        "--stable-json/--pretty-json",
        help="Emit stable compact JSON (or pretty JSON).",
    ),
) -> None:
    """Global output controls for all CLI commands."""
    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        _echo(f"invalid log level: {log_level}", err=True)
        raise typer.Exit(code=2)
    logging.basicConfig(level=level, format=_LOG_FORMAT, force=True)
    _OUTPUT_OPTIONS.quiet = quiet
    _OUTPUT_OPTIONS.stable_json = stable_json


def _echo(message: str, *, err: bool = False) -> None:
    if _OUTPUT_OPTIONS.quiet and not err:
        return
    typer.echo(message, err=err)


def _echo_json(payload: dict[str, Any], *, err: bool = False) -> None:
    if _OUTPUT_OPTIONS.stable_json:
        rendered = json.dumps(
            payload,
            ensure_ascii=True,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
    else:
        rendered = json.dumps(
            payload,
            ensure_ascii=True,
            sort_keys=True,
            indent=2,
            default=str,
        )
    typer.echo(rendered, err=err)


def _load_runner(cases: str | None) -> AgentSnapshotRunner:
    if not cases or not cases.strip():
        _echo(
            f"no case registry given; pass --cases module:attribute or set {CASES_ENV_VAR}",
            err=True,
        )
        raise typer.Exit(code=2)

    try:
        target = import_entrypoint(cases.strip())
    except EntrypointError as error:
        _echo(f"invalid case registry: {error}", err=True)
        raise typer.Exit(code=2) from error

    if not isinstance(target, AgentSnapshotRunner) and callable(target):
        target = target()
    if not isinstance(target, AgentSnapshotRunner):
        _echo(f"invalid case registry: {cases} is not an AgentSnapshotRunner", err=True)
        raise typer.Exit(code=2)
    return target


def _select_cases(runner: AgentSnapshotRunner, case: str) -> list[str]:
    if case == "all":
        return runner.case_names
    if runner.get_case(case) is None:
        _echo(f'Case "{case}" not found. Available: {", ".join(runner.case_names)}', err=True)
        raise typer.Exit(code=1)
    return [case]


def _fail(action: str, case: str, error: Exception, *, json_output: bool) -> None:
    message = f"{action} failed: case={case} {error.__class__.__name__}: {error}"
    if json_output:
        _echo_json(
            {
                "status": "error",
                "exit_code": 1,
                "action": action,
                "case": case,
                "error_type": error.__class__.__name__,
                "message": str(error),
            }
        )
    else:
        _echo(message, err=True)
    raise typer.Exit(code=1) from error


@app.command("cases")
def list_cases(
    cases: str | None = _CASES_OPTION,
    json_output: bool = typer.Option(False, "--json", help="Emit machine-readable output."),
) -> None:
    """List the cases in the registry."""
    runner = _load_runner(cases)
    if json_output:
        _echo_json({"cases": [config.to_dict() for config in runner.cases]})
        return
    for config in runner.cases:
        _echo(f"{config.name}\t{config.snapshot_path}")


@app.command()
def generate(
    case: str = typer.Argument("all", help="Case name, or 'all'."),
    cases: str | None = _CASES_OPTION,
    json_output: bool = typer.Option(False, "--json", help="Emit machine-readable output."),
) -> None:
    """Record snapshots by running cases against their real backend."""
    runner = _load_runner(cases)
    results: dict[str, Any] = {}
    for name in _select_cases(runner, case):
        try:
            result = asyncio.run(runner.generate_case(name))
        except (SnapshotError, OSError) as error:
            _fail("generate", name, error, json_output=json_output)
        results[name] = result.to_dict()
        if not json_output:
            _echo(
                f"snapshot generated: case={name} loops={result.loop_count} "
                f"path={result.snapshot_path}"
            )

    if json_output:
        _echo_json({"status": "ok", "action": "generate", "cases": results})


@app.command()
def replay(
    case: str = typer.Argument("all", help="Case name, or 'all'."),
    cases: str | None = _CASES_OPTION,
    update: bool = typer.Option(
        False,
        "--update",
        "-u",
        help="Overwrite mismatching or missing snapshots instead of failing.",
    ),
    no_verify_requests: bool = typer.Option(
        False,
        "--no-verify-requests",
        help="Skip LLM request verification.",
    ),
    no_verify_events: bool = typer.Option(
        False,
        "--no-verify-events",
        help="Skip event stream verification.",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Replay config JSON (update_snapshots, verification, normalizer).",
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit machine-readable output."),
) -> None:
    """Replay cases against their snapshots and verify every loop."""
    runner = _load_runner(cases)
    try:
        config = _build_replay_config(
            config_path,
            update=update,
            no_verify_requests=no_verify_requests,
            no_verify_events=no_verify_events,
        )
    except (SnapshotConfigError, FileNotFoundError) as error:
        _echo(f"invalid replay config: {error}", err=True)
        raise typer.Exit(code=2) from error

    results: dict[str, Any] = {}
    for name in _select_cases(runner, case):
        try:
            result = asyncio.run(runner.replay_case(name, config))
        except (SnapshotError, OSError) as error:
            _fail("replay", name, error, json_output=json_output)
        results[name] = result.to_dict()
        if not json_output:
            loops = result.meta.loop_count if result.meta is not None else 0
            _echo(f"snapshot replay passed: case={name} loops={loops}")

    if json_output:
        _echo_json({"status": "ok", "action": "replay", "cases": results})


def _build_replay_config(
    config_path: Path | None,
    *,
    update: bool,
    no_verify_requests: bool,
    no_verify_events: bool,
) -> ReplayRunConfig:
    config = load_replay_config_from_file(config_path) if config_path else ReplayRunConfig()
    if update:
        config = replace(config, update_snapshots=True)
    if no_verify_requests or no_verify_events:
        base = config.verification or VerificationOptions()
        config = replace(
            config,
            verification=VerificationOptions(
                verify_llm_requests=base.verify_llm_requests and not no_verify_requests,
                verify_event_streams=base.verify_event_streams and not no_verify_events,
            ),
        )
    return config


def main() -> None:
    app()
