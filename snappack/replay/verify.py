"""Verify one actual value against its recorded artifact."""

from __future__ import annotations

import logging
from typing import Any

from snappack.core.types import ArtifactKind, LoopScope, scope_label
from snappack.diff.comparator import SnapshotComparator
from snappack.plugins.base import VerificationEvent, VerificationStatus
from snappack.plugins.manager import PluginManager
from snappack.store.exceptions import MissingSnapshotError, SnapshotMismatchError
from snappack.store.io import SnapshotStore

logger = logging.getLogger(__name__)


def verify_artifact(
    store: SnapshotStore,
    comparator: SnapshotComparator,
    *,
    case_name: str,
    scope: LoopScope,
    kind: ArtifactKind,
    actual: Any,
    update_snapshots: bool = False,
    plugin_manager: PluginManager | None = None,
) -> VerificationStatus:
    """Compare ``actual`` with the stored artifact and return the outcome.

    A missing artifact is written in update mode and raises otherwise. On
    mismatch the actual value is always dumped next to the expected file
    first; update mode then overwrites the expected value, strict mode raises.
    """
    label = scope_label(scope)
    expected = store.read(case_name, scope, kind)

    if expected is None:
        if not update_snapshots:
            _emit(plugin_manager, case_name, label, kind, "missing")
            raise MissingSnapshotError(
                f"No {kind} snapshot found for case '{case_name}' at {label}: "
                f"{store.artifact_path(case_name, scope, kind)}",
                case_name=case_name,
                scope=label,
                artifact=kind,
            )
        store.write(case_name, scope, kind, actual)
        logger.warning("Created missing %s snapshot for %s at %s", kind, case_name, label)
        _emit(plugin_manager, case_name, label, kind, "created")
        return "created"

    result = comparator.compare(expected, actual)
    if result.equal:
        logger.info("%s snapshot verified for %s at %s", kind, case_name, label)
        _emit(plugin_manager, case_name, label, kind, "pass")
        return "pass"

    diagnostic_path = store.write_diagnostic(case_name, scope, kind, actual)
    if update_snapshots:
        store.write(case_name, scope, kind, actual)
        logger.warning("Updated %s snapshot for %s at %s", kind, case_name, label)
        _emit(
            plugin_manager,
            case_name,
            label,
            kind,
            "updated",
            diagnostic_path=str(diagnostic_path),
        )
        return "updated"

    logger.error(
        "%s snapshot mismatch for %s at %s; actual written to %s",
        kind,
        case_name,
        label,
        diagnostic_path,
    )
    _emit(plugin_manager, case_name, label, kind, "mismatch", diagnostic_path=str(diagnostic_path))
    raise SnapshotMismatchError(
        f"{kind} snapshot mismatch for case '{case_name}' at {label}. "
        f"Actual value written to {diagnostic_path}\n{result.diff}",
        case_name=case_name,
        scope=label,
        artifact=kind,
        diagnostic_path=str(diagnostic_path),
        diff=result.diff,
    )


def _emit(
    plugin_manager: PluginManager | None,
    case_name: str,
    scope: str,
    kind: str,
    status: VerificationStatus,
    *,
    diagnostic_path: str | None = None,
) -> None:
    if plugin_manager is None:
        return
    plugin_manager.on_verification(
        VerificationEvent(
            case_name=case_name,
            scope=scope,
            artifact=kind,
            status=status,
            diagnostic_path=diagnostic_path,
        )
    )
