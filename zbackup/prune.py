"""Prune: destroy all but the newest snapshots of a backup."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING

from zbackup import zfs
from zbackup.backup import validate_backup_target
from zbackup.console import error, status
from zbackup.executor import ExecutorError
from zbackup.models import Snapshot

if TYPE_CHECKING:
    from zbackup.executor import Executor
    from zbackup.models import Target


def parse_count(raw: str | None, default: int) -> int:
    """Return the keep count from the command line; ValueError if not a number."""
    if raw is None or raw == "":
        return default
    if not re.fullmatch(r"[0-9]+", raw):
        raise ValueError("Count must be a number")
    return int(raw)


def snapshots_to_delete(snapshots: list[Snapshot], keep: int) -> list[Snapshot]:
    """``snapshots`` is newest first; everything after the first ``keep`` goes."""
    return snapshots[keep:]


def run_prune(
    target: "Target",
    keep: int,
    executor: "Executor",
    dry_run: bool = False,
    verbose: bool = False,
) -> int:
    """
    Keep the ``keep`` newest snapshots of the backup and destroy the rest.
    Returns exit code (0=success, 1=some snapshot could not be destroyed).
    """
    problem = validate_backup_target(target)
    if problem:
        return error(problem)

    snapshots = zfs.list_snapshots(target.dataset, executor)
    to_delete = snapshots_to_delete(snapshots, keep)
    if verbose:
        status(f"{target.dataset}: {len(snapshots)} snapshot(s), keeping {keep}")

    destroyed = 0
    any_error = False
    for snap in to_delete:
        try:
            zfs.destroy_snapshot(snap, executor, dry_run=dry_run)
        except ExecutorError as e:
            error(f"Failed to destroy snapshot: {snap.full_name}: {e}")
            any_error = True
            continue
        destroyed += 1
        if not dry_run:
            status(f"Destroyed snapshot: {snap.full_name}")

    label = "would be destroyed" if dry_run else "destroyed"
    status(f"{destroyed} snapshots {label}")
    return 1 if any_error else 0
