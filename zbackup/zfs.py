"""ZFS operations using an Executor for dependency injection."""
from __future__ import annotations

import shlex
import sys
from typing import TYPE_CHECKING

from zbackup.models import (
    BACKUP_TYPE,
    PROP_HOST,
    PROP_NAME,
    PROP_SOURCE,
    PROP_TYPE,
    BackupInfo,
    Snapshot,
)

if TYPE_CHECKING:
    from zbackup.executor import Executor


def _clean_value(value: str) -> str:
    # zfs prints '-' for "no value"
    value = value.strip()
    return "" if value == "-" else value


def get_property(dataset: str, prop: str, executor: "Executor") -> str:
    """Return the raw value of a filesystem property, '' when unset."""
    output = executor.run(
        ["zfs", "get", "-H", "-p", "-o", "value", prop, dataset], sudo=True
    )
    return _clean_value(output)


def set_property(dataset: str, prop: str, value: str, executor: "Executor") -> None:
    executor.run(["zfs", "set", f"{prop}={value}", dataset], sudo=True)


def create_pool(pool: str, vdev: str, executor: "Executor") -> None:
    executor.run(["zpool", "create", pool, vdev], sudo=True)


def create_filesystem(dataset: str, executor: "Executor") -> None:
    executor.run(["zfs", "create", dataset], sudo=True)


def destroy_filesystem(dataset: str, executor: "Executor") -> None:
    executor.run(["zfs", "destroy", dataset], sudo=True)


def list_filesystems(root: str, executor: "Executor") -> list[str]:
    """Return ``root`` and every filesystem below it ('' lists all pools)."""
    cmd = ["zfs", "list", "-H", "-o", "name", "-r"]
    if root:
        cmd.append(root)
    output = executor.run(cmd, sudo=True)
    return [line.strip() for line in output.splitlines() if line.strip()]


def list_backups(root: str, executor: "Executor") -> list[str]:
    """Return the filesystems under ``root`` tagged as zbackup backups."""
    return [
        fs for fs in list_filesystems(root, executor)
        if get_property(fs, PROP_TYPE, executor) == BACKUP_TYPE
    ]


def describe(datasets: list[str], executor: "Executor") -> str:
    """Return the ``zfs list`` table for the given filesystems."""
    return executor.run(["zfs", "list", "-r"] + datasets, sudo=True)


def list_snapshots(dataset: str, executor: "Executor") -> list[Snapshot]:
    """Return snapshots for a dataset, newest first."""
    output = executor.run([
        "zfs", "list", "-H", "-o", "name", "-S", "creation",
        "-r", "-t", "snapshot", dataset,
    ], sudo=True)
    results = []
    for line in output.splitlines():
        name = line.strip()
        if not name:
            continue
        # Only include snapshots directly on this dataset (not children)
        if "@" in name and name.split("@")[0] == dataset:
            results.append(Snapshot.parse(name))
    return results


def diff(snapshot: Snapshot, executor: "Executor") -> str:
    """Return what changed in the live filesystem since ``snapshot``."""
    return executor.run(["zfs", "diff", snapshot.full_name], sudo=True).strip()


def create_snapshot(
    dataset: str,
    tag: str,
    executor: "Executor",
    dry_run: bool = False,
) -> Snapshot:
    snapshot = Snapshot(dataset=dataset, name=tag)
    cmd = ["zfs", "snapshot", snapshot.full_name]
    if dry_run:
        print(f"  [snapshot] {shlex.join(cmd)}", file=sys.stderr)
    else:
        executor.run(cmd, sudo=True)
    return snapshot


def destroy_snapshot(
    snapshot: Snapshot,
    executor: "Executor",
    dry_run: bool = False,
) -> None:
    """Destroy a single snapshot."""
    cmd = ["zfs", "destroy", snapshot.full_name]
    if dry_run:
        print(f"  [destroy] {shlex.join(cmd)}", file=sys.stderr)
        return
    executor.run(cmd, sudo=True)


def read_backup_info(dataset: str, executor: "Executor") -> BackupInfo:
    """Read the zbackup tags and mount point of a filesystem."""
    return BackupInfo(
        dataset=dataset,
        type=get_property(dataset, PROP_TYPE, executor),
        name=get_property(dataset, PROP_NAME, executor),
        host=get_property(dataset, PROP_HOST, executor),
        source=get_property(dataset, PROP_SOURCE, executor),
        mountpoint=get_property(dataset, "mountpoint", executor),
    )
