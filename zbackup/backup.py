"""Backup lifecycle: create a backup filesystem, sync into it, check it."""
from __future__ import annotations

import os
import socket
from datetime import datetime
from typing import TYPE_CHECKING

from zbackup import hostfs, rsync, zfs
from zbackup.console import GREEN, RED, RESET, YELLOW, error, status
from zbackup.executor import ExecutorError
from zbackup.models import (
    BACKUP_TYPE,
    PROP_HOST,
    PROP_NAME,
    PROP_SOURCE,
    PROP_TYPE,
    BackupInfo,
)

if TYPE_CHECKING:
    from zbackup.executor import Executor
    from zbackup.models import Settings, Target

APP_NAME = "zbackup"


def local_hostname() -> str:
    return socket.gethostname()


def make_tag(tag_format: str, now: datetime | None = None) -> str:
    """Return the snapshot name for a sync finishing at ``now``."""
    return (now or datetime.now()).strftime(tag_format)


def validate_backup_target(target: "Target") -> str | None:
    """Return an error message unless the target names pool/name."""
    if not target.pool:
        return "Missing pool name"
    if not target.name:
        return "Missing backup name"
    return None


def run_create(
    target: "Target",
    source: str,
    executor: "Executor",
) -> int:
    """
    Create the backup filesystem for local directory ``source``.
    Returns exit code.

    The filesystem is tagged with the backup name, this host's name and the
    source path; its mount point is handed to the login user so rsync can
    write without sudo.
    """
    problem = validate_backup_target(target)
    if problem:
        return error(problem)
    if not source:
        return error("Missing backup source directory")
    source_dir = os.path.realpath(source)
    if not os.path.isdir(source_dir):
        return error(f"Backup source path is not a directory '{source_dir}'")

    dataset = target.dataset
    host = local_hostname()
    status(f"Creating new backup for {host}:{source_dir} to {target}")

    try:
        zfs.create_filesystem(dataset, executor)
    except ExecutorError as e:
        return error(f"Failed to create backup filesystem: {e}")

    try:
        zfs.set_property(dataset, PROP_TYPE, BACKUP_TYPE, executor)
        zfs.set_property(dataset, PROP_NAME, target.name, executor)
        zfs.set_property(dataset, PROP_HOST, host, executor)
        zfs.set_property(dataset, PROP_SOURCE, source_dir, executor)
    except ExecutorError as e:
        error(f"Failed to set backup ZFS filesystem properties: {e}")
        status(f"Destroying newly created backup ZFS filesystem {dataset}")
        try:
            zfs.destroy_filesystem(dataset, executor)
        except ExecutorError as destroy_error:
            error(f"Failed to destroy {dataset}: {destroy_error}")
        return 1

    mountpoint = zfs.get_property(dataset, "mountpoint", executor)
    if not mountpoint:
        return error(
            "No mount point found for backup. "
            "Unable to set backup filesystem permissions."
        )

    try:
        user, group = hostfs.current_owner(executor)
        hostfs.chown_recursive(mountpoint, user, group, executor)
    except ExecutorError as e:
        return error(f"Failed to set permissions for backup mount point '{mountpoint}': {e}")

    status(f"{GREEN}New backup created {source_dir} -> {target}{RESET}")
    status(f"Sync with '{APP_NAME} sync {target}'")
    return 0


def _inspect(
    target: "Target",
    executor: "Executor",
) -> tuple[BackupInfo | None, list[str]]:
    """
    Read the backup's tags and run every pre-sync check.
    Returns (info, problems); info is None when the target is not a backup.
    """
    dataset = target.dataset
    info = zfs.read_backup_info(dataset, executor)
    if not info.is_backup:
        return None, [f"'{dataset}' is not a zBackup backup"]

    problems = []

    # Syncing one backup from several machines would interleave their trees
    this_host = local_hostname()
    if not info.host:
        problems.append("Failed to get backup host property")
    elif info.host != this_host:
        problems.append(
            f"Hostname in backup '{info.host}' doesn't match this system's "
            f"hostname '{this_host}'"
        )

    if not info.source:
        problems.append("Failed to get backup source directory")
    elif not os.path.isdir(info.source):
        problems.append(f"Backup source directory '{info.source}' doesn't exist")

    if not info.mountpoint:
        problems.append("Failed to get backup filesystem mount point")
    elif not hostfs.path_exists(info.mountpoint, executor, directory=True):
        problems.append(f"Backup mount point '{info.mountpoint}' is not a directory")

    return info, problems


def run_sync(
    target: "Target",
    executor: "Executor",
    settings: "Settings",
    dry_run: bool = False,
    verbose: bool = False,
) -> int:
    """
    Mirror the backup's source directory into it, then snapshot if anything changed.
    Returns exit code.
    """
    problem = validate_backup_target(target)
    if problem:
        return error(problem)

    info, problems = _inspect(target, executor)
    if problems:
        for p in problems:
            error(p)
        return 1

    if verbose:
        status("Backup info:")
        status(f"  name:   {info.dataset}")
        status(f"  type:   {info.type}")
        status(f"  host:   {info.host}")
        status(f"  source: {info.source}")
        status(f"  mount:  {info.mountpoint}")

    status(f"Syncing {info.host}:{info.source} -> {target}")
    cmd = rsync.build_command(
        info.source, info.mountpoint, executor, settings.rsync_options, dry_run=dry_run
    )
    try:
        rsync.run(cmd, verbose=verbose)
    except ExecutorError as e:
        return error(
            f"Failed to sync {info.host}:{info.source} -> {target} using rsync: {e}"
        )

    snapshots = zfs.list_snapshots(info.dataset, executor)
    if snapshots:
        changes = zfs.diff(snapshots[0], executor)
    else:
        changes = "- First time synchronization"

    if not changes:
        status(f"{GREEN}Backup is up-to-date{RESET}")
    else:
        tag = make_tag(settings.tag_format)
        status(f"{YELLOW}Backup has changed{RESET}")
        if verbose:
            status(changes)
        status(f"Creating new snapshot '{tag}'")
        zfs.create_snapshot(info.dataset, tag, executor, dry_run=dry_run)

    prefix = "[dry-run] " if dry_run else ""
    status(f"{prefix}Sync finished successfully")
    return 0


def run_check(target: "Target", executor: "Executor") -> int:
    """
    Report a backup's tags and whether it could be synced from this host.
    Returns exit code.
    """
    problem = validate_backup_target(target)
    if problem:
        return error(problem)

    info, problems = _inspect(target, executor)
    if info is not None:
        snapshots = zfs.list_snapshots(info.dataset, executor)
        print(f"backup:    {target}")
        print(f"name:      {info.name}")
        print(f"host:      {info.host}")
        print(f"source:    {info.source}")
        print(f"mount:     {info.mountpoint}")
        print(f"snapshots: {len(snapshots)}")
        if snapshots:
            print(f"latest:    {snapshots[0].name}")

    for p in problems:
        error(p)
    if problems:
        print(f"{RED}{len(problems)} problem(s) found{RESET}")
        return 1

    print(f"{GREEN}OK{RESET}")
    return 0
