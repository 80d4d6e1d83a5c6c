"""CLI entry point for zbackup."""
from __future__ import annotations

import argparse
import sys

from zbackup.config import ConfigError, load_settings
from zbackup.console import error
from zbackup.executor import ExecutorError, LocalExecutor, SSHExecutor
from zbackup.models import Target


def _make_executor(target, settings, verbose=False):
    """Build the executor for the target's host (local when no host was given)."""
    if target.is_remote:
        return SSHExecutor(
            host=target.host,
            user=settings.ssh.user,
            port=settings.ssh.port,
            options=settings.ssh.options,
            connect_timeout=settings.ssh.connect_timeout,
            control_dir=settings.ssh.control_dir,
            sudo=settings.sudo,
            verbose=verbose,
        )
    return LocalExecutor(sudo=settings.sudo, verbose=verbose)


def cmd_create_pool(args, settings) -> int:
    from zbackup.pool import run_create_pool, validate_create_pool
    target = Target.parse(args.target)
    problem = validate_create_pool(target, args.image, args.size)
    if problem:
        return error(problem)

    with _make_executor(target, settings, args.verbose) as executor:
        return run_create_pool(target, args.image, args.size, executor)


def cmd_create(args, settings) -> int:
    from zbackup.backup import run_create, validate_backup_target
    target = Target.parse(args.target)
    problem = validate_backup_target(target)
    if problem:
        return error(problem)

    with _make_executor(target, settings, args.verbose) as executor:
        return run_create(target, args.directory, executor)


def cmd_sync(args, settings) -> int:
    from zbackup.backup import run_sync, validate_backup_target
    target = Target.parse(args.target)
    problem = validate_backup_target(target)
    if problem:
        return error(problem)

    with _make_executor(target, settings, args.verbose) as executor:
        return run_sync(
            target,
            executor,
            settings,
            dry_run=args.dry_run,
            verbose=args.verbose,
        )


def cmd_check(args, settings) -> int:
    from zbackup.backup import run_check, validate_backup_target
    target = Target.parse(args.target)
    problem = validate_backup_target(target)
    if problem:
        return error(problem)

    with _make_executor(target, settings, args.verbose) as executor:
        return run_check(target, executor)


def cmd_list(args, settings) -> int:
    """List backups under a pool or filesystem; pool 'all' lists every pool."""
    from zbackup import zfs
    target = Target.parse(args.target)
    if not target.pool:
        return error("Missing pool name")
    root = "" if target.pool == "all" else target.dataset

    with _make_executor(target, settings, args.verbose) as executor:
        backups = zfs.list_backups(root, executor)
        if backups:
            print(zfs.describe(backups, executor), end="")
    return 0


def cmd_list_snaps(args, settings) -> int:
    """List a backup's snapshots, newest first."""
    from zbackup import zfs
    from zbackup.backup import validate_backup_target
    target = Target.parse(args.target)
    problem = validate_backup_target(target)
    if problem:
        return error(problem)

    with _make_executor(target, settings, args.verbose) as executor:
        snapshots = zfs.list_snapshots(target.dataset, executor)

    if target.snapshot:
        snapshots = [s for s in snapshots if s.name == target.snapshot]
        if not snapshots:
            return error(f"No snapshot '{target.snapshot}' in {target.dataset}")

    for snap in snapshots:
        print(snap.full_name)
    return 0


def cmd_prune(args, settings) -> int:
    from zbackup.backup import validate_backup_target
    from zbackup.prune import parse_count, run_prune
    target = Target.parse(args.target)
    problem = validate_backup_target(target)
    if problem:
        return error(problem)
    try:
        keep = parse_count(args.count, settings.prune_keep)
    except ValueError as e:
        return error(str(e))

    with _make_executor(target, settings, args.verbose) as executor:
        return run_prune(
            target,
            keep,
            executor,
            dry_run=args.dry_run,
            verbose=args.verbose,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zbackup",
        description="Back up directories into ZFS filesystems with rsync and keep snapshot history",
    )
    parser.add_argument("--config", "-c",
                        help="Settings YAML file (default: $ZBACKUP_CONFIG or "
                             "~/.config/zbackup/config.yaml)")

    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Print every command issued")

    # Shared options; -v also works after the command name
    def add_common(p):
        p.add_argument("--verbose", "-v", action="store_true", default=argparse.SUPPRESS,
                       help="Print every command issued")

    sub = parser.add_subparsers(dest="command", required=True)

    p_pool = sub.add_parser("create-pool", help="Create a ZFS pool on a new image file")
    p_pool.add_argument("target", help="[host:]pool")
    p_pool.add_argument("image", help="Path of the pool image file on the host")
    p_pool.add_argument("size", help="Image size, as understood by fallocate (e.g. 10G)")
    add_common(p_pool)
    p_pool.set_defaults(func=cmd_create_pool)

    p_create = sub.add_parser("create", help="Create a backup of a local directory")
    p_create.add_argument("target", help="[host:]pool/name")
    p_create.add_argument("directory", help="Local directory to back up")
    add_common(p_create)
    p_create.set_defaults(func=cmd_create)

    p_sync = sub.add_parser("sync", help="Sync a backup and snapshot it if anything changed")
    p_sync.add_argument("target", help="[host:]pool/name")
    p_sync.add_argument("--dry-run", "-n", action="store_true",
                        help="Run rsync with --dry-run and create no snapshot")
    add_common(p_sync)
    p_sync.set_defaults(func=cmd_sync)

    p_check = sub.add_parser("check", help="Show a backup and verify it can be synced from here")
    p_check.add_argument("target", help="[host:]pool/name")
    add_common(p_check)
    p_check.set_defaults(func=cmd_check)

    p_list = sub.add_parser("list", help="List backups")
    p_list.add_argument("target", help="[host:]all|pool[/name]")
    add_common(p_list)
    p_list.set_defaults(func=cmd_list)

    p_snaps = sub.add_parser("list-snaps", help="List backup snapshots, newest first")
    p_snaps.add_argument("target", help="[host:]pool/name[@snapshot]")
    add_common(p_snaps)
    p_snaps.set_defaults(func=cmd_list_snaps)

    p_prune = sub.add_parser("prune", help="Destroy all but the newest COUNT snapshots")
    p_prune.add_argument("target", help="[host:]pool/name")
    p_prune.add_argument("count", nargs="?", default=None,
                         help="Snapshots to keep (default from settings, 5)")
    p_prune.add_argument("--dry-run", "-n", action="store_true",
                         help="Show what would be destroyed without destroying")
    add_common(p_prune)
    p_prune.set_defaults(func=cmd_prune)

    return parser


def run(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (ConfigError, FileNotFoundError) as e:
        return error(f"Config error: {e}")

    try:
        return args.func(args, settings)
    except ExecutorError as e:
        return error(str(e))


def main(argv=None) -> None:
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
