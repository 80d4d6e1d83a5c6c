"""Copy a source directory into a backup mount point with rsync."""
from __future__ import annotations

import shlex
import subprocess
import sys
from typing import TYPE_CHECKING

from zbackup.executor import ExecutorError

if TYPE_CHECKING:
    from zbackup.executor import Executor


def build_command(
    source_dir: str,
    dest_dir: str,
    executor: "Executor",
    options: list[str],
    dry_run: bool = False,
) -> list[str]:
    """Build the rsync command that mirrors ``source_dir`` into ``dest_dir``.

    Both paths get a trailing slash so rsync copies directory contents, not
    the directory itself. When the executor holds an SSH control channel,
    rsync is pointed at it through ``-e`` and reuses the same connection.
    """
    cmd = ["rsync"] + list(options)
    if dry_run:
        cmd.append("--dry-run")
    shell = executor.rsync_shell()
    if shell:
        cmd += ["-e", shell]
    cmd.append(source_dir.rstrip("/") + "/")
    cmd.append(executor.remote_path(dest_dir.rstrip("/") + "/"))
    return cmd


def run(cmd: list[str], verbose: bool = False) -> None:
    """Run rsync with its output going straight to the terminal."""
    if verbose:
        print(f"  [rsync] {shlex.join(cmd)}", file=sys.stderr)
    try:
        result = subprocess.run(cmd, check=False)
    except OSError as e:
        raise ExecutorError(cmd, 1, str(e)) from e
    if result.returncode != 0:
        raise ExecutorError(cmd, result.returncode, "rsync failed")
