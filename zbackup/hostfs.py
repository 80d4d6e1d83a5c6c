"""Plain file operations on the backup host."""
from __future__ import annotations

from typing import TYPE_CHECKING

from zbackup.executor import ExecutorError

if TYPE_CHECKING:
    from zbackup.executor import Executor


def path_exists(path: str, executor: "Executor", directory: bool = False) -> bool:
    """Return True if ``path`` is a regular file (or a directory) on the host."""
    try:
        executor.run(["test", "-d" if directory else "-f", path])
        return True
    except ExecutorError:
        return False


def make_directory(path: str, executor: "Executor") -> None:
    executor.run(["mkdir", "-p", path], sudo=True)


def allocate_file(path: str, size: str, executor: "Executor") -> None:
    executor.run(["fallocate", "-l", size, path], sudo=True)


def current_owner(executor: "Executor") -> tuple[str, str]:
    """Return the (user, group) commands run as on the host, before sudo."""
    user = executor.run(["id", "-un"]).strip()
    group = executor.run(["id", "-gn"]).strip()
    return user, group


def chown_recursive(path: str, user: str, group: str, executor: "Executor") -> None:
    executor.run(["chown", "-R", f"{user}:{group}", path], sudo=True)
