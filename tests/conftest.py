"""MockExecutor and shared fixtures for testing."""
from __future__ import annotations

import os

import pytest

from zbackup.executor import ExecutorError


class MockExecutor:
    """
    Executor that returns pre-scripted responses for commands.

    responses: dict mapping tuple(cmd) -> stdout string (or an exception to raise)
    If the command isn't found, raises KeyError (to catch unexpected calls in tests).
    The sudo flag is recorded in ``sudo_calls`` but not part of the key.

    Pass verbose=True to print every command that goes through the executor.
    """

    def __init__(self, responses: dict | None = None, is_verbose: bool = False,
                 label: str = "mock", host: str | None = None):
        self.responses: dict = responses or {}
        self.verbose = is_verbose
        self._label = label
        self.host = host
        self.calls: list[list[str]] = []  # record of all commands run
        self.sudo_calls: list[list[str]] = []
        self.opened = False
        self.closed = False

    @property
    def label(self) -> str:
        return self._label

    def run(self, cmd: list[str], sudo: bool = False) -> str:
        self.calls.append(cmd)
        if sudo:
            self.sudo_calls.append(cmd)
        if self.verbose:
            import shlex
            print(f"  [mock.run] {shlex.join(cmd)}")
        key = tuple(cmd)
        if key not in self.responses:
            raise KeyError(f"MockExecutor: unexpected command: {cmd}")
        result = self.responses[key]
        if isinstance(result, Exception):
            raise result
        return result

    def remote_path(self, path: str) -> str:
        return f"{self.host}:{path}" if self.host else path

    def rsync_shell(self) -> str | None:
        return "ssh -S /tmp/mock-socket" if self.host else None

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info):
        self.close()


def fail(cmd: list[str], stderr: str = "failed") -> ExecutorError:
    return ExecutorError(cmd, 1, stderr)


# ---------------------------------------------------------------------------
# Scripted zfs output
# ---------------------------------------------------------------------------

POOL = "tank"
NAME = "home"
DATASET = "tank/home"
MOUNT = "/tank/home"
HOSTNAME = "workstation"

# zfs list -S creation: newest first
SNAPS = [
    "tank/home@20260301-120000",
    "tank/home@20260215-120000",
    "tank/home@20260201-120000",
    "tank/home@20260115-120000",
    "tank/home@20260101-120000",
    "tank/home@20251215-120000",
    "tank/home@20251201-120000",
]


def _snap_list_output(full_names: list[str]) -> str:
    return "\n".join(full_names) + "\n" if full_names else ""


def get_cmd(prop: str, dataset: str = DATASET) -> tuple:
    return ("zfs", "get", "-H", "-p", "-o", "value", prop, dataset)


def snap_list_cmd(dataset: str = DATASET) -> tuple:
    return ("zfs", "list", "-H", "-o", "name", "-S", "creation",
            "-r", "-t", "snapshot", dataset)


def make_backup_responses(
    source: str,
    dataset: str = DATASET,
    host: str = HOSTNAME,
    mountpoint: str = MOUNT,
    snaps: list[str] | None = None,
) -> dict:
    """Return responses describing a healthy backup filesystem."""
    if snaps is None:
        snaps = SNAPS
    return {
        get_cmd("zbackup:type", dataset): "backup\n",
        get_cmd("zbackup:name", dataset): dataset.split("/", 1)[1] + "\n",
        get_cmd("zbackup:host", dataset): host + "\n",
        get_cmd("zbackup:source", dataset): source + "\n",
        get_cmd("mountpoint", dataset): mountpoint + "\n",
        ("test", "-d", mountpoint): "",
        snap_list_cmd(dataset): _snap_list_output(snaps),
    }


@pytest.fixture
def hostname(monkeypatch):
    """Pin the local hostname seen by zbackup.backup."""
    monkeypatch.setattr("zbackup.backup.local_hostname", lambda: HOSTNAME)
    return HOSTNAME


@pytest.fixture
def source_dir(tmp_path):
    d = tmp_path / "source"
    d.mkdir()
    (d / "file.txt").write_text("data")
    return os.path.realpath(d)
