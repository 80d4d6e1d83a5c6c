"""Executor protocol and implementations (local, SSH with a shared control channel)."""
from __future__ import annotations

import os
import select
import shlex
import subprocess
import sys
import tempfile
from typing import Protocol, runtime_checkable

READY_LINE = "ready"
MASTER_COMMAND = f"echo {READY_LINE}; while :; do sleep 100; done"


class ExecutorError(Exception):
    """Raised when a command exits with a non-zero status."""
    def __init__(self, cmd: list[str], returncode: int, stderr: str):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"Command {shlex.join(cmd)!r} exited {returncode}: {stderr.strip()}"
        )


@runtime_checkable
class Executor(Protocol):
    @property
    def label(self) -> str:
        """Short label for display (e.g. 'local', 'ssh://host')."""
        raise NotImplementedError

    def run(self, cmd: list[str], sudo: bool = False) -> str:
        """Run a command, return stdout. Raise ExecutorError on failure."""
        raise NotImplementedError

    def remote_path(self, path: str) -> str:
        """Return ``path`` in the form rsync expects for this executor."""
        raise NotImplementedError

    def rsync_shell(self) -> str | None:
        """Return the remote shell for ``rsync -e``, or None for local copies."""
        raise NotImplementedError

    def open(self) -> None:
        """Establish any long-lived connection the executor needs."""
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class _BaseExecutor:
    def __init__(self, sudo: bool = True, verbose: bool = False):
        self.sudo = sudo
        self.verbose = verbose

    def _privileged(self, cmd: list[str], sudo: bool) -> list[str]:
        if sudo and self.sudo:
            return ["sudo"] + cmd
        return cmd

    def _trace(self, cmd: list[str]) -> None:
        if self.verbose:
            print(f"  [{self.label}] {shlex.join(cmd)}", file=sys.stderr)

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class LocalExecutor(_BaseExecutor):
    """Run commands on the local machine."""

    @property
    def label(self) -> str:
        return "local"

    def run(self, cmd: list[str], sudo: bool = False) -> str:
        cmd = self._privileged(cmd, sudo)
        self._trace(cmd)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ExecutorError(cmd, 127, str(e)) from e
        if result.returncode != 0:
            raise ExecutorError(cmd, result.returncode, result.stderr)
        return result.stdout

    def remote_path(self, path: str) -> str:
        return path

    def rsync_shell(self) -> str | None:
        return None


class SSHExecutor(_BaseExecutor):
    """Run commands on a remote host via SSH.

    ``open()`` starts one master connection and every later command is
    multiplexed over its control socket, so the connection handshake is
    paid once per invocation instead of once per command.
    """

    def __init__(
        self,
        host: str,
        user: str | None = None,
        port: int = 22,
        options: list[str] | None = None,
        connect_timeout: float = 10.0,
        control_dir: str | None = None,
        sudo: bool = True,
        verbose: bool = False,
    ):
        super().__init__(sudo=sudo, verbose=verbose)
        self.host = host
        self.user = user
        self.port = port
        self.options = list(options or [])
        self.connect_timeout = connect_timeout
        self.control_path = os.path.join(
            control_dir or tempfile.gettempdir(),
            f"ssh-control-{host}-{os.getpid()}",
        )
        self._master: subprocess.Popen | None = None

    @property
    def label(self) -> str:
        return f"ssh://{self.destination}:{self.port}"

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    @property
    def is_open(self) -> bool:
        return self._master is not None

    def _ssh_base(self) -> list[str]:
        cmd = ["ssh"] + self.options + ["-p", str(self.port)]
        if self._master is not None:
            cmd += ["-S", self.control_path]
        return cmd

    def _ssh_prefix(self) -> list[str]:
        return self._ssh_base() + [self.destination]

    def open(self) -> None:
        """Start the SSH master and wait for it to report ready."""
        if self._master is not None:
            return
        cmd = (
            ["ssh", "-n", "-M", "-o", f"ControlPath={self.control_path}"]
            + self.options
            + ["-p", str(self.port), self.destination, MASTER_COMMAND]
        )
        self._trace(cmd)
        try:
            self._master = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
            )
        except OSError as e:
            raise ExecutorError(cmd, 127, str(e)) from e
        readable, _, _ = select.select(
            [self._master.stdout], [], [], self.connect_timeout
        )
        if not readable:
            self.close()
            raise ExecutorError(cmd, 1, "ssh connect timeout")

        line = self._master.stdout.readline().strip()
        if line != READY_LINE:
            self.close()
            raise ExecutorError(cmd, 1, f"invalid line from ssh: {line!r}")

        if self._master.poll() is not None:
            rc = self._master.returncode
            self.close()
            raise ExecutorError(cmd, rc, "could not establish ssh control channel")

    def close(self) -> None:
        master, self._master = self._master, None
        if master is None:
            return
        if master.poll() is None:
            master.terminate()
            try:
                master.wait(timeout=5)
            except subprocess.TimeoutExpired:
                master.kill()
                master.wait()
        if master.stdout is not None:
            master.stdout.close()

    def run(self, cmd: list[str], sudo: bool = False) -> str:
        if self._master is None:
            print(
                "Warning: no SSH control channel created, connecting per command",
                file=sys.stderr,
            )
        remote_cmd = self._privileged(cmd, sudo)
        full_cmd = self._ssh_prefix() + [shlex.join(remote_cmd)]
        self._trace(remote_cmd)
        try:
            result = subprocess.run(
                full_cmd,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ExecutorError(full_cmd, 127, str(e)) from e
        if result.returncode != 0:
            raise ExecutorError(full_cmd, result.returncode, result.stderr)
        return result.stdout

    def remote_path(self, path: str) -> str:
        return f"{self.destination}:{path}"

    def rsync_shell(self) -> str | None:
        return shlex.join(self._ssh_base())
