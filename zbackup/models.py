"""Data models for zbackup."""
from __future__ import annotations

import re
from dataclasses import dataclass, field

BACKUP_TYPE = "backup"

PROP_TYPE = "zbackup:type"
PROP_NAME = "zbackup:name"
PROP_HOST = "zbackup:host"
PROP_SOURCE = "zbackup:source"

# [host:]pool[/name[@snapshot]], anchored at the start only
TARGET_PATTERN = re.compile(
    r"^(?:(?P<host>[^:]+):)?(?P<pool>[^/]+)(?:/(?P<name>[^@]*)(?:@(?P<snapshot>.*))?)?"
)


@dataclass(frozen=True)
class Target:
    """A parsed ``[host:]pool[/name[@snapshot]]`` command line argument."""
    pool: str
    name: str = ""
    snapshot: str = ""
    host: str | None = None

    @classmethod
    def parse(cls, arg: str) -> "Target":
        m = TARGET_PATTERN.match(arg)
        if m is None:
            return cls(pool="")
        return cls(
            pool=m.group("pool"),
            name=m.group("name") or "",
            snapshot=m.group("snapshot") or "",
            host=m.group("host") or None,
        )

    @property
    def is_remote(self) -> bool:
        return self.host is not None

    @property
    def dataset(self) -> str:
        """pool/name, or just the pool when no name was given."""
        if self.name:
            return f"{self.pool}/{self.name}"
        return self.pool

    def __str__(self) -> str:
        text = self.dataset
        if self.snapshot:
            text += f"@{self.snapshot}"
        if self.host:
            text = f"{self.host}:{text}"
        return text


@dataclass(frozen=True, order=True)
class Snapshot:
    """A ZFS snapshot: pool/dataset@name."""
    dataset: str
    name: str  # just the snapshot name after '@'

    @property
    def full_name(self) -> str:
        return f"{self.dataset}@{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> "Snapshot":
        dataset, _, name = full_name.partition("@")
        if not name:
            raise ValueError(f"Not a snapshot: {full_name!r}")
        return cls(dataset=dataset, name=name)


@dataclass
class BackupInfo:
    """Tags stored on a backup filesystem, plus where it is mounted."""
    dataset: str
    type: str = ""
    name: str = ""
    host: str = ""
    source: str = ""
    mountpoint: str = ""

    @property
    def is_backup(self) -> bool:
        return self.type == BACKUP_TYPE


@dataclass
class SSHConfig:
    user: str | None = None
    port: int = 22
    connect_timeout: float = 10.0
    control_dir: str | None = None  # None: the system temp directory
    options: list[str] = field(default_factory=lambda: ["-o", "BatchMode=yes"])


@dataclass
class Settings:
    ssh: SSHConfig = field(default_factory=SSHConfig)
    sudo: bool = True
    rsync_options: list[str] = field(
        default_factory=lambda: ["-avz", "--progress", "--delete"]
    )
    tag_format: str = "%Y%m%d-%H%M%S"
    prune_keep: int = 5
