"""zbackup: directory backups into ZFS filesystems with snapshot history."""

__version__ = "0.2.0"
