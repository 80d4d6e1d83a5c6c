"""Tests for zbackup.pool module."""
from __future__ import annotations

from zbackup.models import Target
from zbackup.pool import run_create_pool, validate_create_pool
from tests.conftest import MockExecutor, fail

TARGET = Target.parse("nas:backup")
IMAGE = "/srv/zfs/backup.img"


def _responses() -> dict:
    return {
        ("test", "-f", IMAGE): fail(["test"]),
        ("mkdir", "-p", "/srv/zfs"): "",
        ("fallocate", "-l", "10G", IMAGE): "",
        ("zpool", "create", "backup", IMAGE): "",
    }


def test_create_pool_happy_path(capsys):
    exec_ = MockExecutor(_responses())
    rc = run_create_pool(TARGET, IMAGE, "10G", exec_)
    assert rc == 0
    assert exec_.calls[1:] == [
        ["mkdir", "-p", "/srv/zfs"],
        ["fallocate", "-l", "10G", IMAGE],
        ["zpool", "create", "backup", IMAGE],
    ]
    assert exec_.sudo_calls == exec_.calls[1:]
    err = capsys.readouterr().err
    assert "Creating new pool backup using image nas:/srv/zfs/backup.img with size 10G" in err


def test_create_pool_image_exists(capsys):
    responses = _responses()
    responses[("test", "-f", IMAGE)] = ""
    exec_ = MockExecutor(responses)
    assert run_create_pool(TARGET, IMAGE, "10G", exec_) == 1
    assert "already exists" in capsys.readouterr().err
    assert len(exec_.calls) == 1


def test_create_pool_fallocate_failure(capsys):
    responses = _responses()
    responses[("fallocate", "-l", "10G", IMAGE)] = fail(["fallocate"], "No space left")
    exec_ = MockExecutor(responses)
    assert run_create_pool(TARGET, IMAGE, "10G", exec_) == 1
    assert "Failed to create image file" in capsys.readouterr().err
    assert not any(c[0] == "zpool" for c in exec_.calls)


def test_create_pool_zpool_failure(capsys):
    responses = _responses()
    responses[("zpool", "create", "backup", IMAGE)] = fail(["zpool"], "pool exists")
    exec_ = MockExecutor(responses)
    assert run_create_pool(TARGET, IMAGE, "10G", exec_) == 1
    assert "Failed to create ZFS pool 'backup'" in capsys.readouterr().err


def test_validate_create_pool():
    assert validate_create_pool(Target.parse(""), IMAGE, "1G") == "Missing pool name"
    assert validate_create_pool(TARGET, "", "1G") == "Missing pool image filepath"
    assert "must be absolute" in validate_create_pool(TARGET, "backup.img", "1G")
    assert "must be absolute" in validate_create_pool(TARGET, "sub/backup.img", "1G")
    assert validate_create_pool(TARGET, IMAGE, "") == "Missing pool image size"
    assert validate_create_pool(TARGET, IMAGE, "1G") is None


def test_create_pool_relative_image_rejected(capsys):
    exec_ = MockExecutor(_responses())
    assert run_create_pool(TARGET, "sub/backup.img", "10G", exec_) == 1
    assert "must be absolute" in capsys.readouterr().err
    assert exec_.calls == []
