"""Create a ZFS pool backed by an image file."""
from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING

from zbackup import hostfs, zfs
from zbackup.console import GREEN, RESET, error, status
from zbackup.executor import ExecutorError

if TYPE_CHECKING:
    from zbackup.executor import Executor
    from zbackup.models import Target


def validate_create_pool(target: "Target", image: str, size: str) -> str | None:
    """Return an error message for missing arguments, or None."""
    if not target.pool:
        return "Missing pool name"
    if not image:
        return "Missing pool image filepath"
    if not posixpath.isabs(image):
        return f"Pool image path must be absolute: '{image}'"
    if not size:
        return "Missing pool image size"
    return None


def run_create_pool(
    target: "Target",
    image: str,
    size: str,
    executor: "Executor",
) -> int:
    """
    Create pool ``target.pool`` on a fresh image file of ``size`` bytes.
    Returns exit code.

    The image must not exist yet; its directory is created as needed.
    """
    problem = validate_create_pool(target, image, size)
    if problem:
        return error(problem)

    if hostfs.path_exists(image, executor):
        return error(f"Image '{image}' file already exists")

    where = f"{target.host}:{image}" if target.host else image
    status(f"Creating new pool {target.pool} using image {where} with size {size}")

    image_dir = posixpath.dirname(image)
    try:
        hostfs.make_directory(image_dir, executor)
    except ExecutorError as e:
        return error(f"Failed to create directory '{image_dir}' for pool image: {e}")

    try:
        hostfs.allocate_file(image, size, executor)
    except ExecutorError as e:
        return error(f"Failed to create image file '{image}' with size {size}: {e}")

    try:
        zfs.create_pool(target.pool, image, executor)
    except ExecutorError as e:
        return error(
            f"Failed to create ZFS pool '{target.pool}' using image file '{image}': {e}"
        )

    status(f"{GREEN}ZFS pool created: {target}{RESET}")
    return 0
