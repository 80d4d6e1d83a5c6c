"""Load and validate the optional YAML settings file."""
from __future__ import annotations

import os

import yaml

from zbackup.models import Settings, SSHConfig

ENV_CONFIG = "ZBACKUP_CONFIG"
DEFAULT_CONFIG = os.path.join("~", ".config", "zbackup", "config.yaml")


class ConfigError(Exception):
    pass


def find_config(path: str | None = None) -> str | None:
    """Return the settings file to load, or None to use the defaults.

    An explicit path (argument or $ZBACKUP_CONFIG) must exist; the per-user
    default is only used when present.
    """
    if path:
        return path
    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return env_path
    default = os.path.expanduser(DEFAULT_CONFIG)
    if os.path.isfile(default):
        return default
    return None


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _string_list(value, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key} must be a list of strings")
    return value


def _non_negative_int(value, key: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    if number < 0:
        raise ConfigError(f"{key} must be >= 0, got {number}")
    return number


def load_settings(path: str | None = None) -> Settings:
    path = find_config(path)
    if path is None:
        return Settings()

    with open(path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")

    if raw is None:
        return Settings()
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping: {path}")

    settings = Settings()

    # --- ssh ---
    ssh_raw = _section(raw, "ssh")
    ssh = SSHConfig()
    if ssh_raw.get("user"):
        ssh.user = str(ssh_raw["user"])
    if "port" in ssh_raw:
        ssh.port = _non_negative_int(ssh_raw["port"], "ssh.port")
        if not 0 < ssh.port < 65536:
            raise ConfigError(f"ssh.port out of range: {ssh.port}")
    if "connect_timeout" in ssh_raw:
        try:
            ssh.connect_timeout = float(ssh_raw["connect_timeout"])
        except (TypeError, ValueError):
            raise ConfigError(
                f"ssh.connect_timeout must be a number, got {ssh_raw['connect_timeout']!r}"
            )
        if ssh.connect_timeout <= 0:
            raise ConfigError("ssh.connect_timeout must be > 0")
    if ssh_raw.get("control_dir"):
        ssh.control_dir = os.path.expanduser(str(ssh_raw["control_dir"]))
    if "options" in ssh_raw:
        ssh.options = _string_list(ssh_raw["options"], "ssh.options")
    settings.ssh = ssh

    # --- sudo ---
    if "sudo" in raw:
        if not isinstance(raw["sudo"], bool):
            raise ConfigError(f"'sudo' must be true or false, got {raw['sudo']!r}")
        settings.sudo = raw["sudo"]

    # --- rsync ---
    rsync_raw = _section(raw, "rsync")
    if "options" in rsync_raw:
        settings.rsync_options = _string_list(rsync_raw["options"], "rsync.options")

    # --- snapshot ---
    snap_raw = _section(raw, "snapshot")
    if "tag_format" in snap_raw:
        tag_format = snap_raw["tag_format"]
        if not isinstance(tag_format, str) or not tag_format.strip():
            raise ConfigError("snapshot.tag_format must not be empty")
        if "@" in tag_format or "/" in tag_format:
            raise ConfigError(
                f"snapshot.tag_format must not contain '@' or '/': {tag_format!r}"
            )
        settings.tag_format = tag_format

    # --- prune ---
    prune_raw = _section(raw, "prune")
    if "keep" in prune_raw:
        settings.prune_keep = _non_negative_int(prune_raw["keep"], "prune.keep")

    return settings
