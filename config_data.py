# -*- coding: utf-8 -*-
"""
Configuration data: accounts, retry pacing, logging options.
Loaded once from YAML at startup; every object here is immutable afterwards.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from errors import ConfigError, MissingConfigError

# ============================================================================
# DEFAULTS
# ============================================================================

APP_NAME = "idlesync"
CONFIG_FILENAME = "config.yaml"

DEFAULT_RETRY = 60
DEFAULT_IDLE_TIMEOUT = 600
DEFAULT_SOCKET_TIMEOUT = 60
DEFAULT_LOG_LEVEL = "info"

IMAPS_PORT = 993
IMAP_PORT = 143


# ============================================================================
# DATA
# ============================================================================


@dataclass(frozen=True)
class Account:
    host: str
    user: str
    password: str = field(repr=False)
    tls: bool = True
    port: int | None = None
    name: str | None = None
    commands: tuple[str, ...] = ()
    # Accepted for compatibility; selection always uses INBOX.
    folders: tuple[str, ...] | None = None

    @property
    def imap_port(self):
        if self.port is not None:
            return self.port
        return IMAPS_PORT if self.tls else IMAP_PORT

    @property
    def display_name(self):
        return self.name or self.host


@dataclass(frozen=True)
class LogSettings:
    level: str = DEFAULT_LOG_LEVEL
    file: str = ""


@dataclass(frozen=True)
class Settings:
    retry: int = DEFAULT_RETRY
    idle_timeout: int = DEFAULT_IDLE_TIMEOUT
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    accounts: tuple[Account, ...] = ()
    log: LogSettings = field(default_factory=LogSettings)


# ============================================================================
# DISCOVERY
# ============================================================================


def config_search_paths(environ=None):
    """
    Candidate config file locations in XDG priority order.

    $XDG_CONFIG_HOME (default ~/.config) first, then each of $XDG_CONFIG_DIRS
    (default /etc/xdg).
    """
    environ = os.environ if environ is None else environ

    config_home = environ.get("XDG_CONFIG_HOME") or os.path.join(
        os.path.expanduser("~"), ".config"
    )
    config_dirs = environ.get("XDG_CONFIG_DIRS") or "/etc/xdg"

    bases = [config_home] + [d for d in config_dirs.split(os.pathsep) if d]
    return [Path(base) / APP_NAME / CONFIG_FILENAME for base in bases]


def find_config_file(environ=None):
    """Return the first existing config file, or raise MissingConfigError"""
    searched = config_search_paths(environ)
    for path in searched:
        if path.is_file():
            return path
    raise MissingConfigError(searched)


# ============================================================================
# PARSING
# ============================================================================


def _require_type(value, expected, where):
    # bool is an int subclass; never accept it where a number is expected
    if expected is int and isinstance(value, bool):
        raise ConfigError(f"{where}: expected integer, got {value!r}")
    if not isinstance(value, expected):
        raise ConfigError(
            f"{where}: expected {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _string_list(value, where):
    _require_type(value, list, where)
    for i, item in enumerate(value):
        _require_type(item, str, f"{where}[{i}]")
    return tuple(value)


def _non_negative(raw, key, default):
    value = raw.get(key)
    if value is None:
        return default
    _require_type(value, int, key)
    if value < 0:
        raise ConfigError(f"{key}: must not be negative, got {value}")
    return value


def _positive_seconds(raw, key, default):
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key}: expected number of seconds, got {value!r}")
    if value <= 0:
        raise ConfigError(f"{key}: must be positive, got {value}")
    return value


def parse_account(raw, index=0):
    """Build an Account from one entry of the `accounts` list"""
    where = f"accounts[{index}]"
    _require_type(raw, dict, where)

    for key in ("host", "user", "pass"):
        if raw.get(key) is None:
            raise ConfigError(f"{where}: missing required key '{key}'")
        _require_type(raw[key], str, f"{where}.{key}")

    tls = raw.get("tls", True)
    _require_type(tls, bool, f"{where}.tls")

    port = raw.get("port")
    if port is not None:
        _require_type(port, int, f"{where}.port")
        if not 0 < port < 65536:
            raise ConfigError(f"{where}.port: out of range: {port}")

    name = raw.get("name")
    if name is not None:
        _require_type(name, str, f"{where}.name")

    commands = raw.get("commands")
    commands = () if commands is None else _string_list(commands, f"{where}.commands")

    folders = raw.get("folders")
    if folders is not None:
        folders = _string_list(folders, f"{where}.folders")

    return Account(
        host=raw["host"],
        user=raw["user"],
        password=raw["pass"],
        tls=tls,
        port=port,
        name=name,
        commands=commands,
        folders=folders,
    )


def parse_settings(raw):
    """Build Settings from the decoded YAML document"""
    if raw is None:
        raw = {}
    _require_type(raw, dict, "configuration")

    accounts = raw.get("accounts")
    if accounts is None:
        accounts = []
    _require_type(accounts, list, "accounts")

    log = raw.get("log")
    if log is None:
        log = {}
    _require_type(log, dict, "log")
    level = log.get("level") or DEFAULT_LOG_LEVEL
    _require_type(level, str, "log.level")
    log_file = log.get("file") or ""
    _require_type(log_file, str, "log.file")

    return Settings(
        retry=_non_negative(raw, "retry", DEFAULT_RETRY),
        idle_timeout=_non_negative(raw, "idle_timeout", DEFAULT_IDLE_TIMEOUT),
        socket_timeout=_positive_seconds(raw, "socket_timeout", DEFAULT_SOCKET_TIMEOUT),
        accounts=tuple(parse_account(a, i) for i, a in enumerate(accounts)),
        log=LogSettings(level=level, file=log_file),
    )


def load_settings(path=None):
    """
    Load Settings from a YAML file.

    Args:
        path: Explicit config path; None searches the XDG config dirs

    Raises:
        MissingConfigError if no file is found, ConfigError on bad content
    """
    path = Path(path) if path is not None else find_config_file()
    if not path.is_file():
        raise MissingConfigError([path])

    try:
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from e

    return parse_settings(raw)
