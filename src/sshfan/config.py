"""Configuration loader for sshfan."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_HOSTS_FILE = "./hosts.yaml"
DEFAULT_SSH_KEY = "~/.ssh/id_rsa"
DEFAULT_PARALLEL_REQUESTS = 4
DEFAULT_SSH_TIMEOUT = 10.0

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


@dataclass
class HostsConfig:
    """Hosts read from the server addresses file."""

    hosts: list[str] = field(default_factory=list)
    source_path: Path | None = None  # Path to the original config file


@dataclass
class Settings:
    """Resolved settings for a single run."""

    command: str
    hosts_file: Path = field(default_factory=lambda: Path(DEFAULT_HOSTS_FILE))
    ssh_key: Path = field(default_factory=lambda: Path(DEFAULT_SSH_KEY).expanduser())
    parallel_requests: int = DEFAULT_PARALLEL_REQUESTS
    ssh_timeout: float = DEFAULT_SSH_TIMEOUT
    user: str = "root"
    known_hosts: Path | None = None  # None disables host key verification
    dashboard: bool = False


def load_hosts(config_path: str | Path) -> HostsConfig:
    """Load and validate the host list from a YAML file."""
    config_path = Path(config_path).resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    config = _parse_config(raw)
    config.source_path = config_path
    return config


def _parse_config(raw: Any) -> HostsConfig:
    """Parse raw YAML data into a HostsConfig object."""
    if raw is None:
        return HostsConfig()
    if not isinstance(raw, dict):
        raise ValueError("Config must be a mapping with a 'hosts' key")

    hosts_raw = raw.get("hosts") or []
    if not isinstance(hosts_raw, list):
        raise ValueError("'hosts' must be a list of host addresses")

    return HostsConfig(hosts=[_parse_host(entry) for entry in hosts_raw])


def _parse_host(entry: Any) -> str:
    if isinstance(entry, (dict, list)) or entry is None:
        raise ValueError(f"Invalid host entry: {entry!r}")
    host = str(entry).strip()
    if not host:
        raise ValueError("Host entries must not be empty")
    return host


def expand_path(path: str | Path) -> Path:
    """Expand a leading ``~`` to the invoking user's home directory.

    Paths without a leading tilde are returned unchanged. Raises
    RuntimeError if the home directory cannot be determined.
    """
    return Path(path).expanduser()


def parse_duration(text: str) -> float:
    """Parse a duration such as ``10s``, ``1m30s`` or ``500ms`` into seconds.

    A bare number is taken as seconds.
    """
    value = text.strip()
    if not value:
        raise ValueError("empty duration")

    try:
        seconds = float(value)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(value):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(value):
            raise ValueError(f"invalid duration: {text!r}") from None

    if not math.isfinite(seconds) or seconds < 0:
        raise ValueError(f"duration must be a non-negative finite value: {text!r}")
    return seconds
