"""sshfan: Run one command on many SSH hosts with bounded parallelism."""

from .config import HostsConfig, Settings, expand_path, load_hosts, parse_duration
from .dispatcher import Dispatcher, SlotPool
from .executor import RemoteExecutor
from .models import JobResult, NodeStatus

__all__ = [
    "HostsConfig",
    "Settings",
    "expand_path",
    "load_hosts",
    "parse_duration",
    "Dispatcher",
    "SlotPool",
    "RemoteExecutor",
    "JobResult",
    "NodeStatus",
]
