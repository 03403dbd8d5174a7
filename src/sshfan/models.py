"""Result and status types shared by the dispatcher and executor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NodeStatus(Enum):
    """Status of a host's execution."""

    PENDING = "pending"
    CONNECTING = "connecting"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class JobResult:
    """Outcome of running the command on a single host."""

    target: str
    output: str = ""
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def status(self) -> NodeStatus:
        return NodeStatus.SUCCESS if self.success else NodeStatus.FAILED

    @classmethod
    def failed(cls, target: str, reason: str) -> JobResult:
        """Build a failure result; failures never carry output."""
        return cls(target=target, output="", error=reason)
