"""SSH execution engine for sshfan."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

import asyncssh

from .models import JobResult, NodeStatus

logger = logging.getLogger(__name__)

# Type alias for status callback
StatusCallback = Callable[[str, NodeStatus], None]  # (host, status) -> None


class RemoteExecutor:
    """Runs one command on a host over SSH and captures its combined output."""

    def __init__(
        self,
        command: str,
        ssh_key: Path,
        timeout: float,
        user: str = "root",
        port: int = 22,
        known_hosts: Path | None = None,
        on_status: StatusCallback | None = None,
    ):
        self.command = command
        self.ssh_key = ssh_key
        self.timeout = timeout
        self.user = user
        self.port = port
        self.known_hosts = known_hosts
        self.on_status = on_status

        if known_hosts is None:
            logger.warning(
                "SSH host key verification DISABLED - vulnerable to MITM attacks. "
                "Pass --known-hosts to enable it."
            )

    def _emit_status(self, host: str, status: NodeStatus) -> None:
        """Emit status change for a host."""
        if self.on_status:
            self.on_status(host, status)

    async def execute(self, host: str) -> JobResult:
        """Run the command on ``host``. Never raises for remote failures."""
        self._emit_status(host, NodeStatus.CONNECTING)
        logger.debug("Connecting to %s@%s:%d", self.user, host, self.port)

        try:
            async with asyncssh.connect(
                host,
                port=self.port,
                username=self.user,
                client_keys=[str(self.ssh_key)],
                known_hosts=str(self.known_hosts) if self.known_hosts else None,
                agent_path=None,
                password_auth=False,
                kbdint_auth=False,
                connect_timeout=self.timeout,
            ) as conn:
                self._emit_status(host, NodeStatus.RUNNING)
                # No timeout once connected; long-running commands are allowed
                result = await conn.run(
                    self.command,
                    stderr=asyncssh.STDOUT,
                    check=True,
                    encoding="utf-8",
                    errors="replace",
                )
        except asyncssh.ProcessError as e:
            return self._fail(host, _describe_exit(e))
        except asyncssh.Error as e:
            return self._fail(host, f"SSH error: {e}")
        except asyncssh.KeyImportError as e:
            return self._fail(host, f"Key error: {e}")
        except asyncio.TimeoutError:
            return self._fail(host, f"Connection timed out after {self.timeout:g}s")
        except OSError as e:
            return self._fail(host, f"Connection error: {e}")

        self._emit_status(host, NodeStatus.SUCCESS)
        return JobResult(target=host, output=result.stdout or "")

    def _fail(self, host: str, reason: str) -> JobResult:
        self._emit_status(host, NodeStatus.FAILED)
        return JobResult.failed(host, reason)


def _describe_exit(error: asyncssh.ProcessError) -> str:
    """Failure reason for a command that did not exit cleanly."""
    if error.exit_status is None and error.exit_signal:
        return f"Process killed by signal {error.exit_signal[0]}"
    return f"Process exited with status {error.exit_status}"
