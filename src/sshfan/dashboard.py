"""TUI Dashboard for sshfan."""

from __future__ import annotations

from dataclasses import dataclass

from textual.app import App, ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, RichLog, Static
from textual.worker import Worker, WorkerState

from .config import Settings
from .dispatcher import Dispatcher
from .executor import RemoteExecutor
from .models import JobResult, NodeStatus

STATUS_ICONS = {
    NodeStatus.PENDING: ("…", "dim"),
    NodeStatus.CONNECTING: ("⇄", "yellow"),
    NodeStatus.RUNNING: ("▶", "yellow"),
    NodeStatus.SUCCESS: ("✔", "green"),
    NodeStatus.FAILED: ("✘", "red"),
}


class HostPanel(Static):
    """A panel displaying the result for a single host."""

    status: reactive[NodeStatus] = reactive(NodeStatus.PENDING)

    def __init__(self, host: str, index: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.host = host
        self.index = index

    def compose(self) -> ComposeResult:
        yield Label(self._get_header(), id=f"header-{self.index}")
        yield RichLog(
            id=f"log-{self.index}",
            highlight=True,
            markup=False,
            wrap=True,
            auto_scroll=True,
        )

    def _get_header(self) -> str:
        icon, color = STATUS_ICONS.get(self.status, ("?", "white"))
        return f"[{color}]{icon}[/] [{color}][bold]{self.host}[/bold] {self.status.value}[/]"

    def watch_status(self, status: NodeStatus) -> None:
        """Update header when status changes."""
        if not self.is_mounted:
            return
        header = self.query_one(f"#header-{self.index}", Label)
        header.update(self._get_header())

    def show_result(self, result: JobResult) -> None:
        """Write the host's output, or its failure reason."""
        log = self.query_one(f"#log-{self.index}", RichLog)
        if result.success:
            for line in result.output.splitlines():
                log.write(line)
        else:
            log.write(f"ERROR: {result.error}")
        self.status = result.status


class StatusBar(Static):
    """Bottom status bar showing overall progress."""

    completed: reactive[int] = reactive(0)
    failed: reactive[int] = reactive(0)
    total: reactive[int] = reactive(0)
    running: reactive[bool] = reactive(True)

    def render(self) -> str:
        status = "Running..." if self.running else "Complete"
        return (
            f"Progress: {self.completed}/{self.total} hosts done, {self.failed} failed"
            f" | {status} | Press 'q' to quit"
        )


@dataclass
class HostResult(Message):
    """Message for a finished host."""
    result: JobResult


@dataclass
class HostStatusChange(Message):
    """Message for host status change."""
    host: str
    status: NodeStatus


class Dashboard(App):
    """Main TUI Dashboard application."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
        grid-gutter: 1;
    }

    HostPanel {
        border: solid $primary;
        height: 100%;
        min-height: 10;
    }

    HostPanel Label {
        dock: top;
        padding: 0 1;
        background: $surface;
    }

    HostPanel RichLog {
        height: 1fr;
        padding: 0 1;
    }

    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
    ]

    def __init__(self, settings: Settings, hosts: list[str], **kwargs) -> None:
        super().__init__(**kwargs)
        self.settings = settings
        self.hosts = hosts
        # Hosts may repeat in the file; each entry gets its own panel
        self.panels: dict[str, list[HostPanel]] = {}
        self.results: list[JobResult] = []
        self._worker: Worker | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        for i, host in enumerate(self.hosts):
            panel = HostPanel(host, i, id=f"panel-{i}")
            self.panels.setdefault(host, []).append(panel)
            yield panel

        yield StatusBar(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Start execution when the app mounts."""
        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.total = len(self.hosts)
        self._worker = self.run_worker(self._run_execution(), exclusive=True)

    def make_executor(self) -> RemoteExecutor:
        return RemoteExecutor(
            self.settings.command,
            self.settings.ssh_key,
            self.settings.ssh_timeout,
            user=self.settings.user,
            known_hosts=self.settings.known_hosts,
            on_status=self._on_status,
        )

    async def _run_execution(self) -> None:
        """Stream results into the panels as hosts finish."""
        executor = self.make_executor()
        dispatcher = Dispatcher(self.settings.parallel_requests)
        async for result in dispatcher.stream(self.hosts, executor.execute):
            self.post_message(HostResult(result))

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        """Handle worker completion."""
        if event.worker == self._worker and event.state == WorkerState.SUCCESS:
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.running = False

    def _on_status(self, host: str, status: NodeStatus) -> None:
        """Handle status change for a host - posts message to the app."""
        self.post_message(HostStatusChange(host, status))

    def _panel_for(self, host: str) -> HostPanel | None:
        """First panel for ``host`` that has not shown a result yet."""
        for panel in self.panels.get(host, []):
            if panel.status not in (NodeStatus.SUCCESS, NodeStatus.FAILED):
                return panel
        return None

    def on_host_status_change(self, message: HostStatusChange) -> None:
        """Handle HostStatusChange message."""
        # Final statuses are applied together with the result
        if message.status in (NodeStatus.SUCCESS, NodeStatus.FAILED):
            return
        panel = self._panel_for(message.host)
        if panel is not None:
            panel.status = message.status

    def on_host_result(self, message: HostResult) -> None:
        """Handle HostResult message."""
        result = message.result
        self.results.append(result)
        panel = self._panel_for(result.target)
        if panel is not None:
            panel.show_result(result)

        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.completed += 1
        if not result.success:
            status_bar.failed += 1

    async def action_quit(self) -> None:
        """Quit the application."""
        if self._worker and self._worker.is_running:
            self._worker.cancel()
        self.exit()
