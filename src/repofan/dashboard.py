"""TUI Dashboard for repofan."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from rich.text import Text
from textual.app import App, ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, RichLog, Static
from textual.worker import Worker

from .executor import Dispatcher, Outcome, TargetStatus
from .registry import Target

STATUS_ICONS = {
    TargetStatus.PENDING: ("·", "dim"),
    TargetStatus.RUNNING: ("…", "yellow"),
    TargetStatus.SUCCEEDED: ("✓", "green"),
    TargetStatus.FAILED: ("✗", "red"),
}


def _widget_id(name: str, index: int) -> str:
    """Textual ids only allow letters, digits, underscores and hyphens.

    The target's position keeps ids unique when two names map to the same
    characters.
    """
    return f"{index}-" + "".join(c if c.isalnum() or c in "-_" else "_" for c in name)


class TargetPanel(Static):
    """A panel displaying output for a single repository."""

    status: reactive[TargetStatus] = reactive(TargetStatus.PENDING)

    def __init__(self, target_name: str, local_path: str, key: str, **kwargs) -> None:
        super().__init__(id=f"panel-{key}", **kwargs)
        self.target_name = target_name
        self.local_path = local_path
        self._key = key

    def compose(self) -> ComposeResult:
        yield Label(self._get_header(), id=f"header-{self._key}")
        yield RichLog(
            id=f"log-{self._key}",
            highlight=False,
            markup=True,
            wrap=True,
            auto_scroll=True,
        )

    def _get_header(self) -> str:
        icon, color = STATUS_ICONS.get(self.status, ("?", "white"))
        return f"[{color}]{icon}[/] [{color}][bold]{self.target_name}[/bold][/] [dim]{self.local_path}[/]"

    def watch_status(self, status: TargetStatus) -> None:
        """Update header when status changes."""
        if not self.is_mounted:
            return
        header = self.query_one(f"#header-{self._key}", Label)
        header.update(self._get_header())

    def show_outcome(self, outcome: Outcome) -> None:
        """Write a finished target's buffered output to this panel."""
        log = self.query_one(f"#log-{self._key}", RichLog)
        for line in outcome.stdout.splitlines():
            log.write(Text(line))
        for line in outcome.stderr.splitlines():
            log.write(Text(line, style="red"))
        if outcome.succeeded:
            log.write("[green]Command completed[/green]")
        else:
            log.write(f"[bold red]ERROR: {outcome.error}[/bold red]")


class StatusBar(Static):
    """Bottom status bar showing overall progress."""

    completed: reactive[int] = reactive(0)
    total: reactive[int] = reactive(0)
    running: reactive[bool] = reactive(True)

    def render(self) -> str:
        status = "Running..." if self.running else "Complete"
        return f"Progress: {self.completed}/{self.total} repositories complete | {status} | Press 'q' to quit"


@dataclass
class TargetFinished(Message):
    """Message for a finished target."""
    outcome: Outcome


@dataclass
class TargetStatusChange(Message):
    """Message for target status change."""
    target_name: str
    status: TargetStatus


class Dashboard(App):
    """Main TUI Dashboard application."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
        grid-gutter: 1;
    }

    TargetPanel {
        border: solid $primary;
        height: 100%;
        min-height: 10;
    }

    TargetPanel Label {
        dock: top;
        padding: 0 1;
        background: $surface;
    }

    TargetPanel RichLog {
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

    def __init__(
        self,
        targets: Sequence[Target],
        command_line: Sequence[str],
        program: str = "git",
        max_concurrency: int | None = None,
        log_dir=None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.targets = list(targets)
        self.command_line = list(command_line)
        self.panels: dict[str, TargetPanel] = {}
        self.outcomes: list[Outcome] = []
        self.dispatcher = Dispatcher(
            program=program,
            on_outcome=self._on_outcome,
            on_status=self._on_status,
            max_concurrency=max_concurrency,
            log_dir=log_dir,
        )
        self._worker: Worker | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        # Create panels for each target
        for index, target in enumerate(self.targets):
            panel = TargetPanel(
                target.name,
                str(target.local_path),
                key=_widget_id(target.name, index),
            )
            self.panels[target.name] = panel
            yield panel

        yield StatusBar(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Start execution when the app mounts."""
        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.total = len(self.targets)

        # Start execution using Textual's worker system
        self._worker = self.run_worker(self._run_execution(), exclusive=True, thread=True)

    async def _run_execution(self) -> None:
        """Run the dispatcher and keep the outcomes."""
        self.outcomes = await self.dispatcher.run(self.targets, self.command_line)

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        """Handle worker completion."""
        if event.worker == self._worker and event.state == event.worker.state.SUCCESS:
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.running = False

    def _on_outcome(self, outcome: Outcome) -> None:
        """Handle a finished target - posts message to main thread."""
        self.post_message(TargetFinished(outcome))

    def _on_status(self, target_name: str, status: TargetStatus) -> None:
        """Handle status change for a target - posts message to main thread."""
        self.post_message(TargetStatusChange(target_name, status))

    def on_target_finished(self, message: TargetFinished) -> None:
        """Handle TargetFinished message in main thread."""
        panel = self.panels.get(message.outcome.target_name)
        if panel is not None:
            panel.show_outcome(message.outcome)

        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.completed += 1

    def on_target_status_change(self, message: TargetStatusChange) -> None:
        """Handle TargetStatusChange message in main thread."""
        if message.target_name in self.panels:
            self.panels[message.target_name].status = message.status

    async def action_quit(self) -> None:
        """Quit the application."""
        if self._worker and self._worker.is_running:
            self._worker.cancel()
        self.exit()
