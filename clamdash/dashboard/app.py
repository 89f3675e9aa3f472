# clamdash/dashboard/app.py
# Textual front end: ticks, snapshots the session, draws one of four views.

from __future__ import annotations

import logging
from typing import Optional, Sequence

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Footer, Header, Static

from clamdash.config import DashboardConfig
from clamdash.dashboard.views import VIEWS, render_view, status_line
from clamdash.engine.session import SessionStatus
from clamdash.engine.supervisor import ExitReport, ProcessSupervisor
from clamdash.errors import ClamdashError, SpawnError

logger = logging.getLogger(__name__)

CSS = """
Screen {
    layout: vertical;
}

#view-container {
    height: 1fr;
}

#status-line {
    height: 1;
    background: $panel;
}
"""


class ScanDashboard(App[Optional[ExitReport]]):
    """
    Live view over one supervised scan.

    The app never reads the session directly: every tick asks the supervisor
    for a snapshot and redraws from it. Pausing only freezes the main view;
    the scan keeps going and the status line keeps counting.
    """

    CSS = CSS
    TITLE = "clamdash"

    BINDINGS = [
        Binding("1", "show_view('overview')", "Overview"),
        Binding("2", "show_view('output')", "Output"),
        Binding("3", "show_view('threats')", "Threats"),
        Binding("4", "show_view('summary')", "Summary"),
        Binding("tab", "next_view", "Next view", show=False, priority=True),
        Binding("c", "cancel_scan", "Cancel"),
        Binding("space", "toggle_pause", "Pause"),
        Binding("r", "force_refresh", "Refresh"),
        Binding("q", "quit_dashboard", "Quit"),
        Binding("escape", "quit_dashboard", "Quit", show=False),
    ]

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        command: str,
        arguments: Sequence[str] = (),
        config: Optional[DashboardConfig] = None,
    ):
        super().__init__()
        self.supervisor = supervisor
        self.command = command
        self.arguments = list(arguments)
        self.dashboard_config = config or DashboardConfig()
        self.view = VIEWS[0]
        self.paused = False
        self._quitting = False
        self._announced = False

    def compose(self) -> ComposeResult:
        yield Header()
        with VerticalScroll(id="view-container"):
            yield Static(id="view")
        yield Static(id="status-line")
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = " ".join([self.command, *self.arguments])
        try:
            self.supervisor.start(self.command, self.arguments)
        except SpawnError as exc:
            logger.error(f"[Dashboard] {exc}")
            self.notify(exc.message, title="Could not start scan", severity="error", timeout=10)
        except ClamdashError as exc:
            logger.error(f"[Dashboard] {exc}")
            self.notify(exc.message, severity="error", timeout=10)
        self.set_interval(self.dashboard_config.tick_interval, self.refresh_view)
        self.refresh_view()

    def refresh_view(self, force: bool = False) -> None:
        snap = self.supervisor.read_snapshot()
        if force or not self.paused:
            self.query_one("#view", Static).update(
                render_view(self.view, snap, output_tail=self.dashboard_config.output_tail)
            )
        self.query_one("#status-line", Static).update(status_line(snap, self.view, self.paused))

        report = self.supervisor.poll_exit()
        if report is not None and not self._announced:
            self._announced = True
            self._announce(report)
        if self._quitting and not snap.status.is_active:
            self.exit(report)

    def _announce(self, report: ExitReport) -> None:
        if report.status is SessionStatus.COMPLETED:
            self.notify("Scan finished", severity="information")
        elif report.status is SessionStatus.CANCELLED:
            note = " (forced kill)" if report.forced_kill else ""
            self.notify(f"Scan cancelled by operator{note}", severity="warning")
        else:
            self.notify(report.reason or "Scan failed", title="Scan failed", severity="error", timeout=10)

    # --- Actions ---

    def action_show_view(self, name: str) -> None:
        self.view = name
        self.refresh_view()

    def action_next_view(self) -> None:
        index = VIEWS.index(self.view)
        self.view = VIEWS[(index + 1) % len(VIEWS)]
        self.refresh_view()

    def action_toggle_pause(self) -> None:
        self.paused = not self.paused
        self.refresh_view()

    def action_force_refresh(self) -> None:
        """Redraw the main view once, even while paused."""
        self.refresh_view(force=True)

    def action_cancel_scan(self) -> None:
        if self.supervisor.request_cancel():
            logger.info("[Dashboard] Cancel requested by operator")
            self.notify("Cancelling scan...", severity="warning")
        else:
            self.notify("No scan is running", severity="information")

    def action_quit_dashboard(self) -> None:
        if self.supervisor.current_status() is SessionStatus.RUNNING:
            self._quitting = True
            self.supervisor.request_cancel()
            self.notify("Cancelling scan before exit...", severity="warning")
            return
        self.exit(self.supervisor.poll_exit())
