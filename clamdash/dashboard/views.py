"""
clamdash/dashboard/views.py
Pure snapshot -> rich renderable functions for the four dashboard views.

Nothing here touches the session or the supervisor. Every function takes an
immutable SessionSnapshot, so the same code draws the live dashboard and
the tests' recorded consoles.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from clamdash.engine.session import SessionSnapshot, SessionStatus

VIEWS = ("overview", "output", "threats", "summary")

STATUS_STYLES: Dict[SessionStatus, str] = {
    SessionStatus.IDLE: "dim",
    SessionStatus.STARTING: "cyan",
    SessionStatus.RUNNING: "bold cyan",
    SessionStatus.COMPLETED: "bold green",
    SessionStatus.FAILED: "bold red",
    SessionStatus.CANCELLED: "bold yellow",
}

RECENT_DETECTIONS = 5


def format_elapsed(seconds: float) -> str:
    total = int(seconds)
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def status_text(snap: SessionSnapshot) -> Text:
    """Status word plus its outcome detail, styled by status."""
    style = STATUS_STYLES[snap.status]
    text = Text(snap.status.value.upper(), style=style)
    if snap.status is SessionStatus.RUNNING and snap.cancel_requested:
        text.append("  cancelling...", style="yellow")
    elif snap.status is SessionStatus.FAILED and snap.failure_reason:
        text.append(f"  {snap.failure_reason}", style="red")
    elif snap.status is SessionStatus.CANCELLED:
        text.append("  cancelled by operator", style="yellow")
    elif snap.status is SessionStatus.COMPLETED:
        verdict = f"{snap.infected_count} threat(s) found" if snap.detections else "no threats found"
        text.append(f"  {verdict}", style="green" if not snap.detections else "bold red")
    return text


def render_overview(snap: SessionSnapshot) -> RenderableType:
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold", justify="right")
    grid.add_column()

    grid.add_row("Status", status_text(snap))
    command = " ".join([snap.command, *snap.arguments]).strip()
    grid.add_row("Command", Text(command or "-", overflow="ellipsis"))
    grid.add_row("Elapsed", format_elapsed(snap.elapsed))
    grid.add_row("Files scanned", f"{snap.files_scanned:,}")
    threats_style = "bold red" if snap.detections else "green"
    grid.add_row("Threats", Text(str(snap.infected_count), style=threats_style))
    if snap.last_error:
        grid.add_row("Last error", Text(snap.last_error, style="red"))

    parts = [grid]
    recent = snap.detections[-RECENT_DETECTIONS:]
    if recent:
        lines = Text()
        for detection in recent:
            lines.append(f"{detection.signature_name}", style="bold red")
            lines.append(f"  {detection.file_path}\n")
        parts.append(Panel(lines, title="Recent detections", border_style="red"))

    return Panel(Group(*parts), title="clamdash", border_style=STATUS_STYLES[snap.status].split()[-1])


def render_output(snap: SessionSnapshot, tail: int = 500) -> RenderableType:
    text = Text(no_wrap=False)
    hidden = max(0, len(snap.raw_log) - tail) + snap.raw_log_dropped
    if hidden:
        text.append(f"... {hidden:,} earlier line(s) not shown\n", style="dim")
    for line in snap.raw_log[-tail:]:
        if line.endswith(" FOUND"):
            text.append(line + "\n", style="bold red")
        elif line.endswith(" ERROR") or line.startswith(("ERROR", "WARNING", "LibClamAV")):
            text.append(line + "\n", style="yellow")
        else:
            text.append(line + "\n")
    if not snap.raw_log:
        text.append("No output yet.", style="dim")
    return Panel(text, title="Output", border_style="blue")


def render_threats(snap: SessionSnapshot) -> RenderableType:
    if not snap.detections:
        return Panel(Text("No threats detected.", style="green"), title="Threats", border_style="green")

    table = Table(expand=True, header_style="bold")
    table.add_column("#", justify="right", width=5)
    table.add_column("Signature", style="bold red")
    table.add_column("File", overflow="fold")
    for detection in snap.detections:
        table.add_row(str(detection.sequence_number + 1), detection.signature_name, detection.file_path)
    return Panel(table, title=f"Threats ({snap.infected_count})", border_style="red")


def render_summary(snap: SessionSnapshot) -> RenderableType:
    if not snap.summary:
        if snap.status.is_terminal:
            message = "The scanner did not print a summary."
        else:
            message = "Summary will appear when the scan finishes."
        return Panel(Text(message, style="dim"), title="Summary", border_style="white")

    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold", justify="right")
    table.add_column()
    for name, entry in snap.summary.items():
        table.add_row(name, entry.raw)
    return Panel(table, title="Summary", border_style=STATUS_STYLES[snap.status].split()[-1])


def status_line(snap: SessionSnapshot, view: str = "overview", paused: bool = False) -> Text:
    line = Text()
    line.append(f" {snap.status.value.upper()} ", style=f"reverse {STATUS_STYLES[snap.status]}")
    line.append(f"  {format_elapsed(snap.elapsed)}")
    line.append(f"  files {snap.files_scanned:,}")
    line.append(f"  threats {snap.infected_count}", style="bold red" if snap.detections else "")
    line.append(f"  [{view}]", style="bold")
    if paused:
        line.append("  PAUSED", style="bold yellow")
    line.append("  1-4 view  tab next  c cancel  space pause  q quit", style="dim")
    return line


_RENDERERS: Dict[str, Callable[..., RenderableType]] = {
    "overview": render_overview,
    "output": render_output,
    "threats": render_threats,
    "summary": render_summary,
}


def render_view(name: str, snap: SessionSnapshot, output_tail: Optional[int] = None) -> RenderableType:
    renderer = _RENDERERS.get(name)
    if renderer is None:
        raise ValueError(f"Unknown view {name!r}; expected one of {', '.join(VIEWS)}")
    if name == "output" and output_tail is not None:
        return renderer(snap, tail=output_tail)
    return renderer(snap)
