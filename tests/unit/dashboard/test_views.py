import pytest
from rich.console import Console

from clamdash.dashboard.views import (
    VIEWS,
    format_elapsed,
    render_output,
    render_view,
    status_line,
)
from clamdash.engine.events import DetectionFound, ErrorLine, FileScanned, Informational, SummaryLine
from clamdash.engine.session import ScanSession, SessionStatus


def render(renderable) -> str:
    console = Console(record=True, width=120, color_system=None)
    console.print(renderable)
    return console.export_text()


def make_session(**kwargs) -> ScanSession:
    session = ScanSession("clamscan", ["--recursive", "/srv"], **kwargs)
    session.begin()
    session.mark_running(pid=101)
    return session


@pytest.fixture
def running():
    session = make_session()
    session.apply(FileScanned(raw="/srv/a: OK", file_path="/srv/a"))
    session.apply(DetectionFound(raw="/srv/evil.bin: Test.Signature FOUND", file_path="/srv/evil.bin", signature_name="Test.Signature"))
    session.apply(ErrorLine(raw="/srv/locked: Access denied. ERROR", file_path="/srv/locked", error="Access denied"))
    return session


def test_format_elapsed():
    assert format_elapsed(0) == "00:00:00"
    assert format_elapsed(3725.9) == "01:02:05"


def test_overview_shows_counters_and_last_error(running):
    text = render(render_view("overview", running.snapshot()))
    assert "RUNNING" in text
    assert "Files scanned" in text
    assert "/srv/locked: Access denied" in text
    assert "Test.Signature" in text


def test_overview_failed_shows_reason():
    session = make_session()
    session.finish(SessionStatus.FAILED, "process exited abnormally (exit code 2)")
    text = render(render_view("overview", session.snapshot()))
    assert "FAILED" in text
    assert "process exited abnormally (exit code 2)" in text


def test_overview_cancelled():
    session = make_session()
    session.request_cancel()
    assert "cancelling" in render(render_view("overview", session.snapshot()))
    session.finish(SessionStatus.CANCELLED)
    assert "cancelled by operator" in render(render_view("overview", session.snapshot()))


def test_output_shows_tail_and_hidden_count():
    session = make_session(raw_log_capacity=5)
    for i in range(8):
        session.apply(Informational(raw=f"line {i}"))
    text = render(render_output(session.snapshot(), tail=2))

    assert "line 6" in text
    assert "line 7" in text
    assert "line 5" not in text
    # 3 evicted from the window plus 3 held back by the tail.
    assert "6 earlier line(s) not shown" in text


def test_threats_table_in_discovery_order():
    session = make_session()
    session.apply(DetectionFound(raw="/b: Sig.B FOUND", file_path="/b", signature_name="Sig.B"))
    session.apply(DetectionFound(raw="/a: Sig.A FOUND", file_path="/a", signature_name="Sig.A"))
    text = render(render_view("threats", session.snapshot()))
    assert text.index("Sig.B") < text.index("Sig.A")
    assert "Threats (2)" in text


def test_threats_empty():
    assert "No threats detected." in render(render_view("threats", make_session().snapshot()))


def test_summary_placeholder_while_running():
    text = render(render_view("summary", make_session().snapshot()))
    assert "Summary will appear when the scan finishes." in text


def test_summary_fields_after_completion():
    session = make_session()
    session.apply(SummaryLine(raw="Infected files: 1", field_name="Infected files", value="1"))
    session.finish(SessionStatus.COMPLETED)
    text = render(render_view("summary", session.snapshot()))
    assert "Infected files" in text
    assert "1" in text


def test_status_line_paused_flag(running):
    plain = status_line(running.snapshot(), view="threats", paused=True).plain
    assert "RUNNING" in plain
    assert "[threats]" in plain
    assert "PAUSED" in plain
    assert "threats 1" in plain


def test_every_view_renders():
    snap = make_session().snapshot()
    for name in VIEWS:
        assert render(render_view(name, snap))


def test_unknown_view_raises():
    with pytest.raises(ValueError):
        render_view("graphs", make_session().snapshot())
