import json

import pytest
from pydantic import ValidationError

from clamdash.contracts.schemas import SCHEMA_VERSION, SnapshotModel
from clamdash.engine.events import DetectionFound, FileScanned, SummaryLine
from clamdash.engine.session import ScanSession, SessionStatus
from clamdash.engine.supervisor import ExitReport


@pytest.fixture
def finished_snapshot():
    session = ScanSession("/usr/bin/clamscan", ["--recursive", "/srv"])
    session.begin()
    session.mark_running(pid=777)
    session.apply(FileScanned(raw="/srv/a: OK", file_path="/srv/a"))
    session.apply(DetectionFound(raw="/srv/b: Eicar FOUND", file_path="/srv/b", signature_name="Eicar"))
    session.apply(SummaryLine(raw="Data scanned: 0.50 MB", field_name="Data scanned", value="0.50 MB"))
    session.finish(SessionStatus.COMPLETED)
    return session.snapshot()


def test_from_snapshot_maps_fields(finished_snapshot):
    model = SnapshotModel.from_snapshot(finished_snapshot)
    assert model.schema_version == SCHEMA_VERSION
    assert model.status == "completed"
    assert model.command == "/usr/bin/clamscan"
    assert model.arguments == ["--recursive", "/srv"]
    assert model.pid == 777
    assert model.files_scanned == 1
    assert model.infected == 1
    assert model.detections[0].sequence == 0
    assert model.detections[0].signature == "Eicar"
    assert model.summary["Data scanned"].raw == "0.50 MB"
    assert model.summary["Data scanned"].numeric == 0.5
    assert model.raw_log_lines == 3
    assert model.exit is None


def test_exit_report_is_embedded(finished_snapshot):
    report = ExitReport(SessionStatus.COMPLETED, 1, None, False)
    model = SnapshotModel.from_snapshot(finished_snapshot, report)
    assert model.exit.status == "completed"
    assert model.exit.exit_code == 1


def test_json_round_trip(finished_snapshot):
    payload = json.loads(SnapshotModel.from_snapshot(finished_snapshot).model_dump_json())
    assert payload["status"] == "completed"
    assert payload["detections"] == [{"sequence": 0, "file_path": "/srv/b", "signature": "Eicar"}]
    assert SnapshotModel.model_validate(payload).infected == 1


def test_unknown_status_is_rejected():
    with pytest.raises(ValidationError):
        SnapshotModel(session_id="x", command="clamscan", status="exploded")


def test_idle_snapshot_serializes():
    model = SnapshotModel.from_snapshot(ScanSession().snapshot())
    assert model.status == "idle"
    assert model.started_at is None
    assert model.elapsed_seconds == 0.0
