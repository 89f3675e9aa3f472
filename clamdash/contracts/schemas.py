"""
clamdash/contracts/schemas.py
Pydantic models for the headless JSON interchange.

``clamdash --json`` prints one SnapshotModel document per tick so another
program (a status bar, a desktop widget) can poll a scan without scraping the
terminal UI. Field names here are the public contract; keep them stable.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from clamdash.engine.session import SessionSnapshot
from clamdash.engine.supervisor import ExitReport

SCHEMA_VERSION = 1


class DetectionModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    sequence: int = Field(description="Discovery order, starting at 0")
    file_path: str
    signature: str


class SummaryFieldModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: str
    numeric: Optional[Union[int, float]] = None


class ExitModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    exit_code: Optional[int] = None
    reason: Optional[str] = None
    forced_kill: bool = False


class SnapshotModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_version: int = SCHEMA_VERSION
    session_id: str
    command: str
    arguments: List[str] = Field(default_factory=list)
    status: str = Field(pattern="^(idle|starting|running|completed|failed|cancelled)$")
    failure_reason: Optional[str] = None
    cancel_requested: bool = False
    pid: Optional[int] = None
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    elapsed_seconds: float = 0.0
    files_scanned: int = 0
    infected: int = 0
    detections: List[DetectionModel] = Field(default_factory=list)
    summary: Dict[str, SummaryFieldModel] = Field(default_factory=dict)
    last_error: Optional[str] = None
    raw_log_lines: int = Field(default=0, description="Lines currently held in the raw log window")
    raw_log_dropped: int = Field(default=0, description="Lines evicted from the raw log window")
    exit: Optional[ExitModel] = None

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot, exit_report: Optional[ExitReport] = None) -> "SnapshotModel":
        return cls(
            session_id=snapshot.session_id,
            command=snapshot.command,
            arguments=list(snapshot.arguments),
            status=snapshot.status.value,
            failure_reason=snapshot.failure_reason,
            cancel_requested=snapshot.cancel_requested,
            pid=snapshot.pid,
            started_at=snapshot.started_at,
            ended_at=snapshot.ended_at,
            elapsed_seconds=round(snapshot.elapsed, 3),
            files_scanned=snapshot.files_scanned,
            infected=snapshot.infected_count,
            detections=[
                DetectionModel(sequence=d.sequence_number, file_path=d.file_path, signature=d.signature_name)
                for d in snapshot.detections
            ],
            summary={
                name: SummaryFieldModel(raw=entry.raw, numeric=entry.numeric)
                for name, entry in snapshot.summary.items()
            },
            last_error=snapshot.last_error,
            raw_log_lines=len(snapshot.raw_log),
            raw_log_dropped=snapshot.raw_log_dropped,
            exit=ExitModel(
                status=exit_report.status.value,
                exit_code=exit_report.exit_code,
                reason=exit_report.reason,
                forced_kill=exit_report.forced_kill,
            )
            if exit_report
            else None,
        )
