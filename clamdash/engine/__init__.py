"""Scan engine: process supervision, output parsing and session state."""

from clamdash.engine.events import (
    DetectionFound,
    ErrorLine,
    EventKind,
    FileScanned,
    Informational,
    ScanEvent,
    SummaryLine,
)
from clamdash.engine.parser import ClamscanParser, FreshclamParser, OutputParser, parser_for
from clamdash.engine.reader import LineReader
from clamdash.engine.session import (
    Detection,
    ScanSession,
    SessionSnapshot,
    SessionStatus,
    SummaryField,
)
from clamdash.engine.supervisor import ExitReport, ProcessSupervisor, classify_exit

__all__ = [
    "ClamscanParser",
    "Detection",
    "DetectionFound",
    "ErrorLine",
    "EventKind",
    "ExitReport",
    "FileScanned",
    "FreshclamParser",
    "Informational",
    "LineReader",
    "OutputParser",
    "ProcessSupervisor",
    "ScanEvent",
    "ScanSession",
    "SessionSnapshot",
    "SessionStatus",
    "SummaryField",
    "SummaryLine",
    "classify_exit",
    "parser_for",
]
