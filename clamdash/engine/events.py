"""
clamdash/engine/events.py
Typed events produced by the output parsers.

Each raw line from the scanner becomes exactly one event. Unrecognized lines
are not errors: they become ``Informational`` events that still carry the raw
text, so the Output view can show them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class EventKind(str, Enum):
    FILE_SCANNED = "file_scanned"
    DETECTION = "detection"
    SUMMARY_LINE = "summary_line"
    ERROR_LINE = "error_line"
    INFORMATIONAL = "informational"


@dataclass(frozen=True)
class FileScanned:
    raw: str
    file_path: str
    kind: EventKind = EventKind.FILE_SCANNED


@dataclass(frozen=True)
class DetectionFound:
    raw: str
    file_path: str
    signature_name: str
    kind: EventKind = EventKind.DETECTION


@dataclass(frozen=True)
class SummaryLine:
    raw: str
    field_name: str
    value: str
    kind: EventKind = EventKind.SUMMARY_LINE


@dataclass(frozen=True)
class ErrorLine:
    raw: str
    file_path: str
    error: str
    kind: EventKind = EventKind.ERROR_LINE

    @property
    def message(self) -> str:
        return f"{self.file_path}: {self.error}" if self.file_path else self.error


@dataclass(frozen=True)
class Informational:
    raw: str
    kind: EventKind = EventKind.INFORMATIONAL


ScanEvent = Union[FileScanned, DetectionFound, SummaryLine, ErrorLine, Informational]
