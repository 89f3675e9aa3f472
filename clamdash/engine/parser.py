"""
clamdash/engine/parser.py
Best-effort classifiers for ClamAV text output.

The tools' output is stable but it is not a machine protocol, so every parser
here is a classifier rather than a decoder. A failed match is a valid outcome
and produces ``Informational``. ``feed`` never raises.

Matching is line-local. The one exception is clamscan's summary block: the
``SCAN SUMMARY`` banner switches the parser into summary mode. From then on
``Label: Value`` lines are summary fields until the stream ends.
"""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Type

from clamdash.engine.events import (
    DetectionFound,
    ErrorLine,
    FileScanned,
    Informational,
    ScanEvent,
    SummaryLine,
)

ANSI_RE = re.compile(r"\x1B\[[0-?]*[ -/]*[@-~]")


def _strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text or "")


class OutputParser(ABC):
    """One grammar for one tool. Holds only the summary-mode flag as state."""

    name = "generic"

    def __init__(self) -> None:
        self.summary_observed = False

    def feed(self, line: str) -> ScanEvent:
        """Classify one raw line. Always returns exactly one event."""
        text = _strip_ansi(line).strip()
        return self._classify(line, text)

    def reset(self) -> None:
        self.summary_observed = False

    @abstractmethod
    def _classify(self, raw: str, text: str) -> ScanEvent:
        ...


# ============================================================================
# clamscan
# ============================================================================
#
# Examples of the lines handled below:
#   /home/u/readme.txt: OK
#   /home/u/empty.dat: Empty file
#   /tmp/eicar.com: Win.Test.EICAR_HDB-1 FOUND
#   /root/private: Access denied. ERROR
#   WARNING: Can't open file /var/lib/secret: Permission denied
#   ----------- SCAN SUMMARY -----------
#   Infected files: 1

CLEAN_RE = re.compile(r"^(?P<path>.+?)\s*:\s+(?:OK|Empty file)$")
FOUND_RE = re.compile(r"^(?P<path>.+)\s*:\s+(?P<signature>\S+)\s+FOUND$")
PATH_ERROR_RE = re.compile(r"^(?P<path>.+?)\s*:\s+(?P<error>.+?)\.?\s+ERROR$")
PREFIXED_RE = re.compile(r"^(?:LibClamAV\s+)?(?P<level>ERROR|WARNING|Error|Warning)\s*:\s*(?P<body>.+)$")
CANT_ACCESS_RE = re.compile(
    r"^(?P<what>Can't\s+(?:open|access|read|stat|scan)(?:\s+(?:file|directory))?)\s+"
    r"(?P<path>(?:/|\.|~|[A-Za-z]:[\\/]).*?)(?:\s*:\s*(?P<detail>.+))?$",
    re.IGNORECASE,
)
SUMMARY_BANNER_RE = re.compile(r"^-{3,}\s*SCAN SUMMARY\s*-{3,}$", re.IGNORECASE)
LABEL_VALUE_RE = re.compile(r"^(?P<label>[^:]+?)\s*:\s*(?P<value>\S.*)$")


class ClamscanParser(OutputParser):
    name = "clamscan"

    def _classify(self, raw: str, text: str) -> ScanEvent:
        if self.summary_observed:
            match = LABEL_VALUE_RE.match(text)
            if match:
                return SummaryLine(raw=raw, field_name=match.group("label"), value=match.group("value").strip())
            return Informational(raw=raw)

        if SUMMARY_BANNER_RE.match(text):
            self.summary_observed = True
            return Informational(raw=raw)

        match = PREFIXED_RE.match(text)
        if match:
            return self._classify_prefixed(raw, match.group("level"), match.group("body"))

        match = PATH_ERROR_RE.match(text)
        if match:
            return ErrorLine(raw=raw, file_path=match.group("path"), error=match.group("error"))

        match = FOUND_RE.match(text)
        if match:
            return DetectionFound(raw=raw, file_path=match.group("path"), signature_name=match.group("signature"))

        match = CLEAN_RE.match(text)
        if match:
            return FileScanned(raw=raw, file_path=match.group("path"))

        return Informational(raw=raw)

    @staticmethod
    def _classify_prefixed(raw: str, level: str, body: str) -> ScanEvent:
        access = CANT_ACCESS_RE.match(body)
        if access:
            error = access.group("what")
            if access.group("detail"):
                error = f"{error}: {access.group('detail')}"
            return ErrorLine(raw=raw, file_path=access.group("path"), error=error)
        if level.upper() == "ERROR":
            return ErrorLine(raw=raw, file_path="", error=body)
        return Informational(raw=raw)


# ============================================================================
# freshclam (definition database update)
# ============================================================================
#
#   daily.cld database is up-to-date (version: 27100, sigs: 2061234, ...)
#   main.cvd updated (version: 62, sigs: 6647427, f-level: 90, ...)
#   Database updated (8708661 signatures) from database.clamav.net (IP: ...)
#   ERROR: Can't download daily.cvd from database.clamav.net

DB_STATUS_RE = re.compile(
    r"^(?:.*->\s*)?(?P<db>[\w-]+)\.c[vl]d\s+"
    r"(?:database\s+is\s+(?P<current>up-to-date)|(?P<updated>updated))"
    r"\s*\(version:\s*(?P<version>\d+)",
    re.IGNORECASE,
)
DB_TOTAL_RE = re.compile(r"^(?:.*->\s*)?Database updated \((?P<sigs>\d+) signatures\) from (?P<mirror>\S+)")
FRESHCLAM_ERROR_RE = re.compile(r"^(?:.*->\s*)?ERROR:\s*(?P<error>.+)$")


class FreshclamParser(OutputParser):
    name = "freshclam"

    def _classify(self, raw: str, text: str) -> ScanEvent:
        match = DB_STATUS_RE.match(text)
        if match:
            self.summary_observed = True
            state = "up-to-date" if match.group("current") else "updated"
            return SummaryLine(raw=raw, field_name=match.group("db"), value=f"{state} (version {match.group('version')})")

        match = DB_TOTAL_RE.match(text)
        if match:
            self.summary_observed = True
            return SummaryLine(raw=raw, field_name="Signatures", value=match.group("sigs"))

        match = FRESHCLAM_ERROR_RE.match(text)
        if match:
            return ErrorLine(raw=raw, file_path="", error=match.group("error"))

        return Informational(raw=raw)


PARSERS: Dict[str, Type[OutputParser]] = {
    ClamscanParser.name: ClamscanParser,
    FreshclamParser.name: FreshclamParser,
}


def parser_for(command: str) -> OutputParser:
    """Pick a fresh grammar from the executable's basename; clamscan by default."""
    name = os.path.basename(command).lower()
    if name.endswith(".exe"):
        name = name[:-4]
    return PARSERS.get(name, ClamscanParser)()


def parse_lines(lines: Iterable[str], parser: Optional[OutputParser] = None) -> List[ScanEvent]:
    parser = parser or ClamscanParser()
    return [parser.feed(line) for line in lines]
