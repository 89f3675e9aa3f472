"""Scan session state: the single mutable aggregate for one ClamAV run."""
#
# PURPOSE:
# Each scan (or definition update) gets its own ScanSession. It holds the
# counters, the detection list, the parsed summary, a bounded window of raw
# output and the lifecycle status for exactly ONE run of the external tool.
#
# INVARIANTS:
# 1. One writer (the supervisor's ingestion thread), one reader (the renderer).
#    Every mutation and every snapshot happens under the same short-lived lock,
#    so a snapshot never shows a half-applied event.
# 2. Status only moves forward along _TRANSITIONS. A new scan gets a new
#    ScanSession; terminal sessions are never revived.
# 3. detections is append-only and in discovery order; sequence numbers are
#    assigned here, start at 0 and have no gaps.
# 4. raw_log is a deque with maxlen: the oldest lines are evicted first so
#    hours of verbose output cannot exhaust memory.
# 5. ended_at is written exactly once, on entering a terminal status.
#

from __future__ import annotations

import logging
import re
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Deque, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from clamdash.engine.events import EventKind, ScanEvent
from clamdash.errors import SessionStateError

logger = logging.getLogger(__name__)

MAX_RAW_LOG_LINES = 2000


class SessionStatus(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED)

    @property
    def is_active(self) -> bool:
        return self in (SessionStatus.STARTING, SessionStatus.RUNNING)


_TRANSITIONS: Dict[SessionStatus, Tuple[SessionStatus, ...]] = {
    SessionStatus.IDLE: (SessionStatus.STARTING,),
    SessionStatus.STARTING: (SessionStatus.RUNNING, SessionStatus.FAILED),
    SessionStatus.RUNNING: (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED),
    SessionStatus.COMPLETED: (),
    SessionStatus.FAILED: (),
    SessionStatus.CANCELLED: (),
}


@dataclass(frozen=True)
class Detection:
    file_path: str
    signature_name: str
    sequence_number: int


# Leading number followed by whitespace or end: "101", "0.50 MB", "8,708,661".
# Dates such as "2024:01:01 10:00:00" intentionally yield no number.
_LEADING_NUMBER_RE = re.compile(r"^([-+]?\d[\d,]*(?:\.\d+)?)(?=\s|$)")


@dataclass(frozen=True)
class SummaryField:
    name: str
    raw: str

    @property
    def numeric(self) -> Optional[Union[int, float]]:
        """Numeric form of the value, parsed on access; None when there is none."""
        match = _LEADING_NUMBER_RE.match(self.raw.strip())
        if not match:
            return None
        text = match.group(1).replace(",", "")
        try:
            return float(text) if "." in text else int(text)
        except ValueError:
            return None


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable, internally consistent copy of a session at one instant."""

    session_id: str
    command: str
    arguments: Tuple[str, ...]
    status: SessionStatus
    failure_reason: Optional[str]
    started_at: Optional[float]
    ended_at: Optional[float]
    files_scanned: int
    detections: Tuple[Detection, ...]
    summary: Mapping[str, SummaryField]
    raw_log: Tuple[str, ...]
    raw_log_dropped: int
    last_error: Optional[str]
    cancel_requested: bool
    pid: Optional[int]
    taken_at: float = field(default_factory=time.time)

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.ended_at if self.ended_at is not None else self.taken_at
        return max(0.0, end - self.started_at)

    @property
    def infected_count(self) -> int:
        return len(self.detections)

    def summary_value(self, name: str) -> Optional[str]:
        entry = self.summary.get(name)
        return entry.raw if entry else None


class ScanSession:
    """
    Aggregate root for one run of the external scanner.

    Owned by the ProcessSupervisor for the duration of the run. The renderer
    only ever calls snapshot() / current_status().
    """

    def __init__(
        self,
        command: str = "",
        arguments: Sequence[str] = (),
        raw_log_capacity: int = MAX_RAW_LOG_LINES,
    ):
        self.session_id = str(uuid.uuid4())
        self.command = command
        self.arguments: Tuple[str, ...] = tuple(arguments)

        self.status = SessionStatus.IDLE
        self.failure_reason: Optional[str] = None
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None
        self.pid: Optional[int] = None
        self.cancel_requested = False

        self.files_scanned = 0
        self.detections: List[Detection] = []
        self.summary: Dict[str, SummaryField] = {}
        self.last_error: Optional[str] = None

        self.raw_log: Deque[str] = deque(maxlen=raw_log_capacity)
        self.raw_log_dropped = 0

        self._lock = Lock()
        logger.debug(f"[Session:{self.session_id[:8]}] Created for {command!r}")

    # --- Lifecycle ---

    def begin(self) -> None:
        """IDLE -> STARTING. Records started_at."""
        with self._lock:
            self._transition(SessionStatus.STARTING)
            self.started_at = time.time()

    def mark_running(self, pid: Optional[int] = None) -> None:
        with self._lock:
            self._transition(SessionStatus.RUNNING)
            self.pid = pid

    def finish(self, status: SessionStatus, reason: Optional[str] = None) -> None:
        """Enter a terminal status. FAILED keeps ``reason`` as the failure reason."""
        if not status.is_terminal:
            raise SessionStateError(f"{status.value} is not a terminal status")
        with self._lock:
            self._transition(status)
            self.ended_at = time.time()
            if status is SessionStatus.FAILED:
                self.failure_reason = reason or "unknown failure"

    def request_cancel(self) -> bool:
        """Flag a pending cancel. Only meaningful while RUNNING."""
        with self._lock:
            if self.status is not SessionStatus.RUNNING:
                return False
            self.cancel_requested = True
            return True

    def _transition(self, target: SessionStatus) -> None:
        # Caller holds self._lock.
        if target not in _TRANSITIONS[self.status]:
            raise SessionStateError(
                f"Invalid session transition {self.status.value} -> {target.value}",
                details={"session_id": self.session_id, "from": self.status.value, "to": target.value},
            )
        logger.debug(f"[Session:{self.session_id[:8]}] {self.status.value} -> {target.value}")
        self.status = target

    # --- Event application ---

    def apply(self, event: ScanEvent) -> None:
        """
        Apply one parsed event. Each call is a single critical section.

        Raises:
            SessionStateError: the session is not RUNNING.
        """
        with self._lock:
            if self.status is not SessionStatus.RUNNING:
                raise SessionStateError(
                    f"Cannot apply events to a {self.status.value} session",
                    details={"session_id": self.session_id},
                )

            if event.kind is EventKind.FILE_SCANNED:
                self.files_scanned += 1
            elif event.kind is EventKind.DETECTION:
                self.detections.append(
                    Detection(
                        file_path=event.file_path,
                        signature_name=event.signature_name,
                        sequence_number=len(self.detections),
                    )
                )
            elif event.kind is EventKind.SUMMARY_LINE:
                self.summary[event.field_name] = SummaryField(name=event.field_name, raw=event.value)
            elif event.kind is EventKind.ERROR_LINE:
                self.last_error = event.message

            self._append_raw(event.raw)

    def _append_raw(self, line: str) -> None:
        if len(self.raw_log) == self.raw_log.maxlen:
            self.raw_log_dropped += 1
            if self.raw_log_dropped == 1:
                logger.warning(
                    f"[Session:{self.session_id[:8]}] Raw log limit reached ({self.raw_log.maxlen} lines); "
                    f"oldest lines are now being dropped"
                )
        self.raw_log.append(line)

    # --- Read side ---

    def current_status(self) -> SessionStatus:
        with self._lock:
            return self.status

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id,
                command=self.command,
                arguments=self.arguments,
                status=self.status,
                failure_reason=self.failure_reason,
                started_at=self.started_at,
                ended_at=self.ended_at,
                files_scanned=self.files_scanned,
                detections=tuple(self.detections),
                summary=dict(self.summary),
                raw_log=tuple(self.raw_log),
                raw_log_dropped=self.raw_log_dropped,
                last_error=self.last_error,
                cancel_requested=self.cancel_requested,
                pid=self.pid,
            )
