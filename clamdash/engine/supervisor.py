"""
clamdash/engine/supervisor.py
Owns the external scanner process for one session at a time.

The supervisor spawns the tool with stderr merged into stdout, runs a daemon
ingestion thread that feeds every output line through the parser into the
session, and resolves the final status once the output is drained and the
child has exited. Cancellation is a separate control path: SIGTERM to the
child's process group, a grace period, then SIGKILL.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from clamdash.config import ScanConfig, get_config
from clamdash.engine.parser import OutputParser, parser_for
from clamdash.engine.reader import LineReader
from clamdash.engine.session import ScanSession, SessionSnapshot, SessionStatus
from clamdash.errors import (
    ErrorCode,
    ScanAlreadyRunningError,
    SpawnError,
    StreamError,
    handle_error,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExitReport:
    status: SessionStatus
    exit_code: Optional[int]
    reason: Optional[str] = None
    forced_kill: bool = False


def classify_exit(
    exit_code: int,
    *,
    cancel_requested: bool,
    summary_observed: bool,
    stream_error: Optional[str] = None,
    last_error: Optional[str] = None,
    expected_exit_codes: Iterable[int] = (0, 1),
) -> Tuple[SessionStatus, Optional[str]]:
    """
    Resolve the terminal status of a finished run.

    Rules are checked in order; the first match wins:

    1. cancel requested            -> CANCELLED (never FAILED or COMPLETED)
    2. the output stream broke     -> FAILED, "process terminated unexpectedly: ..."
    3. expected code + summary     -> COMPLETED
    4. expected code, no summary   -> FAILED, "process terminated unexpectedly"
    5. negative code (signalled)   -> FAILED, "... (signal N)"
    6. anything else               -> FAILED, "process exited abnormally (exit code N)"
    """
    if cancel_requested:
        return SessionStatus.CANCELLED, None

    if stream_error:
        return SessionStatus.FAILED, f"process terminated unexpectedly: {stream_error}"

    if exit_code in tuple(expected_exit_codes):
        if summary_observed:
            return SessionStatus.COMPLETED, None
        return SessionStatus.FAILED, "process terminated unexpectedly"

    if exit_code < 0:
        return SessionStatus.FAILED, f"process terminated unexpectedly (signal {-exit_code})"

    reason = f"process exited abnormally (exit code {exit_code})"
    if last_error:
        reason = f"{reason}: {last_error}"
    return SessionStatus.FAILED, reason


class _ActiveRun:
    """Per-run state. Replaced wholesale when a new scan starts."""

    def __init__(self, session: ScanSession, process: Optional[subprocess.Popen], parser: OutputParser):
        self.session = session
        self.process = process
        self.parser = parser
        self.done = threading.Event()
        self.report: Optional[ExitReport] = None
        self.forced_kill = False
        self.thread: Optional[threading.Thread] = None
        # Orders "cancel flag set" against "final status resolved".
        self.finish_lock = threading.Lock()
        # One terminate sequence at a time.
        self.cancel_lock = threading.Lock()

    def complete(self, report: ExitReport) -> None:
        self.report = report
        self.done.set()


def _spawn_kwargs() -> Dict[str, Any]:
    if os.name == "posix":
        # Own process group so cancel reaches anything clamscan forks.
        return {"start_new_session": True}
    return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}


class ProcessSupervisor:
    """
    Runs one scanner process at a time and exposes its session to the renderer.

    Renderer-facing calls (read_snapshot, current_status, request_cancel,
    poll_exit) never block on ingestion.
    """

    def __init__(self, config: Optional[ScanConfig] = None):
        cfg = config or get_config().scan
        self.cancel_grace_seconds = cfg.cancel_grace_seconds
        self.raw_log_capacity = cfg.raw_log_capacity
        self.expected_exit_codes = tuple(cfg.expected_exit_codes)

        self._lock = threading.Lock()
        self._session = ScanSession(raw_log_capacity=self.raw_log_capacity)
        self._run: Optional[_ActiveRun] = None

    @property
    def session(self) -> ScanSession:
        with self._lock:
            return self._session

    # --- Start ---

    def start(
        self,
        command: str,
        arguments: Sequence[str] = (),
        parser: Optional[OutputParser] = None,
    ) -> str:
        """
        Spawn ``command`` with ``arguments`` under a fresh session.

        Returns:
            The new session's id.

        Raises:
            ScanAlreadyRunningError: the current session is STARTING or RUNNING.
            SpawnError: the executable could not be launched. The session is
                left FAILED with the reason.
        """
        with self._lock:
            current = self._session.current_status()
            if current.is_active:
                raise ScanAlreadyRunningError(
                    f"A scan is already {current.value}",
                    details={"session_id": self._session.session_id},
                )
            session = ScanSession(command, arguments, raw_log_capacity=self.raw_log_capacity)
            session.begin()
            self._session = session
            self._run = None

        parser = parser or parser_for(command)
        parser.reset()

        argv = [command, *arguments]
        logger.info(f"[Supervisor] Launching: {' '.join(argv)}")
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                **_spawn_kwargs(),
            )
        except OSError as exc:
            reason = f"failed to launch {command}: {exc.strerror or exc}"
            code = ErrorCode.TOOL_PERMISSION_DENIED if isinstance(exc, PermissionError) else ErrorCode.TOOL_SPAWN_FAILED
            logger.error(f"[Supervisor] {reason}")
            session.finish(SessionStatus.FAILED, reason)
            failed = _ActiveRun(session, None, parser)
            failed.complete(ExitReport(SessionStatus.FAILED, None, reason))
            with self._lock:
                self._run = failed
            raise SpawnError(reason, code=code, details={"command": command, "errno": exc.errno}) from exc

        run = _ActiveRun(session, process, parser)
        with self._lock:
            self._run = run
        session.mark_running(process.pid)

        run.thread = threading.Thread(
            target=self._ingest,
            args=(run,),
            name=f"clamdash-ingest-{session.session_id[:8]}",
            daemon=True,
        )
        run.thread.start()
        logger.info(f"[Supervisor] Session {session.session_id[:8]} running (pid {process.pid})")
        return session.session_id

    # --- Ingestion ---

    def _ingest(self, run: _ActiveRun) -> None:
        session = run.session
        process = run.process
        stream_error: Optional[str] = None
        exit_code: Optional[int] = None
        try:
            try:
                for line in LineReader(process.stdout):
                    session.apply(run.parser.feed(line))
            except StreamError as exc:
                stream_error = exc.message
                logger.error(f"[Supervisor] Output stream failed: {exc}")
            except Exception as exc:
                wrapped = handle_error(exc, "while ingesting scanner output")
                stream_error = wrapped.message
                logger.exception(f"[Supervisor] Ingestion crashed: {wrapped}")
            finally:
                if process.stdout:
                    process.stdout.close()

            exit_code = process.wait()
            with run.finish_lock:
                snap = session.snapshot()
                status, reason = classify_exit(
                    exit_code,
                    cancel_requested=snap.cancel_requested,
                    summary_observed=run.parser.summary_observed,
                    stream_error=stream_error,
                    last_error=snap.last_error,
                    expected_exit_codes=self.expected_exit_codes,
                )
                session.finish(status, reason)
        finally:
            final = session.current_status()
            reason = session.failure_reason
            run.complete(ExitReport(final, exit_code, reason, run.forced_kill))

        tag = f"[Supervisor] Session {session.session_id[:8]}"
        if final is SessionStatus.FAILED:
            logger.error(f"{tag} failed: {reason}")
        else:
            logger.info(f"{tag} {final.value} (exit code {exit_code})")

    # --- Cancellation ---

    def cancel(self) -> bool:
        """
        Terminate the running scan and block until the session is CANCELLED.

        Returns:
            False when there is nothing running to cancel.
        """
        with self._lock:
            run = self._run
        if run is None or run.process is None:
            return False

        with run.finish_lock:
            if not run.session.request_cancel():
                return False

        logger.info(f"[Supervisor] Cancel requested for session {run.session.session_id[:8]}")
        self._terminate(run)
        run.done.wait()
        return True

    def request_cancel(self) -> bool:
        """Fire-and-forget cancel for the renderer. Returns False when idle."""
        if self.current_status() is not SessionStatus.RUNNING:
            return False
        threading.Thread(target=self.cancel, name="clamdash-cancel", daemon=True).start()
        return True

    def _terminate(self, run: _ActiveRun) -> None:
        process = run.process
        with run.cancel_lock:
            if process.poll() is not None:
                return
            self._signal(process, force=False)
            try:
                process.wait(timeout=self.cancel_grace_seconds)
                logger.info(f"[Supervisor] pid {process.pid} exited after SIGTERM")
            except subprocess.TimeoutExpired:
                logger.warning(
                    f"[Supervisor] pid {process.pid} ignored SIGTERM for "
                    f"{self.cancel_grace_seconds}s, sending SIGKILL"
                )
                run.forced_kill = True
                self._signal(process, force=True)

    @staticmethod
    def _signal(process: subprocess.Popen, force: bool) -> None:
        try:
            if os.name == "posix":
                # start_new_session makes the child its own group leader.
                os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
            elif force:
                process.kill()
            else:
                process.terminate()
        except (ProcessLookupError, PermissionError) as exc:
            logger.debug(f"[Supervisor] Signal to pid {process.pid} not delivered: {exc}")

    # --- Read side ---

    def poll_exit(self) -> Optional[ExitReport]:
        with self._lock:
            run = self._run
        if run is None or not run.done.is_set():
            return None
        return run.report

    def wait(self, timeout: Optional[float] = None) -> Optional[ExitReport]:
        with self._lock:
            run = self._run
        if run is None:
            return None
        run.done.wait(timeout)
        return run.report

    def read_snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()

    def current_status(self) -> SessionStatus:
        return self.session.current_status()
