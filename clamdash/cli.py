#!/usr/bin/env python3
"""
clamdash command line.

    clamdash scan ~/Downloads /srv/uploads
    clamdash scan --no-recursive --clamscan-arg=--max-filesize=50M ./inbox
    clamdash update
    clamdash --json scan /srv      # headless, one JSON document per tick

Exit codes: 0 clean, 1 threats found, 2 failed / tool error, 130 cancelled.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional, Sequence, TextIO, Tuple

from clamdash import __version__
from clamdash.config import DEFAULT_CONFIG_FILE, ClamdashConfig, set_config, setup_logging
from clamdash.contracts.schemas import SnapshotModel
from clamdash.dashboard.views import format_elapsed
from clamdash.engine.commands import scan_command, update_command
from clamdash.engine.session import SessionSnapshot, SessionStatus
from clamdash.engine.supervisor import ExitReport, ProcessSupervisor
from clamdash.errors import ClamdashError, ConfigError, SpawnError

logger = logging.getLogger(__name__)

EXIT_CLEAN = 0
EXIT_THREATS = 1
EXIT_FAILED = 2
EXIT_CANCELLED = 130


def _scan(args: argparse.Namespace, config: ClamdashConfig) -> Tuple[str, List[str]]:
    recursive = False if args.no_recursive else None
    return scan_command(config.scan, args.paths, recursive=recursive, extra=args.clamscan_arg)


def _update(args: argparse.Namespace, config: ClamdashConfig) -> Tuple[str, List[str]]:
    return update_command(config.scan, extra=args.freshclam_arg)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clamdash", description="Live dashboard for ClamAV scans")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG_FILE, help="TOML config file (default: %(default)s)")
    parser.add_argument("--headless", action="store_true", help="Print progress lines instead of the dashboard")
    parser.add_argument("--json", action="store_true", help="Print one JSON snapshot per tick (implies --headless)")
    parser.add_argument("--interval", type=float, default=None, help="Refresh interval in seconds")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Scan Command
    scan_parser = subparsers.add_parser("scan", help="Scan files or directories with clamscan")
    scan_parser.add_argument("paths", nargs="+", help="Files or directories to scan")
    scan_parser.add_argument("--no-recursive", action="store_true", help="Do not descend into directories")
    scan_parser.add_argument(
        "--clamscan-arg", action="append", default=[], metavar="ARG", help="Extra argument passed to clamscan"
    )
    scan_parser.set_defaults(func=_scan)

    # Update Command
    update_parser = subparsers.add_parser("update", help="Update virus definitions with freshclam")
    update_parser.add_argument(
        "--freshclam-arg", action="append", default=[], metavar="ARG", help="Extra argument passed to freshclam"
    )
    update_parser.set_defaults(func=_update)

    return parser


def exit_code_for(report: Optional[ExitReport], snapshot: SessionSnapshot) -> int:
    if report is None or report.status is SessionStatus.FAILED:
        return EXIT_FAILED
    if report.status is SessionStatus.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_THREATS if snapshot.detections else EXIT_CLEAN


def _progress_line(snap: SessionSnapshot) -> str:
    line = (
        f"[{snap.status.value}] {format_elapsed(snap.elapsed)} "
        f"files={snap.files_scanned} threats={snap.infected_count}"
    )
    if snap.cancel_requested and not snap.status.is_terminal:
        line += " (cancelling)"
    return line


def _final_report(snap: SessionSnapshot, report: ExitReport) -> List[str]:
    lines = [_progress_line(snap)]
    for detection in snap.detections:
        lines.append(f"  FOUND {detection.signature_name}: {detection.file_path}")
    if report.status is SessionStatus.FAILED:
        lines.append(f"  failed: {report.reason}")
    elif report.status is SessionStatus.CANCELLED:
        lines.append("  cancelled by operator" + (" (forced kill)" if report.forced_kill else ""))
    for name, entry in snap.summary.items():
        lines.append(f"  {name}: {entry.raw}")
    return lines


def _emit(supervisor: ProcessSupervisor, report: Optional[ExitReport], as_json: bool, out: TextIO) -> None:
    snap = supervisor.read_snapshot()
    if as_json:
        print(SnapshotModel.from_snapshot(snap, report).model_dump_json(), file=out, flush=True)
    elif report is None:
        print(_progress_line(snap), file=out, flush=True)
    else:
        print("\n".join(_final_report(snap, report)), file=out, flush=True)


def run_headless(
    supervisor: ProcessSupervisor,
    command: str,
    arguments: Sequence[str],
    interval: float,
    as_json: bool = False,
    out: Optional[TextIO] = None,
) -> Optional[ExitReport]:
    """Poll the supervisor every ``interval`` seconds until the run ends."""
    out = out or sys.stdout
    try:
        supervisor.start(command, arguments)
    except SpawnError as exc:
        print(f"clamdash: {exc.message}", file=sys.stderr)
        report = supervisor.poll_exit()
        if as_json:
            _emit(supervisor, report, as_json, out)
        return report

    try:
        report = supervisor.wait(interval)
        while report is None:
            _emit(supervisor, None, as_json, out)
            report = supervisor.wait(interval)
    except KeyboardInterrupt:
        logger.warning("[CLI] Interrupted, cancelling scan")
        supervisor.cancel()
        report = supervisor.wait()

    _emit(supervisor, report, as_json, out)
    return report


def run_dashboard(supervisor: ProcessSupervisor, command: str, arguments: Sequence[str], config: ClamdashConfig):
    from clamdash.dashboard.app import ScanDashboard

    ScanDashboard(supervisor, command, arguments, config.dashboard).run()
    if supervisor.current_status() is SessionStatus.RUNNING:
        supervisor.cancel()
    if supervisor.current_status() is SessionStatus.IDLE:
        return None
    return supervisor.wait()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_FAILED

    headless = args.headless or args.json
    try:
        config = ClamdashConfig.from_file(args.config)
        if args.interval is not None:
            config = replace(config, dashboard=replace(config.dashboard, tick_interval=args.interval))
    except ConfigError as exc:
        print(f"clamdash: {exc.message}", file=sys.stderr)
        return EXIT_FAILED

    set_config(config)
    setup_logging(config, console=headless)

    try:
        command, arguments = args.func(args, config)
    except ClamdashError as exc:
        logger.error(f"[CLI] {exc}")
        print(f"clamdash: {exc.message}", file=sys.stderr)
        return EXIT_FAILED

    supervisor = ProcessSupervisor(config.scan)
    if headless:
        report = run_headless(supervisor, command, arguments, config.dashboard.tick_interval, as_json=args.json)
    else:
        report = run_dashboard(supervisor, command, arguments, config)

    return exit_code_for(report, supervisor.read_snapshot())


if __name__ == "__main__":
    sys.exit(main())
