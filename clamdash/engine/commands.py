# clamdash/engine/commands.py
# Argument builders for the two ClamAV tools clamdash drives.

from __future__ import annotations

import logging
import os
import shutil
from typing import Iterable, List, Sequence, Tuple

from clamdash.config import ScanConfig
from clamdash.errors import ToolNotFoundError

logger = logging.getLogger(__name__)


def resolve_executable(name: str) -> str:
    """Return the full path of ``name``; raise ToolNotFoundError if it is not on PATH."""
    path = shutil.which(name)
    if path is None:
        raise ToolNotFoundError(
            f"{name} is not installed or not in PATH",
            details={"tool": name},
        )
    logger.debug(f"[Commands] Resolved {name} -> {path}")
    return path


def build_scan_arguments(
    paths: Sequence[str],
    recursive: bool = True,
    extra: Iterable[str] = (),
) -> List[str]:
    if not paths:
        raise ValueError("at least one path to scan is required")
    arguments: List[str] = ["--recursive"] if recursive else []
    arguments.extend(extra)
    arguments.extend(os.path.abspath(os.path.expanduser(p)) for p in paths)
    return arguments


def build_update_arguments(extra: Iterable[str] = ()) -> List[str]:
    # --stdout keeps freshclam's progress on the merged pipe.
    return ["--stdout", *extra]


def scan_command(
    config: ScanConfig,
    paths: Sequence[str],
    recursive: bool | None = None,
    extra: Iterable[str] = (),
) -> Tuple[str, List[str]]:
    """Resolve clamscan and build its argument list from config plus overrides."""
    executable = resolve_executable(config.clamscan_binary)
    use_recursive = config.recursive if recursive is None else recursive
    return executable, build_scan_arguments(paths, recursive=use_recursive, extra=extra)


def update_command(config: ScanConfig, extra: Iterable[str] = ()) -> Tuple[str, List[str]]:
    executable = resolve_executable(config.freshclam_binary)
    return executable, build_update_arguments(extra)
