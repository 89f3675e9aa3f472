"""Structured error taxonomy for clamdash."""
#
# PURPOSE:
# Gives every failure the engine can surface a stable error code, a
# human-readable message and an optional details dictionary, so the CLI and
# the dashboard can tell "the tool is missing" apart from "the stream broke".
#
# ERROR CODE FORMAT:
# - SCAN_XXX: Session lifecycle errors
# - TOOL_XXX: External process errors (spawn, stream, exit)
# - CONFIG_XXX: Configuration errors
# - SYSTEM_XXX: Anything unexpected
#
# WHAT IS *NOT* AN EXCEPTION:
# - Unrecognized output lines. The parser downgrades them to Informational
#   events; they never leave the parser as errors.
# - A non-zero child exit. It becomes a FAILED session with a reason string.
#
# USAGE:
#   from clamdash.errors import SpawnError, ErrorCode
#
#   raise SpawnError(
#       "clamscan could not be launched",
#       details={"command": "clamscan"},
#   )
#
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Scan Errors
    SCAN_ALREADY_RUNNING = "SCAN_001"
    SCAN_SESSION_INVALID_STATE = "SCAN_003"

    # Tool Errors
    TOOL_NOT_INSTALLED = "TOOL_001"
    TOOL_SPAWN_FAILED = "TOOL_002"
    TOOL_PERMISSION_DENIED = "TOOL_003"
    TOOL_STREAM_FAILED = "TOOL_004"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"
    CONFIG_PARSE_ERROR = "CONFIG_002"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class ClamdashError(Exception):
    """
    Base exception class for clamdash with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "TOOL_002")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    default_code: ErrorCode = ErrorCode.SYSTEM_INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a JSON-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class SpawnError(ClamdashError):
    """The external executable could not be launched (missing, not executable)."""

    default_code = ErrorCode.TOOL_SPAWN_FAILED


class StreamError(ClamdashError):
    """Reading the child's combined output failed mid-session."""

    default_code = ErrorCode.TOOL_STREAM_FAILED


class ScanAlreadyRunningError(ClamdashError):
    default_code = ErrorCode.SCAN_ALREADY_RUNNING


class SessionStateError(ClamdashError):
    """An operation was attempted that the session state machine does not allow."""

    default_code = ErrorCode.SCAN_SESSION_INVALID_STATE


class ToolNotFoundError(ClamdashError):
    default_code = ErrorCode.TOOL_NOT_INSTALLED


class ConfigError(ClamdashError):
    default_code = ErrorCode.CONFIG_INVALID


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(error: Exception, context: Optional[str] = None) -> ClamdashError:
    """
    Convert a generic exception to a ClamdashError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while reading clamscan output")

    Returns:
        ClamdashError with an appropriate code and message
    """
    if isinstance(error, ClamdashError):
        return error

    if isinstance(error, FileNotFoundError):
        code = ErrorCode.TOOL_NOT_INSTALLED
    elif isinstance(error, PermissionError):
        code = ErrorCode.TOOL_PERMISSION_DENIED
    else:
        code = ErrorCode.SYSTEM_INTERNAL_ERROR

    message = str(error)
    if context:
        message = f"{context}: {message}"

    return ClamdashError(
        message,
        code=code,
        details={
            "original_type": type(error).__name__,
            "original_message": str(error),
        },
    )


__all__ = [
    "ErrorCode",
    "ClamdashError",
    "SpawnError",
    "StreamError",
    "ScanAlreadyRunningError",
    "SessionStateError",
    "ToolNotFoundError",
    "ConfigError",
    "handle_error",
]
