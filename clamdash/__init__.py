# ============================================================================
# clamdash/__init__.py
# Package Marker for the ClamAV Scan Dashboard
# ============================================================================
#
# PURPOSE:
# clamdash wraps a long-running ClamAV process (clamscan or freshclam) and
# turns its text output into live, structured session state that a terminal
# dashboard can poll.
#
# LAYOUT:
# - engine/     : reader -> parser -> session, driven by the process supervisor
# - dashboard/  : textual application and pure view renderers
# - contracts/  : pydantic models for the JSON snapshot stream
# - config.py   : dataclass configuration (env + TOML) and logging setup
# - errors.py   : structured error taxonomy
#
# ============================================================================

__version__ = "0.3.0"
