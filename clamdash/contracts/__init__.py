# clamdash/contracts/__init__.py
"""
Contracts Package: machine-readable shapes for data leaving the process.

Modules:
    schemas: pydantic models for the headless JSON snapshot stream
"""

from clamdash.contracts.schemas import (
    SCHEMA_VERSION,
    DetectionModel,
    ExitModel,
    SnapshotModel,
    SummaryFieldModel,
)

__all__ = [
    "SCHEMA_VERSION",
    "DetectionModel",
    "ExitModel",
    "SnapshotModel",
    "SummaryFieldModel",
]
