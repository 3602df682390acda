"""Signal type definitions for workbench session observability."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """All signal types emitted by a workbench session."""

    PHASE_TRANSITION = "PHASE_TRANSITION"
    NEWS_TRANSITION = "NEWS_TRANSITION"
    FILES_CHANGED = "FILES_CHANGED"
    SECTION_COMPLETE = "SECTION_COMPLETE"
    SECTION_FAILED = "SECTION_FAILED"
    EXTRACTION_COMPLETE = "EXTRACTION_COMPLETE"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    NEWS_READY = "NEWS_READY"
    NEWS_FAILED = "NEWS_FAILED"
    RECORD_EDITED = "RECORD_EDITED"


class Signal(BaseModel):
    """An immutable signal emitted by a session.

    Every observable state change produces a Signal; signals are never
    modified after emission.
    """

    sequence: int = Field(description="Monotonic sequence number within the session")
    signal_type: SignalType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
