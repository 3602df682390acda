"""Workbench exception types and structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class WorkbenchError(Exception):
    """Base class for errors the workbench raises on purpose."""


class ConfigurationError(WorkbenchError):
    """Raised when a required setting (the API credential) is missing."""


class UnsupportedFileError(WorkbenchError):
    """Raised when no content type can be resolved for a file."""

    def __init__(self, filename: str) -> None:
        super().__init__(
            f'Unsupported file type for "{filename}". '
            "Please upload PDF, DOCX, EML, MSG or TXT files."
        )
        self.filename = filename


class SessionError(WorkbenchError):
    """Raised on an invalid session phase transition or edit."""


class SessionBusyError(SessionError):
    """Raised when the session is extracting and cannot accept the request."""


class ChatBusyError(WorkbenchError):
    """Raised when a chat message is sent while a reply is still pending."""


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    AI_INITIALIZATION_FAILED = "AI_INITIALIZATION_FAILED"
    AI_REQUEST_RETRIED = "AI_REQUEST_RETRIED"
    SECTION_EXTRACTION_FAILED = "SECTION_EXTRACTION_FAILED"
    EXTRACTION_RUN_FAILED = "EXTRACTION_RUN_FAILED"
    NEWS_FETCH_FAILED = "NEWS_FETCH_FAILED"
    CHAT_REPLY_FAILED = "CHAT_REPLY_FAILED"
    EMAIL_UNPACK_FAILED = "EMAIL_UNPACK_FAILED"
    SIGNAL_SUBSCRIBER_FAILURE = "SIGNAL_SUBSCRIBER_FAILURE"
    API_WEBSOCKET_SEND_FAILED = "API_WEBSOCKET_SEND_FAILED"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    session_id: str | None = None,
    phase: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "workbench_error",
        extra={
            "error_code": code.value,
            "error_message": message,
            "suppressed": suppressed,
            "session_id": session_id,
            "phase": phase,
            "details": details or {},
        },
    )
