from __future__ import annotations

from enum import Enum


class ErrorReason(str, Enum):
    PAYLOAD_EMPTY = "Payload Empty"
    INVALID_IMAGE = "Invalid Image"
    INVALID_BASE64 = "Invalid Base64"
    HTTP_ERROR = "HTTP Error"
    RECOGNITION_FAILED = "Recognition Failed"


class PipelineError(Exception):
    """A per-item failure; the pipeline turns it into an ``Error`` outcome."""

    def __init__(self, reason: ErrorReason, detail: str | None = None) -> None:
        super().__init__(detail or reason.value)
        self.reason = reason
        self.detail = detail
