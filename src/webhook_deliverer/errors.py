"""Error codes and exception types for the webhook delivery worker.

Delivery failures are E50x codes carried on ``DeliveryFailure`` values.
Worker state errors are E51x codes raised as exceptions.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

__all__ = [
    "DELIVERER_ERROR_REGISTRY",
    "DelivererError",
    "DelivererErrorCode",
    "PipelineStateError",
    "QueueError",
    "get_error_message",
]


class DelivererErrorCode(str, Enum):
    """Worker error codes (E5xx range)."""

    # E50x - Delivery failures
    URL_INVALID = "E500"
    TIMEOUT = "E501"
    CONNECTION_ERROR = "E502"
    HTTP_ERROR = "E503"
    REJECTED_STATUS = "E504"
    UNEXPECTED = "E505"

    # E51x - Worker state errors
    PIPELINE_ALREADY_STARTED = "E510"
    QUEUE_ERROR = "E511"


# Error registry mapping codes to metadata
DELIVERER_ERROR_REGISTRY: dict[DelivererErrorCode, dict[str, Any]] = {
    DelivererErrorCode.URL_INVALID: {
        "error": "url_invalid",
        "message": "Webhook URL is invalid or not allowed",
    },
    DelivererErrorCode.TIMEOUT: {
        "error": "timeout",
        "message": "Webhook endpoint did not respond in time",
    },
    DelivererErrorCode.CONNECTION_ERROR: {
        "error": "connection_error",
        "message": "Could not connect to webhook endpoint",
    },
    DelivererErrorCode.HTTP_ERROR: {
        "error": "http_error",
        "message": "HTTP exchange with webhook endpoint failed",
    },
    DelivererErrorCode.REJECTED_STATUS: {
        "error": "rejected_status",
        "message": "Webhook endpoint responded with an error status",
    },
    DelivererErrorCode.UNEXPECTED: {
        "error": "unexpected",
        "message": "Unexpected error during webhook delivery",
    },
    DelivererErrorCode.PIPELINE_ALREADY_STARTED: {
        "error": "pipeline_already_started",
        "message": "Delivery pipeline has already been started",
    },
    DelivererErrorCode.QUEUE_ERROR: {
        "error": "queue_error",
        "message": "Queue operation failed",
    },
}


def get_error_message(code: DelivererErrorCode) -> str:
    """Get default message for an error code."""
    entry = DELIVERER_ERROR_REGISTRY.get(code)
    if entry is None:
        return "Unknown webhook deliverer error"
    message = entry.get("message")
    return str(message) if message is not None else "Unknown webhook deliverer error"


class DelivererError(Exception):
    """Base class for worker errors."""

    code: DelivererErrorCode = DelivererErrorCode.UNEXPECTED

    def __init__(self, message: str | None = None) -> None:
        self.message = message or get_error_message(self.code)
        super().__init__(self.message)


class PipelineStateError(DelivererError):
    """Raised when the pipeline lifecycle is used out of order."""

    code = DelivererErrorCode.PIPELINE_ALREADY_STARTED


class QueueError(DelivererError):
    """Raised when a queue backend cannot be used."""

    code = DelivererErrorCode.QUEUE_ERROR
