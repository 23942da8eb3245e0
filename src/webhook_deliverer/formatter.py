"""Log message formatting for delivery outcomes.

Builds the ``message`` object and the full ``LogItem`` for one delivery
attempt. All functions are pure apart from the fresh id and timestamp of
a log item.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from webhook_deliverer.models import LogItem, LogStatus
from webhook_deliverer.utils import generate_log_id, mysql_datetime3_timestamp

if TYPE_CHECKING:
    from webhook_deliverer.delivery import DeliveryFailure
    from webhook_deliverer.models import Header, WebhookJob

__all__ = [
    "build_failure_log_item",
    "build_success_log_item",
    "describe_failure",
    "format_error_message",
    "format_headers",
    "format_success_message",
]

# Deeper response objects are kept as raw text; pydantic refuses to
# serialize values nested much beyond 250 levels
MAX_RETURN_VALUE_DEPTH = 128


def format_headers(headers: Sequence[Header]) -> str:
    """Format headers as a single line ``"H1: V1 | H2: V2"``."""
    return " | ".join(f"{name}: {value}" for name, value in headers)


def _exceeds_depth(value: Any, limit: int) -> bool:
    stack = [(value, 1)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        if depth > limit:
            return True
        stack.extend((child, depth + 1) for child in children)
    return False


def _parse_return_value(response_body: str) -> dict[str, Any]:
    try:
        parsed = json.loads(response_body)
    except (ValueError, RecursionError):
        parsed = None
    if isinstance(parsed, dict) and not _exceeds_depth(
        parsed, MAX_RETURN_VALUE_DEPTH
    ):
        return parsed
    return {"rawResponse": response_body}


def format_success_message(payload: str, response_body: str) -> dict[str, Any]:
    """Format the log message of a delivered webhook.

    A response body holding a JSON object becomes ``returnValue`` and its
    ``logs`` entry, if any, is lifted to the top level. Any other body,
    including objects nested deeper than ``MAX_RETURN_VALUE_DEPTH``, is
    kept as ``{"rawResponse": body}``.

    Args:
        payload: Payload sent with the delivery, embedded unparsed
        response_body: Response body text

    Returns:
        ``{"event": payload, "logs": [...], "returnValue": {...}}``
    """
    return_value = _parse_return_value(response_body)
    return {
        "event": payload,
        "logs": return_value.get("logs", []),
        "returnValue": return_value,
    }


def format_error_message(error: str) -> dict[str, Any]:
    """Format the log message of a failed delivery."""
    return {"error": error}


def describe_failure(failure: DeliveryFailure) -> str:
    """Human-readable description of a failed delivery.

    Failures that carry a rejected response include its status, body and
    headers; all others include the failure reason.
    """
    response = failure.response
    if response is not None:
        return (
            f"Call to {failure.url} failed with status {response.status_code}, "
            f"response body '{response.body or ''}' "
            f"and headers [{format_headers(response.headers)}]"
        )
    return f"Call to {failure.url} failed with: {failure.reason}"


def _build_log_item(
    job: WebhookJob,
    status: LogStatus,
    duration_ms: int,
    message: dict[str, Any],
) -> LogItem:
    return LogItem(
        id=generate_log_id(),
        project_id=job.project_id,
        function_id=job.function_id,
        request_id=job.request_id,
        status=status,
        duration_ms=duration_ms,
        timestamp=mysql_datetime3_timestamp(),
        message=message,
    )


def build_success_log_item(
    job: WebhookJob, duration_ms: int, response_body: str | None
) -> LogItem:
    """Build the SUCCESS log item for a job whose endpoint responded."""
    return _build_log_item(
        job,
        LogStatus.SUCCESS,
        duration_ms,
        format_success_message(job.payload, response_body or ""),
    )


def build_failure_log_item(job: WebhookJob, duration_ms: int, error: str) -> LogItem:
    """Build the FAILURE log item for a job that got no usable response."""
    return _build_log_item(
        job,
        LogStatus.FAILURE,
        duration_ms,
        format_error_message(error),
    )
