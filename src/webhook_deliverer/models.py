"""Pydantic models for the webhook delivery worker.

Provides the inbound job and outbound log item schemas. Both models use
camelCase on the wire and accept snake_case field names in Python.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "Header",
    "LogItem",
    "LogStatus",
    "WebhookJob",
    "parse_headers",
]

Header = tuple[str, str]


def parse_headers(v: Any) -> Any:
    """Normalize wire headers into ordered (name, value) pairs.

    Supports:
    - Pair list: [["X-A", "1"], ["X-A", "2"]] → (("X-A", "1"), ("X-A", "2"))
    - JSON object: {"X-A": "1", "X-B": "2"} → (("X-A", "1"), ("X-B", "2"))
    - None → ()

    Anything else is passed through for field validation to reject.
    """
    if v is None:
        return ()
    if isinstance(v, dict):
        return tuple((str(name), str(value)) for name, value in v.items())
    return v


class LogStatus(str, Enum):
    """Outcome of one delivery attempt."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class WebhookJob(BaseModel):
    """One queued request to deliver a payload to an external URL.

    Example:
        >>> job = WebhookJob.model_validate_json(
        ...     '{"projectId": "p1", "functionId": "f1", "requestId": "r1",'
        ...     ' "url": "https://example.com/hook", "payload": "{}",'
        ...     ' "headers": [["X-Token", "abc"]]}'
        ... )
        >>> job.headers
        (('X-Token', 'abc'),)
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    project_id: str = Field(description="Opaque project identifier")
    function_id: str = Field(description="Opaque function identifier")
    request_id: str = Field(description="Opaque request identifier")
    url: str = Field(
        description="Destination endpoint (untrusted, validated at delivery)",
        examples=["https://example.com/webhooks/incoming"],
    )
    payload: str = Field(
        description="JSON request body, sent verbatim",
        examples=['{"event": "user.created"}'],
    )
    headers: Annotated[tuple[Header, ...], BeforeValidator(parse_headers)] = Field(
        default=(),
        description="Ordered request headers; duplicates are preserved",
    )


class LogItem(BaseModel):
    """Structured record of one delivery attempt's outcome.

    Published to the outbound queue exactly once per consumed job.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(
        description="Unique log item identifier",
        examples=["log_3f9a0c2b7d1e4a5b6c7d8e9f"],
    )
    project_id: str
    function_id: str
    request_id: str
    status: LogStatus
    duration_ms: int = Field(
        description="Milliseconds between dispatch and outcome",
        ge=0,
    )
    timestamp: str = Field(
        description="UTC creation time, DATETIME(3) format",
        examples=["2025-01-01 12:00:00.123"],
    )
    message: dict[str, Any] = Field(
        description="Success shape {event, logs, returnValue} or failure shape {error}",
    )

    def to_json(self) -> str:
        """Serialize for the outbound queue (camelCase keys)."""
        return self.model_dump_json(by_alias=True)
