"""Pytest configuration and shared fixtures for webhook deliverer tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from webhook_deliverer.delivery import WebhookDeliveryClient
from webhook_deliverer.models import WebhookJob
from webhook_deliverer.security import WebhookURLValidator

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_job() -> Callable[..., WebhookJob]:
    """Provide a factory for webhook jobs with overridable fields."""

    def _make(**overrides: Any) -> WebhookJob:
        fields: dict[str, Any] = {
            "project_id": "proj_1",
            "function_id": "fn_1",
            "request_id": "req_1",
            "url": "https://hooks.example.com/incoming",
            "payload": '{"event": "user.created", "id": 42}',
            "headers": (("X-Token", "secret"),),
        }
        fields.update(overrides)
        return WebhookJob(**fields)

    return _make


@pytest.fixture
def make_client() -> Callable[..., WebhookDeliveryClient]:
    """Provide a factory for delivery clients backed by httpx.MockTransport.

    DNS resolution is disabled so tests never touch the network.
    """

    def _make(handler: Handler, **kwargs: Any) -> WebhookDeliveryClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return WebhookDeliveryClient(
            url_validator=WebhookURLValidator(resolve_dns=False),
            client=http_client,
            **kwargs,
        )

    return _make
