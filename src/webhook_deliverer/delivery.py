"""Webhook delivery client using httpx.

Performs the single HTTP POST of a delivery attempt and classifies the
result as a typed outcome instead of raising.

Classification policy:
    - Any received HTTP response, whatever its status code, is a
      ``DeliveryResponse``.
    - With ``reject_error_status=True`` a 4xx/5xx response becomes a
      ``DeliveryFailure`` that still carries the response.
    - Timeouts, connection errors, protocol errors, URL validation
      failures and unexpected exceptions are ``DeliveryFailure`` values
      without a response.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from webhook_deliverer.errors import DelivererErrorCode
from webhook_deliverer.security import URLValidationError, WebhookURLValidator

if TYPE_CHECKING:
    import httpx

    from webhook_deliverer.config import DelivererConfig
    from webhook_deliverer.models import Header

logger = logging.getLogger(__name__)

__all__ = [
    "JSON_CONTENT_TYPE",
    "DeliveryFailure",
    "DeliveryOutcome",
    "DeliveryResponse",
    "ResponseInfo",
    "WebhookDeliveryClient",
]

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class ResponseInfo:
    """HTTP response details exposed to the pipeline."""

    status_code: int
    body: str | None = None
    headers: tuple[Header, ...] = ()


@dataclass(frozen=True)
class DeliveryResponse:
    """A response was received from the endpoint."""

    response: ResponseInfo


@dataclass(frozen=True)
class DeliveryFailure:
    """No usable response was obtained.

    ``response`` is set only when a response arrived but was rejected
    because of its status code.
    """

    url: str
    reason: str
    code: DelivererErrorCode
    response: ResponseInfo | None = None


DeliveryOutcome = Union[DeliveryResponse, DeliveryFailure]


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class WebhookDeliveryClient:
    """Handles webhook HTTP delivery.

    Uses one shared httpx.AsyncClient so concurrent deliveries reuse its
    connection pool.

    Example:
        >>> client = WebhookDeliveryClient(timeout=10)
        >>> outcome = await client.post(
        ...     "https://example.com/hook",
        ...     '{"hello": "world"}',
        ...     "application/json",
        ...     [("X-Token", "abc")],
        ... )
        >>> if isinstance(outcome, DeliveryResponse):
        ...     print(outcome.response.status_code)
    """

    def __init__(
        self,
        timeout: float = 10.0,
        reject_error_status: bool = False,
        max_response_size: int = 0,
        url_validator: WebhookURLValidator | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize delivery client.

        Args:
            timeout: HTTP timeout in seconds
            reject_error_status: Classify 4xx/5xx responses as failures
            max_response_size: Max response body characters kept (0 = all)
            url_validator: Validator for destination URLs
            client: Externally managed httpx client (not closed by ``close``)
        """
        self.timeout = timeout
        self.reject_error_status = reject_error_status
        self.max_response_size = max_response_size
        self.url_validator = url_validator or WebhookURLValidator()
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config: DelivererConfig) -> WebhookDeliveryClient:
        """Build a client from worker configuration."""
        return cls(
            timeout=config.delivery_timeout,
            reject_error_status=config.reject_error_status,
            max_response_size=config.max_response_size,
            url_validator=WebhookURLValidator(
                allow_http=config.allow_http,
                allow_localhost=config.allow_localhost,
                allow_private_networks=config.allow_private_networks,
                resolve_dns=config.resolve_dns,
            ),
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            import httpx

            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=False,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def post(
        self,
        url: str,
        body: str,
        content_type: str = JSON_CONTENT_TYPE,
        headers: Sequence[Header] = (),
    ) -> DeliveryOutcome:
        """POST ``body`` to ``url``.

        Args:
            url: Destination URL (untrusted)
            body: Request body, sent verbatim
            content_type: Value of the Content-Type header
            headers: Extra headers appended in order, duplicates kept

        Returns:
            DeliveryResponse if any response arrived, else DeliveryFailure
        """
        import httpx

        try:
            await self.url_validator.validate(url)
        except URLValidationError as e:
            return DeliveryFailure(
                url=url,
                reason=f"URL validation failed: {e.reason}",
                code=e.error_code,
            )

        request_headers: list[Header] = [("Content-Type", content_type)]
        request_headers.extend((name, value) for name, value in headers)

        try:
            client = await self._get_client()
            response = await client.post(
                url,
                content=body.encode("utf-8"),
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            return DeliveryFailure(
                url=url,
                reason=f"Timeout: {_describe(e)}",
                code=DelivererErrorCode.TIMEOUT,
            )
        except httpx.ConnectError as e:
            return DeliveryFailure(
                url=url,
                reason=f"Connection error: {_describe(e)}",
                code=DelivererErrorCode.CONNECTION_ERROR,
            )
        except httpx.HTTPError as e:
            return DeliveryFailure(
                url=url,
                reason=f"HTTP error: {_describe(e)}",
                code=DelivererErrorCode.HTTP_ERROR,
            )
        except httpx.InvalidURL as e:
            return DeliveryFailure(
                url=url,
                reason=f"URL validation failed: {_describe(e)}",
                code=DelivererErrorCode.URL_INVALID,
            )
        except Exception as e:
            logger.exception(f"Unexpected error delivering webhook to {url}: {e}")
            return DeliveryFailure(
                url=url,
                reason=f"Unexpected error: {type(e).__name__}: {e}",
                code=DelivererErrorCode.UNEXPECTED,
            )

        response_body = response.text
        if self.max_response_size:
            response_body = response_body[: self.max_response_size]

        # raw keeps the header names as the endpoint sent them
        encoding = response.headers.encoding
        info = ResponseInfo(
            status_code=response.status_code,
            body=response_body,
            headers=tuple(
                (name.decode(encoding), value.decode(encoding))
                for name, value in response.headers.raw
            ),
        )

        if self.reject_error_status and response.status_code >= 400:
            return DeliveryFailure(
                url=url,
                reason=f"HTTP {response.status_code}",
                code=DelivererErrorCode.REJECTED_STATUS,
                response=info,
            )

        return DeliveryResponse(response=info)
