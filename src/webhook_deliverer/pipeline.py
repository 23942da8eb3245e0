"""Webhook delivery pipeline.

Consumes one webhook job at a time from the inbound queue, delivers it,
and publishes exactly one log item describing the outcome. Deliveries
are never retried: every job, delivered or not, is handled once and
acknowledged.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from webhook_deliverer.delivery import (
    JSON_CONTENT_TYPE,
    DeliveryFailure,
    DeliveryResponse,
)
from webhook_deliverer.errors import DelivererErrorCode, PipelineStateError
from webhook_deliverer.formatter import (
    build_failure_log_item,
    build_success_log_item,
    describe_failure,
)
from webhook_deliverer.utils import elapsed_ms

if TYPE_CHECKING:
    from webhook_deliverer.delivery import DeliveryOutcome, WebhookDeliveryClient
    from webhook_deliverer.models import LogItem, WebhookJob
    from webhook_deliverer.queue import ConsumerRef, QueueConsumer, QueuePublisher

logger = logging.getLogger(__name__)

__all__ = [
    "WebhookDeliveryPipeline",
]


class WebhookDeliveryPipeline:
    """Orchestrates consume → deliver → log.

    Lifecycle is explicit: construct, then ``start()`` once to bind the
    consumer, then ``stop()`` to drain and release resources. A pipeline
    cannot be started a second time.

    Example:
        >>> pipeline = WebhookDeliveryPipeline(client, inbound, outbound)
        >>> await pipeline.start()
        >>> ...
        >>> await pipeline.stop()
    """

    def __init__(
        self,
        client: WebhookDeliveryClient,
        consumer: QueueConsumer,
        publisher: QueuePublisher,
        *,
        owns_client: bool = True,
    ) -> None:
        """Initialize pipeline.

        Args:
            client: HTTP delivery client shared by all deliveries
            consumer: Inbound job queue; owns scheduling and the concurrency bound
            publisher: Outbound log queue
            owns_client: Close ``client`` when the pipeline stops
        """
        self._client = client
        self._consumer = consumer
        self._publisher = publisher
        self._owns_client = owns_client
        self._consumer_ref: ConsumerRef | None = None
        self._started = False

    @property
    def is_running(self) -> bool:
        """Whether the pipeline is currently consuming jobs."""
        return self._consumer_ref is not None

    async def handle(self, job: WebhookJob) -> LogItem:
        """Deliver one job and publish its log item.

        Never raises for delivery problems; the returned log item is the
        one that was published.
        """
        start_time = time.monotonic()

        try:
            outcome: DeliveryOutcome = await self._client.post(
                job.url, job.payload, JSON_CONTENT_TYPE, job.headers
            )
        except Exception as e:
            logger.exception(f"Delivery client raised for request {job.request_id}")
            outcome = DeliveryFailure(
                url=job.url,
                reason=str(e) or type(e).__name__,
                code=DelivererErrorCode.UNEXPECTED,
            )

        duration_ms = elapsed_ms(start_time)

        try:
            log_item = self._build_log_item(job, outcome, duration_ms)
        except Exception as e:
            logger.exception(f"Failed to build log item for request {job.request_id}")
            log_item = build_failure_log_item(
                job,
                duration_ms,
                f"Call to {job.url} failed with: Could not record outcome: "
                f"{type(e).__name__}: {e}",
            )

        self._publish(log_item)
        return log_item

    def _build_log_item(
        self, job: WebhookJob, outcome: DeliveryOutcome, duration_ms: int
    ) -> LogItem:
        if isinstance(outcome, DeliveryResponse):
            log_item = build_success_log_item(job, duration_ms, outcome.response.body)
            logger.info(
                f"Webhook delivered: project={job.project_id} "
                f"function={job.function_id} request={job.request_id} "
                f"status={outcome.response.status_code} duration={duration_ms}ms"
            )
        else:
            log_item = build_failure_log_item(
                job, duration_ms, describe_failure(outcome)
            )
            logger.warning(
                f"Webhook delivery failed: project={job.project_id} "
                f"function={job.function_id} request={job.request_id} "
                f"code={outcome.code.value} duration={duration_ms}ms "
                f"error={outcome.reason}"
            )
        return log_item

    def _publish(self, log_item: LogItem) -> None:
        try:
            self._publisher.publish(log_item)
        except Exception as e:
            logger.error(
                f"Failed to publish log item {log_item.id} "
                f"for request {log_item.request_id}: {e}"
            )

    async def start(self) -> None:
        """Begin consuming jobs.

        Raises:
            PipelineStateError: If the pipeline was already started
        """
        if self._started:
            raise PipelineStateError()
        self._started = True
        self._consumer_ref = self._consumer.with_consumer(self.handle)
        logger.info("Webhook delivery pipeline started")

    async def stop(self, drain: bool = True) -> None:
        """Stop consuming jobs.

        With ``drain`` the call returns only after in-flight deliveries have
        completed and their log items were handed to the publisher. Without
        it, in-flight deliveries are cancelled and publish nothing.
        """
        ref = self._consumer_ref
        if ref is None:
            return

        self._consumer_ref = None
        await ref.stop(drain=drain)
        await self._publisher.flush()
        if self._owns_client:
            await self._client.close()

        logger.info("Webhook delivery pipeline stopped")
