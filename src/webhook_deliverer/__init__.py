"""Webhook delivery worker.

Consumes queued webhook jobs, POSTs each payload to its endpoint once, and
publishes one structured log item per job describing the outcome. Failed
deliveries are logged, never retried.

Example:
    >>> from webhook_deliverer import (
    ...     MemoryQueue,
    ...     WebhookDeliveryClient,
    ...     WebhookDeliveryPipeline,
    ...     WebhookJob,
    ... )
    >>> inbound, outbound = MemoryQueue("jobs"), MemoryQueue("logs")
    >>> pipeline = WebhookDeliveryPipeline(WebhookDeliveryClient(), inbound, outbound)
    >>> log_item = await pipeline.handle(
    ...     WebhookJob(
    ...         project_id="p1",
    ...         function_id="f1",
    ...         request_id="r1",
    ...         url="https://example.com/hook",
    ...         payload='{"hello": "world"}',
    ...     )
    ... )
    >>> log_item.status
    <LogStatus.SUCCESS: 'SUCCESS'>
"""

from webhook_deliverer.config import DelivererConfig
from webhook_deliverer.delivery import (
    JSON_CONTENT_TYPE,
    DeliveryFailure,
    DeliveryOutcome,
    DeliveryResponse,
    ResponseInfo,
    WebhookDeliveryClient,
)
from webhook_deliverer.errors import (
    DELIVERER_ERROR_REGISTRY,
    DelivererError,
    DelivererErrorCode,
    PipelineStateError,
    QueueError,
    get_error_message,
)
from webhook_deliverer.formatter import (
    build_failure_log_item,
    build_success_log_item,
    describe_failure,
    format_error_message,
    format_headers,
    format_success_message,
)
from webhook_deliverer.models import LogItem, LogStatus, WebhookJob
from webhook_deliverer.pipeline import WebhookDeliveryPipeline
from webhook_deliverer.queue import (
    ConsumerRef,
    MemoryQueue,
    QueueConsumer,
    QueuePublisher,
    RedisQueueConsumer,
    RedisQueuePublisher,
    enqueue_job,
)
from webhook_deliverer.security import (
    URLValidationError,
    ValidatedURL,
    WebhookURLValidator,
)
from webhook_deliverer.utils import (
    elapsed_ms,
    generate_log_id,
    mysql_datetime3_timestamp,
)

__version__ = "0.1.0"

__all__ = [
    "DELIVERER_ERROR_REGISTRY",
    "JSON_CONTENT_TYPE",
    "ConsumerRef",
    "DelivererConfig",
    "DelivererError",
    "DelivererErrorCode",
    "DeliveryFailure",
    "DeliveryOutcome",
    "DeliveryResponse",
    "LogItem",
    "LogStatus",
    "MemoryQueue",
    "PipelineStateError",
    "QueueConsumer",
    "QueueError",
    "QueuePublisher",
    "RedisQueueConsumer",
    "RedisQueuePublisher",
    "ResponseInfo",
    "URLValidationError",
    "ValidatedURL",
    "WebhookDeliveryClient",
    "WebhookDeliveryPipeline",
    "WebhookJob",
    "WebhookURLValidator",
    "build_failure_log_item",
    "build_success_log_item",
    "describe_failure",
    "elapsed_ms",
    "enqueue_job",
    "format_error_message",
    "format_headers",
    "format_success_message",
    "generate_log_id",
    "get_error_message",
    "mysql_datetime3_timestamp",
]
