"""Inbound and outbound queues with Redis backend and in-memory variant.

The consumer side pulls ``WebhookJob`` messages and runs a handler for
each one, up to ``max_in_flight`` at a time. The publisher side pushes
``LogItem`` messages without waiting for confirmation.

Redis layout:
    - Jobs are LPUSHed onto the inbound list and popped with BRPOP (FIFO).
    - Log items are LPUSHed onto the outbound list as camelCase JSON.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from redis.exceptions import RedisError

from webhook_deliverer.errors import QueueError
from webhook_deliverer.models import LogItem, WebhookJob

if TYPE_CHECKING:
    import redis.asyncio as redis

    from webhook_deliverer.config import DelivererConfig

logger = logging.getLogger(__name__)

__all__ = [
    "ConsumeFn",
    "ConsumerRef",
    "MemoryQueue",
    "QueueConsumer",
    "QueuePublisher",
    "RedisQueueConsumer",
    "RedisQueuePublisher",
    "enqueue_job",
]

ConsumeFn = Callable[[WebhookJob], Awaitable[Any]]

# Pause after a failed fetch so a broken connection does not spin the loop
FETCH_ERROR_PAUSE = 1.0


class ConsumerRef(ABC):
    """Handle to a running consumer."""

    @abstractmethod
    async def stop(self, drain: bool = True) -> None:
        """Stop consuming.

        Args:
            drain: Wait for in-flight handlers to finish (otherwise cancel them)
        """
        ...

    @property
    @abstractmethod
    def in_flight(self) -> int:
        """Number of handlers currently running."""
        ...


class QueueConsumer(ABC):
    """Protocol for inbound job queues."""

    @abstractmethod
    def with_consumer(self, fn: ConsumeFn) -> ConsumerRef:
        """Start running ``fn`` for every queued job. Requires a running loop."""
        ...


class QueuePublisher(ABC):
    """Protocol for outbound log queues."""

    @abstractmethod
    def publish(self, item: LogItem) -> None:
        """Publish a log item without waiting for confirmation."""
        ...

    async def flush(self) -> None:
        """Wait until previously published items have been handed off."""
        return None


class _ConsumerLoop(ConsumerRef):
    """Fetch loop shared by the queue backends.

    A slot is taken before each fetch, so at most ``max_in_flight`` jobs are
    ever popped but unfinished.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[WebhookJob | None]],
        fn: ConsumeFn,
        max_in_flight: int,
        cancel_fetch: bool,
        ack: Callable[[], None] | None = None,
    ) -> None:
        self._name = name
        self._fetch = fetch
        self._fn = fn
        self._ack = ack
        self._cancel_fetch = cancel_fetch
        self._slots = asyncio.Semaphore(max_in_flight)
        self._stopping = asyncio.Event()
        self._handlers: set[asyncio.Task[None]] = set()
        self._task = asyncio.create_task(self._run(), name=f"consumer:{name}")

    @property
    def in_flight(self) -> int:
        return len(self._handlers)

    async def _run(self) -> None:
        logger.info(f"Consumer started on {self._name}")
        while not self._stopping.is_set():
            await self._slots.acquire()
            if self._stopping.is_set():
                self._slots.release()
                break
            try:
                job = await self._fetch()
            except asyncio.CancelledError:
                self._slots.release()
                raise
            except Exception as e:
                self._slots.release()
                logger.error(f"Failed to fetch from {self._name}: {e}")
                await asyncio.sleep(FETCH_ERROR_PAUSE)
                continue

            if job is None:
                self._slots.release()
                continue

            task = asyncio.create_task(self._handle(job))
            self._handlers.add(task)
            task.add_done_callback(self._handlers.discard)

    async def _handle(self, job: WebhookJob) -> None:
        try:
            await self._fn(job)
        except Exception:
            logger.exception(
                f"Handler failed for request {job.request_id} from {self._name}"
            )
        finally:
            self._slots.release()
            if self._ack is not None:
                self._ack()

    async def stop(self, drain: bool = True) -> None:
        self._stopping.set()
        if not drain:
            # Frees the slots the fetch loop may be waiting on
            for task in list(self._handlers):
                task.cancel()
        if self._cancel_fetch:
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

        handlers = list(self._handlers)
        if handlers:
            if drain:
                logger.info(
                    f"Draining {len(handlers)} in-flight jobs from {self._name}"
                )
            else:
                for task in handlers:
                    task.cancel()
            await asyncio.gather(*handlers, return_exceptions=True)

        logger.info(f"Consumer stopped on {self._name}")


# =============================================================================
# In-memory backend
# =============================================================================


class MemoryQueue(QueueConsumer, QueuePublisher):
    """In-process queue for local development and tests.

    Acts as a job source (``put`` then ``with_consumer``) and as a log sink
    (``publish`` appends to ``published``).

    Example:
        >>> queue = MemoryQueue(max_in_flight=2)
        >>> await queue.put(job)
        >>> ref = queue.with_consumer(pipeline.handle)
        >>> await queue.join()
        >>> await ref.stop()
    """

    def __init__(self, name: str = "memory", max_in_flight: int = 10) -> None:
        self.name = name
        self.max_in_flight = max_in_flight
        self._jobs: asyncio.Queue[WebhookJob] = asyncio.Queue()
        self.published: list[LogItem] = []

    async def put(self, job: WebhookJob) -> None:
        """Enqueue a job."""
        await self._jobs.put(job)

    @property
    def pending(self) -> int:
        """Jobs waiting to be consumed."""
        return self._jobs.qsize()

    async def join(self) -> None:
        """Wait until every enqueued job has been handled."""
        await self._jobs.join()

    def with_consumer(self, fn: ConsumeFn) -> ConsumerRef:
        return _ConsumerLoop(
            name=self.name,
            fetch=self._jobs.get,
            fn=fn,
            max_in_flight=self.max_in_flight,
            cancel_fetch=True,
            ack=self._jobs.task_done,
        )

    def publish(self, item: LogItem) -> None:
        self.published.append(item)


# =============================================================================
# Redis backend
# =============================================================================


async def enqueue_job(client: redis.Redis, queue_name: str, job: WebhookJob) -> None:
    """Push a job onto a Redis inbound queue.

    Raises:
        QueueError: If Redis rejects the push
    """
    try:
        await client.lpush(queue_name, job.model_dump_json(by_alias=True))
    except RedisError as e:
        raise QueueError(f"Failed to enqueue job on {queue_name}: {e}") from e


class RedisQueueConsumer(QueueConsumer):
    """Consumes webhook jobs from a Redis list.

    Malformed messages cannot be attributed to a project or request, so
    they are logged and dropped.
    """

    def __init__(
        self,
        client: redis.Redis,
        queue_name: str,
        max_in_flight: int = 10,
        poll_timeout: int = 1,
    ) -> None:
        """Initialize Redis consumer.

        Args:
            client: Async Redis client
            queue_name: List key holding queued jobs
            max_in_flight: Maximum concurrent handlers
            poll_timeout: BRPOP timeout in seconds; bounds how long stop waits
        """
        self._redis = client
        self.queue_name = queue_name
        self.max_in_flight = max_in_flight
        self.poll_timeout = poll_timeout

    @classmethod
    def from_config(
        cls, client: redis.Redis, config: DelivererConfig
    ) -> RedisQueueConsumer:
        return cls(
            client,
            config.inbound_queue,
            max_in_flight=config.max_in_flight,
            poll_timeout=config.poll_timeout,
        )

    async def _fetch(self) -> WebhookJob | None:
        item = await self._redis.brpop([self.queue_name], timeout=self.poll_timeout)
        if item is None:
            return None

        _, raw = item
        try:
            return WebhookJob.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Dropping malformed job from {self.queue_name}: {e}")
            return None

    def with_consumer(self, fn: ConsumeFn) -> ConsumerRef:
        # BRPOP is not cancelled mid-flight so a popped job is never lost
        return _ConsumerLoop(
            name=self.queue_name,
            fetch=self._fetch,
            fn=fn,
            max_in_flight=self.max_in_flight,
            cancel_fetch=False,
        )


class RedisQueuePublisher(QueuePublisher):
    """Publishes log items to a Redis list.

    ``publish`` schedules the push in the background; push errors are
    logged and never reach the caller.
    """

    def __init__(self, client: redis.Redis, queue_name: str) -> None:
        self._redis = client
        self.queue_name = queue_name
        self._pending: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(
        cls, client: redis.Redis, config: DelivererConfig
    ) -> RedisQueuePublisher:
        return cls(client, config.outbound_queue)

    def publish(self, item: LogItem) -> None:
        task = asyncio.create_task(self._push(item))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _push(self, item: LogItem) -> None:
        try:
            await self._redis.lpush(self.queue_name, item.to_json())
        except Exception as e:
            logger.error(
                f"Failed to publish log item {item.id} to {self.queue_name}: {e}"
            )

    async def flush(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
