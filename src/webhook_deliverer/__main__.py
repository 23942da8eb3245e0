"""CLI entry point for the webhook delivery worker."""

from __future__ import annotations

import asyncio
import secrets
import signal
from typing import Any

import click
from pydantic import ValidationError

from webhook_deliverer.config import DelivererConfig
from webhook_deliverer.delivery import WebhookDeliveryClient
from webhook_deliverer.errors import QueueError
from webhook_deliverer.logging_config import configure_logging
from webhook_deliverer.models import WebhookJob
from webhook_deliverer.pipeline import WebhookDeliveryPipeline
from webhook_deliverer.queue import (
    RedisQueueConsumer,
    RedisQueuePublisher,
    enqueue_job,
)


def _load_config(**overrides: Any) -> DelivererConfig:
    """Load config from the environment, applying CLI overrides that were set."""
    try:
        return DelivererConfig(
            **{key: value for key, value in overrides.items() if value is not None}
        )
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


def _parse_header(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"expected NAME:VALUE, got {raw!r}")
    return name.strip(), value.strip()


async def run_worker(config: DelivererConfig) -> None:
    """Run the pipeline against Redis until SIGINT or SIGTERM."""
    import redis.asyncio as redis

    client = redis.from_url(config.redis_url)
    pipeline = WebhookDeliveryPipeline(
        WebhookDeliveryClient.from_config(config),
        RedisQueueConsumer.from_config(client, config),
        RedisQueuePublisher.from_config(client, config),
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await pipeline.start()
    try:
        await stop_event.wait()
    finally:
        await pipeline.stop(drain=True)
        await client.aclose()


@click.group()
def cli() -> None:
    """Webhook deliverer - delivers queued webhooks and logs the outcome."""


@cli.command()
@click.option("--redis-url", help="Override Redis URL")
@click.option("--max-in-flight", type=int, help="Override maximum concurrent deliveries")
@click.option("--log-level", help="Override logging level")
def run(redis_url: str | None, max_in_flight: int | None, log_level: str | None) -> None:
    """Consume webhook jobs until interrupted."""
    config = _load_config(
        redis_url=redis_url, max_in_flight=max_in_flight, log_level=log_level
    )
    configure_logging(config.log_level)
    click.echo(
        f"Consuming {config.inbound_queue} -> {config.outbound_queue} "
        f"(max in flight: {config.max_in_flight})"
    )
    asyncio.run(run_worker(config))


@cli.command()
@click.argument("url")
@click.argument("payload")
@click.option(
    "--header",
    "-H",
    "headers",
    multiple=True,
    help="Request header as NAME:VALUE (repeatable, order kept)",
)
@click.option("--project-id", default="local", help="Project identifier")
@click.option("--function-id", default="local", help="Function identifier")
@click.option("--request-id", help="Request identifier (generated if omitted)")
@click.option("--redis-url", help="Override Redis URL")
def enqueue(
    url: str,
    payload: str,
    headers: tuple[str, ...],
    project_id: str,
    function_id: str,
    request_id: str | None,
    redis_url: str | None,
) -> None:
    """Queue a single webhook job for delivery."""
    config = _load_config(redis_url=redis_url)
    job = WebhookJob(
        project_id=project_id,
        function_id=function_id,
        request_id=request_id or f"req_{secrets.token_hex(8)}",
        url=url,
        payload=payload,
        headers=tuple(_parse_header(h) for h in headers),
    )

    async def _push() -> None:
        import redis.asyncio as redis

        client = redis.from_url(config.redis_url)
        try:
            await enqueue_job(client, config.inbound_queue, job)
        finally:
            await client.aclose()

    try:
        asyncio.run(_push())
    except QueueError as e:
        raise click.ClickException(e.message) from e
    click.echo(f"Queued request {job.request_id} on {config.inbound_queue}")


if __name__ == "__main__":
    cli()
