"""
Consumer loop — poll the work queue, thumbnail, acknowledge.

Runs as a long-lived process (one container per replica):

  Start:  thumbnailer-worker            (or: python -m thumbnailer.worker)
  Scale:  run N replicas; the queue's visibility window keeps a delivery
          with one consumer at a time.

Delivery contract:
  - A message is deleted (acknowledged) only after its own derivative has
    been written. Failed items are left alone and come back after the
    visibility timeout, or land in the dead-letter queue.
  - Duplicates are expected. The derivative key depends only on the source
    key, so a second run overwrites the first.
  - SIGTERM/SIGINT stop polling; items already in flight finish and are
    acknowledged before the process exits.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import TYPE_CHECKING, Any

from thumbnailer.config import Settings
from thumbnailer.exceptions import ThumbnailError, WorkerCrashLoop
from thumbnailer.schemas import ItemOutcome, QueueMessage

if TYPE_CHECKING:
    from thumbnailer.pipeline import ThumbnailPipeline
    from thumbnailer.ports import WorkQueue

logger = logging.getLogger(__name__)


class ThumbnailWorker:
    def __init__(
        self,
        queue: WorkQueue,
        pipeline: ThumbnailPipeline,
        settings: Settings,
        *,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self._queue = queue
        self._pipeline = pipeline
        self._settings = settings
        self._stopping = stop_event or asyncio.Event()
        self._in_flight: set[asyncio.Task] = set()

    def stop(self) -> None:
        """Stop polling; in-flight items still complete."""
        self._stopping.set()

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._in_flight if not task.done())

    async def run(self) -> None:
        """Poll until stopped. A queue failure propagates after draining."""
        settings = self._settings
        logger.info(
            "Starting image processor (concurrency=%d, batch=%d, wait=%ds)",
            settings.worker_concurrency,
            settings.poll_max_messages,
            settings.poll_wait_seconds,
        )
        try:
            while not self._stopping.is_set():
                free = await self._wait_for_free_slot()
                if self._stopping.is_set():
                    break

                messages = await self._poll(min(settings.poll_max_messages, free))
                if messages is None:
                    break
                if not messages:
                    logger.debug("No messages")
                    continue

                for message in messages:
                    task = asyncio.create_task(self.process_message(message))
                    self._in_flight.add(task)
                    task.add_done_callback(self._on_item_done)
        finally:
            await self._drain()
            logger.info("Image processor stopped")

    async def process_message(self, message: QueueMessage) -> ItemOutcome:
        """Run the pipeline for one delivery and acknowledge it on success.

        Never raises for an item failure; the outcome record says what
        happened.
        """
        if message.receive_count > 1:
            logger.info(
                "Message %s delivered %d times", message.message_id, message.receive_count,
            )

        try:
            derivative = await self._pipeline.process(message.body)
        except ThumbnailError as exc:
            logger.warning(
                "Item failed message_id=%s source=%s error=%s retryable=%s: %s",
                message.message_id,
                exc.source,
                exc.code,
                exc.retryable,
                exc.detail,
            )
            return ItemOutcome(
                message_id=message.message_id,
                status="failed",
                source=str(exc.source) if exc.source else None,
                error_code=exc.code,
                error_detail=exc.detail,
                retryable=exc.retryable,
            )
        except Exception as exc:
            logger.exception("Image processing failed for message %s", message.message_id)
            return ItemOutcome(
                message_id=message.message_id,
                status="failed",
                error_code="internal_error",
                error_detail=str(exc),
                retryable=True,
            )

        acknowledged = await self._acknowledge(message)
        return ItemOutcome(
            message_id=message.message_id,
            status="completed",
            source=str(derivative.source),
            derivative_key=derivative.target.key,
            acknowledged=acknowledged,
        )

    # ── internals ────────────────────────────────────────────────────────────

    def _on_item_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Item task crashed", exc_info=exc)
            return
        outcome = task.result()
        logger.debug("Item outcome: %s", outcome.model_dump_json())

    async def _acknowledge(self, message: QueueMessage) -> bool:
        # Derivative is already stored; a redelivery will overwrite it.
        try:
            await self._queue.delete(message.receipt_handle)
        except ThumbnailError as exc:
            logger.warning(
                "Could not delete message %s after success: %s",
                message.message_id,
                exc.detail,
            )
            return False
        except Exception:
            logger.exception("Unexpected error deleting message %s", message.message_id)
            return False
        return True

    async def _wait_for_free_slot(self) -> int:
        limit = self._settings.worker_concurrency
        while self.in_flight >= limit:
            pending = {task for task in self._in_flight if not task.done()}
            await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        return limit - self.in_flight

    async def _poll(self, max_items: int) -> list[QueueMessage] | None:
        """Long-poll the queue; None means shutdown was requested meanwhile."""
        poll = asyncio.ensure_future(
            self._queue.poll(max_items, self._settings.poll_wait_seconds)
        )
        stop = asyncio.ensure_future(self._stopping.wait())
        try:
            done, _ = await asyncio.wait({poll, stop}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            poll.cancel()
            raise
        finally:
            stop.cancel()

        if poll in done:
            return poll.result()

        # Anything the cancelled receive picked up reappears after the
        # visibility timeout.
        poll.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await poll
        return None

    async def _drain(self) -> None:
        pending = [task for task in self._in_flight if not task.done()]
        if pending:
            logger.info("Waiting for %d in-flight item(s)", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)


# ── Process entry point ──────────────────────────────────────────────────────

async def serve(settings: Settings, *, session: Any = None) -> None:
    """Build AWS clients, run the worker under supervision until signalled.

    ``session`` defaults to an aioboto3 session built from ``settings``.
    """
    from thumbnailer.aws import aws_session, client_kwargs
    from thumbnailer.pipeline import ThumbnailPipeline
    from thumbnailer.queue import SqsWorkQueue
    from thumbnailer.storage import S3ObjectStore
    from thumbnailer.supervisor import supervise

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGTERM, signal.SIGINT)
    for sig in signals:
        loop.add_signal_handler(sig, stop_event.set)

    if session is None:
        session = aws_session(settings)
    kwargs = client_kwargs(settings)

    async def run_once() -> None:
        async with session.client("s3", **kwargs) as s3, session.client("sqs", **kwargs) as sqs:
            store = S3ObjectStore(s3, cache_control=settings.thumbnail_cache_control)
            worker = ThumbnailWorker(
                SqsWorkQueue(sqs, settings.sqs_queue_url),
                ThumbnailPipeline(store, settings),
                settings,
                stop_event=stop_event,
            )
            await worker.run()

    try:
        await supervise(
            run_once,
            stop_event=stop_event,
            initial_backoff=settings.restart_backoff_initial_secs,
            max_backoff=settings.restart_backoff_max_secs,
            max_consecutive_failures=settings.max_consecutive_restarts,
            healthy_after=settings.healthy_run_secs,
        )
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


def main() -> None:
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s:%(name)s: %(message)s",
    )
    if not settings.sqs_queue_url:
        raise SystemExit("SQS_QUEUE_URL is not configured")

    try:
        asyncio.run(serve(settings))
    except WorkerCrashLoop as exc:
        logger.critical("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
