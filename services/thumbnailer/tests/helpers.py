"""Fakes and builders shared by the test modules."""
import asyncio
import contextlib
import io
import json
from collections.abc import Callable
from typing import Any

from PIL import Image

from thumbnailer.exceptions import NotFoundError, TransientError
from thumbnailer.schemas import QueueMessage, StorageObjectRef, WorkItem


# ── Fakes for the three collaborators ────────────────────────────────────────

class FakeObjectStore:
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.puts: list[StorageObjectRef] = []
        self.fail_puts = 0

    def add(self, bucket: str, key: str, body: bytes, content_type: str = "image/jpeg") -> None:
        self.objects[(bucket, key)] = (body, content_type)

    async def get(self, ref: StorageObjectRef) -> bytes:
        await asyncio.sleep(0)
        try:
            return self.objects[(ref.bucket, ref.key)][0]
        except KeyError:
            raise NotFoundError(ref) from None

    async def put(self, ref: StorageObjectRef, body: bytes, content_type: str) -> None:
        await asyncio.sleep(0)
        if self.fail_puts:
            self.fail_puts -= 1
            raise TransientError("S3 put_object", "service unavailable")
        self.objects[(ref.bucket, ref.key)] = (body, content_type)
        self.puts.append(ref)


class FakeWorkQueue:
    def __init__(self, batches: list[list[QueueMessage]] | None = None) -> None:
        self.batches = list(batches or [])
        self.deleted: list[str] = []
        self.poll_calls: list[int] = []
        self.poll_error: Exception | None = None
        self.fail_deletes = 0
        self.delete_error: Exception | None = None

    async def poll(self, max_items: int, wait_seconds: int) -> list[QueueMessage]:
        self.poll_calls.append(max_items)
        if self.poll_error is not None:
            raise self.poll_error
        if self.batches:
            batch = self.batches.pop(0)
            if len(batch) > max_items:
                # leftovers stay visible for the next poll
                self.batches.insert(0, batch[max_items:])
            return batch[:max_items]
        await asyncio.sleep(0.01)
        return []

    async def delete(self, receipt_handle: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        if self.fail_deletes:
            self.fail_deletes -= 1
            raise TransientError("SQS delete_message", "throttled")
        self.deleted.append(receipt_handle)


class FakePublisher:
    def __init__(self, error: Exception | None = None) -> None:
        self.published: list[WorkItem] = []
        self.error = error

    def publish(self, item: WorkItem) -> str:
        if self.error is not None:
            raise self.error
        self.published.append(item)
        return f"msg-{len(self.published)}"


# ── Helpers ──────────────────────────────────────────────────────────────────

def make_image(width: int, height: int, fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    color = (200, 30, 30, 128) if "A" in mode else (200, 30, 30)
    image = Image.new(mode, (width, height), color[: len(mode)] if mode != "L" else 120)
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


def sns_body(bucket: str, key: str) -> str:
    return json.dumps(
        {
            "Type": "Notification",
            "MessageId": "sns-1",
            "TopicArn": "arn:aws:sns:us-east-1:123456789012:uploads",
            "Subject": "New S3 Upload",
            "Message": json.dumps({"bucket": bucket, "key": key}),
        }
    )


def queue_message(key: str, *, bucket: str = "media", handle: str | None = None, n: int = 1) -> QueueMessage:
    return QueueMessage(
        message_id=f"m-{handle or key}",
        body=sns_body(bucket, key),
        receipt_handle=handle or f"rh-{key}",
        receive_count=n,
    )


def s3_event(*keys: str, bucket: str = "media") -> dict:
    return {
        "Records": [
            {
                "eventSource": "aws:s3",
                "eventName": "ObjectCreated:Put",
                "s3": {"bucket": {"name": bucket}, "object": {"key": key, "size": 1024}},
            }
            for key in keys
        ]
    }


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)



class StreamingBody:
    """Stands in for the aiobotocore streaming body of get_object."""

    def __init__(self, data: bytes) -> None:
        self._data = data

    async def __aenter__(self) -> "StreamingBody":
        return self

    async def __aexit__(self, *exc) -> bool:
        return False

    async def read(self) -> bytes:
        return self._data


class FakeSession:
    """aioboto3-like session handing out pre-built clients."""

    def __init__(self, clients: dict[str, Any]) -> None:
        self.clients = clients
        self.opened: list[str] = []
        self.closed: list[str] = []

    def client(self, service: str, **kwargs: Any):
        return self._open(service)

    @contextlib.asynccontextmanager
    async def _open(self, service: str):
        self.opened.append(service)
        try:
            yield self.clients[service]
        finally:
            self.closed.append(service)
