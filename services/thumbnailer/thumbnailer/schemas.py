"""
Thumbnailer — wire and record types.

``WorkItem`` travels as the flat JSON payload ``{"bucket": ..., "key": ...}``.
On the queue side that payload normally arrives wrapped in an SNS
notification envelope; ``decode_work_item`` unwraps it in one step.
"""
from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from thumbnailer.exceptions import PayloadError


class StorageObjectRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    bucket: str = Field(min_length=1)
    key: str = Field(min_length=1)

    def __str__(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


class WorkItem(BaseModel):
    """Unit of work: one source object to thumbnail."""

    model_config = ConfigDict(frozen=True)

    source: StorageObjectRef

    def to_payload(self) -> str:
        return json.dumps({"bucket": self.source.bucket, "key": self.source.key})


class _FlatPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    bucket: str = Field(min_length=1)
    key: str = Field(min_length=1)


class SnsEnvelope(BaseModel):
    """The subset of an SNS-to-SQS notification body we rely on."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: Literal["Notification"] = Field(alias="Type")
    message: str = Field(alias="Message")
    message_id: str | None = Field(default=None, alias="MessageId")
    topic_arn: str | None = Field(default=None, alias="TopicArn")


def _load_json(raw: str, what: str) -> object:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise PayloadError(f"{what} is not valid JSON ({exc})") from exc


def decode_work_item(body: str) -> WorkItem:
    """Decode a queue message body into a ``WorkItem``.

    Accepts the SNS envelope (default SNS → SQS subscription) or a raw
    delivery body. Raises ``PayloadError`` for anything else.
    """
    outer = _load_json(body, "message body")
    if not isinstance(outer, dict):
        raise PayloadError("message body is not a JSON object")

    if "Message" in outer and "Type" in outer:
        try:
            envelope = SnsEnvelope.model_validate(outer)
        except ValidationError as exc:
            raise PayloadError(f"bad notification envelope ({exc.error_count()} errors)") from exc
        inner = _load_json(envelope.message, "notification message")
    else:
        inner = outer

    try:
        flat = _FlatPayload.model_validate(inner)
    except ValidationError as exc:
        raise PayloadError(f"missing or empty bucket/key ({exc.error_count()} errors)") from exc
    return WorkItem(source=StorageObjectRef(bucket=flat.bucket, key=flat.key))


class QueueMessage(BaseModel):
    """One delivery from the work queue."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    body: str
    receipt_handle: str  # delivery token, required to acknowledge
    receive_count: int = 1


class Derivative(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: StorageObjectRef
    target: StorageObjectRef
    body: bytes
    content_type: str


class FilterResult(BaseModel):
    """Outcome of the upload filter for one object in an event."""

    status: Literal["published", "skipped"]
    bucket: str = ""
    key: str = ""
    reason: str | None = None
    message_id: str | None = None


class ItemOutcome(BaseModel):
    """Per-item record produced by the consumer loop."""

    message_id: str
    status: Literal["completed", "failed"]
    source: str | None = None
    derivative_key: str | None = None
    error_code: str | None = None
    error_detail: str | None = None
    retryable: bool | None = None
    acknowledged: bool = False
