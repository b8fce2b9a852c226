"""
Upload filter — decide which uploads become work items and publish them.

Runs once per storage-change event inside an event-driven host (Lambda).
Stateless: it reads the event, publishes zero or more messages and never
touches storage. Running it twice on the same event may publish twice;
downstream processing overwrites the same derivative, so that is harmless.

Accepted event shapes:
  S3 notification          {"Records": [{"s3": {...}}]}
  S3 via SQS               {"Records": [{"eventSource": "aws:sqs", "body": "<S3 event>"}]}
  S3 via SNS               {"Records": [{"EventSource": "aws:sns", "Sns": {"Message": "<S3 event>"}}]}
"""
from __future__ import annotations

import json
import logging
import urllib.parse
from collections.abc import Iterator
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from thumbnailer.exceptions import TransientError
from thumbnailer.keys import KeyRules, skip_reason
from thumbnailer.ports import Publisher
from thumbnailer.schemas import FilterResult, StorageObjectRef, WorkItem

logger = logging.getLogger(__name__)


class SnsPublisher:
    """Publishes work items to an SNS topic with a blocking boto3 client."""

    def __init__(self, client: Any, topic_arn: str, subject: str = "New S3 Upload") -> None:
        self._sns = client
        self._topic_arn = topic_arn
        self._subject = subject

    def publish(self, item: WorkItem) -> str:
        try:
            response = self._sns.publish(
                TopicArn=self._topic_arn,
                Message=item.to_payload(),
                Subject=self._subject,
            )
        except (BotoCoreError, ClientError) as exc:
            raise TransientError("SNS publish", str(exc)) from exc
        return response.get("MessageId", "")


def _load_wrapped(raw: object) -> dict | None:
    """Parse the JSON payload of an SQS/SNS wrapper; None if it is not an object."""
    try:
        payload = json.loads(raw or "{}")
    except (TypeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def iter_upload_records(event: dict) -> Iterator[dict | None]:
    """Yield the raw S3 records of ``event``, unwrapping SQS/SNS deliveries.

    A wrapper whose payload cannot be read yields None so one bad record
    does not fail the rest of the batch.
    """
    for record in event.get("Records", []) or []:
        if not isinstance(record, dict):
            yield None
        elif record.get("eventSource") == "aws:sqs":
            body = _load_wrapped(record.get("body"))
            if body is None:
                yield None
            else:
                yield from iter_upload_records(body)
        elif record.get("EventSource") == "aws:sns":
            message = _load_wrapped((record.get("Sns") or {}).get("Message"))
            if message is None:
                yield None
            else:
                yield from iter_upload_records(message)
        else:
            yield record


def _object_ref(record: dict) -> StorageObjectRef | None:
    s3_info = record.get("s3") or {}
    bucket = (s3_info.get("bucket") or {}).get("name", "")
    key = urllib.parse.unquote_plus((s3_info.get("object") or {}).get("key", ""))
    if not bucket or not key:
        return None
    return StorageObjectRef(bucket=bucket, key=key)


def filter_upload_event(
    event: dict,
    publisher: Publisher,
    rules: KeyRules,
) -> list[FilterResult]:
    """Publish one work item per relevant object in ``event``.

    Irrelevant objects produce a ``skipped`` result. A publish failure is
    raised to the host so it retries the whole invocation.
    """
    results: list[FilterResult] = []

    for record in iter_upload_records(event):
        if record is None:
            logger.warning("Skipping malformed wrapped record")
            results.append(FilterResult(status="skipped", reason="malformed wrapped record"))
            continue

        ref = _object_ref(record)
        if ref is None:
            logger.warning("Skipping record without bucket or key: %s", record.get("eventName"))
            results.append(FilterResult(status="skipped", reason="missing bucket or key"))
            continue

        logger.info("New file uploaded: %s", ref)

        reason = skip_reason(ref.key, rules)
        if reason is not None:
            logger.info("Skipping %s: %s", ref.key, reason)
            results.append(
                FilterResult(status="skipped", bucket=ref.bucket, key=ref.key, reason=reason)
            )
            continue

        try:
            message_id = publisher.publish(WorkItem(source=ref))
        except Exception:
            logger.exception("Error publishing work item for %s", ref)
            raise
        logger.info("Published work item for %s (message %s)", ref, message_id)
        results.append(
            FilterResult(
                status="published",
                bucket=ref.bucket,
                key=ref.key,
                message_id=message_id,
            )
        )

    return results
