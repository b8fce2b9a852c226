"""
SQS work queue — long-poll receive and delete-on-success.

Deleting a message with its receipt handle is the only way to acknowledge
a delivery. Anything not deleted reappears after the queue's visibility
timeout; the redrive policy configured on the queue moves it to the
dead-letter queue after ``maxReceiveCount`` attempts.
"""
from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from thumbnailer.exceptions import TransientError
from thumbnailer.schemas import QueueMessage

logger = logging.getLogger(__name__)


class SqsWorkQueue:
    def __init__(self, client: Any, queue_url: str) -> None:
        self._sqs = client
        self._queue_url = queue_url

    async def poll(self, max_items: int, wait_seconds: int) -> list[QueueMessage]:
        try:
            result = await self._sqs.receive_message(
                QueueUrl=self._queue_url,
                MaxNumberOfMessages=max_items,
                WaitTimeSeconds=wait_seconds,
                AttributeNames=["ApproximateReceiveCount"],
            )
        except (BotoCoreError, ClientError) as exc:
            raise TransientError("SQS receive_message", str(exc)) from exc

        messages = []
        for raw in result.get("Messages", []):
            attributes = raw.get("Attributes", {})
            messages.append(
                QueueMessage(
                    message_id=raw.get("MessageId", ""),
                    body=raw.get("Body", ""),
                    receipt_handle=raw["ReceiptHandle"],
                    receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
                )
            )
        if messages:
            logger.debug("Received %d message(s)", len(messages))
        return messages

    async def delete(self, receipt_handle: str) -> None:
        try:
            await self._sqs.delete_message(
                QueueUrl=self._queue_url,
                ReceiptHandle=receipt_handle,
            )
        except (BotoCoreError, ClientError) as exc:
            raise TransientError("SQS delete_message", str(exc)) from exc
