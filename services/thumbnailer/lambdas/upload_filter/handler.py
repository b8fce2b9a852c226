"""
AWS Lambda handler — Upload Filter

Triggered by S3 ObjectCreated events on the source bucket.

Flow:
  1. Reads every object reference in the event (URL-decoded keys).
  2. Skips derivatives (reserved prefix / marker) and non-image extensions.
  3. Publishes {"bucket", "key"} to the SNS topic for each remaining object.
  4. The topic fans out to the SQS work queue consumed by thumbnailer-worker.

Publish failures are re-raised so Lambda retries the invocation.

Environment variables:
  SNS_TOPIC_ARN        — Topic receiving work items
  IMAGE_EXTENSIONS     — Comma-separated allow-list (default: common image types)
  DERIVATIVE_PREFIX    — Reserved derivative prefix (default: derivatives/)
  DERIVATIVE_SUFFIX    — Derivative marker (default: _thumb)
"""
from __future__ import annotations

import logging

from thumbnailer.aws import boto3_client
from thumbnailer.config import Settings
from thumbnailer.notify import SnsPublisher, filter_upload_event

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Built on first invocation and reused while the execution environment is warm
_settings: Settings | None = None
_publisher: SnsPublisher | None = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def _get_publisher() -> SnsPublisher:
    global _publisher
    if _publisher is None:
        settings = _get_settings()
        _publisher = SnsPublisher(
            boto3_client("sns", settings),
            settings.sns_topic_arn,
            settings.sns_subject,
        )
    return _publisher


def handler(event: dict, context: object) -> dict:
    """Lambda entry point — turns S3 upload events into work items."""
    settings = _get_settings()
    results = filter_upload_event(event, _get_publisher(), settings.key_rules())
    published = sum(1 for r in results if r.status == "published")
    logger.info("Upload event handled: %d published, %d skipped", published, len(results) - published)
    return {"statusCode": 200, "results": [r.model_dump() for r in results]}
