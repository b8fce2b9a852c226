"""
S3 object store — async get/put for the worker.

Wraps an already-open aioboto3 S3 client. botocore errors are translated
into the thumbnailer error taxonomy:

  NoSuchKey / 404 on get   → NotFoundError (terminal for the item)
  anything else            → TransientError (redelivery will retry)
"""
from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from thumbnailer.exceptions import NotFoundError, TransientError
from thumbnailer.schemas import StorageObjectRef

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class S3ObjectStore:
    def __init__(self, client: Any, *, cache_control: str | None = None) -> None:
        self._s3 = client
        self._cache_control = cache_control

    async def get(self, ref: StorageObjectRef) -> bytes:
        try:
            response = await self._s3.get_object(Bucket=ref.bucket, Key=ref.key)
            async with response["Body"] as stream:
                return await stream.read()
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise NotFoundError(ref) from exc
            raise TransientError("S3 get_object", str(exc)) from exc
        except BotoCoreError as exc:
            raise TransientError("S3 get_object", str(exc)) from exc

    async def put(self, ref: StorageObjectRef, body: bytes, content_type: str) -> None:
        params: dict[str, Any] = {
            "Bucket": ref.bucket,
            "Key": ref.key,
            "Body": body,
            "ContentType": content_type,
        }
        if self._cache_control:
            params["CacheControl"] = self._cache_control
        try:
            await self._s3.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise TransientError("S3 put_object", str(exc)) from exc
        logger.debug("Stored %s (%d bytes, %s)", ref, len(body), content_type)
