"""
Per-item pipeline: decode → fetch → resize → store.

Each step may raise a ``ThumbnailError``; the caller (the consumer loop)
decides whether to acknowledge. Nothing here touches the queue.

The derivative key depends only on the source key, so processing the same
source twice overwrites one object instead of creating two.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING

from thumbnailer.exceptions import ThumbnailError
from thumbnailer.imaging import resize_image
from thumbnailer.keys import content_type_for, derivative_key
from thumbnailer.schemas import Derivative, StorageObjectRef, WorkItem, decode_work_item

if TYPE_CHECKING:
    from thumbnailer.config import Settings
    from thumbnailer.ports import ObjectStore

logger = logging.getLogger(__name__)


class ThumbnailPipeline:
    def __init__(self, store: ObjectStore, settings: Settings) -> None:
        self._store = store
        self._settings = settings
        self._rules = settings.key_rules()

    def derivative_for(self, item: WorkItem) -> StorageObjectRef:
        return StorageObjectRef(
            bucket=item.source.bucket,
            key=derivative_key(item.source.key, self._rules),
        )

    async def process(self, body: str) -> Derivative:
        """Run the pipeline for one queue message body."""
        item = decode_work_item(body)
        try:
            return await self._thumbnail(item)
        except ThumbnailError as exc:
            if exc.source is None:
                exc.source = item.source
            raise

    async def _thumbnail(self, item: WorkItem) -> Derivative:
        logger.info("Processing %s", item.source)
        original = await self._store.get(item.source)

        # CPU-bound → offload to the default thread pool
        settings = self._settings
        loop = asyncio.get_running_loop()
        encoded = await loop.run_in_executor(
            None,
            functools.partial(
                resize_image,
                original,
                settings.thumbnail_max_width,
                settings.thumbnail_max_height,
                settings.thumbnail_format,
                settings.thumbnail_quality,
            ),
        )

        derivative = Derivative(
            source=item.source,
            target=self.derivative_for(item),
            body=encoded,
            content_type=content_type_for(settings.thumbnail_format),
        )
        await self._store.put(derivative.target, derivative.body, derivative.content_type)
        logger.info("Created thumbnail: %s", derivative.target)
        return derivative
