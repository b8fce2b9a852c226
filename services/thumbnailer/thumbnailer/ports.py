"""
Collaborator interfaces for the pipeline.

Kept small and SDK-agnostic so tests can pass simple in-memory fakes.
"""
from __future__ import annotations

from typing import Protocol

from thumbnailer.schemas import QueueMessage, StorageObjectRef, WorkItem


class ObjectStore(Protocol):
    """Blob storage. ``get`` raises NotFoundError, both raise TransientError."""

    async def get(self, ref: StorageObjectRef) -> bytes: ...

    async def put(self, ref: StorageObjectRef, body: bytes, content_type: str) -> None: ...


class WorkQueue(Protocol):
    """At-least-once queue with a visibility window."""

    async def poll(self, max_items: int, wait_seconds: int) -> list[QueueMessage]: ...

    async def delete(self, receipt_handle: str) -> None: ...


class Publisher(Protocol):
    """Fan-out transport. Returns the transport's message id."""

    def publish(self, item: WorkItem) -> str: ...


__all__ = ["ObjectStore", "Publisher", "WorkQueue"]
