"""
Thumbnailer — error taxonomy.

Every error carries a stable ``code`` and a ``retryable`` flag so the worker
can write a per-item error record without inspecting exception types.
Retryable errors rely on queue redelivery; non-retryable ones end in the
queue's dead-letter mechanism once its receive limit is reached.

Skipping an irrelevant upload is a normal outcome, not an error: see
``thumbnailer.schemas.FilterResult``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from thumbnailer.schemas import StorageObjectRef


class ThumbnailError(Exception):
    code = "thumbnail_error"
    retryable = False

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail
        # Set by the pipeline once the work item is known
        self.source: StorageObjectRef | None = None


# ── Per-item, terminal ───────────────────────────────────────────────────────

class PayloadError(ThumbnailError):
    code = "payload_invalid"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Malformed work item: {reason}.")


class NotFoundError(ThumbnailError):
    code = "source_not_found"

    def __init__(self, ref: StorageObjectRef) -> None:
        super().__init__(f"Source object s3://{ref.bucket}/{ref.key} does not exist.")
        self.ref = ref


class DecodeError(ThumbnailError):
    code = "image_undecodable"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Source is not a decodable image: {reason}.")


# ── Infrastructure, retryable ────────────────────────────────────────────────

class TransientError(ThumbnailError):
    code = "transient"
    retryable = True

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"{operation} failed: {reason}.")
        self.operation = operation


# ── Process level ────────────────────────────────────────────────────────────

class WorkerCrashLoop(Exception):
    """The consumer failed too many times in a row; let the host restart us."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Worker crashed {attempts} times in a row; giving up.")
        self.attempts = attempts
