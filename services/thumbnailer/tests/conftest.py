import pytest

from helpers import FakeObjectStore
from thumbnailer.config import Settings
from thumbnailer.pipeline import ThumbnailPipeline


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        sqs_queue_url="https://sqs.us-east-1.amazonaws.com/123456789012/thumbnails",
        sns_topic_arn="arn:aws:sns:us-east-1:123456789012:uploads",
        poll_wait_seconds=0,
        poll_max_messages=5,
        worker_concurrency=2,
    )


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def pipeline(store: FakeObjectStore, settings: Settings) -> ThumbnailPipeline:
    return ThumbnailPipeline(store, settings)
