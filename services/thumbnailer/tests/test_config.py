import pytest
from pydantic import ValidationError

from thumbnailer.config import Settings
from thumbnailer.keys import KeyRules


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.thumbnail_max_width == 300
    assert settings.thumbnail_format == "JPEG"
    assert settings.poll_wait_seconds == 20
    assert settings.image_extensions_list == [".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"]


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SQS_QUEUE_URL", "https://sqs.local/q")
    monkeypatch.setenv("IMAGE_EXTENSIONS", "JPG, png ,,.Webp")
    monkeypatch.setenv("THUMBNAIL_FORMAT", "webp")

    settings = Settings(_env_file=None)

    assert settings.sqs_queue_url == "https://sqs.local/q"
    assert settings.image_extensions_list == [".jpg", ".png", ".webp"]
    assert settings.thumbnail_format == "WEBP"


def test_key_rules() -> None:
    settings = Settings(_env_file=None, derivative_prefix="thumbnails/", image_extensions="png")
    assert settings.key_rules() == KeyRules(
        derivative_prefix="thumbnails/",
        derivative_suffix="_thumb",
        image_extensions=(".png",),
    )


@pytest.mark.parametrize(
    "overrides",
    [
        {"derivative_prefix": ""},
        {"derivative_suffix": ""},
        {"thumbnail_quality": 0},
        {"thumbnail_max_width": 0},
        {"thumbnail_format": "TIFF"},
        {"poll_max_messages": 11},
        {"poll_wait_seconds": 21},
        {"worker_concurrency": 0},
    ],
)
def test_invalid_values_rejected(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)
