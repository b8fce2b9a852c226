from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from thumbnailer.keys import KeyRules


def _env_files() -> list[str]:
    """Load .env from repo root (when running from services/thumbnailer) then local .env."""
    base = Path(__file__).resolve().parent.parent.parent.parent  # repo root
    return [str(base / ".env"), ".env"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── AWS ───────────────────────────────────────────────────────────────────
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "us-east-1"
    aws_endpoint_url: str = ""  # LocalStack etc.

    # ── Fan-out / queue ──────────────────────────────────────────────────────
    sqs_queue_url: str = ""
    sns_topic_arn: str = ""
    sns_subject: str = "New S3 Upload"

    # ── Relevance + derivative naming ────────────────────────────────────────
    image_extensions: str = ".jpg,.jpeg,.png,.gif,.bmp,.webp"
    derivative_prefix: str = "derivatives/"
    derivative_suffix: str = "_thumb"

    # ── Resize ───────────────────────────────────────────────────────────────
    thumbnail_max_width: int = 300
    thumbnail_max_height: int = 300
    thumbnail_format: str = "JPEG"
    thumbnail_quality: int = 80
    thumbnail_cache_control: str = "max-age=31536000"

    # ── Consumer loop ────────────────────────────────────────────────────────
    poll_max_messages: int = 1
    poll_wait_seconds: int = 20
    worker_concurrency: int = 4

    # Supervised restart
    restart_backoff_initial_secs: float = 5.0
    restart_backoff_max_secs: float = 300.0
    max_consecutive_restarts: int = 10
    healthy_run_secs: float = 60.0

    log_level: str = "INFO"
    env_name: str = "development"

    @field_validator("derivative_prefix", "derivative_suffix")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("thumbnail_max_width", "thumbnail_max_height", "worker_concurrency")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("thumbnail_quality")
    @classmethod
    def _quality_range(cls, value: int) -> int:
        if not 1 <= value <= 100:
            raise ValueError("must be between 1 and 100")
        return value

    @field_validator("thumbnail_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.upper()
        if value == "JPG":
            value = "JPEG"
        if value not in ("JPEG", "PNG", "WEBP", "GIF"):
            raise ValueError(f"unsupported output format {value!r}")
        return value

    @field_validator("poll_max_messages")
    @classmethod
    def _batch_range(cls, value: int) -> int:
        # SQS ReceiveMessage accepts 1..10
        if not 1 <= value <= 10:
            raise ValueError("must be between 1 and 10")
        return value

    @field_validator("poll_wait_seconds")
    @classmethod
    def _wait_range(cls, value: int) -> int:
        if not 0 <= value <= 20:
            raise ValueError("must be between 0 and 20")
        return value

    @property
    def image_extensions_list(self) -> list[str]:
        exts = []
        for raw in self.image_extensions.split(","):
            ext = raw.strip().lower()
            if not ext:
                continue
            exts.append(ext if ext.startswith(".") else f".{ext}")
        return exts

    def key_rules(self) -> KeyRules:
        return KeyRules(
            derivative_prefix=self.derivative_prefix,
            derivative_suffix=self.derivative_suffix,
            image_extensions=tuple(self.image_extensions_list),
        )
