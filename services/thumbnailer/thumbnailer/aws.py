"""
AWS client construction.

Clients are built explicitly from ``Settings`` and handed to the components
that need them; nothing in the package creates a client at import time.
Empty credentials fall through to the default credential chain
(instance role, IRSA, env vars).
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

import aioboto3
import boto3

if TYPE_CHECKING:
    from thumbnailer.config import Settings


def _credentials(settings: Settings) -> dict[str, str]:
    if not settings.aws_access_key_id:
        return {}
    return {
        "aws_access_key_id": settings.aws_access_key_id,
        "aws_secret_access_key": settings.aws_secret_access_key,
    }


def client_kwargs(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for ``session.client(...)``."""
    return {"endpoint_url": settings.aws_endpoint_url or None}


def aws_session(settings: Settings) -> aioboto3.Session:
    """Async session for the long-running worker."""
    return aioboto3.Session(region_name=settings.aws_region, **_credentials(settings))


def boto3_client(service: str, settings: Settings) -> Any:
    """Blocking client for the Lambda host."""
    session = boto3.Session(region_name=settings.aws_region, **_credentials(settings))
    return session.client(service, **client_kwargs(settings))
