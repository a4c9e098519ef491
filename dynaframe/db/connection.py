"""boto3 DynamoDB client factory.

A single shared low-level client, created lazily from settings.  Point
``DYNAMODB_ENDPOINT_URL`` at DynamoDB Local to run against a local store.
"""
from __future__ import annotations

from typing import Any

import boto3

from dynaframe.core.config import get_settings
from dynaframe.core.logging import get_logger
from dynaframe.db.transport import BotoTransport

logger = get_logger(__name__)

_client: Any | None = None


def get_client() -> Any:
    """Return the shared boto3 ``dynamodb`` client (lazy-created, cached)."""
    global _client
    if _client is None:
        settings = get_settings()
        kwargs: dict[str, Any] = {"region_name": settings.aws_region}
        if settings.dynamodb_endpoint_url:
            kwargs["endpoint_url"] = settings.dynamodb_endpoint_url
        _client = boto3.client("dynamodb", **kwargs)
        logger.info(
            "DynamoDB client created  region=%s  endpoint=%s",
            settings.aws_region, settings.dynamodb_endpoint_url or "default",
        )
    return _client


def get_transport() -> BotoTransport:
    """Transport over the shared client (FastAPI dependency)."""
    return BotoTransport(get_client())
