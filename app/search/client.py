"""Elasticsearch client construction and index maintenance helpers."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

from elasticsearch import ApiError
from elasticsearch import Elasticsearch
from elasticsearch import TransportError

from app.core.config import Settings
from app.schemas.admin import IndexStats

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30
MAX_RETRIES = 3


class SearchConnectionError(RuntimeError):
    """Raised when the search cluster does not answer a ping."""


def build_search_client(settings: Settings) -> Elasticsearch:
    """Create the Elasticsearch client; connecting is deferred until first request."""
    search = settings.search
    options: dict[str, Any] = {
        "request_timeout": REQUEST_TIMEOUT_SECONDS,
        "max_retries": MAX_RETRIES,
        "retry_on_timeout": True,
    }
    if search.has_credentials:
        options["basic_auth"] = (search.username, search.password)

    transport_level = logging.INFO if settings.is_development else logging.ERROR
    logging.getLogger("elastic_transport").setLevel(transport_level)

    return Elasticsearch(search.node, **options)


def verify_search_connection(client: Elasticsearch) -> bool:
    """Ping the cluster and log its version; raise when it is unreachable."""
    try:
        if not client.ping():
            raise SearchConnectionError("Elasticsearch ping failed")
        info = client.info()
    except (SearchConnectionError, ApiError, TransportError) as exc:
        logger.error("Unable to connect to Elasticsearch: %s", exc)
        raise

    logger.info(
        "Elasticsearch connected successfully: version=%s cluster=%s",
        info["version"]["number"],
        info["cluster_name"],
    )
    return True


def check_search(client: Elasticsearch) -> bool:
    """Return whether the cluster answers a ping without raising."""
    try:
        return bool(client.ping())
    except (ApiError, TransportError):
        logger.warning("Elasticsearch health check failed", exc_info=True)
        return False


def index_exists(client: Elasticsearch, index_name: str) -> bool:
    """Return whether ``index_name`` exists; lookup failures count as absent."""
    try:
        return bool(client.indices.exists(index=index_name))
    except (ApiError, TransportError) as exc:
        logger.error("Error checking if index %s exists: %s", index_name, exc)
        return False


def create_index(client: Elasticsearch, index_name: str, mapping: Mapping[str, Any]) -> bool:
    """Create ``index_name`` with the given ``settings``/``mappings`` body.

    Returns False without touching the cluster when the index already exists.
    """
    if index_exists(client, index_name):
        logger.info("Index %s already exists", index_name)
        return False

    try:
        client.indices.create(index=index_name, **dict(mapping))
    except (ApiError, TransportError) as exc:
        logger.error("Error creating index %s: %s", index_name, exc)
        raise
    logger.info("Index %s created successfully", index_name)
    return True


def delete_index(client: Elasticsearch, index_name: str) -> bool:
    """Delete ``index_name``; returns False when it does not exist."""
    if not index_exists(client, index_name):
        logger.info("Index %s does not exist", index_name)
        return False

    try:
        client.indices.delete(index=index_name)
    except (ApiError, TransportError) as exc:
        logger.error("Error deleting index %s: %s", index_name, exc)
        raise
    logger.info("Index %s deleted successfully", index_name)
    return True


def get_index_stats(client: Elasticsearch, index_name: str) -> IndexStats:
    try:
        stats = client.indices.stats(index=index_name)
    except (ApiError, TransportError) as exc:
        logger.error("Error getting stats for index %s: %s", index_name, exc)
        raise

    primaries = stats["_all"]["primaries"]
    return IndexStats(
        index=index_name,
        document_count=primaries["docs"]["count"],
        store_size=primaries["store"]["size_in_bytes"],
        indexing_total=primaries["indexing"]["index_total"],
        search_total=primaries["search"]["query_total"],
    )


def refresh_index(client: Elasticsearch, index_name: str) -> None:
    """Make recent writes to ``index_name`` searchable."""
    try:
        client.indices.refresh(index=index_name)
    except (ApiError, TransportError) as exc:
        logger.error("Error refreshing index %s: %s", index_name, exc)
        raise
    logger.info("Index %s refreshed", index_name)
