"""Bunny Stream API client.

Thin async wrapper over the video platform's library and collection endpoints.
Every call carries its own bounded timeout; transport failures and error
responses are converted into ``ProviderUnavailable`` / ``ProviderTimeout``.
"""

from functools import lru_cache
from typing import Any

import httpx

from bunnyvault.config import settings
from bunnyvault.core.logging import get_logger
from bunnyvault.modules.provider.exceptions import ProviderTimeout, ProviderUnavailable
from bunnyvault.modules.provider.schemas import (
    PROVIDER_REGION_CODES,
    ProviderCollection,
    ProviderShard,
)
from bunnyvault.modules.shards.models import Region

logger = get_logger(__name__)

COLLECTIONS_PAGE_SIZE = 100
# Upper bound on pages fetched for a single library listing
COLLECTIONS_MAX_PAGES = 50


def build_timeout(
    total: float | None = None,
    connect: float | None = None,
) -> httpx.Timeout:
    """Per-request timeout derived from settings."""
    total = total if total is not None else settings.provider_timeout_seconds
    connect = connect if connect is not None else settings.provider_connect_timeout_seconds
    return httpx.Timeout(timeout=total, connect=min(connect, total))


class StreamProviderClient:
    """Client for the Bunny Stream REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: httpx.Timeout | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.stream_api_key
        self.base_url = (base_url or settings.stream_base_url).rstrip("/")
        self.timeout = timeout or build_timeout()
        self._transport = transport

    # =========================================================================
    # Libraries (shards)
    # =========================================================================

    async def list_shards(self) -> list[ProviderShard]:
        """List all video libraries visible to the API key."""
        data = await self._request("GET", "/library", operation="list_shards")
        items = data.get("items", []) if isinstance(data, dict) else data
        return [ProviderShard.model_validate(item) for item in items or []]

    async def create_library(self, name: str, region: Region) -> ProviderShard:
        """Create a new video library replicated in the given region."""
        data = await self._request(
            "POST",
            "/library",
            operation="create_library",
            json={
                "Name": name,
                "ReplicationRegions": [PROVIDER_REGION_CODES[region]],
            },
        )
        return ProviderShard.model_validate(data)

    # =========================================================================
    # Collections
    # =========================================================================

    async def create_collection(
        self,
        shard_id: str,
        name: str,
        parent_id: str | None = None,
    ) -> ProviderCollection:
        """Create a collection, optionally nested under ``parent_id``."""
        payload: dict[str, Any] = {"name": name}
        if parent_id is not None:
            payload["parentId"] = parent_id

        data = await self._request(
            "POST",
            f"/library/{shard_id}/collections",
            operation="create_collection",
            json=payload,
        )
        collection = ProviderCollection.model_validate(data)
        # Some API versions omit parentId from the create response
        if collection.parent_id is None and parent_id is not None:
            collection = collection.model_copy(update={"parent_id": parent_id})
        return collection

    async def delete_collection(self, shard_id: str, collection_id: str) -> None:
        """Delete a collection from a library."""
        await self._request(
            "DELETE",
            f"/library/{shard_id}/collections/{collection_id}",
            operation="delete_collection",
        )

    async def list_collections(self, shard_id: str) -> list[ProviderCollection]:
        """List every collection in a library as a flat list."""
        collections: list[ProviderCollection] = []

        for page in range(1, COLLECTIONS_MAX_PAGES + 1):
            data = await self._request(
                "GET",
                f"/library/{shard_id}/collections",
                operation="list_collections",
                params={"page": page, "itemsPerPage": COLLECTIONS_PAGE_SIZE},
            )
            if isinstance(data, list):
                return [ProviderCollection.model_validate(item) for item in data]

            items = data.get("items") or []
            collections.extend(ProviderCollection.model_validate(item) for item in items)

            total = data.get("totalItems")
            if not items or total is None or len(collections) >= total:
                break
        else:
            logger.warning(
                "collection_listing_truncated",
                shard_id=shard_id,
                fetched=len(collections),
            )

        return collections

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "AccessKey": self.api_key,
                    "Accept": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            logger.error("provider_timeout", operation=operation, method=method, path=path)
            raise ProviderTimeout(operation) from e
        except httpx.HTTPError as e:
            logger.error(
                "provider_request_failed",
                operation=operation,
                method=method,
                path=path,
                error=str(e),
            )
            raise ProviderUnavailable(operation, str(e)) from e

        if response.is_error:
            logger.error(
                "provider_error_response",
                operation=operation,
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise ProviderUnavailable(operation, f"HTTP {response.status_code}")

        logger.debug(
            "provider_call_succeeded",
            operation=operation,
            method=method,
            path=path,
            status_code=response.status_code,
        )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise ProviderUnavailable(operation, "invalid JSON in response") from e


@lru_cache
def get_stream_provider() -> StreamProviderClient:
    """FastAPI dependency returning the process-wide provider client."""
    return StreamProviderClient()
