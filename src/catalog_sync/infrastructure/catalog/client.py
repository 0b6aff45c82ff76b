"""WooCommerce REST API client implementing the CatalogStore port."""

from collections.abc import Sequence
from typing import Any, Optional

import httpx
import orjson
import structlog

from catalog_sync import __version__
from catalog_sync.config import Settings
from catalog_sync.infrastructure.catalog.base import (
    BatchItemResult,
    BatchResponse,
    CatalogStoreError,
    CatalogUnavailableError,
)
from shared.constants import CATALOG_API_PATH, CATALOG_PAGE_SIZE

logger = structlog.get_logger()

# Taxonomy name -> REST collection under /products
TAXONOMY_ENDPOINTS = {
    "categories": "products/categories",
    "tags": "products/tags",
    "brands": "products/brands",
}


class WooCommerceClient:
    """
    Async client for the WooCommerce ``wc/v3`` REST API.

    Use as an async context manager::

        async with WooCommerceClient.from_settings(settings) as catalog:
            ids = await catalog.find_products_by_sku(["A-1", "A-2"])
    """

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: float = 60.0,
        verify_ssl: bool = True,
        query_string_auth: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/") + CATALOG_API_PATH
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.query_string_auth = query_string_auth
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._term_ids: dict[tuple[str, str], int] = {}

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "WooCommerceClient":
        return cls(
            base_url=settings.catalog_base_url,
            consumer_key=settings.catalog_consumer_key,
            consumer_secret=settings.catalog_consumer_secret,
            timeout=settings.catalog_timeout,
            verify_ssl=settings.catalog_verify_ssl,
            query_string_auth=settings.catalog_query_string_auth,
            transport=transport,
        )

    async def __aenter__(self) -> "WooCommerceClient":
        auth = None
        params = None
        if self.query_string_auth:
            params = {
                "consumer_key": self.consumer_key,
                "consumer_secret": self.consumer_secret,
            }
        else:
            auth = httpx.BasicAuth(self.consumer_key, self.consumer_secret)

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            params=params,
            timeout=httpx.Timeout(self.timeout),
            verify=self.verify_ssl,
            transport=self.transport,
            headers={
                "User-Agent": f"catalog-sync/{__version__}",
                "Accept": "application/json",
            },
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise CatalogUnavailableError(f"Catalog store timed out: {method} {path}") from e
        except httpx.TransportError as e:
            raise CatalogUnavailableError(f"Catalog store unreachable: {e}") from e

        try:
            body = orjson.loads(response.content) if response.content else None
        except orjson.JSONDecodeError as e:
            raise CatalogStoreError(
                f"Malformed response from {method} {path}", status_code=response.status_code
            ) from e

        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            raise CatalogStoreError(
                message or f"{method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return body

    async def _get_all(self, path: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Fetch every page of a list endpoint."""
        items: list[dict] = []
        page = 1
        while True:
            body = await self._request(
                "GET", path, params={**(params or {}), "per_page": CATALOG_PAGE_SIZE, "page": page}
            )
            if not isinstance(body, list):
                raise CatalogStoreError(f"Expected a list from GET {path}")
            items.extend(item for item in body if isinstance(item, dict))
            if len(body) < CATALOG_PAGE_SIZE:
                return items
            page += 1

    @staticmethod
    def _batch_results(body: Any, key: str, requested: list[dict[str, Any]]) -> list[BatchItemResult]:
        """Pair batch response items with the request items, in order."""
        if not isinstance(body, dict):
            raise CatalogStoreError("Malformed batch response")
        items = body.get(key) or []
        results = []
        for index, payload in enumerate(requested):
            sku = str(payload.get("sku", ""))
            item = items[index] if index < len(items) else None
            if not isinstance(item, dict):
                results.append(BatchItemResult(sku=sku, error="Missing item in batch response"))
                continue
            error = item.get("error")
            if error:
                message = error.get("message") if isinstance(error, dict) else str(error)
                results.append(BatchItemResult(sku=sku, error=message or "Unknown error"))
            elif not item.get("id"):
                results.append(BatchItemResult(sku=sku, error="Batch item returned no id"))
            else:
                results.append(BatchItemResult(sku=item.get("sku") or sku, id=int(item.get("id") or 0)))
        return results

    async def _batch(
        self, path: str, create: list[dict[str, Any]], update: list[dict[str, Any]]
    ) -> BatchResponse:
        body: dict[str, Any] = {}
        if create:
            body["create"] = create
        if update:
            body["update"] = update
        if not body:
            return BatchResponse()

        response = await self._request("POST", path, json=body)
        return BatchResponse(
            created=self._batch_results(response, "create", create),
            updated=self._batch_results(response, "update", update),
        )

    # -------------------------------------------------------------------------
    # Products and variations
    # -------------------------------------------------------------------------

    async def find_products_by_sku(self, skus: Sequence[str]) -> dict[str, int]:
        found: dict[str, int] = {}
        wanted = list(dict.fromkeys(sku for sku in skus if sku))
        for start in range(0, len(wanted), CATALOG_PAGE_SIZE):
            chunk = wanted[start : start + CATALOG_PAGE_SIZE]
            products = await self._get_all("products", {"sku": ",".join(chunk)})
            for product in products:
                if product.get("sku") and product.get("id"):
                    found[str(product["sku"])] = int(product["id"])
        logger.debug("Resolved existing products", requested=len(wanted), found=len(found))
        return found

    async def batch_products(
        self, create: list[dict[str, Any]], update: list[dict[str, Any]]
    ) -> BatchResponse:
        return await self._batch("products/batch", create, update)

    async def list_variation_skus(self, product_id: int) -> dict[str, int]:
        variations = await self._get_all(f"products/{product_id}/variations")
        return {
            str(variation["sku"]): int(variation["id"])
            for variation in variations
            if variation.get("sku") and variation.get("id")
        }

    async def batch_variations(
        self, product_id: int, create: list[dict[str, Any]], update: list[dict[str, Any]]
    ) -> BatchResponse:
        return await self._batch(f"products/{product_id}/variations/batch", create, update)

    # -------------------------------------------------------------------------
    # Taxonomies and images
    # -------------------------------------------------------------------------

    async def _term_id(self, taxonomy: str, name: str) -> int:
        """Find a term by exact name, creating it when missing."""
        cache_key = (taxonomy, name.lower())
        if cache_key in self._term_ids:
            return self._term_ids[cache_key]

        path = TAXONOMY_ENDPOINTS[taxonomy]
        matches = await self._request("GET", path, params={"search": name, "per_page": CATALOG_PAGE_SIZE})
        term_id = next(
            (
                int(term["id"])
                for term in matches or []
                if isinstance(term, dict) and str(term.get("name", "")).lower() == name.lower()
            ),
            None,
        )
        if term_id is None:
            created = await self._request("POST", path, json={"name": name})
            if not isinstance(created, dict) or not created.get("id"):
                raise CatalogStoreError(f"Could not create {taxonomy} term {name!r}")
            term_id = int(created["id"])
            logger.info("Created catalog term", taxonomy=taxonomy, name=name, term_id=term_id)

        self._term_ids[cache_key] = term_id
        return term_id

    async def assign_taxonomies(
        self,
        product_id: int,
        categories: Sequence[str],
        tags: Sequence[str],
        brand: str,
    ) -> None:
        body: dict[str, Any] = {}
        if categories:
            body["categories"] = [{"id": await self._term_id("categories", name)} for name in categories]
        if tags:
            body["tags"] = [{"id": await self._term_id("tags", name)} for name in tags]
        if brand:
            body["brands"] = [{"id": await self._term_id("brands", brand)}]
        if body:
            await self._request("PUT", f"products/{product_id}", json=body)

    async def update_product_images(self, product_id: int, images: Sequence[str]) -> None:
        await self._request(
            "PUT", f"products/{product_id}", json={"images": [{"src": src} for src in images]}
        )
