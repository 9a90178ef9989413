#==========================================================================================
# stocksync/gateways/shopify.py
# Shopify Admin REST adapter.
# Variants are matched by SKU while walking the product list (Link-header pagination);
# updates are one variant PUT plus one inventory_levels/set call per SKU.
#==========================================================================================
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from stocksync.config import settings
from stocksync.gateways.base import CatalogGateway
from stocksync.sync.diff import to_decimal
from stocksync.sync.errors import RemoteBatchFailed, RemoteFetchFailed, StoreNotConfigured
from stocksync.sync.types import (
    BatchFailure,
    BatchUpdateResult,
    RemoteCatalogItem,
    RemoteUpdateCommand,
)
from stocksync.utils.rate_limit import RateLimiter

logger = logging.getLogger("uvicorn.error")

PRODUCTS_PATH = "products.json?limit=250&fields=id,title,variants"

_STATUS_HINTS = {
    429: "Shopify API rate limit exceeded. Please wait and try again.",
    401: "Shopify authentication failed. Please check your access token.",
    403: "Shopify API access denied. Please check your app permissions.",
}


class ShopifyGateway(CatalogGateway):
    platform_label = "Shopify"

    def __init__(
        self,
        store,
        *,
        client: httpx.AsyncClient | None = None,
        limiter: RateLimiter | None = None,
        location_id: str | int | None = None,
    ):
        if not store.base_url or not store.access_token:
            missing = " ".join(n for n, v in (("URL", store.base_url), ("Access Token", store.access_token)) if not v)
            raise StoreNotConfigured(
                f"Shopify credentials are not configured for this website. Missing: {missing}",
                status_code=400,
            )
        self.store = store
        self._host = urlparse(store.base_url).netloc or store.base_url
        self._limiter = limiter or RateLimiter(min_interval=settings.SHOPIFY_MIN_INTERVAL)
        self._location_id = location_id or settings.SHOPIFY_LOCATION_ID or None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _api(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.store.base_url}/admin/api/{settings.SHOPIFY_API_VERSION}/{path_or_url}"

    async def _request(self, method: str, path_or_url: str, **kwargs) -> httpx.Response:
        await self._limiter.wait_for_host(self._host)
        headers = {
            "X-Shopify-Access-Token": self.store.access_token,
            "Accept": "application/json",
        }
        return await self._client.request(method, self._api(path_or_url), headers=headers, **kwargs)

    def _error_message(self, resp: httpx.Response) -> str:
        return _STATUS_HINTS.get(resp.status_code) or self.describe_error(resp)

    # ---- Products ----

    async def fetch_by_sku(self, skus: Sequence[str]) -> List[RemoteCatalogItem]:
        wanted = {str(s).strip() for s in skus if str(s).strip()}
        found: List[RemoteCatalogItem] = []
        next_url: Optional[str] = PRODUCTS_PATH
        pages = 0
        try:
            while next_url and wanted:
                resp = await self._request("GET", next_url)
                if resp.status_code != 200:
                    raise RemoteFetchFailed(self._error_message(resp))
                try:
                    body = resp.json()
                except ValueError:
                    body = None
                if not isinstance(body, dict):
                    raise RemoteFetchFailed(self.describe_error(resp))
                products = body.get("products") or []
                pages += 1
                if not products:
                    break
                for product in products:
                    for variant in product.get("variants") or []:
                        sku = str(variant.get("sku") or "").strip()
                        if sku and sku in wanted:
                            found.append(self._to_item(product, variant))
                            wanted.discard(sku)
                next_url = (resp.links.get("next") or {}).get("url")
        except httpx.HTTPError as e:
            logger.error("[SHOPIFY] product fetch failed: %s", e)
            raise RemoteFetchFailed(f"Shopify request failed: {e}") from e

        logger.info("[SHOPIFY] matched %d variants across %d pages (%d SKUs unmatched)", len(found), pages, len(wanted))
        return found

    @staticmethod
    def _to_item(product: Dict[str, Any], variant: Dict[str, Any]) -> RemoteCatalogItem:
        name = f"{product.get('title') or 'Product'} - {variant.get('title') or ''}".rstrip(" -")
        qty = variant.get("inventory_quantity")
        return RemoteCatalogItem(
            sku=str(variant.get("sku")).strip(),
            remote_id=variant["id"],
            display_name=name,
            current_price=to_decimal(variant.get("price")),
            current_compare_at_or_regular_price=to_decimal(variant.get("compare_at_price")),
            current_stock=qty if isinstance(qty, int) and not isinstance(qty, bool) else None,
            platform_specific={
                "variant_id": variant["id"],
                "product_id": product.get("id"),
                "inventory_item_id": variant.get("inventory_item_id"),
            },
        )

    # ---- Inventory location ----

    async def _resolve_location_id(self) -> int:
        """Configured location, else the shop's primary (or first) location."""
        if self._location_id:
            return int(self._location_id)
        try:
            resp = await self._request("GET", "locations.json")
        except httpx.HTTPError as e:
            raise RemoteBatchFailed(f"Shopify request failed: {e}") from e
        if resp.status_code != 200:
            raise RemoteBatchFailed(self._error_message(resp))
        locations = (resp.json() or {}).get("locations") or []
        if not locations:
            raise RemoteBatchFailed("Shopify store has no inventory location.")
        primary = next((loc for loc in locations if loc.get("primary")), locations[0])
        self._location_id = primary["id"]
        logger.info("[SHOPIFY] using inventory location %s", self._location_id)
        return int(self._location_id)

    # ---- Batch update ----

    async def batch_update(self, commands: Sequence[RemoteUpdateCommand]) -> BatchUpdateResult:
        result = BatchUpdateResult()
        if not commands:
            return result

        location_id = None
        if any(c.platform_specific.get("inventory_item_id") for c in commands):
            location_id = await self._resolve_location_id()

        for cmd in commands:
            applied_any = bool(result.succeeded_ids)
            try:
                message = await self._update_one(cmd, location_id, applied_any)
            except httpx.HTTPError as e:
                if not applied_any:
                    raise RemoteBatchFailed(f"Shopify request failed: {e}") from e
                message = str(e) or e.__class__.__name__
            if message is None:
                result.succeeded_ids.append(cmd.remote_id)
            else:
                logger.warning("[SHOPIFY] update failed for %s: %s", cmd.sku, message)
                result.failures.append(BatchFailure(id=cmd.remote_id, message=message))

        logger.info(
            "[SHOPIFY] batch update done: %d ok, %d failed",
            len(result.succeeded_ids), len(result.failures),
        )
        return result

    async def _update_one(self, cmd: RemoteUpdateCommand, location_id: Optional[int], applied_any: bool) -> Optional[str]:
        """Returns None on success, else the failure message."""
        variant_id = cmd.platform_specific.get("variant_id") or cmd.remote_id
        body = {"variant": {"id": variant_id, "price": cmd.new_price, "compare_at_price": cmd.new_regular_price}}
        resp = await self._request("PUT", f"variants/{variant_id}.json", json=body)
        if resp.status_code >= 400:
            if resp.status_code in (401, 403) and not applied_any:
                raise RemoteBatchFailed(self._error_message(resp))
            return self._error_message(resp)

        inventory_item_id = cmd.platform_specific.get("inventory_item_id")
        if not inventory_item_id or location_id is None:
            return "Variant has no inventory item; stock was not updated."
        inv = {
            "location_id": location_id,
            "inventory_item_id": inventory_item_id,
            "available": cmd.new_stock,
        }
        resp = await self._request("POST", "inventory_levels/set.json", json=inv)
        if resp.status_code >= 400:
            return self._error_message(resp)
        return None
