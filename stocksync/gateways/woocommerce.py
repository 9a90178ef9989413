#==========================================================================================
# stocksync/gateways/woocommerce.py
# WooCommerce REST v3 adapter.
# Fetch products by SKU (chunked) and apply price/stock updates through the batch endpoints.
#==========================================================================================
from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence

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

logger = logging.getLogger("uvicorn.error")

UNKNOWN_FAILURE = "Update failed for an unknown reason."


def format_wc_price(value) -> str:
    try:
        d = Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        # avoid scientific notation and guarantee 2 decimals
        return f"{d:.2f}"
    except Exception:
        return "0.00"


def _stock_or_none(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class WooCommerceGateway(CatalogGateway):
    platform_label = "WooCommerce"

    def __init__(self, store, *, client: httpx.AsyncClient | None = None, per_page: int | None = None):
        if not store.base_url or not store.consumer_key or not store.consumer_secret:
            raise StoreNotConfigured(
                "WooCommerce credentials are not configured for this website.", status_code=400
            )
        self.store = store
        self.per_page = per_page or settings.WC_PER_PAGE
        self._auth = (store.consumer_key, store.consumer_secret)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT, verify=settings.WC_VERIFY_SSL
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _api(self, path: str) -> str:
        return f"{self.store.base_url}/wp-json/wc/v3/{path}"

    # ---- Products ----

    async def fetch_by_sku(self, skus: Sequence[str]) -> List[RemoteCatalogItem]:
        """Fetch products for the given SKUs, per_page SKUs per request."""
        wanted = [s for s in dict.fromkeys(str(s).strip() for s in skus) if s]
        items: List[RemoteCatalogItem] = []
        for i in range(0, len(wanted), self.per_page):
            chunk = wanted[i:i + self.per_page]
            params = {"sku": ",".join(chunk), "per_page": self.per_page}
            try:
                resp = await self._client.get(self._api("products"), params=params, auth=self._auth)
            except httpx.HTTPError as e:
                logger.error("[WC] fetch failed for %d SKUs: %s", len(chunk), e)
                raise RemoteFetchFailed(f"WooCommerce request failed: {e}") from e
            if resp.status_code != 200:
                message = self.describe_error(resp)
                logger.error("[WC] fetch failed for %d SKUs: %s", len(chunk), message)
                raise RemoteFetchFailed(message)
            try:
                products = resp.json()
            except ValueError:
                products = None
            if not isinstance(products, list):
                message = self.describe_error(resp)
                logger.error("[WC] unexpected product list body: %s", message)
                raise RemoteFetchFailed(message)
            for product in products:
                item = self._to_item(product) if isinstance(product, dict) else None
                if item is not None:
                    items.append(item)
        logger.info("[WC] fetched %d products for %d SKUs from %s", len(items), len(wanted), self.store.base_url)
        return items

    @staticmethod
    def _to_item(product: Dict[str, Any]) -> Optional[RemoteCatalogItem]:
        sku = str(product.get("sku") or "").strip()
        if not sku or product.get("id") is None:
            return None
        sale_raw = str(product.get("sale_price") or "").strip()
        return RemoteCatalogItem(
            sku=sku,
            remote_id=product["id"],
            display_name=product.get("name") or "",
            # no sale price set means the sale price is 0
            current_price=to_decimal(sale_raw) if sale_raw else Decimal("0"),
            current_compare_at_or_regular_price=to_decimal(product.get("regular_price")),
            current_stock=_stock_or_none(product.get("stock_quantity")),
            platform_specific={
                "product_id": product["id"],
                "parent_id": int(product.get("parent_id") or 0),
                "type": product.get("type"),
            },
        )

    @staticmethod
    def _update_body(cmd: RemoteUpdateCommand) -> Dict[str, Any]:
        price = to_decimal(cmd.new_price)
        return {
            "id": cmd.remote_id,
            "sale_price": "" if price is None or price == 0 else format_wc_price(price),
            "regular_price": "" if cmd.new_regular_price is None else format_wc_price(cmd.new_regular_price),
            "manage_stock": True,
            "stock_quantity": cmd.new_stock,
        }

    # ---- Batch update ----

    async def batch_update(self, commands: Sequence[RemoteUpdateCommand]) -> BatchUpdateResult:
        """
        POST {update:[...]} to products/batch (or the parent's variations/batch),
        per_page items per request. Every command ends up in succeeded_ids or failures.
        """
        result = BatchUpdateResult()
        if not commands:
            return result

        groups: Dict[int, List[RemoteUpdateCommand]] = {}
        for cmd in commands:
            parent = int(cmd.platform_specific.get("parent_id") or 0)
            groups.setdefault(parent, []).append(cmd)

        for parent, cmds in groups.items():
            path = f"products/{parent}/variations/batch" if parent else "products/batch"
            for i in range(0, len(cmds), self.per_page):
                chunk = cmds[i:i + self.per_page]
                await self._post_batch(path, chunk, result)

        logger.info(
            "[WC] batch update done: %d ok, %d failed",
            len(result.succeeded_ids), len(result.failures),
        )
        return result

    async def _post_batch(self, path: str, chunk: List[RemoteUpdateCommand], result: BatchUpdateResult) -> None:
        applied_any = bool(result.succeeded_ids)
        body = {"update": [self._update_body(c) for c in chunk]}
        try:
            resp = await self._client.post(self._api(path), json=body, auth=self._auth)
        except httpx.HTTPError as e:
            message = f"WooCommerce request failed: {e}"
            if not applied_any:
                raise RemoteBatchFailed(message) from e
            logger.error("[WC] batch request failed after partial apply: %s", e)
            result.failures.extend(BatchFailure(id=c.remote_id, message=message) for c in chunk)
            return

        if resp.status_code >= 400:
            message = self.describe_error(resp)
            # per-item results only come back in a 200 body
            if not applied_any:
                raise RemoteBatchFailed(message)
            logger.error("[WC] batch request rejected: %s", message)
            result.failures.extend(BatchFailure(id=c.remote_id, message=message) for c in chunk)
            return

        try:
            data = resp.json() or {}
        except ValueError:
            data = {}
        entries = data.get("update") if isinstance(data, dict) else None
        entries = entries if isinstance(entries, list) else []
        by_id = {str(e.get("id")): e for e in entries if isinstance(e, dict) and e.get("id")}
        positional = len(entries) == len(chunk)

        for idx, cmd in enumerate(chunk):
            entry = by_id.get(str(cmd.remote_id))
            if entry is None and positional and isinstance(entries[idx], dict) and entries[idx].get("error"):
                entry = entries[idx]
            if entry is None:
                result.failures.append(BatchFailure(id=cmd.remote_id, message=UNKNOWN_FAILURE))
            elif entry.get("error"):
                err = entry["error"]
                message = err.get("message") if isinstance(err, dict) else str(err)
                result.failures.append(BatchFailure(id=cmd.remote_id, message=message or UNKNOWN_FAILURE))
            else:
                result.succeeded_ids.append(cmd.remote_id)
