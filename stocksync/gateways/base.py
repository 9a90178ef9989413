# stocksync/gateways/base.py
# Contract shared by the per-platform storefront adapters.
from __future__ import annotations

import abc
import json
from typing import Any, List, Sequence

import httpx

from stocksync.logging_filters import looks_like_html, summarize_html
from stocksync.sync.types import BatchUpdateResult, RemoteCatalogItem, RemoteUpdateCommand


class CatalogGateway(abc.ABC):
    """
    fetch_by_sku may silently omit SKUs that have no match.
    batch_update must account for every submitted remote_id exactly once,
    either in succeeded_ids or in failures.
    """

    platform_label: str = "Remote"

    @abc.abstractmethod
    async def fetch_by_sku(self, skus: Sequence[str]) -> List[RemoteCatalogItem]:
        ...

    @abc.abstractmethod
    async def batch_update(self, commands: Sequence[RemoteUpdateCommand]) -> BatchUpdateResult:
        ...

    async def aclose(self) -> None:
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def describe_error(self, resp: httpx.Response) -> str:
        """'<Platform> API Error (<status>): <message>' with HTML bodies summarized."""
        message: Any = None
        try:
            body = resp.json()
            if isinstance(body, dict):
                message = body.get("message") or body.get("errors") or body
            else:
                message = body
        except ValueError:
            text = resp.text or ""
            message = summarize_html(text) if looks_like_html(text) else (text[:500] or resp.reason_phrase)
        if not isinstance(message, str):
            message = json.dumps(message, default=str)
        return f"{self.platform_label} API Error ({resp.status_code}): {message}"


def get_gateway(store, *, client: httpx.AsyncClient | None = None) -> CatalogGateway:
    """Pick the adapter for store.platform."""
    # local imports keep base importable from the adapters
    from stocksync.gateways.shopify import ShopifyGateway
    from stocksync.gateways.woocommerce import WooCommerceGateway
    from stocksync.sync.errors import UnsupportedPlatform

    if store.platform in ("wordpress", "woocommerce"):
        return WooCommerceGateway(store, client=client)
    if store.platform == "shopify":
        return ShopifyGateway(store, client=client)
    raise UnsupportedPlatform(f"Unsupported platform: {store.platform!r}")
