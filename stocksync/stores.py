# stocksync/stores.py
# Store (website) configuration, loaded from settings.SYNC_STORES.
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

from stocksync.config import settings
from stocksync.sync.errors import StoreNotConfigured

Platform = Literal["wordpress", "woocommerce", "shopify"]


class StoreConfig(BaseModel):
    store_id: str
    platform: Platform
    owner: Optional[str] = None
    name: Optional[str] = None
    url: str
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    access_token: Optional[str] = None

    @property
    def base_url(self) -> str:
        return (self.url or "").rstrip("/")


def get_store(store_id: str, *, username: Optional[str] = None) -> StoreConfig:
    """
    Resolve a store by id. When username is given, the store must belong to it
    (stores without an owner are shared).
    """
    raw = (settings.SYNC_STORES or {}).get(store_id)
    if not isinstance(raw, dict):
        raise StoreNotConfigured(f"Store {store_id!r} is not configured.")
    try:
        store = StoreConfig(store_id=store_id, **raw)
    except ValidationError as e:
        raise StoreNotConfigured(f"Store {store_id!r} has an invalid configuration: {e}", status_code=400)
    if username and store.owner and store.owner != username:
        raise StoreNotConfigured(f"Store {store_id!r} is not configured for {username!r}.")
    return store
