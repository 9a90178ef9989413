# ----------------------------------------------------------------
# Import configuration variables to be used throughout the project
# ----------------------------------------------------------------
import os
import json as _json
from dotenv import load_dotenv

# Load .env (allow container env to override file values)
load_dotenv(override=True)


def _get_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y"}


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "") or default)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, "") or default)
    except ValueError:
        return default


def _get_json_map(name: str, default: dict | None = None) -> dict:
    raw = os.getenv(name, "")
    if not raw:
        return default or {}
    try:
        return _json.loads(raw)
    except Exception:
        return default or {}


class Settings:
    # ── Storage ──────────────────────────────────────────────────────────────
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/stocksync.db")

    # ── Admin / API auth ─────────────────────────────────────────────────────
    ADMIN_USER: str = os.getenv("ADMIN_USER", "admin")
    ADMIN_PASS: str = os.getenv("ADMIN_PASS", "changeme")

    # ── CORS ─────────────────────────────────────────────────────────────────
    # Comma-separated list in .env, e.g. "https://example.com, https://foo.bar"
    CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    # ── Stores ───────────────────────────────────────────────────────────────
    # JSON map, e.g.
    # {"shop-1": {"platform": "wordpress", "owner": "alice", "url": "https://shop.example",
    #             "consumer_key": "ck_...", "consumer_secret": "cs_..."},
    #  "shop-2": {"platform": "shopify", "owner": "bob", "url": "https://bob.myshopify.com",
    #             "access_token": "shpat_..."}}
    SYNC_STORES: dict = _get_json_map("SYNC_STORES", {})

    # ── Sync engine ──────────────────────────────────────────────────────────
    DEFAULT_SYNCS_REMAINING: int = _get_int("DEFAULT_SYNCS_REMAINING", 10)
    AUDIT_MAX_PAYLOAD_BYTES: int = _get_int("AUDIT_MAX_PAYLOAD_BYTES", 80 * 1024 * 1024)
    SYNC_ERROR_SAMPLE_LIMIT: int = _get_int("SYNC_ERROR_SAMPLE_LIMIT", 5)

    # ── Storefront HTTP ──────────────────────────────────────────────────────
    HTTP_TIMEOUT: float = _get_float("HTTP_TIMEOUT", 30.0)

    # WooCommerce: SKUs per fetch request and items per batch request
    WC_PER_PAGE: int = _get_int("WC_PER_PAGE", 100)
    WC_VERIFY_SSL: bool = _get_bool("WC_VERIFY_SSL", True)

    # Shopify Admin REST
    SHOPIFY_API_VERSION: str = os.getenv("SHOPIFY_API_VERSION", "2024-01")
    SHOPIFY_LOCATION_ID: str = os.getenv("SHOPIFY_LOCATION_ID", "")  # empty → primary location
    SHOPIFY_MIN_INTERVAL: float = _get_float("SHOPIFY_MIN_INTERVAL", 0.5)


settings = Settings()
