from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from stocksync.db import Base
from stocksync.gateways.base import CatalogGateway
from stocksync.models import accounts, sync_history  # noqa: F401  (register tables)
from stocksync.sync.types import (
    BatchFailure,
    BatchUpdateResult,
    LocalStockRecord,
    RemoteCatalogItem,
)


def rec(sku, stock=5, regular="100", sale="90"):
    return LocalStockRecord(sku=sku, stock=stock, regular_price=Decimal(str(regular)), sale_price=Decimal(str(sale)))


def remote(sku, price="90", compare="100", stock=5, rid=None, name=None):
    return RemoteCatalogItem(
        sku=sku,
        remote_id=rid if rid is not None else abs(hash(sku)) % 100000,
        display_name=name or f"Product {sku}",
        current_price=None if price is None else Decimal(str(price)),
        current_compare_at_or_regular_price=None if compare is None else Decimal(str(compare)),
        current_stock=stock,
        platform_specific={"variant_id": rid, "inventory_item_id": 9000 + (rid or 0)},
    )


class FakeGateway(CatalogGateway):
    platform_label = "Fake"

    def __init__(self, items=(), *, failures=None, fetch_error=None, batch_error=None):
        self.items = list(items)
        self.failures = dict(failures or {})  # sku -> message
        self.fetch_error = fetch_error
        self.batch_error = batch_error
        self.fetch_calls = []
        self.batch_calls = []
        self.closed = False

    async def fetch_by_sku(self, skus):
        self.fetch_calls.append(list(skus))
        if self.fetch_error:
            raise self.fetch_error
        wanted = set(skus)
        return [i for i in self.items if i.sku in wanted]

    async def batch_update(self, commands):
        self.batch_calls.append(list(commands))
        if self.batch_error:
            raise self.batch_error
        result = BatchUpdateResult()
        for c in commands:
            if c.sku in self.failures:
                result.failures.append(BatchFailure(id=c.remote_id, message=self.failures[c.sku]))
            else:
                result.succeeded_ids.append(c.remote_id)
        return result

    async def aclose(self):
        self.closed = True


class InMemorySyncStore:
    """Audit + quota store keeping everything in dicts."""

    def __init__(self, syncs_remaining=10, fail_on_summary_call=None):
        self.default = syncs_remaining
        self.quota = {}
        self.summaries = []  # (id, username, totals)
        self.details = {}
        self.summary_calls = 0
        self.fail_on_summary_call = fail_on_summary_call

    async def get_syncs_remaining(self, username):
        return self.quota.setdefault(username, self.default)

    async def create_summary(self, username, totals, *, consume_quota=False):
        self.summary_calls += 1
        if self.fail_on_summary_call == self.summary_calls:
            raise RuntimeError("disk full")
        if consume_quota:
            self.quota[username] = max(self.quota.setdefault(username, self.default) - 1, 0)
        sid = len(self.summaries) + 1
        self.summaries.append((sid, username, totals))
        self.details[sid] = []
        return sid

    async def create_details(self, summary_id, details):
        self.details[summary_id].extend(details)


@pytest.fixture()
def memory_store():
    return InMemorySyncStore()


@pytest.fixture()
async def sessionmaker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()
