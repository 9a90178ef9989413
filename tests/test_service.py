import json

import httpx
import pytest
import respx

from stocksync.gateways.woocommerce import WooCommerceGateway
from stocksync.stores import StoreConfig
from stocksync.sync import service as service_module
from stocksync.sync.apply import (
    MISSING_RESULT,
    account_commands,
    apply_and_account,
    apply_preview,
    summarize_outcome,
)
from stocksync.sync.errors import QuotaExhausted, RemoteBatchFailed
from stocksync.sync.preview import build_preview
from stocksync.sync.service import SyncService
from stocksync.sync.types import BatchFailure, BatchUpdateResult, DetailStatus

from conftest import FakeGateway, InMemorySyncStore, rec, remote


async def _preview(gateway, local, remaining=5):
    return await build_preview(local, gateway, syncs_remaining=remaining)


@pytest.mark.asyncio
async def test_partial_failure_is_reported_and_audited():
    gateway = FakeGateway(
        [remote("A1", stock=1, rid=1), remote("B2", stock=1, rid=2), remote("C3", stock=1, rid=3)],
        failures={"B2": "Invalid stock"},
    )
    store = InMemorySyncStore(syncs_remaining=5)
    service = SyncService(store)

    preview = await service.preview("alice", [rec("A1"), rec("B2"), rec("C3")], gateway)
    result = await service.confirm("alice", preview, gateway)

    assert result.outcome.updated_count == 2
    assert result.outcome.error_count == 1
    assert result.outcome.error_samples == ["B2: Invalid stock"]
    assert result.syncs_remaining == 4
    assert result.warning is None

    (sid, username, totals), = store.summaries
    assert username == "alice" and result.summary_ids == [sid]
    assert (totals.total_processed, totals.total_updated, totals.total_errors) == (3, 2, 1)

    details = {d.sku: d for d in store.details[sid]}
    assert details["A1"].status == DetailStatus.UPDATED
    assert details["B2"].status == DetailStatus.ERROR
    assert json.loads(details["B2"].changes_json) == {
        "changes": {"stock": {"old": 1, "new": 5}},
        "error": "Invalid stock",
    }


@pytest.mark.asyncio
async def test_nothing_to_update_is_free():
    gateway = FakeGateway([remote("A1")])
    store = InMemorySyncStore(syncs_remaining=2)
    service = SyncService(store)

    preview = await service.preview("bob", [rec("A1"), rec("Z9")], gateway)
    result = await service.confirm("bob", preview, gateway)

    assert gateway.batch_calls == []
    assert store.summaries == []
    assert result.syncs_remaining == 2
    assert result.outcome.up_to_date_count == 1
    assert result.outcome.not_found_count == 1
    assert result.outcome.updated_count == result.outcome.error_count == 0


@pytest.mark.asyncio
async def test_total_batch_failure_leaves_no_trace():
    gateway = FakeGateway([remote("A1", stock=1)], batch_error=RemoteBatchFailed("Shopify API Error (401)"))
    store = InMemorySyncStore(syncs_remaining=2)
    service = SyncService(store)

    preview = await service.preview("carol", [rec("A1")], gateway)
    with pytest.raises(RemoteBatchFailed):
        await service.confirm("carol", preview, gateway)
    assert store.summaries == []
    assert store.quota["carol"] == 2


@pytest.mark.asyncio
async def test_transport_error_becomes_batch_failure():
    gateway = FakeGateway([remote("A1", stock=1)], batch_error=httpx.ConnectError("boom"))
    preview = await _preview(gateway, [rec("A1")])
    with pytest.raises(RemoteBatchFailed):
        await apply_preview(preview, gateway)


@pytest.mark.asyncio
async def test_confirm_rechecks_quota():
    gateway = FakeGateway([remote("A1", stock=1)])
    store = InMemorySyncStore(syncs_remaining=1)
    service = SyncService(store)
    preview = await service.preview("dave", [rec("A1")], gateway)
    store.quota["dave"] = 0

    with pytest.raises(QuotaExhausted):
        await service.confirm("dave", preview, gateway)
    assert gateway.batch_calls == []


@pytest.mark.asyncio
async def test_preview_refused_without_quota():
    gateway = FakeGateway([remote("A1")])
    service = SyncService(InMemorySyncStore(syncs_remaining=0))
    with pytest.raises(QuotaExhausted):
        await service.preview("erin", [rec("A1")], gateway)
    assert gateway.fetch_calls == []


@pytest.mark.asyncio
async def test_report_failure_turns_into_warning():
    gateway = FakeGateway([remote("A1", stock=1)])
    store = InMemorySyncStore(syncs_remaining=3, fail_on_summary_call=1)
    service = SyncService(store)

    preview = await service.preview("frank", [rec("A1")], gateway)
    result = await service.confirm("frank", preview, gateway)

    assert result.outcome.updated_count == 1
    assert result.summary_ids == []
    assert result.warning and "report may be incomplete" in result.warning
    # first summary never committed, so neither did the decrement
    assert result.syncs_remaining == 3


@pytest.mark.asyncio
async def test_every_command_is_accounted_for():
    gateway = FakeGateway([remote("A1", stock=1, rid=1), remote("B2", stock=1, rid=2), remote("C3", stock=1, rid=3)])
    preview = await _preview(gateway, [rec("A1"), rec("B2"), rec("C3")])
    result = BatchUpdateResult(succeeded_ids=[1], failures=[BatchFailure(id=3, message="bad")])

    accounted = account_commands(preview, result)
    assert [(c.sku, m) for c, m in accounted] == [("A1", None), ("B2", MISSING_RESULT), ("C3", "bad")]

    outcome = summarize_outcome(preview, accounted)
    assert outcome.updated_count + outcome.error_count == len(preview.to_update)


@pytest.mark.asyncio
async def test_error_samples_are_capped():
    items = [remote(f"S{i}", stock=0, rid=i) for i in range(8)]
    gateway = FakeGateway(items, failures={f"S{i}": "nope" for i in range(8)})
    preview = await _preview(gateway, [rec(f"S{i}") for i in range(8)])

    outcome = await apply_preview(preview, gateway)
    assert outcome.error_count == 8
    assert outcome.error_samples == [f"S{i}: nope" for i in range(5)]


@pytest.mark.asyncio
async def test_woocommerce_outage_on_apply_leaves_quota_and_history_alone():
    store = InMemorySyncStore(syncs_remaining=3)
    service = SyncService(store)
    shop = StoreConfig(
        store_id="w1", platform="wordpress", url="https://shop.example",
        consumer_key="ck", consumer_secret="cs",
    )
    products = "https://shop.example/wp-json/wc/v3/products"

    async with respx.mock() as router:
        router.get(products).mock(return_value=httpx.Response(200, json=[{
            "id": 11, "sku": "A1", "name": "Alpha", "sale_price": "90",
            "regular_price": "100", "stock_quantity": 1, "parent_id": 0,
        }]))
        router.post(f"{products}/batch").mock(return_value=httpx.Response(500, json={"message": "Internal error"}))
        async with httpx.AsyncClient() as client:
            gateway = WooCommerceGateway(shop, client=client)
            preview = await service.preview("alice", [rec("A1")], gateway)
            assert len(preview.update_payload) == 1
            with pytest.raises(RemoteBatchFailed):
                await service.confirm("alice", preview, gateway)

    assert store.quota["alice"] == 3
    assert store.summaries == []


@pytest.mark.asyncio
async def test_apply_and_confirm_share_the_same_accounting(monkeypatch):
    gateway = FakeGateway(
        [remote("A1", stock=1, rid=1), remote("B2", stock=1, rid=2)],
        failures={"B2": "Invalid stock"},
    )
    preview = await _preview(gateway, [rec("A1"), rec("B2")])

    outcome, accounted = await apply_and_account(preview, gateway)
    assert [(c.sku, m) for c, m in accounted] == [("A1", None), ("B2", "Invalid stock")]
    assert outcome == await apply_preview(preview, gateway)

    calls = []

    async def tracking(preview, gateway):
        calls.append(preview)
        return await apply_and_account(preview, gateway)

    monkeypatch.setattr(service_module, "apply_and_account", tracking)
    result = await SyncService(InMemorySyncStore()).confirm("bob", preview, gateway)
    assert calls == [preview]
    assert result.outcome == outcome
