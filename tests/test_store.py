import pytest

from stocksync.config import settings
from stocksync.sync.audit import AuditRecorder
from stocksync.sync.store import SqlSyncStore
from stocksync.sync.types import AuditDetailDraft, DetailStatus, SyncHistorySummaryDraft


@pytest.mark.asyncio
async def test_new_account_gets_default_quota(sessionmaker):
    store = SqlSyncStore(sessionmaker)
    assert await store.get_syncs_remaining("alice") == settings.DEFAULT_SYNCS_REMAINING
    assert await store.set_syncs_remaining("alice", 2) == 2
    assert await store.get_syncs_remaining("alice") == 2


@pytest.mark.asyncio
async def test_summary_with_quota_decrements_once(sessionmaker):
    store = SqlSyncStore(sessionmaker)
    await store.set_syncs_remaining("alice", 2)

    totals = SyncHistorySummaryDraft(total_processed=3, total_updated=2, total_errors=1)
    sid = await store.create_summary("alice", totals, consume_quota=True)
    await store.create_summary("alice", totals.zeroed())

    assert await store.get_syncs_remaining("alice") == 1
    row = await store.get_summary(sid)
    assert row.user_username == "alice"
    assert (row.total_processed, row.total_updated, row.total_errors) == (3, 2, 1)


@pytest.mark.asyncio
async def test_quota_never_goes_negative(sessionmaker):
    store = SqlSyncStore(sessionmaker)
    await store.set_syncs_remaining("bob", 0)
    await store.create_summary("bob", SyncHistorySummaryDraft(total_processed=1), consume_quota=True)
    assert await store.get_syncs_remaining("bob") == 0
    assert len(await store.all_summaries()) == 1


@pytest.mark.asyncio
async def test_chunked_report_reads_back_in_order(sessionmaker):
    store = SqlSyncStore(sessionmaker)
    details = [
        AuditDetailDraft(sku=f"S{i}", product_name=f"Item {i}", status=DetailStatus.UP_TO_DATE)
        for i in range(30)
    ]
    summary = SyncHistorySummaryDraft(total_processed=30, total_up_to_date=30)
    ids = await AuditRecorder(store, max_payload_bytes=800).record("carol", summary, details, consume_quota=True)

    assert len(ids) > 1
    read = []
    for sid in ids:
        read.extend(await store.details_for(sid))
    assert [d.sku for d in read] == [d.sku for d in details]
    assert read[0].to_dict()["status"] == "up_to_date"

    latest = await store.latest_summary("carol")
    assert latest.id == ids[-1]
    assert sum(r.total_processed for r in await store.all_summaries()) == 30
    assert await store.get_syncs_remaining("carol") == settings.DEFAULT_SYNCS_REMAINING - 1


@pytest.mark.asyncio
async def test_missing_summary(sessionmaker):
    store = SqlSyncStore(sessionmaker)
    assert await store.get_summary(999) is None
    assert await store.details_for(999) == []
    assert await store.latest_summary("nobody") is None
