# stocksync/sync/preview.py
# =======================================================
# Preview builder
# - quota pre-check (no remote call when exhausted)
# - one remote fetch for every SKU in the dataset
# - diff, then audit drafts + flattened update commands
# =======================================================
from __future__ import annotations

import json
import logging
from typing import Iterable, List

from stocksync.sync.diff import classify, format_decimal, index_by_sku
from stocksync.sync.errors import QuotaExhausted
from stocksync.sync.types import (
    AuditDetailDraft,
    DetailStatus,
    LocalStockRecord,
    NotFound,
    RemoteCatalogItem,
    RemoteUpdateCommand,
    SyncPreview,
    ToUpdate,
    UpToDate,
)

logger = logging.getLogger("uvicorn.error")

NOT_FOUND_NAME = "N/A"


def changes_to_json(item: ToUpdate) -> str:
    """{"<field>": {"old": ..., "new": ...}, ...}"""
    return json.dumps(
        {c.field.value: {"old": c.old_value, "new": c.new_value} for c in item.changes},
        ensure_ascii=False,
    )


def audit_draft_for(item) -> AuditDetailDraft:
    if isinstance(item, ToUpdate):
        return AuditDetailDraft(
            sku=item.sku,
            product_name=item.display_name,
            status=DetailStatus.UPDATED,
            changes_json=changes_to_json(item),
        )
    if isinstance(item, UpToDate):
        return AuditDetailDraft(sku=item.sku, product_name=item.display_name, status=DetailStatus.UP_TO_DATE)
    if isinstance(item, NotFound):
        return AuditDetailDraft(sku=item.sku, product_name=NOT_FOUND_NAME, status=DetailStatus.NOT_FOUND)
    raise TypeError(f"not a classified item: {item!r}")


def build_update_command(record: LocalStockRecord, remote: RemoteCatalogItem) -> RemoteUpdateCommand:
    return RemoteUpdateCommand(
        sku=record.sku,
        remote_id=remote.remote_id,
        platform_specific=dict(remote.platform_specific),
        new_price=format_decimal(record.sale_price),
        new_regular_price=None if record.regular_price == 0 else format_decimal(record.regular_price),
        new_stock=record.stock,
    )


async def build_preview(
    local: Iterable[LocalStockRecord],
    gateway,
    *,
    syncs_remaining: int,
    username: str = "",
) -> SyncPreview:
    """
    Gateway errors propagate unchanged; no partial preview is returned.
    """
    if syncs_remaining <= 0:
        logger.info("[PREVIEW] %s has no syncs remaining", username)
        raise QuotaExhausted(username)

    records: List[LocalStockRecord] = list(local)
    if not records:
        logger.info("[PREVIEW] empty dataset for %s, nothing to compare", username)
        return SyncPreview()

    skus = [r.sku for r in records]
    logger.info("[PREVIEW] fetching %d SKUs from %s", len(skus), getattr(gateway, "platform_label", "remote"))
    remote_items = await gateway.fetch_by_sku(skus)
    remote_by_sku = index_by_sku(remote_items)

    result = classify(records, remote_by_sku)

    payload = [
        build_update_command(record, remote_by_sku[record.sku])
        for record, item in zip(records, result.items)
        if isinstance(item, ToUpdate)
    ]
    preview = SyncPreview(
        to_update=result.to_update,
        up_to_date=result.up_to_date,
        not_found=result.not_found,
        update_payload=payload,
        audit_details=[audit_draft_for(item) for item in result.items],
    )
    logger.info(
        "[PREVIEW] %d to update, %d up to date, %d not found",
        len(preview.to_update), len(preview.up_to_date), len(preview.not_found),
    )
    return preview
