# stocksync/sync/apply.py
# Sync applier: submit a confirmed preview and account for every command.
from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Tuple

import httpx

from stocksync.config import settings
from stocksync.sync.errors import RemoteBatchFailed
from stocksync.sync.types import (
    AuditDetailDraft,
    BatchUpdateResult,
    DetailStatus,
    RemoteUpdateCommand,
    SyncHistorySummaryDraft,
    SyncOutcome,
    SyncPreview,
)

logger = logging.getLogger("uvicorn.error")

MISSING_RESULT = "No result returned for this item."

# (command, failure message or None when applied)
AccountedCommand = Tuple[RemoteUpdateCommand, Optional[str]]


async def submit_updates(preview: SyncPreview, gateway) -> BatchUpdateResult:
    """One gateway batch call; total failures surface as RemoteBatchFailed."""
    if not preview.update_payload:
        return BatchUpdateResult()
    logger.info("[APPLY] sending %d updates", len(preview.update_payload))
    try:
        return await gateway.batch_update(preview.update_payload)
    except httpx.HTTPError as e:
        raise RemoteBatchFailed(f"Batch update failed: {e}") from e


def account_commands(preview: SyncPreview, result: BatchUpdateResult) -> List[AccountedCommand]:
    """Pair each submitted command with its outcome, in payload order."""
    failed: Dict[str, str] = {}
    for f in result.failures:
        failed.setdefault(str(f.id), f.message)
    succeeded = {str(i) for i in result.succeeded_ids}

    accounted: List[AccountedCommand] = []
    for cmd in preview.update_payload:
        key = str(cmd.remote_id)
        if key in failed:
            accounted.append((cmd, failed[key]))
        elif key in succeeded:
            accounted.append((cmd, None))
        else:
            accounted.append((cmd, MISSING_RESULT))
    return accounted


def summarize_outcome(
    preview: SyncPreview,
    accounted: List[AccountedCommand],
    *,
    sample_limit: Optional[int] = None,
) -> SyncOutcome:
    limit = settings.SYNC_ERROR_SAMPLE_LIMIT if sample_limit is None else sample_limit
    errors = [f"{cmd.sku}: {message}" for cmd, message in accounted if message is not None]
    return SyncOutcome(
        updated_count=len(accounted) - len(errors),
        not_found_count=len(preview.not_found),
        up_to_date_count=len(preview.up_to_date),
        error_count=len(errors),
        error_samples=errors[:limit],
    )


async def apply_and_account(
    preview: SyncPreview,
    gateway,
) -> Tuple[SyncOutcome, List[AccountedCommand]]:
    """Submit the preview's payload; an empty payload makes no remote call."""
    result = await submit_updates(preview, gateway)
    accounted = account_commands(preview, result)
    outcome = summarize_outcome(preview, accounted)
    logger.info("[APPLY] %d updated, %d errors", outcome.updated_count, outcome.error_count)
    return outcome, accounted


async def apply_preview(preview: SyncPreview, gateway) -> SyncOutcome:
    outcome, _ = await apply_and_account(preview, gateway)
    return outcome


def reconcile_audit_details(
    preview: SyncPreview,
    accounted: List[AccountedCommand],
) -> List[AuditDetailDraft]:
    """
    Details of SKUs whose update failed remotely become status=error, with the
    remote message kept next to the intended changes.
    """
    failed_by_sku: Dict[str, str] = {}
    for cmd, message in accounted:
        if message is not None:
            failed_by_sku.setdefault(cmd.sku, message)

    details: List[AuditDetailDraft] = []
    for d in preview.audit_details:
        message = failed_by_sku.get(d.sku)
        if d.status == DetailStatus.UPDATED and message is not None:
            try:
                changes = json.loads(d.changes_json or "{}")
            except ValueError:
                changes = d.changes_json
            d = d.model_copy(update={
                "status": DetailStatus.ERROR,
                "changes_json": json.dumps({"changes": changes, "error": message}, ensure_ascii=False),
            })
        details.append(d)
    return details


def build_summary_draft(preview: SyncPreview, outcome: SyncOutcome) -> SyncHistorySummaryDraft:
    return SyncHistorySummaryDraft(
        total_processed=preview.total_processed,
        total_updated=outcome.updated_count,
        total_not_found=outcome.not_found_count,
        total_up_to_date=outcome.up_to_date_count,
        total_errors=outcome.error_count,
    )
