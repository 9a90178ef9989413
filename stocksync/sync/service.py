# stocksync/sync/service.py
# =======================================================
# Preview → confirm orchestration for one user and store.
# Preview is read-only. Confirm applies the payload, then commits the quota
# decrement together with the first audit summary, then the remaining chunks.
# =======================================================
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from stocksync.sync.apply import (
    apply_and_account,
    build_summary_draft,
    reconcile_audit_details,
    summarize_outcome,
)
from stocksync.sync.audit import AuditRecorder
from stocksync.sync.errors import AuditPersistenceFailed, QuotaExhausted
from stocksync.sync.preview import build_preview
from stocksync.sync.types import LocalStockRecord, SyncOutcome, SyncPreview

logger = logging.getLogger("uvicorn.error")


class ConfirmResult(BaseModel):
    outcome: SyncOutcome
    summary_ids: List[int] = Field(default_factory=list)
    syncs_remaining: int
    warning: Optional[str] = None


class SyncService:
    def __init__(self, store, *, recorder: AuditRecorder | None = None):
        self.store = store
        self.recorder = recorder or AuditRecorder(store)

    async def preview(self, username: str, records: Iterable[LocalStockRecord], gateway) -> SyncPreview:
        remaining = await self.store.get_syncs_remaining(username)
        return await build_preview(records, gateway, syncs_remaining=remaining, username=username)

    async def confirm(self, username: str, preview: SyncPreview, gateway) -> ConfirmResult:
        remaining = await self.store.get_syncs_remaining(username)

        if not preview.update_payload:
            # nothing to send: no remote call, no quota, no report
            logger.info("[APPLY] %s confirmed a preview with no updates", username)
            return ConfirmResult(
                outcome=summarize_outcome(preview, []),
                syncs_remaining=remaining,
            )

        if remaining <= 0:
            raise QuotaExhausted(username)

        # RemoteBatchFailed propagates: nothing audited, quota untouched
        outcome, accounted = await apply_and_account(preview, gateway)
        logger.info(
            "[APPLY] %s: %d up to date, %d not found",
            username, outcome.up_to_date_count, outcome.not_found_count,
        )

        details = reconcile_audit_details(preview, accounted)
        summary = build_summary_draft(preview, outcome)
        warning = None
        try:
            summary_ids = await self.recorder.record(username, summary, details, consume_quota=True)
        except AuditPersistenceFailed as e:
            summary_ids = e.written_summary_ids
            warning = f"Sync applied, but the report may be incomplete: {e.message}"
            logger.warning("[AUDIT] %s: %s", username, warning)

        try:
            remaining = await self.store.get_syncs_remaining(username)
        except Exception as e:
            logger.warning("[QUOTA] could not re-read quota for %s: %s", username, e)
            remaining = max(remaining - (1 if summary_ids else 0), 0)

        return ConfirmResult(
            outcome=outcome,
            summary_ids=summary_ids,
            syncs_remaining=remaining,
            warning=warning,
        )
