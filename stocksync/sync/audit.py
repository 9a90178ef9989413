# stocksync/sync/audit.py
# =======================================================
# Audit recorder
# One summary + N detail rows per sync attempt. Detail lists whose serialized
# payload exceeds the transport budget are written as several contiguous
# chunks; only the first chunk carries the real totals.
# =======================================================
from __future__ import annotations

import json
import logging
from typing import List, Optional, Protocol, Sequence

from stocksync.config import settings
from stocksync.sync.errors import AuditPersistenceFailed
from stocksync.sync.types import AuditDetailDraft, SyncHistorySummaryDraft

logger = logging.getLogger("uvicorn.error")


class AuditStore(Protocol):
    async def create_summary(
        self, username: str, totals: SyncHistorySummaryDraft, *, consume_quota: bool = False
    ) -> int: ...

    async def create_details(self, summary_id: int, details: Sequence[AuditDetailDraft]) -> None: ...


def _dumps(obj) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def _size(obj) -> int:
    return len(_dumps(obj).encode("utf-8"))


class AuditRecorder:
    def __init__(self, store: AuditStore, *, max_payload_bytes: Optional[int] = None):
        self.store = store
        self.max_payload_bytes = max_payload_bytes or settings.AUDIT_MAX_PAYLOAD_BYTES

    def payload_size(self, username: str, summary: SyncHistorySummaryDraft, details: Sequence[AuditDetailDraft]) -> int:
        """Bytes of the serialized {username, summary, details} transport payload."""
        return _size({
            "username": username,
            "summary": summary.model_dump(),
            "details": [d.model_dump(mode="json") for d in details],
        })

    def plan_chunks(
        self,
        username: str,
        summary: SyncHistorySummaryDraft,
        details: Sequence[AuditDetailDraft],
    ) -> List[List[AuditDetailDraft]]:
        """
        Contiguous chunks, each serializing under the budget together with its summary.
        A single detail larger than the budget travels alone.
        """
        details = list(details)
        budget = self.max_payload_bytes
        envelope = _size({"username": username, "summary": summary.model_dump(), "details": []})
        sizes = [_size(d.model_dump(mode="json")) for d in details]
        total = envelope + sum(sizes) + max(len(sizes) - 1, 0)
        if total <= budget or len(details) <= 1:
            return [details]

        chunks: List[List[AuditDetailDraft]] = []
        current: List[AuditDetailDraft] = []
        used = envelope
        for detail, size in zip(details, sizes):
            extra = size + (1 if current else 0)
            if current and used + extra > budget:
                chunks.append(current)
                current, used, extra = [], envelope, size
            if not current and envelope + size > budget:
                logger.warning("[AUDIT] detail for %s alone exceeds %d bytes", detail.sku, budget)
            current.append(detail)
            used += extra
        if current:
            chunks.append(current)

        logger.info(
            "[AUDIT] large sync report (%.2f MB), split into %d chunks",
            total / 1024 / 1024, len(chunks),
        )
        return chunks

    async def record(
        self,
        username: str,
        summary: SyncHistorySummaryDraft,
        details: Sequence[AuditDetailDraft],
        *,
        consume_quota: bool = False,
    ) -> List[int]:
        """
        Returns the summary ids written, first chunk first. Already written chunks
        are kept when a later one fails.
        """
        written: List[int] = []
        for idx, chunk in enumerate(self.plan_chunks(username, summary, details)):
            totals = summary if idx == 0 else summary.zeroed()
            try:
                summary_id = await self.store.create_summary(
                    username, totals, consume_quota=consume_quota and idx == 0
                )
                written.append(summary_id)
                if chunk:
                    await self.store.create_details(summary_id, chunk)
            except Exception as e:
                logger.error("[AUDIT] writing chunk %d for %s failed: %s", idx + 1, username, e)
                raise AuditPersistenceFailed(
                    f"Sync report chunk {idx + 1} could not be saved: {e}",
                    written_summary_ids=written,
                ) from e
        logger.info("[AUDIT] saved sync report for %s (%d details, summaries=%s)", username, len(details), written)
        return written
