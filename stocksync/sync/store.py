# stocksync/sync/store.py
# SQLAlchemy persistence for sync history, sync details and the per-user quota.
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stocksync.config import settings
from stocksync.db import get_sessionmaker
from stocksync.models.accounts import UserAccount
from stocksync.models.sync_history import SyncDetail, SyncHistory
from stocksync.sync.types import AuditDetailDraft, SyncHistorySummaryDraft

logger = logging.getLogger("uvicorn.error")


class SqlSyncStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession] | None = None):
        self._sessionmaker = sessionmaker or get_sessionmaker()

    # ---- Accounts / quota ----

    async def _get_or_create_account(self, session: AsyncSession, username: str) -> UserAccount:
        account = await session.scalar(select(UserAccount).where(UserAccount.username == username))
        if account is None:
            account = UserAccount(username=username, syncs_remaining=settings.DEFAULT_SYNCS_REMAINING)
            session.add(account)
            await session.flush()
            logger.info("[QUOTA] created account %s with %d syncs", username, account.syncs_remaining)
        return account

    async def get_syncs_remaining(self, username: str) -> int:
        async with self._sessionmaker() as session, session.begin():
            account = await self._get_or_create_account(session, username)
            return account.syncs_remaining

    async def set_syncs_remaining(self, username: str, value: int) -> int:
        async with self._sessionmaker() as session, session.begin():
            account = await self._get_or_create_account(session, username)
            account.syncs_remaining = max(int(value), 0)
            logger.info("[QUOTA] %s set to %d syncs", username, account.syncs_remaining)
            return account.syncs_remaining

    async def consume_sync(self, session: AsyncSession, username: str) -> None:
        """The one place a sync is taken off a user's quota."""
        await self._get_or_create_account(session, username)
        res = await session.execute(
            update(UserAccount)
            .where(UserAccount.username == username, UserAccount.syncs_remaining > 0)
            .values(syncs_remaining=UserAccount.syncs_remaining - 1)
        )
        if res.rowcount == 0:
            # an applied sync is still recorded
            logger.warning("[QUOTA] %s had no syncs left when committing a sync", username)

    # ---- Audit persistence ----

    async def create_summary(
        self,
        username: str,
        totals: SyncHistorySummaryDraft,
        *,
        consume_quota: bool = False,
    ) -> int:
        """Insert a summary row; with consume_quota the quota decrement commits with it."""
        async with self._sessionmaker() as session, session.begin():
            if consume_quota:
                await self.consume_sync(session, username)
            row = SyncHistory(user_username=username, **totals.model_dump())
            session.add(row)
            await session.flush()
            return row.id

    async def create_details(self, summary_id: int, details: Sequence[AuditDetailDraft]) -> None:
        async with self._sessionmaker() as session, session.begin():
            session.add_all([
                SyncDetail(
                    sync_id=summary_id,
                    sku=d.sku,
                    product_name=d.product_name,
                    status=d.status.value,
                    changes_json=d.changes_json,
                )
                for d in details
            ])

    # ---- Read side ----

    async def latest_summary(self, username: str) -> Optional[SyncHistory]:
        async with self._sessionmaker() as session:
            return await session.scalar(
                select(SyncHistory)
                .where(SyncHistory.user_username == username)
                .order_by(SyncHistory.sync_timestamp.desc(), SyncHistory.id.desc())
                .limit(1)
            )

    async def all_summaries(self) -> List[SyncHistory]:
        async with self._sessionmaker() as session:
            res = await session.scalars(
                select(SyncHistory).order_by(SyncHistory.sync_timestamp.desc(), SyncHistory.id.desc())
            )
            return list(res)

    async def get_summary(self, history_id: int) -> Optional[SyncHistory]:
        async with self._sessionmaker() as session:
            return await session.get(SyncHistory, history_id)

    async def details_for(self, history_id: int) -> List[SyncDetail]:
        async with self._sessionmaker() as session:
            res = await session.scalars(
                select(SyncDetail).where(SyncDetail.sync_id == history_id).order_by(SyncDetail.id)
            )
            return list(res)
