# stocksync/models/sync_history.py
from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from stocksync.db import Base

DETAIL_STATUSES = ("updated", "not_found", "up_to_date", "error")

class SyncHistory(Base):
    __tablename__ = "sync_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_username: Mapped[str] = mapped_column(String(150), index=True)
    sync_timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    total_processed: Mapped[int] = mapped_column(Integer, nullable=False)
    total_updated: Mapped[int] = mapped_column(Integer, nullable=False)
    total_not_found: Mapped[int] = mapped_column(Integer, nullable=False)
    total_up_to_date: Mapped[int] = mapped_column(Integer, nullable=False)
    total_errors: Mapped[int] = mapped_column(Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_username": self.user_username,
            "sync_timestamp": self.sync_timestamp.isoformat() if self.sync_timestamp else None,
            "total_processed": self.total_processed,
            "total_updated": self.total_updated,
            "total_not_found": self.total_not_found,
            "total_up_to_date": self.total_up_to_date,
            "total_errors": self.total_errors,
        }

class SyncDetail(Base):
    __tablename__ = "sync_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sync_id: Mapped[int] = mapped_column(ForeignKey("sync_history.id"), index=True)
    sku: Mapped[str] = mapped_column(String(255))
    product_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    status: Mapped[str] = mapped_column(String(16))  # one of DETAIL_STATUSES
    changes_json: Mapped[str] = mapped_column(Text, default="{}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sync_id": self.sync_id,
            "sku": self.sku,
            "product_name": self.product_name,
            "status": self.status,
            "changes_json": self.changes_json,
        }
