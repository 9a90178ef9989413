# stocksync/sync/errors.py
from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base for sync failures that should reach the user with a status code."""
    status_code: int = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class QuotaExhausted(SyncError):
    status_code = 403

    def __init__(self, username: str):
        super().__init__(
            f"No syncs remaining for {username!r}. Please contact an administrator to add more."
        )
        self.username = username


class StoreNotConfigured(SyncError):
    status_code = 404


class UnsupportedPlatform(SyncError):
    status_code = 400


class RemoteFetchFailed(SyncError):
    """Gateway error while fetching the remote snapshot; the preview is aborted."""
    status_code = 502


class RemoteBatchFailed(SyncError):
    """Gateway error before any per-item outcome was known; nothing is audited."""
    status_code = 502


class AuditPersistenceFailed(SyncError):
    """Summary or a detail chunk failed to write after a successful apply."""

    def __init__(self, message: str, *, written_summary_ids: Optional[list[int]] = None):
        super().__init__(message)
        self.written_summary_ids = list(written_summary_ids or [])
