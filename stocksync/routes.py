#=======================================================================================
# stocksync/routes.py
# FastAPI routes for the storefront stock/price sync: preview, apply, history.
#
# All endpoints require HTTP Basic (admin). The preview is returned to the client
# and posted back unchanged to /api/sync/apply once the user confirms; cancelling
# is just dropping it client-side.
#=======================================================================================

import logging
import secrets
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from stocksync.config import settings
from stocksync.gateways.base import get_gateway
from stocksync.stores import get_store
from stocksync.sync.errors import SyncError
from stocksync.sync.service import SyncService
from stocksync.sync.store import SqlSyncStore
from stocksync.sync.types import LocalStockRecord, SyncPreview

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["Sync API"])

# ---------------------------
# HTTP Basic
# ---------------------------
security = HTTPBasic()

def verify_admin(credentials: HTTPBasicCredentials = Depends(security)):
    ok_user = secrets.compare_digest(credentials.username or "", settings.ADMIN_USER or "")
    ok_pass = secrets.compare_digest(credentials.password or "", settings.ADMIN_PASS or "")
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Basic"},
        )

# ---------------------------
# Dependencies (overridable in tests)
# ---------------------------
def get_sync_service() -> SyncService:
    return SyncService(SqlSyncStore())

def get_gateway_factory():
    return get_gateway

# ---------------------------
# Request bodies
# ---------------------------
class PreviewRequest(BaseModel):
    username: str
    store_id: str
    records: List[LocalStockRecord] = Field(default_factory=list)

class ApplyRequest(BaseModel):
    username: str
    store_id: str
    preview: SyncPreview

def _http_error(e: SyncError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)

# ----------------------------------------------------------------------
# Preview / apply
# ----------------------------------------------------------------------

@router.post("/sync/preview", dependencies=[Depends(verify_admin)])
async def api_sync_preview(
    body: PreviewRequest,
    service: SyncService = Depends(get_sync_service),
    gateway_factory=Depends(get_gateway_factory),
):
    """
    Compare the uploaded rows against the store and return the reviewable changeset.
    """
    try:
        store = get_store(body.store_id, username=body.username)
        async with gateway_factory(store) as gateway:
            preview = await service.preview(body.username, body.records, gateway)
    except SyncError as e:
        logger.warning("[PREVIEW] %s/%s failed: %s", body.username, body.store_id, e.message)
        raise _http_error(e)
    return JSONResponse(content=preview.model_dump(mode="json"))

@router.post("/sync/apply", dependencies=[Depends(verify_admin)])
async def api_sync_apply(
    body: ApplyRequest,
    service: SyncService = Depends(get_sync_service),
    gateway_factory=Depends(get_gateway_factory),
):
    """
    Apply a confirmed preview. Per-item failures are part of the outcome; a
    report that could not be fully saved comes back as `warning`.
    """
    try:
        store = get_store(body.store_id, username=body.username)
        async with gateway_factory(store) as gateway:
            result = await service.confirm(body.username, body.preview, gateway)
    except SyncError as e:
        logger.warning("[APPLY] %s/%s failed: %s", body.username, body.store_id, e.message)
        raise _http_error(e)
    return JSONResponse(content=result.model_dump(mode="json"))

# ----------------------------------------------------------------------
# Sync history
# ----------------------------------------------------------------------

@router.get("/syncs/summary/latest/{username}", dependencies=[Depends(verify_admin)])
async def api_latest_summary(username: str, service: SyncService = Depends(get_sync_service)):
    row = await service.store.latest_summary(username)
    return JSONResponse(content=row.to_dict() if row else None)

@router.get("/syncs/summary/all", dependencies=[Depends(verify_admin)])
async def api_all_summaries(service: SyncService = Depends(get_sync_service)):
    rows = await service.store.all_summaries()
    return JSONResponse(content=[r.to_dict() for r in rows])

@router.get("/syncs/details/{history_id}", dependencies=[Depends(verify_admin)])
async def api_sync_details(history_id: int, service: SyncService = Depends(get_sync_service)):
    if await service.store.get_summary(history_id) is None:
        raise HTTPException(status_code=404, detail="Sync history not found")
    rows = await service.store.details_for(history_id)
    return JSONResponse(content=[r.to_dict() for r in rows])
