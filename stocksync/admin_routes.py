#=======================================================================================
# stocksync/admin_routes.py
# Admin endpoints. Protected via Basic Auth in main_app.py and mounted under /admin,
# so final paths are /admin/users/*.
#=======================================================================================

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from stocksync.routes import get_sync_service
from stocksync.sync.service import SyncService

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/users", tags=["Admin API"])


class QuotaUpdate(BaseModel):
    syncs_remaining: int = Field(ge=0)


@router.get("/{username}/quota")
async def admin_get_quota(username: str, service: SyncService = Depends(get_sync_service)):
    remaining = await service.store.get_syncs_remaining(username)
    return JSONResponse(content={"username": username, "syncs_remaining": remaining})


@router.put("/{username}/quota")
async def admin_set_quota(username: str, body: QuotaUpdate, service: SyncService = Depends(get_sync_service)):
    """Grant (or revoke) syncs; this is what lifts a 'no syncs remaining' block."""
    remaining = await service.store.set_syncs_remaining(username, body.syncs_remaining)
    logger.info("[ADMIN] quota for %s set to %d", username, remaining)
    return JSONResponse(content={"username": username, "syncs_remaining": remaining})
