"""
Sync API - Trigger and monitor local <-> remote synchronization

Handlers are plain functions: a sync run and the online check block on the
remote store, so FastAPI runs them in its threadpool.
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List
import logging

from reliefops.schemas import SyncHistoryItem, SyncStatusResponse
from reliefops.services import SyncService
from .deps import get_sync_service
from .errors import error_response

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger(__name__)


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(service: SyncService = Depends(get_sync_service)):
    return SyncStatusResponse(is_running=service.is_running, online=service.check_online())


@router.get("/history", response_model=List[SyncHistoryItem])
def sync_history(limit: int = 20, service: SyncService = Depends(get_sync_service)):
    return service.recent_runs(limit)


@router.post("/trigger")
def trigger_sync(direction: str = "full", service: SyncService = Depends(get_sync_service)):
    runs = {"full": service.sync_now, "pull": service.pull, "push": service.push}
    run = runs.get(direction)
    if run is None:
        raise HTTPException(status_code=422, detail=f"Unknown direction: {direction}")
    logger.info(f"Manual sync requested ({direction})")
    stats, error = run()
    if error:
        return error_response(error)
    return {"success": True, "direction": direction, "stats": stats}
