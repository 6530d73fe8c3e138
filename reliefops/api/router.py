"""
API Router - JSON Endpoints
"""
from fastapi import APIRouter
from datetime import datetime, timezone

from reliefops import __version__
from .stocks import router as stocks_router
from .budgets import router as budgets_router
from .allocations import router as allocations_router, distribution_router
from .archives import router as archives_router
from .audit import router as audit_router
from .sync import router as sync_router

api_router = APIRouter()

api_router.include_router(stocks_router)
api_router.include_router(budgets_router)
api_router.include_router(allocations_router)
api_router.include_router(distribution_router)
api_router.include_router(archives_router)
api_router.include_router(audit_router)
api_router.include_router(sync_router)


@api_router.get("/status")
async def api_status():
    return {"status": "ok", "version": __version__, "timestamp": datetime.now(timezone.utc).isoformat()}
