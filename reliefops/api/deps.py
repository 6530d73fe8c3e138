"""
FastAPI dependencies - sessions, acting user and service wiring
"""
from typing import Callable, Optional
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from reliefops.core.config import settings
from reliefops.core.database import SessionLocal, engine, get_db
from reliefops.core.identity import ActingUser, IdentityProvider
from reliefops.models import AppUser
from reliefops.services import (
    AllocationService, ArchiveService, AuditService, BalanceCache, BudgetService, StockService, SyncService
)

# Process-wide: balances must be invalidated across requests, sync must be single-flight
_balance_cache = BalanceCache(ttl_seconds=settings.BALANCE_CACHE_TTL_SECONDS)
_sync_service: Optional[SyncService] = None


def get_session_factory() -> Callable[[], Session]:
    return SessionLocal


def get_balance_cache() -> BalanceCache:
    return _balance_cache


def get_sync_service() -> SyncService:
    global _sync_service
    if _sync_service is None:
        _sync_service = SyncService(engine, remote_url=settings.REMOTE_DATABASE_URL, cache=_balance_cache)
    return _sync_service


def get_identity(
    x_user_id: Optional[int] = Header(None),
    db: Session = Depends(get_db),
) -> IdentityProvider:
    """Resolve the acting user from the X-User-Id header"""
    if x_user_id is None:
        return IdentityProvider()
    user = db.get(AppUser, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=403, detail="Unknown or inactive user")
    return IdentityProvider(ActingUser(user_id=user.id, username=user.username, role=user.role))


def get_audit_service(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    identity: IdentityProvider = Depends(get_identity),
) -> AuditService:
    return AuditService(session_factory, identity)


def get_archive_service(
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
    cache: BalanceCache = Depends(get_balance_cache),
) -> ArchiveService:
    return ArchiveService(db, audit, cache=cache)


def get_budget_service(
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
    archive: ArchiveService = Depends(get_archive_service),
    cache: BalanceCache = Depends(get_balance_cache),
) -> BudgetService:
    return BudgetService(db, audit, cache=cache, archive=archive)


def get_stock_service(
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
    budgets: BudgetService = Depends(get_budget_service),
    archive: ArchiveService = Depends(get_archive_service),
) -> StockService:
    return StockService(db, audit, budgets=budgets, archive=archive)


def get_allocation_service(
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
) -> AllocationService:
    return AllocationService(db, audit)
