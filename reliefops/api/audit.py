"""
Audit API - Read-only audit trail queries
"""
from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import datetime, timedelta, timezone

from reliefops.schemas.audit import AuditLogResponse
from reliefops.services import AuditService
from .deps import get_audit_service

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs", response_model=List[AuditLogResponse])
async def get_logs(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    user_id: Optional[int] = None,
    severity: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    audit: AuditService = Depends(get_audit_service),
):
    return audit.get_logs(
        start_date=start_date,
        end_date=end_date,
        action=action,
        entity_type=entity_type,
        user_id=user_id,
        severity=severity,
        limit=limit,
    )


@router.get("/transactions", response_model=List[AuditLogResponse])
async def get_transaction_logs(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    transaction_type: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    audit: AuditService = Depends(get_audit_service),
):
    return audit.get_transaction_logs(start_date, end_date, transaction_type, limit)


@router.get("/entity/{entity_type}/{entity_id}", response_model=List[AuditLogResponse])
async def get_entity_history(entity_type: str, entity_id: int, limit: int = 50, audit: AuditService = Depends(get_audit_service)):
    return audit.get_entity_history(entity_type, entity_id, limit)


@router.get("/users/{user_id}", response_model=List[AuditLogResponse])
async def get_user_activity(user_id: int, limit: Optional[int] = None, audit: AuditService = Depends(get_audit_service)):
    return audit.get_user_activity(user_id, limit)


@router.get("/financial-summary")
async def get_financial_summary(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    audit: AuditService = Depends(get_audit_service),
):
    end_date = end_date or datetime.now(timezone.utc)
    start_date = start_date or end_date - timedelta(days=30)
    return audit.get_financial_summary(start_date, end_date)
