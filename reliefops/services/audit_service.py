"""
Audit Service - Append-only trail of ledger actions

Writes go through their own session so that an audit entry never joins, and
can never abort or roll back, the operation it describes. A failed write is
reported on the module logger and swallowed.
"""
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Session
import json
import logging

from reliefops.core.config import settings
from reliefops.core.errors import ErrorCategory, ServiceError
from reliefops.core.identity import IdentityProvider
from reliefops.models import AuditLog, AuditSeverity, utcnow

logger = logging.getLogger(__name__)

# Actions counted as financial / inventory transactions
TRANSACTION_ACTIONS = (
    "STOCK_IN",
    "STOCK_OUT",
    "ALLOCATION",
    "DISTRIBUTION",
    "BUDGET_CREATE",
    "BUDGET_UPDATE",
    "BUDGET_EXPENDITURE",
)


EXPECTED_FAILURES = (
    ErrorCategory.NOT_FOUND,
    ErrorCategory.VALIDATION,
    ErrorCategory.BUSINESS_RULE,
    ErrorCategory.CANCELLED,
)


def _serialize(values: Any) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(values, default=str, sort_keys=True)


def _bounded(limit: Optional[int]) -> int:
    if not limit or limit <= 0:
        return settings.AUDIT_QUERY_LIMIT
    return min(limit, settings.AUDIT_QUERY_MAX_LIMIT)


class AuditService:
    """Audit trail writer and read-only query methods"""

    def __init__(self, session_factory: Callable[[], Session], identity: Optional[IdentityProvider] = None):
        self.session_factory = session_factory
        self.identity = identity or IdentityProvider()

    # ===================== WRITE =====================

    def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int] = None,
        user_id: Optional[int] = None,
        old_values: Any = None,
        new_values: Any = None,
        description: Optional[str] = None,
        severity: str = AuditSeverity.INFO.value,
        success: bool = True,
        error_message: Optional[str] = None,
    ) -> Optional[int]:
        """Write one audit entry. Returns its id, or None if the write failed."""
        if isinstance(severity, AuditSeverity):
            severity = severity.value

        acting = self.identity.current_user
        if user_id is None and acting is not None:
            user_id = acting.user_id

        db = None
        try:
            db = self.session_factory()
            entry = AuditLog(
                timestamp=utcnow(),
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=user_id,
                user_name=acting.username if acting else None,
                user_role=acting.role if acting else None,
                old_values=_serialize(old_values),
                new_values=_serialize(new_values),
                description=description,
                severity=severity,
                is_successful=success,
                error_message=error_message,
            )
            db.add(entry)
            db.commit()
            return entry.id
        except Exception as e:
            logger.error(
                f"[AUDIT LOG ERROR] Failed to log audit entry. "
                f"Action: {action}, Entity: {entity_type}, Error: {e}"
            )
            if db is not None:
                try:
                    db.rollback()
                except Exception as rollback_error:
                    logger.error(f"[AUDIT LOG ERROR] Rollback failed: {rollback_error}")
            return None
        finally:
            if db is not None:
                db.close()

    def log_failure(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        error: ServiceError,
        description: Optional[str] = None,
    ) -> Optional[int]:
        """Record a rejected or failed operation"""
        severity = AuditSeverity.WARNING if error.category in EXPECTED_FAILURES else AuditSeverity.ERROR
        return self.log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description or f"Failed {action} on {entity_type}: {error.message}",
            severity=severity,
            success=False,
            error_message=error.message,
            new_values={"error_code": error.code.value, **error.details} if error.details else {"error_code": error.code.value},
        )

    # ===================== TRANSACTION WRITERS =====================

    def log_stock_in(
        self,
        stock_id: int,
        item_name: str,
        quantity: int,
        unit: str,
        unit_cost: Decimal,
        budget_id: Optional[int] = None,
    ) -> Optional[int]:
        total_cost = unit_cost * quantity
        return self.log(
            action="STOCK_IN",
            entity_type="Stock",
            entity_id=stock_id,
            new_values={
                "stock_id": stock_id,
                "item_name": item_name,
                "quantity": quantity,
                "unit": unit,
                "unit_cost": unit_cost,
                "total_cost": total_cost,
                "budget_id": budget_id,
                "transaction_type": "Stock-In",
            },
            description=f"Stock received: {quantity} {unit} of {item_name} at {unit_cost:,.2f}/unit (Total: {total_cost:,.2f})",
        )

    def log_allocation(
        self,
        allocation_id: int,
        stock_id: int,
        shelter_name: str,
        item_name: str,
        quantity: int,
        remaining: int,
    ) -> Optional[int]:
        return self.log(
            action="ALLOCATION",
            entity_type="ResourceAllocation",
            entity_id=allocation_id,
            new_values={
                "stock_id": stock_id,
                "shelter": shelter_name,
                "item_name": item_name,
                "quantity": quantity,
                "remaining_balance": remaining,
                "transaction_type": "Allocation",
            },
            description=f"Allocated {quantity} of {item_name} to {shelter_name}. Remaining central stock: {remaining}",
            severity=AuditSeverity.WARNING.value if quantity > remaining else AuditSeverity.INFO.value,
        )

    def log_distribution(
        self,
        distribution_id: int,
        allocation_id: int,
        evacuee_name: str,
        quantity: int,
        remaining: int,
    ) -> Optional[int]:
        return self.log(
            action="DISTRIBUTION",
            entity_type="ResourceDistribution",
            entity_id=distribution_id,
            new_values={
                "allocation_id": allocation_id,
                "evacuee": evacuee_name,
                "quantity": quantity,
                "remaining_allocation": remaining,
                "transaction_type": "Stock-Out",
            },
            description=f"Released {quantity} to {evacuee_name} from allocation #{allocation_id}. Remaining: {remaining}",
        )

    def log_budget_allocation(
        self,
        budget_id: int,
        barangay_name: str,
        year: int,
        total_amount: Decimal,
        status: str,
        previous: Optional[Dict[str, Any]] = None,
    ) -> Optional[int]:
        new_values = {
            "budget_id": budget_id,
            "barangay_name": barangay_name,
            "year": year,
            "total_amount": total_amount,
            "status": status,
            "transaction_type": "Budget Allocation",
        }
        if previous is not None:
            description = f"Budget updated for {barangay_name} ({year}): {previous.get('total_amount')} -> {total_amount}"
        else:
            description = f"Budget created for {barangay_name} ({year}): {total_amount:,.2f}"
        return self.log(
            action="BUDGET_UPDATE" if previous is not None else "BUDGET_CREATE",
            entity_type="BarangayBudget",
            entity_id=budget_id,
            old_values=previous,
            new_values=new_values,
            description=description,
        )

    def log_budget_expenditure(
        self,
        item_id: int,
        budget_id: int,
        barangay_name: str,
        category: str,
        description: str,
        amount: Decimal,
        remaining: Decimal,
    ) -> Optional[int]:
        low = remaining < settings.LOW_BUDGET_WARNING
        return self.log(
            action="BUDGET_EXPENDITURE",
            entity_type="BarangayBudgetItem",
            entity_id=item_id,
            new_values={
                "budget_item_id": item_id,
                "budget_id": budget_id,
                "barangay_name": barangay_name,
                "category": category,
                "description": description,
                "amount": amount,
                "remaining_budget": remaining,
                "transaction_type": "Budget Expenditure",
            },
            description=(
                f"Expenditure recorded for {barangay_name}: {amount:,.2f} - {category} - {description}. "
                f"Remaining budget: {remaining:,.2f}"
            ),
            severity=AuditSeverity.WARNING.value if low else AuditSeverity.INFO.value,
        )

    # ===================== READ =====================

    def get_logs(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        user_id: Optional[int] = None,
        severity: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        """Filtered audit entries, newest first"""
        db = self.session_factory()
        try:
            query = db.query(AuditLog)

            if start_date:
                query = query.filter(AuditLog.timestamp >= start_date)
            if end_date:
                query = query.filter(AuditLog.timestamp <= end_date)
            if action:
                query = query.filter(AuditLog.action == action)
            if entity_type:
                query = query.filter(AuditLog.entity_type == entity_type)
            if user_id is not None:
                query = query.filter(AuditLog.user_id == user_id)
            if severity:
                query = query.filter(AuditLog.severity == severity)

            rows = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(_bounded(limit)).all()
            db.expunge_all()
            return rows
        finally:
            db.close()

    def get_transaction_logs(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        transaction_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        db = self.session_factory()
        try:
            query = db.query(AuditLog).filter(AuditLog.action.in_(TRANSACTION_ACTIONS))

            if start_date:
                query = query.filter(AuditLog.timestamp >= start_date)
            if end_date:
                query = query.filter(AuditLog.timestamp <= end_date)
            if transaction_type:
                query = query.filter(AuditLog.action == transaction_type)

            rows = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(_bounded(limit)).all()
            db.expunge_all()
            return rows
        finally:
            db.close()

    def get_entity_history(self, entity_type: str, entity_id: int, limit: int = 50) -> List[AuditLog]:
        db = self.session_factory()
        try:
            rows = (
                db.query(AuditLog)
                .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
                .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
                .limit(_bounded(limit))
                .all()
            )
            db.expunge_all()
            return rows
        finally:
            db.close()

    def get_user_activity(self, user_id: int, limit: Optional[int] = None) -> List[AuditLog]:
        return self.get_logs(user_id=user_id, limit=limit)

    def get_financial_summary(self, start_date: datetime, end_date: datetime) -> Dict[str, Any]:
        """Transaction counts per type in the period"""
        db = self.session_factory()
        try:
            rows = (
                db.query(AuditLog.action)
                .filter(
                    AuditLog.timestamp >= start_date,
                    AuditLog.timestamp <= end_date,
                    AuditLog.action.in_(TRANSACTION_ACTIONS),
                    AuditLog.is_successful.is_(True),
                )
                .all()
            )
        finally:
            db.close()

        counts = {action: 0 for action in TRANSACTION_ACTIONS}
        for (action,) in rows:
            counts[action] += 1

        return {
            "period_start": start_date,
            "period_end": end_date,
            "total_stock_in": counts["STOCK_IN"],
            "total_allocations": counts["ALLOCATION"],
            "total_distributions": counts["DISTRIBUTION"],
            "total_expenditures": counts["BUDGET_EXPENDITURE"],
            "by_action": counts,
        }
