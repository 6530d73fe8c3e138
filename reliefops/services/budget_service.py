"""
Budget Service - Barangay budget ledger

A budget's balance is total_amount minus the sum of its expenditure items.
The sum is read under a lock on the budget row, inside the same transaction
that adds the new item, so two concurrent purchases cannot both pass the
sufficiency check against a stale sum.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional, Tuple, TYPE_CHECKING
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from reliefops.core.config import settings
from reliefops.core.errors import ErrorCode, LedgerError, ServiceError, as_service_error
from reliefops.core.identity import IdentityProvider
from reliefops.core.transaction import CancellationToken, ledger_transaction
from reliefops.models import (
    BarangayBudget, BarangayBudgetItem, BudgetStatus, ACTIVE_BUDGET_STATUSES, utcnow
)
from .audit_service import AuditService
from .balance_cache import BalanceCache

if TYPE_CHECKING:
    from .archive_service import ArchiveService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
MIN_BUDGET_YEAR = 2000
BUDGET_STATUSES = tuple(s.value for s in BudgetStatus)


def to_money(value: Any) -> Decimal:
    """Normalize an amount to a 2-place Decimal"""
    try:
        return Decimal(str(value if value is not None else 0)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise LedgerError.validation(f"Invalid amount: {value!r}")


def committed_spend(db: Session, budget_id: int, exclude_item_id: Optional[int] = None) -> Decimal:
    query = db.query(func.coalesce(func.sum(BarangayBudgetItem.amount), 0)).filter(
        BarangayBudgetItem.budget_id == budget_id
    )
    if exclude_item_id is not None:
        query = query.filter(BarangayBudgetItem.id != exclude_item_id)
    return to_money(query.scalar())


class BudgetService:
    """Budget ledger: budgets, expenditure items and balances"""

    def __init__(
        self,
        db: Session,
        audit: AuditService,
        cache: Optional[BalanceCache] = None,
        archive: Optional["ArchiveService"] = None,
        identity: Optional[IdentityProvider] = None,
    ):
        self.db = db
        self.audit = audit
        self.cache = cache if cache is not None else BalanceCache(settings.BALANCE_CACHE_TTL_SECONDS)
        self.archive = archive
        self.identity = identity or audit.identity

    def _fail(self, action: str, entity_id: Optional[int], exc: Exception,
              entity_type: str = "BarangayBudget") -> Tuple[None, ServiceError]:
        error = as_service_error(exc)
        logger.warning(f"{action} rejected for {entity_type} #{entity_id}: {error.message}")
        self.audit.log_failure(action, entity_type, entity_id, error)
        return None, error

    def _locked_budget(self, budget_id: int) -> BarangayBudget:
        budget = (
            self.db.query(BarangayBudget)
            .filter(BarangayBudget.id == budget_id)
            .with_for_update()
            .first()
        )
        if budget is None:
            raise LedgerError.not_found("Budget not found.", budget_id=budget_id)
        return budget

    def _check_unique(self, name: str, year: int, exclude_id: Optional[int] = None):
        query = self.db.query(BarangayBudget.id).filter(
            func.lower(BarangayBudget.barangay_name) == name.lower(),
            BarangayBudget.year == year,
        )
        if exclude_id is not None:
            query = query.filter(BarangayBudget.id != exclude_id)
        if query.first() is not None:
            raise LedgerError(ErrorCode.DUPLICATE, f"A budget for {name} in year {year} already exists")

    @staticmethod
    def _validate_header(name: Optional[str], year: int, total: Decimal, status: str):
        if not name or not name.strip():
            raise LedgerError.validation("Barangay is required.")
        if year < MIN_BUDGET_YEAR:
            raise LedgerError.validation(f"Year must be {MIN_BUDGET_YEAR} or later.")
        if total < 0:
            raise LedgerError.validation("Total Amount cannot be negative.")
        if status not in BUDGET_STATUSES:
            raise LedgerError.validation(f"Unknown budget status: {status}")

    # ===================== BUDGETS =====================

    def create_budget(
        self,
        name: str,
        year: int,
        total_amount: Any,
        status: str = BudgetStatus.DRAFT.value,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[BarangayBudget], Optional[ServiceError]]:
        try:
            with ledger_transaction(self.db, cancel):
                total = to_money(total_amount)
                status = (status or BudgetStatus.DRAFT.value).strip()
                self._validate_header(name, year, total, status)
                name = name.strip()
                self._check_unique(name, year)

                budget = BarangayBudget(
                    barangay_name=name,
                    year=year,
                    total_amount=total,
                    status=status,
                    created_by_user_id=self.identity.user_id,
                )
                self.db.add(budget)
                self.db.flush()
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("BUDGET_CREATE", None, e)

        self.db.refresh(budget)
        logger.info(f"Budget created: {budget.barangay_name} ({budget.year}) total={budget.total_amount}")
        self.audit.log_budget_allocation(
            budget.id, budget.barangay_name, budget.year, to_money(budget.total_amount), budget.status
        )
        return budget, None

    def update_budget(
        self,
        budget_id: int,
        name: Optional[str] = None,
        year: Optional[int] = None,
        total_amount: Any = None,
        status: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[BarangayBudget], Optional[ServiceError]]:
        try:
            with ledger_transaction(self.db, cancel):
                budget = self._locked_budget(budget_id)
                previous = {
                    "barangay_name": budget.barangay_name,
                    "year": budget.year,
                    "total_amount": to_money(budget.total_amount),
                    "status": budget.status,
                }

                new_name = name.strip() if name is not None else budget.barangay_name
                new_year = year if year is not None else budget.year
                new_total = to_money(total_amount) if total_amount is not None else to_money(budget.total_amount)
                new_status = status.strip() if status is not None else budget.status
                self._validate_header(new_name, new_year, new_total, new_status)
                self._check_unique(new_name, new_year, exclude_id=budget_id)

                spent = committed_spend(self.db, budget_id)
                if new_total < spent:
                    raise LedgerError(
                        ErrorCode.INSUFFICIENT_BUDGET,
                        f"Total amount cannot be lower than committed spend. Spent: {spent:,.2f}, Requested total: {new_total:,.2f}",
                        spent=spent,
                        requested_total=new_total,
                    )

                budget.barangay_name = new_name
                budget.year = new_year
                budget.total_amount = new_total
                budget.status = new_status
                budget.updated_at = utcnow()
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("BUDGET_UPDATE", budget_id, e)

        self.cache.invalidate(budget_id)
        self.db.refresh(budget)
        self.audit.log_budget_allocation(
            budget.id, budget.barangay_name, budget.year, to_money(budget.total_amount), budget.status,
            previous=previous,
        )
        return budget, None

    def delete_budget(self, budget_id: int) -> Tuple[bool, Optional[ServiceError]]:
        """Archive the budget together with its expenditure items"""
        budget = self.db.get(BarangayBudget, budget_id)
        if budget is None:
            _, error = self._fail("ARCHIVE", budget_id, LedgerError.not_found("Budget not found."))
            return False, error

        item_count = len(budget.items)
        total_spent = sum((to_money(i.amount) for i in budget.items), Decimal("0"))
        reason = (
            f"Archived with {item_count} budget items (Total: {total_spent:,.2f})"
            if item_count else "Archived by user"
        )
        display = f"{budget.barangay_name} ({budget.year})"
        # Release the instance so the archive service reads the row fresh
        self.db.rollback()

        if self.archive is None:
            raise RuntimeError("BudgetService.delete_budget requires an ArchiveService")
        ok, error = self.archive.archive("BarangayBudget", budget_id, reason=reason, display_name=display)
        if ok:
            self.cache.invalidate(budget_id)
        return ok, error

    def get_budget(self, budget_id: int) -> Optional[BarangayBudget]:
        return self.db.get(BarangayBudget, budget_id)

    def list_budgets(self) -> List[BarangayBudget]:
        return (
            self.db.query(BarangayBudget)
            .order_by(BarangayBudget.year.desc(), BarangayBudget.barangay_name.asc())
            .all()
        )

    def active_budgets(self) -> List[BarangayBudget]:
        return (
            self.db.query(BarangayBudget)
            .filter(BarangayBudget.status.in_(ACTIVE_BUDGET_STATUSES))
            .order_by(BarangayBudget.year.desc(), BarangayBudget.barangay_name.asc())
            .all()
        )

    # ===================== BALANCE =====================

    def get_balance(self, budget_id: int) -> Tuple[Optional[Decimal], Optional[ServiceError]]:
        """total_amount - sum(items.amount)"""
        cached = self.cache.get(budget_id)
        if cached is not None:
            return cached, None

        budget = self.db.get(BarangayBudget, budget_id)
        if budget is None:
            return None, LedgerError.not_found("Budget not found.", budget_id=budget_id).error

        balance = to_money(budget.total_amount) - committed_spend(self.db, budget_id)
        self.cache.set(budget_id, balance)
        return balance, None

    # ===================== EXPENDITURES =====================

    def record_expenditure(
        self,
        budget_id: int,
        category: str,
        description: str,
        amount: Any,
        notes: Optional[str] = None,
    ) -> Tuple[BarangayBudgetItem, BarangayBudget, Decimal]:
        """
        Add an expenditure item inside the caller's transaction.

        Raises LedgerError on any rule violation; does not commit. Returns the
        flushed item, its budget and the balance remaining after it.
        """
        amount = to_money(amount)
        if amount < 0:
            raise LedgerError.validation("Amount cannot be negative.")
        if not category or not category.strip() or not description or not description.strip():
            raise LedgerError.validation("Category and Description are required.")

        budget = self._locked_budget(budget_id)
        if budget.status not in ACTIVE_BUDGET_STATUSES:
            raise LedgerError(
                ErrorCode.BUDGET_NOT_ACTIVE,
                f"Barangay budget is not active. Current status: {budget.status}",
                status=budget.status,
            )

        available = to_money(budget.total_amount) - committed_spend(self.db, budget_id)
        if amount > available:
            raise LedgerError(
                ErrorCode.INSUFFICIENT_BUDGET,
                f"Insufficient budget. Available: {available:,.2f}, Required: {amount:,.2f}",
                available=available,
                required=amount,
            )

        item = BarangayBudgetItem(
            budget_id=budget_id,
            category=category.strip(),
            description=description.strip(),
            amount=amount,
            notes=notes.strip() if notes else None,
            created_at=utcnow(),
        )
        self.db.add(item)
        budget.updated_at = utcnow()
        self.db.flush()
        return item, budget, available - amount

    def add_expenditure_item(
        self,
        budget_id: int,
        category: str,
        description: str,
        amount: Any,
        notes: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[BarangayBudgetItem], Optional[ServiceError]]:
        try:
            with ledger_transaction(self.db, cancel):
                item, budget, remaining = self.record_expenditure(budget_id, category, description, amount, notes)
                barangay_name = budget.barangay_name
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("BUDGET_EXPENDITURE", budget_id, e)

        self.cache.invalidate(budget_id)
        self.db.refresh(item)
        logger.info(f"Expenditure #{item.id} on budget #{budget_id}: {item.amount} (remaining {remaining})")
        self.audit.log_budget_expenditure(
            item.id, budget_id, barangay_name, item.category, item.description, to_money(item.amount), remaining
        )
        return item, None

    def update_expenditure_item(
        self,
        item_id: int,
        category: Optional[str] = None,
        description: Optional[str] = None,
        amount: Any = None,
        notes: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[BarangayBudgetItem], Optional[ServiceError]]:
        budget_id = None
        try:
            with ledger_transaction(self.db, cancel):
                item = self.db.get(BarangayBudgetItem, item_id)
                if item is None:
                    raise LedgerError.not_found("Item not found.", item_id=item_id)
                budget_id = item.budget_id
                budget = self._locked_budget(budget_id)

                old_values = {
                    "category": item.category,
                    "description": item.description,
                    "amount": to_money(item.amount),
                    "notes": item.notes,
                }
                new_amount = to_money(amount) if amount is not None else to_money(item.amount)
                new_category = (category if category is not None else item.category).strip()
                new_description = (description if description is not None else item.description).strip()
                if new_amount < 0:
                    raise LedgerError.validation("Amount cannot be negative.")
                if not new_category or not new_description:
                    raise LedgerError.validation("Category and Description are required.")

                # The item's own previous amount does not count against it
                available = to_money(budget.total_amount) - committed_spend(self.db, budget_id, exclude_item_id=item_id)
                if new_amount > available:
                    raise LedgerError(
                        ErrorCode.INSUFFICIENT_BUDGET,
                        f"Insufficient budget. Available: {available:,.2f}, Required: {new_amount:,.2f}",
                        available=available,
                        required=new_amount,
                    )

                item.category = new_category
                item.description = new_description
                item.amount = new_amount
                if notes is not None:
                    item.notes = notes.strip() or None
                budget.updated_at = utcnow()
                barangay_name = budget.barangay_name
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("BUDGET_ITEM_UPDATE", item_id, e, entity_type="BarangayBudgetItem")

        self.cache.invalidate(budget_id)
        self.db.refresh(item)
        self.audit.log(
            action="BUDGET_ITEM_UPDATE",
            entity_type="BarangayBudgetItem",
            entity_id=item_id,
            old_values=old_values,
            new_values={
                "category": item.category,
                "description": item.description,
                "amount": to_money(item.amount),
                "notes": item.notes,
            },
            description=f"Budget item updated for {barangay_name}: {item.category} - {item.description} ({to_money(item.amount):,.2f})",
        )
        return item, None

    def delete_expenditure_item(
        self, item_id: int, cancel: Optional[CancellationToken] = None
    ) -> Tuple[bool, Optional[ServiceError]]:
        try:
            with ledger_transaction(self.db, cancel):
                item = self.db.get(BarangayBudgetItem, item_id)
                if item is None:
                    raise LedgerError.not_found("Item not found.", item_id=item_id)
                budget = self._locked_budget(item.budget_id)
                budget_id = budget.id
                details = {
                    "budget_item_id": item.id,
                    "category": item.category,
                    "description": item.description,
                    "amount": to_money(item.amount),
                    "notes": item.notes,
                }
                barangay_name = budget.barangay_name
                self.db.delete(item)
                budget.updated_at = utcnow()
        except (LedgerError, SQLAlchemyError) as e:
            _, error = self._fail("BUDGET_ITEM_DELETE", item_id, e, entity_type="BarangayBudgetItem")
            return False, error

        self.cache.invalidate(budget_id)
        self.audit.log(
            action="BUDGET_ITEM_DELETE",
            entity_type="BarangayBudgetItem",
            entity_id=item_id,
            old_values=details,
            description=f"Budget item deleted from {barangay_name}: {details['category']} - {details['description']} ({details['amount']:,.2f})",
            severity="Warning",
        )
        return True, None
