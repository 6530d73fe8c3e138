"""
Stock Service - Stock ledger for relief goods

Quantity changes lock the stock row (SELECT ... FOR UPDATE) so concurrent
adjustments serialize on the row; quantity always stays in [0, max_capacity].
"""
from typing import Any, List, Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
import logging

from reliefops.core.config import settings
from reliefops.core.errors import ErrorCode, LedgerError, ServiceError, as_service_error
from reliefops.core.identity import IdentityProvider
from reliefops.core.transaction import CancellationToken, ledger_transaction
from reliefops.models import (
    Disaster, ReliefGood, ResourceAllocation, Shelter, Stock, utcnow
)
from .archive_service import ArchiveService
from .audit_service import AuditService
from .budget_service import BudgetService, to_money

logger = logging.getLogger(__name__)

INVENTORY_PURCHASE = "Inventory Purchase"


def locked_stock(db: Session, stock_id: int) -> Stock:
    stock = db.query(Stock).filter(Stock.id == stock_id).with_for_update().first()
    if stock is None:
        raise LedgerError.not_found("Stock not found.", stock_id=stock_id)
    return stock


def check_bounds(quantity: int, max_capacity: int):
    if quantity < 0:
        raise LedgerError(
            ErrorCode.INSUFFICIENT_STOCK,
            f"Insufficient stock. Resulting quantity would be {quantity}.",
            resulting=quantity,
        )
    if quantity > max_capacity:
        raise LedgerError(
            ErrorCode.CAPACITY_EXCEEDED,
            f"Exceeds max capacity. Resulting quantity {quantity} > {max_capacity}.",
            resulting=quantity,
            max_capacity=max_capacity,
        )


class StockService:
    """Stock ledger operations"""

    def __init__(
        self,
        db: Session,
        audit: AuditService,
        budgets: Optional[BudgetService] = None,
        archive: Optional[ArchiveService] = None,
        identity: Optional[IdentityProvider] = None,
    ):
        self.db = db
        self.audit = audit
        self.identity = identity or audit.identity
        self.archive = archive or ArchiveService(db, audit, self.identity)
        self.budgets = budgets or BudgetService(db, audit, archive=self.archive, identity=self.identity)

    def _fail(self, action: str, entity_id: Optional[int], exc: Exception) -> Tuple[None, ServiceError]:
        error = as_service_error(exc)
        logger.warning(f"{action} rejected for Stock #{entity_id}: {error.message}")
        self.audit.log_failure(action, "Stock", entity_id, error)
        return None, error

    def _check_placement(self, relief_good_id: int, disaster_id: Optional[int], shelter_id: Optional[int]) -> ReliefGood:
        good = self.db.get(ReliefGood, relief_good_id)
        if good is None:
            raise LedgerError.not_found("ReliefGood not found.", relief_good_id=relief_good_id)
        if disaster_id is not None and self.db.get(Disaster, disaster_id) is None:
            raise LedgerError.not_found("Disaster not found.", disaster_id=disaster_id)
        if shelter_id is not None and self.db.get(Shelter, shelter_id) is None:
            raise LedgerError.not_found("Shelter not found.", shelter_id=shelter_id)
        return good

    # ===================== CREATE =====================

    def create_stock(
        self,
        relief_good_id: int,
        quantity: int,
        max_capacity: Optional[int] = None,
        location: Optional[str] = None,
        disaster_id: Optional[int] = None,
        shelter_id: Optional[int] = None,
        unit_cost: Any = 0,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[Stock], Optional[ServiceError]]:
        try:
            with ledger_transaction(self.db, cancel):
                good = self._check_placement(relief_good_id, disaster_id, shelter_id)
                cost = to_money(unit_cost)
                capacity = max_capacity if max_capacity is not None else settings.DEFAULT_MAX_CAPACITY
                if quantity < 0:
                    raise LedgerError.validation("Quantity cannot be negative.")
                if capacity <= 0:
                    raise LedgerError.validation("Max capacity must be greater than zero.")
                if cost < 0:
                    raise LedgerError.validation("Unit cost cannot be negative.")
                check_bounds(quantity, capacity)

                stock = Stock(
                    relief_good_id=relief_good_id,
                    quantity=quantity,
                    max_capacity=capacity,
                    unit_cost=cost,
                    location=location,
                    disaster_id=disaster_id,
                    shelter_id=shelter_id,
                    last_updated=utcnow(),
                )
                self.db.add(stock)
                self.db.flush()
                item_name = good.name
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("STOCK_CREATE", None, e)

        self.db.refresh(stock)
        logger.info(f"Stock #{stock.id} created: {stock.quantity} x {item_name}")
        self.audit.log(
            action="STOCK_CREATE",
            entity_type="Stock",
            entity_id=stock.id,
            new_values={
                "relief_good_id": relief_good_id,
                "quantity": stock.quantity,
                "max_capacity": stock.max_capacity,
                "location": stock.location,
            },
            description=f"Stock created: {stock.quantity} of {item_name}",
        )
        return stock, None

    def stock_in(
        self,
        relief_good_id: int,
        quantity: int,
        unit_cost: Any,
        budget_id: Optional[int] = None,
        max_capacity: Optional[int] = None,
        location: Optional[str] = None,
        disaster_id: Optional[int] = None,
        shelter_id: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[Stock], Optional[ServiceError]]:
        """
        Receive goods into a new stock row.

        With a budget, the purchase (quantity * unit_cost) is recorded as an
        expenditure item on that budget in the same transaction.
        """
        try:
            with ledger_transaction(self.db, cancel):
                good = self._check_placement(relief_good_id, disaster_id, shelter_id)
                cost = to_money(unit_cost)
                capacity = max_capacity if max_capacity is not None else settings.DEFAULT_MAX_CAPACITY
                if quantity <= 0:
                    raise LedgerError.validation("Quantity must be greater than zero.")
                if cost < 0:
                    raise LedgerError.validation("Unit cost cannot be negative.")
                if capacity <= 0:
                    raise LedgerError.validation("Max capacity must be greater than zero.")
                if quantity > capacity:
                    raise LedgerError(
                        ErrorCode.CAPACITY_EXCEEDED,
                        f"Quantity ({quantity}) cannot exceed max capacity ({capacity}).",
                        quantity=quantity,
                        max_capacity=capacity,
                    )

                total_cost = cost * quantity
                if budget_id is not None and total_cost > 0:
                    self.budgets.record_expenditure(
                        budget_id,
                        INVENTORY_PURCHASE,
                        f"Purchase of {good.name} x{quantity} @ {cost:,.2f}",
                        total_cost,
                        notes=location,
                    )

                stock = Stock(
                    relief_good_id=relief_good_id,
                    quantity=quantity,
                    max_capacity=capacity,
                    unit_cost=cost,
                    location=location,
                    disaster_id=disaster_id,
                    shelter_id=shelter_id,
                    last_updated=utcnow(),
                )
                self.db.add(stock)
                self.db.flush()
                item_name, unit = good.name, good.unit
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("STOCK_IN", None, e)

        if budget_id is not None:
            self.budgets.cache.invalidate(budget_id)
        self.db.refresh(stock)
        logger.info(f"Stock-in #{stock.id}: {quantity} {unit} of {item_name} at {cost}/unit")
        self.audit.log_stock_in(stock.id, item_name, quantity, unit, cost, budget_id=budget_id)
        return stock, None

    # ===================== MUTATE =====================

    def adjust_quantity(
        self, stock_id: int, delta: int, cancel: Optional[CancellationToken] = None
    ) -> Tuple[Optional[Stock], Optional[ServiceError]]:
        """Add delta to quantity; rejected deltas leave the row unchanged"""
        try:
            with ledger_transaction(self.db, cancel):
                stock = locked_stock(self.db, stock_id)
                before = stock.quantity
                after = before + delta
                check_bounds(after, stock.max_capacity)
                stock.quantity = after
                stock.last_updated = utcnow()
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("STOCK_ADJUST", stock_id, e)

        self.db.refresh(stock)
        logger.info(f"Stock #{stock_id} adjusted {before} -> {after} ({delta:+d})")
        self.audit.log(
            action="STOCK_ADJUST",
            entity_type="Stock",
            entity_id=stock_id,
            old_values={"quantity": before},
            new_values={"quantity": after, "delta": delta},
            description=f"Stock #{stock_id} adjusted by {delta:+d} ({before} -> {after})",
        )
        return stock, None

    def update_stock(
        self,
        stock_id: int,
        quantity: Optional[int] = None,
        max_capacity: Optional[int] = None,
        location: Optional[str] = None,
        unit_cost: Any = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[Stock], Optional[ServiceError]]:
        try:
            with ledger_transaction(self.db, cancel):
                stock = locked_stock(self.db, stock_id)
                old_values = {
                    "quantity": stock.quantity,
                    "max_capacity": stock.max_capacity,
                    "location": stock.location,
                    "unit_cost": to_money(stock.unit_cost),
                }
                new_quantity = quantity if quantity is not None else stock.quantity
                new_capacity = max_capacity if max_capacity is not None else stock.max_capacity
                if new_capacity <= 0:
                    raise LedgerError.validation("Max capacity must be greater than zero.")
                check_bounds(new_quantity, new_capacity)
                if unit_cost is not None:
                    cost = to_money(unit_cost)
                    if cost < 0:
                        raise LedgerError.validation("Unit cost cannot be negative.")
                    stock.unit_cost = cost

                stock.quantity = new_quantity
                stock.max_capacity = new_capacity
                if location is not None:
                    stock.location = location or None
                stock.last_updated = utcnow()
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("STOCK_UPDATE", stock_id, e)

        self.db.refresh(stock)
        self.audit.log(
            action="STOCK_UPDATE",
            entity_type="Stock",
            entity_id=stock_id,
            old_values=old_values,
            new_values={
                "quantity": stock.quantity,
                "max_capacity": stock.max_capacity,
                "location": stock.location,
                "unit_cost": to_money(stock.unit_cost),
            },
            description=f"Stock #{stock_id} updated",
        )
        return stock, None

    def set_active(
        self, stock_id: int, active: bool, cancel: Optional[CancellationToken] = None
    ) -> Tuple[Optional[Stock], Optional[ServiceError]]:
        try:
            with ledger_transaction(self.db, cancel):
                stock = locked_stock(self.db, stock_id)
                was_active = stock.is_active
                stock.is_active = active
                stock.last_updated = utcnow()
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("STOCK_UPDATE", stock_id, e)

        self.db.refresh(stock)
        self.audit.log(
            action="STOCK_UPDATE",
            entity_type="Stock",
            entity_id=stock_id,
            old_values={"is_active": was_active},
            new_values={"is_active": active},
            description=f"Stock #{stock_id} {'activated' if active else 'deactivated'}",
        )
        return stock, None

    def delete_stock(self, stock_id: int) -> Tuple[Optional[str], Optional[ServiceError]]:
        """
        Deactivate a stock that has allocation history, archive it otherwise.

        Returns "deactivated" or "archived".
        """
        stock = self.db.get(Stock, stock_id)
        if stock is None:
            return self._fail("ARCHIVE", stock_id, LedgerError.not_found("Stock not found."))

        allocation_count = (
            self.db.query(ResourceAllocation.id).filter(ResourceAllocation.stock_id == stock_id).count()
        )
        if allocation_count > 0:
            _, error = self.set_active(stock_id, False)
            if error:
                return None, error
            logger.info(f"Stock #{stock_id} deactivated; {allocation_count} allocations reference it")
            return "deactivated", None

        display = f"{stock.relief_good.name} @ {stock.location}" if stock.location else stock.relief_good.name
        self.db.rollback()
        ok, error = self.archive.archive(
            "Stock", stock_id, reason="Archived by user (no allocation history)", display_name=display
        )
        return ("archived", None) if ok else (None, error)

    # ===================== READ =====================

    def get_stock(self, stock_id: int) -> Optional[Stock]:
        return (
            self.db.query(Stock)
            .options(joinedload(Stock.relief_good))
            .filter(Stock.id == stock_id)
            .first()
        )

    def list_stocks(self, only_active: bool = True) -> List[Stock]:
        query = self.db.query(Stock).options(joinedload(Stock.relief_good))
        if only_active:
            query = query.filter(Stock.is_active.is_(True))
        return query.order_by(Stock.last_updated.desc(), Stock.id.desc()).all()

    def list_by_relief_good(self, relief_good_id: int) -> List[Stock]:
        return (
            self.db.query(Stock)
            .filter(Stock.relief_good_id == relief_good_id)
            .order_by(Stock.last_updated.desc(), Stock.id.desc())
            .all()
        )

    def shelter_stock(self, shelter_id: int) -> List[Stock]:
        return (
            self.db.query(Stock)
            .options(joinedload(Stock.relief_good))
            .filter(Stock.shelter_id == shelter_id, Stock.is_active.is_(True))
            .order_by(Stock.relief_good_id)
            .all()
        )

