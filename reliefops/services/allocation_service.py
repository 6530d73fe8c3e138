"""
Allocation Service - Central stock -> shelter stock -> evacuee

Allocation moves quantity from a source stock row into the shelter-scoped
stock row for the same good (created on first allocation) and records an
immutable ResourceAllocation, all in one transaction. Distribution releases
part of an allocation to an evacuee and never lets the cumulative
distributed quantity exceed the allocation.
"""
from typing import List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
import logging

from reliefops.core.config import settings
from reliefops.core.errors import ErrorCode, LedgerError, ServiceError, as_service_error
from reliefops.core.identity import IdentityProvider
from reliefops.core.transaction import CancellationToken, ledger_transaction
from reliefops.models import (
    AppUser, Evacuee, ResourceAllocation, ResourceDistribution, Shelter, Stock, utcnow
)
from .audit_service import AuditService
from .stock_service import check_bounds, locked_stock

logger = logging.getLogger(__name__)


def distributed_total(db: Session, allocation_id: int) -> int:
    return int(
        db.query(func.coalesce(func.sum(ResourceDistribution.quantity), 0))
        .filter(ResourceDistribution.allocation_id == allocation_id)
        .scalar()
    )


class AllocationService:
    """Allocation / distribution chain"""

    def __init__(self, db: Session, audit: AuditService, identity: Optional[IdentityProvider] = None):
        self.db = db
        self.audit = audit
        self.identity = identity or audit.identity

    def _fail(self, action: str, entity_type: str, entity_id: Optional[int], exc: Exception):
        error = as_service_error(exc)
        logger.warning(f"{action} rejected for {entity_type} #{entity_id}: {error.message}")
        self.audit.log_failure(action, entity_type, entity_id, error)
        return None, error

    def _active_user(self, user_id: Optional[int]) -> AppUser:
        if user_id is None:
            user_id = self.identity.user_id
        if user_id is None:
            raise LedgerError(ErrorCode.UNAUTHORIZED, "An acting user is required.")
        user = self.db.get(AppUser, user_id)
        if user is None:
            raise LedgerError.not_found("User not found.", user_id=user_id)
        if not user.is_active:
            raise LedgerError(ErrorCode.INACTIVE_ENTITY, "User is inactive.", user_id=user_id)
        return user

    def _shelter_stock_for(self, source: Stock, shelter: Shelter) -> Stock:
        """Find or create the shelter-scoped stock row for the source's good"""
        target = (
            self.db.query(Stock)
            .filter(
                Stock.relief_good_id == source.relief_good_id,
                Stock.shelter_id == shelter.id,
            )
            .order_by(Stock.id)
            .with_for_update()
            .first()
        )
        if target is not None:
            if not target.is_active:
                target.is_active = True
            return target

        target = Stock(
            relief_good_id=source.relief_good_id,
            disaster_id=shelter.disaster_id or source.disaster_id,
            shelter_id=shelter.id,
            quantity=0,
            max_capacity=settings.DEFAULT_MAX_CAPACITY,
            unit_cost=source.unit_cost,
            location=shelter.name,
            is_active=True,
            last_updated=utcnow(),
        )
        self.db.add(target)
        return target

    # ===================== ALLOCATE =====================

    def allocate_to_shelter(
        self,
        stock_id: int,
        shelter_id: int,
        quantity: int,
        user_id: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[ResourceAllocation], Optional[ServiceError]]:
        """
        Decrement the source stock, increment the shelter stock, record the
        allocation. All three effects commit together or not at all.
        """
        try:
            with ledger_transaction(self.db, cancel):
                if quantity <= 0:
                    raise LedgerError.validation("Quantity must be greater than zero.", quantity=quantity)
                user = self._active_user(user_id)

                source = locked_stock(self.db, stock_id)
                if not source.is_active:
                    raise LedgerError(ErrorCode.INACTIVE_ENTITY, "Stock is inactive.", stock_id=stock_id)

                shelter = self.db.get(Shelter, shelter_id)
                if shelter is None:
                    raise LedgerError.not_found("Shelter not found.", shelter_id=shelter_id)
                if not shelter.is_active:
                    raise LedgerError(ErrorCode.INACTIVE_ENTITY, "Shelter is inactive.", shelter_id=shelter_id)
                if source.shelter_id == shelter_id:
                    raise LedgerError.validation("Stock already belongs to this shelter.")

                if source.quantity < quantity:
                    raise LedgerError(
                        ErrorCode.INSUFFICIENT_STOCK,
                        f"Insufficient stock. Available: {source.quantity}, Requested: {quantity}",
                        available=source.quantity,
                        requested=quantity,
                    )

                now = utcnow()
                source.quantity -= quantity
                source.last_updated = now

                target = self._shelter_stock_for(source, shelter)
                check_bounds(target.quantity + quantity, target.max_capacity)
                target.quantity += quantity
                target.last_updated = now

                allocation = ResourceAllocation(
                    stock_id=source.id,
                    shelter_id=shelter.id,
                    allocated_by_user_id=user.id,
                    quantity=quantity,
                    allocated_at=now,
                )
                self.db.add(allocation)
                self.db.flush()

                remaining = source.quantity
                shelter_name = shelter.name
                item_name = source.relief_good.name
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("ALLOCATION", "Stock", stock_id, e)

        self.db.refresh(allocation)
        logger.info(f"Allocation #{allocation.id}: {quantity} x {item_name} -> {shelter_name} (remaining {remaining})")
        self.audit.log_allocation(allocation.id, stock_id, shelter_name, item_name, quantity, remaining)
        return allocation, None

    # ===================== DISTRIBUTE =====================

    def distribute_to_evacuee(
        self,
        allocation_id: int,
        evacuee_id: int,
        quantity: int,
        user_id: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Optional[ResourceDistribution], Optional[ServiceError]]:
        """
        Release quantity from an allocation to one evacuee.

        The allocation row is locked while the cumulative distributed
        quantity is checked, and the shelter stock for the good is reduced
        by the same amount.
        """
        try:
            with ledger_transaction(self.db, cancel):
                if quantity <= 0:
                    raise LedgerError.validation("Quantity must be greater than zero.", quantity=quantity)
                user = self._active_user(user_id)

                allocation = (
                    self.db.query(ResourceAllocation)
                    .filter(ResourceAllocation.id == allocation_id)
                    .with_for_update()
                    .first()
                )
                if allocation is None:
                    raise LedgerError.not_found("Allocation not found.", allocation_id=allocation_id)

                evacuee = self.db.get(Evacuee, evacuee_id)
                if evacuee is None:
                    raise LedgerError.not_found("Evacuee not found.", evacuee_id=evacuee_id)

                already = distributed_total(self.db, allocation_id)
                available = allocation.quantity - already
                if quantity > available:
                    raise LedgerError(
                        ErrorCode.EXCEEDS_ALLOCATION,
                        f"Exceeds allocation. Remaining: {available}, Requested: {quantity}",
                        remaining=available,
                        requested=quantity,
                    )

                shelter_stock = (
                    self.db.query(Stock)
                    .filter(
                        Stock.relief_good_id == allocation.stock.relief_good_id,
                        Stock.shelter_id == allocation.shelter_id,
                    )
                    .order_by(Stock.id)
                    .with_for_update()
                    .first()
                )
                if shelter_stock is not None:
                    check_bounds(shelter_stock.quantity - quantity, shelter_stock.max_capacity)
                    shelter_stock.quantity -= quantity
                    shelter_stock.last_updated = utcnow()

                distribution = ResourceDistribution(
                    allocation_id=allocation_id,
                    evacuee_id=evacuee_id,
                    distributed_by_user_id=user.id,
                    quantity=quantity,
                    distributed_at=utcnow(),
                )
                self.db.add(distribution)
                self.db.flush()

                remaining = available - quantity
                evacuee_name = f"{evacuee.first_name} {evacuee.last_name}"
        except (LedgerError, SQLAlchemyError) as e:
            return self._fail("DISTRIBUTION", "ResourceAllocation", allocation_id, e)

        self.db.refresh(distribution)
        logger.info(f"Distribution #{distribution.id}: {quantity} to {evacuee_name} from allocation #{allocation_id}")
        self.audit.log_distribution(distribution.id, allocation_id, evacuee_name, quantity, remaining)
        return distribution, None

    # ===================== READ =====================

    def list_allocations(self) -> List[ResourceAllocation]:
        return (
            self.db.query(ResourceAllocation)
            .options(joinedload(ResourceAllocation.shelter), joinedload(ResourceAllocation.stock))
            .order_by(ResourceAllocation.allocated_at.desc(), ResourceAllocation.id.desc())
            .all()
        )

    def get_allocation(self, allocation_id: int) -> Optional[ResourceAllocation]:
        return self.db.get(ResourceAllocation, allocation_id)

    def allocations_by_shelter(self, shelter_id: int) -> List[ResourceAllocation]:
        return (
            self.db.query(ResourceAllocation)
            .filter(ResourceAllocation.shelter_id == shelter_id)
            .order_by(ResourceAllocation.allocated_at.desc(), ResourceAllocation.id.desc())
            .all()
        )

    def distributions_by_allocation(self, allocation_id: int) -> List[ResourceDistribution]:
        return (
            self.db.query(ResourceDistribution)
            .filter(ResourceDistribution.allocation_id == allocation_id)
            .order_by(ResourceDistribution.distributed_at.desc(), ResourceDistribution.id.desc())
            .all()
        )

    def distributions_by_evacuee(self, evacuee_id: int) -> List[ResourceDistribution]:
        return (
            self.db.query(ResourceDistribution)
            .filter(ResourceDistribution.evacuee_id == evacuee_id)
            .order_by(ResourceDistribution.distributed_at.desc(), ResourceDistribution.id.desc())
            .all()
        )

    def remaining_quantity(self, allocation_id: int) -> Tuple[Optional[int], Optional[ServiceError]]:
        allocation = self.db.get(ResourceAllocation, allocation_id)
        if allocation is None:
            return None, LedgerError.not_found("Allocation not found.", allocation_id=allocation_id).error
        return allocation.quantity - distributed_total(self.db, allocation_id), None
