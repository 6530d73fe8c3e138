"""
Barangay Budget Models
"""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from reliefops.core import Base
from .base import IntegerIdMixin, TimestampMixin, utcnow
import enum


class BudgetStatus(str, enum.Enum):
    DRAFT = "Draft"
    APPROVED = "Approved"
    CLOSED = "Closed"


# Only these statuses accept new expenditures
ACTIVE_BUDGET_STATUSES = (BudgetStatus.DRAFT.value, BudgetStatus.APPROVED.value)


class BarangayBudget(Base, IntegerIdMixin, TimestampMixin):
    """Allocation pool for one administrative unit (barangay) in one year"""
    __tablename__ = "barangay_budget"
    
    barangay_name = Column(String(255), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String(30), nullable=False, default=BudgetStatus.DRAFT.value)
    created_by_user_id = Column(Integer, ForeignKey("app_user.id"))
    
    # Relationships
    items = relationship("BarangayBudgetItem", back_populates="budget", order_by="BarangayBudgetItem.id", passive_deletes=True)
    created_by = relationship("AppUser")
    
    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BUDGET_STATUSES

class BarangayBudgetItem(Base, IntegerIdMixin):
    """Itemized expenditure against a budget"""
    __tablename__ = "barangay_budget_item"
    
    budget_id = Column(Integer, ForeignKey("barangay_budget.id"), nullable=False, index=True)
    category = Column(String(100), nullable=False)  # Inventory Purchase, Logistics, ...
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    notes = Column(String(500))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    # Relationships
    budget = relationship("BarangayBudget", back_populates="items")
