"""
Stock Model
"""
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import Column, String, Integer, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from reliefops.core import Base
from .base import IntegerIdMixin, utcnow
import enum


class StockStatus(str, enum.Enum):
    EMPTY = "Empty"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    UNKNOWN = "Unknown"


LOW_THRESHOLD = Decimal("25")
HIGH_THRESHOLD = Decimal("75")


def compute_percent(quantity: int, max_capacity: int) -> Decimal:
    if max_capacity <= 0:
        return Decimal("0")
    pct = Decimal(quantity * 100) / Decimal(max_capacity)
    return pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def compute_status(quantity: int, max_capacity: int) -> StockStatus:
    if quantity <= 0:
        return StockStatus.EMPTY
    if max_capacity <= 0:
        return StockStatus.UNKNOWN
    pct = Decimal(quantity * 100) / Decimal(max_capacity)
    if pct <= LOW_THRESHOLD:
        return StockStatus.LOW
    if pct < HIGH_THRESHOLD:
        return StockStatus.MEDIUM
    return StockStatus.HIGH


class Stock(Base, IntegerIdMixin):
    """Quantity of one relief good at one location (central, disaster or shelter)"""
    __tablename__ = "stock"
    
    relief_good_id = Column(Integer, ForeignKey("relief_good.id"), nullable=False, index=True)
    disaster_id = Column(Integer, ForeignKey("disaster.id"), index=True)
    shelter_id = Column(Integer, ForeignKey("shelter.id"), index=True)  # NULL = central stock
    
    quantity = Column(Integer, nullable=False, default=0)
    max_capacity = Column(Integer, nullable=False, default=1000)
    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)
    location = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True)
    last_updated = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    # Relationships
    relief_good = relationship("ReliefGood", back_populates="stocks")
    shelter = relationship("Shelter")
    disaster = relationship("Disaster")
    allocations = relationship("ResourceAllocation", back_populates="stock", passive_deletes=True)
    
    # Derived on read, never stored
    @property
    def percent_full(self) -> Decimal:
        return compute_percent(self.quantity or 0, self.max_capacity or 0)
    
    @property
    def status(self) -> StockStatus:
        return compute_status(self.quantity or 0, self.max_capacity or 0)
    
    @property
    def is_central(self) -> bool:
        return self.shelter_id is None
