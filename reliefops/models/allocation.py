"""
Allocation & Distribution Models

Both rows are immutable once written: there is no update path.
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from reliefops.core import Base
from .base import IntegerIdMixin, utcnow

class ResourceAllocation(Base, IntegerIdMixin):
    """Central stock -> shelter hand-off"""
    __tablename__ = "resource_allocation"
    
    stock_id = Column(Integer, ForeignKey("stock.id"), nullable=False, index=True)
    shelter_id = Column(Integer, ForeignKey("shelter.id"), nullable=False, index=True)
    allocated_by_user_id = Column(Integer, ForeignKey("app_user.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    allocated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    
    # Relationships
    stock = relationship("Stock", back_populates="allocations")
    shelter = relationship("Shelter")
    allocated_by = relationship("AppUser")
    distributions = relationship("ResourceDistribution", back_populates="allocation", passive_deletes=True)

class ResourceDistribution(Base, IntegerIdMixin):
    """Shelter allocation -> evacuee release"""
    __tablename__ = "resource_distribution"
    
    allocation_id = Column(Integer, ForeignKey("resource_allocation.id"), nullable=False, index=True)
    evacuee_id = Column(Integer, ForeignKey("evacuee.id"), nullable=False, index=True)
    distributed_by_user_id = Column(Integer, ForeignKey("app_user.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    distributed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    
    # Relationships
    allocation = relationship("ResourceAllocation", back_populates="distributions")
    evacuee = relationship("Evacuee")
    distributed_by = relationship("AppUser")
