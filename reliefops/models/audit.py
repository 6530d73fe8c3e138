"""
Audit Log Model
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text
from reliefops.core import Base
from .base import IntegerIdMixin, utcnow
import enum


class AuditSeverity(str, enum.Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    CRITICAL = "Critical"


class AuditLog(Base, IntegerIdMixin):
    """Append-only log of mutating actions"""
    __tablename__ = "audit_log"
    
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)  # STOCK_IN, ALLOCATION, ARCHIVE, ...
    entity_type = Column(String(100), nullable=False, index=True)
    entity_id = Column(Integer, index=True)
    
    # Acting user (no FK: the user may since have been removed)
    user_id = Column(Integer, index=True)
    user_name = Column(String(100))
    user_role = Column(String(50))
    
    # Before/After snapshots, serialized JSON
    old_values = Column(Text)
    new_values = Column(Text)
    
    description = Column(Text)
    severity = Column(String(20), nullable=False, default=AuditSeverity.INFO.value)
    is_successful = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text)
