"""
Sync Log Model - Track synchronization history
"""
from sqlalchemy import Column, String, DateTime, JSON
import enum

from reliefops.core import Base
from .base import IntegerIdMixin, utcnow


class SyncStatus(str, enum.Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class SyncLog(Base, IntegerIdMixin):
    """Log of sync operations"""
    __tablename__ = "sync_log"
    
    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True))
    status = Column(String(20), default=SyncStatus.RUNNING.value, nullable=False)
    
    # pull | push | full
    direction = Column(String(20), nullable=False, default="full")
    
    # Stats JSON: {"pulled": {"stock": {"inserted": 2, "updated": 1}}, ...}
    stats = Column(JSON, default=dict)
    
    # Error message if failed
    error_message = Column(String(500))
