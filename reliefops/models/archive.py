"""
Archive Model
"""
from sqlalchemy import Column, String, Integer, DateTime, Text
from reliefops.core import Base
from .base import IntegerIdMixin, utcnow

class Archive(Base, IntegerIdMixin):
    """
    Envelope holding a soft-deleted record of any archivable type.
    entity_type + entity_id is a back reference; the original row is gone.
    """
    __tablename__ = "archive"
    
    entity_type = Column(String(100), nullable=False, index=True)
    entity_id = Column(Integer, nullable=False)
    archived_data = Column(Text, nullable=False)  # JSON snapshot
    archived_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    archived_by = Column(Integer)
    archive_reason = Column(String(500))
    entity_name = Column(String(200))
