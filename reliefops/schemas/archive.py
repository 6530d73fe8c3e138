"""
Archive Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class ArchiveCreate(BaseModel):
    entity_type: str
    entity_id: int
    reason: Optional[str] = None
    display_name: Optional[str] = None

class ArchiveRestore(BaseModel):
    expected_type: Optional[str] = None

class ArchiveResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    entity_name: Optional[str]
    archive_reason: Optional[str]
    archived_at: datetime
    archived_by: Optional[int]

    class Config:
        from_attributes = True

class ArchiveDetail(ArchiveResponse):
    archived_data: str
