"""
Sync Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class SyncStatusResponse(BaseModel):
    is_running: bool
    online: bool

class SyncHistoryItem(BaseModel):
    id: int
    started_at: datetime
    completed_at: Optional[datetime]
    status: str
    direction: str
    stats: Optional[dict]
    error_message: Optional[str]

    class Config:
        from_attributes = True
