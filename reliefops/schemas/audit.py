"""
Audit Log Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class AuditLogResponse(BaseModel):
    id: int
    timestamp: datetime
    action: str
    entity_type: str
    entity_id: Optional[int]
    user_id: Optional[int]
    user_name: Optional[str]
    user_role: Optional[str]
    old_values: Optional[str]
    new_values: Optional[str]
    description: Optional[str]
    severity: str
    is_successful: bool
    error_message: Optional[str]

    class Config:
        from_attributes = True
