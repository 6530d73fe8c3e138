"""
Allocation & Distribution Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class AllocationCreate(BaseModel):
    stock_id: int
    shelter_id: int
    quantity: int
    user_id: Optional[int] = None  # defaults to the acting user

class DistributionCreate(BaseModel):
    allocation_id: int
    evacuee_id: int
    quantity: int
    user_id: Optional[int] = None

class AllocationResponse(BaseModel):
    id: int
    stock_id: int
    shelter_id: int
    allocated_by_user_id: int
    quantity: int
    allocated_at: datetime

    class Config:
        from_attributes = True

class DistributionResponse(BaseModel):
    id: int
    allocation_id: int
    evacuee_id: int
    distributed_by_user_id: int
    quantity: int
    distributed_at: datetime

    class Config:
        from_attributes = True
