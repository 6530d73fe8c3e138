"""
Barangay Budget Schemas
"""
from pydantic import BaseModel
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

class BudgetCreate(BaseModel):
    barangay_name: str
    year: int
    total_amount: Decimal
    status: str = "Draft"

class BudgetUpdate(BaseModel):
    barangay_name: Optional[str] = None
    year: Optional[int] = None
    total_amount: Optional[Decimal] = None
    status: Optional[str] = None

class BudgetItemCreate(BaseModel):
    category: str
    description: str
    amount: Decimal
    notes: Optional[str] = None

class BudgetItemUpdate(BaseModel):
    category: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    notes: Optional[str] = None

class BudgetItemResponse(BaseModel):
    id: int
    budget_id: int
    category: str
    description: str
    amount: float
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True

class BudgetResponse(BaseModel):
    id: int
    barangay_name: str
    year: int
    total_amount: float
    status: str
    created_by_user_id: Optional[int]
    created_at: datetime
    updated_at: datetime
    items: List[BudgetItemResponse] = []

    class Config:
        from_attributes = True
