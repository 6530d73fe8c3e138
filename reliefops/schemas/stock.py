"""
Stock Schemas
"""
from pydantic import BaseModel
from typing import Optional
from decimal import Decimal
from datetime import datetime

from reliefops.models.stock import StockStatus

class StockCreate(BaseModel):
    relief_good_id: int
    quantity: int = 0
    max_capacity: Optional[int] = None
    location: Optional[str] = None
    disaster_id: Optional[int] = None
    shelter_id: Optional[int] = None
    unit_cost: Decimal = Decimal("0")

class StockIn(BaseModel):
    relief_good_id: int
    quantity: int
    unit_cost: Decimal = Decimal("0")
    budget_id: Optional[int] = None
    max_capacity: Optional[int] = None
    location: Optional[str] = None
    disaster_id: Optional[int] = None
    shelter_id: Optional[int] = None

class StockAdjust(BaseModel):
    delta: int

class StockUpdate(BaseModel):
    quantity: Optional[int] = None
    max_capacity: Optional[int] = None
    location: Optional[str] = None
    unit_cost: Optional[Decimal] = None

class StockActive(BaseModel):
    is_active: bool

class StockResponse(BaseModel):
    id: int
    relief_good_id: int
    disaster_id: Optional[int]
    shelter_id: Optional[int]
    quantity: int
    max_capacity: int
    unit_cost: float
    location: Optional[str]
    is_active: bool
    last_updated: datetime
    percent_full: float
    status: StockStatus

    class Config:
        from_attributes = True
