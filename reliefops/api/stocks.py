"""
Stock API - Stock ledger endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List

from reliefops.schemas.stock import StockActive, StockAdjust, StockCreate, StockIn, StockResponse, StockUpdate
from reliefops.services import StockService
from .deps import get_stock_service
from .errors import error_response

router = APIRouter(prefix="/stocks", tags=["stocks"])


@router.get("", response_model=List[StockResponse])
async def list_stocks(only_active: bool = True, service: StockService = Depends(get_stock_service)):
    return service.list_stocks(only_active=only_active)


@router.get("/by-good/{relief_good_id}", response_model=List[StockResponse])
async def list_by_relief_good(relief_good_id: int, service: StockService = Depends(get_stock_service)):
    return service.list_by_relief_good(relief_good_id)


@router.get("/shelter/{shelter_id}", response_model=List[StockResponse])
async def shelter_stock(shelter_id: int, service: StockService = Depends(get_stock_service)):
    return service.shelter_stock(shelter_id)


@router.get("/{stock_id}", response_model=StockResponse)
async def get_stock(stock_id: int, service: StockService = Depends(get_stock_service)):
    stock = service.get_stock(stock_id)
    if not stock:
        raise HTTPException(status_code=404, detail="Stock not found")
    return stock


@router.post("", response_model=StockResponse, status_code=201)
async def create_stock(data: StockCreate, service: StockService = Depends(get_stock_service)):
    stock, error = service.create_stock(
        data.relief_good_id,
        data.quantity,
        max_capacity=data.max_capacity,
        location=data.location,
        disaster_id=data.disaster_id,
        shelter_id=data.shelter_id,
        unit_cost=data.unit_cost,
    )
    if error:
        return error_response(error)
    return stock


@router.post("/stock-in", response_model=StockResponse, status_code=201)
async def stock_in(data: StockIn, service: StockService = Depends(get_stock_service)):
    stock, error = service.stock_in(
        data.relief_good_id,
        data.quantity,
        data.unit_cost,
        budget_id=data.budget_id,
        max_capacity=data.max_capacity,
        location=data.location,
        disaster_id=data.disaster_id,
        shelter_id=data.shelter_id,
    )
    if error:
        return error_response(error)
    return stock


@router.post("/{stock_id}/adjust", response_model=StockResponse)
async def adjust_quantity(stock_id: int, data: StockAdjust, service: StockService = Depends(get_stock_service)):
    stock, error = service.adjust_quantity(stock_id, data.delta)
    if error:
        return error_response(error)
    return stock


@router.patch("/{stock_id}", response_model=StockResponse)
async def update_stock(stock_id: int, data: StockUpdate, service: StockService = Depends(get_stock_service)):
    stock, error = service.update_stock(
        stock_id,
        quantity=data.quantity,
        max_capacity=data.max_capacity,
        location=data.location,
        unit_cost=data.unit_cost,
    )
    if error:
        return error_response(error)
    return stock


@router.post("/{stock_id}/active", response_model=StockResponse)
async def set_active(stock_id: int, data: StockActive, service: StockService = Depends(get_stock_service)):
    stock, error = service.set_active(stock_id, data.is_active)
    if error:
        return error_response(error)
    return stock


@router.delete("/{stock_id}")
async def delete_stock(stock_id: int, service: StockService = Depends(get_stock_service)):
    outcome, error = service.delete_stock(stock_id)
    if error:
        return error_response(error)
    return {"success": True, "stock_id": stock_id, "outcome": outcome}
