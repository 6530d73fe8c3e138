"""
Budget API - Barangay budget ledger endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List

from reliefops.schemas.budget import (
    BudgetCreate, BudgetItemCreate, BudgetItemResponse, BudgetItemUpdate, BudgetResponse, BudgetUpdate
)
from reliefops.services import BudgetService
from .deps import get_budget_service
from .errors import error_response

router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.get("", response_model=List[BudgetResponse])
async def list_budgets(active_only: bool = False, service: BudgetService = Depends(get_budget_service)):
    if active_only:
        return service.active_budgets()
    return service.list_budgets()


@router.get("/{budget_id}", response_model=BudgetResponse)
async def get_budget(budget_id: int, service: BudgetService = Depends(get_budget_service)):
    budget = service.get_budget(budget_id)
    if not budget:
        raise HTTPException(status_code=404, detail="Budget not found")
    return budget


@router.get("/{budget_id}/balance")
async def get_balance(budget_id: int, service: BudgetService = Depends(get_budget_service)):
    balance, error = service.get_balance(budget_id)
    if error:
        return error_response(error)
    return {"budget_id": budget_id, "balance": float(balance)}


@router.post("", response_model=BudgetResponse, status_code=201)
async def create_budget(data: BudgetCreate, service: BudgetService = Depends(get_budget_service)):
    budget, error = service.create_budget(data.barangay_name, data.year, data.total_amount, status=data.status)
    if error:
        return error_response(error)
    return budget


@router.patch("/{budget_id}", response_model=BudgetResponse)
async def update_budget(budget_id: int, data: BudgetUpdate, service: BudgetService = Depends(get_budget_service)):
    budget, error = service.update_budget(
        budget_id,
        name=data.barangay_name,
        year=data.year,
        total_amount=data.total_amount,
        status=data.status,
    )
    if error:
        return error_response(error)
    return budget


@router.delete("/{budget_id}")
async def delete_budget(budget_id: int, service: BudgetService = Depends(get_budget_service)):
    ok, error = service.delete_budget(budget_id)
    if error:
        return error_response(error)
    return {"success": ok, "budget_id": budget_id}


# ===================== EXPENDITURE ITEMS =====================

@router.post("/{budget_id}/items", response_model=BudgetItemResponse, status_code=201)
async def add_expenditure_item(budget_id: int, data: BudgetItemCreate, service: BudgetService = Depends(get_budget_service)):
    item, error = service.add_expenditure_item(budget_id, data.category, data.description, data.amount, notes=data.notes)
    if error:
        return error_response(error)
    return item


@router.patch("/items/{item_id}", response_model=BudgetItemResponse)
async def update_expenditure_item(item_id: int, data: BudgetItemUpdate, service: BudgetService = Depends(get_budget_service)):
    item, error = service.update_expenditure_item(
        item_id,
        category=data.category,
        description=data.description,
        amount=data.amount,
        notes=data.notes,
    )
    if error:
        return error_response(error)
    return item


@router.delete("/items/{item_id}")
async def delete_expenditure_item(item_id: int, service: BudgetService = Depends(get_budget_service)):
    ok, error = service.delete_expenditure_item(item_id)
    if error:
        return error_response(error)
    return {"success": ok, "item_id": item_id}
