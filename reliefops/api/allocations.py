"""
Allocation API - Central stock -> shelter -> evacuee
"""
from fastapi import APIRouter, Depends
from typing import List, Optional

from reliefops.schemas.allocation import (
    AllocationCreate, AllocationResponse, DistributionCreate, DistributionResponse
)
from reliefops.services import AllocationService
from .deps import get_allocation_service
from .errors import error_response

router = APIRouter(prefix="/allocations", tags=["allocations"])
distribution_router = APIRouter(prefix="/distributions", tags=["distributions"])


@router.get("", response_model=List[AllocationResponse])
async def list_allocations(shelter_id: Optional[int] = None, service: AllocationService = Depends(get_allocation_service)):
    if shelter_id is not None:
        return service.allocations_by_shelter(shelter_id)
    return service.list_allocations()


@router.post("", response_model=AllocationResponse, status_code=201)
async def allocate_to_shelter(data: AllocationCreate, service: AllocationService = Depends(get_allocation_service)):
    allocation, error = service.allocate_to_shelter(data.stock_id, data.shelter_id, data.quantity, user_id=data.user_id)
    if error:
        return error_response(error)
    return allocation


@router.get("/{allocation_id}/remaining")
async def remaining_quantity(allocation_id: int, service: AllocationService = Depends(get_allocation_service)):
    remaining, error = service.remaining_quantity(allocation_id)
    if error:
        return error_response(error)
    return {"allocation_id": allocation_id, "remaining": remaining}


@router.get("/{allocation_id}/distributions", response_model=List[DistributionResponse])
async def distributions_by_allocation(allocation_id: int, service: AllocationService = Depends(get_allocation_service)):
    return service.distributions_by_allocation(allocation_id)


@distribution_router.post("", response_model=DistributionResponse, status_code=201)
async def distribute_to_evacuee(data: DistributionCreate, service: AllocationService = Depends(get_allocation_service)):
    distribution, error = service.distribute_to_evacuee(
        data.allocation_id, data.evacuee_id, data.quantity, user_id=data.user_id
    )
    if error:
        return error_response(error)
    return distribution


@distribution_router.get("/evacuee/{evacuee_id}", response_model=List[DistributionResponse])
async def distributions_by_evacuee(evacuee_id: int, service: AllocationService = Depends(get_allocation_service)):
    return service.distributions_by_evacuee(evacuee_id)
