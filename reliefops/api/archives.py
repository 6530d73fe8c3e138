"""
Archive API - Archive browser endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List, Optional

from reliefops.schemas.archive import ArchiveCreate, ArchiveDetail, ArchiveResponse, ArchiveRestore
from reliefops.services import ArchiveService
from .deps import get_archive_service
from .errors import error_response

router = APIRouter(prefix="/archives", tags=["archives"])


@router.get("", response_model=List[ArchiveResponse])
async def list_archives(
    entity_type: Optional[str] = None,
    q: Optional[str] = None,
    service: ArchiveService = Depends(get_archive_service),
):
    if q:
        return service.search_archives(q)
    return service.list_archives(entity_type)


@router.get("/counts")
async def archive_counts(service: ArchiveService = Depends(get_archive_service)):
    return service.counts_by_type()


@router.get("/{archive_id}", response_model=ArchiveDetail)
async def get_archive(archive_id: int, service: ArchiveService = Depends(get_archive_service)):
    envelope = service.get_archive(archive_id)
    if not envelope:
        raise HTTPException(status_code=404, detail="Archive not found")
    return envelope


@router.post("", status_code=201)
async def archive_entity(data: ArchiveCreate, service: ArchiveService = Depends(get_archive_service)):
    ok, error = service.archive(data.entity_type, data.entity_id, reason=data.reason, display_name=data.display_name)
    if error:
        return error_response(error)
    return {"success": ok, "entity_type": data.entity_type, "entity_id": data.entity_id}


@router.post("/{archive_id}/restore")
async def restore_archive(
    archive_id: int,
    data: Optional[ArchiveRestore] = None,
    service: ArchiveService = Depends(get_archive_service),
):
    ok, error = service.restore(archive_id, expected_type=data.expected_type if data else None)
    if error:
        return error_response(error)
    return {"success": ok, "archive_id": archive_id}


@router.delete("/{archive_id}")
async def delete_permanently(archive_id: int, service: ArchiveService = Depends(get_archive_service)):
    ok, error = service.delete_permanently(archive_id)
    if error:
        return error_response(error)
    return {"success": ok, "archive_id": archive_id}
