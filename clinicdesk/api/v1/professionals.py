"""
Professional management endpoints.
"""

import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.auth import require_professionals_read, require_professionals_write
from clinicdesk.core.context import RequestContext
from clinicdesk.db.session import get_db_session
from clinicdesk.schemas import ApiResponse, ProfessionalCreate, ProfessionalResponse, ProfessionalUpdate
from clinicdesk.services.professional_service import professional_service

router = APIRouter()


def _dump(professional) -> dict:
    return ProfessionalResponse.model_validate(professional).model_dump(mode="json")


@router.get("")
async def list_professionals(
    ctx: RequestContext = Depends(require_professionals_read),
    db: AsyncSession = Depends(get_db_session)
):
    professionals = await professional_service.list(db, ctx)
    return ApiResponse(data=[_dump(p) for p in professionals])


@router.get("/{professional_id}")
async def get_professional(
    professional_id: uuid.UUID,
    ctx: RequestContext = Depends(require_professionals_read),
    db: AsyncSession = Depends(get_db_session)
):
    return ApiResponse(data=_dump(await professional_service.get(db, ctx, professional_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_professional(
    data: ProfessionalCreate,
    ctx: RequestContext = Depends(require_professionals_write),
    db: AsyncSession = Depends(get_db_session)
):
    return ApiResponse(data=_dump(await professional_service.create(db, ctx, data)))


@router.put("/{professional_id}")
async def update_professional(
    professional_id: uuid.UUID,
    data: ProfessionalUpdate,
    ctx: RequestContext = Depends(require_professionals_write),
    db: AsyncSession = Depends(get_db_session)
):
    return ApiResponse(data=_dump(await professional_service.update(db, ctx, professional_id, data)))


@router.delete("/{professional_id}")
async def delete_professional(
    professional_id: uuid.UUID,
    ctx: RequestContext = Depends(require_professionals_write),
    db: AsyncSession = Depends(get_db_session)
):
    await professional_service.delete(db, ctx, professional_id)
    return ApiResponse(message="Professional deleted successfully")
