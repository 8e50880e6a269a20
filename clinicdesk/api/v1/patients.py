"""
Patient CRUD endpoints (patients-api). Accepts session and API-token credentials.
"""

import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.auth import require_patients_read, require_patients_write
from clinicdesk.core.context import RequestContext
from clinicdesk.db.session import get_db_session
from clinicdesk.schemas import ApiResponse, PatientCreate, PatientResponse, PatientUpdate
from clinicdesk.services.patient_service import patient_service

router = APIRouter()


def _dump(patient) -> dict:
    return PatientResponse.model_validate(patient).model_dump(mode="json")


@router.get("")
async def list_patients(
    ctx: RequestContext = Depends(require_patients_read),
    db: AsyncSession = Depends(get_db_session)
):
    patients = await patient_service.list(db, ctx)
    return ApiResponse(data=[_dump(p) for p in patients])


@router.get("/{patient_id}")
async def get_patient(
    patient_id: uuid.UUID,
    ctx: RequestContext = Depends(require_patients_read),
    db: AsyncSession = Depends(get_db_session)
):
    patient = await patient_service.get(db, ctx, patient_id)
    return ApiResponse(data=_dump(patient))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_patient(
    data: PatientCreate,
    ctx: RequestContext = Depends(require_patients_write),
    db: AsyncSession = Depends(get_db_session)
):
    patient = await patient_service.create(db, ctx, data)
    return ApiResponse(data=_dump(patient))


@router.put("/{patient_id}")
async def update_patient(
    patient_id: uuid.UUID,
    data: PatientUpdate,
    ctx: RequestContext = Depends(require_patients_write),
    db: AsyncSession = Depends(get_db_session)
):
    patient = await patient_service.update(db, ctx, patient_id, data)
    return ApiResponse(data=_dump(patient))


@router.delete("/{patient_id}")
async def delete_patient(
    patient_id: uuid.UUID,
    ctx: RequestContext = Depends(require_patients_write),
    db: AsyncSession = Depends(get_db_session)
):
    await patient_service.delete(db, ctx, patient_id)
    return ApiResponse(message="Patient deleted successfully")
