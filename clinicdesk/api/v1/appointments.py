"""
Appointment endpoints (appointments-api). Session credentials only.
"""

import uuid
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.auth import require_appointments_read, require_appointments_write
from clinicdesk.core.context import RequestContext
from clinicdesk.db.session import get_db_session
from clinicdesk.models import ATTENDANCE_LABELS
from clinicdesk.schemas import (
    ApiResponse, AppointmentCreate, AppointmentUpdate, AttendanceStatusUpdate, to_naive_utc,
)
from clinicdesk.services.appointment_service import AppointmentFilters, appointment_service

router = APIRouter()


@router.get("")
async def list_appointments(
    start_date: Optional[datetime] = Query(None, description="Earliest start_time (inclusive)"),
    end_date: Optional[datetime] = Query(None, description="Latest start_time (inclusive)"),
    patient_id: Optional[uuid.UUID] = Query(None),
    professional_id: Optional[uuid.UUID] = Query(None),
    status: Optional[str] = Query(None),
    ctx: RequestContext = Depends(require_appointments_read),
    db: AsyncSession = Depends(get_db_session)
):
    """List appointments ordered by start time."""
    filters = AppointmentFilters(
        start_date=to_naive_utc(start_date),
        end_date=to_naive_utc(end_date),
        patient_id=patient_id,
        professional_id=professional_id,
        status=status,
    )
    return ApiResponse(data=await appointment_service.list(db, ctx, filters))


@router.get("/attendance-statuses")
async def list_attendance_statuses(ctx: RequestContext = Depends(require_appointments_read)):
    """Attendance statuses with their display labels, in workflow order."""
    return ApiResponse(data=[
        {"value": status_value.value, "label": label}
        for status_value, label in ATTENDANCE_LABELS.items()
    ])


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: uuid.UUID,
    ctx: RequestContext = Depends(require_appointments_read),
    db: AsyncSession = Depends(get_db_session)
):
    return ApiResponse(data=await appointment_service.get(db, ctx, appointment_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    ctx: RequestContext = Depends(require_appointments_write),
    db: AsyncSession = Depends(get_db_session)
):
    return ApiResponse(data=await appointment_service.create(db, ctx, data))


@router.put("/{appointment_id}")
async def update_appointment(
    appointment_id: uuid.UUID,
    data: AppointmentUpdate,
    ctx: RequestContext = Depends(require_appointments_write),
    db: AsyncSession = Depends(get_db_session)
):
    return ApiResponse(data=await appointment_service.update(db, ctx, appointment_id, data))


@router.patch("/{appointment_id}/attendance-status")
async def update_attendance_status(
    appointment_id: uuid.UUID,
    data: AttendanceStatusUpdate,
    ctx: RequestContext = Depends(require_appointments_write),
    db: AsyncSession = Depends(get_db_session)
):
    """Quick attendance toggle used by list badges."""
    appointment = await appointment_service.update_attendance_status(
        db, ctx, appointment_id, data.attendance_status
    )
    return ApiResponse(data=appointment)


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: uuid.UUID,
    ctx: RequestContext = Depends(require_appointments_write),
    db: AsyncSession = Depends(get_db_session)
):
    await appointment_service.delete(db, ctx, appointment_id)
    return ApiResponse(message="Appointment deleted successfully")
