"""
Appointment lifecycle: creation, partial updates, attendance changes and listing.

Every appointment belongs to one clinic, and its patient and professional must
belong to that same clinic. Callers acting as ``professional`` only see and
change appointments booked with their own linked professional row.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.context import RequestContext
from clinicdesk.core.exceptions import CrossTenantReference, Forbidden, NotFound, ValidationError
from clinicdesk.core.logging import get_logger
from clinicdesk.models import Appointment, AttendanceStatus, Patient, Professional, Role, utc_now
from clinicdesk.schemas import (
    AppointmentCreate, AppointmentResponse, AppointmentUpdate,
    PatientSummary, ProfessionalSummary,
)
from clinicdesk.services.realtime_service import change_notifier

logger = get_logger(__name__)


@dataclass
class AppointmentFilters:
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    patient_id: Optional[uuid.UUID] = None
    professional_id: Optional[uuid.UUID] = None
    status: Optional[str] = None


def _scope_clause(ctx: RequestContext):
    if ctx.role != Role.PROFESSIONAL:
        return None
    if ctx.professional_id is None:
        return false()
    return Appointment.professional_id == ctx.professional_id


def _serialize(appointment: Appointment, patient: Optional[Patient], professional: Optional[Professional]) -> Dict[str, Any]:
    response = AppointmentResponse.model_validate(appointment)
    response.patient = PatientSummary.model_validate(patient) if patient else None
    response.professional = ProfessionalSummary.model_validate(professional) if professional else None
    return response.model_dump(mode="json")


class AppointmentService:
    
    async def _check_reference(self, db: AsyncSession, ctx: RequestContext, model, record_id: uuid.UUID, label: str):
        owner = (await db.execute(
            select(model.clinic_id).where(model.id == record_id)
        )).scalar_one_or_none()
        if owner is None:
            raise ValidationError(f"{label} not found")
        if owner != ctx.clinic_id:
            raise CrossTenantReference(f"{label} belongs to another clinic")
    
    def _check_professional_scope(self, ctx: RequestContext, professional_id: uuid.UUID) -> None:
        if ctx.role == Role.PROFESSIONAL and professional_id != ctx.professional_id:
            raise Forbidden("Professionals can only manage their own appointments")
    
    async def _load(self, db: AsyncSession, ctx: RequestContext, appointment_id: uuid.UUID) -> Appointment:
        query = select(Appointment).where(
            Appointment.id == appointment_id,
            Appointment.clinic_id == ctx.clinic_id,
        )
        scope = _scope_clause(ctx)
        if scope is not None:
            query = query.where(scope)
        appointment = (await db.execute(query)).scalar_one_or_none()
        if not appointment:
            raise NotFound("Appointment not found")
        return appointment
    
    async def _render(self, db: AsyncSession, appointment: Appointment) -> Dict[str, Any]:
        patient = await db.get(Patient, appointment.patient_id)
        professional = await db.get(Professional, appointment.professional_id)
        return _serialize(appointment, patient, professional)
    
    async def list(self, db: AsyncSession, ctx: RequestContext, filters: AppointmentFilters) -> List[Dict[str, Any]]:
        query = (
            select(Appointment, Patient, Professional)
            .join(Patient, Patient.id == Appointment.patient_id)
            .join(Professional, Professional.id == Appointment.professional_id)
            .where(Appointment.clinic_id == ctx.clinic_id)
        )
        scope = _scope_clause(ctx)
        if scope is not None:
            query = query.where(scope)
        
        if filters.start_date:
            query = query.where(Appointment.start_time >= filters.start_date)
        if filters.end_date:
            query = query.where(Appointment.start_time <= filters.end_date)
        if filters.patient_id:
            query = query.where(Appointment.patient_id == filters.patient_id)
        if filters.professional_id:
            query = query.where(Appointment.professional_id == filters.professional_id)
        if filters.status:
            query = query.where(Appointment.status == filters.status)
        
        result = await db.execute(query.order_by(Appointment.start_time))
        return [_serialize(a, p, pr) for a, p, pr in result.all()]
    
    async def get(self, db: AsyncSession, ctx: RequestContext, appointment_id: uuid.UUID) -> Dict[str, Any]:
        appointment = await self._load(db, ctx, appointment_id)
        return await self._render(db, appointment)
    
    async def create(self, db: AsyncSession, ctx: RequestContext, data: AppointmentCreate) -> Dict[str, Any]:
        await self._check_reference(db, ctx, Patient, data.patient_id, "Patient")
        await self._check_reference(db, ctx, Professional, data.professional_id, "Professional")
        self._check_professional_scope(ctx, data.professional_id)
        
        appointment = Appointment(clinic_id=ctx.clinic_id, **data.model_dump())
        db.add(appointment)
        await db.commit()
        await db.refresh(appointment)
        
        logger.info("Appointment created", appointment_id=str(appointment.id), clinic_id=str(ctx.clinic_id))
        change_notifier.publish(ctx.clinic_id, "appointments", "INSERT", appointment.id)
        return await self._render(db, appointment)
    
    async def update(
        self, db: AsyncSession, ctx: RequestContext, appointment_id: uuid.UUID, data: AppointmentUpdate
    ) -> Dict[str, Any]:
        """Apply a partial update; the whole row is written back, last writer wins."""
        appointment = await self._load(db, ctx, appointment_id)
        changes = data.model_dump(exclude_unset=True)
        
        if "patient_id" in changes:
            await self._check_reference(db, ctx, Patient, changes["patient_id"], "Patient")
        if "professional_id" in changes:
            await self._check_reference(db, ctx, Professional, changes["professional_id"], "Professional")
            self._check_professional_scope(ctx, changes["professional_id"])
        
        for field, value in changes.items():
            setattr(appointment, field, value)
        appointment.updated_at = utc_now()
        
        await db.commit()
        await db.refresh(appointment)
        
        change_notifier.publish(ctx.clinic_id, "appointments", "UPDATE", appointment.id)
        return await self._render(db, appointment)
    
    async def update_attendance_status(
        self, db: AsyncSession, ctx: RequestContext, appointment_id: uuid.UUID, status: AttendanceStatus
    ) -> Dict[str, Any]:
        """Overwrite the attendance outcome; every value may follow every other."""
        appointment = await self._load(db, ctx, appointment_id)
        appointment.attendance_status = AttendanceStatus(status).value
        appointment.updated_at = utc_now()
        
        await db.commit()
        await db.refresh(appointment)
        
        change_notifier.publish(ctx.clinic_id, "appointments", "UPDATE", appointment.id)
        return await self._render(db, appointment)
    
    async def delete(self, db: AsyncSession, ctx: RequestContext, appointment_id: uuid.UUID) -> None:
        appointment = await self._load(db, ctx, appointment_id)
        await db.delete(appointment)
        await db.commit()
        
        logger.info("Appointment deleted", appointment_id=str(appointment_id), clinic_id=str(ctx.clinic_id))
        change_notifier.publish(ctx.clinic_id, "appointments", "DELETE", appointment_id)


# Global appointment service
appointment_service = AppointmentService()
