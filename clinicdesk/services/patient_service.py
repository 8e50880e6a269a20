"""
Clinic-scoped patient records.
"""

import uuid
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.context import RequestContext
from clinicdesk.core.exceptions import NotFound
from clinicdesk.core.logging import get_logger
from clinicdesk.db.session import commit_or_raise
from clinicdesk.models import Patient, utc_now
from clinicdesk.schemas import PatientCreate, PatientUpdate
from clinicdesk.services.realtime_service import change_notifier

logger = get_logger(__name__)

DUPLICATE_CPF = "A patient with this cpf already exists in this clinic"


class PatientService:
    
    async def list(self, db: AsyncSession, ctx: RequestContext) -> List[Patient]:
        result = await db.execute(
            select(Patient)
            .where(Patient.clinic_id == ctx.clinic_id)
            .order_by(Patient.created_at.desc())
        )
        return list(result.scalars().all())
    
    async def get(self, db: AsyncSession, ctx: RequestContext, patient_id: uuid.UUID) -> Patient:
        result = await db.execute(
            select(Patient).where(Patient.id == patient_id, Patient.clinic_id == ctx.clinic_id)
        )
        patient = result.scalar_one_or_none()
        if not patient:
            raise NotFound("Patient not found")
        return patient
    
    async def create(self, db: AsyncSession, ctx: RequestContext, data: PatientCreate) -> Patient:
        patient = Patient(clinic_id=ctx.clinic_id, **data.model_dump())
        db.add(patient)
        await commit_or_raise(db, DUPLICATE_CPF)
        await db.refresh(patient)
        
        logger.info(
            "Patient created",
            patient_id=str(patient.id),
            clinic_id=str(ctx.clinic_id),
            credential=ctx.credential_type,
        )
        change_notifier.publish(ctx.clinic_id, "patients", "INSERT", patient.id)
        return patient
    
    async def update(
        self, db: AsyncSession, ctx: RequestContext, patient_id: uuid.UUID, data: PatientUpdate
    ) -> Patient:
        patient = await self.get(db, ctx, patient_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(patient, field, value)
        patient.updated_at = utc_now()
        
        await commit_or_raise(db, DUPLICATE_CPF)
        await db.refresh(patient)
        
        change_notifier.publish(ctx.clinic_id, "patients", "UPDATE", patient.id)
        return patient
    
    async def delete(self, db: AsyncSession, ctx: RequestContext, patient_id: uuid.UUID) -> None:
        patient = await self.get(db, ctx, patient_id)
        await db.delete(patient)
        await commit_or_raise(db, "Patient has appointments and cannot be deleted")
        
        logger.info(
            "Patient deleted",
            patient_id=str(patient_id),
            clinic_id=str(ctx.clinic_id),
            credential=ctx.credential_type,
        )
        change_notifier.publish(ctx.clinic_id, "patients", "DELETE", patient_id)


# Global patient service
patient_service = PatientService()
