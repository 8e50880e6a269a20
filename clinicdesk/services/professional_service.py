"""
Clinic-scoped professionals (staff who can be booked).
"""

import uuid
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.context import RequestContext
from clinicdesk.core.exceptions import NotFound
from clinicdesk.core.logging import get_logger
from clinicdesk.db.session import commit_or_raise
from clinicdesk.models import Professional, utc_now
from clinicdesk.schemas import ProfessionalCreate, ProfessionalUpdate
from clinicdesk.services.realtime_service import change_notifier

logger = get_logger(__name__)


class ProfessionalService:
    
    async def list(self, db: AsyncSession, ctx: RequestContext) -> List[Professional]:
        result = await db.execute(
            select(Professional)
            .where(Professional.clinic_id == ctx.clinic_id)
            .order_by(Professional.name)
        )
        return list(result.scalars().all())
    
    async def get(self, db: AsyncSession, ctx: RequestContext, professional_id: uuid.UUID) -> Professional:
        result = await db.execute(
            select(Professional).where(
                Professional.id == professional_id,
                Professional.clinic_id == ctx.clinic_id,
            )
        )
        professional = result.scalar_one_or_none()
        if not professional:
            raise NotFound("Professional not found")
        return professional
    
    async def create(self, db: AsyncSession, ctx: RequestContext, data: ProfessionalCreate) -> Professional:
        professional = Professional(clinic_id=ctx.clinic_id, **data.model_dump())
        db.add(professional)
        await db.commit()
        await db.refresh(professional)
        
        logger.info("Professional created", professional_id=str(professional.id), clinic_id=str(ctx.clinic_id))
        change_notifier.publish(ctx.clinic_id, "professionals", "INSERT", professional.id)
        return professional
    
    async def update(
        self, db: AsyncSession, ctx: RequestContext, professional_id: uuid.UUID, data: ProfessionalUpdate
    ) -> Professional:
        professional = await self.get(db, ctx, professional_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(professional, field, value)
        professional.updated_at = utc_now()
        
        await db.commit()
        await db.refresh(professional)
        
        change_notifier.publish(ctx.clinic_id, "professionals", "UPDATE", professional.id)
        return professional
    
    async def delete(self, db: AsyncSession, ctx: RequestContext, professional_id: uuid.UUID) -> None:
        professional = await self.get(db, ctx, professional_id)
        await db.delete(professional)
        await commit_or_raise(db, "Professional is referenced by appointments or user roles and cannot be deleted")
        
        logger.info("Professional deleted", professional_id=str(professional_id), clinic_id=str(ctx.clinic_id))
        change_notifier.publish(ctx.clinic_id, "professionals", "DELETE", professional_id)


# Global professional service
professional_service = ProfessionalService()
