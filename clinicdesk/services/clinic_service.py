"""
Clinic membership resolution and first-clinic bootstrap.
"""

import uuid
from dataclasses import dataclass, field
from typing import List, Optional
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.exceptions import ClinicBootstrapError
from clinicdesk.core.logging import audit_logger, get_logger
from clinicdesk.models import Clinic, MASTER_ROLE_TYPE, UserClinic, UserRole
from clinicdesk.services.identity_service import identity_service

logger = get_logger(__name__)


@dataclass
class Membership:
    clinics: List[Clinic] = field(default_factory=list)
    roles: List[UserRole] = field(default_factory=list)
    current_clinic: Optional[Clinic] = None
    master_clinic_ids: List[uuid.UUID] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.clinics

    def has_clinic(self, clinic_id: uuid.UUID) -> bool:
        return any(clinic.id == clinic_id for clinic in self.clinics)


class ClinicService:
    """Reads which clinics a user belongs to and bootstraps new clinics."""
    
    async def resolve_membership(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        preferred_clinic_id: Optional[uuid.UUID] = None,
    ) -> Membership:
        """Load every clinic the user belongs to through a join row or a role row.

        The current clinic is the preferred one when the user belongs to it,
        otherwise the oldest clinic. Users without any membership get an empty
        result so callers can offer the first-clinic flow.
        """
        await identity_service.get_active_user(db, user_id)
        
        links = (await db.execute(
            select(UserClinic).where(UserClinic.user_id == user_id)
        )).scalars().all()
        roles = (await db.execute(
            select(UserRole).where(UserRole.user_id == user_id).order_by(UserRole.created_at)
        )).scalars().all()
        
        clinic_ids = {link.clinic_id for link in links} | {role.clinic_id for role in roles}
        if not clinic_ids:
            return Membership()
        
        clinics = (await db.execute(
            select(Clinic).where(Clinic.id.in_(clinic_ids)).order_by(Clinic.created_at, Clinic.id)
        )).scalars().all()
        
        current = clinics[0] if clinics else None
        if preferred_clinic_id is not None:
            current = next((c for c in clinics if c.id == preferred_clinic_id), current)
        
        return Membership(
            clinics=list(clinics),
            roles=list(roles),
            current_clinic=current,
            master_clinic_ids=[l.clinic_id for l in links if l.role_type == MASTER_ROLE_TYPE],
        )
    
    async def create_clinic(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        name: str,
        address: Optional[str] = None,
    ) -> Clinic:
        """Create a clinic and make the caller its master.

        The two rows are written as separate steps; if the membership insert
        fails the clinic is deleted again. When that delete fails too the
        error carries the orphaned clinic id so the caller can retry.
        """
        await identity_service.get_active_user(db, user_id)
        
        clinic = Clinic(name=name.strip(), address=address)
        db.add(clinic)
        await db.commit()
        await db.refresh(clinic)
        # A rollback expires the instance, so later steps only use the id
        clinic_id = clinic.id
        
        try:
            db.add(UserClinic(
                user_id=user_id,
                clinic_id=clinic_id,
                role="admin",
                role_type=MASTER_ROLE_TYPE,
            ))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Clinic membership insert failed", clinic_id=str(clinic_id), user_id=str(user_id), error=str(e))
            await self._compensate_clinic(db, clinic_id, user_id)
            raise ClinicBootstrapError("Failed to create clinic membership") from e
        
        logger.info("Clinic created", clinic_id=str(clinic_id), user_id=str(user_id))
        return clinic
    
    async def _compensate_clinic(self, db: AsyncSession, clinic_id: uuid.UUID, user_id: uuid.UUID) -> None:
        try:
            await db.execute(delete(Clinic).where(Clinic.id == clinic_id))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            audit_logger.log_compensation_failed("clinic_bootstrap", str(user_id), str(clinic_id), e)
            raise ClinicBootstrapError(
                "Failed to create clinic membership; clinic was left without a master",
                orphan_clinic_id=clinic_id,
            ) from e


# Global clinic service
clinic_service = ClinicService()
