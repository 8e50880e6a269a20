"""
Store-backed RBAC gate and first-admin bootstrap.
"""

import uuid
from dataclasses import dataclass
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.exceptions import Forbidden, NotFound
from clinicdesk.core.logging import audit_logger, get_logger
from clinicdesk.core.rbac import AccessDecision, Action, evaluate, parse_role
from clinicdesk.models import (
    Clinic, MASTER_ROLE_TYPE, Role, UserClinic, UserRole, utc_now
)

logger = get_logger(__name__)

ADMIN_ALREADY_EXISTS = "admin already exists"


@dataclass(frozen=True)
class MembershipFacts:
    """What the store says about one user inside one clinic."""
    is_member: bool
    is_master: bool
    role: Optional[Role]
    role_row: Optional[UserRole]

    @property
    def professional_id(self) -> Optional[uuid.UUID]:
        return self.role_row.professional_id if self.role_row else None


class AccessService:
    """Answers who may do what inside a clinic."""
    
    async def load_facts(self, db: AsyncSession, user_id: uuid.UUID, clinic_id: uuid.UUID) -> MembershipFacts:
        role_row = (await db.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.clinic_id == clinic_id)
        )).scalar_one_or_none()
        
        link = (await db.execute(
            select(UserClinic).where(UserClinic.user_id == user_id, UserClinic.clinic_id == clinic_id)
        )).scalar_one_or_none()
        
        return MembershipFacts(
            is_member=role_row is not None or link is not None,
            is_master=link is not None and link.role_type == MASTER_ROLE_TYPE,
            role=parse_role(role_row.role) if role_row else None,
            role_row=role_row,
        )
    
    async def authorize(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        clinic_id: uuid.UUID,
        action: Action,
    ) -> AccessDecision:
        facts = await self.load_facts(db, user_id, clinic_id)
        decision = evaluate(action, facts.role, facts.is_member, facts.is_master)
        if not decision.allowed:
            audit_logger.log_access_denied(str(user_id), str(clinic_id), action.value, decision.reason)
        return decision
    
    async def get_user_role_in_clinic(
        self, db: AsyncSession, user_id: uuid.UUID, clinic_id: uuid.UUID
    ) -> Optional[Role]:
        result = await db.execute(
            select(UserRole.role).where(UserRole.user_id == user_id, UserRole.clinic_id == clinic_id)
        )
        return parse_role(result.scalar_one_or_none())
    
    async def is_clinic_admin(self, db: AsyncSession, user_id: uuid.UUID, clinic_id: uuid.UUID) -> bool:
        return await self.get_user_role_in_clinic(db, user_id, clinic_id) == Role.CLINIC_ADMIN
    
    async def get_user_professional_id(
        self, db: AsyncSession, user_id: uuid.UUID, clinic_id: uuid.UUID
    ) -> Optional[uuid.UUID]:
        result = await db.execute(
            select(UserRole.professional_id).where(
                UserRole.user_id == user_id,
                UserRole.clinic_id == clinic_id,
                UserRole.role == Role.PROFESSIONAL.value,
            )
        )
        return result.scalar_one_or_none()
    
    async def assign_self_as_admin(self, db: AsyncSession, user_id: uuid.UUID, clinic_id: uuid.UUID) -> UserRole:
        """Make the caller the clinic's first clinic_admin.

        The claim is a single conditional UPDATE on the clinic row that only
        matches while the clinic is unclaimed and has no role rows,
        so of two concurrent callers exactly one sees a matched row. The role
        insert happens in the same transaction. Repeating the call as the
        winning admin returns the existing role.
        """
        if await db.get(Clinic, clinic_id) is None:
            raise NotFound("Clinic not found")
        
        decision = await self.authorize(db, user_id, clinic_id, Action.CLINIC_BOOTSTRAP_ADMIN)
        if not decision.allowed:
            raise Forbidden(decision.reason)
        # Release the read snapshot so the claim sees committed state
        await db.rollback()
        
        claim = (
            update(Clinic)
            .where(
                Clinic.id == clinic_id,
                Clinic.admin_claimed_at.is_(None),
                ~select(UserRole.id).where(UserRole.clinic_id == clinic_id).exists(),
            )
            .values(admin_claimed_at=utc_now(), admin_claimed_by=user_id, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(claim)
        
        if result.rowcount == 1:
            role_row = UserRole(user_id=user_id, clinic_id=clinic_id, role=Role.CLINIC_ADMIN.value)
            db.add(role_row)
            await db.commit()
            await db.refresh(role_row)
            logger.info("Clinic admin bootstrapped", user_id=str(user_id), clinic_id=str(clinic_id))
            return role_row
        
        await db.rollback()
        existing = (await db.execute(
            select(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.clinic_id == clinic_id,
                UserRole.role == Role.CLINIC_ADMIN.value,
            )
        )).scalar_one_or_none()
        if existing is not None:
            return existing
        
        audit_logger.log_security_event(
            "admin_bootstrap_denied",
            user_id=str(user_id),
            clinic_id=str(clinic_id),
            details={"reason": ADMIN_ALREADY_EXISTS},
        )
        raise Forbidden(ADMIN_ALREADY_EXISTS)


# Global access service
access_service = AccessService()
