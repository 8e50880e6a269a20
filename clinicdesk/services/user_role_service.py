"""
Provisioning clinic users and managing their roles.
"""

import uuid
from typing import Any, Dict, List, Optional
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.context import RequestContext
from clinicdesk.core.exceptions import CrossTenantReference, NotFound, StoreUnavailable, ValidationError
from clinicdesk.core.logging import audit_logger, get_logger
from clinicdesk.db.session import commit_or_raise
from clinicdesk.models import Clinic, Professional, Role, User, UserRole, utc_now
from clinicdesk.schemas import ClinicMemberResponse, CreateClinicUserRequest, UserRoleUpdate
from clinicdesk.services.identity_service import identity_service
from clinicdesk.services.realtime_service import change_notifier

logger = get_logger(__name__)

ROLE_ASSIGNMENT_FAILED = "Failed to assign user role"


class UserRoleService:
    
    async def _check_professional(
        self, db: AsyncSession, clinic_id: uuid.UUID, professional_id: Optional[uuid.UUID]
    ) -> None:
        if professional_id is None:
            return
        owner = (await db.execute(
            select(Professional.clinic_id).where(Professional.id == professional_id)
        )).scalar_one_or_none()
        if owner is None:
            raise ValidationError("Professional not found")
        if owner != clinic_id:
            raise CrossTenantReference("Professional belongs to another clinic")
    
    async def _insert_role(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        clinic_id: uuid.UUID,
        role: Role,
        professional_id: Optional[uuid.UUID],
    ) -> UserRole:
        role_row = UserRole(
            user_id=user_id,
            clinic_id=clinic_id,
            role=Role(role).value,
            professional_id=professional_id,
        )
        db.add(role_row)
        await db.commit()
        await db.refresh(role_row)
        return role_row
    
    async def provision_user(
        self, db: AsyncSession, ctx: RequestContext, data: CreateClinicUserRequest
    ) -> Dict[str, Any]:
        """Create an account and its role in the caller's clinic as one logical unit.

        The account is committed first. If the role insert then fails the
        account is deleted again and the request fails, whether or not that
        delete succeeded.
        """
        await self._check_professional(db, ctx.clinic_id, data.professional_id)
        
        user = await identity_service.register(
            db,
            email=data.email,
            password=data.password,
            full_name=data.full_name,
            created_by=ctx.user_id,
        )
        # A rollback expires the instance, so the cleanup path only uses the id
        user_id = user.id
        professional_id = data.professional_id if data.role == Role.PROFESSIONAL.value else None
        
        try:
            role_row = await self._insert_role(db, user_id, ctx.clinic_id, data.role, professional_id)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Role insert failed, removing provisioned user", user_id=str(user_id), error=str(e))
            try:
                await identity_service.delete_identity(db, user_id)
            except SQLAlchemyError as cleanup_error:
                await db.rollback()
                audit_logger.log_compensation_failed("user_provisioning", str(user_id), str(ctx.clinic_id), cleanup_error)
            raise StoreUnavailable(ROLE_ASSIGNMENT_FAILED) from e
        
        logger.info(
            "Clinic user provisioned",
            user_id=str(user.id),
            clinic_id=str(ctx.clinic_id),
            role=role_row.role,
            created_by=str(ctx.user_id),
        )
        change_notifier.publish(ctx.clinic_id, "user_roles", "INSERT", role_row.id)
        return {
            "user": {"id": str(user.id), "email": user.email, "full_name": user.full_name},
            "role": self._member(role_row, user),
        }
    
    def _member(self, role_row: UserRole, user: Optional[User]) -> Dict[str, Any]:
        member = ClinicMemberResponse.model_validate(role_row)
        if user is not None:
            member.email = user.email
            member.full_name = user.full_name
        return member.model_dump(mode="json")
    
    async def list(self, db: AsyncSession, ctx: RequestContext) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(UserRole, User)
            .join(User, User.id == UserRole.user_id)
            .where(UserRole.clinic_id == ctx.clinic_id)
            .order_by(UserRole.created_at)
        )
        return [self._member(role_row, user) for role_row, user in result.all()]
    
    async def _get(self, db: AsyncSession, ctx: RequestContext, role_id: uuid.UUID) -> UserRole:
        role_row = (await db.execute(
            select(UserRole).where(UserRole.id == role_id, UserRole.clinic_id == ctx.clinic_id)
        )).scalar_one_or_none()
        if not role_row:
            raise NotFound("User role not found")
        return role_row
    
    async def update(
        self, db: AsyncSession, ctx: RequestContext, role_id: uuid.UUID, data: UserRoleUpdate
    ) -> Dict[str, Any]:
        role_row = await self._get(db, ctx, role_id)
        changes = data.model_dump(exclude_unset=True)
        
        if "professional_id" in changes:
            await self._check_professional(db, ctx.clinic_id, changes["professional_id"])
        for field, value in changes.items():
            setattr(role_row, field, value)
        # Only professionals carry a linked professional row
        if role_row.role != Role.PROFESSIONAL.value:
            role_row.professional_id = None
        role_row.updated_at = utc_now()
        
        await commit_or_raise(db, "Invalid role assignment")
        await db.refresh(role_row)
        
        change_notifier.publish(ctx.clinic_id, "user_roles", "UPDATE", role_row.id)
        return self._member(role_row, await db.get(User, role_row.user_id))
    
    async def delete(self, db: AsyncSession, ctx: RequestContext, role_id: uuid.UUID) -> None:
        """Remove a role assignment.

        Removing the clinic's last role row also clears its admin claim, so a
        member can bootstrap a new clinic_admin again.
        """
        role_row = await self._get(db, ctx, role_id)
        removed_user_id, removed_role = role_row.user_id, role_row.role
        await db.delete(role_row)
        await db.flush()
        
        released = await db.execute(
            update(Clinic)
            .where(
                Clinic.id == ctx.clinic_id,
                ~select(UserRole.id).where(UserRole.clinic_id == ctx.clinic_id).exists(),
            )
            .values(admin_claimed_at=None, admin_claimed_by=None, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        
        audit_logger.log_security_event(
            "user_role_removed",
            user_id=str(removed_user_id),
            clinic_id=str(ctx.clinic_id),
            details={"removed_by": str(ctx.user_id), "role": removed_role},
        )
        if released.rowcount:
            logger.info("Clinic admin claim released", clinic_id=str(ctx.clinic_id))
        change_notifier.publish(ctx.clinic_id, "user_roles", "DELETE", role_id)


# Global user role service
user_role_service = UserRoleService()
