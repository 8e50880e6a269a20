"""
Clinic bootstrap and membership endpoints.
"""

import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.auth import get_session_principal
from clinicdesk.core.context import Principal
from clinicdesk.core.rbac import Action, evaluate
from clinicdesk.db.session import get_db_session
from clinicdesk.schemas import (
    ApiResponse, ClinicCreate, ClinicResponse, MembershipResponse, UserRoleResponse,
)
from clinicdesk.services.access_service import access_service
from clinicdesk.services.clinic_service import clinic_service

router = APIRouter()


@router.get("/membership")
async def get_membership(
    x_clinic_id: Optional[uuid.UUID] = Header(default=None, alias="X-Clinic-Id"),
    principal: Principal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db_session)
):
    """Clinics and roles of the caller, with the clinic requests will act in."""
    membership = await clinic_service.resolve_membership(db, principal.user_id, x_clinic_id)
    current = membership.current_clinic
    
    standing = {}
    if current is not None:
        role = await access_service.get_user_role_in_clinic(db, principal.user_id, current.id)
        standing = {
            "current_role": role,
            "is_admin": await access_service.is_clinic_admin(db, principal.user_id, current.id),
            "professional_id": await access_service.get_user_professional_id(db, principal.user_id, current.id),
            "can_view_settings": evaluate(
                Action.CLINIC_SETTINGS_VIEW,
                role,
                is_member=True,
                is_master=current.id in membership.master_clinic_ids,
            ).allowed,
        }
    
    return ApiResponse(data=MembershipResponse(
        clinics=[ClinicResponse.model_validate(c) for c in membership.clinics],
        roles=[UserRoleResponse.model_validate(r) for r in membership.roles],
        current_clinic=ClinicResponse.model_validate(current) if current else None,
        master_clinic_ids=membership.master_clinic_ids,
        **standing,
    ).model_dump(mode="json"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_clinic(
    data: ClinicCreate,
    principal: Principal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db_session)
):
    """Create a clinic with the caller as its master."""
    clinic = await clinic_service.create_clinic(db, principal.user_id, data.name, data.address)
    return ApiResponse(
        data=ClinicResponse.model_validate(clinic).model_dump(mode="json"),
        message="Clinic created successfully",
    )


@router.post("/{clinic_id}/assign-self-admin")
async def assign_self_as_admin(
    clinic_id: uuid.UUID,
    principal: Principal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db_session)
):
    """Become the clinic's first clinic_admin; refused once any admin exists."""
    role_row = await access_service.assign_self_as_admin(db, principal.user_id, clinic_id)
    return ApiResponse(data=UserRoleResponse.model_validate(role_row).model_dump(mode="json"))
