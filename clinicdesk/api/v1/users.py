"""
Clinic user provisioning and role management endpoints.
"""

import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.auth import AuthDependencies, get_session_principal, require_user_roles_manage
from clinicdesk.core.context import Principal, RequestContext
from clinicdesk.core.rbac import Action
from clinicdesk.db.session import get_db_session
from clinicdesk.schemas import ApiResponse, CreateClinicUserRequest, UserRoleUpdate
from clinicdesk.services.user_role_service import user_role_service

# Mounted at /create-clinic-user
provisioning_router = APIRouter()

# Mounted at /user-roles
router = APIRouter()


@provisioning_router.post("", status_code=status.HTTP_201_CREATED)
async def create_clinic_user(
    data: CreateClinicUserRequest,
    x_clinic_id: Optional[uuid.UUID] = Header(default=None, alias="X-Clinic-Id"),
    principal: Principal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db_session)
):
    """Create an account with a role in the target clinic (clinic_admin only)."""
    ctx = await AuthDependencies.authorize_context(
        db, principal, Action.USER_ROLES_MANAGE, data.clinic_id or x_clinic_id
    )
    provisioned = await user_role_service.provision_user(db, ctx, data)
    return ApiResponse(data=provisioned, message="User created successfully")


@router.get("")
async def list_user_roles(
    ctx: RequestContext = Depends(require_user_roles_manage),
    db: AsyncSession = Depends(get_db_session)
):
    return ApiResponse(data=await user_role_service.list(db, ctx))


@router.put("/{role_id}")
async def update_user_role(
    role_id: uuid.UUID,
    data: UserRoleUpdate,
    ctx: RequestContext = Depends(require_user_roles_manage),
    db: AsyncSession = Depends(get_db_session)
):
    return ApiResponse(data=await user_role_service.update(db, ctx, role_id, data))


@router.delete("/{role_id}")
async def delete_user_role(
    role_id: uuid.UUID,
    ctx: RequestContext = Depends(require_user_roles_manage),
    db: AsyncSession = Depends(get_db_session)
):
    await user_role_service.delete(db, ctx, role_id)
    return ApiResponse(message="User role removed successfully")
