"""
Authentication endpoints: signup, login and the caller's profile.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.auth import get_session_principal
from clinicdesk.core.context import Principal
from clinicdesk.core.logging import get_logger
from clinicdesk.db.session import get_db_session
from clinicdesk.schemas import (
    ApiResponse, ClinicResponse, LoginRequest, MembershipResponse,
    SessionTokenResponse, SignupRequest, UserResponse, UserRoleResponse,
)
from clinicdesk.services.clinic_service import clinic_service
from clinicdesk.services.identity_service import identity_service

logger = get_logger(__name__)

router = APIRouter()


def _session_payload(user, token: str) -> dict:
    return SessionTokenResponse(
        access_token=token,
        user=UserResponse.model_validate(user),
    ).model_dump(mode="json")


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    data: SignupRequest,
    db: AsyncSession = Depends(get_db_session)
):
    """Create an account and return a session credential."""
    user = await identity_service.register(db, data.email, data.password, data.full_name)
    token = identity_service.issue_session_token(user)
    return ApiResponse(data=_session_payload(user, token))


@router.post("/login")
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db_session)
):
    user = await identity_service.authenticate(db, data.email, data.password)
    token = identity_service.issue_session_token(user)
    logger.info("User logged in", user_id=str(user.id))
    return ApiResponse(data=_session_payload(user, token))


@router.get("/me")
async def me(
    principal: Principal = Depends(get_session_principal),
    db: AsyncSession = Depends(get_db_session)
):
    """Current user with resolved clinic membership."""
    user = await identity_service.get_active_user(db, principal.user_id)
    membership = await clinic_service.resolve_membership(db, principal.user_id)
    return ApiResponse(data={
        "user": UserResponse.model_validate(user).model_dump(mode="json"),
        "membership": MembershipResponse(
            clinics=[ClinicResponse.model_validate(c) for c in membership.clinics],
            roles=[UserRoleResponse.model_validate(r) for r in membership.roles],
            current_clinic=ClinicResponse.model_validate(membership.current_clinic) if membership.current_clinic else None,
            master_clinic_ids=membership.master_clinic_ids,
        ).model_dump(mode="json"),
    })
