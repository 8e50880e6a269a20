"""
Authentication dependencies for FastAPI endpoints.

A bearer credential shaped like an API token (64 lowercase hex characters)
is validated against the token store; anything else is treated as a session
JWT. Session-only endpoints never consult the token store, so an API token
presented there is simply an invalid session credential.
"""

import uuid
from typing import Optional
from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.context import API_TOKEN_CREDENTIAL, SESSION_CREDENTIAL, Principal, RequestContext
from clinicdesk.core.exceptions import Forbidden, Unauthenticated
from clinicdesk.core.rbac import Action
from clinicdesk.core.security import security
from clinicdesk.db.session import get_db_session
from clinicdesk.services.access_service import access_service
from clinicdesk.services.api_token_service import api_token_service
from clinicdesk.services.clinic_service import clinic_service
from clinicdesk.services.identity_service import identity_service


# Security scheme; missing credentials are reported as 401 by the dependencies
security_scheme = HTTPBearer(auto_error=False)


def _bearer(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing authorization header")
    return credentials.credentials


class AuthDependencies:
    """Authentication dependencies for FastAPI endpoints."""
    
    @staticmethod
    async def principal_from_session_token(token: str, db: AsyncSession) -> Principal:
        payload = security.verify_token(token, "access")
        if not payload:
            raise Unauthenticated("Invalid authentication credentials")
        
        try:
            user_id = uuid.UUID(payload.get("sub") or "")
        except ValueError:
            raise Unauthenticated("Invalid token payload")
        
        await identity_service.get_active_user(db, user_id)
        return Principal(user_id=user_id, credential_type=SESSION_CREDENTIAL)
    
    @staticmethod
    async def get_session_principal(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
        db: AsyncSession = Depends(get_db_session)
    ) -> Principal:
        """Accept only a session credential."""
        return await AuthDependencies.principal_from_session_token(_bearer(credentials), db)
    
    @staticmethod
    async def get_any_principal(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
        db: AsyncSession = Depends(get_db_session)
    ) -> Principal:
        """Accept either an API token or a session credential."""
        token = _bearer(credentials)
        if not security.is_api_token(token):
            return await AuthDependencies.principal_from_session_token(token, db)
        
        identity = await api_token_service.validate(db, token)
        if identity is None:
            raise Unauthenticated("Invalid or expired API token")
        await identity_service.get_active_user(db, identity.user_id)
        return Principal(
            user_id=identity.user_id,
            credential_type=API_TOKEN_CREDENTIAL,
            token_clinic_id=identity.clinic_id,
        )
    
    @staticmethod
    async def build_context(
        db: AsyncSession,
        principal: Principal,
        requested_clinic_id: Optional[uuid.UUID] = None,
    ) -> RequestContext:
        """Pick the clinic a request acts in and attach the caller's role there."""
        if principal.token_clinic_id is not None:
            if requested_clinic_id is not None and requested_clinic_id != principal.token_clinic_id:
                raise Forbidden("API token is not valid for this clinic")
            clinic_id = principal.token_clinic_id
        else:
            membership = await clinic_service.resolve_membership(db, principal.user_id, requested_clinic_id)
            if membership.is_empty:
                raise Forbidden("User not associated with any clinic")
            if requested_clinic_id is not None and not membership.has_clinic(requested_clinic_id):
                raise Forbidden("Not a member of this clinic")
            clinic_id = membership.current_clinic.id
        
        facts = await access_service.load_facts(db, principal.user_id, clinic_id)
        return RequestContext(
            user_id=principal.user_id,
            clinic_id=clinic_id,
            role=facts.role,
            professional_id=facts.professional_id,
            is_master=facts.is_master,
            credential_type=principal.credential_type,
        )
    
    @staticmethod
    async def authorize_context(
        db: AsyncSession,
        principal: Principal,
        action: Action,
        requested_clinic_id: Optional[uuid.UUID] = None,
    ) -> RequestContext:
        ctx = await AuthDependencies.build_context(db, principal, requested_clinic_id)
        decision = await access_service.authorize(db, ctx.user_id, ctx.clinic_id, action)
        if not decision.allowed:
            raise Forbidden(decision.reason)
        return ctx
    
    @staticmethod
    def require_action(action: Action, session_only: bool = False):
        """Dependency factory resolving the request context and checking one action."""
        principal_dependency = (
            AuthDependencies.get_session_principal if session_only else AuthDependencies.get_any_principal
        )
        
        async def action_checker(
            x_clinic_id: Optional[uuid.UUID] = Header(default=None, alias="X-Clinic-Id"),
            principal: Principal = Depends(principal_dependency),
            db: AsyncSession = Depends(get_db_session)
        ) -> RequestContext:
            return await AuthDependencies.authorize_context(db, principal, action, x_clinic_id)
        
        return action_checker


get_session_principal = AuthDependencies.get_session_principal
get_any_principal = AuthDependencies.get_any_principal

# Patients accept API tokens; everything else is session-only
require_patients_read = AuthDependencies.require_action(Action.PATIENTS_READ)
require_patients_write = AuthDependencies.require_action(Action.PATIENTS_WRITE)
require_appointments_read = AuthDependencies.require_action(Action.APPOINTMENTS_READ, session_only=True)
require_appointments_write = AuthDependencies.require_action(Action.APPOINTMENTS_WRITE, session_only=True)
require_professionals_read = AuthDependencies.require_action(Action.PROFESSIONALS_READ, session_only=True)
require_professionals_write = AuthDependencies.require_action(Action.PROFESSIONALS_WRITE, session_only=True)
require_user_roles_manage = AuthDependencies.require_action(Action.USER_ROLES_MANAGE, session_only=True)
require_api_tokens_manage = AuthDependencies.require_action(Action.API_TOKENS_MANAGE, session_only=True)
