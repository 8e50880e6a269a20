"""
API token management endpoints (api-tokens-management).

Session credentials only: a token can never be used to mint another token.
"""

import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.auth import require_api_tokens_manage
from clinicdesk.core.context import RequestContext
from clinicdesk.db.session import get_db_session
from clinicdesk.schemas import ApiResponse, ApiTokenCreate
from clinicdesk.services.api_token_service import api_token_service

router = APIRouter()


@router.get("")
async def list_tokens(
    ctx: RequestContext = Depends(require_api_tokens_manage),
    db: AsyncSession = Depends(get_db_session)
):
    """Caller's tokens in the current clinic, showing only a preview of each."""
    return ApiResponse(data=await api_token_service.list(db, ctx))


@router.post("", status_code=status.HTTP_201_CREATED)
async def issue_token(
    data: ApiTokenCreate,
    ctx: RequestContext = Depends(require_api_tokens_manage),
    db: AsyncSession = Depends(get_db_session)
):
    issued = await api_token_service.issue(db, ctx.user_id, ctx.clinic_id, data.name, data.expires_in_days)
    return ApiResponse(
        data=issued,
        message="Store this token now; it will not be shown again",
    )


@router.delete("/{token_id}")
async def revoke_token(
    token_id: uuid.UUID,
    ctx: RequestContext = Depends(require_api_tokens_manage),
    db: AsyncSession = Depends(get_db_session)
):
    await api_token_service.revoke(db, ctx, token_id)
    return ApiResponse(message="Token revoked successfully")
