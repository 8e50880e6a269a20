"""
Issuing, listing, validating and revoking long-lived API tokens.

Only the SHA-256 digest of a token is stored. The plaintext exists in the
issuance response and nowhere else, and lookups go through the digest.
"""

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.context import RequestContext
from clinicdesk.core.exceptions import NotFound
from clinicdesk.core.logging import audit_logger, get_logger
from clinicdesk.core.security import security
from clinicdesk.models import ApiToken, utc_now
from clinicdesk.schemas import ApiTokenIssued, ApiTokenListItem

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenIdentity:
    token_id: uuid.UUID
    user_id: uuid.UUID
    clinic_id: uuid.UUID


class ApiTokenService:
    
    async def issue(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        clinic_id: uuid.UUID,
        name: str,
        expires_in_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        plaintext = security.generate_api_token()
        token_hash = security.hash_api_token(plaintext)
        
        expires_at = None
        if expires_in_days is not None and expires_in_days > 0:
            expires_at = utc_now() + timedelta(days=expires_in_days)
        
        token = ApiToken(
            user_id=user_id,
            clinic_id=clinic_id,
            name=name.strip(),
            token_hash=token_hash,
            expires_at=expires_at,
        )
        db.add(token)
        await db.commit()
        await db.refresh(token)
        
        logger.info("API token issued", token_id=str(token.id), user_id=str(user_id), clinic_id=str(clinic_id))
        return ApiTokenIssued(
            id=token.id,
            name=token.name,
            token=plaintext,
            token_preview=security.token_preview(token_hash),
            created_at=token.created_at,
            expires_at=token.expires_at,
        ).model_dump(mode="json")
    
    async def list(self, db: AsyncSession, ctx: RequestContext) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(ApiToken)
            .where(ApiToken.user_id == ctx.user_id, ApiToken.clinic_id == ctx.clinic_id)
            .order_by(ApiToken.created_at.desc())
        )
        return [
            ApiTokenListItem(
                id=token.id,
                name=token.name,
                token_preview=security.token_preview(token.token_hash),
                is_active=token.is_active,
                created_at=token.created_at,
                last_used_at=token.last_used_at,
                expires_at=token.expires_at,
            ).model_dump(mode="json")
            for token in result.scalars().all()
        ]
    
    async def validate(self, db: AsyncSession, plaintext: str) -> Optional[TokenIdentity]:
        """Resolve a presented token to its owner, or None when unknown, inactive or expired."""
        token_hash = security.hash_api_token(plaintext)
        token = (await db.execute(
            select(ApiToken).where(ApiToken.token_hash == token_hash)
        )).scalar_one_or_none()
        
        now = utc_now()
        if token is None or not token.is_active:
            return None
        if token.expires_at is not None and token.expires_at <= now:
            return None
        
        token.last_used_at = now
        await db.commit()
        return TokenIdentity(token_id=token.id, user_id=token.user_id, clinic_id=token.clinic_id)
    
    async def revoke(self, db: AsyncSession, ctx: RequestContext, token_id: uuid.UUID) -> None:
        result = await db.execute(
            delete(ApiToken).where(
                ApiToken.id == token_id,
                ApiToken.user_id == ctx.user_id,
                ApiToken.clinic_id == ctx.clinic_id,
            )
        )
        if result.rowcount == 0:
            await db.rollback()
            raise NotFound("Token not found")
        await db.commit()
        
        audit_logger.log_security_event(
            "api_token_revoked",
            user_id=str(ctx.user_id),
            clinic_id=str(ctx.clinic_id),
            details={"token_id": str(token_id)},
        )


# Global API token service
api_token_service = ApiTokenService()
