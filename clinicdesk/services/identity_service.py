"""
Local identity provider: accounts, password checks and session credentials.
"""

import uuid
from typing import Optional
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.core.exceptions import Unauthenticated, ValidationError
from clinicdesk.core.logging import get_logger
from clinicdesk.core.security import security
from clinicdesk.db.session import commit_or_raise
from clinicdesk.models import User, utc_now

logger = get_logger(__name__)

DUPLICATE_EMAIL = "A user with this email already exists"


class IdentityService:
    """Creates, authenticates and removes user accounts."""
    
    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()
    
    async def register(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        full_name: str,
        created_by: Optional[uuid.UUID] = None,
    ) -> User:
        """Create an account; the email is unique case-insensitively."""
        if await self.get_by_email(db, email):
            raise ValidationError(DUPLICATE_EMAIL)
        
        user = User(
            email=email.strip().lower(),
            full_name=full_name.strip(),
            password_hash=security.hash_password(password),
            created_by=created_by,
        )
        db.add(user)
        await commit_or_raise(db, DUPLICATE_EMAIL)
        await db.refresh(user)
        
        logger.info("User registered", user_id=str(user.id), created_by=str(created_by) if created_by else None)
        return user
    
    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User:
        user = await self.get_by_email(db, email)
        if not user or not security.verify_password(password, user.password_hash):
            raise Unauthenticated("Invalid email or password")
        if not user.is_active:
            raise Unauthenticated("User account is inactive")
        
        user.last_login = utc_now()
        await db.commit()
        return user
    
    async def get_active_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        """Resolve a user id from a credential, failing when it no longer maps to an account."""
        user = await db.get(User, user_id)
        if not user or not user.is_active:
            raise Unauthenticated("User not found or inactive")
        return user
    
    def issue_session_token(self, user: User) -> str:
        return security.create_access_token({"sub": str(user.id), "email": user.email})
    
    async def delete_identity(self, db: AsyncSession, user_id: uuid.UUID) -> None:
        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()
        logger.info("User deleted", user_id=str(user_id))


# Global identity service
identity_service = IdentityService()
