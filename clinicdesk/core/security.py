"""
Security utilities for passwords, session credentials and API tokens.
"""

import hashlib
import re
import secrets
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext

from clinicdesk.core.config import settings


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

API_TOKEN_BYTES = 32
API_TOKEN_PATTERN = re.compile(r"[0-9a-f]{64}")


class SecurityManager:
    """Centralized credential handling."""
    
    def __init__(self):
        self.secret_key = settings.secret_key
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire_minutes = settings.jwt_access_token_expire_minutes
    
    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt."""
        # Bcrypt has a 72-byte limit
        password_bytes = password.encode('utf-8')[:72].decode('utf-8', errors='ignore')
        return pwd_context.hash(password_bytes)
    
    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        password_bytes = plain_password.encode('utf-8')[:72].decode('utf-8', errors='ignore')
        return pwd_context.verify(password_bytes, hashed_password)
    
    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT session credential."""
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=self.access_token_expire_minutes)
        
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
    
    def verify_token(self, token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
        """Verify and decode a JWT session credential."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        
        if payload.get("type") != token_type:
            return None
        
        return payload
    
    def generate_api_token(self) -> str:
        """Generate a new API token: 32 random bytes as 64 lowercase hex characters."""
        return secrets.token_hex(API_TOKEN_BYTES)
    
    def hash_api_token(self, token: str) -> str:
        """SHA-256 hex digest used as the storage and lookup key."""
        return hashlib.sha256(token.encode()).hexdigest()
    
    def is_api_token(self, credential: str) -> bool:
        """Whether a bearer credential has the API token shape rather than a session JWT."""
        return API_TOKEN_PATTERN.fullmatch(credential) is not None
    
    @staticmethod
    def token_preview(token_hash: str) -> str:
        return f"****{token_hash[-4:]}"


# Global security manager
security = SecurityManager()
