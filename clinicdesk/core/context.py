"""
Request-scoped identity and clinic context.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from clinicdesk.models import Role

SESSION_CREDENTIAL = "session"
API_TOKEN_CREDENTIAL = "api_token"


@dataclass(frozen=True)
class Principal:
    """Who is calling, as established from the bearer credential alone."""
    user_id: uuid.UUID
    credential_type: str = SESSION_CREDENTIAL
    # Clinic an API token is pinned to
    token_clinic_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class RequestContext:
    """Caller identity plus the clinic and role the request acts in."""
    user_id: uuid.UUID
    clinic_id: uuid.UUID
    role: Optional[Role]
    professional_id: Optional[uuid.UUID] = None
    is_master: bool = False
    credential_type: str = SESSION_CREDENTIAL
