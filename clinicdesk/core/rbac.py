"""
Role-based access rules for clinic-scoped actions.

The permission table is keyed by every ``Role`` member; adding a role without
deciding its permissions fails at import time.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from clinicdesk.models import Role


class Action(str, Enum):
    PATIENTS_READ = "patients.read"
    PATIENTS_WRITE = "patients.write"
    APPOINTMENTS_READ = "appointments.read"
    APPOINTMENTS_WRITE = "appointments.write"
    PROFESSIONALS_READ = "professionals.read"
    PROFESSIONALS_WRITE = "professionals.write"
    USER_ROLES_MANAGE = "user_roles.manage"
    API_TOKENS_MANAGE = "api_tokens.manage"
    CLINIC_SETTINGS_VIEW = "clinic.settings.view"
    CLINIC_BOOTSTRAP_ADMIN = "clinic.bootstrap_admin"


_STAFF_ACTIONS = frozenset({
    Action.PATIENTS_READ,
    Action.PATIENTS_WRITE,
    Action.APPOINTMENTS_READ,
    Action.APPOINTMENTS_WRITE,
    Action.PROFESSIONALS_READ,
})

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Action]] = {
    Role.CLINIC_ADMIN: frozenset(Action),
    Role.PROFESSIONAL: _STAFF_ACTIONS,
    Role.RECEPTIONIST: _STAFF_ACTIONS,
}

_missing = set(Role) - set(ROLE_PERMISSIONS)
if _missing:
    raise RuntimeError(f"Roles without a permission set: {sorted(r.value for r in _missing)}")

# Allowed for every member whether or not they hold a role row
MEMBER_ACTIONS = frozenset({Action.CLINIC_BOOTSTRAP_ADMIN})

# Allowed for the founding master in addition to its role
MASTER_ACTIONS = frozenset({Action.CLINIC_BOOTSTRAP_ADMIN, Action.CLINIC_SETTINGS_VIEW})


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "AccessDecision":
        return cls(False, reason)


def evaluate(action: Action, role: Optional[Role], is_member: bool, is_master: bool = False) -> AccessDecision:
    """Decide an action from already-loaded membership facts."""
    if not is_member:
        return AccessDecision.deny("Not a member of this clinic")
    if action in MEMBER_ACTIONS:
        return AccessDecision.allow()
    if is_master and action in MASTER_ACTIONS:
        return AccessDecision.allow()
    if role is None:
        return AccessDecision.deny("No role assigned in this clinic")
    if action in ROLE_PERMISSIONS[role]:
        return AccessDecision.allow()
    return AccessDecision.deny(f"Role '{role.value}' is not allowed to perform '{action.value}'")


def parse_role(value: Optional[str]) -> Optional[Role]:
    """Map a stored role string onto the closed enum; unknown values grant nothing."""
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None
