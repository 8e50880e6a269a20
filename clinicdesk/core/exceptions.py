"""
Domain exceptions raised by services and rendered as ``{"error": ...}`` bodies.
"""

import uuid
from typing import Optional


class ClinicDeskError(Exception):
    """Base class for every error the API reports to callers."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ClinicDeskError):
    status_code = 401
    default_message = "Invalid authentication credentials"


class Forbidden(ClinicDeskError):
    status_code = 403
    default_message = "Insufficient permissions"


class ValidationError(ClinicDeskError):
    status_code = 400
    default_message = "Invalid request"


class CrossTenantReference(ValidationError):
    """A referenced patient or professional belongs to another clinic."""

    default_message = "Referenced record belongs to another clinic"


class NotFound(ClinicDeskError):
    status_code = 404
    default_message = "Not found"


class StoreUnavailable(ClinicDeskError):
    status_code = 500
    default_message = "Store unavailable"


class ClinicBootstrapError(StoreUnavailable):
    """Clinic creation failed part-way.

    ``orphan_clinic_id`` is set when the compensating delete also failed and
    the clinic row is still present without a master membership.
    """

    default_message = "Failed to create clinic membership"

    def __init__(self, message: Optional[str] = None, orphan_clinic_id: Optional[uuid.UUID] = None):
        super().__init__(message)
        self.orphan_clinic_id = orphan_clinic_id
