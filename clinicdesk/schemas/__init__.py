"""
Pydantic schemas for request/response models.
"""

import uuid
from datetime import datetime, date, timezone
from typing import Annotated, Any, List, Optional
from pydantic import AliasChoices, BaseModel, EmailStr, Field, PlainSerializer, field_validator, model_validator

from clinicdesk.models import AppointmentStatus, AttendanceStatus, Role


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_utc_isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# Timestamps are stored as naive UTC; responses always carry the offset
UtcDateTime = Annotated[datetime, PlainSerializer(to_utc_isoformat, when_used="json")]


def _reject_explicit_nulls(model: BaseModel, fields: tuple) -> None:
    for name in fields:
        if name in model.model_fields_set and getattr(model, name) is None:
            raise ValueError(f"{name} cannot be null")


# Base schemas
class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    
    model_config = {
        "from_attributes": True,
        "use_enum_values": True,
        "populate_by_name": True,
    }


class ApiResponse(BaseSchema):
    """Envelope for every successful response."""
    success: bool = True
    data: Any = None
    message: Optional[str] = None


# Auth schemas
class SignupRequest(BaseSchema):
    """Identity registration schema."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseSchema):
    """Login request schema."""
    email: EmailStr
    password: str


class UserResponse(BaseSchema):
    """User response schema."""
    id: uuid.UUID
    email: str
    full_name: str
    is_active: bool
    created_at: UtcDateTime


class SessionTokenResponse(BaseSchema):
    """Session credential issued at signup or login."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# Clinic schemas
class ClinicCreate(BaseSchema):
    """Clinic bootstrap schema."""
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None


class ClinicResponse(BaseSchema):
    """Clinic response schema."""
    id: uuid.UUID
    name: str
    address: Optional[str] = None
    created_at: UtcDateTime


class UserRoleResponse(BaseSchema):
    """Role assignment response schema."""
    id: uuid.UUID
    user_id: uuid.UUID
    clinic_id: uuid.UUID
    role: Role
    professional_id: Optional[uuid.UUID] = None
    created_at: UtcDateTime


class ClinicMemberResponse(UserRoleResponse):
    """Role assignment joined with the member's identity."""
    email: Optional[str] = None
    full_name: Optional[str] = None


class MembershipResponse(BaseSchema):
    """Resolved clinic membership of the calling user."""
    clinics: List[ClinicResponse]
    roles: List[UserRoleResponse]
    current_clinic: Optional[ClinicResponse] = None
    master_clinic_ids: List[uuid.UUID] = Field(default_factory=list)
    # Caller's standing in the current clinic
    current_role: Optional[Role] = None
    is_admin: bool = False
    professional_id: Optional[uuid.UUID] = None
    can_view_settings: bool = False


# Patient schemas
class PatientCreate(BaseSchema):
    """Patient creation schema."""
    name: str = Field(..., min_length=1, max_length=255)
    cpf: str
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    birth_date: Optional[date] = None
    notes: Optional[str] = None
    
    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        if not v.strip():
            raise ValueError("name is required")
        return v.strip()
    
    @field_validator("cpf")
    @classmethod
    def validate_cpf(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not 11 <= len(v) <= 14:
            raise ValueError("cpf must be between 11 and 14 characters")
        return v


class PatientUpdate(PatientCreate):
    """Patient update schema - all fields optional for partial updates."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    cpf: Optional[str] = None
    
    @model_validator(mode="after")
    def validate_required_not_null(self):
        _reject_explicit_nulls(self, ("name", "cpf"))
        return self


class PatientResponse(BaseSchema):
    """Patient response schema."""
    id: uuid.UUID
    clinic_id: uuid.UUID
    name: str
    cpf: str
    phone: Optional[str] = None
    email: Optional[str] = None
    birth_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: UtcDateTime
    updated_at: UtcDateTime


class PatientSummary(BaseSchema):
    id: uuid.UUID
    name: str
    cpf: str
    email: Optional[str] = None
    phone: Optional[str] = None


# Professional schemas
class ProfessionalCreate(BaseSchema):
    """Professional creation schema."""
    name: str = Field(..., min_length=1, max_length=255)
    specialty: str = Field(..., min_length=1, max_length=255)
    color: str = Field(default="#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")


class ProfessionalUpdate(BaseSchema):
    """Professional update schema."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    specialty: Optional[str] = Field(None, min_length=1, max_length=255)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    
    @model_validator(mode="after")
    def validate_required_not_null(self):
        _reject_explicit_nulls(self, ("name", "specialty", "color"))
        return self


class ProfessionalResponse(BaseSchema):
    """Professional response schema."""
    id: uuid.UUID
    clinic_id: uuid.UUID
    name: str
    specialty: str
    color: str
    created_at: UtcDateTime
    updated_at: UtcDateTime


class ProfessionalSummary(BaseSchema):
    id: uuid.UUID
    name: str
    specialty: str
    color: str


# Appointment schemas
class AppointmentCreate(BaseSchema):
    """Appointment creation schema."""
    model_config = {**BaseSchema.model_config, "validate_default": True}
    
    title: str = Field(..., min_length=1, max_length=255)
    patient_id: uuid.UUID
    professional_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    attendance_status: AttendanceStatus = AttendanceStatus.SCHEDULED
    
    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, v):
        return to_naive_utc(v)
    
    @model_validator(mode="after")
    def validate_time_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AppointmentUpdate(BaseSchema):
    """Appointment update schema.

    Time order is checked only when both ends are supplied together.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    patient_id: Optional[uuid.UUID] = None
    professional_id: Optional[uuid.UUID] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    attendance_status: Optional[AttendanceStatus] = None
    
    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, v):
        return to_naive_utc(v)
    
    @model_validator(mode="after")
    def validate_fields(self):
        _reject_explicit_nulls(self, tuple(self.model_fields_set))
        if self.start_time is not None and self.end_time is not None:
            if self.end_time <= self.start_time:
                raise ValueError("end_time must be after start_time")
        return self


class AttendanceStatusUpdate(BaseSchema):
    attendance_status: AttendanceStatus


class AppointmentResponse(BaseSchema):
    """Appointment joined with patient and professional summaries."""
    id: uuid.UUID
    clinic_id: uuid.UUID
    patient_id: uuid.UUID
    professional_id: uuid.UUID
    title: str
    start_time: UtcDateTime
    end_time: UtcDateTime
    status: str
    attendance_status: str
    created_at: UtcDateTime
    updated_at: UtcDateTime
    patient: Optional[PatientSummary] = None
    professional: Optional[ProfessionalSummary] = None


# API token schemas
class ApiTokenCreate(BaseSchema):
    """API token issuance request."""
    name: str = Field(..., min_length=1, max_length=255)
    expires_in_days: Optional[int] = Field(
        None,
        gt=0,
        validation_alias=AliasChoices("expires_in_days", "expiresInDays"),
    )


class ApiTokenIssued(BaseSchema):
    """Issuance response; the only place the plaintext token ever appears."""
    id: uuid.UUID
    name: str
    token: str
    token_preview: str
    created_at: UtcDateTime
    expires_at: Optional[UtcDateTime] = None


class ApiTokenListItem(BaseSchema):
    id: uuid.UUID
    name: str
    token_preview: str
    is_active: bool
    created_at: UtcDateTime
    last_used_at: Optional[UtcDateTime] = None
    expires_at: Optional[UtcDateTime] = None


# User provisioning schemas
class CreateClinicUserRequest(BaseSchema):
    """Provision a new account together with its role in a clinic."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1, max_length=255)
    role: Role
    professional_id: Optional[uuid.UUID] = None
    clinic_id: Optional[uuid.UUID] = None


class UserRoleUpdate(BaseSchema):
    """Role assignment update schema."""
    role: Optional[Role] = None
    professional_id: Optional[uuid.UUID] = None
    
    @model_validator(mode="after")
    def validate_role_not_null(self):
        _reject_explicit_nulls(self, ("role",))
        return self
