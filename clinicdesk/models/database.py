"""
SQLModel table definitions for the ClinicDesk schema.
"""

from datetime import datetime, date, timezone
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Date, DateTime, UniqueConstraint
import uuid


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the storage convention.

    Timestamp columns declare a plain `DateTime()` so naive UTC values are
    stored as given.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserBase(SQLModel):
    """Base identity model."""
    email: str = Field(index=True, unique=True)
    full_name: str
    is_active: bool = Field(default=True)


class User(UserBase, table=True):
    """Identity provider account."""
    __tablename__ = "users"
    __table_args__ = {'extend_existing': True}
    
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    password_hash: str
    created_by: Optional[uuid.UUID] = Field(default=None)
    last_login: Optional[datetime] = Field(default=None, sa_type=DateTime())
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())


class ClinicBase(SQLModel):
    """Base clinic model."""
    name: str
    address: Optional[str] = None


class Clinic(ClinicBase, table=True):
    """Clinic model - the tenant boundary."""
    __tablename__ = "clinics"
    __table_args__ = {'extend_existing': True}
    
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # Set by self-promotion to clinic_admin; cleared when the last role row goes
    admin_claimed_at: Optional[datetime] = Field(default=None, sa_type=DateTime())
    admin_claimed_by: Optional[uuid.UUID] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())


class UserClinic(SQLModel, table=True):
    """Membership join between users and clinics, marking the founding master."""
    __tablename__ = "user_clinics"
    __table_args__ = (
        UniqueConstraint("user_id", "clinic_id", name="uq_user_clinics_user_clinic"),
        {'extend_existing': True},
    )
    
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    clinic_id: uuid.UUID = Field(foreign_key="clinics.id", index=True)
    role: str = Field(default="admin")
    role_type: str = Field(default="master")
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())


class UserRole(SQLModel, table=True):
    """Fine-grained role of a user inside one clinic."""
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "clinic_id", name="uq_user_roles_user_clinic"),
        {'extend_existing': True},
    )
    
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    clinic_id: uuid.UUID = Field(foreign_key="clinics.id", index=True)
    role: str
    professional_id: Optional[uuid.UUID] = Field(default=None, foreign_key="professionals.id")
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())


class ProfessionalBase(SQLModel):
    """Base professional model."""
    name: str
    specialty: str
    color: str = Field(default="#3B82F6")


class Professional(ProfessionalBase, table=True):
    """Staff member who can be assigned appointments."""
    __tablename__ = "professionals"
    __table_args__ = {'extend_existing': True}
    
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    clinic_id: uuid.UUID = Field(foreign_key="clinics.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())


class PatientBase(SQLModel):
    """Base patient model."""
    name: str
    cpf: str
    phone: Optional[str] = None
    email: Optional[str] = None
    birth_date: Optional[date] = Field(default=None, sa_type=Date())
    notes: Optional[str] = None


class Patient(PatientBase, table=True):
    """Patient model."""
    __tablename__ = "patients"
    __table_args__ = (
        UniqueConstraint("clinic_id", "cpf", name="uq_patients_clinic_cpf"),
        {'extend_existing': True},
    )
    
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    clinic_id: uuid.UUID = Field(foreign_key="clinics.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())


class AppointmentBase(SQLModel):
    """Base appointment model."""
    title: str
    start_time: datetime = Field(index=True, sa_type=DateTime())
    end_time: datetime = Field(sa_type=DateTime())
    status: str = Field(default="scheduled")
    attendance_status: str = Field(default="scheduled")


class Appointment(AppointmentBase, table=True):
    """Appointment model."""
    __tablename__ = "appointments"
    __table_args__ = {'extend_existing': True}
    
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    clinic_id: uuid.UUID = Field(foreign_key="clinics.id", index=True)
    patient_id: uuid.UUID = Field(foreign_key="patients.id", index=True)
    professional_id: uuid.UUID = Field(foreign_key="professionals.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())


class ApiToken(SQLModel, table=True):
    """Long-lived bearer credential scoped to one (user, clinic) pair.

    Only the SHA-256 digest of the token is stored.
    """
    __tablename__ = "api_tokens"
    __table_args__ = {'extend_existing': True}
    
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    clinic_id: uuid.UUID = Field(foreign_key="clinics.id", index=True)
    name: str
    token_hash: str = Field(index=True, unique=True)
    is_active: bool = Field(default=True)
    last_used_at: Optional[datetime] = Field(default=None, sa_type=DateTime())
    expires_at: Optional[datetime] = Field(default=None, sa_type=DateTime())
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
