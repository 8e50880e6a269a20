"""
Core database models for the ClinicDesk clinic-management backend.
"""

from enum import Enum

from clinicdesk.models.database import (
    User,
    Clinic,
    UserClinic,
    UserRole,
    Professional,
    Patient,
    Appointment,
    ApiToken,
    utc_now,
)


class Role(str, Enum):
    """Closed set of per-clinic roles, most privileged first."""
    CLINIC_ADMIN = "clinic_admin"
    PROFESSIONAL = "professional"
    RECEPTIONIST = "receptionist"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"


class AttendanceStatus(str, Enum):
    """Attendance outcome; any value may replace any other."""
    SCHEDULED = "scheduled"
    ATTENDED = "attended"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


ATTENDANCE_LABELS = {
    AttendanceStatus.SCHEDULED: "Agendado",
    AttendanceStatus.ATTENDED: "Compareceu",
    AttendanceStatus.NO_SHOW: "Não compareceu",
    AttendanceStatus.CANCELLED: "Cancelado",
    AttendanceStatus.RESCHEDULED: "Remarcado",
}

MASTER_ROLE_TYPE = "master"


__all__ = [
    "User",
    "Clinic",
    "UserClinic",
    "UserRole",
    "Professional",
    "Patient",
    "Appointment",
    "ApiToken",
    "utc_now",
    "Role",
    "AppointmentStatus",
    "AttendanceStatus",
    "ATTENDANCE_LABELS",
    "MASTER_ROLE_TYPE",
]
