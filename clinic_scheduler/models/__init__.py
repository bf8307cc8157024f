from clinic_scheduler.models.practitioner import (
    Practitioner,
    PractitionerPublic,
    PractitionerUpsert,
)
from clinic_scheduler.models.patient import Patient, PatientCreate, PatientPublic
from clinic_scheduler.models.appointment import (
    Appointment,
    AppointmentChanges,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
)

__all__ = [
    "Practitioner",
    "PractitionerPublic",
    "PractitionerUpsert",
    "Patient",
    "PatientCreate",
    "PatientPublic",
    "Appointment",
    "AppointmentChanges",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentStatus",
    "AppointmentUpdate",
]
