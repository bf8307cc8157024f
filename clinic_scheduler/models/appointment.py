from datetime import datetime
from enum import Enum

from pydantic import field_validator
from sqlalchemy import DateTime, Index, text
from sqlmodel import Field, SQLModel

from clinic_scheduler.core.civil_time import normalize_instant, utc_naive_now


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


_ACTIVE = text("status <> 'canceled'")


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    # One live booking per practitioner and instant; canceled rows free the slot
    __table_args__ = (
        Index(
            "uq_appointments_practitioner_slot_active",
            "practitioner_id",
            "scheduled_at",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
    )
    id: int | None = Field(default=None, primary_key=True)
    practitioner_id: int = Field(foreign_key="practitioners.id", index=True)
    patient_id: int = Field(foreign_key="patients.id", index=True)
    clinic_id: int = Field(index=True)
    scheduled_at: datetime = Field(sa_type=DateTime, index=True)  # naive UTC
    appointment_price_in_cents: int = 0
    status: str = Field(default=AppointmentStatus.PENDING.value, max_length=16, index=True)
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime)


class AppointmentCreate(SQLModel):
    practitioner_id: int
    patient_id: int
    scheduled_at: datetime
    appointment_price_in_cents: int | None = Field(default=None, ge=0)

    @field_validator("scheduled_at")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        return normalize_instant(value)


class AppointmentChanges(SQLModel):
    """Partial edit payload.

    Only fields present in ``model_fields_set`` are applied, so an omitted
    field never overwrites stored data. Sending ``null`` explicitly is
    distinguishable from omitting it and is rejected for required columns.
    """

    patient_id: int | None = None
    practitioner_id: int | None = None
    scheduled_at: datetime | None = None
    appointment_price_in_cents: int | None = Field(default=None, ge=0)

    @field_validator("scheduled_at")
    @classmethod
    def to_utc(cls, value: datetime | None) -> datetime | None:
        return normalize_instant(value) if value is not None else None

    def provided(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set if name != "status"}


class AppointmentUpdate(AppointmentChanges):
    """Status-aware update payload."""

    status: AppointmentStatus | None = None


class AppointmentPublic(SQLModel):
    """Instants are UTC-aware so a client echoing ``scheduled_at`` back
    lands on the same booking; naive input is read as civil time."""


    id: int
    practitioner_id: int
    patient_id: int
    clinic_id: int
    scheduled_at: datetime
    civil_date: str
    civil_time: str
    appointment_price_in_cents: int
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime
