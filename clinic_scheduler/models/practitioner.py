from pydantic import field_validator
from sqlmodel import Field, SQLModel

from clinic_scheduler.core.civil_time import normalize_time


class PractitionerBase(SQLModel):
    name: str
    # 0=Sunday .. 6=Saturday, inclusive range, no wraparound
    available_from_weekday: int = Field(default=1, ge=0, le=6)
    available_to_weekday: int = Field(default=5, ge=0, le=6)
    # Civil "HH:MM:SS"; None means working hours not configured yet
    available_from_time: str | None = Field(default=None, max_length=8)
    available_to_time: str | None = Field(default=None, max_length=8)
    appointment_price_in_cents: int = Field(default=0, ge=0)


class Practitioner(PractitionerBase, table=True):
    __tablename__ = "practitioners"
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(index=True)

    @property
    def has_working_hours(self) -> bool:
        return bool(self.available_from_time and self.available_to_time)


class PractitionerUpsert(PractitionerBase):
    @field_validator("available_from_time", "available_to_time")
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_time(value)


class PractitionerPublic(PractitionerBase):
    id: int
    clinic_id: int
