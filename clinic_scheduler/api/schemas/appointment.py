from pydantic import BaseModel


class SlotInfo(BaseModel):
    value: str  # HH:MM:SS civil
    label: str  # HH:MM
    available: bool


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    practitioner_id: int
    slots: list[SlotInfo]


class TransitionResponse(BaseModel):
    success: bool
    message: str
    error: str | None = None
