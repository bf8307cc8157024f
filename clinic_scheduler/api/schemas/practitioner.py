from pydantic import BaseModel


class PriceResponse(BaseModel):
    practitioner_id: int
    appointment_price_in_cents: int


class PractitionerDeleted(BaseModel):
    success: bool
    deleted_appointments: int
