from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import ClinicUser, get_current_user, get_session, get_view_cache
from clinic_scheduler.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.services.slot_service import get_available_slots_for_date

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    practitioner_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    edited_appointment_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> AvailableSlotsResponse:
    """All slots of the practitioner's civil day, ascending. A day outside the
    practitioner's weekdays yields an empty list."""
    slots = await get_available_slots_for_date(
        session,
        practitioner_id,
        date_param,
        edited_appointment_id=edited_appointment_id,
        cache=cache,
        clinic_id=current_user.clinic_id,
    )
    return AvailableSlotsResponse(
        date=date_param.isoformat(),
        practitioner_id=practitioner_id,
        slots=[SlotInfo(value=s.value, label=s.label, available=s.available) for s in slots],
    )
