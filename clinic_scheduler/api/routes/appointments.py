import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import ClinicUser, get_current_user, get_session, get_view_cache
from clinic_scheduler.api.schemas.appointment import TransitionResponse
from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.models.appointment import (
    AppointmentChanges,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
)
from clinic_scheduler.services import appointment_service
from clinic_scheduler.services.appointment_state import NOT_FOUND, TransitionResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def _transition_response(result: TransitionResult) -> JSONResponse:
    """Business-rule failures keep the {success, message} body so the UI can show them."""
    if result.success:
        code = status.HTTP_200_OK
    elif result.error == NOT_FOUND:
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_409_CONFLICT
    body = TransitionResponse(success=result.success, message=result.message, error=result.error)
    return JSONResponse(status_code=code, content=body.model_dump())


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: AppointmentCreate,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> AppointmentPublic:
    appointment = await appointment_service.create_appointment(session, current_user.clinic_id, body, cache=cache)
    return appointment_service.to_public(appointment)


@router.get("", response_model=list[AppointmentPublic])
async def list_appointments(
    practitioner_id: int | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    status_param: AppointmentStatus | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> list[AppointmentPublic]:
    return await appointment_service.list_appointments(
        session,
        practitioner_id=practitioner_id,
        clinic_id=current_user.clinic_id,
        from_date=from_date,
        to_date=to_date,
        status=status_param,
        cache=cache,
    )


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def get_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: ClinicUser = Depends(get_current_user),
) -> AppointmentPublic:
    appointment = await appointment_service.get_appointment(
        session, appointment_id, clinic_id=current_user.clinic_id
    )
    return appointment_service.to_public(appointment)


@router.post("/{appointment_id}/confirm", response_model=TransitionResponse)
async def confirm_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> JSONResponse:
    result = await appointment_service.confirm_appointment(
        session, appointment_id, cache=cache, clinic_id=current_user.clinic_id
    )
    return _transition_response(result)


@router.post("/{appointment_id}/revert", response_model=TransitionResponse)
async def revert_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> JSONResponse:
    result = await appointment_service.revert_to_pending(
        session, appointment_id, cache=cache, clinic_id=current_user.clinic_id
    )
    return _transition_response(result)


@router.post("/{appointment_id}/cancel", response_model=TransitionResponse)
async def cancel_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> JSONResponse:
    result = await appointment_service.cancel_appointment(
        session, appointment_id, cache=cache, clinic_id=current_user.clinic_id
    )
    return _transition_response(result)


@router.delete("/{appointment_id}", response_model=TransitionResponse)
async def delete_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> JSONResponse:
    result = await appointment_service.delete_appointment(
        session, appointment_id, cache=cache, clinic_id=current_user.clinic_id
    )
    return _transition_response(result)


@router.patch("/{appointment_id}", response_model=TransitionResponse)
async def edit_appointment(
    appointment_id: int,
    body: AppointmentChanges,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> JSONResponse:
    result = await appointment_service.edit_appointment(
        session, appointment_id, body, cache=cache, clinic_id=current_user.clinic_id
    )
    return _transition_response(result)


@router.put("/{appointment_id}", response_model=TransitionResponse)
async def update_appointment(
    appointment_id: int,
    body: AppointmentUpdate,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> JSONResponse:
    result = await appointment_service.update_appointment(
        session, appointment_id, body, cache=cache, clinic_id=current_user.clinic_id
    )
    return _transition_response(result)
