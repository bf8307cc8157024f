from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import ClinicUser, get_current_user, get_session, get_view_cache
from clinic_scheduler.api.schemas.practitioner import PractitionerDeleted, PriceResponse
from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.models.patient import PatientCreate, PatientPublic
from clinic_scheduler.models.practitioner import PractitionerPublic, PractitionerUpsert
from clinic_scheduler.services import practitioner_service
from clinic_scheduler.services.slot_service import get_practitioner

router = APIRouter(tags=["practitioners"])


@router.get("/practitioners", response_model=list[PractitionerPublic])
async def list_practitioners(
    session: AsyncSession = Depends(get_session),
    current_user: ClinicUser = Depends(get_current_user),
):
    return await practitioner_service.list_practitioners(session, current_user.clinic_id)


@router.post("/practitioners", response_model=PractitionerPublic, status_code=status.HTTP_201_CREATED)
async def create_practitioner(
    body: PractitionerUpsert,
    session: AsyncSession = Depends(get_session),
    current_user: ClinicUser = Depends(get_current_user),
):
    return await practitioner_service.create_practitioner(session, current_user.clinic_id, body)


@router.get("/practitioners/{practitioner_id}", response_model=PractitionerPublic)
async def read_practitioner(
    practitioner_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: ClinicUser = Depends(get_current_user),
):
    return await get_practitioner(session, practitioner_id, clinic_id=current_user.clinic_id)


@router.put("/practitioners/{practitioner_id}", response_model=PractitionerPublic)
async def update_practitioner(
    practitioner_id: int,
    body: PractitionerUpsert,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
):
    return await practitioner_service.update_practitioner(
        session, practitioner_id, body, cache=cache, clinic_id=current_user.clinic_id
    )


@router.delete("/practitioners/{practitioner_id}", response_model=PractitionerDeleted)
async def delete_practitioner(
    practitioner_id: int,
    session: AsyncSession = Depends(get_session),
    cache: ViewCache = Depends(get_view_cache),
    current_user: ClinicUser = Depends(get_current_user),
) -> PractitionerDeleted:
    removed = await practitioner_service.delete_practitioner(
        session, practitioner_id, current_user.clinic_id, cache=cache
    )
    return PractitionerDeleted(success=True, deleted_appointments=removed)


@router.get("/practitioners/{practitioner_id}/price", response_model=PriceResponse)
async def read_practitioner_price(
    practitioner_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: ClinicUser = Depends(get_current_user),
) -> PriceResponse:
    price = await practitioner_service.get_practitioner_price(
        session, practitioner_id, clinic_id=current_user.clinic_id
    )
    return PriceResponse(practitioner_id=practitioner_id, appointment_price_in_cents=price)


@router.get("/patients", response_model=list[PatientPublic])
async def list_patients(
    session: AsyncSession = Depends(get_session),
    current_user: ClinicUser = Depends(get_current_user),
):
    return await practitioner_service.list_patients(session, current_user.clinic_id)


@router.post("/patients", response_model=PatientPublic, status_code=status.HTTP_201_CREATED)
async def create_patient(
    body: PatientCreate,
    session: AsyncSession = Depends(get_session),
    current_user: ClinicUser = Depends(get_current_user),
):
    return await practitioner_service.create_patient(session, current_user.clinic_id, body)


@router.put("/patients/{patient_id}", response_model=PatientPublic)
async def update_patient(
    patient_id: int,
    body: PatientCreate,
    session: AsyncSession = Depends(get_session),
    current_user: ClinicUser = Depends(get_current_user),
):
    return await practitioner_service.update_patient(session, patient_id, current_user.clinic_id, body)
