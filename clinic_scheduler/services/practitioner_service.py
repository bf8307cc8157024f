import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.core.db import invalidate_on_commit
from clinic_scheduler.core.errors import DuplicateRecordError, NotFoundError, PersistenceError
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.patient import Patient, PatientCreate
from clinic_scheduler.models.practitioner import Practitioner, PractitionerUpsert
from clinic_scheduler.services.slot_service import get_practitioner

logger = logging.getLogger(__name__)

MSG_DUPLICATE_CPF = "Já existe um paciente cadastrado com este CPF nesta clínica."


async def create_practitioner(session: AsyncSession, clinic_id: int, data: PractitionerUpsert) -> Practitioner:
    practitioner = Practitioner(clinic_id=clinic_id, **data.model_dump())
    try:
        session.add(practitioner)
        await session.flush()
        await session.refresh(practitioner)
    except SQLAlchemyError as e:
        logger.exception("Create practitioner failed: %s", e)
        raise PersistenceError("Erro ao cadastrar médico") from e
    return practitioner


async def list_practitioners(session: AsyncSession, clinic_id: int) -> list[Practitioner]:
    try:
        result = await session.execute(
            select(Practitioner).where(Practitioner.clinic_id == clinic_id).order_by(Practitioner.name)
        )
    except SQLAlchemyError as e:
        logger.exception("List practitioners failed: %s", e)
        raise PersistenceError("Erro ao listar médicos") from e
    return list(result.scalars().all())


async def update_practitioner(
    session: AsyncSession,
    practitioner_id: int,
    data: PractitionerUpsert,
    cache: ViewCache | None = None,
    clinic_id: int | None = None,
) -> Practitioner:
    """Replace name, working hours and price. Cached availability is dropped
    on commit because the working window may have moved."""
    practitioner = await get_practitioner(session, practitioner_id, clinic_id=clinic_id)
    for name, value in data.model_dump().items():
        setattr(practitioner, name, value)
    try:
        session.add(practitioner)
        await session.flush()
    except SQLAlchemyError as e:
        logger.exception("Update practitioner %s failed: %s", practitioner_id, e)
        raise PersistenceError("Erro ao atualizar médico") from e
    invalidate_on_commit(session, cache, practitioner_id)
    logger.info(
        "Practitioner %s works weekdays %s-%s, %s-%s",
        practitioner_id,
        practitioner.available_from_weekday,
        practitioner.available_to_weekday,
        practitioner.available_from_time,
        practitioner.available_to_time,
    )
    return practitioner


async def delete_practitioner(
    session: AsyncSession,
    practitioner_id: int,
    clinic_id: int,
    cache: ViewCache | None = None,
) -> int:
    """Remove a practitioner and every appointment booked with them.

    Returns the number of appointments removed.
    """
    practitioner = await get_practitioner(session, practitioner_id, clinic_id=clinic_id)
    try:
        result = await session.execute(delete(Appointment).where(Appointment.practitioner_id == practitioner_id))
        await session.delete(practitioner)
        await session.flush()
    except SQLAlchemyError as e:
        logger.exception("Delete practitioner %s failed: %s", practitioner_id, e)
        raise PersistenceError("Erro ao deletar médico") from e
    invalidate_on_commit(session, cache, practitioner_id)
    logger.info("Practitioner %s deleted with %d appointment(s)", practitioner_id, result.rowcount)
    return result.rowcount


async def get_practitioner_price(session: AsyncSession, practitioner_id: int, clinic_id: int | None = None) -> int:
    practitioner = await get_practitioner(session, practitioner_id, clinic_id=clinic_id)
    return practitioner.appointment_price_in_cents


async def _ensure_unique_cpf(
    session: AsyncSession, clinic_id: int, cpf: str | None, patient_id: int | None = None
) -> None:
    if not cpf:
        return
    q = select(Patient.id).where(Patient.clinic_id == clinic_id, Patient.cpf == cpf)
    if patient_id is not None:
        q = q.where(Patient.id != patient_id)
    result = await session.execute(q.limit(1))
    if result.first() is not None:
        raise DuplicateRecordError(MSG_DUPLICATE_CPF)


async def list_patients(session: AsyncSession, clinic_id: int) -> list[Patient]:
    try:
        result = await session.execute(select(Patient).where(Patient.clinic_id == clinic_id).order_by(Patient.name))
    except SQLAlchemyError as e:
        logger.exception("List patients failed: %s", e)
        raise PersistenceError("Erro ao listar pacientes") from e
    return list(result.scalars().all())


async def create_patient(session: AsyncSession, clinic_id: int, data: PatientCreate) -> Patient:
    try:
        await _ensure_unique_cpf(session, clinic_id, data.cpf)
        patient = Patient(clinic_id=clinic_id, **data.model_dump())
        session.add(patient)
        await session.flush()
        await session.refresh(patient)
    except SQLAlchemyError as e:
        logger.exception("Create patient failed: %s", e)
        raise PersistenceError("Erro ao cadastrar paciente") from e
    return patient


async def update_patient(session: AsyncSession, patient_id: int, clinic_id: int, data: PatientCreate) -> Patient:
    try:
        patient = await session.get(Patient, patient_id)
        if patient is None or patient.clinic_id != clinic_id:
            raise NotFoundError("Paciente não encontrado")
        await _ensure_unique_cpf(session, clinic_id, data.cpf, patient_id=patient_id)
        for name, value in data.model_dump().items():
            setattr(patient, name, value)
        session.add(patient)
        await session.flush()
    except SQLAlchemyError as e:
        logger.exception("Update patient %s failed: %s", patient_id, e)
        raise PersistenceError("Erro ao atualizar paciente") from e
    return patient
