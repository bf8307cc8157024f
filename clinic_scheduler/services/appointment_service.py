import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.core.civil_time import as_aware_utc, civil_date, civil_day_bounds, civil_time, utc_naive_now
from clinic_scheduler.core.db import invalidate_on_commit
from clinic_scheduler.core.errors import BookingConflictError, NotFoundError, PersistenceError
from clinic_scheduler.models.appointment import (
    Appointment,
    AppointmentChanges,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
)
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.practitioner import Practitioner
from clinic_scheduler.services import appointment_state as state
from clinic_scheduler.services.appointment_state import TransitionResult
from clinic_scheduler.services.slot_service import get_practitioner

logger = logging.getLogger(__name__)

MSG_SLOT_TAKEN = "Horário indisponível para este médico"
MSG_PATIENT_NOT_FOUND = "Paciente não encontrado"
MSG_PRACTITIONER_NOT_FOUND = "Médico não encontrado"
REQUIRED_FIELDS = ("patient_id", "practitioner_id", "scheduled_at", "appointment_price_in_cents")


def to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic(
        id=a.id,
        practitioner_id=a.practitioner_id,
        patient_id=a.patient_id,
        clinic_id=a.clinic_id,
        scheduled_at=as_aware_utc(a.scheduled_at),
        civil_date=civil_date(a.scheduled_at).isoformat(),
        civil_time=civil_time(a.scheduled_at),
        appointment_price_in_cents=a.appointment_price_in_cents,
        status=AppointmentStatus(a.status),
        created_at=as_aware_utc(a.created_at),
        updated_at=as_aware_utc(a.updated_at),
    )


async def _load(session: AsyncSession, appointment_id: int, clinic_id: int | None) -> Appointment | None:
    """The appointment, or None when missing or owned by another clinic."""
    appointment = await session.get(Appointment, appointment_id)
    if appointment is None or (clinic_id is not None and appointment.clinic_id != clinic_id):
        return None
    return appointment


async def _in_clinic(session: AsyncSession, model, record_id: int, clinic_id: int) -> bool:
    record = await session.get(model, record_id)
    return record is not None and record.clinic_id == clinic_id


async def is_slot_taken(
    session: AsyncSession,
    practitioner_id: int,
    scheduled_at: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    q = select(Appointment.id).where(
        Appointment.practitioner_id == practitioner_id,
        Appointment.scheduled_at == scheduled_at,
        Appointment.status != AppointmentStatus.CANCELED.value,
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q.limit(1))
    return result.first() is not None


async def create_appointment(
    session: AsyncSession,
    clinic_id: int,
    data: AppointmentCreate,
    cache: ViewCache | None = None,
) -> Appointment:
    """Book a new appointment as pending.

    The read check gives a friendly error; the partial unique index catches
    the concurrent booking that slips past it.
    """
    try:
        practitioner = await get_practitioner(session, data.practitioner_id, clinic_id=clinic_id)
        if not await _in_clinic(session, Patient, data.patient_id, clinic_id):
            raise NotFoundError(MSG_PATIENT_NOT_FOUND)
        if await is_slot_taken(session, data.practitioner_id, data.scheduled_at):
            raise BookingConflictError(MSG_SLOT_TAKEN)
        price = data.appointment_price_in_cents
        appointment = Appointment(
            practitioner_id=data.practitioner_id,
            patient_id=data.patient_id,
            clinic_id=clinic_id,
            scheduled_at=data.scheduled_at,
            appointment_price_in_cents=practitioner.appointment_price_in_cents if price is None else price,
            status=AppointmentStatus.PENDING.value,
        )
        session.add(appointment)
        await session.flush()
        await session.refresh(appointment)
    except IntegrityError as e:
        await session.rollback()
        raise BookingConflictError(MSG_SLOT_TAKEN) from e
    except SQLAlchemyError as e:
        logger.exception("Create appointment failed: %s", e)
        raise PersistenceError("Erro ao criar agendamento") from e
    invalidate_on_commit(session, cache, data.practitioner_id)
    logger.info(
        "Appointment %s booked for practitioner %s at %s",
        appointment.id,
        appointment.practitioner_id,
        appointment.scheduled_at,
    )
    return appointment


async def get_appointment(session: AsyncSession, appointment_id: int, clinic_id: int | None = None) -> Appointment:
    appointment = await _load(session, appointment_id, clinic_id)
    if not appointment:
        raise NotFoundError(state.MSG_NOT_FOUND)
    return appointment


async def list_appointments(
    session: AsyncSession,
    practitioner_id: int | None = None,
    clinic_id: int | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    status: AppointmentStatus | None = None,
    cache: ViewCache | None = None,
) -> list[AppointmentPublic]:
    """Appointments ordered by instant; date bounds are civil and inclusive."""
    cache_key = ("appointments", practitioner_id, clinic_id, from_date, to_date, status)
    cacheable = cache is not None and practitioner_id is not None
    generation = None
    if cacheable:
        cached = cache.get(cache_key)
        if cached is not None:
            return list(cached)
        generation = cache.generation(practitioner_id)

    q = select(Appointment).order_by(Appointment.scheduled_at, Appointment.id)
    if practitioner_id is not None:
        q = q.where(Appointment.practitioner_id == practitioner_id)
    if clinic_id is not None:
        q = q.where(Appointment.clinic_id == clinic_id)
    if from_date:
        q = q.where(Appointment.scheduled_at >= civil_day_bounds(from_date)[0])
    if to_date:
        q = q.where(Appointment.scheduled_at < civil_day_bounds(to_date)[1])
    if status is not None:
        q = q.where(Appointment.status == status.value)
    try:
        result = await session.execute(q)
    except SQLAlchemyError as e:
        logger.exception("List appointments failed: %s", e)
        raise PersistenceError("Erro ao listar agendamentos") from e
    rows = [to_public(a) for a in result.scalars().all()]
    if cacheable:
        cache.set(cache_key, tuple(rows), generation=generation)
    return rows


async def _set_status(
    session: AsyncSession,
    appointment_id: int,
    guard,
    new_status: AppointmentStatus,
    success_message: str,
    cache: ViewCache | None,
    clinic_id: int | None,
) -> TransitionResult:
    try:
        appointment = await _load(session, appointment_id, clinic_id)
        if not appointment:
            return TransitionResult.not_found()
        rejection = guard(AppointmentStatus(appointment.status))
        if rejection:
            return TransitionResult.rejected(rejection)
        previous = appointment.status
        appointment.status = new_status.value
        appointment.updated_at = utc_naive_now()
        session.add(appointment)
        await session.flush()
    except SQLAlchemyError as e:
        logger.exception("Status change of appointment %s failed: %s", appointment_id, e)
        raise PersistenceError("Erro ao atualizar status do agendamento") from e
    invalidate_on_commit(session, cache, appointment.practitioner_id)
    logger.info("Appointment %s: %s -> %s", appointment_id, previous, new_status.value)
    return TransitionResult.ok(success_message)


async def confirm_appointment(
    session: AsyncSession, appointment_id: int, cache: ViewCache | None = None, clinic_id: int | None = None
) -> TransitionResult:
    return await _set_status(
        session,
        appointment_id,
        state.check_confirm,
        AppointmentStatus.CONFIRMED,
        "Agendamento confirmado com sucesso!",
        cache,
        clinic_id,
    )


async def revert_to_pending(
    session: AsyncSession, appointment_id: int, cache: ViewCache | None = None, clinic_id: int | None = None
) -> TransitionResult:
    return await _set_status(
        session,
        appointment_id,
        state.check_revert,
        AppointmentStatus.PENDING,
        "Agendamento revertido para pendente com sucesso!",
        cache,
        clinic_id,
    )


async def cancel_appointment(
    session: AsyncSession, appointment_id: int, cache: ViewCache | None = None, clinic_id: int | None = None
) -> TransitionResult:
    return await _set_status(
        session,
        appointment_id,
        state.check_cancel,
        AppointmentStatus.CANCELED,
        "Agendamento cancelado com sucesso! O horário está novamente disponível.",
        cache,
        clinic_id,
    )


async def delete_appointment(
    session: AsyncSession, appointment_id: int, cache: ViewCache | None = None, clinic_id: int | None = None
) -> TransitionResult:
    try:
        appointment = await _load(session, appointment_id, clinic_id)
        if not appointment:
            return TransitionResult.not_found()
        rejection = state.check_delete(AppointmentStatus(appointment.status))
        if rejection:
            return TransitionResult.rejected(rejection)
        practitioner_id = appointment.practitioner_id
        await session.delete(appointment)
        await session.flush()
    except SQLAlchemyError as e:
        logger.exception("Delete appointment %s failed: %s", appointment_id, e)
        raise PersistenceError("Erro ao excluir agendamento") from e
    invalidate_on_commit(session, cache, practitioner_id)
    logger.info("Appointment %s deleted", appointment_id)
    return TransitionResult.ok("Agendamento excluído permanentemente!")


async def _apply_changes(
    session: AsyncSession,
    appointment: Appointment,
    fields: dict[str, Any],
    new_status: AppointmentStatus | None,
    success_message: str,
    cache: ViewCache | None,
) -> TransitionResult:
    for name in REQUIRED_FIELDS:
        if name in fields and fields[name] is None:
            return TransitionResult.rejected(f"O campo {name} não pode ser removido")

    clinic_id = appointment.clinic_id
    if "patient_id" in fields and not await _in_clinic(session, Patient, fields["patient_id"], clinic_id):
        return TransitionResult.not_found(MSG_PATIENT_NOT_FOUND)
    if "practitioner_id" in fields and not await _in_clinic(
        session, Practitioner, fields["practitioner_id"], clinic_id
    ):
        return TransitionResult.not_found(MSG_PRACTITIONER_NOT_FOUND)

    appointment_id = appointment.id
    previous_practitioner = appointment.practitioner_id
    target_practitioner = fields.get("practitioner_id", appointment.practitioner_id)
    target_instant = fields.get("scheduled_at", appointment.scheduled_at)
    moves = target_practitioner != appointment.practitioner_id or target_instant != appointment.scheduled_at
    stays_active = (new_status or AppointmentStatus(appointment.status)) is not AppointmentStatus.CANCELED
    if moves and stays_active and await is_slot_taken(
        session, target_practitioner, target_instant, exclude_appointment_id=appointment_id
    ):
        return TransitionResult.rejected(MSG_SLOT_TAKEN, error=state.BOOKING_CONFLICT)

    for name, value in fields.items():
        setattr(appointment, name, value)
    if new_status is not None:
        appointment.status = new_status.value
    appointment.updated_at = utc_naive_now()
    session.add(appointment)
    try:
        await session.flush()
    except IntegrityError:
        # Lost the race to a concurrent booking; the session must not be reused for reads
        await session.rollback()
        logger.warning("Appointment %s edit hit the slot uniqueness constraint", appointment_id)
        return TransitionResult.rejected(MSG_SLOT_TAKEN, error=state.BOOKING_CONFLICT)

    invalidate_on_commit(session, cache, previous_practitioner, target_practitioner)
    logger.info("Appointment %s updated: %s", appointment_id, sorted(fields) + (["status"] if new_status else []))
    return TransitionResult.ok(success_message)


async def edit_appointment(
    session: AsyncSession,
    appointment_id: int,
    changes: AppointmentChanges,
    cache: ViewCache | None = None,
    clinic_id: int | None = None,
) -> TransitionResult:
    """Generic field edit, allowed only while the booking is pending."""
    try:
        appointment = await _load(session, appointment_id, clinic_id)
        if not appointment:
            return TransitionResult.not_found()
        rejection = state.check_edit(AppointmentStatus(appointment.status))
        if rejection:
            return TransitionResult.rejected(rejection)
        return await _apply_changes(
            session, appointment, changes.provided(), None, "Agendamento editado com sucesso!", cache
        )
    except SQLAlchemyError as e:
        logger.exception("Edit appointment %s failed: %s", appointment_id, e)
        raise PersistenceError("Erro ao editar agendamento") from e


async def update_appointment(
    session: AsyncSession,
    appointment_id: int,
    update: AppointmentUpdate,
    cache: ViewCache | None = None,
    clinic_id: int | None = None,
) -> TransitionResult:
    """Status-aware update used by the management UI."""
    try:
        appointment = await _load(session, appointment_id, clinic_id)
        if not appointment:
            return TransitionResult.not_found()
        rejection = state.check_update(AppointmentStatus(appointment.status), update.status)
        if rejection:
            return TransitionResult.rejected(rejection)
        return await _apply_changes(
            session, appointment, update.provided(), update.status, "Agendamento atualizado com sucesso!", cache
        )
    except SQLAlchemyError as e:
        logger.exception("Update appointment %s failed: %s", appointment_id, e)
        raise PersistenceError("Erro ao atualizar agendamento") from e
