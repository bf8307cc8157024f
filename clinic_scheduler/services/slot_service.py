import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.cache import ViewCache
from clinic_scheduler.core.civil_time import (
    civil_date,
    civil_day_bounds,
    civil_time,
    normalize_time,
    weekday_index,
)
from clinic_scheduler.core.config import ALLOWED_SLOT_STEPS, settings
from clinic_scheduler.core.errors import ConfigurationMissingError, NotFoundError, PersistenceError
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.practitioner import Practitioner

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class Slot:
    value: str  # HH:MM:SS
    available: bool = True

    @property
    def label(self) -> str:
        return self.value[:5]


def generate_time_slots(step_minutes: int | None = None) -> list[str]:
    """Every slot start of a civil day at a fixed step, ascending."""
    step = step_minutes or settings.slot_step_minutes
    if step not in ALLOWED_SLOT_STEPS:
        raise ValueError(f"Slot step must be one of {ALLOWED_SLOT_STEPS}, got {step}")
    return [f"{m // 60:02d}:{m % 60:02d}:00" for m in range(0, MINUTES_PER_DAY, step)]


def is_working_day(day: date, from_weekday: int, to_weekday: int) -> bool:
    # No wraparound: a Friday..Monday range (5 > 1) matches no day at all
    return from_weekday <= weekday_index(day) <= to_weekday


def filter_by_window(slots: Iterable[str], time_open: str, time_close: str) -> list[str]:
    """Keep slots inside [time_open, time_close]; fixed-width strings compare correctly."""
    lo, hi = normalize_time(time_open), normalize_time(time_close)
    return [s for s in slots if lo <= s <= hi]


def resolve_conflicts(
    slot_values: Iterable[str], appointments: Iterable[Appointment], target_date: date
) -> list[Slot]:
    occupied = {
        civil_time(a.scheduled_at)
        for a in appointments
        if a.status != AppointmentStatus.CANCELED.value and civil_date(a.scheduled_at) == target_date
    }
    return [Slot(value=v, available=v not in occupied) for v in slot_values]


def reconcile_edited_slot(slots: list[Slot], edited_time: str) -> list[Slot]:
    """Report the edited booking's own slot as available, adding it if the
    working window no longer contains it."""
    if any(s.value == edited_time for s in slots):
        return [replace(s, available=True) if s.value == edited_time else s for s in slots]
    return sorted([*slots, Slot(value=edited_time, available=True)], key=lambda s: s.value)


def build_day_slots(
    practitioner: Practitioner,
    target_date: date,
    appointments: Iterable[Appointment],
    step_minutes: int | None = None,
) -> list[Slot]:
    """Weekday gate, time gate and conflict marking for one practitioner/day."""
    if not practitioner.has_working_hours:
        raise ConfigurationMissingError("Horários de disponibilidade do médico não configurados")
    if not is_working_day(target_date, practitioner.available_from_weekday, practitioner.available_to_weekday):
        return []
    in_window = filter_by_window(
        generate_time_slots(step_minutes),
        practitioner.available_from_time,
        practitioner.available_to_time,
    )
    return resolve_conflicts(in_window, appointments, target_date)


async def get_practitioner(
    session: AsyncSession, practitioner_id: int, clinic_id: int | None = None
) -> Practitioner:
    """Another clinic's practitioner is reported as missing, never as forbidden."""
    q = select(Practitioner).where(Practitioner.id == practitioner_id)
    if clinic_id is not None:
        q = q.where(Practitioner.clinic_id == clinic_id)
    result = await session.execute(q)
    practitioner = result.scalar_one_or_none()
    if not practitioner:
        raise NotFoundError("Médico não encontrado")
    return practitioner


async def get_active_appointments_on_date(
    session: AsyncSession,
    practitioner_id: int,
    target_date: date,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    start, end = civil_day_bounds(target_date)
    q = select(Appointment).where(
        Appointment.practitioner_id == practitioner_id,
        Appointment.status != AppointmentStatus.CANCELED.value,
        Appointment.scheduled_at >= start,
        Appointment.scheduled_at < end,
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q)
    return list(result.scalars().all())


async def get_available_slots_for_date(
    session: AsyncSession,
    practitioner_id: int,
    target_date: date,
    edited_appointment_id: int | None = None,
    cache: ViewCache | None = None,
    clinic_id: int | None = None,
) -> list[Slot]:
    """Slots for a practitioner's civil day, each marked available or taken.

    With ``edited_appointment_id`` the booking being edited never blocks its
    own slot, so re-opening an unchanged booking is idempotent. On a working
    day its slot is reported even when the time window leaves no grid slot.
    """
    cache_key = ("slots", practitioner_id, target_date, edited_appointment_id)
    generation = None
    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not None:
            return list(cached)
        generation = cache.generation(practitioner_id)

    try:
        practitioner = await get_practitioner(session, practitioner_id, clinic_id=clinic_id)
        appointments = await get_active_appointments_on_date(
            session, practitioner_id, target_date, exclude_appointment_id=edited_appointment_id
        )
        slots = build_day_slots(practitioner, target_date, appointments)
        working_day = is_working_day(
            target_date, practitioner.available_from_weekday, practitioner.available_to_weekday
        )
        if working_day and edited_appointment_id is not None:
            edited = await session.get(Appointment, edited_appointment_id)
            if edited is None:
                logger.warning("Edited appointment %s not found; skipping reconciliation", edited_appointment_id)
            elif edited.practitioner_id == practitioner_id and civil_date(edited.scheduled_at) == target_date:
                slots = reconcile_edited_slot(slots, civil_time(edited.scheduled_at))
    except SQLAlchemyError as e:
        logger.exception("Availability query failed for practitioner %s: %s", practitioner_id, e)
        raise PersistenceError("Erro ao consultar horários disponíveis") from e

    logger.debug(
        "Practitioner %s on %s: %d slot(s), %d available",
        practitioner_id,
        target_date,
        len(slots),
        sum(1 for s in slots if s.available),
    )
    if cache is not None:
        cache.set(cache_key, tuple(slots), generation=generation)
    return slots
