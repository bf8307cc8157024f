import os
from datetime import date

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")

from clinic_scheduler.core.civil_time import to_instant  # noqa: E402
from clinic_scheduler.core.db import build_engine, build_session_maker, init_db  # noqa: E402
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from clinic_scheduler.models.patient import Patient  # noqa: E402
from clinic_scheduler.models.practitioner import Practitioner  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine():
    engine = build_engine("sqlite:///:memory:")
    await init_db(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def practitioner(session) -> Practitioner:
    """Mon-Fri, 08:00-17:00."""
    p = Practitioner(
        clinic_id=1,
        name="Dra. Ana Souza",
        available_from_weekday=1,
        available_to_weekday=5,
        available_from_time="08:00:00",
        available_to_time="17:00:00",
        appointment_price_in_cents=15000,
    )
    session.add(p)
    await session.commit()
    return p


@pytest.fixture
async def patient(session) -> Patient:
    p = Patient(clinic_id=1, name="João Lima", email="joao@example.com")
    session.add(p)
    await session.commit()
    return p


@pytest.fixture
def make_appointment(session, practitioner, patient):
    async def _make(
        day: date,
        time_of_day: str,
        status: AppointmentStatus = AppointmentStatus.PENDING,
        practitioner_id: int | None = None,
    ) -> Appointment:
        appointment = Appointment(
            practitioner_id=practitioner_id or practitioner.id,
            patient_id=patient.id,
            clinic_id=1,
            scheduled_at=to_instant(day, time_of_day),
            appointment_price_in_cents=15000,
            status=status.value,
        )
        session.add(appointment)
        await session.commit()
        return appointment

    return _make
