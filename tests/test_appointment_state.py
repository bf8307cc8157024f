import pytest

from clinic_scheduler.models.appointment import AppointmentStatus
from clinic_scheduler.services import appointment_state as state

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED
CANCELED = AppointmentStatus.CANCELED


@pytest.mark.parametrize(
    ("guard", "current", "expected"),
    [
        (state.check_confirm, PENDING, None),
        (state.check_confirm, CONFIRMED, None),
        (state.check_confirm, CANCELED, state.MSG_CONFIRM_CANCELED),
        (state.check_revert, CONFIRMED, None),
        (state.check_revert, PENDING, state.MSG_REVERT_ONLY_CONFIRMED),
        (state.check_revert, CANCELED, state.MSG_REVERT_ONLY_CONFIRMED),
        (state.check_cancel, PENDING, None),
        (state.check_cancel, CONFIRMED, None),
        (state.check_cancel, CANCELED, "Agendamento já está cancelado"),
        (state.check_delete, CANCELED, None),
        (state.check_delete, PENDING, state.MSG_DELETE_ONLY_CANCELED),
        (state.check_delete, CONFIRMED, state.MSG_DELETE_ONLY_CANCELED),
        (state.check_edit, PENDING, None),
        (state.check_edit, CONFIRMED, "Não é possível editar um agendamento confirmado"),
        (state.check_edit, CANCELED, "Não é possível editar um agendamento cancelado"),
    ],
)
def test_transition_guards(guard, current: AppointmentStatus, expected: str | None) -> None:
    assert guard(current) == expected


@pytest.mark.parametrize(
    ("current", "requested", "expected"),
    [
        (PENDING, None, None),
        (PENDING, CONFIRMED, None),
        (CONFIRMED, CONFIRMED, None),
        (CONFIRMED, PENDING, None),
        (CONFIRMED, None, state.MSG_EDIT_CONFIRMED),
        (CONFIRMED, CANCELED, state.MSG_EDIT_CONFIRMED),
        (CANCELED, PENDING, state.MSG_EDIT_CANCELED),
    ],
)
def test_status_aware_update_guard(current, requested, expected) -> None:
    assert state.check_update(current, requested) == expected


def test_result_constructors() -> None:
    assert state.TransitionResult.ok("feito") == state.TransitionResult(True, "feito", None)
    assert state.TransitionResult.not_found().error == state.NOT_FOUND
    assert state.TransitionResult.rejected("não").error == state.INVALID_TRANSITION
