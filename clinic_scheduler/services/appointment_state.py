"""Appointment lifecycle rules.

pending -> confirmed (confirm), confirmed -> pending (revert),
pending|confirmed -> canceled (cancel), canceled -> removed (delete).
Canceled is terminal for status. Generic field edits are only allowed while
pending; the status-aware update path also accepts confirmed bookings as long
as the payload keeps them confirmed or reverts them to pending.
"""
from dataclasses import dataclass

from clinic_scheduler.models.appointment import AppointmentStatus

NOT_FOUND = "not_found"
INVALID_TRANSITION = "invalid_transition"
BOOKING_CONFLICT = "booking_conflict"

MSG_NOT_FOUND = "Agendamento não encontrado"
MSG_ALREADY_CANCELED = "Agendamento já está cancelado"
MSG_CONFIRM_CANCELED = "Não é possível confirmar um agendamento cancelado"
MSG_REVERT_ONLY_CONFIRMED = "Apenas agendamentos confirmados podem ser revertidos para pendente"
MSG_DELETE_ONLY_CANCELED = "Apenas agendamentos cancelados podem ser excluídos"
MSG_EDIT_CANCELED = "Não é possível editar um agendamento cancelado"
MSG_EDIT_CONFIRMED = "Não é possível editar um agendamento confirmado"


@dataclass(frozen=True)
class TransitionResult:
    success: bool
    message: str
    error: str | None = None

    @classmethod
    def ok(cls, message: str) -> "TransitionResult":
        return cls(success=True, message=message)

    @classmethod
    def not_found(cls, message: str = MSG_NOT_FOUND) -> "TransitionResult":
        return cls(success=False, message=message, error=NOT_FOUND)

    @classmethod
    def rejected(cls, message: str, error: str = INVALID_TRANSITION) -> "TransitionResult":
        return cls(success=False, message=message, error=error)


def check_confirm(current: AppointmentStatus) -> str | None:
    if current is AppointmentStatus.CANCELED:
        return MSG_CONFIRM_CANCELED
    return None


def check_revert(current: AppointmentStatus) -> str | None:
    if current is not AppointmentStatus.CONFIRMED:
        return MSG_REVERT_ONLY_CONFIRMED
    return None


def check_cancel(current: AppointmentStatus) -> str | None:
    if current is AppointmentStatus.CANCELED:
        return MSG_ALREADY_CANCELED
    return None


def check_delete(current: AppointmentStatus) -> str | None:
    if current is not AppointmentStatus.CANCELED:
        return MSG_DELETE_ONLY_CANCELED
    return None


def check_edit(current: AppointmentStatus) -> str | None:
    if current is AppointmentStatus.CANCELED:
        return MSG_EDIT_CANCELED
    if current is AppointmentStatus.CONFIRMED:
        return MSG_EDIT_CONFIRMED
    return None


def check_update(current: AppointmentStatus, requested: AppointmentStatus | None) -> str | None:
    if current is AppointmentStatus.CANCELED:
        return MSG_EDIT_CANCELED
    if current is AppointmentStatus.CONFIRMED and requested not in (
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.PENDING,
    ):
        return MSG_EDIT_CONFIRMED
    return None
