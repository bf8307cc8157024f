from fastapi import status


class SchedulingError(Exception):
    """Base for errors that map onto an HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransitionError(SchedulingError):
    status_code = status.HTTP_409_CONFLICT


class BookingConflictError(InvalidTransitionError):
    """Another non-canceled appointment already holds the slot."""


class DuplicateRecordError(SchedulingError):
    """A clinic already has a record with the same natural key (patient CPF)."""

    status_code = status.HTTP_409_CONFLICT


class ConfigurationMissingError(SchedulingError):
    """Practitioner has no working hours configured."""

    status_code = 422


class PersistenceError(SchedulingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
