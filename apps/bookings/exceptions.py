"""Errors raised by the booking state machine."""

from __future__ import annotations

from typing import TYPE_CHECKING

from shared.domain.exceptions import DomainError, NotFound

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .domain.availability import Admission


class AdmissionConflict(DomainError):
    """Requested slots are not available."""

    code = "admission_conflict"

    def __init__(self, admission: "Admission"):
        super().__init__(admission.message)
        self.admission = admission

    @property
    def reason(self) -> str:
        return self.admission.reason.value if self.admission.reason else ""


class InvalidTransition(DomainError):
    """Booking cannot move to the requested status."""

    code = "invalid_transition"


class TransitionForbidden(DomainError):
    """Actor is not allowed to perform this action on the booking."""

    code = "forbidden"


class BookingNotFound(NotFound):
    """Booking does not exist."""

    code = "booking_not_found"
