"""Per-session booking draft shared by the wizard steps."""

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from blyss_booking.schemas.booking_schema import PaymentMethod, PaymentType, Slot


@dataclass(frozen=True)
class WizardSelection:
    """
    Immutable draft of one booking attempt.

    Every change produces a new value through the ``with_*`` helpers,
    so a half-applied update can never leave the draft inconsistent.
    The slot is a dependent value of the date: choosing a date always
    clears it.
    """
    prestation_id: Optional[int] = None
    selected_date: Optional[date] = None
    slot_time: Optional[str] = None
    slot_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None

    def with_prestation(self, prestation_id: int) -> "WizardSelection":
        return replace(self, prestation_id=prestation_id)

    def with_date(self, day: date) -> "WizardSelection":
        return replace(self, selected_date=day, slot_time=None, slot_id=None)

    def with_slot(self, slot: Slot) -> "WizardSelection":
        return replace(self, slot_time=slot.time, slot_id=slot.id)

    def with_payment_method(self, method: PaymentMethod) -> "WizardSelection":
        return replace(self, payment_method=method)

    @property
    def has_date_and_slot(self) -> bool:
        return self.selected_date is not None and self.slot_time is not None


@dataclass(frozen=True)
class ConfirmedBooking:
    """What the wizard keeps once the reservation exists."""
    reservation_id: int
    deposit_percentage: int
    deposit_amount: float
    payment_type: Optional[PaymentType] = None
    client_secret: Optional[str] = None
    amount_due: Optional[float] = None

    @property
    def has_authorization(self) -> bool:
        return self.client_secret is not None


def payment_type_for(deposit_percentage: int) -> PaymentType:
    """Derive what an online payment covers from the deposit percentage.

    100 means full prepayment is mandatory. A professional asking no
    deposit (0) is paid in full when the client still chooses online.
    """
    if deposit_percentage == 100 or deposit_percentage == 0:
        return PaymentType.FULL
    return PaymentType.DEPOSIT
