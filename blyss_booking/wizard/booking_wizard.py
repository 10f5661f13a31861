"""
Booking wizard: the controller taking a client from prestation choice to a
confirmed (and optionally paid) reservation.

Owns the current step and the immutable selection draft, gates "Next" on
per-step validity, calls the catalog, availability, reservation and
payment collaborators at the right transitions, and decides the UI
consequence of every failure.
"""

import asyncio
import uuid
from collections import Counter
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Callable, Iterator, Optional, Union

from blyss_booking.config import WizardConfig, settings
from blyss_booking.gateways.availability import (
    AvailabilityGateway,
    day_query_key,
    month_query_key,
)
from blyss_booking.gateways.catalog import CatalogGateway
from blyss_booking.gateways.http_client import GENERIC_ERROR_MESSAGE
from blyss_booking.gateways.payment import (
    PaymentConfirmation,
    PaymentOutcome,
    PaymentSessionAdapter,
)
from blyss_booking.gateways.reservation import ReservationGateway
from blyss_booking.gateways.results import Failure, FailureKind
from blyss_booking.logging_context import get_session_logger, set_session_id
from blyss_booking.schemas.booking_schema import (
    PaymentAuthorizationRequest,
    PaymentMethod,
    Prestation,
    Professional,
    ReservationRequest,
    Slot,
)
from blyss_booking.schemas.wizard_schema import (
    ConfirmedBooking,
    WizardSelection,
    payment_type_for,
)
from blyss_booking.wizard.calendar import CalendarPicker, MonthGrid, is_selectable
from blyss_booking.wizard.state_machine import (
    WizardStateMachine,
    WizardStep,
    WizardTrigger,
    is_step_valid,
)
from blyss_booking.wizard.views import StepView, render_step

logger = get_session_logger(__name__)

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class NavigationTarget(str, Enum):
    """Where the host application should go when the wizard hands control back."""
    EXIT = "exit"
    REAUTHENTICATE = "reauthenticate"


def booking_window(
    day: date, slot_time: str, duration_minutes: int
) -> tuple[datetime, datetime]:
    """Start and end of an appointment; end = start + prestation duration."""
    start = datetime.combine(day, time.fromisoformat(slot_time))
    return start, start + timedelta(minutes=duration_minutes)


class BookingWizard:
    """
    One booking session for one professional.

    Every public coroutine is safe to call while another is pending: results
    that arrive after their input changed, or after ``teardown``, are
    dropped without being applied or reported.
    """

    def __init__(
        self,
        pro_id: int,
        *,
        catalog: CatalogGateway,
        availability: AvailabilityGateway,
        reservations: ReservationGateway,
        payments: PaymentSessionAdapter,
        config: Optional[WizardConfig] = None,
        today: Callable[[], date] = date.today,
        on_navigate: Optional[Callable[[NavigationTarget], None]] = None,
    ) -> None:
        self.pro_id = pro_id
        self.session_id = f"WIZ-{uuid.uuid4().hex[:8]}"
        self._config = config or settings.wizard
        self._today = today
        self._on_navigate = on_navigate

        self._catalog = catalog
        self._reservations = reservations
        self._payments = payments
        self._months = availability.month_query(max_entries=self._config.month_cache_size)
        self._days = availability.day_query()

        self._idempotency_key = uuid.uuid4().hex if self._config.use_idempotency_key else None
        self._machine = WizardStateMachine()
        self._selection = WizardSelection()
        self._picker = CalendarPicker.starting_at(today())
        self._professional: Optional[Professional] = None
        self._prestations: list[Prestation] = []
        self._available_dates: frozenset[date] = frozenset()
        self._slots: list[Slot] = []
        self._booking: Optional[ConfirmedBooking] = None
        self._redirect_url: Optional[str] = None
        self._error: Optional[str] = None
        self._navigation: Optional[NavigationTarget] = None
        self._pending: Counter = Counter()
        self._closed = False
        set_session_id(self.session_id)

    # ------------------------------------------------------------------ #
    # Read-only state
    # ------------------------------------------------------------------ #

    @property
    def step(self) -> WizardStep:
        return self._machine.current_step

    @property
    def selection(self) -> WizardSelection:
        return self._selection

    @property
    def professional(self) -> Optional[Professional]:
        return self._professional

    @property
    def prestations(self) -> list[Prestation]:
        """Selectable prestations: inactive ones are never offered."""
        return [p for p in self._prestations if p.active]

    @property
    def selected_prestation(self) -> Optional[Prestation]:
        for prestation in self._prestations:
            if prestation.id == self._selection.prestation_id:
                return prestation
        return None

    @property
    def available_dates(self) -> frozenset[date]:
        return self._available_dates

    @property
    def slots(self) -> list[Slot]:
        return list(self._slots)

    @property
    def calendar(self) -> MonthGrid:
        return self._picker.grid(
            self._available_dates, self._today(), self._config.first_weekday
        )

    @property
    def displayed_month(self) -> str:
        return self._picker.year_month

    @property
    def booking(self) -> Optional[ConfirmedBooking]:
        return self._booking

    @property
    def redirect_url(self) -> Optional[str]:
        return self._redirect_url

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def navigation(self) -> Optional[NavigationTarget]:
        return self._navigation

    @property
    def currency_symbol(self) -> str:
        return self._config.currency_symbol

    @property
    def is_busy(self) -> bool:
        return any(count > 0 for count in self._pending.values())

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def can_go_next(self) -> bool:
        if self._closed or self.is_busy or self.step >= WizardStep.PAYMENT:
            return False
        return is_step_valid(self.step, self._selection)

    def render(self) -> StepView:
        return render_step(self)

    def get_step_trace(self) -> list[int]:
        """Step numbers visited so far, in order."""
        return self._machine.get_step_trace()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def enter(self) -> bool:
        """Load the professional and the prestation catalog once."""
        set_session_id(self.session_id)
        self._months.invalidate()
        self._days.invalidate()
        with self._busy("catalog"):
            pro_result, prestations_result = await asyncio.gather(
                self._catalog.get_professional(self.pro_id),
                self._catalog.get_prestations(self.pro_id),
            )
        if self._closed:
            return False
        for result in (pro_result, prestations_result):
            if not result.ok:
                self._handle_failure(result, WizardStep.SELECT_PRESTATION)
                return False

        self._professional = pro_result.value
        self._prestations = prestations_result.value
        logger.info(
            "Booking session %s opened for pro %s (%d active prestations)",
            self.session_id, self.pro_id, len(self.prestations),
        )
        return True

    def teardown(self) -> None:
        """Stop applying any in-flight result. Network calls are left to finish."""
        if self._closed:
            return
        self._closed = True
        self._months.cancel()
        self._days.cancel()
        logger.debug("Booking session %s closed", self.session_id)

    # ------------------------------------------------------------------ #
    # Navigation
    # ------------------------------------------------------------------ #

    async def next(self) -> WizardStep:
        """Advance if the current step is valid; on the summary, confirm the booking."""
        if not self.can_go_next:
            return self.step
        if self.step == WizardStep.SUMMARY:
            await self.confirm_booking()
            return self.step

        self._apply(WizardTrigger.NEXT)
        if self.step == WizardStep.SELECT_DATE_TIME:
            await self._load_month()
        return self.step

    async def back(self) -> WizardStep:
        """Go one step back; from the first step, leave the wizard."""
        if self._closed:
            return self.step
        if self.step == WizardStep.SELECT_PRESTATION:
            self._navigate(NavigationTarget.EXIT)
            self.teardown()
            return self.step

        self._error = None
        self._apply(WizardTrigger.BACK)
        if self.step == WizardStep.SELECT_DATE_TIME:
            await self._load_month()
        return self.step

    # ------------------------------------------------------------------ #
    # Step 1: prestation
    # ------------------------------------------------------------------ #

    def select_prestation(self, prestation_id: int) -> bool:
        if not self._can_edit(WizardStep.SELECT_PRESTATION):
            return False
        if prestation_id not in {p.id for p in self.prestations}:
            return False
        # Date and slot are kept on purpose when the prestation changes.
        self._selection = self._selection.with_prestation(prestation_id)
        return True

    # ------------------------------------------------------------------ #
    # Step 2: date and slot
    # ------------------------------------------------------------------ #

    async def show_next_month(self) -> str:
        if self.step == WizardStep.SELECT_DATE_TIME and not self._closed:
            self._picker = self._picker.show_next()
            await self._load_month()
        return self.displayed_month

    async def show_previous_month(self) -> str:
        if self.step == WizardStep.SELECT_DATE_TIME and not self._closed:
            picker = self._picker.show_previous(self._today())
            if picker != self._picker:
                self._picker = picker
                await self._load_month()
        return self.displayed_month

    async def select_date(self, day: date) -> bool:
        """Select a day with openings and load its slots. Always clears the slot."""
        if not self._can_edit(WizardStep.SELECT_DATE_TIME):
            return False
        if not is_selectable(day, self._available_dates, self._today()):
            return False

        self._picker = self._picker.select(day, self._available_dates, self._today())
        self._selection = self._selection.with_date(day)
        self._slots = []

        with self._busy("slots"):
            result = await self._days.select(day_query_key(self.pro_id, day))
        if self._closed or not result.current or self._selection.selected_date != day:
            return True
        self._slots = result.value
        return True

    def select_slot(self, slot_time: str) -> bool:
        if not self._can_edit(WizardStep.SELECT_DATE_TIME):
            return False
        for slot in self._slots:
            if slot.time == slot_time:
                self._selection = self._selection.with_slot(slot)
                return True
        return False

    async def _load_month(self) -> None:
        key = month_query_key(self.pro_id, self._picker.year_month)
        self._available_dates = frozenset()
        with self._busy("dates"):
            result = await self._months.select(key)
        if self._closed or not result.current:
            return
        self._available_dates = result.value

    # ------------------------------------------------------------------ #
    # Step 3: summary and confirmation
    # ------------------------------------------------------------------ #

    def select_payment_method(self, method: Union[PaymentMethod, str]) -> bool:
        if self._closed or self.step != WizardStep.SUMMARY or self._pending["confirm"]:
            return False
        self._selection = self._selection.with_payment_method(PaymentMethod(method))
        return True

    async def confirm_booking(self) -> bool:
        """
        Create the reservation, then the payment authorization when paying online.

        The reservation is created at most once per session; a later
        confirmation reuses it. Any failure leaves the wizard on the
        summary with a message and every selection intact.
        """
        if self._closed or self.step != WizardStep.SUMMARY or self._pending["confirm"]:
            return False
        if not is_step_valid(WizardStep.SUMMARY, self._selection):
            return False
        prestation = self.selected_prestation
        selection = self._selection
        if prestation is None or not selection.has_date_and_slot:
            self._error = GENERIC_ERROR_MESSAGE
            return False

        self._error = None
        with self._busy("confirm"):
            booking = self._booking
            if booking is None:
                booking = await self._create_reservation(selection, prestation)
                if booking is None:
                    return False

            if selection.payment_method == PaymentMethod.ON_SITE:
                return self._finish_confirmation(WizardTrigger.BOOKED_ON_SITE)

            if not booking.has_authorization:
                booking = await self._create_payment_authorization(booking)
                if booking is None:
                    return False
            return self._finish_confirmation(WizardTrigger.BOOKED_ONLINE)

    async def _create_reservation(
        self, selection: WizardSelection, prestation: Prestation
    ) -> Optional[ConfirmedBooking]:
        start, end = booking_window(
            selection.selected_date, selection.slot_time, prestation.duration_minutes
        )
        request = ReservationRequest(
            pro_id=self.pro_id,
            prestation_id=prestation.id,
            start_datetime=start.strftime(DATETIME_FORMAT),
            end_datetime=end.strftime(DATETIME_FORMAT),
            price=prestation.price,
            slot_id=selection.slot_id,
        )
        result = await self._reservations.create_reservation(
            request, idempotency_key=self._idempotency_key
        )
        if self._closed:
            return None
        if not result.ok:
            self._handle_failure(result, WizardStep.SUMMARY)
            return None

        reservation = result.value
        self._booking = ConfirmedBooking(
            reservation_id=reservation.id,
            deposit_percentage=reservation.deposit_percentage,
            deposit_amount=reservation.deposit_amount,
        )
        return self._booking

    async def _create_payment_authorization(
        self, booking: ConfirmedBooking
    ) -> Optional[ConfirmedBooking]:
        payment_type = payment_type_for(booking.deposit_percentage)
        result = await self._reservations.create_payment_authorization(
            PaymentAuthorizationRequest(reservation_id=booking.reservation_id, type=payment_type)
        )
        if self._closed:
            return None
        if not result.ok:
            self._handle_failure(result, WizardStep.SUMMARY)
            return None

        self._booking = replace(
            booking,
            payment_type=payment_type,
            client_secret=result.value.client_secret,
            amount_due=result.value.amount,
        )
        return self._booking

    def _finish_confirmation(self, trigger: WizardTrigger) -> bool:
        if self.step != WizardStep.SUMMARY:
            # The user navigated away while the calls were pending.
            logger.debug("Confirmation result kept, step is now %s", self.step.name)
            return False
        self._apply(trigger)
        return True

    # ------------------------------------------------------------------ #
    # Step 4: payment
    # ------------------------------------------------------------------ #

    async def confirm_payment(self) -> PaymentConfirmation:
        """One user-initiated confirmation attempt. Never retried automatically."""
        return await self._run_payment(resume=False)

    async def resume_payment(self) -> PaymentConfirmation:
        """Pick the payment up again after the processor redirected the user."""
        return await self._run_payment(resume=True)

    async def _run_payment(self, *, resume: bool) -> PaymentConfirmation:
        booking = self._booking
        if (
            self._closed
            or self.step != WizardStep.PAYMENT
            or booking is None
            or not booking.has_authorization
        ):
            return PaymentConfirmation(PaymentOutcome.FAILED, GENERIC_ERROR_MESSAGE)

        self._error = None
        attempt = self._payments.resume if resume else self._payments.confirm
        with self._busy("payment"):
            confirmation = await attempt(booking.client_secret, self._on_payment_confirmed)

        if self._closed or confirmation.outcome == PaymentOutcome.CONFIRMED:
            return confirmation
        if self.step != WizardStep.PAYMENT:
            logger.debug(
                "Payment outcome %s dropped, step is now %s",
                confirmation.outcome.value, self.step.name,
            )
        elif confirmation.outcome == PaymentOutcome.FAILED:
            self._error = confirmation.message
        else:
            self._redirect_url = confirmation.redirect_url
        return confirmation

    def _on_payment_confirmed(self) -> None:
        if self._closed or self.step != WizardStep.PAYMENT:
            return
        self._redirect_url = None
        self._apply(WizardTrigger.PAYMENT_CONFIRMED)
        logger.info("Reservation %s paid", self._booking.reservation_id if self._booking else "?")

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _apply(self, trigger: WizardTrigger) -> None:
        self._machine.transition(trigger, self._selection)

    def _can_edit(self, step: WizardStep) -> bool:
        # Selections are frozen once the reservation exists.
        return not self._closed and self.step == step and self._booking is None

    @contextmanager
    def _busy(self, name: str) -> Iterator[None]:
        self._pending[name] += 1
        try:
            yield
        finally:
            self._pending[name] -= 1

    def _handle_failure(self, failure: Failure, step: WizardStep) -> None:
        """Report ``failure`` on ``step``, the step that made the call."""
        if failure.kind == FailureKind.UNAUTHENTICATED:
            self._expire_session()
            return
        message = failure.message or GENERIC_ERROR_MESSAGE
        if self.step != step:
            logger.debug(
                "Dropped failure from %s, step is now %s: %s", step.name, self.step.name, message
            )
            return
        self._error = message

    def _expire_session(self) -> None:
        logger.warning("Session %s expired, redirecting to authentication", self.session_id)
        self._selection = WizardSelection()
        self._booking = None
        self._slots = []
        self._available_dates = frozenset()
        self._error = None
        self._navigate(NavigationTarget.REAUTHENTICATE)
        self.teardown()

    def _navigate(self, target: NavigationTarget) -> None:
        self._navigation = target
        if self._on_navigate is not None:
            self._on_navigate(target)
