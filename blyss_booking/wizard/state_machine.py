"""
Finite state machine for the booking wizard steps.

Defines the five wizard steps and the explicit transitions between them.
``transition`` is the only function that computes a new step; the
``WizardStateMachine`` wrapper records history and is the only object the
wizard lets change its current step.

Usage:
    sm = WizardStateMachine()
    sm.transition(WizardTrigger.NEXT, selection)
    assert sm.current_step == WizardStep.SELECT_DATE_TIME
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Callable, Optional

from blyss_booking.schemas.booking_schema import PaymentMethod
from blyss_booking.schemas.wizard_schema import WizardSelection

logger = logging.getLogger(__name__)

TOTAL_STEPS = 5


class WizardStep(IntEnum):
    """Wizard steps, in display order."""
    SELECT_PRESTATION = 1
    SELECT_DATE_TIME = 2
    SUMMARY = 3
    PAYMENT = 4
    CONFIRMATION = 5


class WizardTrigger(str, Enum):
    """Events that cause step transitions."""
    NEXT = "next"
    BACK = "back"
    BOOKED_ON_SITE = "booked_on_site"
    BOOKED_ONLINE = "booked_online"
    PAYMENT_CONFIRMED = "payment_confirmed"


Guard = Callable[[WizardSelection], bool]


def _has_prestation(selection: WizardSelection) -> bool:
    return selection.prestation_id is not None


def _has_date_and_slot(selection: WizardSelection) -> bool:
    return selection.has_date_and_slot


def _has_payment_method(selection: WizardSelection) -> bool:
    return selection.payment_method is not None


def _pays_on_site(selection: WizardSelection) -> bool:
    return selection.payment_method == PaymentMethod.ON_SITE


def _pays_online(selection: WizardSelection) -> bool:
    return selection.payment_method == PaymentMethod.ONLINE


@dataclass(frozen=True)
class Transition:
    """A single valid step transition."""
    from_step: WizardStep
    to_step: WizardStep
    trigger: WizardTrigger
    guard: Optional[Guard] = None


@dataclass
class StepEntry:
    """Recorded history entry for a step visit."""
    step: WizardStep
    entered_at: datetime
    trigger: Optional[WizardTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a trigger has no valid transition from the current step."""


TRANSITIONS: list[Transition] = [
    # --- Forward ---
    Transition(WizardStep.SELECT_PRESTATION, WizardStep.SELECT_DATE_TIME,
               WizardTrigger.NEXT, _has_prestation),
    Transition(WizardStep.SELECT_DATE_TIME, WizardStep.SUMMARY,
               WizardTrigger.NEXT, _has_date_and_slot),

    # --- Reservation created out of the summary ---
    Transition(WizardStep.SUMMARY, WizardStep.CONFIRMATION,
               WizardTrigger.BOOKED_ON_SITE, _pays_on_site),
    Transition(WizardStep.SUMMARY, WizardStep.PAYMENT,
               WizardTrigger.BOOKED_ONLINE, _pays_online),

    # --- Processor confirmation ---
    Transition(WizardStep.PAYMENT, WizardStep.CONFIRMATION,
               WizardTrigger.PAYMENT_CONFIRMED),

    # --- Back ---
    Transition(WizardStep.SELECT_DATE_TIME, WizardStep.SELECT_PRESTATION, WizardTrigger.BACK),
    Transition(WizardStep.SUMMARY, WizardStep.SELECT_DATE_TIME, WizardTrigger.BACK),
    Transition(WizardStep.PAYMENT, WizardStep.SUMMARY, WizardTrigger.BACK),
    Transition(WizardStep.CONFIRMATION, WizardStep.SUMMARY, WizardTrigger.BACK, _pays_on_site),
    Transition(WizardStep.CONFIRMATION, WizardStep.PAYMENT, WizardTrigger.BACK, _pays_online),
]

STEP_GUARDS: dict[WizardStep, Optional[Guard]] = {
    WizardStep.SELECT_PRESTATION: _has_prestation,
    WizardStep.SELECT_DATE_TIME: _has_date_and_slot,
    WizardStep.SUMMARY: _has_payment_method,
    WizardStep.PAYMENT: None,
    WizardStep.CONFIRMATION: None,
}


def is_step_valid(step: WizardStep, selection: WizardSelection) -> bool:
    """Whether the selection satisfies the guard that enables "Next" on ``step``."""
    guard = STEP_GUARDS[step]
    return guard is None or guard(selection)


def transition(
    step: WizardStep, trigger: WizardTrigger, selection: WizardSelection
) -> WizardStep:
    """
    Compute the step reached from ``step`` on ``trigger``.

    Raises:
        InvalidTransitionError: If no transition matches, or every matching
            transition's guard rejects the selection.
    """
    for t in TRANSITIONS:
        if t.from_step == step and t.trigger == trigger:
            if t.guard is not None and not t.guard(selection):
                continue
            return t.to_step

    valid = [t.trigger.value for t in TRANSITIONS if t.from_step == step]
    raise InvalidTransitionError(
        f"No valid transition from step {step.value} ({step.name}) "
        f"with trigger '{trigger.value}'. Valid triggers: {valid}"
    )


class WizardStateMachine:
    """Holds the current step and its history."""

    def __init__(self) -> None:
        self._current_step = WizardStep.SELECT_PRESTATION
        self._history: list[StepEntry] = [
            StepEntry(step=self._current_step, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_step(self) -> WizardStep:
        return self._current_step

    def can_transition(self, trigger: WizardTrigger, selection: WizardSelection) -> bool:
        try:
            transition(self._current_step, trigger, selection)
        except InvalidTransitionError:
            return False
        return True

    def transition(self, trigger: WizardTrigger, selection: WizardSelection) -> WizardStep:
        old_step = self._current_step
        self._current_step = transition(old_step, trigger, selection)
        self._history.append(StepEntry(
            step=self._current_step,
            entered_at=datetime.now(timezone.utc),
            trigger=trigger,
        ))
        logger.debug(
            "Step transition: %s -> %s (trigger: %s)",
            old_step.name, self._current_step.name, trigger.value,
        )
        return self._current_step

    def get_history(self) -> list[StepEntry]:
        """Return the full step transition history."""
        return list(self._history)

    def get_step_trace(self) -> list[int]:
        """Return ordered list of step numbers visited."""
        return [entry.step.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_step == WizardStep.CONFIRMATION
