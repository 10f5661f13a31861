"""Tests for the booking wizard step state machine."""

from datetime import date

import pytest

from blyss_booking.schemas.booking_schema import PaymentMethod
from blyss_booking.schemas.wizard_schema import WizardSelection
from blyss_booking.wizard.state_machine import (
    TRANSITIONS,
    InvalidTransitionError,
    WizardStateMachine,
    WizardStep,
    WizardTrigger,
    is_step_valid,
    transition,
)

EMPTY = WizardSelection()
WITH_PRESTATION = WizardSelection(prestation_id=3)
WITH_SLOT = WizardSelection(
    prestation_id=3, selected_date=date(2025, 6, 10), slot_time="14:00", slot_id=12
)
ON_SITE = WizardSelection(
    prestation_id=3, selected_date=date(2025, 6, 10), slot_time="14:00",
    payment_method=PaymentMethod.ON_SITE,
)
ONLINE = WizardSelection(
    prestation_id=3, selected_date=date(2025, 6, 10), slot_time="14:00",
    payment_method=PaymentMethod.ONLINE,
)


class TestTransitions:
    def test_initial_step(self):
        sm = WizardStateMachine()
        assert sm.current_step == WizardStep.SELECT_PRESTATION

    def test_next_requires_prestation(self):
        with pytest.raises(InvalidTransitionError):
            transition(WizardStep.SELECT_PRESTATION, WizardTrigger.NEXT, EMPTY)

    def test_next_with_prestation(self):
        step = transition(WizardStep.SELECT_PRESTATION, WizardTrigger.NEXT, WITH_PRESTATION)
        assert step == WizardStep.SELECT_DATE_TIME

    def test_next_requires_date_and_slot(self):
        no_slot = WITH_PRESTATION.with_date(date(2025, 6, 10))
        with pytest.raises(InvalidTransitionError):
            transition(WizardStep.SELECT_DATE_TIME, WizardTrigger.NEXT, no_slot)

    def test_next_with_date_and_slot(self):
        step = transition(WizardStep.SELECT_DATE_TIME, WizardTrigger.NEXT, WITH_SLOT)
        assert step == WizardStep.SUMMARY

    def test_no_plain_next_out_of_summary(self):
        with pytest.raises(InvalidTransitionError):
            transition(WizardStep.SUMMARY, WizardTrigger.NEXT, ONLINE)

    def test_on_site_booking_skips_payment(self):
        step = transition(WizardStep.SUMMARY, WizardTrigger.BOOKED_ON_SITE, ON_SITE)
        assert step == WizardStep.CONFIRMATION

    def test_online_booking_goes_to_payment(self):
        step = transition(WizardStep.SUMMARY, WizardTrigger.BOOKED_ONLINE, ONLINE)
        assert step == WizardStep.PAYMENT

    def test_booking_trigger_must_match_method(self):
        with pytest.raises(InvalidTransitionError):
            transition(WizardStep.SUMMARY, WizardTrigger.BOOKED_ONLINE, ON_SITE)

    def test_payment_confirmed(self):
        step = transition(WizardStep.PAYMENT, WizardTrigger.PAYMENT_CONFIRMED, ONLINE)
        assert step == WizardStep.CONFIRMATION

    def test_payment_cannot_be_skipped(self):
        with pytest.raises(InvalidTransitionError):
            transition(WizardStep.PAYMENT, WizardTrigger.NEXT, ONLINE)

    def test_error_lists_valid_triggers(self):
        with pytest.raises(InvalidTransitionError, match="payment_confirmed"):
            transition(WizardStep.PAYMENT, WizardTrigger.BOOKED_ONLINE, ONLINE)


class TestBackTransitions:
    @pytest.mark.parametrize("step, expected", [
        (WizardStep.SELECT_DATE_TIME, WizardStep.SELECT_PRESTATION),
        (WizardStep.SUMMARY, WizardStep.SELECT_DATE_TIME),
        (WizardStep.PAYMENT, WizardStep.SUMMARY),
    ])
    def test_back_goes_one_step(self, step, expected):
        assert transition(step, WizardTrigger.BACK, ONLINE) == expected

    def test_back_from_confirmation_on_site_skips_payment(self):
        step = transition(WizardStep.CONFIRMATION, WizardTrigger.BACK, ON_SITE)
        assert step == WizardStep.SUMMARY

    def test_back_from_confirmation_online(self):
        step = transition(WizardStep.CONFIRMATION, WizardTrigger.BACK, ONLINE)
        assert step == WizardStep.PAYMENT

    def test_no_back_from_first_step(self):
        with pytest.raises(InvalidTransitionError):
            transition(WizardStep.SELECT_PRESTATION, WizardTrigger.BACK, EMPTY)

    def test_every_step_reachable_only_from_neighbours(self):
        for t in TRANSITIONS:
            if t.trigger in (WizardTrigger.NEXT, WizardTrigger.BACK):
                assert t.to_step != t.from_step


class TestStepValidity:
    def test_step_one(self):
        assert not is_step_valid(WizardStep.SELECT_PRESTATION, EMPTY)
        assert is_step_valid(WizardStep.SELECT_PRESTATION, WITH_PRESTATION)

    def test_step_two(self):
        assert not is_step_valid(WizardStep.SELECT_DATE_TIME, WITH_PRESTATION)
        assert is_step_valid(WizardStep.SELECT_DATE_TIME, WITH_SLOT)

    def test_step_three_needs_payment_method(self):
        assert not is_step_valid(WizardStep.SUMMARY, WITH_SLOT)
        assert is_step_valid(WizardStep.SUMMARY, ON_SITE)


class TestHistory:
    def test_step_trace(self):
        sm = WizardStateMachine()
        sm.transition(WizardTrigger.NEXT, WITH_PRESTATION)
        sm.transition(WizardTrigger.NEXT, WITH_SLOT)
        sm.transition(WizardTrigger.BOOKED_ONLINE, ONLINE)
        sm.transition(WizardTrigger.PAYMENT_CONFIRMED, ONLINE)
        assert sm.get_step_trace() == [1, 2, 3, 4, 5]
        assert sm.is_terminal()

    def test_history_records_triggers(self):
        sm = WizardStateMachine()
        sm.transition(WizardTrigger.NEXT, WITH_PRESTATION)
        sm.transition(WizardTrigger.BACK, WITH_PRESTATION)
        history = sm.get_history()
        assert [entry.trigger for entry in history] == [
            None, WizardTrigger.NEXT, WizardTrigger.BACK,
        ]

    def test_failed_transition_keeps_step(self):
        sm = WizardStateMachine()
        with pytest.raises(InvalidTransitionError):
            sm.transition(WizardTrigger.NEXT, EMPTY)
        assert sm.current_step == WizardStep.SELECT_PRESTATION
        assert sm.get_step_trace() == [1]

    def test_can_transition(self):
        sm = WizardStateMachine()
        assert not sm.can_transition(WizardTrigger.NEXT, EMPTY)
        assert sm.can_transition(WizardTrigger.NEXT, WITH_PRESTATION)
