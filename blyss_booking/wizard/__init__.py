from blyss_booking.wizard.booking_wizard import BookingWizard, NavigationTarget
from blyss_booking.wizard.calendar import CalendarPicker, MonthGrid
from blyss_booking.wizard.state_machine import (
    InvalidTransitionError,
    WizardStateMachine,
    WizardStep,
    WizardTrigger,
)
from blyss_booking.wizard.views import StepView, render_step

__all__ = [
    "BookingWizard",
    "NavigationTarget",
    "CalendarPicker",
    "MonthGrid",
    "WizardStateMachine",
    "WizardStep",
    "WizardTrigger",
    "InvalidTransitionError",
    "StepView",
    "render_step",
]
