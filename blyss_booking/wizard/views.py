"""Step-appropriate view models built from the wizard's current state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Optional

from blyss_booking.schemas.booking_schema import PaymentMethod, PaymentType
from blyss_booking.utils import format_duration, format_price
from blyss_booking.wizard.calendar import MONTH_NAMES, MonthGrid
from blyss_booking.wizard.state_machine import TOTAL_STEPS, WizardStep

if TYPE_CHECKING:
    from blyss_booking.wizard.booking_wizard import BookingWizard

DAY_NAMES = ["Lun", "Mar", "Mer", "Jeu", "Ven", "Sam", "Dim"]

PAYMENT_METHOD_LABELS: dict[PaymentMethod, tuple[str, str]] = {
    PaymentMethod.ON_SITE: ("Payer sur place", "Espèces, carte bancaire"),
    PaymentMethod.ONLINE: ("Payer en ligne", "Carte, Apple Pay, Google Pay"),
}


@dataclass(frozen=True)
class ViewRow:
    label: str
    value: str


@dataclass(frozen=True)
class ViewOption:
    key: str
    label: str
    detail: str = ""
    selected: bool = False


@dataclass(frozen=True)
class StepView:
    step: WizardStep
    title: str
    subtitle: str
    progress: float
    rows: list[ViewRow] = field(default_factory=list)
    options: list[ViewOption] = field(default_factory=list)
    calendar: Optional[MonthGrid] = None
    notice: Optional[str] = None
    error: Optional[str] = None
    busy: bool = False
    show_back: bool = True
    show_next: bool = True
    next_label: str = "Continuer"
    next_enabled: bool = False


def format_day_label(day: date) -> str:
    """``Mar 10 Juin``, as shown on the summary and confirmation."""
    return f"{DAY_NAMES[day.weekday()]} {day.day} {MONTH_NAMES[day.month - 1]}"


def render_step(wizard: BookingWizard) -> StepView:
    """Build the view for whatever step the wizard is on."""
    step = wizard.step
    builders = {
        WizardStep.SELECT_PRESTATION: _prestation_step,
        WizardStep.SELECT_DATE_TIME: _date_time_step,
        WizardStep.SUMMARY: _summary_step,
        WizardStep.PAYMENT: _payment_step,
        WizardStep.CONFIRMATION: _confirmation_step,
    }
    title, subtitle, extra = builders[step](wizard)
    pays_on_site = wizard.selection.payment_method == PaymentMethod.ON_SITE
    return StepView(
        step=step,
        title=title,
        subtitle=subtitle,
        progress=step.value / TOTAL_STEPS,
        error=wizard.error,
        busy=wizard.is_busy,
        show_back=step < WizardStep.CONFIRMATION,
        show_next=step < WizardStep.PAYMENT,
        next_label="Confirmer" if step == WizardStep.SUMMARY and pays_on_site else "Continuer",
        next_enabled=wizard.can_go_next,
        **extra,
    )


def _prestation_step(wizard: BookingWizard) -> tuple[str, str, dict]:
    currency = wizard.currency_symbol
    options = [
        ViewOption(
            key=str(p.id),
            label=p.name,
            detail=f"{format_duration(p.duration_minutes)} · {format_price(p.price, currency)}",
            selected=wizard.selection.prestation_id == p.id,
        )
        for p in wizard.prestations
    ]
    notice = None if options else "Aucune prestation disponible"
    return "Choisis ta prestation", "Quel soin te ferait plaisir ?", {
        "options": options,
        "notice": notice,
    }


def _date_time_step(wizard: BookingWizard) -> tuple[str, str, dict]:
    selection = wizard.selection
    options = [
        ViewOption(key=slot.time, label=slot.time, selected=selection.slot_time == slot.time)
        for slot in wizard.slots
    ]
    notice = None
    if selection.selected_date is None:
        notice = "Choisis une date pour voir les horaires"
    elif not options and not wizard.is_busy:
        notice = "Aucun créneau disponible ce jour-là"
    return "Quand ?", "Choisis une date et un horaire", {
        "calendar": wizard.calendar,
        "options": options,
        "notice": notice,
    }


def _booking_rows(wizard: BookingWizard) -> list[ViewRow]:
    prestation = wizard.selected_prestation
    selection = wizard.selection
    rows = [
        ViewRow("Prestation", prestation.name if prestation else ""),
        ViewRow("Date", format_day_label(selection.selected_date) if selection.selected_date else ""),
        ViewRow("Horaire", selection.slot_time or ""),
    ]
    return rows


def _summary_step(wizard: BookingWizard) -> tuple[str, str, dict]:
    prestation = wizard.selected_prestation
    rows = _booking_rows(wizard)
    if prestation is not None:
        rows.append(ViewRow("Durée", format_duration(prestation.duration_minutes)))
        rows.append(ViewRow("Total", format_price(prestation.price, wizard.currency_symbol)))
    options = [
        ViewOption(
            key=method.value,
            label=label,
            detail=detail,
            selected=wizard.selection.payment_method == method,
        )
        for method, (label, detail) in PAYMENT_METHOD_LABELS.items()
    ]
    return "Récapitulatif", "Vérifie ta réservation", {"rows": rows, "options": options}


def _payment_step(wizard: BookingWizard) -> tuple[str, str, dict]:
    booking = wizard.booking
    prestation = wizard.selected_prestation
    currency = wizard.currency_symbol
    rows: list[ViewRow] = []
    if booking is not None and booking.amount_due is not None:
        rows.append(ViewRow("À payer maintenant", format_price(booking.amount_due, currency)))
        if prestation is not None and booking.amount_due < prestation.price:
            remaining = prestation.price - booking.amount_due
            rows.append(ViewRow("Reste à payer sur place", format_price(remaining, currency)))
    if prestation is not None:
        rows.append(ViewRow("Total", format_price(prestation.price, currency)))
    notice = "En confirmant, tu acceptes nos conditions générales de vente"
    if wizard.redirect_url:
        notice = "Termine la validation du paiement auprès de ta banque"
    return "Paiement", "Paiement sécurisé", {"rows": rows, "notice": notice}


def _confirmation_step(wizard: BookingWizard) -> tuple[str, str, dict]:
    booking = wizard.booking
    rows: list[ViewRow] = []
    if booking is not None:
        rows.append(ViewRow("Réservation", f"#{booking.reservation_id}"))
    rows.extend(_booking_rows(wizard))
    if wizard.selection.payment_method == PaymentMethod.ON_SITE:
        payment = "Sur place"
    elif booking is not None and booking.payment_type == PaymentType.DEPOSIT:
        payment = "Acompte payé"
    else:
        payment = "Payé"
    rows.append(ViewRow("Paiement", payment))
    return "Réservation confirmée ! ✨", "Tu recevras un rappel avant ton rendez-vous", {
        "rows": rows,
    }
