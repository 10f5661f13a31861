"""Shared test fixtures and helpers."""

from datetime import date, datetime
from typing import Callable, Optional

import pytest

from blyss_booking.config import WizardConfig
from blyss_booking.gateways.availability import AvailabilityGateway
from blyss_booking.gateways.catalog import CatalogGateway
from blyss_booking.gateways.http_client import ApiClient
from blyss_booking.gateways.payment import PaymentSessionAdapter
from blyss_booking.gateways.reservation import ReservationGateway
from blyss_booking.sandbox import SANDBOX_TOKEN, FakeMarketplace, SimulatedPaymentProcessor
from blyss_booking.wizard.booking_wizard import BookingWizard, NavigationTarget
from blyss_booking.wizard.state_machine import WizardStep

PRO_ID = 42
TODAY = date(2025, 6, 9)  # a Monday
BOOKING_DAY = date(2025, 6, 10)
RETURN_URL = "https://app.blyss.test/client/booking/return"


def make_market(deposit_percentage: int = 30) -> FakeMarketplace:
    """A nail artist with two bookable days in June and one in July."""
    market = FakeMarketplace()
    market.add_professional(
        PRO_ID, "Léa", "Martin",
        activity_name="Léa Nails", city="Lyon", deposit_percentage=deposit_percentage,
    )
    market.add_prestation(PRO_ID, 1, "Pose complète gel", 65.0, 90)
    market.add_prestation(PRO_ID, 3, "Gel manicure", 45.0, 60)
    market.add_prestation(PRO_ID, 4, "Nail art", 85.0, 120, active=False)
    market.add_slot(PRO_ID, datetime(2025, 6, 10, 14, 0), 60, slot_id=12)
    market.add_slot(PRO_ID, datetime(2025, 6, 10, 10, 0), 60, slot_id=11)
    market.add_slot(PRO_ID, datetime(2025, 6, 12, 9, 0), 60, slot_id=13)
    market.add_slot(PRO_ID, datetime(2025, 7, 3, 15, 30), 60, slot_id=21)
    return market


def make_wizard(
    market: FakeMarketplace,
    processor: Optional[SimulatedPaymentProcessor] = None,
    *,
    token: Optional[str] = SANDBOX_TOKEN,
    client: Optional[ApiClient] = None,
    today: date = TODAY,
    config: Optional[WizardConfig] = None,
    on_navigate: Optional[Callable[[NavigationTarget], None]] = None,
) -> BookingWizard:
    """Wire a BookingWizard to the sandbox backend."""
    client = client or market.client(token)
    return BookingWizard(
        PRO_ID,
        catalog=CatalogGateway(client),
        availability=AvailabilityGateway(client),
        reservations=ReservationGateway(client),
        payments=PaymentSessionAdapter(processor or SimulatedPaymentProcessor(), RETURN_URL),
        config=config,
        today=lambda: today,
        on_navigate=on_navigate,
    )


async def reach_summary(
    wizard: BookingWizard,
    prestation_id: int = 3,
    day: date = BOOKING_DAY,
    slot_time: str = "14:00",
) -> None:
    """Drive a fresh wizard through steps 1 and 2."""
    assert await wizard.enter()
    assert wizard.select_prestation(prestation_id)
    await wizard.next()
    assert await wizard.select_date(day)
    assert wizard.select_slot(slot_time)
    await wizard.next()
    assert wizard.step == WizardStep.SUMMARY


def reservation_requests(market: FakeMarketplace) -> list:
    return [r for r in market.requests if r.method == "POST" and r.url.path.endswith("/reservations")]


def intent_requests(market: FakeMarketplace) -> list:
    return [r for r in market.requests if r.url.path.endswith("/payments/intent")]


@pytest.fixture
def market():
    return make_market()


@pytest.fixture
def client(market):
    return market.client()


@pytest.fixture
def processor():
    return SimulatedPaymentProcessor()


@pytest.fixture
def wizard(market, processor):
    return make_wizard(market, processor)
