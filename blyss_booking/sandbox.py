"""
In-memory marketplace backend and simulated payment processor.

Serves the catalog, slots, reservation and payment endpoints through
``httpx.MockTransport`` so the wizard runs end to end with no network.
Used by the console demo and the test-suite. In production the ApiClient
points at the real backend and a processor SDK implements
``PaymentProcessor``.
"""

import json
import logging
import random
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional

import httpx

from blyss_booking.gateways.http_client import ApiClient
from blyss_booking.gateways.payment import ProcessorResult, ProcessorStatus

logger = logging.getLogger(__name__)

SANDBOX_BASE_URL = "https://sandbox.blyss.test/api"
SANDBOX_TOKEN = "sandbox-token"

# Schedule generation parameters
SCHEDULE_DAYS = 21
AVAILABILITY_PROBABILITY = 0.6
SCHEDULE_SEED = 42
OPENING_HOURS = ["09:00", "10:30", "14:00", "15:30", "17:00"]

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class SandboxSlot:
    id: int
    pro_id: int
    start: datetime
    duration: int
    status: str = "available"

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "time": self.start.strftime("%H:%M"),
            "duration": self.duration,
            "start_datetime": self.start.strftime(DATETIME_FORMAT),
            "end_datetime": self.end.strftime(DATETIME_FORMAT),
        }


@dataclass
class FakeMarketplace:
    """
    Minimal stand-in for the Blyss REST backend.

    ``fail_routes`` maps a route name (``pro``, ``prestations``, ``dates``,
    ``slots``, ``reservation``, ``intent``) to an HTTP status the route
    answers with instead of its normal behaviour.
    """

    token: Optional[str] = SANDBOX_TOKEN
    professionals: dict[int, dict[str, Any]] = field(default_factory=dict)
    prestations: dict[int, list[dict[str, Any]]] = field(default_factory=dict)
    deposit_percentages: dict[int, int] = field(default_factory=dict)
    slots: dict[int, SandboxSlot] = field(default_factory=dict)
    reservations: dict[int, dict[str, Any]] = field(default_factory=dict)
    payment_intents: dict[str, dict[str, Any]] = field(default_factory=dict)
    fail_routes: dict[str, int] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)
    _next_slot_id: int = 1
    _next_reservation_id: int = 501
    _idempotency: dict[str, int] = field(default_factory=dict)

    # ------------------------------------------------------------------ #
    # Seeding
    # ------------------------------------------------------------------ #

    def add_professional(
        self,
        pro_id: int,
        first_name: str,
        last_name: str,
        *,
        activity_name: Optional[str] = None,
        city: Optional[str] = None,
        deposit_percentage: int = 0,
        active: bool = True,
    ) -> None:
        self.professionals[pro_id] = {
            "id": pro_id,
            "first_name": first_name,
            "last_name": last_name,
            "activity_name": activity_name,
            "city": city,
            "pro_status": "active" if active else "inactive",
        }
        self.prestations.setdefault(pro_id, [])
        self.deposit_percentages[pro_id] = deposit_percentage

    def add_prestation(
        self,
        pro_id: int,
        prestation_id: int,
        name: str,
        price: float,
        duration_minutes: int,
        *,
        active: bool = True,
        description: Optional[str] = None,
    ) -> None:
        self.prestations.setdefault(pro_id, []).append({
            "id": prestation_id,
            "name": name,
            "description": description,
            "price": f"{price:.2f}",
            "duration_minutes": duration_minutes,
            "active": 1 if active else 0,
        })

    def add_slot(
        self, pro_id: int, start: datetime, duration: int = 60, *, slot_id: Optional[int] = None
    ) -> SandboxSlot:
        if slot_id is None:
            slot_id = self._next_slot_id
        self._next_slot_id = max(self._next_slot_id, slot_id) + 1
        slot = SandboxSlot(id=slot_id, pro_id=pro_id, start=start, duration=duration)
        self.slots[slot_id] = slot
        return slot

    @classmethod
    def with_demo_data(cls, today: date) -> "FakeMarketplace":
        """A nail artist with a few prestations and three weeks of openings."""
        market = cls()
        market.add_professional(
            42, "Léa", "Martin", activity_name="Léa Nails", city="Lyon", deposit_percentage=30
        )
        market.add_prestation(42, 1, "Pose complète gel", 65.0, 90)
        market.add_prestation(42, 2, "Remplissage", 45.0, 60)
        market.add_prestation(42, 3, "Gel manicure", 45.0, 60)
        market.add_prestation(42, 4, "Nail art", 85.0, 120, active=False)

        rng = random.Random(SCHEDULE_SEED)
        for offset in range(SCHEDULE_DAYS):
            day = today + timedelta(days=offset)
            if day.weekday() == 6:  # Sunday closed
                continue
            for hour in OPENING_HOURS:
                if rng.random() < AVAILABILITY_PROBABILITY:
                    start = datetime.combine(day, datetime.strptime(hour, "%H:%M").time())
                    market.add_slot(42, start, 60)
        return market

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, token: Optional[str] = SANDBOX_TOKEN) -> ApiClient:
        return ApiClient(
            base_url=SANDBOX_BASE_URL,
            token_provider=lambda: token,
            transport=self.transport(),
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        for method, pattern, name, handler in self._routes():
            match = re.fullmatch(pattern, path)
            if request.method == method and match:
                if name in self.fail_routes:
                    return _reply(self.fail_routes[name], False, message="Erreur serveur")
                return handler(request, *match.groups())
        return _reply(404, False, message="Route inconnue")

    def _routes(self):
        return [
            ("GET", r"/users/pros/(\d+)", "pro", self._get_professional),
            ("GET", r"/prestations/pro/(\d+)", "prestations", self._get_prestations),
            ("GET", r"/slots/available-dates/(\d+)/(\d{4}-\d{2})", "dates", self._get_dates),
            ("GET", r"/slots/available/(\d+)/(\d{4}-\d{2}-\d{2})", "slots", self._get_slots),
            ("POST", r"/reservations", "reservation", self._create_reservation),
            ("POST", r"/payments/intent", "intent", self._create_intent),
        ]

    def _authorized(self, request: httpx.Request) -> bool:
        header = request.headers.get("Authorization", "")
        return bool(self.token) and header == f"Bearer {self.token}"

    def _get_professional(self, request: httpx.Request, pro_id: str) -> httpx.Response:
        pro = self.professionals.get(int(pro_id))
        if pro is None or pro["pro_status"] != "active":
            return _reply(404, False, message="Professionnel non trouvé")
        return _reply(200, True, data=pro)

    def _get_prestations(self, request: httpx.Request, pro_id: str) -> httpx.Response:
        rows = sorted(self.prestations.get(int(pro_id), []), key=lambda p: p["name"])
        return _reply(200, True, data=rows)

    def _open_slots(self, pro_id: int) -> list[SandboxSlot]:
        return sorted(
            (s for s in self.slots.values() if s.pro_id == pro_id and s.status == "available"),
            key=lambda s: s.start,
        )

    def _get_dates(self, request: httpx.Request, pro_id: str, year_month: str) -> httpx.Response:
        days = sorted({
            s.start.date().isoformat()
            for s in self._open_slots(int(pro_id))
            if s.start.strftime("%Y-%m") == year_month
        })
        return _reply(200, True, data=days)

    def _get_slots(self, request: httpx.Request, pro_id: str, day: str) -> httpx.Response:
        slots = [s.to_json() for s in self._open_slots(int(pro_id)) if s.start.date().isoformat() == day]
        return _reply(200, True, data=slots)

    def _create_reservation(self, request: httpx.Request) -> httpx.Response:
        if not self._authorized(request):
            return _reply(401, False, message="Invalid token")

        key = request.headers.get("Idempotency-Key")
        if key and key in self._idempotency:
            return _reply(200, True, data=self.reservations[self._idempotency[key]])

        body = json.loads(request.content or b"{}")
        required = ["proId", "prestationId", "startDatetime", "endDatetime", "price"]
        missing = [name for name in required if body.get(name) in (None, "")]
        if missing:
            return _reply(400, False, message=f"Champs manquants : {', '.join(missing)}")

        pro_id = int(body["proId"])
        pro = self.professionals.get(pro_id)
        if pro is None or pro["pro_status"] != "active":
            return _reply(400, False, message="Ce professionnel n'accepte plus de réservations")

        slot = self._find_slot(pro_id, body)
        if slot is None or slot.status != "available":
            return _reply(409, False, message="Ce créneau n'est plus disponible")
        slot.status = "reserved"

        percentage = self.deposit_percentages.get(pro_id, 0)
        price = float(body["price"])
        reservation = {
            "id": self._next_reservation_id,
            "pro_id": pro_id,
            "prestation_id": int(body["prestationId"]),
            "start_datetime": body["startDatetime"],
            "end_datetime": body["endDatetime"],
            "price": price,
            "slot_id": slot.id,
            "status": "pending",
            "deposit_percentage": percentage,
            "deposit_amount": round(price * percentage / 100, 2),
        }
        self.reservations[reservation["id"]] = reservation
        self._next_reservation_id += 1
        if key:
            self._idempotency[key] = reservation["id"]
        logger.info("Sandbox reservation %s created on slot %s", reservation["id"], slot.id)
        return _reply(201, True, data=reservation)

    def _find_slot(self, pro_id: int, body: dict[str, Any]) -> Optional[SandboxSlot]:
        if body.get("slotId") is not None:
            slot = self.slots.get(int(body["slotId"]))
            return slot if slot is not None and slot.pro_id == pro_id else None
        start = datetime.strptime(body["startDatetime"], DATETIME_FORMAT)
        for slot in self.slots.values():
            if slot.pro_id == pro_id and slot.start == start:
                return slot
        return None

    def _create_intent(self, request: httpx.Request) -> httpx.Response:
        if not self._authorized(request):
            return _reply(401, False, message="Invalid token")

        body = json.loads(request.content or b"{}")
        reservation = self.reservations.get(int(body.get("reservationId") or 0))
        if reservation is None:
            return _reply(404, False, message="Réservation introuvable")
        if reservation["status"] != "pending":
            return _reply(400, False, message="Cette réservation ne peut pas être payée")

        payment_type = body.get("type")
        if payment_type == "full":
            amount = reservation["price"]
        elif payment_type == "deposit":
            amount = reservation["deposit_amount"]
        else:
            return _reply(400, False, message="Type de paiement invalide")

        secret = f"pi_{reservation['id']}_{len(self.payment_intents) + 1}_secret"
        self.payment_intents[secret] = {
            "reservation_id": reservation["id"],
            "type": payment_type,
            "amount": amount,
        }
        return _reply(200, True, data={"client_secret": secret, "amount": amount})


def _reply(status: int, success: bool, **payload: Any) -> httpx.Response:
    return httpx.Response(status, json={"success": success, **payload})


class SimulatedPaymentProcessor:
    """
    Processor double driven by a queue of scripted outcomes.

    Each ``confirm_payment`` call consumes the next outcome: ``"succeed"``,
    ``"decline"`` or ``"redirect"``. A redirected payment completes when it
    is later retrieved.
    """

    def __init__(self, outcomes: Optional[list[str]] = None) -> None:
        self.outcomes = list(outcomes or [])
        self.confirm_calls: list[tuple[str, str]] = []
        self._redirected: set[str] = set()

    async def confirm_payment(self, client_secret: str, return_url: str) -> ProcessorResult:
        self.confirm_calls.append((client_secret, return_url))
        outcome = self.outcomes.pop(0) if self.outcomes else "succeed"
        if outcome == "decline":
            return ProcessorResult(ProcessorStatus.FAILED, "Votre carte a été refusée.")
        if outcome == "redirect":
            self._redirected.add(client_secret)
            return ProcessorResult(
                ProcessorStatus.REDIRECT_REQUIRED,
                redirect_url=f"https://bank.example/3ds?return={return_url}",
            )
        return ProcessorResult(ProcessorStatus.SUCCEEDED)

    async def retrieve_payment(self, client_secret: str) -> ProcessorResult:
        if client_secret in self._redirected:
            self._redirected.discard(client_secret)
            return ProcessorResult(ProcessorStatus.SUCCEEDED)
        return ProcessorResult(ProcessorStatus.FAILED, "Paiement introuvable")
