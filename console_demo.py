"""
Offline console demo: a full booking against the in-memory sandbox.

Drives the real BookingWizard, gateways and calendar against the
in-memory sandbox marketplace and a simulated payment processor. No
network calls. Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario online
    python console_demo.py --scenario on-site
    python console_demo.py --scenario declined
    python console_demo.py --scenario redirect
"""

import argparse
import asyncio
from datetime import date
from typing import Optional

from blyss_booking.config import settings
from blyss_booking.gateways.availability import AvailabilityGateway
from blyss_booking.gateways.catalog import CatalogGateway
from blyss_booking.gateways.payment import PaymentOutcome, PaymentSessionAdapter
from blyss_booking.gateways.reservation import ReservationGateway
from blyss_booking.sandbox import FakeMarketplace, SimulatedPaymentProcessor
from blyss_booking.wizard.booking_wizard import BookingWizard
from blyss_booking.wizard.state_machine import WizardStep
from blyss_booking.wizard.views import StepView

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_PRO_ID = 42


class ConsoleSession:
    """Renders each wizard step in the terminal and feeds it user commands."""

    # Processor outcomes scripted for each --scenario
    SCENARIOS: dict[str, tuple[str, list[str]]] = {
        "online": ("online", ["succeed"]),
        "on-site": ("on-site", []),
        "declined": ("online", ["decline", "succeed"]),
        "redirect": ("online", ["redirect"]),
    }

    def __init__(self, outcomes: Optional[list[str]] = None, today: Optional[date] = None) -> None:
        self.today = today or date.today()
        self.market = FakeMarketplace.with_demo_data(self.today)
        self.client = self.market.client()
        self.processor = SimulatedPaymentProcessor(outcomes)
        self.wizard = BookingWizard(
            DEMO_PRO_ID,
            catalog=CatalogGateway(self.client),
            availability=AvailabilityGateway(self.client),
            reservations=ReservationGateway(self.client),
            payments=PaymentSessionAdapter(self.processor),
            today=lambda: self.today,
        )

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def show(self, view: StepView) -> None:
        print()
        print(f"{BOLD}[{view.step.value}/5] {view.title}{RESET}  {DIM}{view.subtitle}{RESET}")
        if view.calendar is not None:
            grid = view.calendar
            print(f"  {grid.label}")
            print("  " + " ".join(f"{name:>3}" for name in grid.weekday_names))
            for week in grid.weeks:
                cells = []
                for cell in week:
                    if not cell.in_month:
                        cells.append("   ")
                    elif cell.selected:
                        cells.append(f"{YELLOW}{cell.day.day:>3}{RESET}")
                    elif cell.selectable:
                        cells.append(f"{GREEN}{cell.day.day:>3}{RESET}")
                    else:
                        cells.append(f"{DIM}{cell.day.day:>3}{RESET}")
                print("  " + " ".join(cells))
        for row in view.rows:
            print(f"  {row.label}: {BOLD}{row.value}{RESET}")
        for option in view.options:
            mark = f"{YELLOW}*{RESET}" if option.selected else " "
            detail = f"  {DIM}{option.detail}{RESET}" if option.detail else ""
            print(f"  {mark} [{option.key}] {option.label}{detail}")
        if view.notice:
            print(f"  {DIM}{view.notice}{RESET}")
        if view.error:
            print(f"  {RED}{view.error}{RESET}")

    async def start(self) -> bool:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {settings.app_name.upper()} BOOKING - Console Demo{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        if not await self.wizard.enter():
            print(f"{RED}{self.wizard.error}{RESET}")
            return False
        self.system_log(f"Professional: {self.wizard.professional.display_name}")
        return True

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a booking for demo purposes."""
        method, outcomes = self.SCENARIOS[scenario]
        self.processor.outcomes = list(outcomes)
        if not await self.start():
            return
        wizard = self.wizard

        self.show(wizard.render())
        wizard.select_prestation(3)
        await wizard.next()

        self.show(wizard.render())
        first_day = min(wizard.available_dates, default=None)
        while first_day is None and wizard.calendar.year - self.today.year < 2:
            await wizard.show_next_month()
            first_day = min(wizard.available_dates, default=None)
        if first_day is None:
            self.system_log("No openings found")
            return
        await wizard.select_date(first_day)
        wizard.select_slot(wizard.slots[0].time)
        await wizard.next()

        wizard.select_payment_method(method)
        self.show(wizard.render())
        await wizard.next()

        while wizard.step == WizardStep.PAYMENT:
            self.show(wizard.render())
            confirmation = await wizard.confirm_payment()
            self.system_log(f"Processor outcome: {confirmation.outcome.value}")
            if confirmation.outcome == PaymentOutcome.REDIRECTED:
                self.system_log(f"Redirected to {confirmation.redirect_url}, coming back...")
                await wizard.resume_payment()

        self.show(wizard.render())
        print(f"\n{DIM}  Step trace: {wizard.get_step_trace()}{RESET}")
        await self.client.aclose()

    async def run(self) -> None:
        if not await self.start():
            return
        print(f"{DIM}  Commands: <option key>, d YYYY-MM-DD, >, <, n (next), b (back), p (pay), q{RESET}")

        while not self.wizard.is_closed:
            self.show(self.wizard.render())
            if self.wizard.step == WizardStep.CONFIRMATION:
                break
            command = (await asyncio.to_thread(input, f"\n{BLUE}> {RESET}")).strip()
            if command in ("q", "quit", "exit"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            await self._dispatch(command)

        await self.client.aclose()

    async def _dispatch(self, command: str) -> None:
        wizard = self.wizard
        if command == "n":
            await wizard.next()
        elif command == "b":
            await wizard.back()
        elif command == ">":
            await wizard.show_next_month()
        elif command == "<":
            await wizard.show_previous_month()
        elif command == "p":
            confirmation = await wizard.confirm_payment()
            self.system_log(f"Processor outcome: {confirmation.outcome.value}")
            if confirmation.outcome == PaymentOutcome.REDIRECTED:
                await wizard.resume_payment()
        elif command.startswith("d "):
            try:
                day = date.fromisoformat(command[2:].strip())
            except ValueError:
                self.system_log("Dates look like 2025-06-10")
                return
            if not await wizard.select_date(day):
                self.system_log("That day cannot be booked")
        elif wizard.step == WizardStep.SELECT_PRESTATION and command.isdigit():
            wizard.select_prestation(int(command))
        elif wizard.step == WizardStep.SELECT_DATE_TIME:
            if not wizard.select_slot(command):
                self.system_log("Unknown time slot")
        elif wizard.step == WizardStep.SUMMARY and command in ("on-site", "online"):
            wizard.select_payment_method(command)
        else:
            self.system_log(f"Unknown command: {command!r}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted booking instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
