"""
Availability lookups against the slots service.

Two independent reads: which days of a month have openings, and which
slots are open on one day. Both degrade to an empty result on failure so
the calendar shows "no openings" instead of an error.
"""

import logging
from datetime import date
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from blyss_booking.gateways.http_client import (
    INVALID_RESPONSE_MESSAGE,
    ApiClient,
    GatewayError,
    TransportError,
)
from blyss_booking.gateways.queries import DerivedQuery
from blyss_booking.schemas.booking_schema import Slot
from blyss_booking.utils import parse_iso_date, parse_month_key

logger = logging.getLogger(__name__)

MonthQueryKey = tuple[int, str]
DayQueryKey = tuple[int, date]

_SLOT_LIST = TypeAdapter(list[Slot])


def month_query_key(pro_id: int, year_month: str) -> MonthQueryKey:
    return (pro_id, year_month)


def day_query_key(pro_id: int, day: date) -> DayQueryKey:
    return (pro_id, day)


class AvailabilityGateway:
    """Reads the month and day availability indexes of a professional."""

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def fetch_available_dates(self, pro_id: int, year_month: str) -> frozenset[date]:
        """
        Fetch the days of ``year_month`` (``YYYY-MM``) with at least one open slot.

        Raises:
            GatewayError: On transport or backend failure, or when the
                payload is not a list of ISO dates.
        """
        year, month = parse_month_key(year_month)
        data = await self._client.get(f"/slots/available-dates/{pro_id}/{year_month}")
        if not isinstance(data, list):
            raise TransportError(INVALID_RESPONSE_MESSAGE)

        days: set[date] = set()
        for raw in data:
            try:
                day = parse_iso_date(str(raw))
            except ValueError as exc:
                raise TransportError(INVALID_RESPONSE_MESSAGE) from exc
            if (day.year, day.month) != (year, month):
                logger.debug("Ignoring %s outside of %s", day, year_month)
                continue
            days.add(day)
        return frozenset(days)

    async def fetch_available_slots(self, pro_id: int, day: date) -> list[Slot]:
        """
        Fetch the open slots of one day, ordered by start time.

        Raises:
            GatewayError: On transport or backend failure.
            ValidationError: If a slot record is malformed.
        """
        data = await self._client.get(f"/slots/available/{pro_id}/{day.isoformat()}")
        slots = _SLOT_LIST.validate_python(data or [])
        return sorted(slots, key=lambda s: s.time)

    async def get_available_dates(self, pro_id: int, year_month: str) -> frozenset[date]:
        """Same as ``fetch_available_dates`` but returns an empty set on any failure."""
        try:
            return await self.fetch_available_dates(pro_id, year_month)
        except (GatewayError, ValidationError) as exc:
            logger.warning("Available dates for pro %s in %s unavailable: %s", pro_id, year_month, exc)
            return frozenset()

    async def get_available_slots(self, pro_id: int, day: date) -> list[Slot]:
        """Same as ``fetch_available_slots`` but returns an empty list on any failure."""
        try:
            return await self.fetch_available_slots(pro_id, day)
        except (GatewayError, ValidationError) as exc:
            logger.warning("Available slots for pro %s on %s unavailable: %s", pro_id, day, exc)
            return []

    def month_query(self, max_entries: Optional[int] = None) -> DerivedQuery[MonthQueryKey, frozenset[date]]:
        """Cached month index, one entry per (professional, month)."""
        return DerivedQuery(
            lambda key: self.fetch_available_dates(*key),
            frozenset(),
            cache_results=True,
            max_entries=max_entries,
            name="available-dates",
        )

    def day_query(self) -> DerivedQuery[DayQueryKey, list[Slot]]:
        """Day index, refetched on every date change."""
        return DerivedQuery(
            lambda key: self.fetch_available_slots(*key),
            [],
            cache_results=False,
            name="available-slots",
        )
