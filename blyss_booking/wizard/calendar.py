"""
Calendar selection logic for the date step.

Everything here is a pure function of the displayed month, the selected
date, the available-dates set and "today". Network timing never enters
this module: the wizard feeds it whatever month index it currently has.
"""

import calendar
from dataclasses import dataclass, replace
from datetime import date
from typing import AbstractSet, Optional

from blyss_booking.utils import month_key, shift_month

MONTH_NAMES = [
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
]
WEEKDAY_NAMES = ["Lu", "Ma", "Me", "Je", "Ve", "Sa", "Di"]


@dataclass(frozen=True)
class DayCell:
    day: date
    in_month: bool
    available: bool
    past: bool
    selected: bool
    today: bool

    @property
    def selectable(self) -> bool:
        return self.in_month and self.available and not self.past


@dataclass(frozen=True)
class MonthGrid:
    year: int
    month: int
    label: str
    weekday_names: list[str]
    weeks: list[list[DayCell]]
    can_go_previous: bool

    def cell(self, day: date) -> Optional[DayCell]:
        for week in self.weeks:
            for cell in week:
                if cell.in_month and cell.day == day:
                    return cell
        return None


def is_past(day: date, today: date) -> bool:
    """Day granularity: today itself is not in the past."""
    return day < today


def is_selectable(day: date, available_dates: AbstractSet[date], today: date) -> bool:
    """A day is selectable iff it is not in the past and has openings."""
    return not is_past(day, today) and day in available_dates


def can_navigate_to(year: int, month: int, today: date) -> bool:
    """Months before the one containing today are out of reach."""
    return (year, month) >= (today.year, today.month)


def build_month_grid(
    year: int,
    month: int,
    *,
    available_dates: AbstractSet[date],
    today: date,
    selected: Optional[date] = None,
    first_weekday: int = 0,
) -> MonthGrid:
    """Lay out ``year``/``month`` as full weeks, padding with neighbouring days."""
    cal = calendar.Calendar(firstweekday=first_weekday)
    weeks = [
        [
            DayCell(
                day=day,
                in_month=day.month == month,
                available=day.month == month and day in available_dates,
                past=is_past(day, today),
                selected=selected == day,
                today=day == today,
            )
            for day in week
        ]
        for week in cal.monthdatescalendar(year, month)
    ]
    prev_year, prev_month = shift_month(year, month, -1)
    names = WEEKDAY_NAMES[first_weekday:] + WEEKDAY_NAMES[:first_weekday]
    return MonthGrid(
        year=year,
        month=month,
        label=f"{MONTH_NAMES[month - 1]} {year}",
        weekday_names=names,
        weeks=weeks,
        can_go_previous=can_navigate_to(prev_year, prev_month, today),
    )


@dataclass(frozen=True)
class CalendarPicker:
    """Displayed month plus selected date. Every move returns a new picker."""
    year: int
    month: int
    selected: Optional[date] = None

    @classmethod
    def starting_at(cls, today: date, selected: Optional[date] = None) -> "CalendarPicker":
        anchor = selected or today
        return cls(anchor.year, anchor.month, selected)

    @property
    def year_month(self) -> str:
        return month_key(date(self.year, self.month, 1))

    def show_next(self) -> "CalendarPicker":
        year, month = shift_month(self.year, self.month, 1)
        return replace(self, year=year, month=month)

    def show_previous(self, today: date) -> "CalendarPicker":
        """Step one month back, or stay put when that month is before today's."""
        year, month = shift_month(self.year, self.month, -1)
        if not can_navigate_to(year, month, today):
            return self
        return replace(self, year=year, month=month)

    def select(
        self, day: date, available_dates: AbstractSet[date], today: date
    ) -> "CalendarPicker":
        """Select ``day`` if it is selectable, otherwise return the picker unchanged."""
        if not is_selectable(day, available_dates, today):
            return self
        return replace(self, year=day.year, month=day.month, selected=day)

    def grid(
        self, available_dates: AbstractSet[date], today: date, first_weekday: int = 0
    ) -> MonthGrid:
        return build_month_grid(
            self.year,
            self.month,
            available_dates=available_dates,
            today=today,
            selected=self.selected,
            first_weekday=first_weekday,
        )
