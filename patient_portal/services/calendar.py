"""Month grid arithmetic and per-day classification for the booking calendar.

Nothing in here touches the network: the grid is fed the available and booked
date sets produced by :mod:`patient_portal.services.availability`.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Callable, Iterable, List, Optional

from patient_portal.schemas.calendar import CalendarDayState, CalendarMonth

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]
WEEKDAYS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def days_in_month(year: int, month: int) -> tuple[int, int]:
    """Return ``(day_count, first_weekday_offset)`` with 0 = Sunday."""

    if not 1 <= month <= 12:
        raise ValueError(f"Month must be within 1..12, got {month}")
    monday_based, count = calendar.monthrange(year, month)
    return count, (monday_based + 1) % 7


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _as_date_set(values: Iterable[str] | None) -> frozenset[str]:
    if not values:
        return frozenset()
    return frozenset(value.isoformat() if isinstance(value, date) else str(value) for value in values)


def classify_day(
    day: date,
    available_dates: Iterable[str] | None,
    booked_dates: Iterable[str] | None,
    selected_date: str | None,
    *,
    today: date,
) -> CalendarDayState:
    key = day.isoformat()
    return CalendarDayState(
        year=day.year,
        month=day.month,
        day=day.day,
        is_past=day < today,
        is_available=key in _as_date_set(available_dates),
        is_booked=key in _as_date_set(booked_dates),
        is_selected=selected_date == key,
    )


class CalendarGrid:
    """Navigable month view reporting the user's date selection."""

    def __init__(
        self,
        year: int | None = None,
        month: int | None = None,
        *,
        today: Callable[[], date] | None = None,
        on_date_select: Callable[[str], None] | None = None,
    ) -> None:
        self._today = today or date.today
        current = self._today()
        self.year = year if year is not None else current.year
        self.month = month if month is not None else current.month
        days_in_month(self.year, self.month)
        self._on_date_select = on_date_select

    @property
    def today(self) -> date:
        return self._today()

    def days_in_month(self) -> tuple[int, int]:
        return days_in_month(self.year, self.month)

    def prev_month(self) -> None:
        self.year, self.month = shift_month(self.year, self.month, -1)

    def next_month(self) -> None:
        self.year, self.month = shift_month(self.year, self.month, 1)

    def go_to(self, year: int, month: int) -> None:
        days_in_month(year, month)
        self.year, self.month = year, month

    def _date_for(self, day: int) -> date:
        count, _ = self.days_in_month()
        if not 1 <= day <= count:
            raise ValueError(
                f"Day {day} is outside {MONTH_NAMES[self.month - 1]} {self.year}"
            )
        return date(self.year, self.month, day)

    def classify(
        self,
        day: int,
        available_dates: Iterable[str] | None = None,
        booked_dates: Iterable[str] | None = None,
        selected_date: str | None = None,
    ) -> CalendarDayState:
        return classify_day(
            self._date_for(day),
            available_dates,
            booked_dates,
            selected_date,
            today=self.today,
        )

    def on_select(
        self,
        day: int,
        available_dates: Iterable[str] | None = None,
        booked_dates: Iterable[str] | None = None,
    ) -> Optional[str]:
        """Return the chosen ISO date, or ``None`` when the day is not selectable."""

        try:
            state = self.classify(day, available_dates, booked_dates)
        except ValueError:
            return None
        if not state.is_selectable:
            logger.debug("Ignoring selection of non-selectable day %s", state.date)
            return None
        if self._on_date_select is not None:
            self._on_date_select(state.date)
        return state.date

    def month_view(
        self,
        available_dates: Iterable[str] | None = None,
        booked_dates: Iterable[str] | None = None,
        selected_date: str | None = None,
    ) -> CalendarMonth:
        count, offset = self.days_in_month()
        today = self.today
        available = _as_date_set(available_dates)
        booked = _as_date_set(booked_dates)

        cells: List[Optional[CalendarDayState]] = [None] * offset
        for day in range(1, count + 1):
            cells.append(
                classify_day(
                    date(self.year, self.month, day),
                    available,
                    booked,
                    selected_date,
                    today=today,
                )
            )
        if len(cells) % 7:
            cells.extend([None] * (7 - len(cells) % 7))

        weeks = [cells[index:index + 7] for index in range(0, len(cells), 7)]
        return CalendarMonth(
            year=self.year,
            month=self.month,
            title=f"{MONTH_NAMES[self.month - 1]} {self.year}",
            weekdays=list(WEEKDAYS),
            weeks=weeks,
        )
