from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from patient_portal.clients.backend import PortalBackendClient
from patient_portal.schemas.availability import DaySchedule, TimeSlot
from patient_portal.services.exceptions import AvailabilityError, ServiceError, ValidationGateError
from patient_portal.services.mock_store import ScheduleRepository, get_mock_store
from patient_portal.services.requests import RequestSequence

logger = logging.getLogger(__name__)


def _as_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationGateError(f"Invalid date {value!r}, expected YYYY-MM-DD", cause=exc) from exc


def default_window(today: date, days: int = 30) -> tuple[date, date]:
    """Return the inclusive range the reschedule and booking dialogs query."""

    return today, today + timedelta(days=days)


def normalize_schedule(
    entries: Iterable[Any], start_date: date, end_date: date
) -> List[DaySchedule]:
    """Return exactly one ordered ``DaySchedule`` per day of the range.

    Entries outside the range are dropped, a repeated date keeps its first
    entry, and days the backend did not report come back with no slots.
    """

    by_date: dict[str, DaySchedule] = {}
    for entry in entries:
        day = entry if isinstance(entry, DaySchedule) else DaySchedule.model_validate(entry)
        if not start_date.isoformat() <= day.date <= end_date.isoformat():
            continue
        if day.date in by_date:
            logger.warning("Dropping duplicate schedule entry for %s", day.date)
            continue
        by_date[day.date] = day

    schedule: List[DaySchedule] = []
    current = start_date
    while current <= end_date:
        key = current.isoformat()
        schedule.append(by_date.get(key) or DaySchedule(date=key))
        current += timedelta(days=1)
    return schedule


def available_dates(schedule: Iterable[DaySchedule]) -> set[str]:
    return {day.date for day in schedule if day.has_availability}


def booked_dates(schedule: Iterable[DaySchedule]) -> set[str]:
    return {day.date for day in schedule if day.is_fully_booked}


def slots_for(schedule: Iterable[DaySchedule], selected_date: str) -> List[TimeSlot]:
    day = next((item for item in schedule if item.date == selected_date), None)
    return day.available_slots if day else []


class AvailabilityResolver:
    """Resolve a doctor's open slots for a date range."""

    def __init__(
        self,
        client: PortalBackendClient,
        *,
        repository: ScheduleRepository | None = None,
    ) -> None:
        self._client = client
        self._repository = repository
        if self._client.use_mock_data:
            self._repository = repository or get_mock_store().schedules

    async def resolve_range(
        self, doctor_id: int, start_date: date | str, end_date: date | str
    ) -> List[DaySchedule]:
        start = _as_date(start_date)
        end = _as_date(end_date)
        if start > end:
            raise ValidationGateError("start_date must not be after end_date")

        logger.info("Resolving slots for doctor %s from %s to %s", doctor_id, start, end)
        try:
            if self._client.use_mock_data:
                await self._client.simulate_latency()
                if not self._repository:
                    raise RuntimeError("Mock schedule repository not configured")
                entries = await self._repository.schedule_range(doctor_id, start, end)
            else:
                data = await self._client.get(
                    "/appointments/available-slots/range",
                    params={
                        "doctor_id": doctor_id,
                        "start_date": start.isoformat(),
                        "end_date": end.isoformat(),
                    },
                )
                if isinstance(data, dict):
                    entries = data.get("schedule") or []
                else:
                    entries = data or []
            return normalize_schedule(entries, start, end)
        except ServiceError as exc:
            raise AvailabilityError("Failed to load available slots", cause=exc) from exc
        except ValidationError as exc:
            logger.exception("Backend returned a malformed schedule for doctor %s", doctor_id)
            raise AvailabilityError("Failed to load available slots", cause=exc) from exc


class AvailabilityView:
    """Availability state held by one screen or dialog.

    ``error`` is set only when the latest load failed; an empty ``schedule``
    with no error means the doctor simply has nothing open.
    """

    def __init__(self, resolver: AvailabilityResolver) -> None:
        self._resolver = resolver
        self._requests = RequestSequence()
        self.doctor_id: Optional[int] = None
        self.schedule: List[DaySchedule] = []
        self.error: Optional[ServiceError] = None
        self.loading = False
        self.closed = False

    async def load(self, doctor_id: int, start_date: date | str, end_date: date | str) -> bool:
        """Fetch and apply a range; return ``False`` if the result was discarded or failed."""

        token = self._requests.issue()
        self.closed = False
        self.loading = True
        try:
            schedule = await self._resolver.resolve_range(doctor_id, start_date, end_date)
        except ServiceError as exc:
            if not self._requests.is_current(token):
                logger.debug("Discarding failed stale availability request %s", token)
                return False
            self.doctor_id = doctor_id
            self.schedule = []
            self.error = exc
            self.loading = False
            return False

        if not self._requests.is_current(token):
            logger.debug("Discarding stale availability response %s for doctor %s", token, doctor_id)
            return False
        self.doctor_id = doctor_id
        self.schedule = schedule
        self.error = None
        self.loading = False
        return True

    def close(self) -> None:
        self._requests.invalidate()
        self.loading = False
        self.closed = True

    @property
    def available_dates(self) -> set[str]:
        return available_dates(self.schedule)

    @property
    def booked_dates(self) -> set[str]:
        return booked_dates(self.schedule)

    def slots_for(self, selected_date: str) -> List[TimeSlot]:
        return slots_for(self.schedule, selected_date)
