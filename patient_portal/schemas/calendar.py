from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, computed_field


class CalendarDayState(BaseModel):
    """Classification of one day cell, derived on every render."""

    model_config = ConfigDict(frozen=True)

    year: int
    month: int  # 1-12
    day: int
    is_past: bool = False
    is_available: bool = False
    is_booked: bool = False
    is_selected: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def date(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    @computed_field  # type: ignore[misc]
    @property
    def is_selectable(self) -> bool:
        return not self.is_past and self.is_available and not self.is_booked

    @computed_field  # type: ignore[misc]
    @property
    def classification(self) -> str:
        if self.is_selected:
            return "selected"
        if self.is_past:
            return "past"
        if self.is_booked:
            return "booked"
        if self.is_available:
            return "available"
        return "neutral"


class CalendarMonth(BaseModel):
    year: int
    month: int
    title: str
    weekdays: List[str]
    weeks: List[List[Optional[CalendarDayState]]]
