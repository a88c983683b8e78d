"""
Aggregate Models

Result types produced by the insights engine and consumed by the
(external) chart renderer. All of them are plain values - no reference
back to the records they were computed from, except DayGroup which
exists to back the grouped list view.
"""

from datetime import date, datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tapmoney.models.expense import CIVIL_TIMEZONE, ExpenseRecord


class TimeWindow(BaseModel):
    """
    Half-open interval [start, end) of aware instants.

    Constructors compute boundaries in the civil timezone, so
    "this month" means the Taipei month even on a machine in UTC.
    """
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode='after')
    def validate_bounds(self) -> 'TimeWindow':
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Time window bounds must be timezone-aware")
        if self.end <= self.start:
            raise ValueError("Time window end must be after start")
        return self

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @classmethod
    def day_of(cls, reference: datetime) -> 'TimeWindow':
        start = _civil_midnight(reference.astimezone(CIVIL_TIMEZONE).date())
        end = _civil_midnight(start.date() + timedelta(days=1))
        return cls(start=start, end=end)

    @classmethod
    def week_of(cls, reference: datetime) -> 'TimeWindow':
        """Monday-to-Monday week containing the reference instant."""
        day = reference.astimezone(CIVIL_TIMEZONE).date()
        monday = day - timedelta(days=day.weekday())
        return cls(
            start=_civil_midnight(monday),
            end=_civil_midnight(monday + timedelta(days=7)),
        )

    @classmethod
    def month_of(cls, reference: datetime) -> 'TimeWindow':
        civil = reference.astimezone(CIVIL_TIMEZONE)
        first = date(civil.year, civil.month, 1)
        if civil.month == 12:
            following = date(civil.year + 1, 1, 1)
        else:
            following = date(civil.year, civil.month + 1, 1)
        return cls(start=_civil_midnight(first), end=_civil_midnight(following))


def _civil_midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=CIVIL_TIMEZONE)


class CategoryTotal(BaseModel):
    """Total spend of one category."""
    model_config = ConfigDict(frozen=True)

    category: str
    total: int

    def as_tuple(self) -> tuple[str, int]:
        return (self.category, self.total)


class DailyTotal(BaseModel):
    """Total spend on one civil day."""
    model_config = ConfigDict(frozen=True)

    day: date
    total: int

    @property
    def start(self) -> datetime:
        """Civil midnight that opens this day."""
        return _civil_midnight(self.day)

    def as_tuple(self) -> tuple[date, int]:
        return (self.day, self.total)


class CategorySeries(BaseModel):
    """Ascending-by-day spend series of one category."""
    model_config = ConfigDict(frozen=True)

    category: str
    points: list[DailyTotal] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(p.total for p in self.points)


class TopItem(BaseModel):
    """A frequently used title or icon."""
    model_config = ConfigDict(frozen=True)

    label: str
    count: int
    total: int


class DayGroup(BaseModel):
    """Records of one civil day, as shown under a date header."""

    day: date
    entries: list[ExpenseRecord] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(e.amount for e in self.entries)


class InsightsReport(BaseModel):
    """Every month view of the insights screen, computed from one snapshot."""

    reference: datetime
    window: TimeWindow
    days_in_month: int
    entry_count: int
    month_total: int
    category_totals: list[CategoryTotal] = Field(default_factory=list)
    daily_totals: list[DailyTotal] = Field(default_factory=list)
    category_series: list[CategorySeries] = Field(default_factory=list)
    daily_entry_counts: dict[int, int] = Field(default_factory=dict)
    top_titles: list[TopItem] = Field(default_factory=list)
    top_icons: list[TopItem] = Field(default_factory=list)

    @property
    def top_category(self) -> Optional[CategoryTotal]:
        return self.category_totals[0] if self.category_totals else None

    def heatmap(self) -> list[int]:
        """Entry count for every day 1..N of the month, zero-filled."""
        return [
            self.daily_entry_counts.get(day, 0)
            for day in range(1, self.days_in_month + 1)
        ]
