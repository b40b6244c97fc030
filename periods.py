"""
Budget period arithmetic.

A budget period is a calendar month identified by (month, year). Periods are
totally ordered by year, then month, and move one month at a time across
year boundaries.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

logger = logging.getLogger(__name__)

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December"
]

MONTH_ABBREVIATIONS = [
    "Jan.", "Feb.", "Mar.", "Apr.", "May", "Jun.",
    "Jul.", "Aug.", "Sep.", "Oct.", "Nov.", "Dec."
]


class Direction(enum.Enum):
    """Navigation direction for the displayed budget period."""
    PREVIOUS = "previous"
    NEXT = "next"


class PeriodComparison(enum.Enum):
    """Result of comparing one period against another."""
    BEFORE = -1
    SAME = 0
    AFTER = 1


@dataclass(frozen=True, order=True)
class Period:
    """
    A budgeting cycle (calendar month).

    Field order matters: dataclass ordering compares ``year`` first and then
    ``month``, which is the total order periods follow.

    Attributes:
        year: Calendar year
        month: Calendar month (1-12)
    """
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    @classmethod
    def from_date(cls, value: date) -> "Period":
        """Return the period containing the given date."""
        return cls(year=value.year, month=value.month)

    def first_day(self) -> date:
        """Return the first calendar day of the period."""
        return date(self.year, self.month, 1)

    def label(self, abbreviated: bool = False) -> str:
        """Return a display label such as ``March 2024`` or ``Mar. 2024``."""
        names = MONTH_ABBREVIATIONS if abbreviated else MONTHS
        return f"{names[self.month - 1]} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def advance(period: Period, direction: Direction) -> Period:
    """
    Move a period one month in the given direction.

    Args:
        period: Starting period
        direction: Direction.PREVIOUS or Direction.NEXT

    Returns:
        The adjacent period, rolling over year boundaries.
    """
    if direction is Direction.PREVIOUS:
        if period.month == 1:
            return Period(year=period.year - 1, month=12)
        return Period(year=period.year, month=period.month - 1)
    if period.month == 12:
        return Period(year=period.year + 1, month=1)
    return Period(year=period.year, month=period.month + 1)


def compare(first: Period, second: Period) -> PeriodComparison:
    """Return whether ``first`` is before, the same as, or after ``second``."""
    if first == second:
        return PeriodComparison.SAME
    if first < second:
        return PeriodComparison.BEFORE
    return PeriodComparison.AFTER


def months_between(start: Period, end: Period) -> int:
    """Return the signed number of single-month steps from ``start`` to ``end``."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def current_period(clock: Optional[Callable[[], date]] = None) -> Period:
    """
    Return the real-world current period.

    Args:
        clock: Optional callable returning today's date (injected in tests)

    Returns:
        Period for today according to the clock.
    """
    today = clock() if clock is not None else date.today()
    return Period.from_date(today)
