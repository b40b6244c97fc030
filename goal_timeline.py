"""
Versioned budget goals.

Each budget category keeps a history of goal amounts, one record per period,
sorted from the most recent period to the oldest. A cursor points at the
record that is effective for the period currently displayed: the latest
record whose period is at or before the displayed period, or the oldest
record when every record lies in the future of the displayed period.

Edits and month-by-month navigation keep the cursor consistent by looking at
the records adjacent to it instead of rescanning the history. A binary search
is only used when an edit lands away from the cursor.
"""

import bisect
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from exceptions import TimelineInvariantError
from periods import Direction, Period

logger = logging.getLogger(__name__)


class GoalWriteVerb(enum.Enum):
    """How a goal edit must be persisted."""
    CREATE = "create"
    OVERWRITE = "overwrite"


@dataclass
class GoalRecord:
    """
    A goal amount tied to one budget period.

    Attributes:
        period: Period the goal starts applying from
        amount: Goal amount
    """
    period: Period
    amount: Decimal

    def to_payload(self) -> Dict[str, Any]:
        """Return the request body used by the budget endpoints."""
        return {"year": self.period.year, "month": self.period.month, "goal": float(self.amount)}


def _descending_key(record: GoalRecord) -> int:
    return -(record.period.year * 12 + record.period.month)


def _period_key(period: Period) -> int:
    return -(period.year * 12 + period.month)


@dataclass
class GoalTimeline:
    """
    Goal history of a single category plus its effective-goal cursor.

    Attributes:
        records: Goal records sorted descending by period, no duplicate periods
        cursor: Index of the record effective for the displayed period
    """
    records: List[GoalRecord] = field(default_factory=list)
    cursor: int = 0

    @classmethod
    def starting_at(cls, period: Period, amount: Decimal) -> "GoalTimeline":
        """Create a timeline holding a single record, effective immediately."""
        return cls(records=[GoalRecord(period=period, amount=amount)], cursor=0)

    @classmethod
    def from_records(
        cls,
        records: Iterable[GoalRecord],
        displayed_period: Optional[Period] = None
    ) -> "GoalTimeline":
        """
        Build a timeline from unordered records.

        Args:
            records: Goal records in any order
            displayed_period: Period used to place the cursor (newest record if None)

        Returns:
            A verified timeline.

        Raises:
            TimelineInvariantError: If records are empty or share a period
        """
        ordered = sorted(records, key=lambda record: record.period, reverse=True)
        timeline = cls(records=ordered, cursor=0)
        if displayed_period is not None and ordered:
            timeline.cursor = timeline.locate(displayed_period)
        timeline.verify()
        return timeline

    def __len__(self) -> int:
        return len(self.records)

    @property
    def effective(self) -> GoalRecord:
        """The record effective for the displayed period (O(1))."""
        self._check_cursor()
        return self.records[self.cursor]

    def _check_cursor(self) -> None:
        if not 0 <= self.cursor < len(self.records):
            raise TimelineInvariantError(
                "Goal cursor out of bounds",
                details={"cursor": self.cursor, "records": len(self.records)}
            )

    def _search(self, period: Period, lo: int, hi: int) -> int:
        """Return the first index in [lo, hi) whose period is at or before ``period``."""
        return bisect.bisect_left(self.records, _period_key(period), lo, hi, key=_descending_key)

    def locate(self, displayed_period: Period) -> int:
        """
        Derive the effective index for a displayed period from scratch.

        Used when loading a timeline and by consistency checks; navigation
        and edits keep the cursor up to date incrementally instead.
        """
        if not self.records:
            raise TimelineInvariantError("Goal timeline has no records")
        index = self._search(displayed_period, 0, len(self.records))
        return min(index, len(self.records) - 1)

    def find(self, period: Period) -> Optional[int]:
        """Return the index of the record for ``period``, or None."""
        index = self._search(period, 0, len(self.records))
        if index < len(self.records) and self.records[index].period == period:
            return index
        return None

    def record_goal(
        self,
        period: Period,
        amount: Decimal,
        displayed_period: Optional[Period] = None
    ) -> GoalWriteVerb:
        """
        Insert or overwrite the goal for a period.

        Editing the effective record overwrites it in place. A period more
        recent than the effective record is inserted at the cursor and
        becomes effective; an older period is inserted after the cursor and
        the cursor stays put. Edits that land beyond the neighbouring
        records fall back to a binary search so the ordering always holds.

        When ``displayed_period`` is given, two edge cases keep the cursor
        effective for it: a newer record that lies in the future of the
        displayed period does not take over, and while every record is in
        the future of the displayed period the newly inserted oldest record
        does.

        Args:
            period: Period being edited
            amount: New goal amount
            displayed_period: Period currently displayed, if known

        Returns:
            GoalWriteVerb.OVERWRITE if a record for the period existed,
            GoalWriteVerb.CREATE if a new record was inserted.
        """
        effective = self.effective

        if effective.period == period:
            effective.amount = amount
            return GoalWriteVerb.OVERWRITE

        if period > effective.period:
            newer_neighbour = self.records[self.cursor - 1] if self.cursor > 0 else None
            if newer_neighbour is None or period < newer_neighbour.period:
                self._insert(self.cursor, period, amount)
                if displayed_period is not None and period > displayed_period:
                    self.cursor += 1
                logger.debug("Inserted goal for %s; cursor at %d", period, self.cursor)
                return GoalWriteVerb.CREATE

            index = self._search(period, 0, self.cursor)
            if self.records[index].period == period:
                self.records[index].amount = amount
                return GoalWriteVerb.OVERWRITE
            self._insert(index, period, amount)
            self.cursor += 1
            logger.debug("Inserted future goal for %s at %d; cursor now %d", period, index, self.cursor)
            return GoalWriteVerb.CREATE

        last = len(self.records) - 1
        older_neighbour = self.records[self.cursor + 1] if self.cursor < last else None
        if older_neighbour is None or period > older_neighbour.period:
            self._insert(self.cursor + 1, period, amount)
            if displayed_period is not None and effective.period > displayed_period:
                self.cursor += 1
            logger.debug("Inserted past goal for %s; cursor at %d", period, self.cursor)
            return GoalWriteVerb.CREATE

        index = self._search(period, self.cursor + 1, len(self.records))
        if index < len(self.records) and self.records[index].period == period:
            self.records[index].amount = amount
            return GoalWriteVerb.OVERWRITE
        self._insert(index, period, amount)
        logger.debug("Inserted past goal for %s at %d", period, index)
        return GoalWriteVerb.CREATE

    def _insert(self, index: int, period: Period, amount: Decimal) -> None:
        self.records.insert(index, GoalRecord(period=period, amount=amount))
        # Only the new record's neighbours can be out of order after an insert
        if index > 0 and not self.records[index - 1].period > period:
            raise TimelineInvariantError(
                "Goal inserted out of order",
                details={"period": str(period), "index": index}
            )
        if index + 1 < len(self.records) and not period > self.records[index + 1].period:
            raise TimelineInvariantError(
                "Goal inserted out of order",
                details={"period": str(period), "index": index}
            )

    def repair_cursor(self, direction: Direction, displayed_period: Period) -> bool:
        """
        Move the cursor after the displayed period stepped one month.

        Going back, the cursor falls to older records while the effective
        record lies in the future of the new period. Going forward, it adopts
        newer records that have become current. With at most one record per
        month each loop runs at most once.

        Args:
            direction: Direction the displayed period moved
            displayed_period: The newly displayed period

        Returns:
            True if the cursor moved.
        """
        self._check_cursor()
        start = self.cursor

        if direction is Direction.PREVIOUS:
            boundary = len(self.records) - 1
            while self.cursor != boundary and self.records[self.cursor].period > displayed_period:
                self.cursor += 1
        else:
            while self.cursor != 0 and self.records[self.cursor - 1].period <= displayed_period:
                self.cursor -= 1

        if self.cursor != start:
            logger.debug("Goal cursor moved %d -> %d for %s", start, self.cursor, displayed_period)
            return True
        return False

    def is_effective_for(self, displayed_period: Period) -> bool:
        """Return True if the cursor satisfies the effectiveness rule."""
        return self.cursor == self.locate(displayed_period)

    def verify(self, displayed_period: Optional[Period] = None) -> None:
        """
        Check ordering, uniqueness and cursor bounds.

        Args:
            displayed_period: When given, also check the cursor is effective for it

        Raises:
            TimelineInvariantError: On any violation
        """
        if not self.records:
            raise TimelineInvariantError("Goal timeline has no records")
        for newer, older in zip(self.records, self.records[1:]):
            if newer.period == older.period:
                raise TimelineInvariantError(
                    "Duplicate goal period",
                    details={"period": str(newer.period)}
                )
            if newer.period < older.period:
                raise TimelineInvariantError(
                    "Goal timeline is not sorted",
                    details={"newer": str(newer.period), "older": str(older.period)}
                )
        self._check_cursor()
        if displayed_period is not None and not self.is_effective_for(displayed_period):
            raise TimelineInvariantError(
                "Goal cursor is not effective for the displayed period",
                details={
                    "cursor": self.cursor,
                    "expected": self.locate(displayed_period),
                    "displayed": str(displayed_period),
                }
            )
