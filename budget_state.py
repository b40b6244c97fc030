"""
Organized budget state.

The whole budget model for one session is a single value: an Income and an
Expenses hierarchy (a main category plus ordered subcategories) and the
period currently displayed. Categories are owned by exactly one hierarchy,
so snapshots taken with ``OrganizedBudgetState.snapshot`` are independent
copies that can be swapped back in to roll a failed write back.
"""

import copy
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from exceptions import BudgetError, CategoryNotFoundError, TimelineInvariantError
from goal_timeline import GoalRecord, GoalTimeline
from periods import Period

logger = logging.getLogger(__name__)


class CategoryType(enum.Enum):
    """Enumeration of budget category types."""
    INCOME = "Income"
    EXPENSES = "Expenses"


@dataclass
class BudgetCategory:
    """
    A main category or subcategory with its goal history.

    Attributes:
        id: Category identifier assigned by the backing store
        name: Display name (None for the main Income/Expenses category)
        type: Income or Expenses
        order: Position among the subcategories of its type (None for main)
        timeline: Goal records and effective-goal cursor
    """
    id: str
    name: Optional[str]
    type: CategoryType
    order: Optional[int]
    timeline: GoalTimeline

    @property
    def is_main(self) -> bool:
        return self.name is None

    @property
    def goals(self) -> List[GoalRecord]:
        return self.timeline.records

    @property
    def goal_index(self) -> int:
        return self.timeline.cursor

    @property
    def effective_goal(self) -> Decimal:
        """Amount of the goal effective for the displayed period."""
        return self.timeline.effective.amount

    def __repr__(self) -> str:
        return (
            f"<BudgetCategory(id='{self.id}', name={self.name!r}, type={self.type.value}, "
            f"order={self.order}, goals={len(self.timeline)}, cursor={self.timeline.cursor})>"
        )


@dataclass
class OrganizedBudget:
    """Main category of one type plus its ordered subcategories."""
    main: BudgetCategory
    subcategories: List[BudgetCategory] = field(default_factory=list)

    def index_of(self, category_id: str) -> int:
        """Return the position of a subcategory by id, or -1."""
        for index, category in enumerate(self.subcategories):
            if category.id == category_id:
                return index
        return -1


@dataclass
class OrganizedBudgetState:
    """
    Complete budget model for a session.

    Attributes:
        income: Income hierarchy
        expenses: Expenses hierarchy
        displayed_period: Period currently browsed
    """
    income: OrganizedBudget
    expenses: OrganizedBudget
    displayed_period: Period

    def budget(self, category_type: CategoryType) -> OrganizedBudget:
        """Return the hierarchy for a category type."""
        if category_type is CategoryType.INCOME:
            return self.income
        return self.expenses

    def categories(self) -> Iterator[BudgetCategory]:
        """Iterate every category: each main category followed by its subcategories."""
        for category_type in CategoryType:
            organized = self.budget(category_type)
            yield organized.main
            yield from organized.subcategories

    def find(self, category_id: str) -> Tuple[OrganizedBudget, BudgetCategory]:
        """
        Locate a category by id.

        Returns:
            Tuple of (owning hierarchy, category)

        Raises:
            CategoryNotFoundError: If no category has the id
        """
        for category_type in CategoryType:
            organized = self.budget(category_type)
            if organized.main.id == category_id:
                return organized, organized.main
            index = organized.index_of(category_id)
            if index != -1:
                return organized, organized.subcategories[index]
        raise CategoryNotFoundError(
            "Budget category not found",
            details={"budget_category_id": category_id}
        )

    def snapshot(self) -> "OrganizedBudgetState":
        """Return an independent deep copy used for rollback."""
        return copy.deepcopy(self)

    def verify(self) -> None:
        """
        Check every timeline and cursor against the displayed period.

        Raises:
            TimelineInvariantError: On the first inconsistent category
        """
        for category in self.categories():
            try:
                category.timeline.verify(self.displayed_period)
            except TimelineInvariantError as exc:
                exc.details.setdefault("budget_category_id", category.id)
                raise


def _to_amount(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def organize_budgets(
    rows: Iterable[Dict[str, Any]],
    displayed_period: Period
) -> OrganizedBudgetState:
    """
    Group flat category/goal rows into an organized state.

    Each row carries ``budget_category_id``, ``name``, ``type``,
    ``category_order``, ``goal``, ``year`` and ``month``. Rows without a
    name belong to the main category of their type. Subcategories are sorted
    by ``category_order`` (missing orders first) and every cursor is placed
    on the goal effective for ``displayed_period``.

    Args:
        rows: Category/goal rows from the backing store
        displayed_period: Period the session starts on

    Returns:
        OrganizedBudgetState ready for navigation and edits

    Raises:
        BudgetError: If a main category is missing
        TimelineInvariantError: If a category has two goals for one period
    """
    headers: Dict[str, Dict[str, Any]] = {}
    records: Dict[str, List[GoalRecord]] = {}
    first_seen: List[str] = []

    for row in rows:
        category_id = str(row["budget_category_id"])
        if category_id not in headers:
            headers[category_id] = {
                "name": row.get("name"),
                "type": CategoryType(row["type"]),
                "order": row.get("category_order"),
            }
            records[category_id] = []
            first_seen.append(category_id)
        records[category_id].append(
            GoalRecord(
                period=Period(year=int(row["year"]), month=int(row["month"])),
                amount=_to_amount(row["goal"])
            )
        )

    mains: Dict[CategoryType, BudgetCategory] = {}
    subcategories: Dict[CategoryType, List[BudgetCategory]] = {t: [] for t in CategoryType}

    for category_id in first_seen:
        header = headers[category_id]
        try:
            timeline = GoalTimeline.from_records(records[category_id], displayed_period)
        except TimelineInvariantError as exc:
            exc.details.setdefault("budget_category_id", category_id)
            raise
        category = BudgetCategory(
            id=category_id,
            name=header["name"],
            type=header["type"],
            order=header["order"],
            timeline=timeline
        )
        if category.is_main:
            if category.type in mains:
                raise BudgetError(
                    "Duplicate main budget category",
                    details={"type": category.type.value, "budget_category_id": category_id}
                )
            mains[category.type] = category
        else:
            subcategories[category.type].append(category)

    for category_type in CategoryType:
        if category_type not in mains:
            raise BudgetError(
                "Missing main budget category",
                details={"type": category_type.value}
            )
        # Stable sort keeps first-seen order for equal orders
        subcategories[category_type].sort(
            key=lambda category: (category.order is not None, category.order or 0)
        )

    state = OrganizedBudgetState(
        income=OrganizedBudget(mains[CategoryType.INCOME], subcategories[CategoryType.INCOME]),
        expenses=OrganizedBudget(mains[CategoryType.EXPENSES], subcategories[CategoryType.EXPENSES]),
        displayed_period=displayed_period
    )
    logger.info(
        "Organized budgets for %s: %d income and %d expense subcategories",
        displayed_period,
        len(state.income.subcategories),
        len(state.expenses.subcategories)
    )
    return state
