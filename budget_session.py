"""
Budget session: the single owner of one organized budget state.

A session loads budgets from a store, browses them month by month and routes
every edit through validation and then the synchronizer, which applies the
change optimistically and restores the previous state if the store fails.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Sequence

import period_navigation
from budget_state import BudgetCategory, CategoryType, OrganizedBudgetState, organize_budgets
from budget_sync import BudgetStore, BudgetSynchronizer
from exceptions import BudgetError, BudgetValidationError
from goal_timeline import GoalWriteVerb
from periods import Direction, Period, current_period
from utils import make_clock
from validation import (
    MAX_GOAL,
    MAX_NAME_LENGTH,
    validate_category_name,
    validate_goal_amount,
    validate_goal_period,
)

logger = logging.getLogger(__name__)


class BudgetSession:
    """
    State container for a user's budgets.

    Attributes:
        store: Backing store (HTTP API or local database)
        clock: Callable returning today's date in the budget timezone
    """

    def __init__(
        self,
        store: BudgetStore,
        state: Optional[OrganizedBudgetState] = None,
        clock: Optional[Callable[[], date]] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the session.

        Args:
            store: Backing store receiving every write
            state: Optional already organized state (call ``load`` otherwise)
            clock: Optional clock (defaults to today in the configured timezone)
            config: Optional configuration dictionary (``budgets`` section)
        """
        budgets_config = (config or {}).get("budgets", {})
        self.store = store
        self.clock = clock or make_clock(config)
        self.max_goal = Decimal(str(budgets_config.get("max_goal", MAX_GOAL)))
        self.max_name_length = int(budgets_config.get("max_name_length", MAX_NAME_LENGTH))
        self._sync: Optional[BudgetSynchronizer] = None
        if state is not None:
            self._sync = BudgetSynchronizer(store, state)

    @property
    def current_period(self) -> Period:
        """The real-world current period according to the clock."""
        return current_period(self.clock)

    @property
    def state(self) -> OrganizedBudgetState:
        """The confirmed budget state."""
        return self._synchronizer().state

    @property
    def displayed_period(self) -> Period:
        return self.state.displayed_period

    @property
    def is_loaded(self) -> bool:
        return self._sync is not None

    def _synchronizer(self) -> BudgetSynchronizer:
        if self._sync is None:
            raise BudgetError("Budgets have not been loaded")
        return self._sync

    def load(self, displayed_period: Optional[Period] = None) -> OrganizedBudgetState:
        """
        Fetch budgets from the store and organize them.

        Args:
            displayed_period: Period to start on (defaults to the current period)

        Returns:
            The new organized state
        """
        period = displayed_period or self.current_period
        rows = self.store.fetch_budgets()
        state = organize_budgets(rows, period)
        self._sync = BudgetSynchronizer(self.store, state)
        return state

    def navigate(self, direction: Direction) -> bool:
        """
        Show the previous or next month.

        Returns:
            False if the step was blocked at the current period.
        """
        return period_navigation.navigate(self.state, direction, self.current_period)

    def navigate_to(self, target: Period) -> int:
        """Walk to ``target`` one month at a time; returns the steps taken."""
        return period_navigation.navigate_to(self.state, target, self.current_period)

    def effective_goal(self, category_id: str) -> Decimal:
        """Return the goal effective for the displayed period."""
        _, category = self.state.find(category_id)
        return category.effective_goal

    def category(self, category_id: str) -> BudgetCategory:
        _, category = self.state.find(category_id)
        return category

    def has_pending_write(self, category_id: str) -> bool:
        return self._synchronizer().has_pending_write(category_id)

    def update_goal(self, category_type: CategoryType, category_id: str, amount: Any) -> GoalWriteVerb:
        """
        Set a category's goal for the displayed period.

        Args:
            category_type: Type the category is expected to belong to
            category_id: Main category or subcategory id
            amount: Raw goal amount

        Returns:
            The verb the store write used

        Raises:
            BudgetValidationError: If the amount or period is invalid
            SynchronizationError: If the store rejected the write
        """
        goal = validate_goal_amount(amount, self.max_goal)
        validate_goal_period(self.displayed_period, self.current_period)

        category = self.category(category_id)
        if category.type is not category_type:
            raise BudgetValidationError(
                "Invalid category type",
                details={"type": f"Category belongs to {category.type.value}"}
            )
        return self._synchronizer().record_goal(category_id, goal)

    def create_category(self, category_type: CategoryType, name: Any, goal: Any) -> BudgetCategory:
        """Create a subcategory with an initial goal for the displayed period."""
        clean_name = validate_category_name(name, self.max_name_length)
        amount = validate_goal_amount(goal, self.max_goal)
        validate_goal_period(self.displayed_period, self.current_period)
        return self._synchronizer().create_category(category_type, clean_name, amount)

    def update_category(
        self,
        category_id: str,
        name: Optional[Any] = None,
        category_type: Optional[CategoryType] = None
    ) -> BudgetCategory:
        """Rename and/or retype a subcategory."""
        clean_name = validate_category_name(name, self.max_name_length) if name is not None else None
        return self._synchronizer().update_category(category_id, clean_name, category_type)

    def reorder_categories(self, category_type: CategoryType, category_ids: Sequence[str]) -> None:
        """Apply a new subcategory order for one type."""
        self._synchronizer().reorder_categories(category_type, list(category_ids))

    def delete_category(self, category_id: str) -> BudgetCategory:
        """Delete a subcategory and its goal history."""
        return self._synchronizer().delete_category(category_id)
