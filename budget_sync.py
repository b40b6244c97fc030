"""
Synchronization of local budget edits with a backing store.

Every mutation is applied optimistically to the owned budget state and then
sent to the store. The state is snapshotted first; if the store rejects or
fails the write the snapshot is swapped back in and the error propagates to
the caller, so the state never keeps an unconfirmed change.

Goal edits are sent as "create" or "overwrite" depending on whether a record
already existed for the edited period.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, TypeVar

import category_registry
from budget_state import BudgetCategory, CategoryType, OrganizedBudgetState
from exceptions import PendingWriteError
from goal_timeline import GoalRecord, GoalWriteVerb

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BudgetStore(ABC):
    """
    Abstract interface for budget persistence.

    Implementations raise SynchronizationError when a write is rejected or
    cannot be delivered.
    """

    @abstractmethod
    def fetch_budgets(self) -> List[Dict[str, Any]]:
        """
        Return flat category/goal rows.

        Each row has ``budget_category_id``, ``name``, ``type``,
        ``category_order``, ``goal``, ``year`` and ``month``.
        """

    @abstractmethod
    def create_goal(self, category_id: str, record: GoalRecord) -> None:
        """Persist a new goal version for a period."""

    @abstractmethod
    def overwrite_goal(self, category_id: str, record: GoalRecord) -> None:
        """Overwrite the goal version already stored for a period."""

    @abstractmethod
    def create_category(
        self,
        category_type: CategoryType,
        name: str,
        order: int,
        record: GoalRecord
    ) -> str:
        """Create a subcategory with its initial goal and return its id."""

    @abstractmethod
    def update_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        category_type: Optional[CategoryType] = None,
        order: Optional[int] = None
    ) -> None:
        """Update the name, type and/or order of a subcategory."""

    @abstractmethod
    def delete_category(self, category_id: str) -> None:
        """Delete a subcategory and all of its goals."""

    @abstractmethod
    def reorder_categories(self, category_ids: Sequence[str]) -> None:
        """Store the given ids' positions as their new orders."""


class BudgetSynchronizer:
    """
    Owns a budget state and keeps it consistent with a BudgetStore.

    Attributes:
        store: Backing store receiving every write
        state: Current, confirmed budget state
    """

    def __init__(self, store: BudgetStore, state: OrganizedBudgetState):
        self.store = store
        self.state = state
        self._in_flight: Set[str] = set()

    def _submit(
        self,
        keys: Iterable[str],
        mutate: Callable[[OrganizedBudgetState], T],
        persist: Callable[[T], None]
    ) -> T:
        """
        Apply ``mutate`` locally, then ``persist`` it, rolling back on failure.

        Args:
            keys: Write keys (category ids) that must not have a write in flight
            mutate: Local change; its result is handed to ``persist``
            persist: Store call for the change

        Returns:
            The result of ``mutate``

        Raises:
            PendingWriteError: If a key already has a write in flight
        """
        keys = list(keys)
        busy = [key for key in keys if key in self._in_flight]
        if busy:
            raise PendingWriteError("A write is already in flight", details={"keys": ",".join(busy)})

        snapshot = self.state.snapshot()
        self._in_flight.update(keys)
        try:
            try:
                outcome = mutate(self.state)
            except Exception:
                self.state = snapshot
                raise
            try:
                persist(outcome)
            except Exception:
                logger.warning("Budget write failed; restoring previous state", exc_info=True)
                self.state = snapshot
                raise
        finally:
            self._in_flight.difference_update(keys)
        return outcome

    def has_pending_write(self, category_id: str) -> bool:
        """Return True while a write for the category is unconfirmed."""
        return category_id in self._in_flight

    def record_goal(self, category_id: str, amount: Decimal) -> GoalWriteVerb:
        """
        Set the goal of a category for the displayed period.

        Returns:
            The verb used for the store write.
        """
        def mutate(state: OrganizedBudgetState) -> GoalWriteVerb:
            category = category_registry.find_category(state, category_id)
            return category.timeline.record_goal(state.displayed_period, amount, state.displayed_period)

        def persist(verb: GoalWriteVerb) -> None:
            record = GoalRecord(period=self.state.displayed_period, amount=amount)
            if verb is GoalWriteVerb.OVERWRITE:
                self.store.overwrite_goal(category_id, record)
            else:
                self.store.create_goal(category_id, record)
            logger.info("Goal for %s in %s saved (%s)", category_id, record.period, verb.value)

        return self._submit([category_id], mutate, persist)

    def create_category(self, category_type: CategoryType, name: str, goal: Decimal) -> BudgetCategory:
        """Create a subcategory locally and in the store, adopting the store's id."""
        provisional_id = f"pending-{uuid.uuid4()}"

        def mutate(state: OrganizedBudgetState) -> BudgetCategory:
            return category_registry.add_category(state, category_type, provisional_id, name, goal)

        def persist(category: BudgetCategory) -> None:
            category.id = self.store.create_category(
                category_type, name, category.order, category.timeline.effective
            )

        return self._submit([provisional_id], mutate, persist)

    def update_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        category_type: Optional[CategoryType] = None
    ) -> BudgetCategory:
        """Rename and/or retype a subcategory."""
        current = category_registry.find_category(self.state, category_id)
        moving = category_type is not None and category_type is not current.type

        def mutate(state: OrganizedBudgetState) -> BudgetCategory:
            return category_registry.update_category(state, category_id, name, category_type)

        def persist(category: BudgetCategory) -> None:
            self.store.update_category(
                category_id,
                name=name,
                category_type=category.type if moving else None,
                order=category.order if moving else None
            )

        return self._submit([category_id], mutate, persist)

    def reorder_categories(self, category_type: CategoryType, category_ids: Sequence[str]) -> None:
        """Swap in a new subcategory order."""
        def mutate(state: OrganizedBudgetState) -> List[BudgetCategory]:
            return category_registry.reorder(state, category_type, category_ids)

        def persist(_previous: List[BudgetCategory]) -> None:
            self.store.reorder_categories(list(category_ids))

        self._submit([f"order:{category_type.value}", *category_ids], mutate, persist)

    def delete_category(self, category_id: str) -> BudgetCategory:
        """Remove a subcategory and its goal history."""
        def mutate(state: OrganizedBudgetState) -> BudgetCategory:
            return category_registry.remove(state, category_id)

        def persist(_removed: BudgetCategory) -> None:
            self.store.delete_category(category_id)

        return self._submit([category_id], mutate, persist)
