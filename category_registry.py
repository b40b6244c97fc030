"""
Budget category registry operations.

Subcategories live in exactly one ordered sequence per type. Changing a
category's type moves it between the two sequences; reordering swaps a whole
sequence for a permutation of itself so the previous sequence can be kept as
the rollback value. Main categories can be edited only through their goals.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from budget_state import BudgetCategory, CategoryType, OrganizedBudgetState
from exceptions import BudgetError, CategoryNotFoundError
from goal_timeline import GoalTimeline

logger = logging.getLogger(__name__)


def find_category(state: OrganizedBudgetState, category_id: str) -> BudgetCategory:
    """Return a category (main or sub) by id."""
    _, category = state.find(category_id)
    return category


def _find_subcategory(state: OrganizedBudgetState, category_id: str, operation: str) -> BudgetCategory:
    category = find_category(state, category_id)
    if category.is_main:
        raise BudgetError(
            "Main budget categories cannot be changed this way",
            details={"budget_category_id": category_id, "operation": operation}
        )
    return category


def add_category(
    state: OrganizedBudgetState,
    category_type: CategoryType,
    category_id: str,
    name: str,
    goal: Decimal
) -> BudgetCategory:
    """
    Append a new subcategory with a single goal for the displayed period.

    Args:
        state: Budget state to update in place
        category_type: Income or Expenses
        category_id: Identifier for the new category
        name: Category name
        goal: Initial goal amount

    Returns:
        The created BudgetCategory
    """
    organized = state.budget(category_type)
    category = BudgetCategory(
        id=category_id,
        name=name,
        type=category_type,
        order=len(organized.subcategories),
        timeline=GoalTimeline.starting_at(state.displayed_period, goal)
    )
    organized.subcategories.append(category)
    logger.info("Added %s category '%s' (%s)", category_type.value, name, category_id)
    return category


def rename(state: OrganizedBudgetState, category_id: str, name: str) -> BudgetCategory:
    """Rename a subcategory."""
    category = _find_subcategory(state, category_id, "rename")
    category.name = name
    return category


def retype(state: OrganizedBudgetState, category_id: str, new_type: CategoryType) -> BudgetCategory:
    """
    Move a subcategory to the other type's sequence.

    The category keeps its goal history; it is removed from its current
    sequence by identity and appended to the end of the new one.

    Args:
        state: Budget state to update in place
        category_id: Subcategory to move
        new_type: Destination type

    Returns:
        The moved category
    """
    category = _find_subcategory(state, category_id, "retype")
    if category.type is new_type:
        return category

    source = state.budget(category.type).subcategories
    target = state.budget(new_type).subcategories
    for index, candidate in enumerate(source):
        if candidate is category:
            del source[index]
            break

    category.type = new_type
    category.order = len(target)
    target.append(category)
    logger.info("Moved category %s to %s", category_id, new_type.value)
    return category


def update_category(
    state: OrganizedBudgetState,
    category_id: str,
    name: Optional[str] = None,
    category_type: Optional[CategoryType] = None
) -> BudgetCategory:
    """Apply a rename and/or a type change to a subcategory."""
    category = _find_subcategory(state, category_id, "update")
    if category_type is not None and category_type is not category.type:
        retype(state, category_id, category_type)
    if name is not None:
        category.name = name
    return category


def reorder(
    state: OrganizedBudgetState,
    category_type: CategoryType,
    category_ids: Sequence[str]
) -> List[BudgetCategory]:
    """
    Replace a type's subcategory sequence with a permutation of it.

    Order fields are assigned densely from the new positions.

    Args:
        state: Budget state to update in place
        category_type: Type whose sequence is reordered
        category_ids: Every subcategory id of the type, in the new order

    Returns:
        The previous sequence, for rollback.

    Raises:
        BudgetError: If the ids are not a permutation of the current sequence
    """
    organized = state.budget(category_type)
    previous = organized.subcategories
    by_id = {category.id: category for category in previous}

    if len(category_ids) != len(previous) or set(category_ids) != set(by_id):
        raise BudgetError(
            "Category ordering must list every category exactly once",
            details={"type": category_type.value, "expected": len(previous), "received": len(category_ids)}
        )

    reordered = [by_id[category_id] for category_id in category_ids]
    for position, category in enumerate(reordered):
        category.order = position
    organized.subcategories = reordered
    return previous


def remove(state: OrganizedBudgetState, category_id: str) -> BudgetCategory:
    """
    Delete a subcategory together with its whole goal history.

    Returns:
        The removed category

    Raises:
        CategoryNotFoundError: If the id is unknown
    """
    category = _find_subcategory(state, category_id, "remove")
    sequence = state.budget(category.type).subcategories
    for index, candidate in enumerate(sequence):
        if candidate is category:
            del sequence[index]
            logger.info("Removed category %s", category_id)
            return category
    raise CategoryNotFoundError(
        "Budget category not found",
        details={"budget_category_id": category_id}
    )
