"""
Month-by-month navigation of the displayed budget period.

Moving the displayed period by one month only ever changes a category's
effective goal to an adjacent record, so every cursor is repaired locally
instead of being re-derived from the whole history. Jumps of several months
are expressed as repeated single steps.
"""

import logging
from typing import Optional

from budget_state import OrganizedBudgetState
from periods import Direction, Period, advance, months_between

logger = logging.getLogger(__name__)


def navigate(
    state: OrganizedBudgetState,
    direction: Direction,
    current: Period
) -> bool:
    """
    Step the displayed period one month and repair every cursor.

    Browsing into the future is not allowed: a ``next`` step while the
    real-world current period is displayed leaves the state untouched.

    Args:
        state: Budget state to update in place
        direction: Direction.PREVIOUS or Direction.NEXT
        current: Real-world current period

    Returns:
        True if the displayed period changed, False for a blocked step.
    """
    if direction is Direction.NEXT and state.displayed_period >= current:
        logger.debug("Ignoring navigation past the current period %s", current)
        return False

    new_period = advance(state.displayed_period, direction)
    state.displayed_period = new_period

    moved = 0
    for category in state.categories():
        if category.timeline.repair_cursor(direction, new_period):
            moved += 1

    logger.debug("Displayed period is now %s (%d cursors moved)", new_period, moved)
    return True


def navigate_to(
    state: OrganizedBudgetState,
    target: Period,
    current: Period,
    max_steps: Optional[int] = None
) -> int:
    """
    Walk the displayed period to ``target`` one month at a time.

    Args:
        state: Budget state to update in place
        target: Period to display
        current: Real-world current period (targets beyond it stop there)
        max_steps: Optional cap on the number of steps taken

    Returns:
        Number of steps actually taken.
    """
    distance = months_between(state.displayed_period, target)
    direction = Direction.NEXT if distance > 0 else Direction.PREVIOUS
    remaining = abs(distance)
    if max_steps is not None:
        remaining = min(remaining, max_steps)

    steps = 0
    while steps < remaining:
        if not navigate(state, direction, current):
            break
        steps += 1
    return steps
