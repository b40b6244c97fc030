"""
Input validation for budget goals and categories.

Every check runs before the budget state is touched, so a rejected edit never
needs a rollback. Failures raise BudgetValidationError with a
``field -> message`` map in ``details``.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from exceptions import BudgetValidationError
from periods import Period

logger = logging.getLogger(__name__)

MAX_GOAL = Decimal("999999999999.99")
MAX_NAME_LENGTH = 30
MIN_YEAR = 1800
RESERVED_NAMES = ("income", "expenses", "null")


def validate_goal_amount(value: Any, max_goal: Optional[Decimal] = None) -> Decimal:
    """
    Parse and range-check a goal amount.

    Args:
        value: Raw amount (Decimal, int, float or numeric string)
        max_goal: Upper bound (defaults to MAX_GOAL)

    Returns:
        The amount as a Decimal

    Raises:
        BudgetValidationError: If the amount is not a finite number with at
            most two decimal places between 0 and the upper bound
    """
    limit = Decimal(str(max_goal)) if max_goal is not None else MAX_GOAL

    if isinstance(value, bool) or value is None:
        raise BudgetValidationError("Invalid goal", details={"goal": "Goal must be a valid currency amount"})

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise BudgetValidationError("Invalid goal", details={"goal": "Goal must be a valid currency amount"})

    if not amount.is_finite():
        raise BudgetValidationError("Invalid goal", details={"goal": "Goal must be a valid currency amount"})
    if amount < 0:
        raise BudgetValidationError("Invalid goal", details={"goal": "Goal must be $0 or greater"})
    if amount > limit:
        raise BudgetValidationError("Invalid goal", details={"goal": "Goal exceeds the maximum allowed value"})
    if amount.as_tuple().exponent < -2 and amount != amount.quantize(Decimal("0.01")):
        raise BudgetValidationError("Invalid goal", details={"goal": "Goal must have at most two decimal places"})

    return amount.quantize(Decimal("0.01"))


def validate_category_name(value: Any, max_length: int = MAX_NAME_LENGTH) -> str:
    """
    Trim and check a subcategory name.

    Raises:
        BudgetValidationError: If the name is empty, too long or reserved
    """
    if not isinstance(value, str):
        raise BudgetValidationError("Invalid category name", details={"name": "Name must be text"})

    name = value.strip()
    if name.lower() in RESERVED_NAMES:
        raise BudgetValidationError(
            "Invalid category name",
            details={"name": "Category name cannot be 'Income', 'Expenses', or 'null'"}
        )
    if not name:
        raise BudgetValidationError("Invalid category name", details={"name": "Name must be at least 1 character"})
    if len(name) > max_length:
        raise BudgetValidationError(
            "Invalid category name",
            details={"name": f"Name must be at most {max_length} characters"}
        )
    return name


def validate_goal_period(period: Period, current: Period) -> Period:
    """
    Check that a goal may be written for the period.

    Raises:
        BudgetValidationError: For years before 1800 or periods after ``current``
    """
    if period.year < MIN_YEAR:
        raise BudgetValidationError("Invalid period", details={"year": f"Year must be {MIN_YEAR} or later"})
    if period > current:
        raise BudgetValidationError(
            "Invalid period",
            details={"month": "Budget entries cannot be set for future months"}
        )
    return period
