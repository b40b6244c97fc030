"""
Budget reporting module.

Builds pandas summaries of the organized budget state: the full goal history,
monthly Income/Expenses goal totals for the months leading up to the
displayed period, the resulting surplus or deficit, and how much of each main
goal is allocated to subcategories.
"""

import logging
import math
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pandas as pd

from budget_state import BudgetCategory, CategoryType, OrganizedBudgetState
from periods import Direction, Period, advance

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = ['type', 'category_id', 'category', 'year', 'month', 'period', 'goal', 'effective']
TOTALS_COLUMNS = ['year', 'month', 'period', 'income', 'expenses']
ALLOCATION_COLUMNS = ['type', 'goal', 'allocated', 'unallocated']


def goal_at(category: BudgetCategory, period: Period) -> Optional[Decimal]:
    """
    Return the goal a category had for a period, or None before its first goal.

    A goal holds from its period until a later record supersedes it.
    """
    for record in category.goals:
        if record.period <= period:
            return record.amount
    return None


def goal_history_frame(state: OrganizedBudgetState) -> pd.DataFrame:
    """
    Flatten every goal record of every category into a DataFrame.

    Returns:
        DataFrame with columns: type, category_id, category, year, month,
        period, goal, effective (True for each category's cursor record)
    """
    rows: List[Dict[str, Any]] = []
    for category in state.categories():
        for index, record in enumerate(category.goals):
            rows.append({
                'type': category.type.value,
                'category_id': category.id,
                'category': category.name or category.type.value,
                'year': record.period.year,
                'month': record.period.month,
                'period': str(record.period),
                'goal': float(record.amount),
                'effective': index == category.goal_index,
            })

    if not rows:
        return pd.DataFrame(columns=HISTORY_COLUMNS)
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def monthly_goal_totals(state: OrganizedBudgetState, months: int = 6) -> pd.DataFrame:
    """
    Main Income and Expenses goals for the last ``months`` months.

    The window ends at the displayed period and is returned oldest first.
    Months before a category's first goal count as 0.

    Args:
        state: Organized budget state
        months: Number of months in the window

    Returns:
        DataFrame with columns: year, month, period (e.g. "Mar. 2024"),
        income, expenses
    """
    if months <= 0:
        return pd.DataFrame(columns=TOTALS_COLUMNS)

    periods = [state.displayed_period]
    while len(periods) < months:
        periods.append(advance(periods[-1], Direction.PREVIOUS))
    periods.reverse()

    monthly_data = []
    for period in periods:
        income = goal_at(state.income.main, period) or Decimal("0")
        expenses = goal_at(state.expenses.main, period) or Decimal("0")
        monthly_data.append({
            'year': period.year,
            'month': period.month,
            'period': period.label(abbreviated=True),
            'income': float(income),
            'expenses': float(expenses),
        })

    result_df = pd.DataFrame(monthly_data, columns=TOTALS_COLUMNS)
    logger.debug(f"Computed goal totals for {len(result_df)} months ending {state.displayed_period}")
    return result_df


def income_expense_difference(totals: pd.DataFrame) -> Dict[str, Any]:
    """
    Summarize a monthly totals frame as a surplus or deficit.

    Args:
        totals: Output of ``monthly_goal_totals``

    Returns:
        Dictionary with total_income, total_expenses, difference,
        percent_difference (whole percent of income, 0 without income)
        and is_surplus
    """
    total_income = float(totals['income'].sum()) if not totals.empty else 0.0
    total_expenses = float(totals['expenses'].sum()) if not totals.empty else 0.0
    difference = total_income - total_expenses

    percent_difference = 0
    if total_income > 0:
        percent_difference = math.floor(difference / total_income * 100 + 0.5)

    return {
        'total_income': total_income,
        'total_expenses': total_expenses,
        'difference': difference,
        'percent_difference': percent_difference,
        'is_surplus': difference >= 0,
    }


def allocation_summary(state: OrganizedBudgetState) -> pd.DataFrame:
    """
    Compare each main goal with the goals of its subcategories.

    Uses the goals effective for the displayed period.

    Returns:
        DataFrame with columns: type, goal, allocated, unallocated
        (never negative)
    """
    summary = []
    for category_type in CategoryType:
        organized = state.budget(category_type)
        goal = organized.main.effective_goal
        allocated = sum((category.effective_goal for category in organized.subcategories), Decimal("0"))
        summary.append({
            'type': category_type.value,
            'goal': float(goal),
            'allocated': float(allocated),
            'unallocated': float(max(goal - allocated, Decimal("0"))),
        })

    return pd.DataFrame(summary, columns=ALLOCATION_COLUMNS)
