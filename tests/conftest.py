"""
Shared fixtures for the budget goal tests.

The sample data is displayed on March 2024 with a real-world "today" of
2024-03-15 unless a test says otherwise.
"""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from budget_state import organize_budgets  # noqa: E402
from budget_sync import BudgetStore  # noqa: E402
from goal_timeline import GoalRecord, GoalTimeline  # noqa: E402
from periods import Period  # noqa: E402

TODAY = date(2024, 3, 15)
CURRENT = Period(2024, 3)


def row(category_id, name, category_type, order, year, month, goal):
    """Build one category/goal row as returned by a budget store."""
    return {
        "budget_category_id": category_id,
        "name": name,
        "type": category_type,
        "category_order": order,
        "goal": goal,
        "year": year,
        "month": month,
    }


def make_timeline(entries, displayed=None):
    """Build a timeline from ``((year, month), amount)`` pairs in any order."""
    records = [GoalRecord(Period(*period), Decimal(str(amount))) for period, amount in entries]
    return GoalTimeline.from_records(records, displayed)


@pytest.fixture
def sample_rows():
    """Rows for two main categories and five subcategories, deliberately unsorted."""
    return [
        row("inc-free", "Freelance", "Income", 1, 2023, 11, 800),
        row("inc-main", None, "Income", None, 2023, 12, 4500),
        row("exp-food", "Food", "Expenses", 1, 2024, 2, 550),
        row("inc-main", None, "Income", None, 2024, 3, 5000),
        row("exp-main", None, "Expenses", None, 2023, 10, 2800),
        row("inc-salary", "Salary", "Income", 0, 2024, 2, 4000),
        row("exp-rent", "Rent", "Expenses", 0, 2023, 1, 1500),
        row("inc-free", "Freelance", "Income", 1, 2024, 3, 1000),
        row("exp-main", None, "Expenses", None, 2024, 1, 3000),
        row("exp-utilities", "Utilities", "Expenses", 2, 2023, 9, "200.00"),
        row("inc-main", None, "Income", None, 2023, 6, 4000),
        row("exp-food", "Food", "Expenses", 1, 2024, 3, 600),
    ]


@pytest.fixture
def sample_state(sample_rows):
    """Organized state displayed on the current period."""
    return organize_budgets(sample_rows, CURRENT)


@pytest.fixture
def clock():
    """Clock pinned to 2024-03-15."""
    return lambda: TODAY


@pytest.fixture
def mock_store(sample_rows):
    """Budget store double returning the sample rows."""
    store = Mock(spec=BudgetStore)
    store.fetch_budgets.return_value = sample_rows
    store.create_category.return_value = "srv-1"
    return store
