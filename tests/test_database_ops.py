"""
Tests for the local SQLAlchemy budget store.

Each test runs against a fresh SQLite database in a temporary directory.
"""

from decimal import Decimal

import pytest

from budget_session import BudgetSession
from budget_state import CategoryType, organize_budgets
from database_ops import (
    BudgetCategoryRow,
    BudgetGoalRow,
    DatabaseBudgetStore,
    DatabaseManager,
)
from exceptions import DatabaseError, SynchronizationError
from goal_timeline import GoalRecord, GoalWriteVerb
from periods import Direction, Period


@pytest.fixture
def db_manager(tmp_path):
    """Database manager over a temporary SQLite file."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'budgets.db'}")
    manager.create_tables()
    yield manager
    manager.close()


@pytest.fixture
def main_ids(db_manager):
    """Main category ids seeded for January 2024."""
    return db_manager.ensure_main_categories(
        Period(2024, 1),
        {CategoryType.INCOME: Decimal("5000"), CategoryType.EXPENSES: Decimal("3000")}
    )


@pytest.fixture
def store(db_manager):
    return DatabaseBudgetStore(db_manager)


def goal_count(db_manager, category_id=None):
    session = db_manager.get_session()
    try:
        query = session.query(BudgetGoalRow)
        if category_id is not None:
            query = query.filter(BudgetGoalRow.budget_category_id == category_id)
        return query.count()
    finally:
        session.close()


class TestDatabaseManager:
    """Tests for schema setup and seeding."""

    def test_invalid_connection_string(self):
        """Test that a bad connection string raises DatabaseError."""
        with pytest.raises(DatabaseError):
            DatabaseManager("not-a-database://")

    def test_from_config(self, tmp_path, monkeypatch):
        """Test opening the configured SQLite file with tables in place."""
        monkeypatch.delenv("DB_CONNECTION_STRING", raising=False)
        config = {"database": {"data_dir": str(tmp_path / "store"), "path": "goals.db"}}
        manager = DatabaseManager.from_config(config)
        try:
            assert manager.fetch_budget_rows() == []
            assert (tmp_path / "store" / "goals.db").exists()
        finally:
            manager.close()

    def test_ensure_main_categories_is_idempotent(self, db_manager, main_ids):
        """Test that main categories are created once."""
        again = db_manager.ensure_main_categories(Period(2024, 3))
        assert again == main_ids
        assert goal_count(db_manager) == 2

    def test_fetch_rows(self, db_manager, main_ids):
        """Test the flat row shape returned for main categories."""
        rows = db_manager.fetch_budget_rows()
        assert len(rows) == 2
        income = next(r for r in rows if r["type"] == "Income")
        assert income["budget_category_id"] == main_ids[CategoryType.INCOME]
        assert income["name"] is None
        assert income["goal"] == Decimal("5000")
        assert (income["year"], income["month"]) == (2024, 1)

    def test_rows_organize(self, db_manager, main_ids):
        """Test that stored rows organize into a state."""
        state = organize_budgets(db_manager.fetch_budget_rows(), Period(2024, 3))
        assert state.income.main.effective_goal == Decimal("5000")
        assert state.expenses.main.effective_goal == Decimal("3000")


class TestDatabaseBudgetStore:
    """Tests for the store operations."""

    def test_create_and_overwrite_goal(self, store, db_manager, main_ids):
        """Test creating then overwriting a goal version."""
        income_id = main_ids[CategoryType.INCOME]
        store.create_goal(income_id, GoalRecord(Period(2024, 2), Decimal("5200")))
        store.overwrite_goal(income_id, GoalRecord(Period(2024, 2), Decimal("5300.25")))
        rows = [r for r in store.fetch_budgets() if r["budget_category_id"] == income_id]
        assert [(r["year"], r["month"], r["goal"]) for r in rows] == [
            (2024, 2, Decimal("5300.25")),
            (2024, 1, Decimal("5000")),
        ]

    def test_create_existing_period_conflicts(self, store, main_ids):
        """Test that creating a goal for a stored period fails."""
        with pytest.raises(SynchronizationError) as exc_info:
            store.create_goal(main_ids[CategoryType.INCOME], GoalRecord(Period(2024, 1), Decimal("1")))
        assert exc_info.value.details["operation"] == "create goal"

    def test_overwrite_missing_period_fails(self, store, main_ids):
        """Test that overwriting a goal that does not exist fails."""
        with pytest.raises(SynchronizationError):
            store.overwrite_goal(main_ids[CategoryType.INCOME], GoalRecord(Period(2023, 1), Decimal("1")))

    def test_unknown_category_fails(self, store, main_ids):
        """Test writes against an unknown category."""
        with pytest.raises(SynchronizationError):
            store.create_goal("missing", GoalRecord(Period(2024, 1), Decimal("1")))
        with pytest.raises(SynchronizationError):
            store.update_category("missing", name="X")

    def test_create_category(self, store, main_ids):
        """Test creating a subcategory with its first goal."""
        category_id = store.create_category(
            CategoryType.EXPENSES, "Rent", 0, GoalRecord(Period(2024, 1), Decimal("1500"))
        )
        rows = [r for r in store.fetch_budgets() if r["budget_category_id"] == category_id]
        assert rows == [{
            "budget_category_id": category_id,
            "name": "Rent",
            "type": "Expenses",
            "category_order": 0,
            "goal": Decimal("1500"),
            "year": 2024,
            "month": 1,
        }]

    def test_update_category(self, store, db_manager, main_ids):
        """Test updating name, type and order."""
        category_id = store.create_category(
            CategoryType.EXPENSES, "Rent", 0, GoalRecord(Period(2024, 1), Decimal("1500"))
        )
        store.update_category(category_id, name="Sublet", category_type=CategoryType.INCOME, order=3)
        session = db_manager.get_session()
        try:
            category = session.get(BudgetCategoryRow, category_id)
            assert (category.name, category.type, category.category_order) == ("Sublet", CategoryType.INCOME, 3)
        finally:
            session.close()

    def test_delete_category_removes_goals(self, store, db_manager, main_ids):
        """Test that deleting a category deletes its goals."""
        category_id = store.create_category(
            CategoryType.EXPENSES, "Rent", 0, GoalRecord(Period(2024, 1), Decimal("1500"))
        )
        store.create_goal(category_id, GoalRecord(Period(2024, 2), Decimal("1600")))
        assert goal_count(db_manager, category_id) == 2
        store.delete_category(category_id)
        assert goal_count(db_manager, category_id) == 0
        assert goal_count(db_manager) == 2

    def test_reorder_categories(self, store, db_manager, main_ids):
        """Test that reordering stores list positions as orders."""
        first = store.create_category(CategoryType.INCOME, "A", 0, GoalRecord(Period(2024, 1), Decimal("1")))
        second = store.create_category(CategoryType.INCOME, "B", 1, GoalRecord(Period(2024, 1), Decimal("1")))
        store.reorder_categories([second, first])
        orders = {r["budget_category_id"]: r["category_order"] for r in store.fetch_budgets()}
        assert orders[second] == 0
        assert orders[first] == 1


class TestSessionWithDatabase:
    """End-to-end checks of a session persisting to SQLite."""

    def test_edits_survive_reload(self, store, main_ids, clock):
        """Test that session edits are visible after reloading from the database."""
        session = BudgetSession(store, clock=clock)
        session.load()

        income_id = main_ids[CategoryType.INCOME]
        assert session.update_goal(CategoryType.INCOME, income_id, "5500") is GoalWriteVerb.CREATE
        rent = session.create_category(CategoryType.EXPENSES, " Rent ", "1200")
        session.navigate(Direction.PREVIOUS)
        session.update_goal(CategoryType.EXPENSES, rent.id, 1100)

        reloaded = BudgetSession(store, clock=clock)
        state = reloaded.load()
        assert state.income.main.effective_goal == Decimal("5500")
        assert [c.name for c in state.expenses.subcategories] == ["Rent"]
        assert reloaded.effective_goal(rent.id) == Decimal("1200")
        reloaded.navigate(Direction.PREVIOUS)
        assert reloaded.effective_goal(rent.id) == Decimal("1100")
        assert reloaded.effective_goal(income_id) == Decimal("5000")

    def test_rejected_write_rolls_back_session(self, store, main_ids, clock):
        """Test that a failed database write rolls the session back."""
        session = BudgetSession(store, clock=clock)
        session.load(Period(2024, 1))
        # The stored goal disappears behind the session's back
        store.delete_category(main_ids[CategoryType.EXPENSES])
        with pytest.raises(SynchronizationError):
            session.update_goal(CategoryType.EXPENSES, main_ids[CategoryType.EXPENSES], 10)
        assert session.effective_goal(main_ids[CategoryType.EXPENSES]) == Decimal("3000")
