"""
Unit tests for subcategory creation, moves, reordering and removal.
"""

from decimal import Decimal

import pytest

import category_registry
from budget_state import CategoryType
from conftest import CURRENT
from exceptions import BudgetError, CategoryNotFoundError
from periods import Period


class TestAddCategory:
    """Tests for add_category."""

    def test_appends_with_next_order(self, sample_state):
        """Test that a new subcategory goes last with the next order."""
        category = category_registry.add_category(
            sample_state, CategoryType.EXPENSES, "exp-new", "Travel", Decimal("250")
        )
        assert sample_state.expenses.subcategories[-1] is category
        assert category.order == 3
        assert category.type is CategoryType.EXPENSES

    def test_single_goal_at_displayed_period(self, sample_state):
        """Test that a new subcategory starts with one goal at the displayed period."""
        sample_state.displayed_period = Period(2023, 8)
        category = category_registry.add_category(
            sample_state, CategoryType.INCOME, "inc-new", "Bonus", Decimal("90")
        )
        assert len(category.goals) == 1
        assert category.goals[0].period == Period(2023, 8)
        assert category.goal_index == 0
        assert category.effective_goal == Decimal("90")


class TestRetype:
    """Tests for moving a subcategory between types."""

    def test_moves_between_sequences(self, sample_state):
        """Test moving a subcategory to the other type."""
        moved = category_registry.retype(sample_state, "inc-free", CategoryType.EXPENSES)
        assert [c.id for c in sample_state.income.subcategories] == ["inc-salary"]
        assert sample_state.expenses.subcategories[-1] is moved
        assert moved.type is CategoryType.EXPENSES
        assert moved.order == 3

    def test_keeps_goal_history(self, sample_state):
        """Test that a moved subcategory keeps its goals."""
        goals_before = list(sample_state.find("inc-free")[1].goals)
        moved = category_registry.retype(sample_state, "inc-free", CategoryType.EXPENSES)
        assert moved.goals == goals_before
        assert moved.effective_goal == Decimal("1000")

    def test_same_type_is_noop(self, sample_state):
        """Test that retyping to the current type changes nothing."""
        before = sample_state.snapshot()
        category_registry.retype(sample_state, "inc-free", CategoryType.INCOME)
        assert sample_state == before

    def test_removes_by_identity(self, sample_state):
        """Test that the moved object itself is removed, not a look-alike."""
        # Two subcategories that differ only by id
        category_registry.add_category(sample_state, CategoryType.INCOME, "twin-a", "Twin", Decimal("1"))
        twin_b = category_registry.add_category(sample_state, CategoryType.INCOME, "twin-b", "Twin", Decimal("1"))
        category_registry.retype(sample_state, "twin-b", CategoryType.EXPENSES)
        assert [c.id for c in sample_state.income.subcategories] == ["inc-salary", "inc-free", "twin-a"]
        assert sample_state.expenses.subcategories[-1] is twin_b

    def test_main_category_cannot_move(self, sample_state):
        """Test that main categories are never retyped."""
        with pytest.raises(BudgetError):
            category_registry.retype(sample_state, "inc-main", CategoryType.EXPENSES)

    def test_unknown_category(self, sample_state):
        with pytest.raises(CategoryNotFoundError):
            category_registry.retype(sample_state, "missing", CategoryType.EXPENSES)


class TestUpdateCategory:
    """Tests for rename and combined updates."""

    def test_rename(self, sample_state):
        """Test renaming a subcategory."""
        category = category_registry.rename(sample_state, "exp-food", "Groceries")
        assert category.name == "Groceries"
        assert sample_state.expenses.subcategories[1].name == "Groceries"

    def test_rename_and_retype(self, sample_state):
        """Test renaming and retyping in one update."""
        category = category_registry.update_category(
            sample_state, "exp-rent", name="Sublet", category_type=CategoryType.INCOME
        )
        assert category.name == "Sublet"
        assert category.type is CategoryType.INCOME
        assert sample_state.income.subcategories[-1] is category
        assert "exp-rent" not in [c.id for c in sample_state.expenses.subcategories]

    def test_main_category_cannot_be_renamed(self, sample_state):
        """Test that main categories cannot be renamed."""
        with pytest.raises(BudgetError):
            category_registry.update_category(sample_state, "exp-main", name="Spending")


class TestReorder:
    """Tests for replacing a subcategory sequence."""

    def test_assigns_dense_orders(self, sample_state):
        """Test that reordering assigns orders 0..n-1 and returns the old sequence."""
        previous = category_registry.reorder(
            sample_state, CategoryType.EXPENSES, ["exp-utilities", "exp-rent", "exp-food"]
        )
        assert [c.id for c in previous] == ["exp-rent", "exp-food", "exp-utilities"]
        assert [(c.id, c.order) for c in sample_state.expenses.subcategories] == [
            ("exp-utilities", 0), ("exp-rent", 1), ("exp-food", 2)
        ]

    def test_swaps_the_whole_sequence(self, sample_state):
        """Test that reordering replaces the sequence object."""
        original = sample_state.income.subcategories
        category_registry.reorder(sample_state, CategoryType.INCOME, ["inc-free", "inc-salary"])
        assert sample_state.income.subcategories is not original

    @pytest.mark.parametrize("ids", [
        ["exp-rent", "exp-food"],
        ["exp-rent", "exp-food", "exp-food"],
        ["exp-rent", "exp-food", "exp-utilities", "inc-free"],
        ["exp-rent", "exp-food", "missing"],
    ])
    def test_rejects_non_permutations(self, sample_state, ids):
        """Test that incomplete or foreign id lists are rejected without changes."""
        before = sample_state.snapshot()
        with pytest.raises(BudgetError):
            category_registry.reorder(sample_state, CategoryType.EXPENSES, ids)
        assert sample_state == before


class TestRemove:
    """Tests for deleting subcategories."""

    def test_removes_category_and_history(self, sample_state):
        """Test deleting a subcategory with its goals."""
        removed = category_registry.remove(sample_state, "inc-salary")
        assert removed.id == "inc-salary"
        assert [c.id for c in sample_state.income.subcategories] == ["inc-free"]
        with pytest.raises(CategoryNotFoundError):
            sample_state.find("inc-salary")

    def test_unknown_category(self, sample_state):
        with pytest.raises(CategoryNotFoundError):
            category_registry.remove(sample_state, "missing")

    def test_main_category_cannot_be_removed(self, sample_state):
        """Test that main categories cannot be deleted."""
        with pytest.raises(BudgetError):
            category_registry.remove(sample_state, "inc-main")

    def test_state_stays_consistent(self, sample_state):
        """Test that cursors stay valid after a removal."""
        category_registry.remove(sample_state, "exp-food")
        sample_state.verify()
        assert sample_state.displayed_period == CURRENT
