"""
Database operations module for local budget storage.

This module defines the budget category and goal tables with SQLAlchemy ORM
and a DatabaseBudgetStore that implements the budget store interface on top
of them. Supports SQLite by default with easy migration to other databases.
"""

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from budget_state import CategoryType
from budget_sync import BudgetStore
from exceptions import DatabaseError, SynchronizationError
from goal_timeline import GoalRecord
from periods import Period
from utils import resolve_connection_string

# Configure logging
logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone awareness.

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def _new_category_id() -> str:
    return str(uuid.uuid4())


# Base class for declarative models
Base = declarative_base()


class BudgetCategoryRow(Base):
    """
    SQLAlchemy model representing a budget category.

    Attributes:
        budget_category_id: UUID primary key
        type: Income or Expenses
        name: Category name (NULL for the main category of a type)
        category_order: Position among subcategories (NULL for main)
        created_at: Timestamp when the category was created
        updated_at: Timestamp when the category was last updated
    """

    __tablename__ = "budget_categories"

    budget_category_id = Column(String(36), primary_key=True, default=_new_category_id)
    type = Column(Enum(CategoryType), nullable=False, index=True)
    name = Column(String(30), nullable=True)
    category_order = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    goals = relationship(
        "BudgetGoalRow",
        back_populates="category",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        """String representation of the budget category."""
        return (
            f"<BudgetCategoryRow(id='{self.budget_category_id}', type={self.type.value}, "
            f"name={self.name!r}, order={self.category_order})>"
        )


class BudgetGoalRow(Base):
    """
    SQLAlchemy model representing one goal version of a category.

    Attributes:
        id: Auto-incrementing primary key
        budget_category_id: Owning category
        year: Goal year
        month: Goal month (1-12)
        goal: Goal amount
    """

    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    budget_category_id = Column(
        String(36),
        ForeignKey("budget_categories.budget_category_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    goal = Column(Numeric(14, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    category = relationship("BudgetCategoryRow", back_populates="goals")

    __table_args__ = (
        UniqueConstraint("budget_category_id", "year", "month", name="uq_budget_period"),
    )

    def __repr__(self) -> str:
        """String representation of the goal version."""
        return (
            f"<BudgetGoalRow(category='{self.budget_category_id}', "
            f"period={self.year}-{self.month:02d}, goal={self.goal})>"
        )


class DatabaseManager:
    """
    Manages database connections and sessions.

    Callers obtain sessions with ``get_session`` and are responsible for
    closing them.
    """

    def __init__(self, connection_string: str):
        """
        Initialize the database manager.

        Args:
            connection_string: SQLAlchemy connection string (e.g., 'sqlite:///data/budgets.db')

        Raises:
            DatabaseError: If the engine cannot be created
        """
        try:
            self.engine = create_engine(connection_string, echo=False)
            self.SessionLocal = sessionmaker(bind=self.engine)
            logger.info(f"Database manager initialized with connection: {connection_string}")
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise DatabaseError("Failed to initialize database", original_error=e) from e

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "DatabaseManager":
        """Open the database named by the ``database`` config section and create its tables."""
        manager = cls(resolve_connection_string(config))
        manager.create_tables()
        return manager

    def create_tables(self) -> None:
        """
        Create all database tables if they don't exist.

        Raises:
            DatabaseError: If table creation fails
        """
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Database tables created/verified successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise DatabaseError("Failed to create database tables", original_error=e) from e

    def get_session(self) -> Session:
        """
        Get a new database session.

        Note:
            Caller is responsible for closing the session.
        """
        return self.SessionLocal()

    def ensure_main_categories(self, period: Period, goals: Optional[Dict[CategoryType, Decimal]] = None) -> Dict[CategoryType, str]:
        """
        Create the main Income and Expenses categories when missing.

        Args:
            period: Period of the initial goal record
            goals: Optional initial goal per type (defaults to 0)

        Returns:
            Mapping of type to main category id
        """
        goals = goals or {}
        session = self.get_session()
        try:
            ids: Dict[CategoryType, str] = {}
            for category_type in CategoryType:
                main = session.query(BudgetCategoryRow).filter(
                    BudgetCategoryRow.type == category_type,
                    BudgetCategoryRow.name.is_(None)
                ).first()
                if main is None:
                    main = BudgetCategoryRow(type=category_type, name=None, category_order=None)
                    main.goals.append(
                        BudgetGoalRow(
                            year=period.year,
                            month=period.month,
                            goal=goals.get(category_type, Decimal("0"))
                        )
                    )
                    session.add(main)
                    session.flush()
                    logger.info("Created main %s budget category", category_type.value)
                ids[category_type] = main.budget_category_id
            session.commit()
            return ids
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to create main budget categories: {e}")
            raise DatabaseError("Failed to create main budget categories", original_error=e) from e
        finally:
            session.close()

    def fetch_budget_rows(self) -> List[Dict[str, Any]]:
        """
        Return every category/goal pair as a flat row.

        Rows are ordered by type, category order (main first) and newest
        period first.
        """
        session = self.get_session()
        try:
            results = (
                session.query(BudgetCategoryRow, BudgetGoalRow)
                .join(BudgetGoalRow, BudgetGoalRow.budget_category_id == BudgetCategoryRow.budget_category_id)
                .order_by(
                    BudgetCategoryRow.type,
                    BudgetCategoryRow.category_order.is_not(None),
                    BudgetCategoryRow.category_order,
                    BudgetGoalRow.year.desc(),
                    BudgetGoalRow.month.desc()
                )
                .all()
            )
            rows = [
                {
                    "budget_category_id": category.budget_category_id,
                    "name": category.name,
                    "type": category.type.value,
                    "category_order": category.category_order,
                    "goal": Decimal(goal.goal),
                    "year": goal.year,
                    "month": goal.month,
                }
                for category, goal in results
            ]
            logger.debug(f"Retrieved {len(rows)} budget rows")
            return rows
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch budgets: {e}")
            raise DatabaseError("Failed to fetch budgets", original_error=e) from e
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()
        logger.info("Database connections closed")


class DatabaseBudgetStore(BudgetStore):
    """
    Budget store backed by the local database.

    Write failures are reported as SynchronizationError so the synchronizer
    rolls the in-memory state back exactly as it does for API failures.
    """

    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize the store.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db_manager = db_manager
        logger.info("Database budget store initialized")

    def _write(self, operation: str, action) -> Any:
        session = self.db_manager.get_session()
        try:
            result = action(session)
            session.commit()
            return result
        except SynchronizationError:
            session.rollback()
            raise
        except IntegrityError as e:
            session.rollback()
            logger.warning(f"Budget {operation} conflicts with stored data: {e}")
            raise SynchronizationError(
                "Budget write conflicts with stored data",
                details={"operation": operation},
                original_error=e
            ) from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to {operation}: {e}")
            raise SynchronizationError(
                "Budget write failed",
                details={"operation": operation},
                original_error=e
            ) from e
        finally:
            session.close()

    @staticmethod
    def _category(session: Session, category_id: str, operation: str) -> BudgetCategoryRow:
        category = session.get(BudgetCategoryRow, category_id)
        if category is None:
            raise SynchronizationError(
                "Budget category not found",
                details={"operation": operation, "budget_category_id": category_id}
            )
        return category

    def fetch_budgets(self) -> List[Dict[str, Any]]:
        return self.db_manager.fetch_budget_rows()

    def create_goal(self, category_id: str, record: GoalRecord) -> None:
        def action(session: Session) -> None:
            self._category(session, category_id, "create goal")
            session.add(
                BudgetGoalRow(
                    budget_category_id=category_id,
                    year=record.period.year,
                    month=record.period.month,
                    goal=record.amount
                )
            )
            session.flush()

        self._write("create goal", action)

    def overwrite_goal(self, category_id: str, record: GoalRecord) -> None:
        def action(session: Session) -> None:
            goal = session.query(BudgetGoalRow).filter(
                BudgetGoalRow.budget_category_id == category_id,
                BudgetGoalRow.year == record.period.year,
                BudgetGoalRow.month == record.period.month
            ).first()
            if goal is None:
                raise SynchronizationError(
                    "Budget goal not found",
                    details={"budget_category_id": category_id, "period": str(record.period)}
                )
            goal.goal = record.amount
            goal.updated_at = utc_now()

        self._write("overwrite goal", action)

    def create_category(
        self,
        category_type: CategoryType,
        name: str,
        order: int,
        record: GoalRecord
    ) -> str:
        def action(session: Session) -> str:
            category = BudgetCategoryRow(type=category_type, name=name, category_order=order)
            category.goals.append(
                BudgetGoalRow(year=record.period.year, month=record.period.month, goal=record.amount)
            )
            session.add(category)
            session.flush()
            return category.budget_category_id

        category_id = self._write("create category", action)
        logger.info(f"Created budget category '{name}' ({category_type.value})")
        return category_id

    def update_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        category_type: Optional[CategoryType] = None,
        order: Optional[int] = None
    ) -> None:
        def action(session: Session) -> None:
            category = self._category(session, category_id, "update category")
            if name is not None:
                category.name = name
            if category_type is not None:
                category.type = category_type
            if order is not None:
                category.category_order = order
            category.updated_at = utc_now()

        self._write("update category", action)

    def delete_category(self, category_id: str) -> None:
        def action(session: Session) -> None:
            category = self._category(session, category_id, "delete category")
            session.delete(category)

        self._write("delete category", action)
        logger.info(f"Deleted budget category {category_id}")

    def reorder_categories(self, category_ids: Sequence[str]) -> None:
        def action(session: Session) -> None:
            for position, category_id in enumerate(category_ids):
                category = self._category(session, category_id, "reorder categories")
                category.category_order = position

        self._write("reorder categories", action)
