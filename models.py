from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


DEFAULT_COLOR = "#3b82f6"


class FrequencyType(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class BudgetCategory(Base, TimestampMixin):
    __tablename__ = "budget_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default=DEFAULT_COLOR)
    icon: Mapped[Optional[str]] = mapped_column(String(16))
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_predetermined: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("budget_categories.id"), index=True
    )

    parent: Mapped[Optional["BudgetCategory"]] = relationship(
        "BudgetCategory", remote_side="BudgetCategory.id", back_populates="subcategories"
    )
    subcategories: Mapped[list["BudgetCategory"]] = relationship(
        "BudgetCategory", back_populates="parent"
    )

    __table_args__ = (
        CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name="ck_budget_category_percentage_range",
        ),
        Index("ix_budget_categories_active_order", "is_active", "order"),
    )

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None


class Income(Base, TimestampMixin):
    __tablename__ = "incomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[FrequencyType] = mapped_column(
        SAEnum(FrequencyType), nullable=False, default=FrequencyType.monthly
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_income_amount_positive"),
    )


class SavingsGoal(Base, TimestampMixin):
    __tablename__ = "savings_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_amount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    description: Mapped[Optional[str]] = mapped_column(Text)
    target_date: Mapped[Optional[date]] = mapped_column(Date)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#10b981")
    icon: Mapped[Optional[str]] = mapped_column(String(16))
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("target_amount_cents > 0", name="ck_goal_target_positive"),
        CheckConstraint("current_amount_cents >= 0", name="ck_goal_current_positive"),
    )

    @property
    def progress(self) -> float:
        if self.target_amount_cents <= 0:
            return 0.0
        return min(100.0, self.current_amount_cents * 100 / self.target_amount_cents)


class Debt(Base, TimestampMixin):
    __tablename__ = "debts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    principal_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_balance_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    interest_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    repayment_amount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    repayment_frequency: Mapped[FrequencyType] = mapped_column(
        SAEnum(FrequencyType), nullable=False, default=FrequencyType.monthly
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    creditor: Mapped[Optional[str]] = mapped_column(String(120))
    description: Mapped[Optional[str]] = mapped_column(Text)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#ef4444")

    __table_args__ = (
        CheckConstraint("principal_amount_cents >= 0", name="ck_debt_principal_positive"),
        CheckConstraint("current_balance_cents >= 0", name="ck_debt_balance_positive"),
        CheckConstraint("interest_rate >= 0", name="ck_debt_interest_positive"),
        Index("ix_debts_active_paid", "is_active", "is_paid"),
    )
