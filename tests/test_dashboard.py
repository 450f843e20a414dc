from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from cache import ExpiringCache
from database import Base
from models import FrequencyType, Income
from money import daily_cents
from schemas import BudgetCategoryIn, BudgetCategoryUpdate, DebtIn, IncomeIn, SavingsGoalIn
from services import (
    CategoryService,
    DashboardService,
    DebtNotFound,
    DebtService,
    IncomeService,
    SavingsGoalNotFound,
    SavingsGoalService,
)


def test_daily_income_per_frequency() -> None:
    assert daily_cents(1_234, FrequencyType.daily) == 1_234
    assert daily_cents(700, FrequencyType.weekly) == 100
    assert daily_cents(36_500, FrequencyType.monthly) == 1_200
    # 1000 / 7 = 142.857...
    assert daily_cents(1_000, FrequencyType.weekly) == 143


def test_setting_income_replaces_previous_one() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        incomes = IncomeService(session, ExpiringCache())
        assert incomes.current() is None
        assert incomes.daily_income_cents() == 0

        first = incomes.set(IncomeIn(amount_cents=70_000, frequency=FrequencyType.weekly))
        second = incomes.set(IncomeIn(amount_cents=5_000, frequency=FrequencyType.daily))

        assert incomes.current().id == second.id
        session.refresh(first)
        assert first.is_active is False
        assert incomes.daily_income_cents() == 5_000


def test_goals_and_debts_track_completion() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goals = SavingsGoalService(session, ExpiringCache())
        goal = goals.create(SavingsGoalIn(name="Laptop", target_amount_cents=50_000))
        assert goal.is_completed is False
        goal = goals.contribute(goal.id, 50_000)
        assert goal.is_completed is True

        debts = DebtService(session, ExpiringCache())
        debt = debts.create(
            DebtIn(name="Card", principal_amount_cents=10_000, start_date=date(2026, 1, 1))
        )
        assert debt.current_balance_cents == 10_000
        debt = debts.record_payment(debt.id, 12_000)
        assert debt.current_balance_cents == 0
        assert debt.is_paid is True
        with pytest.raises(ValueError, match="already paid"):
            debts.record_payment(debt.id, 100)


def test_dashboard_summary_combines_budget_goals_and_debts() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        cache = ExpiringCache()
        IncomeService(session, cache).set(
            IncomeIn(amount_cents=365_000, frequency=FrequencyType.monthly)
        )
        categories = CategoryService(session, cache)
        categories.ensure_predetermined()
        essentials = categories.get_by_slug("essentials")
        categories.update(essentials.id, BudgetCategoryUpdate(percentage=50))
        categories.create(
            BudgetCategoryIn(name="Groceries", percentage=10, parent_id=essentials.id)
        )

        goals = SavingsGoalService(session, cache)
        goals.create(
            SavingsGoalIn(name="Trip", target_amount_cents=10_000, current_amount_cents=2_500)
        )
        goals.create(
            SavingsGoalIn(name="Phone", target_amount_cents=5_000, current_amount_cents=5_000)
        )

        debts = DebtService(session, cache)
        loan = debts.create(
            DebtIn(name="Loan", principal_amount_cents=20_000, start_date=date(2026, 1, 1))
        )
        debts.record_payment(loan.id, 5_000)
        paid = debts.create(
            DebtIn(name="Old card", principal_amount_cents=3_000, start_date=date(2025, 6, 1))
        )
        debts.record_payment(paid.id, 3_000)

        summary = DashboardService(session, cache).summary()

        assert summary["daily_income_cents"] == 12_000
        rows = {row["name"]: row for row in summary["categories"]}
        assert "Groceries" not in rows
        assert rows["Essentials"]["percentage"] == pytest.approx(60.0)
        assert rows["Essentials"]["amount_cents"] == 7_200
        assert summary["total_budget_percentage"] == pytest.approx(60.0)
        assert summary["over_budget"] is False
        assert summary["total_savings_cents"] == 7_500
        assert summary["total_savings_target_cents"] == 15_000
        assert summary["savings_progress"] == pytest.approx(50.0)
        assert summary["completed_goals"] == 1
        assert summary["active_goals"] == 1
        assert summary["total_debt_cents"] == 15_000
        assert summary["active_debts"] == 1


def test_dashboard_is_cached_until_a_mutation() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        cache = ExpiringCache()
        dashboard = DashboardService(session, cache)
        incomes = IncomeService(session, cache)

        assert dashboard.summary()["daily_income_cents"] == 0

        # Written behind the services: the cached summary is still served.
        session.add(
            Income(amount_cents=700, frequency=FrequencyType.daily, start_date=date(2026, 1, 1))
        )
        session.commit()
        assert dashboard.summary()["income"] is None
        assert dashboard.summary(force_refresh=True)["daily_income_cents"] == 700

        incomes.set(IncomeIn(amount_cents=2_100, frequency=FrequencyType.weekly))
        summary = dashboard.summary()
        assert summary["daily_income_cents"] == 300
        assert summary["income"]["frequency"] == "weekly"


def test_missing_goals_and_debts_raise_typed_errors() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        with pytest.raises(SavingsGoalNotFound):
            SavingsGoalService(session, ExpiringCache()).contribute(404, 100)
        with pytest.raises(DebtNotFound):
            DebtService(session, ExpiringCache()).delete(404)
