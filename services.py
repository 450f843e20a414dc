from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from allocation import (
    FULL_BUDGET,
    AllocationStrategy,
    CategoryShare,
    EmptyCategorySetError,
    available_percentage,
    preview_allocation,
    propose_allocation,
    round_percentage,
)
from cache import CacheKeys, CacheTTL, ExpiringCache, get_cache
from models import BudgetCategory, Debt, Income, SavingsGoal
from money import daily_cents, share_of_cents
from schemas import (
    BudgetCategoryIn,
    BudgetCategoryUpdate,
    DebtIn,
    IncomeIn,
    SavingsGoalIn,
)

logger = logging.getLogger(__name__)


PREDETERMINED_CATEGORIES: list[dict[str, object]] = [
    {"name": "Debts", "slug": "debts", "color": "#ef4444", "icon": "💳", "order": 1},
    {"name": "Savings", "slug": "savings", "color": "#10b981", "icon": "💰", "order": 2},
    {"name": "Essentials", "slug": "essentials", "color": "#3b82f6", "icon": "🏠", "order": 3},
    {"name": "Lifestyle", "slug": "lifestyle", "color": "#8b5cf6", "icon": "🎯", "order": 4},
    {"name": "Fun", "slug": "fun", "color": "#f59e0b", "icon": "🎉", "order": 5},
]

# Every cache entry derived from budget data; cleared on any mutation.
BUDGET_CACHE_KEYS = (
    CacheKeys.CATEGORIES,
    CacheKeys.DASHBOARD,
    CacheKeys.INCOME,
    CacheKeys.SAVINGS_GOALS,
    CacheKeys.DEBTS,
)


class CategoryNotFound(ValueError):
    pass


class SavingsGoalNotFound(ValueError):
    pass


class DebtNotFound(ValueError):
    pass


class PredeterminedCategoryError(ValueError):
    pass


class CategoryHasSubcategories(ValueError):
    pass


class InvalidParentCategory(ValueError):
    pass


class AllocationApplyError(RuntimeError):
    def __init__(self, failed: dict[int, str], applied: dict[int, float]) -> None:
        self.failed = failed
        self.applied = applied
        super().__init__(
            f"Failed to allocate budget. Please try again. "
            f"({len(failed)} of {len(failed) + len(applied)} categories not updated)"
        )


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug or "category"


def build_children_index(
    categories: Iterable[BudgetCategory],
) -> dict[Optional[int], list[BudgetCategory]]:
    """Group categories by parent id; top-level categories sit under ``None``.

    Categories whose parent is not in ``categories`` are treated as top-level.
    """
    rows = list(categories)
    known = {c.id for c in rows}
    index: dict[Optional[int], list[BudgetCategory]] = {}
    for category in rows:
        parent_id = category.parent_id if category.parent_id in known else None
        index.setdefault(parent_id, []).append(category)
    for children in index.values():
        children.sort(key=lambda c: (c.order, c.id))
    return index


def category_to_dict(category: BudgetCategory) -> dict[str, object]:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "percentage": category.percentage,
        "color": category.color,
        "icon": category.icon,
        "order": category.order,
        "is_active": category.is_active,
        "is_predetermined": category.is_predetermined,
        "parent_id": category.parent_id,
        "created_at": category.created_at.isoformat() if category.created_at else None,
        "updated_at": category.updated_at.isoformat() if category.updated_at else None,
    }


def income_to_dict(income: Income) -> dict[str, object]:
    return {
        "id": income.id,
        "amount_cents": income.amount_cents,
        "frequency": income.frequency.value,
        "is_active": income.is_active,
        "start_date": income.start_date.isoformat(),
    }


def goal_to_dict(goal: SavingsGoal) -> dict[str, object]:
    return {
        "id": goal.id,
        "name": goal.name,
        "target_amount_cents": goal.target_amount_cents,
        "current_amount_cents": goal.current_amount_cents,
        "description": goal.description,
        "target_date": goal.target_date.isoformat() if goal.target_date else None,
        "color": goal.color,
        "icon": goal.icon,
        "is_completed": goal.is_completed,
        "is_active": goal.is_active,
        "order": goal.order,
        "progress": round(goal.progress, 2),
    }


def debt_to_dict(debt: Debt) -> dict[str, object]:
    return {
        "id": debt.id,
        "name": debt.name,
        "principal_amount_cents": debt.principal_amount_cents,
        "current_balance_cents": debt.current_balance_cents,
        "interest_rate": debt.interest_rate,
        "repayment_amount_cents": debt.repayment_amount_cents,
        "repayment_frequency": debt.repayment_frequency.value,
        "start_date": debt.start_date.isoformat(),
        "due_date": debt.due_date.isoformat() if debt.due_date else None,
        "is_paid": debt.is_paid,
        "is_active": debt.is_active,
        "creditor": debt.creditor,
        "description": debt.description,
        "color": debt.color,
    }


def _invalidate(cache: ExpiringCache) -> None:
    for key in BUDGET_CACHE_KEYS:
        cache.clear(key)


class CategoryService:
    def __init__(self, session: Session, cache: Optional[ExpiringCache] = None) -> None:
        self.session = session
        self.cache = cache if cache is not None else get_cache()

    def ensure_predetermined(self) -> int:
        existing = set(
            self.session.scalars(
                select(BudgetCategory.slug).where(
                    BudgetCategory.slug.in_([c["slug"] for c in PREDETERMINED_CATEGORIES])
                )
            ).all()
        )
        created = 0
        for seed in PREDETERMINED_CATEGORIES:
            if seed["slug"] in existing:
                continue
            self.session.add(
                BudgetCategory(**seed, percentage=0.0, is_predetermined=True, is_active=True)
            )
            created += 1
        if created:
            self.session.commit()
            _invalidate(self.cache)
            logger.info(f"seeded_predetermined_categories: created={created}")
        return created

    def list_all(self, include_inactive: bool = False) -> list[BudgetCategory]:
        stmt = select(BudgetCategory).order_by(BudgetCategory.order, BudgetCategory.id)
        if not include_inactive:
            stmt = stmt.where(BudgetCategory.is_active.is_(True))
        return self.session.scalars(stmt).all()

    def top_level(self) -> list[BudgetCategory]:
        # Active children of an inactive parent count as top-level, as in tree().
        return build_children_index(self.list_all()).get(None, [])

    def get(self, category_id: int) -> BudgetCategory:
        category = self.session.get(BudgetCategory, category_id)
        if not category:
            raise CategoryNotFound("Category not found")
        return category

    def get_by_slug(self, slug: str) -> Optional[BudgetCategory]:
        return self.session.scalar(select(BudgetCategory).where(BudgetCategory.slug == slug))

    def tree(self) -> list[dict[str, object]]:
        """Active top-level categories, each carrying its active subcategories.

        Seeds the predetermined categories first, so the first read of a fresh
        database already shows them.
        """
        cached = self.cache.get(CacheKeys.CATEGORIES)
        if cached is not None:
            return cached

        self.ensure_predetermined()
        index = build_children_index(self.list_all())
        nodes = []
        for category in index.get(None, []):
            node = category_to_dict(category)
            node["subcategories"] = [
                category_to_dict(child) for child in index.get(category.id, [])
            ]
            nodes.append(node)
        self.cache.set(CacheKeys.CATEGORIES, nodes, CacheTTL.MEDIUM)
        return nodes

    def total_percentage(self) -> float:
        total = self.session.scalar(
            select(func.coalesce(func.sum(BudgetCategory.percentage), 0.0)).where(
                BudgetCategory.is_active.is_(True)
            )
        )
        return float(total or 0.0)

    def _has_subcategories(self, category_id: int) -> bool:
        return (
            self.session.scalar(
                select(BudgetCategory.id)
                .where(BudgetCategory.parent_id == category_id)
                .limit(1)
            )
            is not None
        )

    def _unique_slug(self, name: str) -> str:
        base = slugify(name)
        taken = set(
            self.session.scalars(
                select(BudgetCategory.slug).where(
                    (BudgetCategory.slug == base) | BudgetCategory.slug.like(f"{base}-%")
                )
            ).all()
        )
        if base not in taken:
            return base
        suffix = 2
        while f"{base}-{suffix}" in taken:
            suffix += 1
        return f"{base}-{suffix}"

    def _validate_parent(
        self, parent_id: int, category: Optional[BudgetCategory] = None
    ) -> BudgetCategory:
        if category is not None and parent_id == category.id:
            raise InvalidParentCategory("A category cannot be its own parent")
        parent = self.session.get(BudgetCategory, parent_id)
        if not parent:
            raise InvalidParentCategory("Parent category not found")
        if parent.parent_id is not None:
            raise InvalidParentCategory("Subcategories cannot have subcategories")
        if category is not None and self._has_subcategories(category.id):
            raise InvalidParentCategory(
                "A category with subcategories cannot become a subcategory"
            )
        return parent

    def create(self, data: BudgetCategoryIn) -> BudgetCategory:
        if data.parent_id is not None:
            self._validate_parent(data.parent_id)
        category = BudgetCategory(
            name=data.name.strip(),
            slug=self._unique_slug(data.name),
            percentage=data.percentage,
            color=data.color,
            icon=data.icon,
            order=data.order,
            parent_id=data.parent_id,
            is_predetermined=False,
            is_active=True,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        _invalidate(self.cache)
        return category

    def update(self, category_id: int, data: BudgetCategoryUpdate) -> BudgetCategory:
        category = self.get(category_id)
        fields = data.model_fields_set

        if "name" in fields and data.name is not None:
            name = data.name.strip()
            if category.is_predetermined and name != category.name:
                raise PredeterminedCategoryError("Cannot rename predetermined categories")
            category.name = name

        if "slug" in fields and data.slug is not None:
            if category.is_predetermined and data.slug != category.slug:
                raise PredeterminedCategoryError(
                    "Cannot change the slug of predetermined categories"
                )
            slug = slugify(data.slug)
            if slug != category.slug:
                other = self.get_by_slug(slug)
                if other is not None and other.id != category.id:
                    raise ValueError("Category with this slug already exists")
                category.slug = slug

        if "parent_id" in fields and data.parent_id != category.parent_id:
            if category.is_predetermined:
                raise PredeterminedCategoryError("Predetermined categories cannot be nested")
            if data.parent_id is not None:
                self._validate_parent(data.parent_id, category)
            category.parent_id = data.parent_id

        for attr in ("percentage", "color", "order", "is_active"):
            value = getattr(data, attr)
            if attr in fields and value is not None:
                setattr(category, attr, value)
        if "icon" in fields:
            category.icon = data.icon

        self.session.commit()
        self.session.refresh(category)
        _invalidate(self.cache)
        return category

    def set_percentage(self, category_id: int, percentage: float) -> BudgetCategory:
        if not 0 <= percentage <= 100:
            raise ValueError("Percentage must be between 0 and 100")
        category = self.get(category_id)
        category.percentage = percentage
        self.session.commit()
        _invalidate(self.cache)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        if category.is_predetermined:
            raise PredeterminedCategoryError("Cannot delete predetermined categories")
        if self._has_subcategories(category.id):
            raise CategoryHasSubcategories(
                "Cannot delete category with subcategories. Delete subcategories first."
            )
        self.session.delete(category)
        self.session.commit()
        _invalidate(self.cache)


@dataclass
class AllocationResult:
    strategy: AllocationStrategy
    applied: dict[int, float] = field(default_factory=dict)


class AllocationService:
    def __init__(self, session: Session, cache: Optional[ExpiringCache] = None) -> None:
        self.session = session
        self.cache = cache if cache is not None else get_cache()
        self.categories = CategoryService(session, self.cache)

    def _shares(self) -> tuple[list[BudgetCategory], list[CategoryShare], float]:
        top_level = self.categories.top_level()
        shares = [
            CategoryShare(id=c.id, percentage=c.percentage, slug=c.slug) for c in top_level
        ]
        return top_level, shares, self.categories.total_percentage()

    def propose(
        self,
        strategy: Union[AllocationStrategy, str],
        custom: Optional[Mapping[int, float]] = None,
    ) -> dict[int, float]:
        _, shares, current_total = self._shares()
        try:
            return propose_allocation(shares, current_total, strategy, custom)
        except EmptyCategorySetError as exc:
            raise ValueError("Please add some categories before allocating budget.") from exc

    def preview(
        self,
        strategy: Union[AllocationStrategy, str],
        custom: Optional[Mapping[int, float]] = None,
    ) -> dict[str, object]:
        strategy = AllocationStrategy(strategy)
        top_level, shares, current_total = self._shares()
        try:
            lines = preview_allocation(shares, current_total, strategy, custom)
        except EmptyCategorySetError as exc:
            raise ValueError("Please add some categories before allocating budget.") from exc

        daily_income = IncomeService(self.session, self.cache).daily_income_cents()
        by_id = {c.id: c for c in top_level}
        proposed_total = current_total + sum(line.delta for line in lines)
        return {
            "strategy": strategy.value,
            "current_total": current_total,
            "available": available_percentage(current_total),
            "proposed_total": proposed_total,
            "over_budget": proposed_total > 100,
            "daily_income_cents": daily_income,
            "lines": [
                {
                    "id": line.id,
                    "name": by_id[line.id].name,
                    "color": by_id[line.id].color,
                    "current": line.current,
                    "proposed": line.proposed,
                    "delta": line.delta,
                    "daily_amount_cents": (
                        share_of_cents(daily_income, line.proposed)
                        if 0 <= line.proposed <= FULL_BUDGET
                        else None
                    ),
                }
                for line in lines
            ],
        }

    def apply(
        self,
        strategy: Union[AllocationStrategy, str],
        custom: Optional[Mapping[int, float]] = None,
    ) -> AllocationResult:
        """Write a proposal back, one independent update per category.

        Updates that succeed stay committed even when others fail; failures
        are collected and raised together as ``AllocationApplyError``.
        """
        strategy = AllocationStrategy(strategy)
        proposal = self.propose(strategy, custom)
        result = AllocationResult(strategy=strategy)
        failed: dict[int, str] = {}
        for category_id, percentage in proposal.items():
            try:
                value = round_percentage(percentage)
                self.categories.set_percentage(category_id, value)
            except ValueError as exc:
                self.session.rollback()
                logger.warning(
                    f"allocation_update_rejected: category_id={category_id} value={percentage} reason={exc}"
                )
                failed[category_id] = str(exc)
            except SQLAlchemyError as exc:
                self.session.rollback()
                logger.exception(f"allocation_update_failed: category_id={category_id}")
                failed[category_id] = str(exc)
            else:
                result.applied[category_id] = value

        _invalidate(self.cache)
        logger.info(
            f"allocation_applied: strategy={strategy.value} "
            f"applied={len(result.applied)} failed={len(failed)}"
        )
        if failed:
            raise AllocationApplyError(failed, result.applied)
        return result


class IncomeService:
    def __init__(self, session: Session, cache: Optional[ExpiringCache] = None) -> None:
        self.session = session
        self.cache = cache if cache is not None else get_cache()

    def current(self) -> Optional[Income]:
        stmt = (
            select(Income)
            .where(Income.is_active.is_(True))
            .order_by(Income.created_at.desc(), Income.id.desc())
            .limit(1)
        )
        return self.session.scalar(stmt)

    def set(self, data: IncomeIn) -> Income:
        self.session.execute(
            update(Income).where(Income.is_active.is_(True)).values(is_active=False)
        )
        income = Income(
            amount_cents=data.amount_cents,
            frequency=data.frequency,
            start_date=data.start_date or date.today(),
            is_active=True,
        )
        self.session.add(income)
        self.session.commit()
        self.session.refresh(income)
        _invalidate(self.cache)
        return income

    def daily_income_cents(self) -> int:
        income = self.current()
        if income is None:
            return 0
        return daily_cents(income.amount_cents, income.frequency)


class SavingsGoalService:
    def __init__(self, session: Session, cache: Optional[ExpiringCache] = None) -> None:
        self.session = session
        self.cache = cache if cache is not None else get_cache()

    def list_all(self, include_inactive: bool = False) -> list[SavingsGoal]:
        stmt = select(SavingsGoal).order_by(SavingsGoal.order, SavingsGoal.id)
        if not include_inactive:
            stmt = stmt.where(SavingsGoal.is_active.is_(True))
        return self.session.scalars(stmt).all()

    def get(self, goal_id: int) -> SavingsGoal:
        goal = self.session.get(SavingsGoal, goal_id)
        if not goal:
            raise SavingsGoalNotFound("Savings goal not found")
        return goal

    @staticmethod
    def _sync_completed(goal: SavingsGoal) -> None:
        goal.is_completed = goal.current_amount_cents >= goal.target_amount_cents

    def create(self, data: SavingsGoalIn) -> SavingsGoal:
        goal = SavingsGoal(**data.model_dump())
        self._sync_completed(goal)
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        _invalidate(self.cache)
        return goal

    def update(self, goal_id: int, data: SavingsGoalIn) -> SavingsGoal:
        goal = self.get(goal_id)
        for name, value in data.model_dump().items():
            setattr(goal, name, value)
        self._sync_completed(goal)
        self.session.commit()
        self.session.refresh(goal)
        _invalidate(self.cache)
        return goal

    def contribute(self, goal_id: int, amount_cents: int) -> SavingsGoal:
        if amount_cents <= 0:
            raise ValueError("Contribution must be positive")
        goal = self.get(goal_id)
        goal.current_amount_cents += amount_cents
        self._sync_completed(goal)
        self.session.commit()
        _invalidate(self.cache)
        return goal

    def delete(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        self.session.delete(goal)
        self.session.commit()
        _invalidate(self.cache)


class DebtService:
    def __init__(self, session: Session, cache: Optional[ExpiringCache] = None) -> None:
        self.session = session
        self.cache = cache if cache is not None else get_cache()

    def list_all(self, include_inactive: bool = False) -> list[Debt]:
        stmt = select(Debt).order_by(Debt.is_paid, Debt.due_date.is_(None), Debt.due_date, Debt.id)
        if not include_inactive:
            stmt = stmt.where(Debt.is_active.is_(True))
        return self.session.scalars(stmt).all()

    def get(self, debt_id: int) -> Debt:
        debt = self.session.get(Debt, debt_id)
        if not debt:
            raise DebtNotFound("Debt not found")
        return debt

    def create(self, data: DebtIn) -> Debt:
        values = data.model_dump()
        if values["current_balance_cents"] is None:
            values["current_balance_cents"] = data.principal_amount_cents
        debt = Debt(**values)
        debt.is_paid = debt.current_balance_cents == 0
        self.session.add(debt)
        self.session.commit()
        self.session.refresh(debt)
        _invalidate(self.cache)
        return debt

    def update(self, debt_id: int, data: DebtIn) -> Debt:
        debt = self.get(debt_id)
        for name, value in data.model_dump().items():
            if name == "current_balance_cents" and value is None:
                continue
            setattr(debt, name, value)
        debt.is_paid = debt.current_balance_cents == 0
        self.session.commit()
        self.session.refresh(debt)
        _invalidate(self.cache)
        return debt

    def record_payment(self, debt_id: int, amount_cents: int) -> Debt:
        if amount_cents <= 0:
            raise ValueError("Payment must be positive")
        debt = self.get(debt_id)
        if debt.is_paid:
            raise ValueError("Debt is already paid")
        debt.current_balance_cents = max(0, debt.current_balance_cents - amount_cents)
        debt.is_paid = debt.current_balance_cents == 0
        self.session.commit()
        _invalidate(self.cache)
        return debt

    def delete(self, debt_id: int) -> None:
        debt = self.get(debt_id)
        self.session.delete(debt)
        self.session.commit()
        _invalidate(self.cache)


class DashboardService:
    def __init__(self, session: Session, cache: Optional[ExpiringCache] = None) -> None:
        self.session = session
        self.cache = cache if cache is not None else get_cache()

    def summary(self, force_refresh: bool = False) -> dict[str, object]:
        if not force_refresh:
            cached = self.cache.get(CacheKeys.DASHBOARD)
            if cached is not None:
                return cached

        categories = CategoryService(self.session, self.cache)
        categories.ensure_predetermined()
        incomes = IncomeService(self.session, self.cache)
        income = incomes.current()
        daily_income = incomes.daily_income_cents()

        index = build_children_index(categories.list_all())
        category_rows = []
        for category in index.get(None, []):
            percentage = category.percentage + sum(
                child.percentage for child in index.get(category.id, [])
            )
            category_rows.append(
                {
                    "id": category.id,
                    "name": category.name,
                    "percentage": percentage,
                    "amount_cents": share_of_cents(daily_income, percentage),
                    "color": category.color,
                }
            )
        total_budget = categories.total_percentage()

        goals = SavingsGoalService(self.session, self.cache).list_all()
        total_savings = sum(g.current_amount_cents for g in goals)
        total_target = sum(g.target_amount_cents for g in goals)
        debts = DebtService(self.session, self.cache).list_all()
        unpaid = [d for d in debts if not d.is_paid]

        data = {
            "income": income_to_dict(income) if income else None,
            "daily_income_cents": daily_income,
            "categories": category_rows,
            "total_budget_percentage": total_budget,
            "over_budget": total_budget > 100,
            "savings_goals": [goal_to_dict(g) for g in goals],
            "total_savings_cents": total_savings,
            "total_savings_target_cents": total_target,
            "savings_progress": (total_savings * 100 / total_target) if total_target else 0.0,
            "debts": [debt_to_dict(d) for d in debts],
            "total_debt_cents": sum(d.current_balance_cents for d in unpaid),
            "completed_goals": sum(1 for g in goals if g.is_completed),
            "active_goals": sum(1 for g in goals if not g.is_completed),
            "active_debts": len(unpaid),
        }
        self.cache.set(CacheKeys.DASHBOARD, data, CacheTTL.MEDIUM)
        return data
