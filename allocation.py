"""Budget allocation strategies.

Everything here is a pure computation over top-level categories: callers pass
the current shares and get back a proposal keyed by category id. Nothing is
persisted and inputs are never mutated; applying a proposal is the job of
``services.AllocationService``.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Mapping, Optional, Sequence, Union

FULL_BUDGET = 100.0

RECOMMENDED_TARGETS: dict[str, float] = {
    "essentials": 50.0,
    "savings": 20.0,
    "lifestyle": 15.0,
    "fun": 10.0,
    "debts": 5.0,
}


class AllocationStrategy(str, Enum):
    equal = "equal"
    proportional = "proportional"
    recommended = "recommended"
    custom = "custom"


class EmptyCategorySetError(ValueError):
    pass


@dataclass(frozen=True)
class CategoryShare:
    id: int
    percentage: float
    slug: Optional[str] = None


@dataclass(frozen=True)
class AllocationLine:
    id: int
    current: float
    proposed: float

    @property
    def delta(self) -> float:
        return self.proposed - self.current


def total_percentage(categories: Sequence[CategoryShare]) -> float:
    return sum(c.percentage for c in categories)


def available_percentage(current_total: float) -> float:
    return max(0.0, FULL_BUDGET - current_total)


def round_percentage(value: float) -> float:
    if not math.isfinite(value):
        raise ValueError("Percentage must be a finite number")
    try:
        rounded = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError("Percentage is out of range") from exc
    return float(rounded)


def _equal(categories: Sequence[CategoryShare], current_total: float) -> dict[int, float]:
    share = available_percentage(current_total) / len(categories)
    return {c.id: c.percentage + share for c in categories}


def _proportional(
    categories: Sequence[CategoryShare], current_total: float
) -> dict[int, float]:
    if current_total <= 0:
        return _equal(categories, current_total)
    available = available_percentage(current_total)
    return {
        c.id: c.percentage + available * (c.percentage / current_total)
        for c in categories
    }


def _recommended(categories: Sequence[CategoryShare]) -> dict[int, float]:
    assigned: dict[int, float] = {}
    matched_slugs: set[str] = set()
    unmatched: list[CategoryShare] = []
    for category in categories:
        slug = category.slug
        if slug in RECOMMENDED_TARGETS and slug not in matched_slugs:
            assigned[category.id] = RECOMMENDED_TARGETS[slug]
            matched_slugs.add(slug)
        else:
            unmatched.append(category)

    # Single pass: the remainder is computed once from the fixed targets.
    remainder = max(0.0, FULL_BUDGET - sum(assigned.values()))
    if unmatched:
        share = remainder / len(unmatched)
        for category in unmatched:
            assigned[category.id] = share
    return {c.id: assigned[c.id] for c in categories}


def _custom(
    categories: Sequence[CategoryShare], custom: Mapping[int, float]
) -> dict[int, float]:
    return {c.id: float(custom.get(c.id, c.percentage)) for c in categories}


def propose_allocation(
    categories: Sequence[CategoryShare],
    current_total: float,
    strategy: Union[AllocationStrategy, str],
    custom: Optional[Mapping[int, float]] = None,
) -> dict[int, float]:
    """Return the proposed percentage for every category in ``categories``.

    ``current_total`` is the percentage already allocated across the whole
    budget, which may include subcategories that are not part of
    ``categories``. Raises ``EmptyCategorySetError`` when there is nothing
    to allocate to and ``ValueError`` for an unknown strategy.
    """
    strategy = AllocationStrategy(strategy)
    if not categories:
        raise EmptyCategorySetError("Cannot allocate budget without categories")

    if strategy == AllocationStrategy.equal:
        return _equal(categories, current_total)
    if strategy == AllocationStrategy.proportional:
        return _proportional(categories, current_total)
    if strategy == AllocationStrategy.recommended:
        return _recommended(categories)
    return _custom(categories, custom or {})


def preview_allocation(
    categories: Sequence[CategoryShare],
    current_total: float,
    strategy: Union[AllocationStrategy, str],
    custom: Optional[Mapping[int, float]] = None,
) -> list[AllocationLine]:
    proposal = propose_allocation(categories, current_total, strategy, custom)
    return [
        AllocationLine(id=c.id, current=c.percentage, proposed=proposal[c.id])
        for c in categories
    ]
