from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat

from allocation import AllocationStrategy
from models import DEFAULT_COLOR, FrequencyType

HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class BudgetCategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    percentage: float = Field(0.0, ge=0, le=100)
    color: str = Field(DEFAULT_COLOR, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, max_length=16)
    order: int = 0
    parent_id: Optional[int] = None


class BudgetCategoryUpdate(BaseModel):
    """Partial update; fields left unset are not touched."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=120)
    percentage: Optional[float] = Field(default=None, ge=0, le=100)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, max_length=16)
    order: Optional[int] = None
    is_active: Optional[bool] = None
    parent_id: Optional[int] = None


class AllocationRequest(BaseModel):
    strategy: AllocationStrategy
    # Not range-checked here; out-of-range values fail per category on apply.
    custom: dict[int, FiniteFloat] = Field(default_factory=dict)


class IncomeIn(BaseModel):
    amount_cents: int = Field(..., ge=0)
    frequency: FrequencyType = FrequencyType.monthly
    start_date: Optional[date] = None


class SavingsGoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_amount_cents: int = Field(..., gt=0)
    current_amount_cents: int = Field(0, ge=0)
    description: Optional[str] = Field(default=None, max_length=500)
    target_date: Optional[date] = None
    color: str = Field("#10b981", pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, max_length=16)
    is_active: bool = True
    order: int = 0


class DebtIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    principal_amount_cents: int = Field(..., ge=0)
    current_balance_cents: Optional[int] = Field(default=None, ge=0)
    interest_rate: float = Field(0.0, ge=0)
    repayment_amount_cents: int = Field(0, ge=0)
    repayment_frequency: FrequencyType = FrequencyType.monthly
    start_date: date
    due_date: Optional[date] = None
    is_active: bool = True
    creditor: Optional[str] = Field(default=None, max_length=120)
    description: Optional[str] = Field(default=None, max_length=500)
    color: str = Field("#ef4444", pattern=HEX_COLOR)


class AmountIn(BaseModel):
    amount_cents: int = Field(..., gt=0)
