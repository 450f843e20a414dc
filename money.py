from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from models import FrequencyType

DAYS_PER_YEAR = Decimal("365")

CURRENCY_SYMBOLS = {"PHP": "₱", "USD": "$", "EUR": "€"}


def parse_amount(value: str) -> int:
    """Parse a user-entered amount such as ``"1 234,50"`` or ``"₱99"`` into cents."""
    clean = value.strip()
    for symbol in CURRENCY_SYMBOLS.values():
        clean = clean.replace(symbol, "")
    clean = clean.replace(" ", "").replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if amount < 0:
        raise ValueError("Amount cannot be negative")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_currency(cents: int, currency_code: Optional[str] = None) -> str:
    symbol = CURRENCY_SYMBOLS.get((currency_code or "PHP").upper(), "")
    sign = "-" if cents < 0 else ""
    return f"{sign}{symbol}{abs(cents) / 100:,.2f}"


def daily_cents(amount_cents: int, frequency: FrequencyType) -> int:
    amount = Decimal(amount_cents)
    if frequency == FrequencyType.daily:
        daily = amount
    elif frequency == FrequencyType.weekly:
        daily = amount / Decimal("7")
    else:
        daily = amount * Decimal("12") / DAYS_PER_YEAR
    return int(daily.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def share_of_cents(total_cents: int, percentage: float) -> int:
    share = Decimal(total_cents) * Decimal(str(percentage)) / Decimal("100")
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
