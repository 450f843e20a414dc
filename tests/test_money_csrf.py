import pytest

from csrf import generate_csrf_token, validate_csrf_token
from money import format_currency, parse_amount, share_of_cents


def test_parse_amount_accepts_common_inputs() -> None:
    assert parse_amount("1 234,50") == 123_450
    assert parse_amount("1,234.50") == 123_450
    assert parse_amount("₱99") == 9_900
    assert parse_amount("0.005") == 1


@pytest.mark.parametrize("raw", ["", "abc", "-5"])
def test_parse_amount_rejects_bad_input(raw: str) -> None:
    with pytest.raises(ValueError):
        parse_amount(raw)


def test_format_currency_uses_symbol_and_grouping() -> None:
    assert format_currency(123_450, "PHP") == "₱1,234.50"
    assert format_currency(-500, "usd") == "-$5.00"


def test_share_of_cents_rounds_half_up() -> None:
    assert share_of_cents(12_000, 60.0) == 7_200
    assert share_of_cents(1_001, 50.0) == 501


def test_csrf_token_round_trip_and_tampering() -> None:
    token = generate_csrf_token()
    assert validate_csrf_token(token) is True
    assert validate_csrf_token(token + "x") is False
    assert validate_csrf_token("") is False
    assert validate_csrf_token(token, purpose="other-form") is False
