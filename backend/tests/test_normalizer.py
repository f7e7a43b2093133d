import pytest

from marketplace.services.normalizer import EXCHANGE_RATES, to_base_currency, to_base_days


def test_known_currencies_convert_to_usd() -> None:
    assert to_base_currency(100, "USD") == 100
    assert to_base_currency(100, "EUR") == pytest.approx(110)
    assert to_base_currency(1000, "INR") == pytest.approx(12)
    assert to_base_currency(1000, "JPY") == pytest.approx(6.7)


def test_unknown_currency_falls_back_to_unit_rate() -> None:
    assert "XYZ" not in EXCHANGE_RATES
    assert to_base_currency(42.5, "XYZ") == 42.5


def test_delivery_time_units_convert_to_days() -> None:
    assert to_base_days(3, "days") == 3
    assert to_base_days(2, "weeks") == 14
    assert to_base_days(2, "months") == 60
    assert to_base_days(5, "fortnights") == 5
