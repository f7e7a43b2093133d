"""Conversion of bid prices and delivery times into comparable base units (USD, days)."""

BASE_CURRENCY = "USD"

# Static rates to USD.
EXCHANGE_RATES = {
    "USD": 1.0,
    "EUR": 1.1,
    "INR": 0.012,
    "GBP": 1.25,
    "JPY": 0.0067,
    "CNY": 0.14,
}

TIME_UNIT_DAYS = {
    "days": 1,
    "weeks": 7,
    "months": 30,
}


def to_base_currency(amount: float, currency: str) -> float:
    """Amount in USD. Unknown currency codes fall back to a rate of 1.0."""
    return amount * EXCHANGE_RATES.get(currency, 1.0)


def to_base_days(duration: float, unit: str) -> float:
    """Duration in days. Unknown units fall back to a multiplier of 1."""
    return duration * TIME_UNIT_DAYS.get(unit, 1)
