import math
from typing import Literal

from pydantic import BaseModel

# Must stay in line with normalizer.EXCHANGE_RATES / TIME_UNIT_DAYS
Currency = Literal["USD", "EUR", "INR", "GBP", "JPY", "CNY"]
TimeUnit = Literal["days", "weeks", "months"]
Phase = Literal["confirmation", "payment", "production", "inspection", "shipping", "delivery"]


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        start = (page - 1) * limit
        return cls(
            current_page=page,
            total_pages=math.ceil(total / limit) if limit else 0,
            total=total,
            has_next=start + limit < total,
            has_prev=start > 0,
        )
