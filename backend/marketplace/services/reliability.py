"""Exporter reliability score used as the last ranking tie-break (0 to 10)."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from marketplace.models import ORDER_PHASES, OrderStatus
from marketplace.repositories import Repositories
from marketplace.services.clock import as_utc, utcnow

UNKNOWN_EXPORTER_SCORE = 5.0
MAX_SCORE = 10.0
AGE_POINTS_CAP = 5.0
AGE_DAYS_PER_POINT = 30
HISTORY_ORDERS_CAP = 10
HISTORY_POINTS = 2.5
ON_TIME_POINTS = 2.5


@dataclass(frozen=True)
class ExporterHistory:
    account_age_days: float
    completed_orders: int = 0
    on_time_deliveries: int = 0

    @property
    def on_time_rate(self) -> float:
        if not self.completed_orders:
            return 0.0
        return self.on_time_deliveries / self.completed_orders


def reliability_score(history: Optional[ExporterHistory]) -> float:
    if history is None:
        return UNKNOWN_EXPORTER_SCORE
    age_points = min(max(history.account_age_days, 0) / AGE_DAYS_PER_POINT, AGE_POINTS_CAP)
    volume_points = HISTORY_POINTS * min(history.completed_orders, HISTORY_ORDERS_CAP) / HISTORY_ORDERS_CAP
    on_time_points = ON_TIME_POINTS * history.on_time_rate
    return round(min(age_points + volume_points + on_time_points, MAX_SCORE), 4)


def delivered_on_time(order) -> bool:
    delivery = order.phase(ORDER_PHASES[-1])
    if delivery.completed_at is None:
        return False
    return as_utc(delivery.completed_at) <= as_utc(order.estimated_delivery)


class ReliabilityEstimator:
    """Builds exporter histories from the stores and scores them, memoized per instance."""

    def __init__(self, repos: Repositories, now: Optional[datetime] = None):
        self.repos = repos
        self.now = now or utcnow()
        self._scores: dict[str, float] = {}

    def history(self, exporter_id: str) -> Optional[ExporterHistory]:
        exporter = self.repos.users.get(exporter_id)
        if exporter is None:
            return None
        created_at = as_utc(exporter.created_at) or self.now
        completed = self.repos.orders.list(exporter_id=exporter_id, status=OrderStatus.COMPLETED)
        return ExporterHistory(
            account_age_days=(self.now - created_at).total_seconds() / 86400,
            completed_orders=len(completed),
            on_time_deliveries=sum(1 for order in completed if delivered_on_time(order)),
        )

    def __call__(self, exporter_id: str) -> float:
        if exporter_id not in self._scores:
            self._scores[exporter_id] = reliability_score(self.history(exporter_id))
        return self._scores[exporter_id]
