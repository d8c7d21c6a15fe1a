"""Purchase scoring for wishlist items.

The purchase score is a 0-100 composite of three weights on a 0-10 scale:

* necessity (40%) - necessity 1..5 mapped onto 2..10
* priority (30%) - priority 1..3 mapped onto 3.33..10
* affordability (30%) - 10 while the cost stays within the safe spend limit
  (15% of the balance), then falling by 5 points for every 100% the cost
  overshoots that limit, never below 0

The status is decided by the balance first and the score second, so an item
the balance cannot cover is never recommended however high it scores.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from .config import SAFE_SPEND_RATIO
from .formatting import format_currency
from .models import WishlistItem

WEIGHTS = {
    'necessity': 0.4,
    'priority': 0.3,
    'affordability': 0.3,
}

RECOMMENDED_SCORE = 70
BORDERLINE_SCORE = 40


class PurchaseStatus(str, Enum):
    CANNOT_AFFORD = "cannot_afford"
    EXCEEDS_SAFE_LIMIT = "exceeds_safe_limit"
    RECOMMENDED = "recommended"
    BORDERLINE = "borderline"
    NOT_RECOMMENDED = "not_recommended"

    @property
    def color(self) -> str:
        return STATUS_COLORS[self]


STATUS_COLORS = {
    PurchaseStatus.CANNOT_AFFORD: "danger",
    PurchaseStatus.EXCEEDS_SAFE_LIMIT: "warning",
    PurchaseStatus.RECOMMENDED: "success",
    PurchaseStatus.BORDERLINE: "caution",
    PurchaseStatus.NOT_RECOMMENDED: "muted",
}


@dataclass(frozen=True)
class PurchaseAssessment:
    purchase_score: int
    status: PurchaseStatus
    message: str
    safe_spend_limit: float

    @property
    def status_color(self) -> str:
        return self.status.color


def map_range(value: float, in_min: float, in_max: float, out_min: float = 0, out_max: float = 10) -> float:
    """Linearly map ``value`` from ``[in_min, in_max]`` onto ``[out_min, out_max]``."""
    return (value - in_min) * (out_max - out_min) / (in_max - in_min) + out_min


def affordability_weight(cost: float, safe_spend_limit: float) -> float:
    if cost <= safe_spend_limit:
        return 10.0
    if safe_spend_limit <= 0:
        # Nothing is safe to spend; any purchase is unaffordable on this axis.
        return 0.0
    return max(0.0, 10 - ((cost - safe_spend_limit) / safe_spend_limit) * 5)


def _round_half_up(value: float) -> int:
    # Math.round semantics: halves go up rather than to the nearest even.
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def calculate_purchase_status(priority: int, necessity: int, cost: float, balance: float) -> PurchaseAssessment:
    """Score a prospective purchase against the current balance."""
    safe_spend_limit = balance * SAFE_SPEND_RATIO

    necessity_weight = map_range(necessity, 1, 5, 2, 10)
    priority_weight = map_range(priority, 1, 3, 3.33, 10)

    purchase_score = _round_half_up(
        (
            necessity_weight * WEIGHTS['necessity']
            + priority_weight * WEIGHTS['priority']
            + affordability_weight(cost, safe_spend_limit) * WEIGHTS['affordability']
        )
        * 10
    )

    if balance < cost:
        status, message = PurchaseStatus.CANNOT_AFFORD, "Cannot Afford"
    elif cost > safe_spend_limit:
        status = PurchaseStatus.EXCEEDS_SAFE_LIMIT
        message = f"Exceeds Safe Limit ({format_currency(safe_spend_limit)})"
    elif purchase_score >= RECOMMENDED_SCORE:
        status, message = PurchaseStatus.RECOMMENDED, "Good to Purchase"
    elif purchase_score >= BORDERLINE_SCORE:
        status, message = PurchaseStatus.BORDERLINE, "Consider Waiting"
    else:
        status, message = PurchaseStatus.NOT_RECOMMENDED, "Not Recommended"

    return PurchaseAssessment(
        purchase_score=purchase_score,
        status=status,
        message=message,
        safe_spend_limit=safe_spend_limit,
    )


def assess_item(item: WishlistItem, balance: float) -> PurchaseAssessment:
    return calculate_purchase_status(int(item.priority), int(item.necessity), item.cost, balance)


def active_items(items: Iterable[WishlistItem]) -> List[WishlistItem]:
    """Items still wanted; purchased ones stay stored but are not scored."""
    return [item for item in items if not item.is_purchased]


def assess_wishlist(items: Iterable[WishlistItem], balance: float) -> List[Tuple[WishlistItem, PurchaseAssessment]]:
    """Active items paired with their assessment.

    The incoming order is kept, which for the store is priority, then
    necessity, then newest first.
    """
    return [(item, assess_item(item, balance)) for item in active_items(items)]
