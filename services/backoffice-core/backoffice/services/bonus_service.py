"""
Broker commission and monthly bonus calculation
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.models.lead import Lead, LeadStage


# (minimum closed sales, bonus amount in USD), ascending by threshold
BONUS_TIERS: Tuple[Tuple[int, int], ...] = (
    (5, 100),
    (10, 250),
    (15, 450),
    (20, 600),
    (25, 750),
)


@dataclass(frozen=True)
class BonusInfo:
    sales: int
    amount: int
    next_goal: int
    needed_for_next: int

    @property
    def at_top_tier(self) -> bool:
        return self.needed_for_next == 0


def validate_tiers(tiers: Sequence[Tuple[int, int]]) -> None:
    """Thresholds must be positive and strictly increasing, amounts non-decreasing"""
    if not tiers:
        raise ValueError("Bonus table needs at least one tier")
    previous_threshold, previous_amount = 0, 0
    for threshold, amount in tiers:
        if threshold <= previous_threshold:
            raise ValueError(f"Tier threshold {threshold} is not above {previous_threshold}")
        if amount < previous_amount:
            raise ValueError(f"Tier amount {amount} is below the previous tier's {previous_amount}")
        previous_threshold, previous_amount = threshold, amount


def calculate_bonus(sales_count: int, tiers: Sequence[Tuple[int, int]] = BONUS_TIERS) -> BonusInfo:
    """
    Bonus earned for a number of closed sales.

    amount is the bonus of the highest tier reached (0 below the first tier).
    next_goal is the smallest threshold strictly above sales_count; at or past
    the top tier it stays on the top threshold and needed_for_next is 0.
    """
    if isinstance(sales_count, bool) or not isinstance(sales_count, int):
        raise TypeError("sales_count must be an integer")
    if sales_count < 0:
        raise ValueError("sales_count cannot be negative")

    amount = 0
    for threshold, tier_amount in tiers:
        if sales_count >= threshold:
            amount = tier_amount

    for threshold, _ in tiers:
        if threshold > sales_count:
            return BonusInfo(
                sales=sales_count,
                amount=amount,
                next_goal=threshold,
                needed_for_next=threshold - sales_count
            )

    top_threshold = tiers[-1][0]
    return BonusInfo(sales=sales_count, amount=amount, next_goal=top_threshold, needed_for_next=0)


def count_closed_sales(db: Session, staff_id: str, start: datetime, end: datetime) -> int:
    """Won leads owned by a staff member and created inside [start, end]"""
    return db.query(func.count(Lead.id)).filter(
        Lead.owner_id == staff_id,
        Lead.stage == LeadStage.GANADO,
        Lead.created_at >= start,
        Lead.created_at <= end
    ).scalar() or 0


def bonus_for_staff(
    db: Session,
    staff_id: str,
    now: Optional[datetime] = None,
    window_days: Optional[int] = None
) -> BonusInfo:
    """Bonus over the trailing window (30 days unless configured otherwise)"""
    now = now or datetime.utcnow()
    window = timedelta(days=window_days if window_days is not None else settings.BONUS_WINDOW_DAYS)
    sales = count_closed_sales(db, staff_id, now - window, now)
    return calculate_bonus(sales)


validate_tiers(BONUS_TIERS)
