"""
Productivity Aggregator - Rolling statistics over a user's closed time logs
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import select
from sqlalchemy.orm import Session
from typing import Iterable, Set
from uuid import UUID
import logging

from taskledger.core.clock import Clock, utcnow
from taskledger.core.exceptions import ValidationError
from taskledger.models import TimeLog
from taskledger.schemas.productivity import ProductivityStats, StreaksResponse

logger = logging.getLogger(__name__)

# Fixed target used for utilization; not configurable per user
TARGET_HOURS_PER_DAY = 8


def round2(value: float) -> float:
    """Round half up to 2 decimals (12.345 -> 12.35)"""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def current_streak(active_days: Set[date], today: date, max_days: int) -> int:
    """
    Consecutive days with activity, walking back from today.

    Stops at the first day without activity, so this is the current streak,
    not the longest one. Never looks further back than max_days.
    """
    streak = 0
    for offset in range(max_days):
        if today - timedelta(days=offset) not in active_days:
            break
        streak += 1
    return streak


def summarize(entries: Iterable[TimeLog], window_days: int, today: date) -> ProductivityStats:
    """Stats for closed entries already selected for the window"""
    total_seconds = 0
    active_days = set()
    for entry in entries:
        total_seconds += entry.duration or 0
        active_days.add(entry.start_time.date())

    total_hours = total_seconds / 3600
    target_hours = window_days * TARGET_HOURS_PER_DAY

    return ProductivityStats(
        total_hours=round2(total_hours),
        average_daily_hours=round2(total_hours / window_days),
        streak_days=current_streak(active_days, today, window_days),
        utilization_percent=round2(total_hours / target_hours * 100) if target_hours else 0,
    )


def get_productivity_stats(
    db: Session,
    user_id: UUID,
    window_days: int = 30,
    clock: Clock = utcnow,
) -> ProductivityStats:
    """
    Totals, daily average, current streak and utilization for one user.

    The window starts at midnight `window_days` days ago and ends now; only
    closed entries count, attributed to the day they started. An empty window
    yields all zeros.

    Raises:
        ValidationError: If window_days is less than 1
    """
    if window_days < 1:
        raise ValidationError("window_days must be at least 1")

    now = clock()
    window_start = datetime.combine(now.date() - timedelta(days=window_days), time.min)

    entries = db.scalars(
        select(TimeLog).where(
            TimeLog.user_id == user_id,
            TimeLog.is_active.is_(False),
            TimeLog.start_time >= window_start,
            TimeLog.start_time <= now,
        )
    ).all()

    stats = summarize(entries, window_days, now.date())
    logger.debug(f"📊 Stats for user {user_id} over {window_days} days: {stats}")
    return stats


def get_streaks(db: Session, user_id: UUID, clock: Clock = utcnow) -> StreaksResponse:
    """Stats for the last 14 and last 30 days"""
    return StreaksResponse(
        last_14_days=get_productivity_stats(db, user_id, 14, clock=clock),
        last_30_days=get_productivity_stats(db, user_id, 30, clock=clock),
    )
