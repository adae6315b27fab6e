"""
Productivity Schemas - Rolling statistics derived from the time ledger
"""

from pydantic import BaseModel


class ProductivityStats(BaseModel):
    total_hours: float = 0
    average_daily_hours: float = 0
    streak_days: int = 0  # Current consecutive-day streak
    utilization_percent: float = 0  # Against an 8 hours/day target


class StreaksResponse(BaseModel):
    last_14_days: ProductivityStats
    last_30_days: ProductivityStats
