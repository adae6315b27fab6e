"""
Productivity API - Rolling statistics for the caller
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging

from taskledger.database import get_db
from taskledger.schemas import ProductivityStats, StreaksResponse
from taskledger.core.clock import Clock
from taskledger.core.config import settings
from taskledger.core.dependencies import get_clock, get_current_identity
from taskledger.core.identity import Identity
from taskledger.services import productivity

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/stats", response_model=ProductivityStats)
def get_productivity_stats(
    days: int = Query(settings.DEFAULT_STATS_WINDOW_DAYS, ge=1, le=365, description="Window size in days"),
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    logger.info(f"➡️  Productivity stats ({days} days) request from: {identity.user_id}")
    return productivity.get_productivity_stats(db, identity.user_id, days, clock=clock)


@router.get("/streaks", response_model=StreaksResponse)
def get_streaks(
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """14- and 30-day windows side by side"""
    return productivity.get_streaks(db, identity.user_id, clock=clock)
