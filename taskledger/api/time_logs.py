"""
Time Logs API - Timers, manual entries, corrections and approval
"""

from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from taskledger.database import get_db
from taskledger.schemas import (
    InvoiceSelection, TimeLogCreate, TimeLogResponse, TimeLogUpdate, TimerStart, TimerStop,
)
from taskledger.core.clock import Clock
from taskledger.core.dependencies import get_clock, get_current_identity
from taskledger.core.identity import Identity
from taskledger.services import time_ledger

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/start", response_model=TimeLogResponse, status_code=status.HTTP_201_CREATED)
def start_timer(
    payload: TimerStart,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Start a timer - a running timer of the caller is stopped first"""
    logger.info(f"➡️  Start timer request from: {identity.user_id}")
    return time_ledger.start_timer(
        db,
        identity,
        payload.description,
        task_id=payload.task_id,
        project_id=payload.project_id,
        clock=clock,
    )


@router.post("/stop", response_model=TimeLogResponse)
def stop_timer(
    payload: TimerStop,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """
    Stop a running timer.

    Raises:
        404: Time log not found
        403: Not the owner (and not admin)
        409: Timer is not active
    """
    logger.info(f"➡️  Stop timer {payload.time_log_id} request from: {identity.user_id}")
    return time_ledger.stop_timer(db, payload.time_log_id, identity, clock=clock)


@router.get("/active", response_model=Optional[TimeLogResponse])
def get_active_timer(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """The caller's running timer, or null"""
    return time_ledger.get_active_timer(db, identity.user_id)


@router.get("", response_model=List[TimeLogResponse])
def list_time_logs(
    project_id: Optional[UUID] = Query(None, description="Filter by project"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    logger.info(f"➡️  List time logs request from: {identity.user_id}")
    return time_ledger.list_time_logs(db, identity, project_id=project_id)


@router.get("/daily", response_model=List[TimeLogResponse])
def get_daily_time_logs(
    day: date = Query(..., description="Calendar day (UTC), e.g. 2024-05-01"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return time_ledger.get_daily_time_logs(db, identity.user_id, day)


@router.post("", response_model=TimeLogResponse, status_code=status.HTTP_201_CREATED)
def create_manual_entry(
    payload: TimeLogCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Backfill a closed entry"""
    logger.info(f"➡️  Manual time log request from: {identity.user_id}")
    return time_ledger.create_manual_entry(
        db,
        identity,
        payload.description,
        payload.start_time,
        payload.end_time,
        task_id=payload.task_id,
        project_id=payload.project_id,
    )


@router.put("/{time_log_id}", response_model=TimeLogResponse)
def edit_time_log(
    time_log_id: UUID,
    changes: TimeLogUpdate,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Correct an entry; the previous values are kept in its edit history"""
    logger.info(f"➡️  Edit time log {time_log_id} request from: {identity.user_id}")
    return time_ledger.edit_time_log(db, time_log_id, identity, changes, clock=clock)


@router.delete("/{time_log_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_time_log(
    time_log_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    logger.info(f"➡️  Delete time log {time_log_id} request from: {identity.user_id}")
    time_ledger.delete_time_log(db, time_log_id, identity)


@router.post("/{time_log_id}/approve", response_model=TimeLogResponse)
def approve_time_log(
    time_log_id: UUID,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Approve an entry for billing (admin only)"""
    return time_ledger.approve_time_log(db, time_log_id, identity, clock=clock)


@router.patch("/{time_log_id}/invoice", response_model=TimeLogResponse)
def set_invoice_selection(
    time_log_id: UUID,
    payload: InvoiceSelection,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return time_ledger.set_invoice_selection(db, time_log_id, identity, payload.selected)
