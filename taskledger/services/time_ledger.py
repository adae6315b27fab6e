"""
Time Ledger - Timers, manual entries, corrections and approval of time logs

Invariant: a user has at most one active timer. Starting a timer stops the
running one first; the whole stop-then-start sequence runs inside a per-user
lock, and the database's partial unique index backs it up across processes.
"""

from datetime import date, datetime, time, timedelta
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging
import math

from taskledger.core.clock import Clock, to_naive_utc, utcnow
from taskledger.core.config import settings
from taskledger.core.exceptions import (
    ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError,
)
from taskledger.core.identity import Identity
from taskledger.core.locks import KeyedLock
from taskledger.models import ApprovalStatus, EventType, Task, TimeLog, TimeLogEdit
from taskledger.schemas.time_log import TimeLogUpdate
from taskledger.utils.event_logger import diff_fields, record_event

logger = logging.getLogger(__name__)

user_locks = KeyedLock(timeout=settings.USER_LOCK_TIMEOUT_SECONDS)

_EDITABLE_FIELDS = ("description", "start_time", "end_time", "task_id", "project_id")


def compute_duration(start_time: datetime, end_time: datetime) -> int:
    """Whole seconds between start and end, rounded down"""
    return math.floor((end_time - start_time).total_seconds())


def get_time_log(db: Session, time_log_id: UUID) -> TimeLog:
    """
    Raises:
        NotFoundError: If no time log has this id
    """
    entry = db.get(TimeLog, time_log_id)
    if not entry:
        raise NotFoundError(f"Time log with ID {time_log_id} not found")
    return entry


def _get_owned(db: Session, time_log_id: UUID, identity: Identity, verb: str) -> TimeLog:
    entry = get_time_log(db, time_log_id)
    if not identity.can_act_on(entry.user_id):
        logger.warning(f"⚠️  User {identity.user_id} denied {verb} of time log {time_log_id}")
        raise ForbiddenError(f"Not authorized to {verb} this time log")
    return entry


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"⚠️  Conflict while trying to {what}: {str(e)}")
        raise ConflictError("The time log was modified concurrently. Please retry.")
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to {what}: {str(e)}", exc_info=True)
        raise


def _clean_description(description: Optional[str]) -> str:
    if not description or not description.strip():
        raise ValidationError("Description is required")
    return description.strip()


def _resolve_task(db: Session, task_id: Optional[UUID], project_id: Optional[UUID]) -> Optional[UUID]:
    """Check the referenced task and return the project the entry belongs to"""
    if task_id is None:
        return project_id
    task = db.get(Task, task_id)
    if not task:
        raise ValidationError(f"Task with ID {task_id} does not exist")
    return project_id if project_id is not None else task.project_id


def _close(db: Session, entry: TimeLog, actor_id: UUID, now: datetime, reason: str) -> None:
    entry.end_time = now
    entry.duration = compute_duration(entry.start_time, now)
    entry.is_active = False
    record_event(
        db,
        actor_id=actor_id,
        event_type=EventType.TIMER_STOPPED,
        action=f"Stopped timer ({reason})",
        resource_type="time_log",
        resource_id=entry.id,
        metadata={"duration": entry.duration, "owner_id": str(entry.user_id)},
        timestamp=now,
    )


def get_active_timer(db: Session, user_id: UUID) -> Optional[TimeLog]:
    return db.scalar(select(TimeLog).where(TimeLog.user_id == user_id, TimeLog.is_active.is_(True)))


def start_timer(
    db: Session,
    identity: Identity,
    description: str,
    task_id: Optional[UUID] = None,
    project_id: Optional[UUID] = None,
    clock: Clock = utcnow,
) -> TimeLog:
    """
    Open a new timer for the caller, closing any timer already running.

    The previous timer ends at the same instant the new one starts.

    Raises:
        ValidationError: Empty description or unknown task
        ConflictError: Another start for the same user won the race
    """
    description = _clean_description(description)
    project_id = _resolve_task(db, task_id, project_id)

    with user_locks.hold(identity.user_id):
        now = clock()
        running = db.scalar(
            select(TimeLog)
            .where(TimeLog.user_id == identity.user_id, TimeLog.is_active.is_(True))
            .with_for_update()
        )
        if running:
            _close(db, running, identity.user_id, now, reason="new timer started")
            db.flush()  # Release the active slot before inserting the new row

        entry = TimeLog(
            user_id=identity.user_id,
            task_id=task_id,
            project_id=project_id,
            description=description,
            start_time=now,
            end_time=None,
            is_active=True,
            is_manual_entry=False,
        )
        db.add(entry)
        try:
            db.flush()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"⚠️  Concurrent timer start for user {identity.user_id}: {str(e)}")
            raise ConflictError("Another timer was started at the same time. Please retry.")

        record_event(
            db,
            actor_id=identity.user_id,
            event_type=EventType.TIMER_STARTED,
            action=f"Started timer '{description[:80]}'",
            resource_type="time_log",
            resource_id=entry.id,
            metadata={"task_id": str(task_id) if task_id else None},
            timestamp=now,
        )
        _commit(db, "start timer")

    db.refresh(entry)
    logger.info(f"✅ Timer started: {entry.id} for user {identity.user_id}")
    return entry


def stop_timer(db: Session, time_log_id: UUID, identity: Identity, clock: Clock = utcnow) -> TimeLog:
    """
    Close a running timer.

    Raises:
        NotFoundError: No such time log
        ForbiddenError: Caller is neither the owner nor an admin
        InvalidStateError: The timer is not running
    """
    entry = _get_owned(db, time_log_id, identity, "stop")

    with user_locks.hold(entry.user_id):
        db.refresh(entry)  # Another request may have closed it meanwhile
        if not entry.is_active:
            logger.warning(f"⚠️  Time log {time_log_id} is not active")
            raise InvalidStateError("Timer is not active")

        _close(db, entry, identity.user_id, clock(), reason="stopped by user")
        _commit(db, "stop timer")

    db.refresh(entry)
    logger.info(f"✅ Timer stopped: {entry.id} ({entry.duration}s)")
    return entry


def create_manual_entry(
    db: Session,
    identity: Identity,
    description: str,
    start_time: datetime,
    end_time: datetime,
    task_id: Optional[UUID] = None,
    project_id: Optional[UUID] = None,
) -> TimeLog:
    """
    Backfill a closed entry for the caller.

    Raises:
        ValidationError: Empty description, unknown task or end not after start
    """
    description = _clean_description(description)
    start_time, end_time = to_naive_utc(start_time), to_naive_utc(end_time)
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")
    project_id = _resolve_task(db, task_id, project_id)

    entry = TimeLog(
        user_id=identity.user_id,
        task_id=task_id,
        project_id=project_id,
        description=description,
        start_time=start_time,
        end_time=end_time,
        duration=compute_duration(start_time, end_time),
        is_active=False,
        is_manual_entry=True,
    )
    db.add(entry)
    db.flush()
    record_event(
        db,
        actor_id=identity.user_id,
        event_type=EventType.TIME_LOG_CREATED,
        action=f"Added manual time entry '{description[:80]}'",
        resource_type="time_log",
        resource_id=entry.id,
        metadata={"duration": entry.duration},
    )
    _commit(db, "create time log")
    db.refresh(entry)
    logger.info(f"✅ Manual time log created: {entry.id}")
    return entry


def edit_time_log(
    db: Session,
    time_log_id: UUID,
    identity: Identity,
    changes: TimeLogUpdate,
    clock: Clock = utcnow,
) -> TimeLog:
    """
    Correct an entry, preserving what it looked like before.

    A snapshot of start/end/duration/description is appended to the entry's
    edit history before anything changes, and the entry is flagged as a
    manual entry. Supplying end_time for a running timer closes it.

    Raises:
        NotFoundError: No such time log
        ForbiddenError: Caller is neither the owner nor an admin
        ValidationError: Resulting interval ends before it starts, or unknown task
    """
    entry = _get_owned(db, time_log_id, identity, "edit")

    updates = changes.model_dump(exclude_unset=True, include=set(_EDITABLE_FIELDS))
    if updates.get("description", "") is None:
        del updates["description"]
    if "description" in updates:
        updates["description"] = _clean_description(updates["description"])
    if "task_id" in updates:
        updates["project_id"] = _resolve_task(db, updates["task_id"], updates.get("project_id", entry.project_id))

    new_start = updates.get("start_time") or entry.start_time
    new_end = updates.get("end_time") or entry.end_time
    if new_end is not None and new_end < new_start:
        raise ValidationError("end_time cannot be before start_time")

    now = clock()
    with user_locks.hold(entry.user_id):
        sequence = (db.scalar(
            select(func.max(TimeLogEdit.sequence)).where(TimeLogEdit.time_log_id == entry.id)
        ) or 0) + 1
        snapshot = TimeLogEdit(
            time_log_id=entry.id,
            sequence=sequence,
            edited_by_id=identity.user_id,
            edited_at=now,
            reason=changes.reason,
            previous_start_time=entry.start_time,
            previous_end_time=entry.end_time,
            previous_duration=entry.duration,
            previous_description=entry.description,
        )
        db.add(snapshot)

        old_data = {name: getattr(entry, name) for name in updates}
        for name in ("start_time", "end_time"):
            if updates.get(name) is not None:
                setattr(entry, name, updates[name])
        for name in ("description", "task_id", "project_id"):
            if name in updates:
                setattr(entry, name, updates[name])

        if entry.end_time is not None:
            entry.duration = compute_duration(entry.start_time, entry.end_time)
            entry.is_active = False
        entry.is_manual_entry = True

        record_event(
            db,
            actor_id=identity.user_id,
            event_type=EventType.TIME_LOG_EDITED,
            action=f"Edited time log ({changes.reason})",
            resource_type="time_log",
            resource_id=entry.id,
            changes=diff_fields(old_data, updates),
            metadata={"edit_sequence": sequence, "owner_id": str(entry.user_id)},
            timestamp=now,
        )
        _commit(db, "edit time log")

    db.refresh(entry)
    logger.info(f"✅ Time log edited: {entry.id} (edit #{sequence})")
    return entry


def delete_time_log(db: Session, time_log_id: UUID, identity: Identity) -> bool:
    """
    Delete an entry together with its edit history.

    Raises:
        NotFoundError: No such time log
        ForbiddenError: Caller is neither the owner nor an admin
    """
    entry = _get_owned(db, time_log_id, identity, "delete")

    metadata = {
        "owner_id": str(entry.user_id),
        "duration": entry.duration,
        "description": entry.description[:80],
    }
    db.delete(entry)
    record_event(
        db,
        actor_id=identity.user_id,
        event_type=EventType.TIME_LOG_DELETED,
        action="Deleted time log",
        resource_type="time_log",
        resource_id=time_log_id,
        metadata=metadata,
    )
    _commit(db, "delete time log")
    logger.info(f"✅ Time log deleted: {time_log_id}")
    return True


def approve_time_log(db: Session, time_log_id: UUID, identity: Identity, clock: Clock = utcnow) -> TimeLog:
    """
    Approve a closed entry for billing (admin only).

    Raises:
        NotFoundError: No such time log
        ForbiddenError: Caller is not an admin
        InvalidStateError: The entry is still running
    """
    entry = get_time_log(db, time_log_id)
    if not identity.is_admin:
        logger.warning(f"⚠️  Non-admin {identity.user_id} attempted to approve time log {time_log_id}")
        raise ForbiddenError("Admin access required")
    if entry.is_active:
        raise InvalidStateError("A running timer cannot be approved")

    now = clock()
    entry.approval_status = ApprovalStatus.APPROVED
    entry.approved_by_id = identity.user_id
    entry.approved_at = now
    record_event(
        db,
        actor_id=identity.user_id,
        event_type=EventType.TIME_LOG_APPROVED,
        action="Approved time log",
        resource_type="time_log",
        resource_id=entry.id,
        metadata={"owner_id": str(entry.user_id), "duration": entry.duration},
        timestamp=now,
    )
    _commit(db, "approve time log")
    db.refresh(entry)
    return entry


def set_invoice_selection(db: Session, time_log_id: UUID, identity: Identity, selected: bool) -> TimeLog:
    """Mark or unmark an entry for inclusion in the next invoice"""
    entry = _get_owned(db, time_log_id, identity, "update")
    entry.is_selected_for_invoice = selected
    _commit(db, "update invoice selection")
    db.refresh(entry)
    return entry


def list_time_logs(db: Session, identity: Identity, project_id: Optional[UUID] = None) -> List[TimeLog]:
    """Newest first; admins see every user's entries"""
    query = select(TimeLog).order_by(TimeLog.start_time.desc())
    if not identity.is_admin:
        query = query.where(TimeLog.user_id == identity.user_id)
    if project_id is not None:
        query = query.where(TimeLog.project_id == project_id)
    return list(db.scalars(query))


def get_daily_time_logs(db: Session, user_id: UUID, day: date) -> List[TimeLog]:
    """Entries of one user that started on `day`, oldest first"""
    start_of_day = datetime.combine(day, time.min)
    return list(db.scalars(
        select(TimeLog)
        .where(
            TimeLog.user_id == user_id,
            TimeLog.start_time >= start_of_day,
            TimeLog.start_time < start_of_day + timedelta(days=1),
        )
        .order_by(TimeLog.start_time)
    ))
