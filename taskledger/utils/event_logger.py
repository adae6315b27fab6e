"""
Event Logger Utility - Records activity events and notifies in-process subscribers
"""

from dataclasses import dataclass, field
from datetime import datetime
from sqlalchemy import event
from sqlalchemy.orm import Session
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID
import logging

from taskledger.core.clock import utcnow
from taskledger.models import ActivityEvent, EventType

logger = logging.getLogger(__name__)

_PENDING_KEY = "taskledger.pending_events"  # Key in Session.info


@dataclass(frozen=True)
class DomainEvent:
    """Plain-value copy of an activity event, safe to hand to collaborators"""
    event_type: EventType
    actor_id: UUID
    resource_type: str
    resource_id: UUID
    action: str
    timestamp: datetime
    changes: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[DomainEvent], None]

_subscribers: Dict[EventType, List[EventHandler]] = {}


def subscribe(event_type: EventType, handler: EventHandler) -> None:
    """
    Register a collaborator for an event type.

    Handlers run after the transaction that produced the event commits.

    Example:
        subscribe(EventType.TASK_COMPLETED, notify_assignee)
    """
    _subscribers.setdefault(event_type, []).append(handler)


def unsubscribe(event_type: EventType, handler: EventHandler) -> None:
    handlers = _subscribers.get(event_type, [])
    if handler in handlers:
        handlers.remove(handler)


def record_event(
    db: Session,
    actor_id: UUID,
    event_type: EventType,
    action: str,
    resource_type: str,
    resource_id: UUID,
    changes: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> ActivityEvent:
    """
    Add an activity event to the caller's transaction.

    Does not commit - the event is persisted (and dispatched) together with the
    change it describes, or not at all.

    Args:
        db: Database session of the surrounding operation
        actor_id: User who performed the action
        event_type: Type of event
        action: Human-readable description
        resource_type: What was affected ("task", "task_dependency", "time_log")
        resource_id: ID of affected resource
        changes: Before/after data for updates
        metadata: Additional context
        timestamp: When it happened (defaults to now)

    Returns:
        The pending ActivityEvent row
    """
    when = timestamp or utcnow()
    row = ActivityEvent(
        timestamp=when,
        actor_id=actor_id,
        event_type=event_type,
        resource_type=resource_type,
        resource_id=resource_id,
        action=action,
        changes=changes,
        event_metadata=metadata,
    )
    db.add(row)

    db.info.setdefault(_PENDING_KEY, []).append(DomainEvent(
        event_type=event_type,
        actor_id=actor_id,
        resource_type=resource_type,
        resource_id=resource_id,
        action=action,
        timestamp=when,
        changes=changes,
        metadata=dict(metadata or {}),
    ))
    logger.debug(f"📝 Event queued: {event_type.value} on {resource_type} {resource_id}")
    return row


def diff_fields(old_data: Dict[str, Any], new_data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Build {"field": {"old": X, "new": Y}} for fields whose value changed"""
    changes = {}
    for name, new_value in new_data.items():
        old_value = old_data.get(name)
        if old_value != new_value:  # Only log actual changes
            changes[name] = {"old": _jsonable(old_value), "new": _jsonable(new_value)}
    return changes


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if hasattr(value, "value"):  # Enums
        return value.value
    return value


@event.listens_for(Session, "after_commit")
def _dispatch_pending(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    for domain_event in pending:
        for handler in list(_subscribers.get(domain_event.event_type, [])):
            try:
                handler(domain_event)
            except Exception as e:
                # A broken collaborator must not undo committed work
                logger.error(
                    f"❌ Event handler {getattr(handler, '__name__', handler)} failed "
                    f"for {domain_event.event_type.value}: {str(e)}",
                    exc_info=True,
                )


@event.listens_for(Session, "after_soft_rollback")
def _discard_pending(session: Session, previous_transaction) -> None:
    dropped = session.info.pop(_PENDING_KEY, [])
    if dropped:
        logger.debug(f"🗑️  Discarded {len(dropped)} events from rolled back transaction")
