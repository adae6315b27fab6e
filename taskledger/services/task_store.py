"""
Task Store - Task records, their parent/child tree and lifecycle transitions
"""

from sqlalchemy import or_, select, update, delete
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID, uuid4
import logging

from taskledger.core.clock import Clock, utcnow
from taskledger.core.exceptions import CyclicHierarchyError, ForbiddenError, NotFoundError
from taskledger.core.identity import Identity
from taskledger.models import EventType, Task, TaskDependency, TaskStatus, TimeLog
from taskledger.schemas.task import ProgressNoteCreate, TaskCreate, TaskUpdate
from taskledger.utils.event_logger import diff_fields, record_event

logger = logging.getLogger(__name__)

# Columns that reject NULL - an explicit null in an update leaves them unchanged
_NON_NULLABLE = {"description", "status", "priority", "completed", "attachments", "links"}


def get_task(db: Session, task_id: UUID) -> Task:
    """
    Raises:
        NotFoundError: If no task has this id
    """
    task = db.get(Task, task_id)
    if not task:
        raise NotFoundError(f"Task with ID {task_id} not found")
    return task


def list_tasks(db: Session, identity: Identity) -> List[Task]:
    """Admins see every task; users see tasks they created or are assigned to"""
    query = select(Task).order_by(Task.created_at)
    if not identity.is_admin:
        query = query.where(or_(
            Task.created_by_id == identity.user_id,
            Task.assigned_to_id == identity.user_id,
        ))
    return list(db.scalars(query))


def get_visible_task(db: Session, identity: Identity, task_id: UUID) -> Task:
    """
    Load a task the caller may see: one they created or are assigned to, or any task for admins.

    Raises:
        NotFoundError: If no task has this id
        ForbiddenError: If the task belongs to someone else
    """
    task = get_task(db, task_id)
    if not _is_participant(identity, task):
        logger.warning(f"⚠️  User {identity.user_id} denied access to task {task.id}")
        raise ForbiddenError("You can only view tasks you created or are assigned to")
    return task


def list_subtasks(db: Session, identity: Identity, parent_task_id: UUID) -> List[Task]:
    get_visible_task(db, identity, parent_task_id)
    return list(db.scalars(
        select(Task).where(Task.parent_task_id == parent_task_id).order_by(Task.created_at)
    ))


def would_create_parent_cycle(db: Session, task_id: UUID, new_parent_id: UUID) -> bool:
    """
    True if making `new_parent_id` the parent of `task_id` would make the task its own ancestor.

    Walks up from the proposed parent; the visited set stops the walk on
    trees that are already malformed.
    """
    visited = set()
    current = new_parent_id
    while current is not None:
        if current == task_id:
            return True
        if current in visited:
            logger.warning(f"⚠️  Existing parent cycle detected above task {new_parent_id}")
            return False
        visited.add(current)
        current = db.scalar(select(Task.parent_task_id).where(Task.id == current))
    return False


def _is_participant(identity: Identity, task: Task) -> bool:
    return identity.is_admin or identity.user_id in (task.created_by_id, task.assigned_to_id)


def _ensure_can_modify(identity: Identity, task: Task) -> None:
    if _is_participant(identity, task):
        return
    logger.warning(f"⚠️  User {identity.user_id} denied modification of task {task.id}")
    raise ForbiddenError("You can only modify tasks you created or are assigned to")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to persist task change: {str(e)}", exc_info=True)
        raise


def create_task(db: Session, identity: Identity, data: TaskCreate, clock: Clock = utcnow) -> Task:
    """
    Create a task owned by the caller.

    A task with a parent is a subtask: the parent must exist, the caller must
    be allowed to modify it, and its project is inherited when none is given.

    Raises:
        NotFoundError: If parent_task_id does not resolve
        ForbiddenError: If the parent belongs to someone else
    """
    values = data.model_dump()
    if data.parent_task_id is not None:
        parent = get_task(db, data.parent_task_id)
        _ensure_can_modify(identity, parent)
        if values.get("project_id") is None:
            values["project_id"] = parent.project_id  # Inherit project from parent

    task = Task(**values, created_by_id=identity.user_id)
    if task.status == TaskStatus.COMPLETED:
        task.completed = True
        task.completed_at = clock()
    db.add(task)
    db.flush()  # Assign the id before recording the event

    record_event(
        db,
        actor_id=identity.user_id,
        event_type=EventType.TASK_CREATED,
        action=f"Created task '{task.description[:80]}'",
        resource_type="task",
        resource_id=task.id,
        metadata={
            "task_status": task.status.value,
            "task_priority": task.priority.value,
            "parent_task_id": str(task.parent_task_id) if task.parent_task_id else None,
        },
    )
    _commit(db)
    db.refresh(task)
    logger.info(f"✅ Task created: {task.id}")
    return task


def create_subtask(
    db: Session,
    identity: Identity,
    parent_task_id: UUID,
    data: TaskCreate,
    clock: Clock = utcnow,
) -> Task:
    """Create a task directly under `parent_task_id`"""
    return create_task(db, identity, data.model_copy(update={"parent_task_id": parent_task_id}), clock=clock)


def update_task(
    db: Session,
    identity: Identity,
    task_id: UUID,
    changes: TaskUpdate,
    clock: Clock = utcnow,
) -> Task:
    """
    Apply the fields present in `changes`.

    Re-parenting is checked against the ancestor chain; completing a task
    stamps completed_at and emits TASK_COMPLETED.

    Raises:
        NotFoundError: Task or new parent does not exist
        ForbiddenError: Caller may not modify the task or the new parent
        CyclicHierarchyError: New parent is the task itself or one of its descendants
    """
    task = get_task(db, task_id)
    _ensure_can_modify(identity, task)

    updates = changes.model_dump(exclude_unset=True)
    updates = {k: v for k, v in updates.items() if v is not None or k not in _NON_NULLABLE}

    new_parent = updates.get("parent_task_id")
    if "parent_task_id" in updates and new_parent is not None and new_parent != task.parent_task_id:
        _ensure_can_modify(identity, get_task(db, new_parent))
        if would_create_parent_cycle(db, task.id, new_parent):
            logger.warning(f"⚠️  Rejected parent {new_parent} for task {task.id}: ancestor cycle")
            raise CyclicHierarchyError("A task cannot become a subtask of itself or of its own subtasks")

    # Keep the completed flag and the completed status in step
    if updates.get("status") == TaskStatus.COMPLETED and "completed" not in updates:
        updates["completed"] = True
    if updates.get("completed") is True and "status" not in updates:
        updates["status"] = TaskStatus.COMPLETED
    if updates.get("completed") is False and task.status == TaskStatus.COMPLETED and "status" not in updates:
        updates["status"] = TaskStatus.PENDING
    if "status" in updates and updates["status"] != TaskStatus.COMPLETED and "completed" not in updates:
        updates["completed"] = False

    old_data = {name: getattr(task, name) for name in updates}
    was_completed = task.completed
    for name, value in updates.items():
        setattr(task, name, value)

    now = clock()
    if task.completed and not was_completed:
        task.completed_at = now
    elif not task.completed:
        task.completed_at = None

    changed = diff_fields(old_data, updates)
    if changed:
        record_event(
            db,
            actor_id=identity.user_id,
            event_type=EventType.TASK_UPDATED,
            action=f"Updated task ({', '.join(changed)})",
            resource_type="task",
            resource_id=task.id,
            changes=changed,
            timestamp=now,
        )
    if task.completed and not was_completed:
        record_event(
            db,
            actor_id=identity.user_id,
            event_type=EventType.TASK_COMPLETED,
            action=f"Completed task '{task.description[:80]}'",
            resource_type="task",
            resource_id=task.id,
            metadata={"assigned_to_id": str(task.assigned_to_id) if task.assigned_to_id else None},
            timestamp=now,
        )

    _commit(db)
    db.refresh(task)
    logger.info(f"✅ Task updated: {task.id}")
    return task


def complete_task(db: Session, identity: Identity, task_id: UUID, clock: Clock = utcnow) -> Task:
    """Mark a task completed - the record persists"""
    return update_task(db, identity, task_id, TaskUpdate(completed=True), clock=clock)


def add_progress_note(
    db: Session,
    identity: Identity,
    task_id: UUID,
    note: ProgressNoteCreate,
    clock: Clock = utcnow,
) -> Task:
    """Append a progress note; the stored list is replaced, never mutated in place"""
    task = get_task(db, task_id)
    _ensure_can_modify(identity, task)

    now = clock()
    entry = {
        "id": uuid4().hex[:12],
        "date": (note.date or now).isoformat(),
        "comment": note.comment,
        "created_at": now.isoformat(),
    }
    task.progress_notes = list(task.progress_notes or []) + [entry]

    record_event(
        db,
        actor_id=identity.user_id,
        event_type=EventType.TASK_UPDATED,
        action="Added progress note",
        resource_type="task",
        resource_id=task.id,
        metadata={"progress_note_id": entry["id"]},
        timestamp=now,
    )
    _commit(db)
    db.refresh(task)
    return task


def delete_task(db: Session, identity: Identity, task_id: UUID) -> bool:
    """
    Delete a task (creator or admin only).

    Dependency edges touching the task are removed, direct subtasks become
    roots, and time logs keep their history but lose the task reference.

    Raises:
        NotFoundError: Task does not exist
        ForbiddenError: Caller is neither creator nor admin
    """
    task = get_task(db, task_id)
    if not identity.can_act_on(task.created_by_id):
        logger.warning(f"⚠️  User {identity.user_id} denied deletion of task {task.id}")
        raise ForbiddenError("Only the creator or an admin can delete a task")

    description = task.description
    db.execute(delete(TaskDependency).where(or_(
        TaskDependency.task_id == task_id,
        TaskDependency.depends_on_task_id == task_id,
    )))
    db.execute(update(Task).where(Task.parent_task_id == task_id).values(parent_task_id=None))
    db.execute(update(TimeLog).where(TimeLog.task_id == task_id).values(task_id=None))
    db.delete(task)

    record_event(
        db,
        actor_id=identity.user_id,
        event_type=EventType.TASK_DELETED,
        action=f"Deleted task '{description[:80]}'",
        resource_type="task",
        resource_id=task_id,
    )
    _commit(db)
    logger.info(f"✅ Task deleted: {task_id}")
    return True
