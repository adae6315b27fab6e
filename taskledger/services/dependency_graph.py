"""
Dependency Graph - "depends on" edges between tasks, kept acyclic

The graph only marks "cannot start until" relationships for presentation and
external schedulers; it never blocks status transitions.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging
import threading

from taskledger.core.exceptions import (
    ConflictError, CyclicDependencyError, NotFoundError, SelfDependencyError,
)
from taskledger.core.identity import Identity
from taskledger.models import EventType, TaskDependency
from taskledger.services.task_store import get_task
from taskledger.utils.event_logger import record_event

logger = logging.getLogger(__name__)

# Serializes check-then-insert on the edge table
_graph_lock = threading.Lock()


def would_create_cycle(db: Session, task_id: UUID, depends_on_task_id: UUID) -> bool:
    """
    True if adding task_id -> depends_on_task_id would close a cycle.

    Searches everything depends_on_task_id already (transitively) depends on;
    reaching task_id means the new edge would lead back to where it started.
    O(V + E) thanks to the visited set, which also keeps malformed data from
    looping forever.
    """
    visited = set()
    to_check = [depends_on_task_id]

    while to_check:
        current = to_check.pop()
        if current == task_id:
            return True
        if current in visited:
            continue
        visited.add(current)

        to_check.extend(db.scalars(
            select(TaskDependency.depends_on_task_id).where(TaskDependency.task_id == current)
        ))

    return False


def _find_edge(db: Session, task_id: UUID, depends_on_task_id: UUID):
    return db.scalar(select(TaskDependency).where(
        TaskDependency.task_id == task_id,
        TaskDependency.depends_on_task_id == depends_on_task_id,
    ))


def create_dependency_edge(
    db: Session,
    identity: Identity,
    task_id: UUID,
    depends_on_task_id: UUID,
) -> TaskDependency:
    """
    Add the edge task_id -> depends_on_task_id.

    A duplicate request returns the existing edge unchanged.

    Raises:
        SelfDependencyError: task_id == depends_on_task_id
        NotFoundError: Either task does not exist
        CyclicDependencyError: The edge would close a cycle
        ConflictError: A concurrent writer inserted the same edge first
    """
    if task_id == depends_on_task_id:
        logger.warning(f"⚠️  Rejected self dependency on task {task_id}")
        raise SelfDependencyError("A task cannot depend on itself")

    get_task(db, task_id)
    get_task(db, depends_on_task_id)

    with _graph_lock:
        existing = _find_edge(db, task_id, depends_on_task_id)
        if existing:
            logger.info(f"ℹ️  Dependency {task_id} -> {depends_on_task_id} already exists")
            return existing

        if would_create_cycle(db, task_id, depends_on_task_id):
            logger.warning(f"⚠️  Rejected dependency {task_id} -> {depends_on_task_id}: cycle")
            raise CyclicDependencyError("Cannot create circular dependency")

        edge = TaskDependency(
            task_id=task_id,
            depends_on_task_id=depends_on_task_id,
            created_by_id=identity.user_id,
        )
        db.add(edge)
        try:
            db.flush()
            record_event(
                db,
                actor_id=identity.user_id,
                event_type=EventType.DEPENDENCY_CREATED,
                action="Added task dependency",
                resource_type="task_dependency",
                resource_id=edge.id,
                metadata={"task_id": str(task_id), "depends_on_task_id": str(depends_on_task_id)},
            )
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"⚠️  Concurrent insert of dependency {task_id} -> {depends_on_task_id}: {e}")
            raise ConflictError("The dependency was modified concurrently. Please retry.")
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Failed to create dependency: {str(e)}", exc_info=True)
            raise

    db.refresh(edge)
    logger.info(f"✅ Dependency created: {task_id} -> {depends_on_task_id}")
    return edge


def delete_dependency_edge(db: Session, identity: Identity, dependency_id: UUID) -> bool:
    """
    Remove an edge; the tasks it connects are untouched.

    Raises:
        NotFoundError: No edge has this id
    """
    edge = db.get(TaskDependency, dependency_id)
    if not edge:
        raise NotFoundError(f"Task dependency with ID {dependency_id} not found")

    metadata = {"task_id": str(edge.task_id), "depends_on_task_id": str(edge.depends_on_task_id)}
    db.delete(edge)
    record_event(
        db,
        actor_id=identity.user_id,
        event_type=EventType.DEPENDENCY_DELETED,
        action="Removed task dependency",
        resource_type="task_dependency",
        resource_id=dependency_id,
        metadata=metadata,
    )
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to delete dependency: {str(e)}", exc_info=True)
        raise
    logger.info(f"✅ Dependency deleted: {dependency_id}")
    return True


def list_dependencies(db: Session, task_id: UUID) -> List[TaskDependency]:
    """Edges from task_id to the tasks it depends on"""
    get_task(db, task_id)
    return list(db.scalars(
        select(TaskDependency).where(TaskDependency.task_id == task_id).order_by(TaskDependency.created_at)
    ))


def list_dependents(db: Session, task_id: UUID) -> List[TaskDependency]:
    """Edges from other tasks that depend on task_id"""
    get_task(db, task_id)
    return list(db.scalars(
        select(TaskDependency)
        .where(TaskDependency.depends_on_task_id == task_id)
        .order_by(TaskDependency.created_at)
    ))
