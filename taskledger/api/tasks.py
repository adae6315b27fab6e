"""
Tasks API - Tasks, subtasks and the assembled task tree
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from taskledger.database import get_db
from taskledger.schemas import (
    DependencyResponse, ProgressNoteCreate, TaskCreate, TaskResponse, TaskTree, TaskUpdate,
)
from taskledger.core.clock import Clock
from taskledger.core.dependencies import get_clock, get_current_identity
from taskledger.core.identity import Identity
from taskledger.services import dependency_graph, hierarchy, task_store

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Flat list - admins see all tasks, users their created or assigned tasks"""
    logger.info(f"➡️  List tasks request from: {identity.user_id}")
    return task_store.list_tasks(db, identity)


@router.get("/tree", response_model=List[TaskTree])
def get_task_tree(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Visible tasks nested under their parents"""
    logger.info(f"➡️  Task tree request from: {identity.user_id}")
    return hierarchy.assemble_hierarchy(task_store.list_tasks(db, identity))


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task_data: TaskCreate,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    logger.info(f"➡️  Create task request from: {identity.user_id}")
    return task_store.create_task(db, identity, task_data, clock=clock)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Raises:
        404: Task not found
        403: Not creator, assignee or admin
    """
    return task_store.get_visible_task(db, identity, task_id)


@router.patch("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: UUID,
    changes: TaskUpdate,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """
    Update task fields.

    Raises:
        404: Task or new parent not found
        403: Not creator, assignee or admin
        409: New parent would make the task its own ancestor
    """
    logger.info(f"➡️  Update task {task_id} request from: {identity.user_id}")
    return task_store.update_task(db, identity, task_id, changes, clock=clock)


@router.post("/{task_id}/complete", response_model=TaskResponse)
def complete_task(
    task_id: UUID,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    logger.info(f"➡️  Complete task {task_id} request from: {identity.user_id}")
    return task_store.complete_task(db, identity, task_id, clock=clock)


@router.post("/{task_id}/progress", response_model=TaskResponse)
def add_progress_note(
    task_id: UUID,
    note: ProgressNoteCreate,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    return task_store.add_progress_note(db, identity, task_id, note, clock=clock)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    logger.info(f"➡️  Delete task {task_id} request from: {identity.user_id}")
    task_store.delete_task(db, identity, task_id)


@router.get("/{task_id}/subtasks", response_model=List[TaskResponse])
def list_subtasks(
    task_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return task_store.list_subtasks(db, identity, task_id)


@router.post("/{task_id}/subtasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_subtask(
    task_id: UUID,
    task_data: TaskCreate,
    identity: Identity = Depends(get_current_identity),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Create a subtask; it inherits the parent's project"""
    logger.info(f"➡️  Create subtask of {task_id} request from: {identity.user_id}")
    return task_store.create_subtask(db, identity, task_id, task_data, clock=clock)


@router.get("/{task_id}/dependencies", response_model=List[DependencyResponse])
def list_dependencies(
    task_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Edges to the tasks this task depends on"""
    task_store.get_visible_task(db, identity, task_id)
    return dependency_graph.list_dependencies(db, task_id)


@router.get("/{task_id}/dependents", response_model=List[DependencyResponse])
def list_dependents(
    task_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Edges from tasks that depend on this task"""
    task_store.get_visible_task(db, identity, task_id)
    return dependency_graph.list_dependents(db, task_id)
