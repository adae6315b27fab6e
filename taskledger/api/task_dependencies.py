"""
Task Dependencies API - Create and remove "depends on" edges
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from taskledger.database import get_db
from taskledger.schemas import DependencyCreate, DependencyResponse
from taskledger.core.dependencies import get_current_identity
from taskledger.core.identity import Identity
from taskledger.services import dependency_graph

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=DependencyResponse, status_code=status.HTTP_201_CREATED)
def create_dependency(
    edge: DependencyCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Make task_id depend on depends_on_task_id.

    Raises:
        422: Task would depend on itself
        404: Either task not found
        409: Edge would create a circular dependency
    """
    logger.info(f"➡️  Create dependency {edge.task_id} -> {edge.depends_on_task_id} from: {identity.user_id}")
    return dependency_graph.create_dependency_edge(db, identity, edge.task_id, edge.depends_on_task_id)


@router.delete("/{dependency_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dependency(
    dependency_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    logger.info(f"➡️  Delete dependency {dependency_id} from: {identity.user_id}")
    dependency_graph.delete_dependency_edge(db, identity, dependency_id)
