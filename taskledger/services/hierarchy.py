"""
Task Hierarchy - Nest a flat task list into parent -> subtasks trees for display
"""

from pydantic import BaseModel
from typing import Any, Dict, Iterable, Iterator, List
from uuid import UUID

from taskledger.schemas.task import TaskTree


def _walk(tasks: Iterable[Any]) -> Iterator[Any]:
    """Pre-order walk over tasks and any subtasks already nested under them"""
    stack = list(reversed(list(tasks)))
    while stack:
        task = stack.pop()
        yield task
        stack.extend(reversed(list(getattr(task, "subtasks", None) or [])))


def _as_node(task: Any) -> TaskTree:
    if isinstance(task, BaseModel):
        return TaskTree.model_validate(task.model_dump(exclude={"subtasks"}))
    return TaskTree.model_validate(task, from_attributes=True)


def _has_cyclic_ancestry(task_id: UUID, nodes: Dict[UUID, TaskTree]) -> bool:
    seen = {task_id}
    current = nodes[task_id].parent_task_id
    while current is not None and current in nodes:
        if current in seen:
            return True
        seen.add(current)
        current = nodes[current].parent_task_id
    return False


def assemble_hierarchy(tasks: Iterable[Any]) -> List[TaskTree]:
    """
    Attach each task under its parent and return the roots.

    Accepts ORM tasks, TaskResponse/TaskTree models, or a previous result of
    this function (nested subtasks are flattened first, so re-assembly neither
    duplicates nor drops tasks). A task whose parent is not in the input - for
    example filtered out of the caller's view - is returned as a root. A task
    caught in a parent cycle is also returned as a root rather than lost.

    Returns:
        Root TaskTree nodes in input order, each with subtasks populated
    """
    nodes: Dict[UUID, TaskTree] = {}
    for task in _walk(tasks):
        if task.id not in nodes:  # First occurrence wins
            nodes[task.id] = _as_node(task)

    roots: List[TaskTree] = []
    for node in nodes.values():
        parent_id = node.parent_task_id
        if parent_id is not None and parent_id in nodes and not _has_cyclic_ancestry(node.id, nodes):
            nodes[parent_id].subtasks.append(node)
        else:
            roots.append(node)
    return roots
