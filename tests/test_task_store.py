# tests/test_task_store.py

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from taskledger.core.exceptions import CyclicHierarchyError, ForbiddenError, NotFoundError
from taskledger.models import ActivityEvent, EventType, Task, TaskDependency, TaskStatus
from taskledger.schemas import ProgressNoteCreate, TaskCreate, TaskUpdate
from taskledger.services import dependency_graph, task_store, time_ledger


def test_subtask_inherits_parent_project(db, alice, make_task) -> None:
    project_id = uuid.uuid4()
    parent = make_task("parent", project_id=project_id)

    child = task_store.create_subtask(db, alice, parent.id, TaskCreate(description="child"))

    assert child.parent_task_id == parent.id
    assert child.project_id == project_id
    assert [t.id for t in task_store.list_subtasks(db, alice, parent.id)] == [child.id]


def test_subtask_of_missing_parent_is_not_found(db, alice) -> None:
    with pytest.raises(NotFoundError):
        task_store.create_subtask(db, alice, uuid.uuid4(), TaskCreate(description="orphan"))


def test_task_cannot_become_its_own_parent(db, alice, make_task) -> None:
    task = make_task("self")

    with pytest.raises(CyclicHierarchyError):
        task_store.update_task(db, alice, task.id, TaskUpdate(parent_task_id=task.id))


def test_task_cannot_move_under_its_descendant(db, alice, make_task) -> None:
    root = make_task("root")
    child = make_task("child", parent_task_id=root.id)
    grandchild = make_task("grandchild", parent_task_id=child.id)

    with pytest.raises(CyclicHierarchyError):
        task_store.update_task(db, alice, root.id, TaskUpdate(parent_task_id=grandchild.id))

    db.refresh(root)
    assert root.parent_task_id is None


def test_reparenting_to_unrelated_task_and_detaching(db, alice, make_task) -> None:
    first = make_task("first")
    second = make_task("second")
    child = make_task("child", parent_task_id=first.id)

    moved = task_store.update_task(db, alice, child.id, TaskUpdate(parent_task_id=second.id))
    assert moved.parent_task_id == second.id

    detached = task_store.update_task(db, alice, child.id, TaskUpdate(parent_task_id=None))
    assert detached.parent_task_id is None


def test_would_create_parent_cycle_walks_ancestors(db, make_task) -> None:
    a = make_task("a")
    b = make_task("b", parent_task_id=a.id)
    c = make_task("c")

    assert task_store.would_create_parent_cycle(db, a.id, b.id) is True
    assert task_store.would_create_parent_cycle(db, c.id, b.id) is False


def test_complete_task_is_soft_terminal(db, alice, make_task, clock) -> None:
    task = make_task("ship it")

    done = task_store.complete_task(db, alice, task.id, clock=clock)

    assert done.completed is True
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at == clock.now
    assert db.get(Task, task.id) is not None
    kinds = db.scalars(
        select(ActivityEvent.event_type).where(ActivityEvent.resource_id == task.id)
    ).all()
    assert EventType.TASK_COMPLETED in kinds


def test_reopening_clears_completion(db, alice, make_task, clock) -> None:
    task = make_task("again")
    task_store.complete_task(db, alice, task.id, clock=clock)

    reopened = task_store.update_task(db, alice, task.id, TaskUpdate(status=TaskStatus.ACTIVE))

    assert reopened.completed is False
    assert reopened.completed_at is None


def test_explicit_null_on_required_field_is_ignored(db, alice, make_task) -> None:
    task = make_task("keep me", priority="high")

    updated = task_store.update_task(db, alice, task.id, TaskUpdate(priority=None, notes="n"))

    assert updated.priority.value == "high"
    assert updated.notes == "n"


def test_only_creator_assignee_or_admin_may_update(db, alice, bob, admin, make_task) -> None:
    task = make_task("private")

    with pytest.raises(ForbiddenError):
        task_store.update_task(db, bob, task.id, TaskUpdate(notes="mine now"))

    assert task_store.update_task(db, admin, task.id, TaskUpdate(notes="ok")).notes == "ok"

    task_store.update_task(db, alice, task.id, TaskUpdate(assigned_to_id=bob.user_id))
    assert task_store.update_task(db, bob, task.id, TaskUpdate(notes="assigned")).notes == "assigned"


def test_list_tasks_visibility(db, alice, bob, admin, make_task) -> None:
    mine = make_task("mine")
    theirs = make_task("theirs", identity=bob)
    shared = make_task("shared", identity=bob, assigned_to_id=alice.user_id)

    assert {t.id for t in task_store.list_tasks(db, alice)} == {mine.id, shared.id}
    assert {t.id for t in task_store.list_tasks(db, admin)} == {mine.id, theirs.id, shared.id}


def test_progress_notes_are_appended(db, alice, make_task, clock) -> None:
    task = make_task("notes")

    task_store.add_progress_note(db, alice, task.id, ProgressNoteCreate(comment="started"), clock=clock)
    clock.advance(hours=1)
    updated = task_store.add_progress_note(db, alice, task.id, ProgressNoteCreate(comment="halfway"), clock=clock)

    assert [n["comment"] for n in updated.progress_notes] == ["started", "halfway"]


def test_delete_task_cleans_up_relationships(db, alice, make_task, clock) -> None:
    parent = make_task("parent")
    child = make_task("child", parent_task_id=parent.id)
    other = make_task("other")
    dependency_graph.create_dependency_edge(db, alice, other.id, parent.id)
    entry = time_ledger.start_timer(db, alice, "work", task_id=parent.id, clock=clock)

    assert task_store.delete_task(db, alice, parent.id) is True

    assert db.get(Task, parent.id) is None
    db.refresh(child)
    db.refresh(entry)
    assert child.parent_task_id is None
    assert entry.task_id is None
    assert db.scalars(select(TaskDependency)).all() == []


def test_delete_requires_creator_or_admin(db, bob, admin, make_task) -> None:
    task = make_task("guarded")

    with pytest.raises(ForbiddenError):
        task_store.delete_task(db, bob, task.id)
    assert task_store.delete_task(db, admin, task.id) is True


def test_get_missing_task(db) -> None:
    with pytest.raises(NotFoundError):
        task_store.get_task(db, uuid.uuid4())


def test_tasks_are_only_visible_to_participants(db, alice, bob, admin, make_task) -> None:
    task = make_task("private")

    with pytest.raises(ForbiddenError):
        task_store.get_visible_task(db, bob, task.id)
    with pytest.raises(ForbiddenError):
        task_store.list_subtasks(db, bob, task.id)
    assert task_store.get_visible_task(db, admin, task.id).id == task.id

    task_store.update_task(db, alice, task.id, TaskUpdate(assigned_to_id=bob.user_id))
    assert task_store.get_visible_task(db, bob, task.id).id == task.id


def test_subtask_under_someone_elses_task_is_forbidden(db, bob, make_task) -> None:
    parent = make_task("alice's project")

    with pytest.raises(ForbiddenError):
        task_store.create_subtask(db, bob, parent.id, TaskCreate(description="squatter"))

    assert db.scalars(select(Task).where(Task.parent_task_id == parent.id)).all() == []


def test_cannot_move_own_task_under_someone_elses(db, bob, make_task) -> None:
    foreign = make_task("alice's")
    mine = make_task("bob's", identity=bob)

    with pytest.raises(ForbiddenError):
        task_store.update_task(db, bob, mine.id, TaskUpdate(parent_task_id=foreign.id))

    db.refresh(mine)
    assert mine.parent_task_id is None


def test_task_created_completed_uses_injected_clock(db, alice, clock) -> None:
    task = task_store.create_task(
        db, alice, TaskCreate(description="already done", status=TaskStatus.COMPLETED), clock=clock,
    )

    assert task.completed is True
    assert task.completed_at == clock.now
