# tests/test_time_ledger.py

from __future__ import annotations

import threading
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from taskledger.core.exceptions import (
    ForbiddenError, InvalidStateError, NotFoundError, ValidationError,
)
from taskledger.core.identity import Identity
from taskledger.database import Base, build_engine
from taskledger.models import ActivityEvent, ApprovalStatus, EventType, TimeLog, TimeLogEdit, User
from taskledger.schemas import TimeLogUpdate
from taskledger.services import time_ledger


def _active_count(db, user_id) -> int:
    return len(db.scalars(
        select(TimeLog).where(TimeLog.user_id == user_id, TimeLog.is_active.is_(True))
    ).all())


def test_start_timer_opens_an_active_entry(db, alice, clock) -> None:
    entry = time_ledger.start_timer(db, alice, "  writing  ", clock=clock)

    assert entry.is_active is True
    assert entry.start_time == clock.now
    assert entry.end_time is None
    assert entry.duration is None
    assert entry.description == "writing"
    assert time_ledger.get_active_timer(db, alice.user_id).id == entry.id


def test_starting_second_timer_closes_the_first(db, alice, clock) -> None:
    first = time_ledger.start_timer(db, alice, "first", clock=clock)
    clock.advance(seconds=90.7)

    second = time_ledger.start_timer(db, alice, "second", clock=clock)
    db.refresh(first)

    assert first.is_active is False
    assert first.end_time == second.start_time == clock.now
    assert first.duration == 90  # floor of 90.7 seconds
    assert second.is_active is True
    assert _active_count(db, alice.user_id) == 1


def test_timers_of_different_users_are_independent(db, alice, bob, clock) -> None:
    time_ledger.start_timer(db, alice, "alice", clock=clock)
    time_ledger.start_timer(db, bob, "bob", clock=clock)

    assert _active_count(db, alice.user_id) == 1
    assert _active_count(db, bob.user_id) == 1


def test_start_timer_requires_description(db, alice, clock) -> None:
    with pytest.raises(ValidationError):
        time_ledger.start_timer(db, alice, "   ", clock=clock)
    assert _active_count(db, alice.user_id) == 0


def test_start_timer_on_unknown_task_is_rejected(db, alice, clock) -> None:
    with pytest.raises(ValidationError):
        time_ledger.start_timer(db, alice, "ghost", task_id=uuid.uuid4(), clock=clock)


def test_timer_inherits_task_project(db, alice, clock, make_task) -> None:
    project_id = uuid.uuid4()
    task = make_task("billable", project_id=project_id)

    entry = time_ledger.start_timer(db, alice, "work", task_id=task.id, clock=clock)

    assert entry.task_id == task.id
    assert entry.project_id == project_id


def test_stop_timer_records_duration(db, alice, clock) -> None:
    entry = time_ledger.start_timer(db, alice, "focus", clock=clock)
    clock.advance(minutes=25)

    stopped = time_ledger.stop_timer(db, entry.id, alice, clock=clock)

    assert stopped.is_active is False
    assert stopped.end_time == clock.now
    assert stopped.duration == 25 * 60
    assert time_ledger.get_active_timer(db, alice.user_id) is None


def test_stop_timer_failures(db, alice, bob, clock) -> None:
    with pytest.raises(NotFoundError):
        time_ledger.stop_timer(db, uuid.uuid4(), alice, clock=clock)

    entry = time_ledger.start_timer(db, alice, "mine", clock=clock)
    with pytest.raises(ForbiddenError):
        time_ledger.stop_timer(db, entry.id, bob, clock=clock)

    time_ledger.stop_timer(db, entry.id, alice, clock=clock)
    with pytest.raises(InvalidStateError):
        time_ledger.stop_timer(db, entry.id, alice, clock=clock)


def test_admin_can_stop_anyones_timer(db, alice, admin, clock) -> None:
    entry = time_ledger.start_timer(db, alice, "mine", clock=clock)
    clock.advance(seconds=30)

    stopped = time_ledger.stop_timer(db, entry.id, admin, clock=clock)

    assert stopped.duration == 30
    event = db.scalar(
        select(ActivityEvent)
        .where(ActivityEvent.resource_id == entry.id, ActivityEvent.event_type == EventType.TIMER_STOPPED)
    )
    assert event.actor_id == admin.user_id


def test_database_rejects_two_active_entries(db, alice, clock) -> None:
    for label in ("one", "two"):
        db.add(TimeLog(
            user_id=alice.user_id,
            description=label,
            start_time=clock.now,
            is_active=True,
        ))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_manual_entry_is_closed(db, alice) -> None:
    entry = time_ledger.create_manual_entry(
        db, alice, "meeting",
        start_time=datetime(2024, 5, 19, 9, 0),
        end_time=datetime(2024, 5, 19, 10, 30),
    )

    assert entry.is_active is False
    assert entry.is_manual_entry is True
    assert entry.duration == 90 * 60


def test_manual_entry_rejects_inverted_interval(db, alice) -> None:
    with pytest.raises(ValidationError):
        time_ledger.create_manual_entry(
            db, alice, "backwards",
            start_time=datetime(2024, 5, 19, 10, 0),
            end_time=datetime(2024, 5, 19, 9, 0),
        )


def test_edit_appends_snapshot_of_previous_values(db, alice, clock) -> None:
    entry = time_ledger.create_manual_entry(
        db, alice, "draft",
        start_time=datetime(2024, 5, 19, 9, 0),
        end_time=datetime(2024, 5, 19, 10, 0),
    )

    edited = time_ledger.edit_time_log(
        db, entry.id, alice,
        TimeLogUpdate(end_time=datetime(2024, 5, 19, 11, 0), description="final", reason="forgot to stop"),
        clock=clock,
    )

    assert edited.duration == 2 * 3600
    assert edited.description == "final"
    assert edited.is_manual_entry is True
    assert len(edited.edit_history) == 1
    snapshot = edited.edit_history[0]
    assert snapshot.sequence == 1
    assert snapshot.reason == "forgot to stop"
    assert snapshot.edited_by_id == alice.user_id
    assert snapshot.previous_start_time == datetime(2024, 5, 19, 9, 0)
    assert snapshot.previous_end_time == datetime(2024, 5, 19, 10, 0)
    assert snapshot.previous_duration == 3600
    assert snapshot.previous_description == "draft"


def test_each_edit_adds_exactly_one_entry(db, alice, clock) -> None:
    entry = time_ledger.create_manual_entry(
        db, alice, "v1",
        start_time=datetime(2024, 5, 19, 9, 0),
        end_time=datetime(2024, 5, 19, 10, 0),
    )

    for n in range(2, 5):
        edited = time_ledger.edit_time_log(db, entry.id, alice, TimeLogUpdate(description=f"v{n}"), clock=clock)

    assert [e.sequence for e in edited.edit_history] == [1, 2, 3]
    assert [e.previous_description for e in edited.edit_history] == ["v1", "v2", "v3"]


def test_edit_with_end_time_closes_running_timer(db, alice, clock) -> None:
    entry = time_ledger.start_timer(db, alice, "running", clock=clock)
    assert entry.is_manual_entry is False

    edited = time_ledger.edit_time_log(
        db, entry.id, alice, TimeLogUpdate(end_time=datetime(2024, 5, 20, 13, 0)), clock=clock,
    )

    assert edited.is_active is False
    assert edited.duration == 3600
    assert edited.is_manual_entry is True
    assert edited.edit_history[0].previous_end_time is None


def test_edit_rejects_end_before_start(db, alice, clock) -> None:
    entry = time_ledger.create_manual_entry(
        db, alice, "fixed",
        start_time=datetime(2024, 5, 19, 9, 0),
        end_time=datetime(2024, 5, 19, 10, 0),
    )

    with pytest.raises(ValidationError):
        time_ledger.edit_time_log(
            db, entry.id, alice, TimeLogUpdate(end_time=datetime(2024, 5, 19, 8, 0)), clock=clock,
        )
    assert db.scalars(select(TimeLogEdit)).all() == []


def test_edit_of_someone_elses_entry_is_forbidden(db, alice, bob, clock) -> None:
    entry = time_ledger.start_timer(db, alice, "private", clock=clock)
    with pytest.raises(ForbiddenError):
        time_ledger.edit_time_log(db, entry.id, bob, TimeLogUpdate(description="hijack"), clock=clock)


def test_delete_removes_entry_and_history(db, alice, clock) -> None:
    entry = time_ledger.create_manual_entry(
        db, alice, "gone",
        start_time=datetime(2024, 5, 19, 9, 0),
        end_time=datetime(2024, 5, 19, 10, 0),
    )
    time_ledger.edit_time_log(db, entry.id, alice, TimeLogUpdate(description="soon gone"), clock=clock)

    assert time_ledger.delete_time_log(db, entry.id, alice) is True

    assert db.get(TimeLog, entry.id) is None
    assert db.scalars(select(TimeLogEdit)).all() == []
    with pytest.raises(NotFoundError):
        time_ledger.delete_time_log(db, entry.id, alice)


def test_approval_is_admin_only_and_needs_closed_entry(db, alice, admin, clock) -> None:
    entry = time_ledger.start_timer(db, alice, "billable", clock=clock)

    with pytest.raises(InvalidStateError):
        time_ledger.approve_time_log(db, entry.id, admin, clock=clock)

    time_ledger.stop_timer(db, entry.id, alice, clock=clock)
    with pytest.raises(ForbiddenError):
        time_ledger.approve_time_log(db, entry.id, alice, clock=clock)

    approved = time_ledger.approve_time_log(db, entry.id, admin, clock=clock)
    assert approved.approval_status == ApprovalStatus.APPROVED
    assert approved.approved_by_id == admin.user_id


def test_invoice_selection(db, alice, clock) -> None:
    entry = time_ledger.start_timer(db, alice, "invoice me", clock=clock)

    assert time_ledger.set_invoice_selection(db, entry.id, alice, True).is_selected_for_invoice is True
    assert time_ledger.set_invoice_selection(db, entry.id, alice, False).is_selected_for_invoice is False


def test_listing_and_daily_view(db, alice, bob, admin, clock) -> None:
    time_ledger.create_manual_entry(
        db, alice, "yesterday",
        start_time=datetime(2024, 5, 19, 9, 0), end_time=datetime(2024, 5, 19, 10, 0),
    )
    today = time_ledger.start_timer(db, alice, "today", clock=clock)
    time_ledger.start_timer(db, bob, "bob", clock=clock)

    assert [e.description for e in time_ledger.list_time_logs(db, alice)] == ["today", "yesterday"]
    assert len(time_ledger.list_time_logs(db, admin)) == 3
    assert [e.id for e in time_ledger.get_daily_time_logs(db, alice.user_id, date(2024, 5, 20))] == [today.id]


def test_manual_entry_with_offsets_is_stored_as_utc(db, alice) -> None:
    plus_two = timezone(timedelta(hours=2))
    entry = time_ledger.create_manual_entry(
        db, alice, "abroad",
        start_time=datetime(2024, 5, 19, 9, 0, tzinfo=plus_two),
        end_time=datetime(2024, 5, 19, 8, 0, tzinfo=timezone.utc),
    )

    assert entry.start_time == datetime(2024, 5, 19, 7, 0)
    assert entry.end_time == datetime(2024, 5, 19, 8, 0)
    assert entry.duration == 3600


def test_update_schema_normalizes_offsets() -> None:
    changes = TimeLogUpdate(start_time="2024-05-19T09:00:00+02:00", end_time="2024-05-19T11:00:00Z")

    assert changes.start_time == datetime(2024, 5, 19, 7, 0)
    assert changes.end_time == datetime(2024, 5, 19, 11, 0)
    assert changes.end_time.tzinfo is None


def test_edit_accepts_end_time_in_utc_notation(db, alice, clock) -> None:
    entry = time_ledger.create_manual_entry(
        db, alice, "meeting",
        start_time=datetime(2024, 5, 19, 9, 0),
        end_time=datetime(2024, 5, 19, 10, 0),
    )

    edited = time_ledger.edit_time_log(
        db, entry.id, alice, TimeLogUpdate(end_time="2024-05-19T11:00:00Z"), clock=clock,
    )

    assert edited.end_time == datetime(2024, 5, 19, 11, 0)
    assert edited.duration == 2 * 3600


def test_concurrent_starts_leave_one_active_timer(tmp_path) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False)

    with Session() as setup:
        user = User(email="racer@example.com", full_name="Racer")
        setup.add(user)
        setup.commit()
        identity = Identity.from_user(user)

    workers = 8
    barrier = threading.Barrier(workers)
    errors = []

    def start(n: int) -> None:
        session = Session()
        try:
            barrier.wait(5)
            time_ledger.start_timer(session, identity, f"timer {n}")
        except Exception as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=start, args=(n,)) for n in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(30)

    try:
        assert errors == []
        with Session() as check:
            rows = check.scalars(select(TimeLog).where(TimeLog.user_id == identity.user_id)).all()
            assert len(rows) == workers
            assert sum(1 for row in rows if row.is_active) == 1
            assert all(row.duration is not None for row in rows if not row.is_active)
    finally:
        engine.dispose()
