# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taskledger.core.identity import Identity
from taskledger.database import Base, build_engine
from taskledger.models import User, UserRole
from taskledger.schemas import TaskCreate
from taskledger.services import task_store


class FakeClock:
    """Controllable clock: returns `now` until advanced"""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def engine():
    """
    Private in-memory database per test.

    StaticPool keeps one connection alive so every session (and the
    TestClient's worker thread) sees the same in-memory tables.
    """
    eng = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 20, 12, 0, 0))


def _make_user(db, email: str, role: UserRole = UserRole.USER) -> User:
    user = User(email=email, full_name=email.split("@")[0].title(), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def alice_user(db) -> User:
    return _make_user(db, "alice@example.com")


@pytest.fixture()
def bob_user(db) -> User:
    return _make_user(db, "bob@example.com")


@pytest.fixture()
def admin_user(db) -> User:
    return _make_user(db, "admin@example.com", UserRole.ADMIN)


@pytest.fixture()
def alice(alice_user) -> Identity:
    return Identity.from_user(alice_user)


@pytest.fixture()
def bob(bob_user) -> Identity:
    return Identity.from_user(bob_user)


@pytest.fixture()
def admin(admin_user) -> Identity:
    return Identity.from_user(admin_user)


@pytest.fixture()
def make_task(db, alice):
    """Factory creating tasks owned by alice unless another identity is given"""

    def _make(description: str, identity: Identity = None, **fields):
        data = TaskCreate(description=description, **fields)
        return task_store.create_task(db, identity or alice, data)

    return _make
