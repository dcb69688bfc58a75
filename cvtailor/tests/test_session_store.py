"""
Test the in-memory session store.

Run with: python -m pytest cvtailor/tests/test_session_store.py -v
"""

import logging
from datetime import datetime, timedelta

import pytest

from cvtailor.core.schemas import SessionStatus
from cvtailor.core.session_store import InMemorySessionStore

logger = logging.getLogger(__name__)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def test_create_and_get():
    store = InMemorySessionStore()
    session = store.create()

    logger.info(f"Created {session.session_id}")
    assert session.status == SessionStatus.INITIALIZED
    assert session.collection_name == f"cv_session_{session.session_id}"
    assert store.get(session.session_id) == session
    assert store.get("session_missing") is None
    assert len(store) == 1


def test_update_merges_fields():
    store = InMemorySessionStore()
    session = store.create()

    updated = store.update(session.session_id, cv_text="My CV", status=SessionStatus.PROCESSING)

    assert updated.cv_text == "My CV"
    assert updated.status == SessionStatus.PROCESSING
    assert updated.created_at == session.created_at
    assert store.get(session.session_id).cv_text == "My CV"


def test_update_unknown_session_and_field():
    store = InMemorySessionStore()
    assert store.update("session_missing", cv_text="x") is None

    session = store.create()
    with pytest.raises(ValueError):
        store.update(session.session_id, not_a_field=1)


def test_delete_is_idempotent():
    store = InMemorySessionStore()
    session = store.create()

    assert store.delete(session.session_id) is True
    assert store.delete(session.session_id) is False
    assert store.get(session.session_id) is None


def test_sweep_removes_only_expired():
    clock = FakeClock()
    store = InMemorySessionStore(clock=clock)

    old = store.create()
    clock.advance(minutes=45)
    fresh = store.create()
    clock.advance(minutes=30)  # old is 75 min, fresh is 30 min

    removed = store.sweep(3600)

    assert removed == 1
    assert store.sweep(3600) == 0
    assert store.get(old.session_id) is None
    assert store.get(fresh.session_id) is not None
    assert store.active_session_ids() == [fresh.session_id]


def test_sweep_accepts_timedelta_and_keeps_boundary():
    clock = FakeClock()
    store = InMemorySessionStore(clock=clock)
    session = store.create()

    clock.advance(hours=1)
    assert store.sweep(timedelta(hours=1)) == 0  # exactly max_age is kept

    clock.advance(seconds=1)
    assert store.sweep(timedelta(hours=1)) == 1
    assert store.get(session.session_id) is None
