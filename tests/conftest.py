"""Pytest configuration and fixtures."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from app.core.state import DraftStore
from app.db.session import init_db
from app.services import households
from app.services.wizard import AddItemWizard


UTC = ZoneInfo("UTC")


@pytest.fixture(autouse=True)
def db(tmp_path):
    """Fresh SQLite database file for every test."""
    init_db(None, str(tmp_path / "test.db"))
    yield


@pytest.fixture
def now():
    return datetime.now(tz=UTC)


@pytest.fixture
def store():
    return DraftStore(ttl_hours=24)


@pytest.fixture
def wizard(store):
    return AddItemWizard(store)


@pytest.fixture
def couple():
    """Two members sharing one household: (creator, partner, household)."""
    alice = households.resolve_member(1001, "Alice")
    bob = households.resolve_member(1002, "Bob")
    household = households.create_household(alice, "Home")
    households.join_household(bob, household.invite_code)
    return alice, bob, household
