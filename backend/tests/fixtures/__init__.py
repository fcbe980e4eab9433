"""Test fixtures and sample data."""
import pytest
from datetime import datetime, timedelta, timezone

from models import Preference
from sqlalchemy.orm import Session

# Fixed "now" used by the store clock in tests
NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)
YESTERDAY = NOW - timedelta(days=1)
TOMORROW = NOW + timedelta(days=1)
LAST_WEEK = NOW - timedelta(days=7)
NEXT_WEEK = NOW + timedelta(days=7)

# name -> column values
SAMPLE_PREFERENCES: dict[str, dict] = {
    "Site Name": dict(value="Best Ever Website", enabled=True, available=True),
    "Max File Size": dict(value=10, enabled=True, available=False),
    "Min Hat Size": dict(
        value=2, enabled=True, available=False, begin_at=LAST_WEEK, end_at=NEXT_WEEK
    ),
    "Max Chipmunk Size": dict(value=3, enabled=False, available=True),
    "Min Wallet Size": dict(
        value=1, enabled=False, available=True, begin_at=LAST_WEEK, end_at=NEXT_WEEK
    ),
    "Max Photo Size": dict(
        value=5, enabled=True, available=True, begin_at=LAST_WEEK, end_at=NEXT_WEEK
    ),
    "Preferred shape of cheese": dict(
        value="wedge", enabled=True, available=True, begin_at=LAST_WEEK
    ),
    "Preferred shape of pie": dict(
        value="round", enabled=True, available=True, end_at=NEXT_WEEK
    ),
    "Antler Size Maximum": dict(
        value=12.5, enabled=True, available=True, begin_at=NEXT_WEEK
    ),
    "Min Shoe Size": dict(value=4, enabled=True, available=True, end_at=YESTERDAY),
    "Users Can Login": dict(value=True, enabled=True, available=True),
    "Zebra Color": dict(value="stripes", enabled=False, available=False),
}


def create_preference(db: Session, name: str, **fields) -> Preference:
    """Insert a Preference row directly, bypassing the store.

    This is a helper function (not a fixture) for tests that need a row in
    a specific state without going through validation or the cache.
    """
    value = fields.pop("value", None)
    pref = Preference(name=name, **fields)
    pref.value = value
    db.add(pref)
    db.commit()
    db.refresh(pref)
    return pref


@pytest.fixture
def preferences(db: Session) -> dict[str, Preference]:
    """Create the sample preference set, keyed by name."""
    return {
        name: create_preference(db, name, **dict(fields))
        for name, fields in SAMPLE_PREFERENCES.items()
    }
