"""Unit tests for SQLAlchemy models."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from models import Preference
from schemas.preference import PreferenceSnapshot
from services.activation import INACTIVE
from services.exceptions import PreferenceValidationError
from tests.fixtures import NOW, create_preference


def test_preference_defaults(db):
    """Test Preference column defaults."""
    pref = create_preference(db, "defaults")
    assert pref.id is not None
    assert pref.enabled is False
    assert pref.available is False
    assert pref.value is None
    assert pref.value_json is None
    assert pref.begin_at is None
    assert pref.end_at is None
    assert pref.updated_by is None
    assert pref.created_at is not None
    assert pref.updated_at is not None


def test_preference_value_is_stored_as_json(db):
    """Test that the value column holds JSON text."""
    pref = create_preference(db, "json", value=5)
    assert pref.value_json == "5"
    pref.value = "5"
    assert pref.value_json == '"5"'


def test_preference_unstorable_value():
    """Test that a non-JSON value is rejected on assignment."""
    pref = Preference(name="bad")
    with pytest.raises(PreferenceValidationError) as exc_info:
        pref.value = object()
    assert exc_info.value.field == "value"
    assert exc_info.value.name == "bad"


def test_preference_name_is_unique(db):
    """Test the unique index on name."""
    create_preference(db, "only once")
    db.add(Preference(name="only once"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_preference_name_is_required(db):
    """Test that name is NOT NULL."""
    db.add(Preference())
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_preference_datetimes_read_back_as_utc(db):
    """Test that window times compare correctly after a database round trip."""
    pref = create_preference(
        db, "window", enabled=True, available=True, begin_at=NOW, end_at=NOW + timedelta(hours=1)
    )
    db.expire_all()
    assert pref.is_enabled(NOW) is True
    assert pref.is_enabled(NOW - timedelta(seconds=1)) is False


def test_preference_get_value(db):
    """Test the clock-reading shortcuts on the model."""
    pref = create_preference(db, "shortcut", value="on", enabled=True, available=False)
    assert pref.get_value(NOW) is INACTIVE
    assert pref.get_value(NOW, testing=True) == "on"


def test_preference_turn_on_at_defaults_to_now():
    """Test that turn_on_at without a time uses the current time."""
    pref = Preference(name="now", enabled=False)
    before = datetime.now(timezone.utc)
    pref.turn_on_at()
    assert pref.enabled is True
    assert pref.begin_at >= before
    assert pref.end_at is None


def test_preference_turn_off_at():
    """Test that turn_off_at sets end_at and enabled in memory."""
    pref = Preference(name="off", enabled=False, available=True)
    pref.turn_off_at(NOW)
    assert pref.end_at == NOW
    assert pref.enabled is True
    assert pref.available is True


def test_preference_repr():
    pref = Preference(name="Site Name", enabled=True, available=False)
    assert repr(pref) == "<Preference 'Site Name' enabled=True available=False>"


def test_preference_value_keeps_container_types(db):
    """Test that tuples and non-string dict keys survive a database round trip."""
    pref = create_preference(db, "containers", value={1: (2, 3)})
    db.expire_all()
    assert pref.value == {1: (2, 3)}
    assert isinstance(pref.value[1], tuple)


def test_preference_snapshot_value_is_decoded_per_read(db):
    """Test that each read of a snapshot value is an independent copy."""
    pref = create_preference(db, "snap", value=["a"])
    snapshot = PreferenceSnapshot.model_validate(pref)
    snapshot.value.append("b")
    assert snapshot.value == ["a"]
    assert snapshot.value_json == pref.value_json
