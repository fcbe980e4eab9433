"""Preference store - lookups, creation and switching of preferences by name."""

import logging
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Any, Iterable

from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from models.preference import Preference
from schemas.preference import PreferenceSnapshot
from services import activation
from services.activation import INACTIVE
from services.exceptions import DuplicatePreferenceError, PreferenceValidationError
from services.result_cache import InMemoryCacheBackend, NullCacheBackend, ResultCache
from services.value_policy import ValueClassPolicy, classes_from_names, default_policy
from utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class PreferenceOperation(str, Enum):
    """Operations that can be run against a preference looked up by name."""

    GET_VALUE = "get_value"
    IS_ENABLED = "is_enabled"
    TURN_ON_AT = "turn_on_at"
    TURN_OFF_AT = "turn_off_at"


# What each operation returns when the named preference does not exist
_MISSING_RESULTS: dict[PreferenceOperation, Any] = {
    PreferenceOperation.GET_VALUE: INACTIVE,
    PreferenceOperation.IS_ENABLED: False,
    PreferenceOperation.TURN_ON_AT: False,
    PreferenceOperation.TURN_OFF_AT: False,
}


class PreferenceStore:
    """Store for named preferences backed by the ``preferences`` table.

    Single lookups (``find_by_name``) always hit the database and return
    live ORM rows that may be changed and saved. Bulk reads
    (``find_by_names``, ``all_names``) go through the result cache and
    return frozen snapshots.

    Name-based operations never raise for a missing preference: an unknown
    name behaves like a preference that is switched off.

    Writes commit immediately. Other database errors propagate after the
    session is rolled back.
    """

    def __init__(
        self,
        cache: ResultCache | None = None,
        policy: ValueClassPolicy | None = None,
        clock: Clock | None = None,
    ):
        """Initialize with optional collaborators for dependency injection.

        Args:
            cache: Result cache for bulk reads. Defaults to an in-memory cache.
            policy: Value class whitelist. Defaults to the process-wide policy.
            clock: Source of "now". Defaults to the UTC wall clock.
        """
        self.cache = cache if cache is not None else ResultCache()
        self.policy = policy if policy is not None else default_policy
        self.clock = clock if clock is not None else utc_now

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def find_by_name(db: Session, name: str) -> Preference | None:
        """Get the live record for ``name``, or None. Not cached."""
        return db.query(Preference).filter(Preference.name == name).first()

    def find_by_names(self, db: Session, names: Iterable[str]) -> list[PreferenceSnapshot]:
        """Get snapshots of the named preferences, ordered by name.

        Unknown names are skipped. Results are cached per distinct name set.
        """
        wanted = set(names)
        if not wanted:
            return []

        def compute() -> tuple[PreferenceSnapshot, ...]:
            rows = (
                db.query(Preference)
                .filter(Preference.name.in_(sorted(wanted)))
                .order_by(Preference.name)
                .all()
            )
            return tuple(PreferenceSnapshot.model_validate(row) for row in rows)

        return list(self.cache.by_names(wanted, compute))

    def all_names(self, db: Session) -> list[str]:
        """Get every preference name in ascending order. Cached."""

        def compute() -> tuple[str, ...]:
            rows = db.query(Preference.name).order_by(Preference.name).all()
            return tuple(name for (name,) in rows)

        return list(self.cache.all_names(compute))

    @staticmethod
    def available_names(db: Session) -> list[str]:
        """Names of preferences released for general use. Not cached."""
        rows = (
            db.query(Preference.name)
            .filter(Preference.available.is_(True))
            .order_by(Preference.name)
            .all()
        )
        return [name for (name,) in rows]

    @staticmethod
    def unavailable_names(db: Session) -> list[str]:
        """Names of preferences not yet released for general use. Not cached."""
        rows = (
            db.query(Preference.name)
            .filter(Preference.available.is_not(True))
            .order_by(Preference.name)
            .all()
        )
        return [name for (name,) in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def validate(self, db: Session, record: Preference) -> None:
        """Raise ``PreferenceValidationError`` if ``record`` may not be saved."""
        if not record.name or not record.name.strip():
            raise PreferenceValidationError("name can't be blank", field="name")

        with db.no_autoflush:
            query = db.query(Preference.id).filter(Preference.name == record.name)
            if record.id is not None:
                query = query.filter(Preference.id != record.id)
            taken = query.first() is not None
        if taken:
            raise DuplicatePreferenceError(record.name)

        # Decoding is exact, so this checks the type that was assigned
        self.policy.validate(record.value, name=record.name)

    def save(self, db: Session, record: Preference, updated_by: int | None = None) -> Preference:
        """Validate and commit ``record``. Returns the refreshed record.

        Creating a record or renaming one drops the cached name listings.

        Raises:
            PreferenceValidationError: blank name or disallowed value.
            DuplicatePreferenceError: another record already has the name.
        """
        self.validate(db, record)
        if updated_by is not None:
            record.updated_by = updated_by

        state = inspect(record)
        is_new = state.transient or state.pending
        renamed = not is_new and state.attrs.name.history.has_changes()

        db.add(record)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicatePreferenceError(record.name) from e
        except Exception:
            db.rollback()
            raise

        db.refresh(record)
        if is_new or renamed:
            self.cache.invalidate_name_sets()
        if is_new:
            logger.info("Created preference: %s", record.name)
        else:
            logger.info("Updated preference: %s", record.name)
        return record

    def create(
        self,
        db: Session,
        name: str,
        enabled: bool = False,
        available: bool = False,
        value: Any = None,
        description: str | None = None,
        begin_at: datetime | None = None,
        end_at: datetime | None = None,
        updated_by: int | None = None,
    ) -> Preference:
        """Create and commit a new preference.

        Raises:
            PreferenceValidationError: blank name or disallowed value.
            DuplicatePreferenceError: the name is already taken.
        """
        record = Preference(
            name=name,
            enabled=enabled,
            available=available,
            description=description,
            begin_at=begin_at,
            end_at=end_at,
        )
        record.value = value
        return self.save(db, record, updated_by=updated_by)

    def find_or_create(
        self,
        db: Session,
        name: str,
        enabled: bool = False,
        available: bool = False,
        value: Any = None,
        description: str | None = None,
    ) -> Preference:
        """Return the preference named ``name``, creating it if needed.

        The other arguments are only used when creating. If a concurrent
        creator wins the race for the name, its record is returned.
        """
        existing = self.find_by_name(db, name)
        if existing is not None:
            return existing

        try:
            return self.create(
                db,
                name,
                enabled=enabled,
                available=available,
                value=value,
                description=description,
            )
        except DuplicatePreferenceError:
            existing = self.find_by_name(db, name)
            if existing is None:
                raise
            self.cache.invalidate_name_sets()
            logger.info("Found preference (concurrent insert): %s", name)
            return existing

    # ------------------------------------------------------------------
    # Activation on loaded records
    # ------------------------------------------------------------------

    def is_enabled(self, record, now: datetime | None = None, testing: bool = False) -> bool:
        """Whether ``record`` (row or snapshot) is live at ``now`` (default: clock)."""
        return activation.is_enabled(record, now or self.clock(), testing)

    def get_value(
        self,
        record,
        now: datetime | None = None,
        testing: bool = False,
        default: Any = INACTIVE,
    ) -> Any:
        """The value of ``record`` if live at ``now``, else ``default``."""
        return activation.get_value(record, now or self.clock(), testing, default)

    def apply_turn_on_at(
        self,
        db: Session,
        record: Preference,
        time: datetime | None = None,
        finish_at: datetime | None = None,
        updated_by: int | None = None,
    ) -> Preference:
        """Switch ``record`` on from ``time`` (default: now) until ``finish_at`` and save."""
        activation.turn_on_at(record, time or self.clock(), finish_at)
        record = self.save(db, record, updated_by=updated_by)
        logger.info(
            "Turned on preference %s at %s until %s", record.name, record.begin_at, record.end_at
        )
        return record

    def apply_turn_off_at(
        self,
        db: Session,
        record: Preference,
        time: datetime | None = None,
        updated_by: int | None = None,
    ) -> Preference:
        """Switch ``record`` off from ``time`` (default: now) and save."""
        activation.turn_off_at(record, time or self.clock())
        record = self.save(db, record, updated_by=updated_by)
        logger.info("Turned off preference %s at %s", record.name, record.end_at)
        return record

    # ------------------------------------------------------------------
    # Operations by name
    # ------------------------------------------------------------------

    def dispatch(
        self,
        db: Session,
        name: str,
        operation: PreferenceOperation | str,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Run ``operation`` on the preference named ``name``.

        Returns the operation's "off" result (``INACTIVE`` or False) if no
        such preference exists. Turn operations return True once saved.
        """
        operation = PreferenceOperation(operation)
        record = self.find_by_name(db, name)
        if record is None:
            logger.debug("Preference not found for %s: %s", operation.value, name)
            return _MISSING_RESULTS[operation]

        if operation is PreferenceOperation.GET_VALUE:
            return self.get_value(record, *args, **kwargs)
        if operation is PreferenceOperation.IS_ENABLED:
            return self.is_enabled(record, *args, **kwargs)
        if operation is PreferenceOperation.TURN_ON_AT:
            self.apply_turn_on_at(db, record, *args, **kwargs)
            return True
        if operation is PreferenceOperation.TURN_OFF_AT:
            self.apply_turn_off_at(db, record, *args, **kwargs)
            return True
        raise ValueError(f"Unsupported preference operation: {operation!r}")

    def value(self, db: Session, name: str, now: datetime | None = None, testing: bool = False) -> Any:
        """The live value of ``name``, or ``INACTIVE`` if off or missing."""
        return self.dispatch(db, name, PreferenceOperation.GET_VALUE, now=now, testing=testing)

    def enabled(self, db: Session, name: str, now: datetime | None = None, testing: bool = False) -> bool:
        """Whether ``name`` exists and is live."""
        return self.dispatch(db, name, PreferenceOperation.IS_ENABLED, now=now, testing=testing)

    def turn_on_at(
        self,
        db: Session,
        name: str,
        time: datetime | None = None,
        finish_at: datetime | None = None,
        updated_by: int | None = None,
    ) -> bool:
        """Switch ``name`` on from ``time``. False if there is no such preference."""
        return self.dispatch(
            db,
            name,
            PreferenceOperation.TURN_ON_AT,
            time=time,
            finish_at=finish_at,
            updated_by=updated_by,
        )

    def turn_off_at(
        self,
        db: Session,
        name: str,
        time: datetime | None = None,
        updated_by: int | None = None,
    ) -> bool:
        """Switch ``name`` off from ``time``. False if there is no such preference."""
        return self.dispatch(
            db, name, PreferenceOperation.TURN_OFF_AT, time=time, updated_by=updated_by
        )


@lru_cache
def get_preference_store() -> PreferenceStore:
    """Get the process-wide store configured from settings (cached)."""
    if settings.PREFERENCE_CACHE_ENABLED:
        backend = InMemoryCacheBackend(ttl_seconds=settings.PREFERENCE_CACHE_TTL_SECONDS)
    else:
        backend = NullCacheBackend()

    if settings.PREFERENCE_ALLOWED_VALUE_TYPES:
        allowed = classes_from_names(settings.PREFERENCE_ALLOWED_VALUE_TYPES)
        default_policy.configure(lambda _: allowed)

    return PreferenceStore(cache=ResultCache(backend), policy=default_policy)
