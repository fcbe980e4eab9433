"""Activation rules deciding whether a preference is live right now.

Everything here is a pure function of a record's state and an explicit
``now``; nothing reads the database or shared state, so the checks are safe
to run from any number of threads.

A record is anything with the ``Preference`` attributes: an ORM row or a
cached ``PreferenceSnapshot``.
"""

from datetime import datetime
from typing import Any, Protocol

from utils.clock import as_utc, utc_now


class PreferenceState(Protocol):
    """Attributes the activation rules read."""

    value: Any
    enabled: bool
    available: bool
    begin_at: datetime | None
    end_at: datetime | None


class _Inactive:
    """Result of reading a preference that is not currently enabled.

    Falsy like ``None`` and ``False``, but distinct from both so that a
    stored ``False`` or ``None`` value can be told apart from "off".
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "INACTIVE"

    def __reduce__(self):
        return (_Inactive, ())


INACTIVE = _Inactive()


def is_enabled(record: PreferenceState, now: datetime, testing: bool = False) -> bool:
    """Return True if ``record`` is live at ``now``.

    ``testing=True`` bypasses the ``available`` gate only, so an admin can
    preview a feature that has not been released; ``enabled`` still applies.
    Window boundaries are inclusive.
    """
    if not record.enabled:
        return False
    if not (record.available or testing):
        return False

    now = as_utc(now)
    begin_at = as_utc(record.begin_at)
    if begin_at is not None and begin_at > now:
        return False
    end_at = as_utc(record.end_at)
    if end_at is not None and end_at < now:
        return False
    return True


def get_value(
    record: PreferenceState,
    now: datetime,
    testing: bool = False,
    default: Any = INACTIVE,
) -> Any:
    """Return ``record.value`` if the record is live at ``now``, else ``default``.

    This is the read path for gating behavior; reading ``.value`` directly
    ignores the switches and the window.
    """
    if is_enabled(record, now, testing):
        return record.value
    return default


def turn_on_at(record: PreferenceState, time: datetime, finish_at: datetime | None = None) -> None:
    """Schedule ``record`` to switch on at ``time`` and optionally off at ``finish_at``.

    Leaves ``available`` alone; the caller persists the change.
    """
    record.begin_at = time
    record.end_at = finish_at
    record.enabled = True


def turn_off_at(record: PreferenceState, time: datetime) -> None:
    """Schedule ``record`` to switch off at ``time``.

    ``enabled`` is forced on so the end time alone decides the state from
    here on. Leaves ``available`` alone; the caller persists the change.
    """
    record.end_at = time
    record.enabled = True


class ActivationMixin:
    """Clock-reading shortcuts for models exposing ``PreferenceState``."""

    def is_enabled(self, now: datetime | None = None, testing: bool = False) -> bool:
        """Whether this preference is live at ``now`` (default: current UTC time).

        See the module-level :func:`is_enabled` for the rules.
        """
        return is_enabled(self, now or utc_now(), testing)

    def get_value(
        self,
        now: datetime | None = None,
        testing: bool = False,
        default: Any = INACTIVE,
    ) -> Any:
        """The value if live at ``now`` (default: current UTC time), else ``default``."""
        return get_value(self, now or utc_now(), testing, default)
