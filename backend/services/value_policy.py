"""Whitelist of value types a preference may hold."""

import logging
import numbers
import threading
from typing import Any, Callable, Iterable

from services.exceptions import PreferenceValidationError

logger = logging.getLogger(__name__)

DEFAULT_VALUE_CLASSES: tuple[type, ...] = (str, numbers.Number, bool, type(None))

# Names accepted by Settings.PREFERENCE_ALLOWED_VALUE_TYPES
VALUE_CLASS_NAMES: dict[str, type] = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "none": type(None),
    "number": numbers.Number,
}

VALUE_CLASS_ERROR_MSG = "value class is invalid, configure with ValueClassPolicy.configure"


class ValueClassPolicy:
    """Mutable set of classes accepted for ``Preference.value``.

    Changes made through :meth:`configure` take effect for every later
    validation through this policy object, with no versioning or rollback.
    Readers always see either the old or the new list, never a mix.
    """

    def __init__(self, allowed_classes: Iterable[type] | None = None):
        self._lock = threading.Lock()
        self._allowed: list[type] = list(
            DEFAULT_VALUE_CLASSES if allowed_classes is None else allowed_classes
        )

    @property
    def allowed_classes(self) -> tuple[type, ...]:
        """The current whitelist."""
        return tuple(self._allowed)

    def configure(self, mutator: Callable[[list[type]], Iterable[type] | None]) -> None:
        """Apply ``mutator`` to the whitelist.

        The mutator receives a mutable copy of the current list. It may edit
        the list in place, or return a new iterable that replaces it::

            policy.configure(lambda classes: classes.append(dict))
            policy.configure(lambda classes: [dict])
        """
        with self._lock:
            working = list(self._allowed)
            result = mutator(working)
            if result is not None:
                working = list(result)
            self._allowed = working
        logger.info(
            "Preference value classes set to: %s",
            ", ".join(cls.__name__ for cls in working),
        )

    def reset(self) -> None:
        """Restore the default whitelist."""
        self.configure(lambda _: DEFAULT_VALUE_CLASSES)

    def is_allowed(self, value: Any) -> bool:
        """Return True if the runtime type of ``value`` is whitelisted."""
        return isinstance(value, tuple(self._allowed))

    def validate(self, value: Any, name: str | None = None) -> None:
        """Raise ``PreferenceValidationError`` if ``value`` is not allowed."""
        if not self.is_allowed(value):
            raise PreferenceValidationError(
                f"{type(value).__name__}: {VALUE_CLASS_ERROR_MSG}",
                field="value",
                name=name,
            )


def classes_from_names(names: str) -> list[type]:
    """Map a comma-separated type list (as in settings) to classes."""
    return [VALUE_CLASS_NAMES[part.strip()] for part in names.split(",") if part.strip()]


default_policy = ValueClassPolicy()
