"""Typed exception hierarchy for preference errors.

Missing preferences are not errors: name-based lookups degrade to
"off" results instead of raising.
"""


class PreferenceError(Exception):
    """Base exception for all preference-related errors.

    Carries the preference name so callers can identify which record failed.
    """

    def __init__(self, message: str, name: str | None = None):
        self.name = name
        super().__init__(message)


class PreferenceValidationError(PreferenceError):
    """A write was rejected: empty or duplicate name, or a disallowed value.

    ``field`` names the offending attribute (``"name"`` or ``"value"``).
    """

    def __init__(self, message: str, field: str, name: str | None = None):
        self.field = field
        super().__init__(message, name)


class DuplicatePreferenceError(PreferenceValidationError):
    """Another preference already has this name."""

    def __init__(self, name: str):
        super().__init__("name has already been taken", field="name", name=name)
