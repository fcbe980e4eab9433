"""Exact JSON encoding for preference values.

Plain JSON turns tuples into lists and dict keys into strings, so a value
read back could be of a different type than the one written. Containers
JSON cannot express are written as tagged objects instead::

    (1, 2)        -> {"__type__": "tuple", "items": [1, 2]}
    {1: "a"}      -> {"__type__": "dict", "items": [[1, "a"]]}

Dicts with only string keys stay plain JSON objects unless one of the keys
is the tag itself. Only the exact built-in types below are accepted;
anything else (subclasses included) raises ``TypeError``.
"""

import json
from typing import Any

TYPE_TAG = "__type__"

_SCALAR_TYPES = (str, int, float, bool, type(None))
_SEQUENCE_TYPES = {"tuple": tuple, "set": set, "frozenset": frozenset}


def _to_json(value: Any) -> Any:
    kind = type(value)
    if kind in _SCALAR_TYPES:
        return value
    if kind is list:
        return [_to_json(item) for item in value]
    if kind in (tuple, set, frozenset):
        return {TYPE_TAG: kind.__name__, "items": [_to_json(item) for item in value]}
    if kind is dict:
        if TYPE_TAG not in value and all(type(key) is str for key in value):
            return {key: _to_json(item) for key, item in value.items()}
        return {
            TYPE_TAG: "dict",
            "items": [[_to_json(key), _to_json(item)] for key, item in value.items()],
        }
    raise TypeError(f"{kind.__name__} cannot be encoded exactly")


def _from_json(obj: dict) -> Any:
    if TYPE_TAG not in obj:
        return obj
    kind = obj[TYPE_TAG]
    if kind == "dict":
        return {key: item for key, item in obj["items"]}
    return _SEQUENCE_TYPES[kind](obj["items"])


def encode_value(value: Any) -> str | None:
    """Encode ``value`` as JSON text. ``None`` encodes to ``None`` (SQL NULL).

    Raises:
        TypeError: the value, or something nested in it, has no exact encoding.
        RecursionError: the value contains a reference cycle.
    """
    if value is None:
        return None
    return json.dumps(_to_json(value))


def decode_value(text: str | None) -> Any:
    """Decode text written by :func:`encode_value`."""
    if text is None:
        return None
    return json.loads(text, object_hook=_from_json)
