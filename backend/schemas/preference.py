"""Pydantic schemas for preferences."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, model_validator

from services.activation import ActivationMixin
from utils.value_codec import decode_value, encode_value


class PreferenceSnapshot(BaseModel, ActivationMixin):
    """Read-only copy of a preference, as served from the result cache.

    Frozen so that a cached record cannot be changed in place; load the row
    with ``PreferenceStore.find_by_name`` to modify it. The value is kept in
    its encoded form and decoded on every read, so each caller gets its own
    copy of a list or dict value.
    """

    name: str
    value_json: str | None = None
    description: str | None = None
    begin_at: datetime | None = None
    end_at: datetime | None = None
    enabled: bool = False
    available: bool = False
    updated_by: int | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True, "frozen": True}

    @model_validator(mode="before")
    @classmethod
    def encode_plain_value(cls, data):
        """Accept ``value=`` in keyword construction."""
        if isinstance(data, dict) and "value" in data:
            data = dict(data)
            data["value_json"] = encode_value(data.pop("value"))
        return data

    @property
    def value(self) -> Any:
        return decode_value(self.value_json)
