"""Preference model - a named, typed, time-gated feature switch."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from database import Base
from services import activation
from services.activation import ActivationMixin
from services.exceptions import PreferenceValidationError
from utils.clock import utc_now
from utils.value_codec import decode_value, encode_value


class Preference(Base, ActivationMixin):
    """A single preference with its activation window and switches.

    ``enabled`` is the administrator's switch. ``available`` belongs to the
    access-control layer and is never changed by the activation transitions.
    """

    __tablename__ = "preferences"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), unique=True, index=True, nullable=False)
    value_json = Column("value", Text, nullable=True)  # see utils.value_codec
    description = Column(String(255), nullable=True)
    begin_at = Column(DateTime(timezone=True), nullable=True)
    end_at = Column(DateTime(timezone=True), nullable=True)
    enabled = Column(Boolean, nullable=False, default=False)
    available = Column(Boolean, nullable=False, default=False)
    updated_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    @property
    def value(self) -> Any:
        """The decoded value, of exactly the type that was assigned."""
        return decode_value(self.value_json)

    @value.setter
    def value(self, new_value: Any) -> None:
        try:
            self.value_json = encode_value(new_value)
        except (TypeError, RecursionError) as e:
            raise PreferenceValidationError(
                f"{type(new_value).__name__} value cannot be stored: {e}",
                field="value",
                name=self.name,
            ) from e

    def turn_on_at(self, time: datetime | None = None, finish_at: datetime | None = None) -> None:
        """Switch on from ``time`` (default: now). Not persisted until saved."""
        activation.turn_on_at(self, time or utc_now(), finish_at)

    def turn_off_at(self, time: datetime | None = None) -> None:
        """Switch off from ``time`` (default: now). Not persisted until saved."""
        activation.turn_off_at(self, time or utc_now())

    def __repr__(self) -> str:
        return f"<Preference {self.name!r} enabled={self.enabled} available={self.available}>"
