"""Base model and enum for fleetsim records.

Every storage-facing record inherits from :class:`FleetBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase storage keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` and empty-string
  values so the field default is used.

Category enums inherit from :class:`FleetEnum` which adds an ``UNKNOWN``
member and a ``_missing_`` hook that returns ``UNKNOWN`` for any value
without a mapped member.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
"""Datetime that is always timezone-aware UTC after validation."""


class FleetEnum(enum.StrEnum):
    """Base for string category enums.

    Every subclass **must** define ``UNKNOWN = "unknown"``.
    Values without a mapped member resolve to ``UNKNOWN`` instead of
    raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> FleetEnum:
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        if hasattr(cls, "UNKNOWN"):
            unknown: FleetEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))


class FleetBaseModel(BaseModel):
    """Base for fleetsim records.

    Handles:
    * camelCase → snake_case via ``alias_generator=to_camel``
    * ``None`` / ``""`` values → dropped so the field default is used
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {
            key: value
            for key, value in values.items()
            if value is not None and not (isinstance(value, str) and not value.strip())
        }
