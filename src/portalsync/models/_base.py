"""Base model and enum for portal records.

Every portal model inherits from :class:`PortalBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase store keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` values so
  the field default is used.
* A ``raw`` dict that captures the original materialized entity.

Models are an optional typed view over materialized entities; the
subscription layer itself stays schema-free.

String enums inherit from :class:`PortalEnum` which resolves any value
without a mapped member to ``UNKNOWN``.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from portalsync.exceptions import PortalValidationError
from portalsync.ingestion.normalize import to_datetime

PortalTimestamp = Annotated[datetime | None, BeforeValidator(to_datetime)]
"""Annotated type that accepts datetimes, store timestamps, epoch numbers or ISO strings."""


class PortalEnum(str, enum.Enum):
    """Base for portal string enums.

    Every subclass **must** define ``UNKNOWN = "unknown"``.
    """

    @classmethod
    def _missing_(cls, value: object) -> PortalEnum:
        unknown: PortalEnum = cls.UNKNOWN  # type: ignore[attr-defined]
        return unknown


class PortalBaseModel(BaseModel):
    """Base for portal record models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original materialized entity."""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        """Drop ``None`` values and stash the raw entity."""
        if not isinstance(values, Mapping):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned


M = TypeVar("M", bound=PortalBaseModel)


def parse_entity(model: type[M], entity: Mapping[str, Any]) -> M:
    """Validate one materialized entity into *model*.

    Raises
    ------
    PortalValidationError
        The entity does not fit the model.
    """
    try:
        return model.model_validate(entity)
    except ValidationError as err:
        raise PortalValidationError(f"Invalid {model.__name__} record: {err}") from err


def parse_entities(model: type[M], entities: Iterable[Mapping[str, Any]]) -> list[M]:
    return [parse_entity(model, entity) for entity in entities]
