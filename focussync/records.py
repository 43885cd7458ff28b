"""Pydantic models for validating remote collection items.

Only the fields that reconciliation depends on are declared; everything
else a document carries is allowed through untouched. Validation is used
to decide whether a remote item is usable at all. The engine keeps the
original dict, not the model dump, so documents round-trip byte-for-byte.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedRecordError
from .types import Collection


class ReminderRecord(BaseModel):
    """Identity and version of a reminder document."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., min_length=1)
    updated_at: float = Field(default=0, alias="updatedAt")

    @field_validator("updated_at", mode="before")
    @classmethod
    def _missing_is_oldest(cls, value: Any) -> Any:
        # Absent or null timestamps sort before every real write
        return 0 if value is None else value


class AnalyticsRecord(BaseModel):
    """Identity of a focus-session analytics record."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., min_length=1)
    started_at: float = Field(default=0, alias="startedAt")

    @field_validator("started_at", mode="before")
    @classmethod
    def _missing_is_oldest(cls, value: Any) -> Any:
        return 0 if value is None else value


def _parse(model: type, collection: Collection, raw: Any):
    if not isinstance(raw, dict):
        raise MalformedRecordError(
            f"{collection.label} item is {type(raw).__name__}, expected object",
            collection=collection.value,
        )
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedRecordError(
            f"{collection.label} item rejected (invalid: {fields})",
            collection=collection.value,
        ) from e


def parse_reminder(raw: Any) -> ReminderRecord:
    """Validate a remote reminder document.

    Raises:
        MalformedRecordError: If the document has no usable id or a
            non-numeric updatedAt.
    """
    return _parse(ReminderRecord, Collection.REMINDERS, raw)


def parse_analytics(raw: Any) -> AnalyticsRecord:
    """Validate a remote analytics record.

    Raises:
        MalformedRecordError: If the record has no usable id.
    """
    return _parse(AnalyticsRecord, Collection.ANALYTICS, raw)
