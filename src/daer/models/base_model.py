# src/daer/models/base_model.py
"""Shared Pydantic base models for wire schemas and agent outputs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class DaerBaseModel(BaseModel):
    """Base model serialized with camelCase keys.

    Fields are declared in snake_case and accepted under either name.
    Unexpected keys from clients or LLM output are ignored instead of failing
    validation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class LenientModel(DaerBaseModel):
    """Base for models parsed from LLM output.

    ``None`` values for list fields are replaced with empty lists and strings
    are stripped so small formatting slips from the model do not fail
    validation.
    """

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for field_name, field in cls.model_fields.items():
            for key in (field_name, field.alias):
                if key is None or key not in data:
                    continue
                value = data[key]
                if value is None and _is_list_field(field.annotation):
                    data[key] = []
                elif isinstance(value, str):
                    data[key] = value.strip()
        return data


def _is_list_field(annotation: Any) -> bool:
    origin = getattr(annotation, "__origin__", None)
    return annotation is list or origin is list


__all__ = ["DaerBaseModel", "LenientModel"]
