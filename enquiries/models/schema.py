"""Pydantic models for the declarative form schema.

`Form` -> ordered `FormSection` -> ordered `Field`. Instances are frozen:
the registry hands out values, never shared mutable state.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField, computed_field, field_validator

from enquiries.models.field_kind import ALL_KINDS, ATTACHMENT_KINDS, INDEXABLE_BY_DEFAULT


class Field(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: str
    display_name: Optional[str] = None
    options: Optional[List[str]] = None
    max_length: Optional[int] = PydanticField(default=None, gt=0)
    pattern: Optional[str] = None
    # None means "derive from kind"
    searchable: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_must_be_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("field name must be a non-empty string")
        return v.strip()

    @field_validator("kind")
    @classmethod
    def kind_must_be_known(cls, v: str) -> str:
        if v not in ALL_KINDS:
            raise ValueError(f"field kind must be one of {sorted(ALL_KINDS)}")
        return v

    @property
    def is_attachment(self) -> bool:
        return self.kind in ATTACHMENT_KINDS

    @computed_field  # type: ignore[misc]
    @property
    def indexable(self) -> bool:
        if self.is_attachment:
            return False
        if self.searchable is not None:
            return self.searchable
        return self.kind in INDEXABLE_BY_DEFAULT


class FormSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    section_key: str
    title: Optional[str] = None
    order: int = 0
    fields: List[Field] = PydanticField(default_factory=list)


class Form(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    sections: List[FormSection] = PydanticField(default_factory=list)


__all__ = ["Field", "FormSection", "Form"]
