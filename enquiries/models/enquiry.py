"""Enquiry record and attachment upload value types.

An `Enquiry` is an immutable value: the record engine derives a new draft
for every mutation and only the persistence step makes it durable.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Well-known name of the form that defines enquiry criteria
ENQUIRY_FORM_NAME = "Enquiries"
ENQUIRY_RESOURCE = "Enquiry"


class Enquiry(BaseModel):
    model_config = ConfigDict(frozen=True)

    enquiry_id: str
    criteria: Dict[str, Any] = Field(default_factory=dict)
    # Ordered: the first key is the primary photo
    photo_keys: List[str] = Field(default_factory=list)
    recorded_audio: Optional[str] = None
    created_by: str
    created_at: str
    last_updated_at: Optional[str] = None

    @property
    def primary_photo_key(self) -> Optional[str]:
        return self.photo_keys[0] if self.photo_keys else None


class AttachmentUpload(BaseModel):
    """One uploaded blob as received from the caller."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None


class AttachmentInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    attachment_key: str
    content_type: Optional[str] = None
    byte_size: int


__all__ = [
    "ENQUIRY_FORM_NAME",
    "ENQUIRY_RESOURCE",
    "Enquiry",
    "AttachmentUpload",
    "AttachmentInfo",
]
