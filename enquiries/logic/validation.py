"""Kind-aware validation of submitted criteria and attachment uploads.

Only names declared in the schema are checked; undeclared names pass through
unvalidated. Empty values are accepted for every kind. All problems are
collected and reported together as one `ValidationFailure`.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from enquiries.logic.errors import ValidationFailure
from enquiries.models.enquiry import AttachmentUpload
from enquiries.models.field_kind import AUDIO_FIELD_NAME, PHOTO_FIELD_NAME, FieldKind
from enquiries.models.schema import Field

_DATE_FORMATS = ("%d %b %Y", "%d %B %Y")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def _check_text(field: Field, value: str) -> Optional[str]:
    if field.max_length is not None and len(value) > field.max_length:
        return f"must be at most {field.max_length} characters"
    if field.pattern and not re.fullmatch(field.pattern, value):
        return "does not match the required format"
    return None


def validate_field_value(field: Field, value: Any) -> Optional[str]:
    """Return an error message for `value` under `field`, or None when valid."""
    if _is_empty(value):
        return None

    if field.kind == FieldKind.CHECK_BOXES:
        items = value if isinstance(value, list) else [value]
        if not all(isinstance(i, str) for i in items):
            return "must be a list of strings"
        if field.options is not None:
            unknown = [i for i in items if i not in field.options]
            if unknown:
                return f"unknown option(s): {', '.join(unknown)}"
        return None

    if not isinstance(value, str):
        return "must be a string"

    if field.kind == FieldKind.NUMERIC_FIELD:
        try:
            float(value)
        except ValueError:
            return "must be a number"
        return None
    if field.kind == FieldKind.DATE_FIELD:
        if _parse_date(value) is None:
            return "must be a date (YYYY-MM-DD or DD Mon YYYY)"
        return None
    if field.kind in (FieldKind.SELECT_BOX, FieldKind.RADIO_BUTTON):
        if field.options is not None and value not in field.options:
            return "is not one of the allowed options"
        return None
    return _check_text(field, value)


def validate_criteria(criteria: Dict[str, Any], schema_fields: Dict[str, Field]) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    for name, value in criteria.items():
        field = schema_fields.get(name)
        if field is None:
            continue
        message = validate_field_value(field, value)
        if message:
            errors.append({"field": name, "message": message})
    return errors


def _check_upload(upload: AttachmentUpload, media_prefix: str, max_bytes: int) -> Optional[str]:
    if not upload.data:
        return "file is empty"
    if len(upload.data) > max_bytes:
        return f"file exceeds {max_bytes} bytes"
    if upload.content_type and not upload.content_type.lower().startswith(media_prefix):
        return f"content type {upload.content_type} is not {media_prefix}*"
    return None


def validate_uploads(
    photos: Sequence[AttachmentUpload],
    audio: Optional[AttachmentUpload],
    max_bytes: int,
) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    for idx, photo in enumerate(photos):
        message = _check_upload(photo, "image/", max_bytes)
        if message:
            errors.append({"field": f"{PHOTO_FIELD_NAME}[{idx}]", "message": message})
    if audio is not None:
        message = _check_upload(audio, "audio/", max_bytes)
        if message:
            errors.append({"field": AUDIO_FIELD_NAME, "message": message})
    return errors


def ensure_valid(
    criteria: Dict[str, Any],
    schema_fields: Dict[str, Field],
    photos: Sequence[AttachmentUpload],
    audio: Optional[AttachmentUpload],
    max_bytes: int,
) -> None:
    errors = validate_criteria(criteria, schema_fields) + validate_uploads(photos, audio, max_bytes)
    if errors:
        raise ValidationFailure(errors, attempted_criteria=criteria)


__all__ = [
    "validate_field_value",
    "validate_criteria",
    "validate_uploads",
    "ensure_valid",
]
