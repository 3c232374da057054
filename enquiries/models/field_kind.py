"""FieldKind constants for form fields.

A constants container rather than an Enum so kinds round-trip through SQL
and JSON as plain strings.
"""

from __future__ import annotations


class FieldKind:
    TEXT_FIELD = "text_field"
    TEXTAREA = "textarea"
    SELECT_BOX = "select_box"
    RADIO_BUTTON = "radio_button"
    CHECK_BOXES = "check_boxes"
    NUMERIC_FIELD = "numeric_field"
    DATE_FIELD = "date_field"
    PHOTO_UPLOAD_BOX = "photo_upload_box"
    AUDIO_UPLOAD_BOX = "audio_upload_box"


ALL_KINDS = frozenset(
    {
        FieldKind.TEXT_FIELD,
        FieldKind.TEXTAREA,
        FieldKind.SELECT_BOX,
        FieldKind.RADIO_BUTTON,
        FieldKind.CHECK_BOXES,
        FieldKind.NUMERIC_FIELD,
        FieldKind.DATE_FIELD,
        FieldKind.PHOTO_UPLOAD_BOX,
        FieldKind.AUDIO_UPLOAD_BOX,
    }
)

ATTACHMENT_KINDS = frozenset({FieldKind.PHOTO_UPLOAD_BOX, FieldKind.AUDIO_UPLOAD_BOX})

# Kinds whose values feed the full-text index unless a field says otherwise
INDEXABLE_BY_DEFAULT = frozenset(
    {
        FieldKind.TEXT_FIELD,
        FieldKind.TEXTAREA,
        FieldKind.SELECT_BOX,
        FieldKind.RADIO_BUTTON,
    }
)

# Submitted names always routed to the attachment store, never to criteria
PHOTO_FIELD_NAME = "photo"
AUDIO_FIELD_NAME = "audio"
RESERVED_ATTACHMENT_NAMES = frozenset({PHOTO_FIELD_NAME, AUDIO_FIELD_NAME})


__all__ = [
    "FieldKind",
    "ALL_KINDS",
    "ATTACHMENT_KINDS",
    "INDEXABLE_BY_DEFAULT",
    "PHOTO_FIELD_NAME",
    "AUDIO_FIELD_NAME",
    "RESERVED_ATTACHMENT_NAMES",
]
