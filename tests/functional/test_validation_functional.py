"""Kind-aware validation of criteria and uploads."""

from __future__ import annotations

import pytest

from enquiries.logic.errors import ValidationFailure
from enquiries.logic.validation import ensure_valid, validate_criteria, validate_field_value, validate_uploads
from enquiries.models.enquiry import AttachmentUpload
from enquiries.models.schema import Field


@pytest.mark.parametrize(
    "field,value,ok",
    [
        (Field(name="n", kind="numeric_field"), "12", True),
        (Field(name="n", kind="numeric_field"), "twelve", False),
        (Field(name="d", kind="date_field"), "2019-05-01", True),
        (Field(name="d", kind="date_field"), "1 May 2019", True),
        (Field(name="d", kind="date_field"), "yesterday", False),
        (Field(name="g", kind="select_box", options=["Male", "Female"]), "Female", True),
        (Field(name="g", kind="radio_button", options=["Yes", "No"]), "Maybe", False),
        (Field(name="l", kind="check_boxes", options=["English", "Amharic"]), ["English"], True),
        (Field(name="l", kind="check_boxes", options=["English", "Amharic"]), ["French"], False),
        (Field(name="t", kind="text_field", max_length=3), "abcd", False),
        (Field(name="t", kind="text_field", pattern=r"[0-9]+"), "12a", False),
        (Field(name="t", kind="textarea"), 42, False),
        (Field(name="t", kind="text_field", max_length=3), "", True),
        (Field(name="n", kind="numeric_field"), None, True),
    ],
)
def test_field_values_by_kind(field, value, ok):
    assert (validate_field_value(field, value) is None) is ok


def test_undeclared_criteria_pass_through():
    assert validate_criteria({"free_note": 123}, {}) == []


def test_upload_rules(photo_bytes, audio_bytes):
    errors = validate_uploads(
        [
            AttachmentUpload(data=photo_bytes, content_type="image/jpeg"),
            AttachmentUpload(data=b"", content_type="image/jpeg"),
            AttachmentUpload(data=photo_bytes, content_type="text/plain"),
        ],
        AttachmentUpload(data=audio_bytes, content_type="image/png"),
        max_bytes=1024,
    )

    assert [e["field"] for e in errors] == ["photo[1]", "photo[2]", "audio"]


def test_upload_over_size_limit(photo_bytes):
    errors = validate_uploads([AttachmentUpload(data=photo_bytes)], None, max_bytes=4)
    assert errors == [{"field": "photo[0]", "message": "file exceeds 4 bytes"}]


def test_ensure_valid_collects_every_problem():
    fields = {
        "age": Field(name="age", kind="numeric_field"),
        "gender": Field(name="gender", kind="select_box", options=["Male", "Female"]),
    }
    with pytest.raises(ValidationFailure) as exc_info:
        ensure_valid({"age": "old", "gender": "?"}, fields, [], None, max_bytes=10)

    assert {e["field"] for e in exc_info.value.errors} == {"age", "gender"}
    assert exc_info.value.attempted_criteria == {"age": "old", "gender": "?"}
