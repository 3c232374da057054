"""Functional tests for the record engine: create, update, read and attachment access."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from enquiries.logic.attachment_store import attachment_key_for
from enquiries.logic.errors import (
    AttachmentNotFound,
    EnquiryNotFound,
    OperationTimedOut,
    PersistFailure,
    ValidationFailure,
)
from enquiries.logic.record_engine import partition_submission
from enquiries.logic.schema_registry import fields_by_name
from enquiries.models.enquiry import AttachmentUpload


def _photo(data: bytes) -> AttachmentUpload:
    return AttachmentUpload(data=data, content_type="image/jpeg", filename="photo.jpg")


def _audio(data: bytes) -> AttachmentUpload:
    return AttachmentUpload(data=data, content_type="audio/mpeg", filename="clip.mp3")


def test_create_persists_criteria_photos_and_audio(records, sections, photo_bytes, other_photo_bytes, audio_bytes):
    created = records.create(
        sections,
        {"enquirer_name": "Amina", "child_name": "Yusuf", "gender": "Male"},
        uploaded_photos=[_photo(photo_bytes), _photo(other_photo_bytes)],
        uploaded_audio=_audio(audio_bytes),
        actor_identity="worker1",
    )

    assert created.criteria == {"enquirer_name": "Amina", "child_name": "Yusuf", "gender": "Male"}
    assert created.photo_keys == [attachment_key_for(photo_bytes), attachment_key_for(other_photo_bytes)]
    assert created.primary_photo_key == attachment_key_for(photo_bytes)
    assert created.recorded_audio == attachment_key_for(audio_bytes)
    assert created.created_by == "worker1"
    assert created.created_at == "2024-03-01T10:01:00Z"
    assert created.last_updated_at is None
    assert records.load(created.enquiry_id) == created
    assert records.primary_photo(created) == photo_bytes
    assert records.audio(created) == audio_bytes


def test_create_without_criteria_is_allowed(records, sections):
    created = records.create(sections, {}, actor_identity="worker1")

    assert created.criteria == {}
    assert records.repository.count() == 1


def test_each_create_gets_a_fresh_identifier(records, sections):
    first = records.create(sections, {"child_name": "A"})
    second = records.create(sections, {"child_name": "A"})
    assert first.enquiry_id != second.enquiry_id


def test_embedded_uploads_are_routed_out_of_criteria(records, sections, photo_bytes, other_photo_bytes, audio_bytes):
    created = records.create(
        sections,
        {
            "child_name": "Yusuf",
            "photo": {"1": _photo(other_photo_bytes), "0": _photo(photo_bytes)},
            "audio": _audio(audio_bytes),
        },
    )

    assert created.criteria == {"child_name": "Yusuf"}
    assert created.photo_keys == [attachment_key_for(photo_bytes), attachment_key_for(other_photo_bytes)]
    assert created.recorded_audio == attachment_key_for(audio_bytes)


def test_reserved_names_never_reach_criteria(records, sections):
    created = records.create(sections, {"child_name": "Yusuf", "photo": "not a file", "audio": ""})

    assert created.criteria == {"child_name": "Yusuf"}
    assert created.photo_keys == []
    assert created.recorded_audio is None


def test_file_under_plain_field_is_rejected(sections, photo_bytes):
    with pytest.raises(ValidationFailure) as exc_info:
        partition_submission({"child_name": _photo(photo_bytes)}, fields_by_name(sections))
    assert exc_info.value.errors[0]["field"] == "child_name"


def test_validation_failure_writes_nothing(records, sections, photo_bytes):
    with pytest.raises(ValidationFailure) as exc_info:
        records.create(
            sections,
            {"child_name": "Yusuf", "gender": "Unknown", "age": "ten"},
            uploaded_photos=[_photo(photo_bytes)],
        )

    assert {e["field"] for e in exc_info.value.errors} == {"gender", "age"}
    assert exc_info.value.attempted_criteria["child_name"] == "Yusuf"
    assert records.repository.count() == 0
    assert records.attachments.count() == 0


def test_more_than_one_audio_is_rejected(records, sections, audio_bytes):
    with pytest.raises(ValidationFailure):
        records.create(sections, {"audio": _audio(audio_bytes)}, uploaded_audio=_audio(audio_bytes + b"x"))


def test_oversized_upload_is_rejected(records, sections, photo_bytes):
    records.max_attachment_bytes = 8
    with pytest.raises(ValidationFailure) as exc_info:
        records.create(sections, {"child_name": "Yusuf"}, uploaded_photos=[_photo(photo_bytes)])
    assert exc_info.value.errors[0]["field"] == "photo[0]"


def test_identical_photos_share_one_blob(records, sections, photo_bytes):
    first = records.create(sections, {"child_name": "A"}, uploaded_photos=[_photo(photo_bytes)])
    second = records.create(sections, {"child_name": "B"}, uploaded_photos=[_photo(photo_bytes)])

    assert first.photo_keys == second.photo_keys
    assert records.attachments.count() == 1


def test_update_merges_criteria_and_keeps_creator(records, sections):
    created = records.create(sections, {"enquirer_name": "Amina", "child_name": "Yusuf"}, actor_identity="worker1")

    updated = records.update(created.enquiry_id, sections, {"child_name": "Yusuf Ali", "age": "7"})

    assert updated.criteria == {"enquirer_name": "Amina", "child_name": "Yusuf Ali", "age": "7"}
    assert updated.created_by == "worker1"
    assert updated.created_at == created.created_at
    assert updated.last_updated_at == "2024-03-01T10:02:00Z"
    assert records.load(created.enquiry_id) == updated


def test_update_without_changes_leaves_record_identical(records, sections, photo_bytes):
    created = records.create(sections, {"child_name": "Yusuf"}, uploaded_photos=[_photo(photo_bytes)])

    updated = records.update(created.enquiry_id, sections, {"child_name": "Yusuf"})

    assert updated == created
    assert records.load(created.enquiry_id).last_updated_at is None


def test_update_with_photos_replaces_sequence(records, sections, photo_bytes, other_photo_bytes, audio_bytes):
    created = records.create(
        sections,
        {"child_name": "Yusuf"},
        uploaded_photos=[_photo(photo_bytes)],
        uploaded_audio=_audio(audio_bytes),
    )

    updated = records.update(created.enquiry_id, sections, {}, uploaded_photos=[_photo(other_photo_bytes)])

    assert updated.photo_keys == [attachment_key_for(other_photo_bytes)]
    assert updated.recorded_audio == created.recorded_audio
    # Replaced blobs stay in the store
    assert records.attachments.fetch(attachment_key_for(photo_bytes)) == photo_bytes


def test_update_without_photos_keeps_them(records, sections, photo_bytes, audio_bytes):
    created = records.create(
        sections,
        {"child_name": "Yusuf"},
        uploaded_photos=[_photo(photo_bytes)],
        uploaded_audio=_audio(audio_bytes),
    )

    updated = records.update(created.enquiry_id, sections, {"enquirer_name": "David Jones"})

    assert updated.criteria == {"child_name": "Yusuf", "enquirer_name": "David Jones"}
    assert updated.photo_keys == created.photo_keys
    assert updated.recorded_audio == created.recorded_audio
    reloaded = records.load(created.enquiry_id)
    assert records.primary_photo(reloaded) == photo_bytes
    assert records.audio(reloaded) == audio_bytes


def test_empty_update_leaves_record_with_media_identical(records, sections, photo_bytes, audio_bytes):
    created = records.create(
        sections,
        {"child_name": "Yusuf"},
        uploaded_photos=[_photo(photo_bytes)],
        uploaded_audio=_audio(audio_bytes),
        actor_identity="worker1",
    )

    updated = records.update(created.enquiry_id, sections, {})

    assert updated == created
    assert records.load(created.enquiry_id) == created
    assert records.attachments.count() == 2


def test_update_persist_failure_keeps_stored_record(records, sections, photo_bytes, other_photo_bytes, mocker):
    created = records.create(sections, {"child_name": "Yusuf"}, uploaded_photos=[_photo(photo_bytes)])
    mocker.patch.object(
        records.repository,
        "save",
        side_effect=OperationalError("UPDATE enquiry", {}, Exception("database is locked")),
    )

    with pytest.raises(PersistFailure) as exc_info:
        records.update(
            created.enquiry_id,
            sections,
            {"child_name": "Yusuf Ali"},
            uploaded_photos=[_photo(other_photo_bytes)],
        )

    attempted = exc_info.value.attempted
    assert attempted.enquiry_id == created.enquiry_id
    assert attempted.criteria == {"child_name": "Yusuf Ali"}
    assert attempted.photo_keys == [attachment_key_for(other_photo_bytes)]
    mocker.stopall()
    assert records.load(created.enquiry_id) == created
    assert records.attachments.count() == 1


def test_update_unknown_enquiry_raises(records, sections):
    with pytest.raises(EnquiryNotFound):
        records.update("missing", sections, {"child_name": "X"})


def test_invalid_update_leaves_stored_record_unchanged(records, sections):
    created = records.create(sections, {"gender": "Male"})
    with pytest.raises(ValidationFailure):
        records.update(created.enquiry_id, sections, {"gender": "Other"})
    assert records.load(created.enquiry_id) == created


def test_persist_failure_rolls_back_blobs(records, sections, photo_bytes, mocker):
    mocker.patch.object(
        records.repository,
        "save",
        side_effect=OperationalError("INSERT INTO enquiry", {}, Exception("database is locked")),
    )

    with pytest.raises(PersistFailure) as exc_info:
        records.create(sections, {"child_name": "Yusuf"}, uploaded_photos=[_photo(photo_bytes)])

    assert exc_info.value.attempted.criteria == {"child_name": "Yusuf"}
    assert exc_info.value.attempted.photo_keys == [attachment_key_for(photo_bytes)]
    assert records.attachments.count() == 0


def test_timeout_aborts_before_anything_is_written(records, sections, photo_bytes):
    with pytest.raises(OperationTimedOut):
        records.create(sections, {"child_name": "Yusuf"}, uploaded_photos=[_photo(photo_bytes)], timeout=-1)

    assert records.repository.count() == 0
    assert records.attachments.count() == 0


def test_photo_access_is_scoped_to_the_enquiry(records, sections, photo_bytes, other_photo_bytes):
    mine = records.create(sections, {}, uploaded_photos=[_photo(photo_bytes)])
    records.create(sections, {}, uploaded_photos=[_photo(other_photo_bytes)])

    assert records.photo(mine, attachment_key_for(photo_bytes)) == photo_bytes
    with pytest.raises(AttachmentNotFound):
        records.photo(mine, attachment_key_for(other_photo_bytes))


def test_enquiry_without_attachments_has_no_media(records, sections):
    created = records.create(sections, {"child_name": "Yusuf"})

    assert records.primary_photo(created) is None
    assert records.audio(created) is None


def test_read_returns_record_with_sections(records, sections):
    created = records.create(sections, {"child_name": "Yusuf"})

    record, resolved = records.read(created.enquiry_id, sections)

    assert record == created
    assert resolved == sections
    with pytest.raises(EnquiryNotFound):
        records.read("missing", sections)
