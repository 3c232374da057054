"""Dynamic-schema record engine for enquiries.

Builds and mutates `Enquiry` records from a resolved form schema, a map of
submitted values and uploaded blobs. Every create/update follows the same
shape:

1. Partition the submission into plain criteria and attachment uploads.
2. Validate criteria and uploads against the schema; nothing is written yet.
3. Stage the complete next record as an immutable draft. Attachment keys are
   content-derived, so the draft is final before any I/O happens.
4. In one transaction, store the blobs and write the record. Any failure
   rolls the whole transaction back.

Authorization is not checked here. Callers go through
`enquiries.logic.enquiry_service`, which runs the capability gate first.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from enquiries.db.base import get_engine, unit_of_work
from enquiries.logic.attachment_store import AttachmentStore, attachment_key_for
from enquiries.logic.errors import (
    AttachmentNotFound,
    EnquiryNotFound,
    OperationTimedOut,
    PersistFailure,
    ValidationFailure,
)
from enquiries.logic.repository_enquiries import EnquiryRepository
from enquiries.logic.schema_registry import fields_by_name
from enquiries.logic.validation import ensure_valid
from enquiries.models.enquiry import AttachmentUpload, Enquiry
from enquiries.models.field_kind import (
    AUDIO_FIELD_NAME,
    PHOTO_FIELD_NAME,
    RESERVED_ATTACHMENT_NAMES,
    FieldKind,
)
from enquiries.models.schema import Field, FormSection

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024


def _utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _as_uploads(value: Any) -> List[AttachmentUpload]:
    """Normalise an embedded attachment value into an ordered upload list.

    Accepts a single upload, a list/tuple of uploads, or an index-keyed map
    such as {"0": upload, "1": upload} ordered by numeric index.
    """
    if isinstance(value, AttachmentUpload):
        return [value]
    if isinstance(value, (list, tuple)):
        return [v for v in value if isinstance(v, AttachmentUpload)]
    if isinstance(value, Mapping):
        def _index(k: Any) -> Tuple[int, str]:
            try:
                return int(k), ""
            except (TypeError, ValueError):
                return 1 << 30, str(k)

        return [value[k] for k in sorted(value, key=_index) if isinstance(value[k], AttachmentUpload)]
    return []


def _attachment_kind(name: str, field: Optional[Field]) -> Optional[str]:
    if field is not None and field.is_attachment:
        return field.kind
    if name == PHOTO_FIELD_NAME:
        return FieldKind.PHOTO_UPLOAD_BOX
    if name == AUDIO_FIELD_NAME:
        return FieldKind.AUDIO_UPLOAD_BOX
    return None


def partition_submission(
    submitted_fields: Mapping[str, Any],
    schema_fields: Dict[str, Field],
) -> Tuple[Dict[str, Any], List[AttachmentUpload], List[AttachmentUpload]]:
    """Split submitted values into (criteria, embedded photos, embedded audio).

    Reserved names and fields whose schema kind is an attachment kind never
    reach criteria; uploads found under them are routed by kind. An upload
    submitted under any other name is a ValidationFailure.
    """
    criteria: Dict[str, Any] = {}
    photos: List[AttachmentUpload] = []
    audio: List[AttachmentUpload] = []
    misplaced: List[Dict[str, str]] = []
    for name, value in submitted_fields.items():
        kind = _attachment_kind(name, schema_fields.get(name))
        if kind is None and name not in RESERVED_ATTACHMENT_NAMES:
            if _as_uploads(value):
                misplaced.append({"field": name, "message": "files are only accepted by photo or audio fields"})
                continue
            criteria[name] = value
            continue
        uploads = _as_uploads(value)
        if kind == FieldKind.AUDIO_UPLOAD_BOX:
            audio.extend(uploads)
        else:
            photos.extend(uploads)
    if misplaced:
        raise ValidationFailure(misplaced, attempted_criteria=criteria)
    return criteria, photos, audio


def _deadline(timeout: Optional[float]) -> Optional[Callable[[], None]]:
    if timeout is None:
        return None
    expires_at = time.monotonic() + timeout

    def check() -> None:
        if time.monotonic() > expires_at:
            raise OperationTimedOut(f"operation exceeded {timeout}s")

    return check


class RecordEngine:
    def __init__(
        self,
        attachments: AttachmentStore,
        repository: EnquiryRepository,
        engine: Engine | None = None,
        max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES,
        clock: Callable[[], str] = _utc_now,
    ) -> None:
        self.attachments = attachments
        self.repository = repository
        self._engine = engine
        self.max_attachment_bytes = max_attachment_bytes
        self._clock = clock

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    def _prepare(
        self,
        sections: List[FormSection],
        submitted_fields: Mapping[str, Any],
        uploaded_photos: Sequence[AttachmentUpload],
        uploaded_audio: Optional[AttachmentUpload],
    ) -> Tuple[Dict[str, Any], List[AttachmentUpload], Optional[AttachmentUpload]]:
        schema_fields = fields_by_name(sections)
        criteria, embedded_photos, embedded_audio = partition_submission(submitted_fields or {}, schema_fields)
        photos = list(uploaded_photos or []) + embedded_photos
        audio_uploads = ([uploaded_audio] if uploaded_audio is not None else []) + embedded_audio
        if len(audio_uploads) > 1:
            raise ValidationFailure(
                [{"field": AUDIO_FIELD_NAME, "message": "only one audio recording may be submitted"}],
                attempted_criteria=criteria,
            )
        audio = audio_uploads[0] if audio_uploads else None
        ensure_valid(criteria, schema_fields, photos, audio, self.max_attachment_bytes)
        return criteria, photos, audio

    def _commit(
        self,
        draft: Enquiry,
        photos: Sequence[AttachmentUpload],
        audio: Optional[AttachmentUpload],
        timeout: Optional[float],
    ) -> Enquiry:
        """Store the draft's new blobs and the record itself in one transaction."""
        check = _deadline(timeout)
        try:
            with unit_of_work(self.engine) as conn:
                uploads = list(photos) + ([audio] if audio is not None else [])
                self.attachments.store_many(uploads, conn=conn, checkpoint=check)
                if check is not None:
                    check()
                self.repository.save(draft, conn=conn)
        except SQLAlchemyError as exc:
            logger.error("enquiry_persist_failed enquiry_id=%s", draft.enquiry_id, exc_info=True)
            raise PersistFailure(draft, str(exc)) from exc
        return draft

    def create(
        self,
        sections: List[FormSection],
        submitted_fields: Mapping[str, Any],
        uploaded_photos: Sequence[AttachmentUpload] = (),
        uploaded_audio: Optional[AttachmentUpload] = None,
        actor_identity: str = "",
        timeout: Optional[float] = None,
    ) -> Enquiry:
        """Create and persist a new enquiry. Empty criteria are allowed."""
        criteria, photos, audio = self._prepare(sections, submitted_fields, uploaded_photos, uploaded_audio)
        draft = Enquiry(
            enquiry_id=str(uuid.uuid4()),
            criteria=criteria,
            photo_keys=[attachment_key_for(p.data) for p in photos],
            recorded_audio=attachment_key_for(audio.data) if audio is not None else None,
            created_by=actor_identity,
            created_at=self._clock(),
        )
        self._commit(draft, photos, audio, timeout)
        logger.info(
            "enquiry_created enquiry_id=%s created_by=%s criteria=%s photos=%s audio=%s",
            draft.enquiry_id,
            actor_identity,
            len(criteria),
            len(draft.photo_keys),
            draft.recorded_audio is not None,
        )
        return draft

    def load(self, enquiry_id: str) -> Enquiry:
        existing = self.repository.load(enquiry_id)
        if existing is None:
            raise EnquiryNotFound(enquiry_id)
        return existing

    def update(
        self,
        enquiry_id: str,
        sections: List[FormSection],
        submitted_fields: Mapping[str, Any],
        uploaded_photos: Sequence[AttachmentUpload] = (),
        uploaded_audio: Optional[AttachmentUpload] = None,
        timeout: Optional[float] = None,
    ) -> Enquiry:
        """Merge a submission into an existing enquiry.

        Submitted criteria overwrite or add keys; unsubmitted keys stay.
        New photos replace the whole photo sequence and new audio replaces the
        recording; without new uploads both are kept as they were.
        `created_by` never changes.
        """
        existing = self.load(enquiry_id)
        criteria, photos, audio = self._prepare(sections, submitted_fields, uploaded_photos, uploaded_audio)

        changes: Dict[str, Any] = {"criteria": {**existing.criteria, **criteria}}
        if photos:
            changes["photo_keys"] = [attachment_key_for(p.data) for p in photos]
        if audio is not None:
            changes["recorded_audio"] = attachment_key_for(audio.data)
        draft = existing.model_copy(update=changes)
        if draft != existing:
            draft = draft.model_copy(update={"last_updated_at": self._clock()})

        self._commit(draft, photos, audio, timeout)
        logger.info(
            "enquiry_updated enquiry_id=%s changed=%s photos_replaced=%s audio_replaced=%s",
            enquiry_id,
            draft != existing,
            bool(photos),
            audio is not None,
        )
        return draft

    def read(self, enquiry_id: str, sections: List[FormSection]) -> Tuple[Enquiry, List[FormSection]]:
        return self.load(enquiry_id), sections

    def primary_photo(self, enquiry: Enquiry) -> Optional[bytes]:
        key = enquiry.primary_photo_key
        if key is None:
            return None
        return self.attachments.fetch(key)

    def photo(self, enquiry: Enquiry, attachment_key: str) -> bytes:
        if attachment_key not in enquiry.photo_keys:
            raise AttachmentNotFound(attachment_key)
        return self.attachments.fetch(attachment_key)

    def audio(self, enquiry: Enquiry) -> Optional[bytes]:
        if enquiry.recorded_audio is None:
            return None
        return self.attachments.fetch(enquiry.recorded_audio)


__all__ = ["RecordEngine", "partition_submission", "DEFAULT_MAX_ATTACHMENT_BYTES"]
