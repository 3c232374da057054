"""Service layer: capability gate -> record engine -> search sync.

This is the only production path into the record engine. Each operation
authorizes first and raises `AuthorizationDenied` before any schema lookup,
blob write or record write takes place.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.engine import Engine

from enquiries.config import AppConfig
from enquiries.logic.attachment_store import AttachmentStore
from enquiries.logic.capability_gate import (
    ACTION_CREATE,
    ACTION_MANAGE,
    ACTION_READ,
    ACTION_UPDATE,
    Actor,
    CapabilityGate,
    RolePermissionGate,
)
from enquiries.logic.errors import AuthorizationDenied
from enquiries.logic.record_engine import RecordEngine
from enquiries.logic.repository_enquiries import EnquiryRepository
from enquiries.logic.schema_registry import SchemaRegistry, indexable_field_names
from enquiries.logic.search_sync import BufferedSearchSync, SearchSync
from enquiries.models.enquiry import (
    ENQUIRY_FORM_NAME,
    ENQUIRY_RESOURCE,
    AttachmentInfo,
    AttachmentUpload,
    Enquiry,
)
from enquiries.models.schema import Form, FormSection

logger = logging.getLogger(__name__)

FORM_RESOURCE = "Form"


class EnquiryService:
    def __init__(
        self,
        records: RecordEngine,
        registry: SchemaRegistry,
        gate: CapabilityGate,
        search_sync: SearchSync,
    ) -> None:
        self.records = records
        self.registry = registry
        self.gate = gate
        self.search_sync = search_sync

    @property
    def attachments(self) -> AttachmentStore:
        return self.records.attachments

    def authorize(self, actor: Actor, action: str, resource_type: str = ENQUIRY_RESOURCE) -> None:
        if not self.gate.authorize(actor, action, resource_type):
            logger.warning("authorization_denied user=%s action=%s resource=%s", actor.user_name, action, resource_type)
            raise AuthorizationDenied(actor.user_name, action, resource_type)

    def form_sections(self) -> List[FormSection]:
        return self.registry.resolve_sections(ENQUIRY_FORM_NAME)

    def _notify_search(self, record: Enquiry, sections: List[FormSection]) -> None:
        try:
            self.search_sync.notify(record, indexable_field_names(sections))
        except Exception:
            # Best-effort: the record is already committed
            logger.error("search_sync_failed enquiry_id=%s", record.enquiry_id, exc_info=True)

    def new_form(self, actor: Actor) -> List[FormSection]:
        self.authorize(actor, ACTION_CREATE)
        return self.form_sections()

    def create(
        self,
        actor: Actor,
        submitted_fields: Mapping[str, Any],
        photos: Sequence[AttachmentUpload] = (),
        audio: Optional[AttachmentUpload] = None,
        timeout: Optional[float] = None,
    ) -> Enquiry:
        self.authorize(actor, ACTION_CREATE)
        sections = self.form_sections()
        record = self.records.create(
            sections,
            submitted_fields,
            uploaded_photos=photos,
            uploaded_audio=audio,
            actor_identity=actor.user_name,
            timeout=timeout,
        )
        self._notify_search(record, sections)
        return record

    def show(self, actor: Actor, enquiry_id: str) -> Tuple[Enquiry, List[FormSection]]:
        self.authorize(actor, ACTION_READ)
        return self.records.read(enquiry_id, self.form_sections())

    def edit(self, actor: Actor, enquiry_id: str) -> Tuple[Enquiry, List[FormSection]]:
        self.authorize(actor, ACTION_UPDATE)
        return self.records.read(enquiry_id, self.form_sections())

    def update(
        self,
        actor: Actor,
        enquiry_id: str,
        submitted_fields: Mapping[str, Any],
        photos: Sequence[AttachmentUpload] = (),
        audio: Optional[AttachmentUpload] = None,
        timeout: Optional[float] = None,
    ) -> Enquiry:
        self.authorize(actor, ACTION_UPDATE)
        sections = self.form_sections()
        record = self.records.update(
            enquiry_id,
            sections,
            submitted_fields,
            uploaded_photos=photos,
            uploaded_audio=audio,
            timeout=timeout,
        )
        self._notify_search(record, sections)
        return record

    def primary_photo(self, actor: Actor, enquiry_id: str) -> Optional[Tuple[bytes, AttachmentInfo]]:
        self.authorize(actor, ACTION_READ)
        enquiry = self.records.load(enquiry_id)
        data = self.records.primary_photo(enquiry)
        if data is None:
            return None
        return data, self.attachments.describe(enquiry.photo_keys[0])

    def photo(self, actor: Actor, enquiry_id: str, attachment_key: str) -> Tuple[bytes, AttachmentInfo]:
        self.authorize(actor, ACTION_READ)
        enquiry = self.records.load(enquiry_id)
        data = self.records.photo(enquiry, attachment_key)
        return data, self.attachments.describe(attachment_key)

    def audio(self, actor: Actor, enquiry_id: str) -> Optional[Tuple[bytes, AttachmentInfo]]:
        self.authorize(actor, ACTION_READ)
        enquiry = self.records.load(enquiry_id)
        data = self.records.audio(enquiry)
        if data is None or enquiry.recorded_audio is None:
            return None
        return data, self.attachments.describe(enquiry.recorded_audio)

    def register_form(self, actor: Actor, form: Form) -> Form:
        self.authorize(actor, ACTION_MANAGE, FORM_RESOURCE)
        return self.registry.register_form(form)


def build_enquiry_service(
    config: AppConfig,
    engine: Engine | None = None,
    gate: Optional[CapabilityGate] = None,
    search_sync: Optional[SearchSync] = None,
) -> EnquiryService:
    """Wire the default collaborators from configuration."""
    records = RecordEngine(
        AttachmentStore(engine),
        EnquiryRepository(engine),
        engine=engine,
        max_attachment_bytes=config.attachments.max_bytes,
    )
    return EnquiryService(
        records,
        SchemaRegistry(engine),
        gate or RolePermissionGate(config.access.role_permissions),
        search_sync or BufferedSearchSync(config.search_sync.buffer_limit),
    )


__all__ = ["EnquiryService", "FORM_RESOURCE", "build_enquiry_service"]
