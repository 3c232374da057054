"""Exception taxonomy for the enquiry record engine and its callers.

Every failure the engine can report is one of these; the HTTP layer maps
them to problem+json responses through `enquiries.http.error_mapping`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from enquiries.models.enquiry import Enquiry


class EnquiryError(Exception):
    """Base class for all enquiry-service failures."""


class AuthorizationDenied(EnquiryError):
    def __init__(self, actor: str, action: str, resource_type: str) -> None:
        super().__init__(f"{actor!r} may not {action} {resource_type}")
        self.actor = actor
        self.action = action
        self.resource_type = resource_type


class ValidationFailure(EnquiryError):
    """Submitted criteria or uploads broke a schema or attachment rule.

    `attempted_criteria` is what the caller submitted, kept so the input form
    can be shown again for correction.
    """

    def __init__(self, errors: List[Dict[str, str]], attempted_criteria: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in errors) or "validation failed")
        self.errors = errors
        self.attempted_criteria = dict(attempted_criteria or {})


class NotFound(EnquiryError):
    pass


class EnquiryNotFound(NotFound):
    def __init__(self, enquiry_id: str) -> None:
        super().__init__(f"enquiry {enquiry_id} not found")
        self.enquiry_id = enquiry_id


class AttachmentNotFound(NotFound):
    def __init__(self, attachment_key: str) -> None:
        super().__init__(f"attachment {attachment_key} not found")
        self.attachment_key = attachment_key


class AttachmentStoreFailure(EnquiryError):
    pass


class PersistFailure(EnquiryError):
    """The final save failed; `attempted` is the record that was not saved."""

    def __init__(self, attempted: Enquiry, reason: str = "") -> None:
        message = f"failed to persist enquiry {attempted.enquiry_id}"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.attempted = attempted


class OperationTimedOut(EnquiryError):
    pass


class SchemaDefinitionError(EnquiryError):
    pass


__all__ = [
    "EnquiryError",
    "AuthorizationDenied",
    "ValidationFailure",
    "NotFound",
    "EnquiryNotFound",
    "AttachmentNotFound",
    "AttachmentStoreFailure",
    "PersistFailure",
    "OperationTimedOut",
    "SchemaDefinitionError",
]
