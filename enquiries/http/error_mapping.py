"""Central error mapping for the enquiry HTTP surface.

Single source of truth mapping engine and service exceptions to
problem+json codes, titles and HTTP statuses. Route modules import from here
instead of hardcoding strings or numbers.
"""

from __future__ import annotations

from typing import Dict, Type

from enquiries.logic.errors import (
    AttachmentNotFound,
    AttachmentStoreFailure,
    AuthorizationDenied,
    EnquiryError,
    EnquiryNotFound,
    OperationTimedOut,
    PersistFailure,
    SchemaDefinitionError,
    ValidationFailure,
)

ACTOR_MISSING = {"code": "AUTH_ACTOR_MISSING", "status": 401, "title": "Unauthorized"}
CRITERIA_EMPTY = {"code": "RUN_ENQUIRY_CRITERIA_EMPTY", "status": 422, "title": "Unprocessable Entity"}

ERROR_MAP: Dict[Type[EnquiryError], Dict[str, object]] = {
    AuthorizationDenied: {"code": "AUTH_FORBIDDEN", "status": 403, "title": "Forbidden"},
    ValidationFailure: {"code": "RUN_ENQUIRY_VALIDATION_FAILED", "status": 422, "title": "Unprocessable Entity"},
    EnquiryNotFound: {"code": "RUN_ENQUIRY_NOT_FOUND", "status": 404, "title": "Not Found"},
    AttachmentNotFound: {"code": "RUN_ATTACHMENT_NOT_FOUND", "status": 404, "title": "Not Found"},
    AttachmentStoreFailure: {"code": "RUN_ATTACHMENT_STORE_FAILED", "status": 503, "title": "Service Unavailable"},
    PersistFailure: {"code": "RUN_ENQUIRY_PERSIST_FAILED", "status": 503, "title": "Service Unavailable"},
    OperationTimedOut: {"code": "RUN_OPERATION_TIMED_OUT", "status": 504, "title": "Gateway Timeout"},
    SchemaDefinitionError: {"code": "RUN_SCHEMA_DEFINITION_INVALID", "status": 422, "title": "Unprocessable Entity"},
}

_FALLBACK = {"code": "RUN_ENQUIRY_ERROR", "status": 500, "title": "Internal Server Error"}


def lookup(exc: EnquiryError) -> Dict[str, object]:
    """Return the mapping for `exc`, walking its MRO so subclasses inherit."""
    for cls in type(exc).__mro__:
        if cls in ERROR_MAP:
            return ERROR_MAP[cls]
    return _FALLBACK


__all__ = ["ERROR_MAP", "ACTOR_MISSING", "CRITERIA_EMPTY", "lookup"]
