"""Enquiry endpoints.

Thin adapters over `EnquiryService`: parse the submission, call the service
in a worker thread, and render JSON. Domain errors propagate to the global
problem+json handler, except validation and persist failures, which are
answered with the attempted record and the form sections so the client can
show the input form again.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from enquiries.http.error_mapping import CRITERIA_EMPTY
from enquiries.http.problem import problem, problem_for, problem_response
from enquiries.logic.capability_gate import ACTION_CREATE, Actor
from enquiries.logic.enquiry_service import EnquiryService
from enquiries.logic.errors import AttachmentNotFound, PersistFailure, ValidationFailure
from enquiries.models.enquiry import AttachmentInfo
from enquiries.routes.dependencies import (
    current_actor,
    enquiry_body,
    get_service,
    read_submission,
    sections_body,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _redisplay(
    exc: ValidationFailure | PersistFailure,
    service: EnquiryService,
    attempted: Dict[str, Any],
) -> JSONResponse:
    """Problem response carrying the unsaved record and the form to show again."""
    body = problem_for(exc, enquiry=attempted, form_sections=sections_body(service.form_sections()))
    return problem_response(body)


def _blob_response(found: Optional[Tuple[bytes, AttachmentInfo]], what: str) -> Response:
    if found is None:
        raise AttachmentNotFound(what)
    data, info = found
    return Response(
        content=data,
        media_type=info.content_type or "application/octet-stream",
        headers={"ETag": f'"{info.attachment_key}"'},
    )


@router.get(
    "/enquiries/new",
    summary="Form sections for a new enquiry",
    operation_id="newEnquiry",
    tags=["Enquiries"],
)
def new_enquiry(actor: Actor = Depends(current_actor), service: EnquiryService = Depends(get_service)):
    return {"form_sections": sections_body(service.new_form(actor))}


@router.post(
    "/enquiries",
    summary="Create an enquiry",
    operation_id="createEnquiry",
    tags=["Enquiries"],
    status_code=201,
)
async def create_enquiry(
    request: Request,
    actor: Actor = Depends(current_actor),
    service: EnquiryService = Depends(get_service),
):
    submitted = await read_submission(request)
    if not submitted:
        # Nothing to record: send the client back to the new enquiry form
        await run_in_threadpool(service.authorize, actor, ACTION_CREATE)
        sections = await run_in_threadpool(service.form_sections)
        body = problem(
            int(CRITERIA_EMPTY["status"]),
            str(CRITERIA_EMPTY["title"]),
            "No enquiry criteria were submitted",
            str(CRITERIA_EMPTY["code"]),
            enquiry={"criteria": {}},
            form_sections=sections_body(sections),
        )
        return problem_response(body)
    try:
        record = await run_in_threadpool(service.create, actor, submitted)
    except ValidationFailure as exc:
        return _redisplay(exc, service, {"criteria": exc.attempted_criteria})
    except PersistFailure as exc:
        return _redisplay(exc, service, enquiry_body(exc.attempted))
    location = f"{request.url.path.rstrip('/')}/{record.enquiry_id}"
    return JSONResponse({"enquiry": enquiry_body(record)}, status_code=201, headers={"Location": location})


@router.get(
    "/enquiries/{enquiry_id}",
    summary="Show an enquiry with its form sections",
    operation_id="getEnquiry",
    tags=["Enquiries"],
)
def show_enquiry(
    enquiry_id: str,
    actor: Actor = Depends(current_actor),
    service: EnquiryService = Depends(get_service),
):
    record, sections = service.show(actor, enquiry_id)
    return {"enquiry": enquiry_body(record), "form_sections": sections_body(sections)}


@router.get(
    "/enquiries/{enquiry_id}/edit",
    summary="Load an enquiry for editing",
    operation_id="editEnquiry",
    tags=["Enquiries"],
)
def edit_enquiry(
    enquiry_id: str,
    actor: Actor = Depends(current_actor),
    service: EnquiryService = Depends(get_service),
):
    record, sections = service.edit(actor, enquiry_id)
    return {"enquiry": enquiry_body(record), "form_sections": sections_body(sections)}


@router.put(
    "/enquiries/{enquiry_id}",
    summary="Update an enquiry",
    operation_id="updateEnquiry",
    tags=["Enquiries"],
)
async def update_enquiry(
    enquiry_id: str,
    request: Request,
    actor: Actor = Depends(current_actor),
    service: EnquiryService = Depends(get_service),
):
    submitted = await read_submission(request)
    try:
        record = await run_in_threadpool(service.update, actor, enquiry_id, submitted)
    except ValidationFailure as exc:
        return _redisplay(exc, service, {"enquiry_id": enquiry_id, "criteria": exc.attempted_criteria})
    except PersistFailure as exc:
        return _redisplay(exc, service, enquiry_body(exc.attempted))
    return {"enquiry": enquiry_body(record)}


@router.get(
    "/enquiries/{enquiry_id}/photo",
    summary="Primary photo of an enquiry",
    operation_id="getEnquiryPrimaryPhoto",
    tags=["Attachments"],
)
def get_primary_photo(
    enquiry_id: str,
    actor: Actor = Depends(current_actor),
    service: EnquiryService = Depends(get_service),
) -> Response:
    return _blob_response(service.primary_photo(actor, enquiry_id), f"{enquiry_id}/photo")


@router.get(
    "/enquiries/{enquiry_id}/photos/{attachment_key}",
    summary="One photo of an enquiry",
    operation_id="getEnquiryPhoto",
    tags=["Attachments"],
)
def get_photo(
    enquiry_id: str,
    attachment_key: str,
    actor: Actor = Depends(current_actor),
    service: EnquiryService = Depends(get_service),
) -> Response:
    return _blob_response(service.photo(actor, enquiry_id, attachment_key), attachment_key)


@router.get(
    "/enquiries/{enquiry_id}/audio",
    summary="Recorded audio of an enquiry",
    operation_id="getEnquiryAudio",
    tags=["Attachments"],
)
def get_audio(
    enquiry_id: str,
    actor: Actor = Depends(current_actor),
    service: EnquiryService = Depends(get_service),
) -> Response:
    return _blob_response(service.audio(actor, enquiry_id), f"{enquiry_id}/audio")


__all__ = ["router"]
