"""Form schema endpoints: read ordered sections, replace a form definition."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field as PydanticField

from enquiries.logic.capability_gate import Actor
from enquiries.logic.enquiry_service import EnquiryService
from enquiries.models.schema import Form, FormSection
from enquiries.routes.dependencies import current_actor, get_service, sections_body

router = APIRouter()
logger = logging.getLogger(__name__)


class FormDefinition(BaseModel):
    description: Optional[str] = None
    sections: List[FormSection] = PydanticField(default_factory=list)


@router.get(
    "/forms/{form_name}/sections",
    summary="Ordered sections and fields of a form",
    operation_id="getFormSections",
    tags=["Forms"],
)
def get_form_sections(form_name: str, service: EnquiryService = Depends(get_service)):
    # Unknown forms resolve to an empty list rather than 404
    return {"form_name": form_name, "form_sections": sections_body(service.registry.resolve_sections(form_name))}


@router.put(
    "/forms/{form_name}",
    summary="Replace a form definition",
    operation_id="putForm",
    tags=["Forms"],
)
def put_form(
    form_name: str,
    definition: FormDefinition,
    actor: Actor = Depends(current_actor),
    service: EnquiryService = Depends(get_service),
):
    form = Form(name=form_name, description=definition.description, sections=definition.sections)
    saved = service.register_form(actor, form)
    logger.info("form_put form=%s by=%s", form_name, actor.user_name)
    return {"form": saved.model_dump()}


__all__ = ["router"]
