"""Shared FastAPI dependencies and request/response shaping for routes."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Header, HTTPException, Request
from starlette.datastructures import UploadFile

from enquiries.http.error_mapping import ACTOR_MISSING
from enquiries.http.problem import problem
from enquiries.logic.capability_gate import Actor
from enquiries.logic.enquiry_service import EnquiryService
from enquiries.models.enquiry import AttachmentUpload, Enquiry
from enquiries.models.schema import FormSection

logger = logging.getLogger(__name__)

# enquiry[<name>] with an optional trailing [<index>]
_PART_NAME = re.compile(r"enquiry\[([^\[\]]+)\](?:\[([^\[\]]*)\])?")


def get_service(request: Request) -> EnquiryService:
    return request.app.state.enquiry_service


def current_actor(
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Actor:
    user_name = (x_user_name or "").strip()
    if not user_name:
        raise HTTPException(
            status_code=int(ACTOR_MISSING["status"]),
            detail=problem(
                int(ACTOR_MISSING["status"]),
                str(ACTOR_MISSING["title"]),
                "X-User-Name header is required",
                str(ACTOR_MISSING["code"]),
            ),
        )
    return Actor(user_name=user_name, role=(x_user_role or "").strip() or None)


def _split_name(name: str) -> Tuple[str, Optional[str]]:
    """Split a part name into (field name, index).

    `enquiry[photo][1]` -> ("photo", "1"), `enquiry[languages][]` ->
    ("languages", ""), `enquiry[child_name]` and `child_name` -> (name, None).
    """
    match = _PART_NAME.fullmatch(name)
    if match is None:
        return name, None
    return match.group(1), match.group(2)


def _index_order(index: str) -> Tuple[int, str]:
    try:
        return int(index), ""
    except ValueError:
        return 1 << 30, index


async def _to_upload(part: UploadFile) -> Optional[AttachmentUpload]:
    data = await part.read()
    # Browsers send an empty part when no file was picked
    if not data and not part.filename:
        return None
    return AttachmentUpload(data=data, content_type=part.content_type, filename=part.filename)


async def read_submission(request: Request) -> Dict[str, Any]:
    """Collect submitted values from a JSON or multipart/urlencoded body.

    Part names may be bare (`child_name`) or wrapped (`enquiry[child_name]`).
    Repeated names and `enquiry[name][]` become lists. File parts become
    AttachmentUpload values; indexed uploads such as `enquiry[photo][0]`
    are collected into an index-keyed map. An empty body yields an empty
    mapping.
    """
    content_type = (request.headers.get("content-type") or "").split(";", 1)[0].strip().lower()
    if content_type == "application/json":
        raw = await request.body()
        if not raw.strip():
            return {}
        try:
            body = json.loads(raw)
        except json.JSONDecodeError:
            raise HTTPException(status_code=422, detail=problem(422, "Invalid Request", "Body is not valid JSON"))
        if not isinstance(body, dict):
            raise HTTPException(status_code=422, detail=problem(422, "Invalid Request", "Body must be a JSON object"))
        inner = body.get("enquiry")
        return dict(inner) if isinstance(inner, dict) else body

    if content_type not in ("multipart/form-data", "application/x-www-form-urlencoded"):
        return {}

    form = await request.form()
    collected: Dict[str, List[Any]] = {}
    listed: set[str] = set()
    indexed: Dict[str, Dict[str, Any]] = {}
    for name, value in form.multi_items():
        key, index = _split_name(name)
        if isinstance(value, UploadFile):
            value = await _to_upload(value)
            if value is None:
                continue
        if index:
            indexed.setdefault(key, {})[index] = value
            continue
        if index == "":
            listed.add(key)
        collected.setdefault(key, []).append(value)

    submitted: Dict[str, Any] = {
        key: values[0] if len(values) == 1 and key not in listed else values
        for key, values in collected.items()
    }
    for key, parts in indexed.items():
        if all(isinstance(v, AttachmentUpload) for v in parts.values()):
            # Index-keyed upload map; the record engine orders it by index
            submitted[key] = parts
        else:
            submitted[key] = [parts[i] for i in sorted(parts, key=_index_order)]
    logger.info("submission_read content_type=%s names=%s", content_type, sorted(submitted))
    return submitted


def enquiry_body(record: Enquiry) -> Dict[str, Any]:
    return record.model_dump(mode="json")


def sections_body(sections: List[FormSection]) -> List[Dict[str, Any]]:
    return [s.model_dump(mode="json") for s in sections]


__all__ = [
    "get_service",
    "current_actor",
    "read_submission",
    "enquiry_body",
    "sections_body",
]
