"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type, a payload builder and handler callables that
turn framework and domain errors into application/problem+json responses.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
import logging
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from fastapi.responses import JSONResponse

from enquiries.http.error_mapping import lookup
from enquiries.logic.errors import EnquiryError, ValidationFailure

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem(status: int, title: str, detail: str = "", code: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"title": title, "status": int(status)}
    if detail:
        body["detail"] = detail
    if code:
        body["code"] = code
    body.update(extra)
    return body


def problem_response(body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(body, status_code=int(body["status"]), media_type=PROBLEM_MEDIA_TYPE, headers=headers)


def problem_for(exc: EnquiryError, **extra: Any) -> Dict[str, Any]:
    mapping = lookup(exc)
    if isinstance(exc, ValidationFailure):
        extra.setdefault("errors", exc.errors)
    body = problem(int(mapping["status"]), str(mapping["title"]), str(exc), str(mapping["code"]), **extra)
    logger.info("error_handler.handle code=%s status=%s", body.get("code"), body["status"])
    return body


async def handle_enquiry_error(request: Request, exc: EnquiryError) -> JSONResponse:  # noqa: D401
    return problem_response(problem_for(exc))


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    if isinstance(exc.detail, dict):
        body = dict(exc.detail)
        body.setdefault("status", exc.status_code)
    else:
        body = problem(exc.status_code, "Error", str(exc.detail or ""))
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return problem_response(body, headers=headers or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    body = problem(422, "Invalid Request", "Request validation failed", errors=jsonable_encoder(exc.errors()))
    return problem_response(body)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=True)
    return problem_response(problem(500, "Internal Server Error"))


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem",
    "problem_for",
    "problem_response",
    "handle_enquiry_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
