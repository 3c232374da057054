"""APIRouter registration for the enquiry service."""

from __future__ import annotations

from fastapi import APIRouter

from enquiries.routes.enquiries import router as enquiries_router
from enquiries.routes.forms import router as forms_router

api_router = APIRouter()
api_router.include_router(enquiries_router, tags=["Enquiries"])
api_router.include_router(forms_router, tags=["Forms"])

__all__ = ["api_router"]
