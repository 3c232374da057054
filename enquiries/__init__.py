"""FastAPI application package for the Enquiry Service.

Exposes the application factory. The record engine and its collaborators
live in `enquiries/logic/`, route handlers in `enquiries/routes/`.
"""

from __future__ import annotations

from enquiries.main import create_app

__all__ = ["create_app"]
