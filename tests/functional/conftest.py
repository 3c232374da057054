from __future__ import annotations

"""Functional test bootstrap for the enquiry service.

Points the service at a file-backed SQLite database before any module reads
the environment, applies the SQLite migrations once per session, and empties
every table between tests so each test starts from a known state.
"""

import itertools
import os
import pathlib

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# File-backed so every connection (and the TestClient's worker threads) sees the same data
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Migrations are applied by the session fixture below, not at app startup
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"

_TABLES = ("enquiry", "attachment", "form_field", "form_section", "form")


@pytest.fixture(scope="session")
def engine():
    from enquiries.db.base import get_engine, reset_engine
    from enquiries.db.migrations_runner import apply_migrations

    eng = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(eng, migrations_dir=_ROOT / "sqlite_migrations")
    yield eng
    reset_engine()


@pytest.fixture(autouse=True)
def clean_tables(engine):
    from sqlalchemy import text as sql_text

    with engine.begin() as conn:
        for table in _TABLES:
            conn.execute(sql_text(f"DELETE FROM {table}"))
    yield


@pytest.fixture
def enquiry_form():
    from enquiries.models.enquiry import ENQUIRY_FORM_NAME
    from enquiries.models.schema import Field, Form, FormSection

    return Form(
        name=ENQUIRY_FORM_NAME,
        description="Details captured when a family member asks after a missing child",
        sections=[
            FormSection(
                section_key="enquirer",
                title="Enquirer",
                fields=[
                    Field(name="enquirer_name", kind="text_field", display_name="Enquirer name", max_length=40),
                    Field(name="enquirer_phone", kind="text_field", pattern=r"\+?[0-9 ]+", searchable=False),
                ],
            ),
            FormSection(
                section_key="child",
                title="Child",
                fields=[
                    Field(name="child_name", kind="text_field"),
                    Field(name="gender", kind="select_box", options=["Male", "Female"]),
                    Field(name="date_of_birth", kind="date_field"),
                    Field(name="age", kind="numeric_field"),
                    Field(name="languages", kind="check_boxes", options=["English", "Amharic", "Swahili"]),
                    Field(name="description", kind="textarea"),
                    Field(name="photo", kind="photo_upload_box"),
                    Field(name="audio", kind="audio_upload_box"),
                ],
            ),
        ],
    )


@pytest.fixture
def registry(engine):
    from enquiries.logic.schema_registry import SchemaRegistry

    return SchemaRegistry(engine)


@pytest.fixture
def sections(registry, enquiry_form):
    return registry.register_form(enquiry_form).sections


@pytest.fixture
def clock():
    """Deterministic, strictly increasing ISO-8601 timestamps."""
    ticks = itertools.count(1)
    return lambda: f"2024-03-01T10:{next(ticks):02d}:00Z"


@pytest.fixture
def records(engine, clock):
    from enquiries.logic.attachment_store import AttachmentStore
    from enquiries.logic.record_engine import RecordEngine
    from enquiries.logic.repository_enquiries import EnquiryRepository

    return RecordEngine(AttachmentStore(engine), EnquiryRepository(engine), engine=engine, clock=clock)


@pytest.fixture
def app_config():
    from enquiries.config import load_config

    return load_config()


@pytest.fixture
def service(engine, app_config, sections):
    from enquiries.logic.enquiry_service import build_enquiry_service

    return build_enquiry_service(app_config, engine=engine)


@pytest.fixture
def client(app_config, service):
    from fastapi.testclient import TestClient

    from enquiries.main import create_app

    with TestClient(create_app(config=app_config, service=service)) as c:
        yield c


@pytest.fixture
def photo_bytes():
    return b"\xff\xd8\xff\xe0" + b"front-facing photo" * 8


@pytest.fixture
def other_photo_bytes():
    return b"\xff\xd8\xff\xe0" + b"side photo" * 8


@pytest.fixture
def audio_bytes():
    return b"ID3\x03" + b"recorded description" * 8
