"""Architectural tests for the enquiry service.

Static, file/AST-based checks: they read sources under the project root and
never import application code.
"""

from __future__ import annotations

import ast
import json
from pathlib import Path
from typing import Iterable, Set

import pytest
from jsonschema import Draft202012Validator

PROJECT_ROOT = Path(__file__).resolve().parents[2]
PACKAGE = PROJECT_ROOT / "enquiries"
SCHEMAS_DIR = PROJECT_ROOT / "schemas"


def _parse(path: Path) -> ast.Module:
    try:
        return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    except FileNotFoundError:
        pytest.fail(f"Expected file is missing: {path}")
    except SyntaxError as exc:
        pytest.fail(f"Failed to parse {path}: {exc}")


def _imported_modules(path: Path) -> Set[str]:
    found: Set[str] = set()
    for node in ast.walk(_parse(path)):
        if isinstance(node, ast.Import):
            found.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            found.add(node.module)
    return found


def _py_files(root: Path) -> Iterable[Path]:
    return sorted(p for p in root.rglob("*.py") if "__pycache__" not in p.parts)


def test_record_engine_does_not_consult_capability_gate():
    imports = _imported_modules(PACKAGE / "logic" / "record_engine.py")
    assert "enquiries.logic.capability_gate" not in imports
    assert "enquiries.logic.enquiry_service" not in imports


@pytest.mark.parametrize(
    "internal",
    [
        "enquiries.logic.record_engine",
        "enquiries.logic.attachment_store",
        "enquiries.logic.repository_enquiries",
    ],
)
def test_routes_reach_the_engine_only_through_the_service(internal):
    offenders = [p.name for p in _py_files(PACKAGE / "routes") if internal in _imported_modules(p)]
    assert offenders == []


def test_logic_layer_does_not_depend_on_http():
    offenders = [
        p.name
        for p in _py_files(PACKAGE / "logic")
        if any(m.startswith(("fastapi", "starlette", "enquiries.http", "enquiries.routes")) for m in _imported_modules(p))
    ]
    assert offenders == []


def test_every_engine_error_has_an_http_mapping():
    errors_tree = _parse(PACKAGE / "logic" / "errors.py")
    error_classes = {
        node.name
        for node in errors_tree.body
        if isinstance(node, ast.ClassDef) and node.name not in {"EnquiryError", "NotFound"}
    }
    mapping_tree = _parse(PACKAGE / "http" / "error_mapping.py")
    referenced = {node.id for node in ast.walk(mapping_tree) if isinstance(node, ast.Name)}

    assert error_classes - referenced == set()


def test_modules_use_named_loggers():
    missing = []
    for path in _py_files(PACKAGE / "logic"):
        source = path.read_text(encoding="utf-8")
        if "logging." in source and "logging.getLogger(__name__)" not in source:
            missing.append(path.name)
    assert missing == []


def test_sqlite_and_postgres_migrations_stay_in_step():
    sqlite_files = sorted(p.name for p in (PROJECT_ROOT / "sqlite_migrations").glob("*.sql"))
    pg_files = sorted(p.name for p in (PROJECT_ROOT / "migrations").glob("*.sql"))
    assert sqlite_files
    assert sqlite_files == pg_files


@pytest.mark.parametrize("name", ["enquiry.schema.json", "form_sections.schema.json", "problem.schema.json"])
def test_response_schemas_are_valid_draft_2020_12(name):
    schema = json.loads((SCHEMAS_DIR / name).read_text(encoding="utf-8"))
    Draft202012Validator.check_schema(schema)
