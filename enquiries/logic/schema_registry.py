"""Form schema registry.

Holds Form -> ordered FormSection -> ordered Field definitions in SQL and
resolves them back as frozen models. Reads are side-effect free; writes only
happen at configuration time through `register_form`.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Dict, List, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine

from enquiries.db.base import get_engine
from enquiries.logic.errors import SchemaDefinitionError
from enquiries.models.schema import Field, Form, FormSection

logger = logging.getLogger(__name__)


def fields_by_name(sections: List[FormSection]) -> Dict[str, Field]:
    """Flatten sections into a name -> Field map; the first declaration wins."""
    out: Dict[str, Field] = {}
    for section in sections:
        for field in section.fields:
            out.setdefault(field.name, field)
    return out


def indexable_field_names(sections: List[FormSection]) -> List[str]:
    return [f.name for f in fields_by_name(sections).values() if f.indexable]


def _check_form_definition(form: Form) -> None:
    if not form.name or not form.name.strip():
        raise SchemaDefinitionError("form name must be a non-empty string")
    seen_sections: set[str] = set()
    for section in form.sections:
        if section.section_key in seen_sections:
            raise SchemaDefinitionError(f"duplicate section {section.section_key!r} in form {form.name!r}")
        seen_sections.add(section.section_key)
        seen_fields: set[str] = set()
        for field in section.fields:
            if field.name in seen_fields:
                raise SchemaDefinitionError(
                    f"duplicate field {field.name!r} in section {section.section_key!r}"
                )
            seen_fields.add(field.name)
            if field.pattern is not None:
                try:
                    re.compile(field.pattern)
                except re.error as exc:
                    raise SchemaDefinitionError(
                        f"field {field.name!r} has an invalid pattern {field.pattern!r}: {exc}"
                    ) from exc


class SchemaRegistry:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    def resolve_sections(self, form_name: str) -> List[FormSection]:
        """Return the form's sections in declared order, each with ordered fields.

        An unknown form yields an empty list.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                sql_text(
                    """
                    SELECT s.section_id, s.section_key, s.title, s.section_order,
                           f.field_name, f.field_kind, f.display_name, f.options_json,
                           f.max_length, f.pattern, f.indexable
                    FROM form_section s
                    LEFT JOIN form_field f ON f.section_id = s.section_id
                    WHERE s.form_name = :form
                    ORDER BY s.section_order ASC, s.section_key ASC, f.field_order ASC
                    """
                ),
                {"form": form_name},
            ).mappings().all()

        ordered_ids: List[str] = []
        heads: Dict[str, dict] = {}
        fields: Dict[str, List[Field]] = {}
        for r in rows:
            sid = str(r["section_id"])
            if sid not in heads:
                ordered_ids.append(sid)
                heads[sid] = {
                    "section_key": r["section_key"],
                    "title": r["title"],
                    "order": int(r["section_order"]),
                }
                fields[sid] = []
            if r["field_name"] is None:
                continue
            fields[sid].append(
                Field(
                    name=r["field_name"],
                    kind=r["field_kind"],
                    display_name=r["display_name"],
                    options=json.loads(r["options_json"]) if r["options_json"] else None,
                    max_length=r["max_length"],
                    pattern=r["pattern"],
                    searchable=None if r["indexable"] is None else bool(r["indexable"]),
                )
            )
        sections = [FormSection(fields=fields[sid], **heads[sid]) for sid in ordered_ids]
        logger.info("schema_resolved form=%s sections=%s", form_name, len(sections))
        return sections

    def get_form(self, form_name: str) -> Optional[Form]:
        with self.engine.connect() as conn:
            row = conn.execute(
                sql_text("SELECT form_name, description FROM form WHERE form_name = :form"),
                {"form": form_name},
            ).fetchone()
        if not row:
            return None
        return Form(name=str(row[0]), description=row[1], sections=self.resolve_sections(form_name))

    def register_form(self, form: Form) -> Form:
        """Replace the stored definition of `form.name` in one transaction.

        Section and field order are taken from list position.
        """
        _check_form_definition(form)
        with self.engine.begin() as conn:
            conn.execute(
                sql_text(
                    "DELETE FROM form_field WHERE section_id IN "
                    "(SELECT section_id FROM form_section WHERE form_name = :form)"
                ),
                {"form": form.name},
            )
            conn.execute(sql_text("DELETE FROM form_section WHERE form_name = :form"), {"form": form.name})
            conn.execute(sql_text("DELETE FROM form WHERE form_name = :form"), {"form": form.name})
            conn.execute(
                sql_text("INSERT INTO form (form_name, description) VALUES (:form, :description)"),
                {"form": form.name, "description": form.description},
            )
            for s_idx, section in enumerate(form.sections):
                section_id = str(uuid.uuid4())
                conn.execute(
                    sql_text(
                        """
                        INSERT INTO form_section (section_id, form_name, section_key, title, section_order)
                        VALUES (:sid, :form, :key, :title, :ord)
                        """
                    ),
                    {
                        "sid": section_id,
                        "form": form.name,
                        "key": section.section_key,
                        "title": section.title,
                        "ord": s_idx,
                    },
                )
                for f_idx, field in enumerate(section.fields):
                    conn.execute(
                        sql_text(
                            """
                            INSERT INTO form_field (
                                field_id, section_id, field_name, field_kind, display_name,
                                field_order, options_json, max_length, pattern, indexable
                            ) VALUES (
                                :fid, :sid, :name, :kind, :display_name,
                                :ord, :options, :max_length, :pattern, :indexable
                            )
                            """
                        ),
                        {
                            "fid": str(uuid.uuid4()),
                            "sid": section_id,
                            "name": field.name,
                            "kind": field.kind,
                            "display_name": field.display_name,
                            "ord": f_idx,
                            "options": json.dumps(field.options) if field.options is not None else None,
                            "max_length": field.max_length,
                            "pattern": field.pattern,
                            "indexable": field.searchable,
                        },
                    )
        logger.info("form_registered form=%s sections=%s", form.name, len(form.sections))
        return Form(name=form.name, description=form.description, sections=self.resolve_sections(form.name))


__all__ = ["SchemaRegistry", "fields_by_name", "indexable_field_names"]
