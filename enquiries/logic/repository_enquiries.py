"""Enquiry persistence.

One row per enquiry, written whole: criteria and photo keys are stored as
canonical JSON text so an unchanged record re-saves byte-for-byte identical.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

from enquiries.db.base import get_engine, unit_of_work
from enquiries.models.enquiry import Enquiry

logger = logging.getLogger(__name__)

_COLUMNS = "enquiry_id, criteria_json, photo_keys_json, recorded_audio, created_by, created_at, last_updated_at"


def _dump(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def _row_to_enquiry(row: Any) -> Enquiry:
    return Enquiry(
        enquiry_id=str(row["enquiry_id"]),
        criteria=json.loads(row["criteria_json"]),
        photo_keys=json.loads(row["photo_keys_json"]),
        recorded_audio=row["recorded_audio"],
        created_by=row["created_by"],
        created_at=row["created_at"],
        last_updated_at=row["last_updated_at"],
    )


class EnquiryRepository:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    def save(self, record: Enquiry, conn: Optional[Connection] = None) -> Enquiry:
        """Insert or overwrite the whole record. Raises SQLAlchemyError on failure."""
        if conn is None:
            with unit_of_work(self.engine) as own_conn:
                return self.save(record, conn=own_conn)
        params = {
            "id": record.enquiry_id,
            "criteria": _dump(record.criteria),
            "photos": _dump(list(record.photo_keys)),
            "audio": record.recorded_audio,
            "created_by": record.created_by,
            "created_at": record.created_at,
            "updated_at": record.last_updated_at,
        }
        result = conn.execute(
            sql_text(
                """
                UPDATE enquiry
                SET criteria_json = :criteria, photo_keys_json = :photos, recorded_audio = :audio,
                    last_updated_at = :updated_at
                WHERE enquiry_id = :id
                """
            ),
            params,
        )
        if result.rowcount == 0:
            conn.execute(
                sql_text(
                    f"""
                    INSERT INTO enquiry ({_COLUMNS})
                    VALUES (:id, :criteria, :photos, :audio, :created_by, :created_at, :updated_at)
                    """
                ),
                params,
            )
        logger.info("enquiry_saved enquiry_id=%s", record.enquiry_id)
        return record

    def load(self, enquiry_id: str) -> Optional[Enquiry]:
        with self.engine.connect() as conn:
            row = conn.execute(
                sql_text(f"SELECT {_COLUMNS} FROM enquiry WHERE enquiry_id = :id"),
                {"id": enquiry_id},
            ).mappings().fetchone()
        return _row_to_enquiry(row) if row else None

    def list_all(self) -> List[Enquiry]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                sql_text(f"SELECT {_COLUMNS} FROM enquiry ORDER BY created_at ASC, enquiry_id ASC")
            ).mappings().all()
        return [_row_to_enquiry(r) for r in rows]

    def count(self) -> int:
        with self.engine.connect() as conn:
            return int(conn.execute(sql_text("SELECT COUNT(*) FROM enquiry")).scalar() or 0)


__all__ = ["EnquiryRepository"]
