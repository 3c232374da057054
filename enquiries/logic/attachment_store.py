"""Content-addressable attachment store for photos and audio.

Each blob is keyed by the SHA-256 hex digest of its bytes, so a key is stable
and always refers to the identical content. Stored blobs are never modified;
re-storing identical bytes is a no-op that returns the same key.

Writes accept an optional connection so the record engine can put blob
writes and the record write in one transaction. Without one, each call
opens its own transaction; a batch is always all-or-nothing.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from enquiries.db.base import get_engine, unit_of_work
from enquiries.logic.errors import AttachmentNotFound, AttachmentStoreFailure
from enquiries.models.enquiry import AttachmentInfo, AttachmentUpload

logger = logging.getLogger(__name__)


def attachment_key_for(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class AttachmentStore:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    def _insert(self, conn: Connection, upload: AttachmentUpload) -> str:
        key = attachment_key_for(upload.data)
        conn.execute(
            sql_text(
                """
                INSERT INTO attachment (attachment_key, content_type, byte_size, content, created_at)
                VALUES (:key, :ctype, :size, :content, :at)
                ON CONFLICT (attachment_key) DO NOTHING
                """
            ),
            {
                "key": key,
                "ctype": upload.content_type,
                "size": len(upload.data),
                "content": upload.data,
                "at": _now_iso(),
            },
        )
        return key

    def store_many(
        self,
        uploads: Sequence[AttachmentUpload],
        conn: Optional[Connection] = None,
        checkpoint: Optional[Callable[[], None]] = None,
    ) -> List[str]:
        """Store every upload and return one key per upload in submission order.

        `checkpoint` runs before each write; an exception from it aborts the
        batch like a storage error does.
        """
        if not uploads:
            return []
        if conn is None:
            with unit_of_work(self.engine) as own_conn:
                return self.store_many(uploads, conn=own_conn, checkpoint=checkpoint)
        keys: List[str] = []
        for upload in uploads:
            if checkpoint is not None:
                checkpoint()
            try:
                keys.append(self._insert(conn, upload))
            except SQLAlchemyError as exc:
                logger.error("attachment_store_failed stored=%s of=%s", len(keys), len(uploads), exc_info=True)
                raise AttachmentStoreFailure(f"failed to store attachment {len(keys) + 1} of {len(uploads)}") from exc
        logger.info("attachments_stored count=%s", len(keys))
        return keys

    def store(self, upload: AttachmentUpload, conn: Optional[Connection] = None) -> str:
        return self.store_many([upload], conn=conn)[0]

    def fetch(self, key: str) -> bytes:
        with self.engine.connect() as conn:
            row = conn.execute(
                sql_text("SELECT content FROM attachment WHERE attachment_key = :key"),
                {"key": key},
            ).fetchone()
        if not row:
            raise AttachmentNotFound(key)
        return bytes(row[0])

    def describe(self, key: str) -> AttachmentInfo:
        with self.engine.connect() as conn:
            row = conn.execute(
                sql_text("SELECT attachment_key, content_type, byte_size FROM attachment WHERE attachment_key = :key"),
                {"key": key},
            ).fetchone()
        if not row:
            raise AttachmentNotFound(key)
        return AttachmentInfo(attachment_key=str(row[0]), content_type=row[1], byte_size=int(row[2]))

    def count(self) -> int:
        with self.engine.connect() as conn:
            return int(conn.execute(sql_text("SELECT COUNT(*) FROM attachment")).scalar() or 0)


__all__ = ["AttachmentStore", "attachment_key_for"]
