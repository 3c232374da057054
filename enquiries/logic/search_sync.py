"""Search index notifications.

After a successful create or update the service tells the search side which
criteria the schema marks as indexable. Delivery is best-effort: callers log
and swallow sync failures so they never undo a persisted change.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, Dict, List, Protocol, Sequence

from enquiries.models.enquiry import Enquiry

logger = logging.getLogger(__name__)

ENQUIRY_INDEXED = "enquiry.indexed"
DEFAULT_BUFFER_LIMIT = 1000


class SearchSync(Protocol):
    def notify(self, record: Enquiry, indexable_field_names: Sequence[str]) -> None:
        ...


class BufferedSearchSync:
    """Logs each notification and buffers its payload in-process.

    Stands in for an external indexer until one drains the buffer. Only the
    newest `max_events` notifications are kept.
    """

    def __init__(self, max_events: int = DEFAULT_BUFFER_LIMIT) -> None:
        self.buffer: Deque[Dict[str, Any]] = deque(maxlen=max_events)

    def notify(self, record: Enquiry, indexable_field_names: Sequence[str]) -> None:
        document = {
            name: record.criteria[name]
            for name in indexable_field_names
            if name in record.criteria
        }
        payload = {"enquiry_id": record.enquiry_id, "fields": document}
        logger.info("search_sync_notify type=%s payload=%s", ENQUIRY_INDEXED, payload)
        if self.buffer.maxlen is not None and len(self.buffer) == self.buffer.maxlen:
            logger.warning("search_sync_buffer_full dropped_enquiry_id=%s", self.buffer[0]["payload"]["enquiry_id"])
        self.buffer.append({"type": ENQUIRY_INDEXED, "payload": payload})

    def drain(self) -> List[Dict[str, Any]]:
        events = list(self.buffer)
        self.buffer.clear()
        return events


__all__ = ["ENQUIRY_INDEXED", "DEFAULT_BUFFER_LIMIT", "SearchSync", "BufferedSearchSync"]
