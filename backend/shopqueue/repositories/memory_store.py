import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from shopqueue.exceptions import QueueNotFoundError
from shopqueue.models.queue_entry import QueueEntry, QueueStatus
from shopqueue.repositories.interface import (
    QueueStore,
    apply_fields,
    build_service_lines,
    format_queue_number,
)
from shopqueue.schemas.queue_entry import Page, QueueEntryCreate, QueueFilters
from shopqueue.utils.status_utils import normalize_priority, normalize_queue_status

logger = logging.getLogger(__name__)


class InMemoryQueueStore(QueueStore):
    """
    Dict-backed queue store for tests, demos and local runs.
    Entries are held as transient QueueEntry instances.
    """

    def __init__(self, entries: Optional[Sequence[QueueEntry]] = None):
        self._entries: Dict[str, QueueEntry] = {}
        for entry in entries or []:
            self.add_entry(entry)

    def add_entry(self, entry: QueueEntry) -> QueueEntry:
        if not entry.id:
            entry.id = str(uuid.uuid4())
        if entry.created_at is None:
            entry.created_at = datetime.utcnow()
        if entry.estimated_wait_time is None:
            entry.estimated_wait_time = 0
        self._entries[entry.id] = entry
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, queue_id: str) -> bool:
        return queue_id in self._entries

    async def get_by_id(self, queue_id: str) -> Optional[QueueEntry]:
        return self._entries.get(queue_id)

    async def get_by_ids(self, queue_ids: Sequence[str]) -> List[QueueEntry]:
        return [self._entries[qid] for qid in dict.fromkeys(queue_ids) if qid in self._entries]

    def _matches(self, entry: QueueEntry, filters: QueueFilters) -> bool:
        if filters.shop_id and entry.shop_id != filters.shop_id:
            return False
        if filters.date_from is not None and entry.created_at < filters.date_from:
            return False
        if filters.date_to is not None and entry.created_at > filters.date_to:
            return False
        if filters.employee_id and entry.served_by_employee_id != filters.employee_id:
            return False
        if filters.service_id and not any(
            line.service_id == filters.service_id for line in entry.service_lines
        ):
            return False
        if filters.status_filter:
            allowed = {s.value for s in filters.status_filter}
            if normalize_queue_status(entry.status) not in allowed:
                return False
        if filters.priority_filter:
            allowed = {p.value for p in filters.priority_filter}
            if normalize_priority(entry.priority) not in allowed:
                return False
        return True

    async def list_paginated(self, page: int, limit: int, filters: QueueFilters) -> Page:
        # sorted() is stable, so equal timestamps keep insertion order
        matches = sorted(
            (e for e in self._entries.values() if self._matches(e, filters)),
            key=lambda e: e.created_at,
        )
        start = (page - 1) * limit
        return Page(data=matches[start:start + limit], total=len(matches), page=page, limit=limit)

    async def update(self, queue_id: str, fields: Dict[str, Any]) -> QueueEntry:
        entry = self._entries.get(queue_id)
        if entry is None:
            raise QueueNotFoundError(
                f"Queue with ID {queue_id} not found",
                operation="updateQueue",
                context={"queue_id": queue_id},
            )
        apply_fields(entry, fields)
        entry.updated_at = datetime.utcnow()
        return entry

    async def delete(self, queue_id: str) -> bool:
        return self._entries.pop(queue_id, None) is not None

    async def create_entry(self, shop_id: str, data: QueueEntryCreate) -> QueueEntry:
        sequence = sum(1 for e in self._entries.values() if e.shop_id == shop_id) + 1
        now = datetime.utcnow()
        entry = QueueEntry(
            id=str(uuid.uuid4()),
            shop_id=shop_id,
            queue_number=format_queue_number(sequence),
            status=QueueStatus.WAITING,
            priority=data.priority,
            estimated_wait_time=data.estimated_wait_time,
            notes=data.notes,
            created_at=now,
            updated_at=now,
            service_lines=build_service_lines(data.service_lines),
        )
        self.add_entry(entry)
        logger.info(f"Queue entry {entry.queue_number} created for shop {shop_id}")
        return entry
