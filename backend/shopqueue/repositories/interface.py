from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from shopqueue.exceptions import QueueNotFoundError, QueueUnauthorizedError, QueueValidationError
from shopqueue.models.queue_entry import QueueEntry, QueueServiceLine
from shopqueue.schemas.queue_entry import Page, QueueEntryCreate, QueueFilters, ServiceLineSchema

MUTABLE_FIELDS = frozenset({
    "status",
    "priority",
    "estimated_wait_time",
    "actual_wait_time",
    "notes",
    "called_at",
    "completed_at",
    "served_by_employee_id",
    "service_lines",
})


def build_service_lines(lines) -> List[QueueServiceLine]:
    """Converts dicts / ServiceLineSchema objects into ordered QueueServiceLine rows."""
    models = []
    for position, line in enumerate(lines or []):
        if not isinstance(line, ServiceLineSchema):
            line = ServiceLineSchema.model_validate(line)
        models.append(QueueServiceLine(
            position=position,
            service_id=line.service_id,
            service_name=line.service_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
        ))
    return models


def apply_fields(entry: QueueEntry, fields: Dict[str, Any]) -> QueueEntry:
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise QueueValidationError(
            f"Fields cannot be updated: {', '.join(sorted(unknown))}",
            operation="updateQueue",
            context={"queue_id": entry.id},
        )

    for name, value in fields.items():
        if name == "service_lines":
            entry.service_lines = build_service_lines(value)
        else:
            setattr(entry, name, value)
    return entry


def format_queue_number(sequence: int) -> str:
    return f"Q{sequence:03d}"


class QueueStore(ABC):
    """
    Abstract base class for queue entry storage.
    The queue services only talk to storage through this interface.
    """
    @abstractmethod
    async def get_by_id(self, queue_id: str) -> Optional[QueueEntry]:
        pass

    @abstractmethod
    async def get_by_ids(self, queue_ids: Sequence[str]) -> List[QueueEntry]:
        """
        Returns the entries that exist; missing ids are silently skipped.
        """
        pass

    @abstractmethod
    async def list_paginated(self, page: int, limit: int, filters: QueueFilters) -> Page:
        """
        Returns one page (1-based) of entries matching the filters,
        ordered by created_at ascending.
        """
        pass

    @abstractmethod
    async def update(self, queue_id: str, fields: Dict[str, Any]) -> QueueEntry:
        """
        Applies a partial update and returns the updated entry.
        Must raise QueueNotFoundError if the entry does not exist.
        """
        pass

    @abstractmethod
    async def delete(self, queue_id: str) -> bool:
        pass

    @abstractmethod
    async def create_entry(self, shop_id: str, data: QueueEntryCreate) -> QueueEntry:
        """
        Adds a WAITING entry for a customer joining the shop's queue.
        """
        pass

    async def get_for_shop(self, queue_id: str, shop_id: str, operation: str) -> QueueEntry:
        """
        Loads an entry and checks that it belongs to shop_id.
        Raises QueueNotFoundError / QueueUnauthorizedError.
        """
        entry = await self.get_by_id(queue_id)
        if entry is None:
            raise QueueNotFoundError(
                f"Queue with ID {queue_id} not found",
                operation=operation,
                context={"queue_id": queue_id, "shop_id": shop_id},
            )
        if entry.shop_id != shop_id:
            raise QueueUnauthorizedError(
                operation=operation,
                context={"queue_id": queue_id, "shop_id": shop_id},
            )
        return entry

    async def list_all(self, filters: QueueFilters, page_size: int = 100) -> List[QueueEntry]:
        """Pages through list_paginated until the listing is exhausted."""
        entries: List[QueueEntry] = []
        page = 1
        while True:
            result = await self.list_paginated(page, page_size, filters)
            entries.extend(result.data)
            if not result.data or not result.has_next:
                return entries
            page += 1
