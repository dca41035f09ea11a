import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from shopqueue.exceptions import QueueNotFoundError
from shopqueue.models.queue_entry import QueueEntry, QueueStatus
from shopqueue.repositories.interface import (
    QueueStore,
    apply_fields,
    build_service_lines,
    format_queue_number,
)
from shopqueue.repositories.queue_entry import QueueEntryRepository
from shopqueue.schemas.queue_entry import Page, QueueEntryCreate, QueueFilters

logger = logging.getLogger(__name__)


class SqlQueueStore(QueueStore):
    """
    Queue store backed by SQLAlchemy.

    Every call opens its own session so that concurrent callers (the bulk
    engine fans out inside a batch) never share one.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        queue_entry_repository_class=QueueEntryRepository,
    ):
        self.session_factory = session_factory
        self.queue_entry_repository_class = queue_entry_repository_class

    async def get_by_id(self, queue_id: str) -> Optional[QueueEntry]:
        async with self.session_factory() as session:
            repo = self.queue_entry_repository_class(session)
            return await repo.get_by_id(queue_id)

    async def get_by_ids(self, queue_ids: Sequence[str]) -> List[QueueEntry]:
        async with self.session_factory() as session:
            repo = self.queue_entry_repository_class(session)
            return await repo.get_by_ids(queue_ids)

    async def list_paginated(self, page: int, limit: int, filters: QueueFilters) -> Page:
        async with self.session_factory() as session:
            repo = self.queue_entry_repository_class(session)
            entries, total = await repo.list_filtered(page, limit, filters)
            return Page(data=entries, total=total, page=page, limit=limit)

    async def update(self, queue_id: str, fields: Dict[str, Any]) -> QueueEntry:
        async with self.session_factory() as session:
            repo = self.queue_entry_repository_class(session)
            entry = await repo.get_by_id(queue_id)
            if not entry:
                raise QueueNotFoundError(
                    f"Queue with ID {queue_id} not found",
                    operation="updateQueue",
                    context={"queue_id": queue_id},
                )

            apply_fields(entry, fields)
            entry = await repo.update(entry)
            await session.commit()
            logger.debug(f"Updated queue entry {queue_id}: {sorted(fields)}")
            return entry

    async def delete(self, queue_id: str) -> bool:
        async with self.session_factory() as session:
            repo = self.queue_entry_repository_class(session)
            result = await repo.delete(queue_id)
            if result:
                await session.commit()
            return result

    async def create_entry(self, shop_id: str, data: QueueEntryCreate) -> QueueEntry:
        async with self.session_factory() as session:
            repo = self.queue_entry_repository_class(session)
            sequence = await repo.count_for_shop(shop_id) + 1
            now = datetime.utcnow()
            entry = QueueEntry(
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
            entry = await repo.create(entry)
            await session.commit()
            logger.info(f"Queue entry {entry.queue_number} created for shop {shop_id}")
            return entry
