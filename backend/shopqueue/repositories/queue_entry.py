from typing import List, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shopqueue.models import QueueEntry, QueueServiceLine
from shopqueue.repositories.base import BaseRepository
from shopqueue.schemas.queue_entry import QueueFilters


class QueueEntryRepository(BaseRepository[QueueEntry]):
    def __init__(self, session: AsyncSession):
        super().__init__(QueueEntry, session)

    async def get_by_id(self, queue_id: str) -> QueueEntry | None:
        return await self.get(queue_id)

    async def get_by_ids(self, queue_ids: Sequence[str]) -> List[QueueEntry]:
        return await self.get_many(queue_ids)

    def _filter_conditions(self, filters: QueueFilters) -> list:
        conditions = []
        if filters.shop_id:
            conditions.append(self.model.shop_id == filters.shop_id)
        if filters.date_from is not None:
            conditions.append(self.model.created_at >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(self.model.created_at <= filters.date_to)
        if filters.employee_id:
            conditions.append(self.model.served_by_employee_id == filters.employee_id)
        if filters.service_id:
            conditions.append(
                self.model.service_lines.any(QueueServiceLine.service_id == filters.service_id)
            )
        if filters.status_filter:
            conditions.append(self.model.status.in_(filters.status_filter))
        if filters.priority_filter:
            conditions.append(self.model.priority.in_(filters.priority_filter))
        return conditions

    async def list_filtered(self, page: int, limit: int, filters: QueueFilters) -> Tuple[List[QueueEntry], int]:
        """
        Returns one page of matching entries (oldest first) and the total match count.
        """
        conditions = self._filter_conditions(filters)

        count_result = await self.session.execute(
            select(func.count(self.model.id)).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await self.session.execute(
            select(self.model)
            .where(*conditions)
            .order_by(self.model.created_at.asc(), self.model.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_for_shop(self, shop_id: str) -> int:
        result = await self.session.execute(
            select(func.count(self.model.id)).where(self.model.shop_id == shop_id)
        )
        return result.scalar_one()
