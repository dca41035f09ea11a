from typing import Generic, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shopqueue.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get(self, pk: str) -> ModelType | None:
        return await self.session.get(self.model, pk)

    async def get_many(self, pks: Sequence[str]) -> list[ModelType]:
        if not pks:
            return []
        result = await self.session.execute(select(self.model).where(self.model.id.in_(list(pks))))
        return list(result.scalars().all())

    async def create(self, instance: ModelType) -> ModelType:
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete(self, pk: str) -> bool:
        instance = await self.get(pk)
        if instance:
            await self.session.delete(instance)
            await self.session.flush()
            return True
        return False

    async def update(self, instance: ModelType) -> ModelType:
        self.session.add(instance)  # Re-add the instance to the session to track changes
        await self.session.flush()
        await self.session.refresh(instance)
        return instance
