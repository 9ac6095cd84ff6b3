"""Base repository for the registry tables."""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select


ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """Registry data access over one session.

    Repositories never commit; the services own the transaction.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: UUID) -> ModelType | None:
        return await self.first_where(self.model.id == id)  # type: ignore[attr-defined]

    async def first_where(self, *criteria: Any) -> ModelType | None:
        """The single row matching all criteria, or None."""
        result = await self.session.execute(select(self.model).where(*criteria))
        return result.scalar_one_or_none()

    async def all_where(self, *criteria: Any, order_by: tuple[Any, ...] = ()) -> list[ModelType]:
        """Every row matching all criteria, in ``order_by`` order."""
        result = await self.session.execute(
            select(self.model).where(*criteria).order_by(*order_by)
        )
        return list(result.scalars().all())

    def add(self, entity: ModelType) -> None:
        self.session.add(entity)

    async def delete(self, entity: ModelType) -> None:
        await self.session.delete(entity)
