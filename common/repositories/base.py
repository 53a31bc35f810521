from contextlib import asynccontextmanager
from typing import Generic, TypeVar, Optional, Type, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import Select, select
from pydantic import BaseModel

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Entity <-> domain model mapping over operation-scoped sessions.

    Every method takes a session for the one statement it runs, or joins the
    caller's `transaction()` when there is one. Repositories never commit a
    caller's transaction themselves.
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        async with get_session() as session:
            yield session

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        return self.domain_class.model_validate(entity)

    async def _fetch_one(self, query: Select) -> Optional[DomainModelType]:
        async with self._get_session() as session:
            entity = (await session.execute(query)).scalar_one_or_none()
            return self._entity_to_domain(entity) if entity is not None else None

    async def _fetch_all(self, query: Select) -> list[DomainModelType]:
        async with self._get_session() as session:
            entities = (await session.execute(query)).scalars().all()
            return [self._entity_to_domain(entity) for entity in entities]

    @trace_span
    async def get(self, id: int) -> Optional[DomainModelType]:
        return await self._fetch_one(
            select(self.entity_class).where(self.entity_class.id == id)
        )

    @trace_span
    async def create(self, create_model: CreateModelType) -> DomainModelType:
        """Insert a row from a create model; database defaults fill the rest."""
        entity = self.entity_class(**create_model.model_dump(exclude_none=True))
        async with self._get_session() as session:
            session.add(entity)
            await session.flush()
            await session.refresh(entity)
            return self._entity_to_domain(entity)
