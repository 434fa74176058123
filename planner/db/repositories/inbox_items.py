"""Repository para items del inbox."""

import logging
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from planner.db.models import InboxItemModel
from planner.domain.entities import InboxFilter, InboxItemType, Owner
from planner.utils.text import truncate_text

logger = logging.getLogger(__name__)


class InboxItemRepository:
    """Repository para operaciones CRUD de InboxItem."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, item_id: UUID, for_update: bool = False) -> InboxItemModel | None:
        """Obtiene un item por ID."""
        query = select(InboxItemModel).where(InboxItemModel.id == item_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(
        self,
        owner: Owner,
        content: str,
        item_type: InboxItemType = InboxItemType.NOTE,
    ) -> InboxItemModel:
        """Crea un nuevo item."""
        item = InboxItemModel(
            user_id=owner.user_id,
            organization_id=owner.organization_id,
            content=content,
            item_type=item_type.value,
            triaged=False,
            chunk_id=None,
        )
        self.session.add(item)
        await self.session.flush()
        logger.info(f"Item capturado: {truncate_text(content)}")
        return item

    async def list_untriaged(self, filter: InboxFilter) -> list[InboxItemModel]:
        """Obtiene items sin triage, más recientes primero."""
        query = select(InboxItemModel).where(
            InboxItemModel.user_id == filter.owner.user_id,
            InboxItemModel.organization_id == filter.owner.organization_id,
            InboxItemModel.triaged.is_(False),
        )

        if filter.item_type:
            query = query.where(InboxItemModel.item_type == filter.item_type.value)

        if filter.unchunked_only:
            query = query.where(InboxItemModel.chunk_id.is_(None))

        if filter.search_text:
            query = query.where(InboxItemModel.content.ilike(f"%{filter.search_text}%"))

        query = (
            query.order_by(InboxItemModel.created_at.desc())
            .offset(filter.offset)
            .limit(filter.limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def set_item_type(self, item: InboxItemModel, item_type: InboxItemType) -> InboxItemModel:
        """Cambia el tipo del item."""
        item.item_type = item_type.value
        await self.session.flush()
        return item

    async def set_chunk(self, item_ids: list[UUID], chunk_id: UUID | None) -> None:
        """Actualiza la back-reference chunk_id de uno o varios items."""
        if not item_ids:
            return
        await self.session.execute(
            update(InboxItemModel)
            .where(InboxItemModel.id.in_(item_ids))
            .values(chunk_id=chunk_id)
            .execution_options(synchronize_session="fetch")
        )

    async def mark_triaged(self, item: InboxItemModel, outcome_id: UUID) -> InboxItemModel:
        """Marca el item como resuelto hacia un outcome."""
        item.triaged = True
        item.triaged_to_id = outcome_id
        await self.session.flush()
        return item

    async def delete(self, item: InboxItemModel) -> None:
        """Elimina un item."""
        await self.session.execute(delete(InboxItemModel).where(InboxItemModel.id == item.id))
        logger.info(f"Item {item.id} eliminado")
