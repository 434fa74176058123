"""Repositories para chunks y su membresía."""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from planner.db.models import ChunkItemModel, ChunkModel, utcnow
from planner.domain.entities import ChunkStatus, ConvertedToType, Owner

logger = logging.getLogger(__name__)


class ChunkRepository:
    """Repository para operaciones CRUD de Chunk."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, chunk_id: UUID, for_update: bool = False) -> ChunkModel | None:
        """Obtiene un chunk por ID."""
        query = select(ChunkModel).where(ChunkModel.id == chunk_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(
        self,
        owner: Owner,
        name: str,
        color: str,
        description: str | None = None,
    ) -> ChunkModel:
        """Crea un chunk vacío y activo."""
        chunk = ChunkModel(
            user_id=owner.user_id,
            organization_id=owner.organization_id,
            name=name,
            color=color,
            description=description,
            status=ChunkStatus.ACTIVE.value,
        )
        self.session.add(chunk)
        await self.session.flush()
        logger.info(f"Chunk creado: {name}")
        return chunk

    async def list_by_owner(self, owner: Owner, include_archived: bool = False) -> list[ChunkModel]:
        """Lista chunks del usuario, actualizados más recientemente primero."""
        query = select(ChunkModel).where(
            ChunkModel.user_id == owner.user_id,
            ChunkModel.organization_id == owner.organization_id,
        )
        if not include_archived:
            query = query.where(ChunkModel.status == ChunkStatus.ACTIVE.value)

        query = query.order_by(ChunkModel.updated_at.desc())
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_fields(self, chunk: ChunkModel, fields: dict[str, Any]) -> ChunkModel:
        """Aplica un patch de campos editables."""
        for key, value in fields.items():
            setattr(chunk, key, value)
        chunk.updated_at = utcnow()
        await self.session.flush()
        return chunk

    async def touch(self, chunk_id: UUID) -> None:
        """Actualiza updated_at tras un cambio de membresía."""
        await self.session.execute(
            update(ChunkModel).where(ChunkModel.id == chunk_id).values(updated_at=utcnow())
        )

    async def set_status(self, chunk: ChunkModel, status: ChunkStatus) -> ChunkModel:
        """Cambia el estado (ACTIVE/ARCHIVED)."""
        chunk.status = status.value
        chunk.updated_at = utcnow()
        await self.session.flush()
        logger.info(f"Chunk {chunk.id} -> {status.value}")
        return chunk

    async def claim_conversion(self, chunk_id: UUID, token: str) -> bool:
        """
        Compare-and-swap del marcador de conversión.

        Solo gana si el chunk no está convertido ni tiene otra conversión
        en curso. Retorna True si este token quedó como dueño.
        """
        result = await self.session.execute(
            update(ChunkModel)
            .where(
                ChunkModel.id == chunk_id,
                ChunkModel.conversion_token.is_(None),
                ChunkModel.converted_to_id.is_(None),
            )
            .values(conversion_token=token, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_conversion(self, chunk_id: UUID, token: str) -> None:
        """Libera el marcador si aún no hay outcome asociado."""
        await self.session.execute(
            update(ChunkModel)
            .where(
                ChunkModel.id == chunk_id,
                ChunkModel.conversion_token == token,
                ChunkModel.converted_to_id.is_(None),
            )
            .values(conversion_token=None)
            .execution_options(synchronize_session=False)
        )

    async def mark_converted(
        self,
        chunk: ChunkModel,
        outcome_id: UUID,
        archive: bool,
        converted_at: datetime | None = None,
    ) -> ChunkModel:
        """Asigna la tripleta de conversión en una sola escritura."""
        now = converted_at or utcnow()
        chunk.converted_to_type = ConvertedToType.OUTCOME.value
        chunk.converted_to_id = outcome_id
        chunk.converted_at = now
        if archive:
            chunk.status = ChunkStatus.ARCHIVED.value
        chunk.updated_at = now
        await self.session.flush()
        return chunk

    async def delete(self, chunk: ChunkModel) -> None:
        """Elimina el chunk (la membresía debe haberse desligado antes)."""
        await self.session.execute(delete(ChunkModel).where(ChunkModel.id == chunk.id))
        logger.info(f"Chunk {chunk.id} eliminado")


class ChunkItemRepository:
    """Repository para la membresía ordenada chunk <-> item."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, chunk_item_id: UUID) -> ChunkItemModel | None:
        result = await self.session.execute(
            select(ChunkItemModel).where(ChunkItemModel.id == chunk_item_id)
        )
        return result.scalar_one_or_none()

    async def get_by_inbox_item(self, inbox_item_id: UUID) -> ChunkItemModel | None:
        result = await self.session.execute(
            select(ChunkItemModel).where(ChunkItemModel.inbox_item_id == inbox_item_id)
        )
        return result.scalar_one_or_none()

    async def list_for_chunk(self, chunk_id: UUID) -> list[ChunkItemModel]:
        """Items de un chunk ordenados por sort_order."""
        result = await self.session.execute(
            select(ChunkItemModel)
            .where(ChunkItemModel.chunk_id == chunk_id)
            .order_by(ChunkItemModel.sort_order.asc())
        )
        return list(result.scalars().unique().all())

    async def list_for_chunks(self, chunk_ids: list[UUID]) -> list[ChunkItemModel]:
        if not chunk_ids:
            return []
        result = await self.session.execute(
            select(ChunkItemModel)
            .where(ChunkItemModel.chunk_id.in_(chunk_ids))
            .order_by(ChunkItemModel.sort_order.asc())
        )
        return list(result.scalars().unique().all())

    async def max_sort_order(self, chunk_id: UUID) -> int | None:
        result = await self.session.execute(
            select(func.max(ChunkItemModel.sort_order)).where(ChunkItemModel.chunk_id == chunk_id)
        )
        return result.scalar_one_or_none()

    async def add(self, chunk_id: UUID, inbox_item_id: UUID, sort_order: int) -> ChunkItemModel:
        """Agrega un item al chunk en la posición dada."""
        chunk_item = ChunkItemModel(
            chunk_id=chunk_id,
            inbox_item_id=inbox_item_id,
            sort_order=sort_order,
        )
        self.session.add(chunk_item)
        await self.session.flush()
        logger.debug(f"Item {inbox_item_id} agregado a chunk {chunk_id} (orden {sort_order})")
        return chunk_item

    async def delete(self, chunk_item: ChunkItemModel) -> None:
        await self.session.execute(
            delete(ChunkItemModel).where(ChunkItemModel.id == chunk_item.id)
        )

    async def delete_for_chunk(self, chunk_id: UUID) -> None:
        await self.session.execute(
            delete(ChunkItemModel).where(ChunkItemModel.chunk_id == chunk_id)
        )

    async def set_sort_orders(self, chunk_items: list[ChunkItemModel], orders: dict[UUID, int]) -> None:
        """
        Reescribe sort_order por inbox_item_id.

        Pasa primero por valores negativos temporales para no chocar con
        la restricción única (chunk_id, sort_order) a mitad de la escritura.
        """
        for temp, chunk_item in enumerate(chunk_items, start=1):
            chunk_item.sort_order = -temp
        await self.session.flush()

        for chunk_item in chunk_items:
            chunk_item.sort_order = orders[chunk_item.inbox_item_id]
        await self.session.flush()
