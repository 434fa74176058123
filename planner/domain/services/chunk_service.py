"""
Chunk Service - Agrupaciones ordenadas de items del inbox.

Toda edición de membresía (agregar, quitar, reordenar, eliminar) se
serializa por chunk con un lock lógico y actualiza en la misma unidad de
trabajo tanto chunk_items como la back-reference inbox_items.chunk_id.
Un chunk convertido (o en conversión) es de solo lectura salvo su estado
de archivo.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from planner.config import get_settings
from planner.db.database import session_scope
from planner.db.mappers import chunk_item_to_entity, chunk_with_items_to_entity, item_to_entity
from planner.db.models import ChunkModel, InboxItemModel
from planner.db.repositories import ChunkItemRepository, ChunkRepository, InboxItemRepository
from planner.domain.entities import ChunkItem, ChunkStatus, ChunkWithItems, Owner
from planner.utils.errors import (
    BusinessRuleViolation,
    ConflictError,
    ConversionLockedError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
    retry_store,
)
from planner.utils.locks import KeyedLock, get_chunk_locks
from planner.utils.text import clean_optional, clean_text

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _ensure_unlocked(chunk: ChunkModel, operation: str) -> None:
    if chunk.converted_to_id is not None or chunk.conversion_token is not None:
        raise ConversionLockedError(chunk.id, operation)


class ChunkService:
    """
    Servicio de dominio para chunks.

    Uso:
        service = get_chunk_service()
        chunk = await service.create(owner, "Launch prep")
        await service.add_item(chunk.id, item.id)
        await service.reorder(chunk.id, [b.id, a.id])
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        locks: KeyedLock | None = None,
    ):
        self._session_factory = session_factory
        self._locks = locks or get_chunk_locks()

    # ==================== Helpers ====================

    async def _load_chunk(self, session: AsyncSession, chunk_id: UUID) -> ChunkModel:
        chunk = await ChunkRepository(session).get_by_id(chunk_id, for_update=True)
        if chunk is None:
            raise NotFoundError("Chunk", chunk_id)
        return chunk

    async def _with_items(self, session: AsyncSession, chunk: ChunkModel) -> ChunkWithItems:
        items = await ChunkItemRepository(session).list_for_chunk(chunk.id)
        return chunk_with_items_to_entity(chunk, items)

    async def _attach(self, session: AsyncSession, chunk: ChunkModel, item_id: UUID) -> ChunkItem:
        """Agrega un item al final del chunk. Asume lock del chunk tomado."""
        items = InboxItemRepository(session)
        chunk_items = ChunkItemRepository(session)

        item: InboxItemModel | None = await items.get_by_id(item_id, for_update=True)
        if item is None:
            raise NotFoundError("InboxItem", item_id)
        if item.triaged:
            raise BusinessRuleViolation(
                f"Item {item_id} ya fue resuelto, no puede agregarse a un chunk",
                {"item_id": str(item_id)},
            )

        existing = await chunk_items.get_by_inbox_item(item_id)
        if existing is not None or item.chunk_id is not None:
            current = existing.chunk_id if existing is not None else item.chunk_id
            if current == chunk.id and existing is not None:
                return chunk_item_to_entity(existing)
            raise ConflictError(
                f"Item {item_id} ya pertenece al chunk {current}, quitarlo primero",
                {"item_id": str(item_id), "chunk_id": str(current)},
            )

        max_order = await chunk_items.max_sort_order(chunk.id)
        sort_order = 0 if max_order is None else max_order + 1
        chunk_item = await chunk_items.add(chunk.id, item_id, sort_order)
        item.chunk_id = chunk.id
        await session.flush()
        await ChunkRepository(session).touch(chunk.id)

        logger.info(f"Item {item_id} agregado a chunk {chunk.id} en posición {sort_order}")
        added = chunk_item_to_entity(chunk_item, with_item=False)
        added.inbox_item = item_to_entity(item)
        return added

    # ==================== CRUD ====================

    @retry_store()
    async def create(
        self,
        owner: Owner,
        name: str,
        color: str | None = None,
        description: str | None = None,
        item_ids: list[UUID] | None = None,
    ) -> ChunkWithItems:
        """
        Crea un chunk activo, vacío o con items iniciales.

        Si algún item no puede agregarse, no se crea nada.
        """
        cleaned = clean_text(name)
        if not cleaned:
            raise ValidationError("El nombre del chunk no puede estar vacío", field="name")

        try:
            async with session_scope(self._session_factory) as session:
                chunk = await ChunkRepository(session).create(
                    owner,
                    cleaned,
                    color or get_settings().default_chunk_color,
                    clean_optional(description),
                )
                # El chunk aún no es visible para nadie más: no requiere lock
                for item_id in dict.fromkeys(item_ids or []):
                    await self._attach(session, chunk, item_id)
                return await self._with_items(session, chunk)
        except IntegrityError as e:
            raise TransientStoreError(f"Conflicto de escritura creando chunk: {e.orig}") from e

    async def get(self, chunk_id: UUID) -> ChunkWithItems:
        """Obtiene un chunk con sus items ordenados."""
        async with session_scope(self._session_factory) as session:
            chunk = await ChunkRepository(session).get_by_id(chunk_id)
            if chunk is None:
                raise NotFoundError("Chunk", chunk_id)
            return await self._with_items(session, chunk)

    async def list_chunks(self, owner: Owner, include_archived: bool = False) -> list[ChunkWithItems]:
        """Lista los chunks del usuario con sus items."""
        async with session_scope(self._session_factory) as session:
            chunks = await ChunkRepository(session).list_by_owner(owner, include_archived)
            members = await ChunkItemRepository(session).list_for_chunks([c.id for c in chunks])

            by_chunk: dict[UUID, list] = {}
            for chunk_item in members:
                by_chunk.setdefault(chunk_item.chunk_id, []).append(chunk_item)

            return [chunk_with_items_to_entity(c, by_chunk.get(c.id, [])) for c in chunks]

    @retry_store()
    async def update(
        self,
        chunk_id: UUID,
        name: str | None = None,
        color: str | None = None,
        description: str | None = _UNSET,
    ) -> ChunkWithItems:
        """Edita nombre, color o descripción. Rechazado si el chunk está convertido."""
        patch: dict[str, Any] = {}
        if name is not None:
            cleaned = clean_text(name)
            if not cleaned:
                raise ValidationError("El nombre del chunk no puede estar vacío", field="name")
            patch["name"] = cleaned
        if color is not None:
            patch["color"] = color
        if description is not _UNSET:
            patch["description"] = clean_optional(description)

        async with self._locks.hold(chunk_id):
            async with session_scope(self._session_factory) as session:
                chunk = await self._load_chunk(session, chunk_id)
                _ensure_unlocked(chunk, "editar")
                if patch:
                    await ChunkRepository(session).update_fields(chunk, patch)
                    logger.info(f"Chunk {chunk_id} actualizado: {sorted(patch)}")
                return await self._with_items(session, chunk)

    async def rename(self, chunk_id: UUID, name: str) -> ChunkWithItems:
        """Renombra un chunk."""
        return await self.update(chunk_id, name=name)

    @retry_store()
    async def _set_status(self, chunk_id: UUID, status: ChunkStatus) -> ChunkWithItems:
        async with session_scope(self._session_factory) as session:
            chunk = await self._load_chunk(session, chunk_id)
            if chunk.status != status.value:
                await ChunkRepository(session).set_status(chunk, status)
            return await self._with_items(session, chunk)

    async def archive(self, chunk_id: UUID) -> ChunkWithItems:
        """Archiva un chunk. Permitido también después de convertirlo."""
        return await self._set_status(chunk_id, ChunkStatus.ARCHIVED)

    async def unarchive(self, chunk_id: UUID) -> ChunkWithItems:
        """Reactiva un chunk archivado."""
        return await self._set_status(chunk_id, ChunkStatus.ACTIVE)

    @retry_store()
    async def delete(self, chunk_id: UUID) -> None:
        """
        Elimina un chunk no convertido.

        Desliga primero a todos sus items (chunk_id = NULL), que siguen
        sin triage. Un chunk convertido se archiva, no se elimina.
        """
        async with self._locks.hold(chunk_id):
            async with session_scope(self._session_factory) as session:
                chunk = await self._load_chunk(session, chunk_id)
                _ensure_unlocked(chunk, "eliminar")

                chunk_items = ChunkItemRepository(session)
                members = await chunk_items.list_for_chunk(chunk_id)
                await InboxItemRepository(session).set_chunk(
                    [m.inbox_item_id for m in members], None
                )
                await chunk_items.delete_for_chunk(chunk_id)
                await ChunkRepository(session).delete(chunk)
                logger.info(f"Chunk {chunk_id} eliminado, {len(members)} items desligados")

    # ==================== Membresía ====================

    async def add_item(self, chunk_id: UUID, item_id: UUID) -> ChunkItem:
        """
        Agrega un item al final del chunk (sort_order = max + 1).

        Falla con ConflictError si el item ya está en otro chunk: no hay
        reasignación silenciosa. Agregarlo de nuevo al mismo chunk no
        cambia nada.
        """
        async with self._locks.hold(chunk_id):
            return await self._add_item_locked(chunk_id, item_id)

    @retry_store()
    async def _add_item_locked(self, chunk_id: UUID, item_id: UUID) -> ChunkItem:
        try:
            async with session_scope(self._session_factory) as session:
                chunk = await self._load_chunk(session, chunk_id)
                _ensure_unlocked(chunk, "agregar items")
                return await self._attach(session, chunk, item_id)
        except IntegrityError as e:
            # Carrera con otro proceso; el reintento vuelve a validar
            raise TransientStoreError(f"Conflicto de escritura en chunk {chunk_id}: {e.orig}") from e

    async def remove_item(self, chunk_item_id: UUID) -> ChunkItem:
        """
        Quita un item de su chunk y limpia su chunk_id.

        Los sort_order restantes no se renumeran.
        """
        async with session_scope(self._session_factory) as session:
            membership = await ChunkItemRepository(session).get_by_id(chunk_item_id)
            if membership is None:
                raise NotFoundError("ChunkItem", chunk_item_id)
            chunk_id = membership.chunk_id

        async with self._locks.hold(chunk_id):
            return await self._remove_item_locked(chunk_id, chunk_item_id)

    @retry_store()
    async def _remove_item_locked(self, chunk_id: UUID, chunk_item_id: UUID) -> ChunkItem:
        async with session_scope(self._session_factory) as session:
            chunk_items = ChunkItemRepository(session)
            membership = await chunk_items.get_by_id(chunk_item_id)
            if membership is None or membership.chunk_id != chunk_id:
                raise NotFoundError("ChunkItem", chunk_item_id)

            chunk = await self._load_chunk(session, chunk_id)
            _ensure_unlocked(chunk, "quitar items")

            removed = chunk_item_to_entity(membership, with_item=False)
            await chunk_items.delete(membership)
            await InboxItemRepository(session).set_chunk([membership.inbox_item_id], None)
            await ChunkRepository(session).touch(chunk_id)

            logger.info(f"Item {membership.inbox_item_id} quitado del chunk {chunk_id}")
            return removed

    async def move_item(self, item_id: UUID, target_chunk_id: UUID) -> ChunkItem:
        """
        Mueve un item a otro chunk: primero lo desliga, luego lo agrega.

        No es atómico entre los dos chunks. Si falla entre ambos pasos el
        item queda sin chunk, nunca en dos chunks a la vez.
        """
        async with session_scope(self._session_factory) as session:
            membership = await ChunkItemRepository(session).get_by_inbox_item(item_id)
            current = membership.chunk_id if membership else None
            membership_id = membership.id if membership else None

        if current == target_chunk_id and membership_id is not None:
            return await self._existing_membership(membership_id)

        if membership_id is not None:
            await self.remove_item(membership_id)
        return await self.add_item(target_chunk_id, item_id)

    async def _existing_membership(self, chunk_item_id: UUID) -> ChunkItem:
        async with session_scope(self._session_factory) as session:
            membership = await ChunkItemRepository(session).get_by_id(chunk_item_id)
            if membership is None:
                raise NotFoundError("ChunkItem", chunk_item_id)
            return chunk_item_to_entity(membership)

    async def reorder(self, chunk_id: UUID, ordered_item_ids: list[UUID]) -> ChunkWithItems:
        """
        Reescribe el orden del chunk según la lista de items.

        La lista debe contener exactamente los items actuales del chunk,
        sin repetidos: no hay reordenamientos parciales.
        """
        if len(set(ordered_item_ids)) != len(ordered_item_ids):
            raise ValidationError("La lista de orden contiene items repetidos", field="ordered_item_ids")

        async with self._locks.hold(chunk_id):
            return await self._reorder_locked(chunk_id, ordered_item_ids)

    @retry_store()
    async def _reorder_locked(self, chunk_id: UUID, ordered_item_ids: list[UUID]) -> ChunkWithItems:
        async with session_scope(self._session_factory) as session:
            chunk = await self._load_chunk(session, chunk_id)
            _ensure_unlocked(chunk, "reordenar")

            chunk_items = ChunkItemRepository(session)
            members = await chunk_items.list_for_chunk(chunk_id)
            current = {m.inbox_item_id for m in members}
            if current != set(ordered_item_ids):
                raise ValidationError(
                    "La lista de orden no coincide con los items del chunk",
                    field="ordered_item_ids",
                    details={
                        "missing": sorted(str(i) for i in current - set(ordered_item_ids)),
                        "unknown": sorted(str(i) for i in set(ordered_item_ids) - current),
                    },
                )

            orders = {item_id: index for index, item_id in enumerate(ordered_item_ids)}
            await chunk_items.set_sort_orders(members, orders)
            await ChunkRepository(session).touch(chunk_id)
            logger.info(f"Chunk {chunk_id} reordenado ({len(orders)} items)")

            return chunk_with_items_to_entity(chunk, members)


_chunk_service: ChunkService | None = None


def get_chunk_service() -> ChunkService:
    """Obtiene el servicio de chunks (singleton)."""
    global _chunk_service
    if _chunk_service is None:
        _chunk_service = ChunkService()
    return _chunk_service
