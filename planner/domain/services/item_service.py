"""
Item Service - Captura y ciclo de vida de items del inbox.

Reglas:
- Un item resuelto (triaged) ya no se recategoriza ni se elimina.
- El triage es idempotente hacia el mismo outcome y nunca cambia de outcome.
- Eliminar un item que está en un chunk lo desliga primero, en la misma
  unidad de trabajo y bajo el lock del chunk.
"""

import logging
from contextlib import nullcontext
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from planner.config import get_settings
from planner.db.database import session_scope
from planner.db.mappers import action_to_entity, item_to_entity
from planner.db.models import InboxItemModel
from planner.db.repositories import (
    ChunkItemRepository,
    ChunkRepository,
    InboxItemRepository,
    NewAction,
    OutcomeRepository,
)
from planner.domain.entities import Action, InboxFilter, InboxItem, InboxItemType, Owner
from planner.utils.errors import (
    ConflictError,
    ConversionLockedError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
    retry_store,
)
from planner.utils.locks import KeyedLock, get_chunk_locks
from planner.utils.mappers import parse_item_type
from planner.utils.text import clean_text, truncate_text

logger = logging.getLogger(__name__)


async def apply_triage(
    repo: InboxItemRepository,
    item: InboxItemModel,
    outcome_id: UUID,
) -> bool:
    """
    Marca un item como resuelto dentro de una sesión abierta.

    Returns:
        True si hubo cambio, False si ya estaba resuelto hacia ese outcome.

    Raises:
        ConflictError: si el item ya apunta a otro outcome.
    """
    if item.triaged:
        if item.triaged_to_id == outcome_id:
            return False
        raise ConflictError(
            f"Item {item.id} ya fue resuelto hacia otro outcome",
            {"item_id": str(item.id), "triaged_to_id": str(item.triaged_to_id)},
        )
    await repo.mark_triaged(item, outcome_id)
    return True


class ItemService:
    """
    Servicio de dominio para items del inbox.

    Uso:
        service = get_item_service()
        item = await service.capture(owner, "Llamar al dentista")
        await service.recategorize(item.id, InboxItemType.ACTION_IDEA)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        locks: KeyedLock | None = None,
    ):
        self._session_factory = session_factory
        self._locks = locks or get_chunk_locks()

    # ==================== Captura ====================

    @retry_store()
    async def _insert(self, owner: Owner, content: str, item_type: InboxItemType) -> InboxItem:
        async with session_scope(self._session_factory) as session:
            item = await InboxItemRepository(session).create(owner, content, item_type)
            return item_to_entity(item)

    async def capture(
        self,
        owner: Owner,
        content: str,
        item_type: InboxItemType | str = InboxItemType.NOTE,
    ) -> InboxItem:
        """
        Captura una nota nueva, sin triage y fuera de cualquier chunk.

        Si el store falla, el texto escrito viaja en los detalles del
        error para que la UI no lo pierda.
        """
        cleaned = clean_text(content)
        if not cleaned:
            raise ValidationError("El contenido no puede estar vacío", field="content")

        try:
            return await self._insert(owner, cleaned, parse_item_type(item_type))
        except TransientStoreError as e:
            e.details["content"] = content
            raise

    # ==================== Consultas ====================

    async def get(self, item_id: UUID) -> InboxItem:
        """Obtiene un item por ID."""
        async with session_scope(self._session_factory) as session:
            item = await InboxItemRepository(session).get_by_id(item_id)
            if item is None:
                raise NotFoundError("InboxItem", item_id)
            return item_to_entity(item)

    async def list_untriaged(self, filter: InboxFilter) -> list[InboxItem]:
        """Lista items pendientes de triage según filtros."""
        async with session_scope(self._session_factory) as session:
            items = await InboxItemRepository(session).list_untriaged(filter)
            logger.debug(f"{len(items)} items sin triage ({filter.to_dict()})")
            return [item_to_entity(i) for i in items]

    # ==================== Mutaciones ====================

    @retry_store()
    async def recategorize(self, item_id: UUID, new_type: InboxItemType | str) -> InboxItem:
        """
        Cambia el tipo del item.

        Solo mientras no esté resuelto. Un item dentro de un chunk debe
        desligarse primero: no se mueve a otra categoría en silencio.
        """
        item_type = parse_item_type(new_type)
        async with session_scope(self._session_factory) as session:
            repo = InboxItemRepository(session)
            item = await repo.get_by_id(item_id, for_update=True)
            if item is None:
                raise NotFoundError("InboxItem", item_id)
            if item.triaged:
                raise ConflictError(
                    f"Item {item_id} ya fue resuelto, no se puede recategorizar",
                    {"item_id": str(item_id)},
                )
            if item.chunk_id is not None:
                raise ConflictError(
                    f"Item {item_id} pertenece al chunk {item.chunk_id}, quitarlo primero",
                    {"item_id": str(item_id), "chunk_id": str(item.chunk_id)},
                )
            await repo.set_item_type(item, item_type)
            logger.info(f"Item {item_id} recategorizado a {item_type.value}")
            return item_to_entity(item)

    @retry_store()
    async def delete(self, item_id: UUID) -> None:
        """Elimina un item sin triage, desligándolo de su chunk si hace falta."""
        chunk_id = (await self.get(item_id)).chunk_id

        async with self._locks.hold(chunk_id) if chunk_id else nullcontext():
            async with session_scope(self._session_factory) as session:
                repo = InboxItemRepository(session)
                item = await repo.get_by_id(item_id, for_update=True)
                if item is None:
                    raise NotFoundError("InboxItem", item_id)
                if item.chunk_id != chunk_id:
                    # La membresía cambió entre la lectura y el lock
                    raise TransientStoreError(f"Membresía del item {item_id} cambió, reintentando")
                if item.triaged:
                    raise ConflictError(
                        f"Item {item_id} ya fue resuelto, no se puede eliminar",
                        {"item_id": str(item_id)},
                    )

                if chunk_id is not None:
                    chunks = ChunkRepository(session)
                    chunk = await chunks.get_by_id(chunk_id, for_update=True)
                    if chunk is not None and (chunk.conversion_token or chunk.converted_to_id):
                        raise ConversionLockedError(chunk_id, "eliminar items")
                    chunk_items = ChunkItemRepository(session)
                    membership = await chunk_items.get_by_inbox_item(item_id)
                    if membership is not None:
                        await chunk_items.delete(membership)
                    await chunks.touch(chunk_id)
                    logger.info(f"Item {item_id} desligado del chunk {chunk_id} antes de eliminar")

                await repo.delete(item)

    @retry_store()
    async def mark_triaged(self, item_id: UUID, outcome_id: UUID) -> InboxItem:
        """
        Marca un item como resuelto hacia un outcome.

        Idempotente si ya apunta al mismo outcome; ConflictError si apunta a otro.
        """
        async with session_scope(self._session_factory) as session:
            repo = InboxItemRepository(session)
            item = await repo.get_by_id(item_id, for_update=True)
            if item is None:
                raise NotFoundError("InboxItem", item_id)
            if item.chunk_id is not None and not item.triaged:
                raise ConflictError(
                    f"Item {item_id} pertenece al chunk {item.chunk_id}, convertir el chunk",
                    {"item_id": str(item_id), "chunk_id": str(item.chunk_id)},
                )
            if await apply_triage(repo, item, outcome_id):
                logger.info(f"Item {item_id} resuelto hacia outcome {outcome_id}")
            return item_to_entity(item)

    @retry_store()
    async def triage_to_outcome(self, item_id: UUID, outcome_id: UUID) -> Action:
        """
        Convierte un item suelto en una acción de un outcome existente.

        El item no puede estar en un chunk: los chunks se resuelven solo
        mediante conversión.
        """
        settings = get_settings()
        async with session_scope(self._session_factory) as session:
            repo = InboxItemRepository(session)
            outcomes = OutcomeRepository(session)

            item = await repo.get_by_id(item_id, for_update=True)
            if item is None:
                raise NotFoundError("InboxItem", item_id)
            if item.chunk_id is not None:
                raise ConflictError(
                    f"Item {item_id} pertenece al chunk {item.chunk_id}, convertir el chunk",
                    {"item_id": str(item_id), "chunk_id": str(item.chunk_id)},
                )
            if item.triaged:
                raise ConflictError(
                    f"Item {item_id} ya fue resuelto",
                    {"item_id": str(item_id), "triaged_to_id": str(item.triaged_to_id)},
                )

            outcome = await outcomes.get_by_id(outcome_id)
            if outcome is None:
                raise NotFoundError("Outcome", outcome_id)

            position = await outcomes.count_actions(outcome_id)
            [action] = await outcomes.create_actions(
                outcome_id,
                [
                    NewAction(
                        title=item.content,
                        sort_order=position,
                        priority=settings.default_action_priority,
                        duration_minutes=settings.default_action_duration_minutes,
                        user_id=item.user_id,
                    )
                ],
            )
            await apply_triage(repo, item, outcome_id)
            logger.info(
                f"Item '{truncate_text(item.content)}' convertido en acción de {outcome_id}"
            )
            return action_to_entity(action)


_item_service: ItemService | None = None


def get_item_service() -> ItemService:
    """Obtiene el servicio de items (singleton)."""
    global _item_service
    if _item_service is None:
        _item_service = ItemService()
    return _item_service
