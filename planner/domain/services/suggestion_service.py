"""
Suggestion Service - Consume las agrupaciones propuestas por el oráculo.

El oráculo es solo consultivo: nada de lo que devuelve muta el store.
`apply_suggestion` corre únicamente cuando el usuario confirma, y pasa
por las mismas entradas manuales de ChunkService (create / add_item).
"""

import asyncio
import logging
from dataclasses import replace
from uuid import UUID

from planner.config import get_settings
from planner.domain.entities import (
    ChunkSuggestion,
    ChunkSuggestions,
    ChunkWithItems,
    InboxFilter,
    InboxItem,
    Owner,
)
from planner.domain.services.chunk_service import ChunkService, get_chunk_service
from planner.domain.services.item_service import ItemService, get_item_service
from planner.utils.errors import (
    BusinessRuleViolation,
    ConflictError,
    ErrorCategory,
    NotFoundError,
    ValidationError,
    log_error,
)
from planner.utils.text import clean_text

logger = logging.getLogger(__name__)

UNAVAILABLE_ADVICE = "Sugerencias no disponibles por ahora. Agrupa los items manualmente."


def sanitize_suggestions(suggestions: ChunkSuggestions, item_count: int) -> ChunkSuggestions:
    """
    Limpia índices de la respuesta del oráculo.

    Descarta índices fuera de rango; un índice reclamado por dos grupos
    se queda solo en el primero. Los grupos vacíos se eliminan y todo lo
    no agrupado termina en `ungrouped_items`.
    """
    claimed: set[int] = set()
    chunks: list[ChunkSuggestion] = []

    for suggestion in suggestions.suggested_chunks:
        indices = []
        for index in suggestion.item_indices:
            if 0 <= index < item_count and index not in claimed:
                claimed.add(index)
                indices.append(index)
        if not indices:
            continue
        name = clean_text(suggestion.name) or f"Chunk {len(chunks) + 1}"
        chunks.append(replace(suggestion, name=name, item_indices=indices))

    return ChunkSuggestions(
        suggested_chunks=chunks,
        ungrouped_items=[i for i in range(item_count) if i not in claimed],
        overall_advice=suggestions.overall_advice,
        available=suggestions.available,
    )


class SuggestionService:
    """
    Servicio de sugerencias de agrupación.

    Uso:
        service = get_suggestion_service()
        items, suggestions = await service.suggest_for_owner(owner)
        chunk, skipped = await service.apply_suggestion(
            owner, suggestions.suggested_chunks[0], items
        )
    """

    def __init__(
        self,
        chunk_service: ChunkService | None = None,
        item_service: ItemService | None = None,
        agent=None,
    ):
        self._chunk_service = chunk_service or get_chunk_service()
        self._item_service = item_service or get_item_service()
        self._agent = agent

    def _get_agent(self):
        if self._agent is None:
            from planner.agents.chunk_suggester import ChunkSuggesterAgent

            self._agent = ChunkSuggesterAgent()
        return self._agent

    async def suggest_chunks(self, items: list[InboxItem]) -> ChunkSuggestions:
        """
        Pide agrupaciones al oráculo para `items` (índices 0-based).

        Si el oráculo falla o tarda más que `suggestion_timeout_seconds`
        devuelve un resultado `available=False` con todo sin agrupar.
        """
        settings = get_settings()
        if len(items) < settings.suggestion_min_items:
            raise ValidationError(
                f"Se necesitan al menos {settings.suggestion_min_items} items para sugerir chunks",
                field="items",
            )

        try:
            suggestions, metrics = await asyncio.wait_for(
                self._get_agent().execute_with_metrics(items),
                timeout=settings.suggestion_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Oráculo sin respuesta tras {settings.suggestion_timeout_seconds}s, "
                "se continúa sin sugerencias"
            )
            return self._unavailable(len(items))
        except Exception as e:
            log_error(e, "suggest_chunks", ErrorCategory.ORACLE, {"items": len(items)})
            return self._unavailable(len(items))

        logger.info(
            f"Oráculo sugirió {len(suggestions.suggested_chunks)} chunks "
            f"en {metrics['execution_time_ms']}ms"
        )
        return sanitize_suggestions(suggestions, len(items))

    async def suggest_for_owner(
        self,
        owner: Owner,
        limit: int = 50,
    ) -> tuple[list[InboxItem], ChunkSuggestions]:
        """Sugiere agrupaciones para los items sueltos (sin triage ni chunk) del usuario."""
        items = await self._item_service.list_untriaged(
            InboxFilter(owner=owner, unchunked_only=True, limit=limit)
        )
        return items, await self.suggest_chunks(items)

    async def apply_suggestion(
        self,
        owner: Owner,
        suggestion: ChunkSuggestion,
        items: list[InboxItem],
        color: str | None = None,
    ) -> tuple[ChunkWithItems, list[UUID]]:
        """
        Crea el chunk sugerido con los items que sigan disponibles.

        Los items que ya están en otro chunk, fueron resueltos o ya no
        existen se reportan como omitidos, nunca se reasignan. Nunca
        convierte, aunque `should_convert` sea True.

        Returns:
            (chunk creado, ids de items omitidos)
        """
        candidates = [items[i] for i in suggestion.item_indices if 0 <= i < len(items)]
        chunk = await self._chunk_service.create(
            owner,
            suggestion.name,
            color=color,
            description=suggestion.description or None,
        )

        skipped: list[UUID] = []
        for item in candidates:
            try:
                await self._chunk_service.add_item(chunk.id, item.id)
            except (ConflictError, BusinessRuleViolation, NotFoundError) as e:
                logger.info(f"Item {item.id} omitido al aplicar sugerencia: {e.message}")
                skipped.append(item.id)

        logger.info(
            f"Sugerencia '{suggestion.name}' aplicada: chunk {chunk.id}, "
            f"{len(candidates) - len(skipped)} items, {len(skipped)} omitidos"
        )
        return await self._chunk_service.get(chunk.id), skipped

    @staticmethod
    def _unavailable(item_count: int) -> ChunkSuggestions:
        return ChunkSuggestions(
            suggested_chunks=[],
            ungrouped_items=list(range(item_count)),
            overall_advice=UNAVAILABLE_ADVICE,
            available=False,
        )


_suggestion_service: SuggestionService | None = None


def get_suggestion_service() -> SuggestionService:
    """Obtiene el servicio de sugerencias (singleton)."""
    global _suggestion_service
    if _suggestion_service is None:
        _suggestion_service = SuggestionService()
    return _suggestion_service
