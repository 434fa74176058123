"""ChunkSuggester Agent - Propone agrupaciones de items del inbox."""

import asyncio
import json
import re
from typing import Any

import dspy

from planner.agents.base import BaseAgent
from planner.domain.entities import ChunkSuggestion, ChunkSuggestions, InboxItem
from planner.utils.errors import OracleUnavailableError, retry_oracle
from planner.utils.mappers import item_type_to_display
from planner.utils.text import truncate_text


class SuggestChunks(dspy.Signature):
    """
    Agrupa items del inbox en chunks por tema, proyecto o área de vida,
    y recomienda cuáles deberían convertirse en outcomes.
    """

    items: str = dspy.InputField(
        desc="Items numerados desde 0, uno por línea: 'índice. contenido (tipo)'"
    )

    suggestions_json: str = dspy.OutputField(
        desc=(
            "Solo JSON: {\"suggested_chunks\": [{\"name\", \"description\", "
            "\"item_indices\": [int], \"should_convert\": bool, \"reasoning\", "
            "\"suggested_outcome_title\", \"suggested_purpose\"}], "
            "\"ungrouped_items\": [int], \"overall_advice\": str}"
        )
    )


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class ChunkSuggesterAgent(BaseAgent):
    """Agent que sugiere chunks para un conjunto de items."""

    name = "ChunkSuggester"

    def __init__(self):
        super().__init__()
        self.suggester = dspy.ChainOfThought(SuggestChunks)

    @retry_oracle()
    async def execute(self, items: list[InboxItem]) -> ChunkSuggestions:
        """
        Pide agrupaciones al LLM.

        Args:
            items: Items a agrupar; los índices de la respuesta refieren
                a su posición en esta lista

        Returns:
            ChunkSuggestions sin sanitizar

        Raises:
            OracleUnavailableError: si el LLM falla o la respuesta no es JSON válido
        """
        self.logger.info(f"Sugiriendo chunks para {len(items)} items")

        try:
            prediction = await asyncio.to_thread(
                self.suggester, items=self._format_items(items)
            )
        except (ConnectionError, TimeoutError):
            raise
        except Exception as e:
            raise OracleUnavailableError(f"Error consultando el oráculo: {e}") from e

        return self._parse(prediction.suggestions_json)

    def _format_items(self, items: list[InboxItem]) -> str:
        return "\n".join(
            f"{i}. {truncate_text(item.content, 300)} ({item_type_to_display(item.item_type)})"
            for i, item in enumerate(items)
        )

    def _parse(self, raw: str) -> ChunkSuggestions:
        """Parsea la respuesta JSON del LLM, tolerando bloques ```json."""
        text = _FENCE_RE.sub("", (raw or "").strip())
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            self.logger.warning(f"Respuesta no parseable: {truncate_text(text, 200)}")
            raise OracleUnavailableError("El oráculo devolvió una respuesta inválida") from e

        if not isinstance(data, dict):
            raise OracleUnavailableError("El oráculo devolvió una respuesta inválida")

        chunks = [
            self._parse_chunk(c)
            for c in data.get("suggested_chunks") or []
            if isinstance(c, dict)
        ]
        return ChunkSuggestions(
            suggested_chunks=chunks,
            ungrouped_items=self._parse_indices(data.get("ungrouped_items")),
            overall_advice=str(data.get("overall_advice") or ""),
        )

    def _parse_chunk(self, data: dict[str, Any]) -> ChunkSuggestion:
        return ChunkSuggestion(
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            item_indices=self._parse_indices(data.get("item_indices")),
            should_convert=str(data.get("should_convert", False)).lower() == "true",
            reasoning=str(data.get("reasoning") or ""),
            suggested_outcome_title=data.get("suggested_outcome_title") or None,
            suggested_purpose=data.get("suggested_purpose") or None,
        )

    def _parse_indices(self, value: Any) -> list[int]:
        """Convierte a enteros lo que se pueda; descarta el resto."""
        if not isinstance(value, list):
            return []
        indices = []
        for v in value:
            try:
                indices.append(int(v))
            except (TypeError, ValueError):
                continue
        return indices
