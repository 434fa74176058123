"""Sugerencias de agrupación - Salida consultiva del oráculo."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ChunkSuggestion:
    """Agrupación propuesta por el oráculo. Solo consultiva."""

    name: str
    item_indices: list[int] = field(default_factory=list)
    description: str = ""
    should_convert: bool = False
    reasoning: str = ""
    suggested_outcome_title: str | None = None
    suggested_purpose: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "item_indices": self.item_indices,
            "should_convert": self.should_convert,
            "reasoning": self.reasoning,
            "suggested_outcome_title": self.suggested_outcome_title,
            "suggested_purpose": self.suggested_purpose,
        }


@dataclass
class ChunkSuggestions:
    """Respuesta completa del oráculo (o su ausencia)."""

    suggested_chunks: list[ChunkSuggestion] = field(default_factory=list)
    ungrouped_items: list[int] = field(default_factory=list)
    overall_advice: str = ""
    available: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "suggested_chunks": [s.to_dict() for s in self.suggested_chunks],
            "ungrouped_items": self.ungrouped_items,
            "overall_advice": self.overall_advice,
            "available": self.available,
        }
