"""Domain Services - Lógica de negocio sobre el store."""

from planner.domain.services.item_service import ItemService, apply_triage, get_item_service
from planner.domain.services.chunk_service import ChunkService, get_chunk_service
from planner.domain.services.conversion_service import (
    ConversionService,
    get_conversion_service,
)
from planner.domain.services.preference_service import (
    PreferenceService,
    get_preference_service,
)
from planner.domain.services.suggestion_service import (
    SuggestionService,
    get_suggestion_service,
    sanitize_suggestions,
)

__all__ = [
    "ItemService",
    "get_item_service",
    "apply_triage",
    "ChunkService",
    "get_chunk_service",
    "ConversionService",
    "get_conversion_service",
    "PreferenceService",
    "get_preference_service",
    "SuggestionService",
    "get_suggestion_service",
    "sanitize_suggestions",
]
