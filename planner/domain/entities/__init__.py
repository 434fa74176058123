"""Domain Entities - Dataclasses del dominio."""

from planner.domain.entities.owner import Owner
from planner.domain.entities.inbox import InboxFilter, InboxItem, InboxItemType
from planner.domain.entities.chunk import (
    Chunk,
    ChunkItem,
    ChunkStatus,
    ChunkWithItems,
    ConvertedToType,
)
from planner.domain.entities.outcome import Action, Outcome, OutcomeStatus
from planner.domain.entities.preference import PostConversionAction, UserPreference
from planner.domain.entities.conversion import (
    ConversionRequest,
    ConversionResult,
    ConversionState,
    ConversionStep,
)
from planner.domain.entities.suggestion import ChunkSuggestion, ChunkSuggestions

__all__ = [
    "Owner",
    "InboxItem",
    "InboxItemType",
    "InboxFilter",
    "Chunk",
    "ChunkItem",
    "ChunkStatus",
    "ChunkWithItems",
    "ConvertedToType",
    "Outcome",
    "OutcomeStatus",
    "Action",
    "UserPreference",
    "PostConversionAction",
    "ConversionRequest",
    "ConversionResult",
    "ConversionState",
    "ConversionStep",
    "ChunkSuggestion",
    "ChunkSuggestions",
]
