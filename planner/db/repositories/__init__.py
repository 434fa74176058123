"""Repositories para acceso a datos."""

from planner.db.repositories.chunks import ChunkItemRepository, ChunkRepository
from planner.db.repositories.conversions import ConversionRepository
from planner.db.repositories.inbox_items import InboxItemRepository
from planner.db.repositories.outcomes import NewAction, OutcomeRepository
from planner.db.repositories.preferences import PreferenceRepository

__all__ = [
    "ChunkItemRepository",
    "ChunkRepository",
    "ConversionRepository",
    "InboxItemRepository",
    "NewAction",
    "OutcomeRepository",
    "PreferenceRepository",
]
