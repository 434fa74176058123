"""
Outcome y Action - Entidades del subsistema externo de outcomes.

Aquí solo se modela lo que la conversión necesita crear y referenciar.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from planner.domain.entities.owner import Owner


class OutcomeStatus(str, Enum):
    """Estados de outcome."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


@dataclass
class Outcome:
    """Resultado formal con propósito."""

    id: UUID
    owner: Owner
    title: str
    purpose: str
    description: str | None = None
    area_id: UUID | None = None
    goal_id: UUID | None = None
    status: OutcomeStatus = OutcomeStatus.ACTIVE
    source_chunk_id: UUID | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "purpose": self.purpose,
            "description": self.description,
            "area_id": str(self.area_id) if self.area_id else None,
            "goal_id": str(self.goal_id) if self.goal_id else None,
            "status": self.status.value,
            "source_chunk_id": str(self.source_chunk_id) if self.source_chunk_id else None,
        }


@dataclass
class Action:
    """Acción concreta de un outcome."""

    id: UUID
    outcome_id: UUID
    title: str
    sort_order: int = 0
    priority: int = 2  # 1 alta, 2 normal, 3 baja
    duration_minutes: int = 30
    done: bool = False
    is_must: bool = False
    notes: str | None = None
    user_id: UUID | None = None
    source_chunk_item_id: UUID | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "outcome_id": str(self.outcome_id),
            "title": self.title,
            "sort_order": self.sort_order,
            "priority": self.priority,
            "duration_minutes": self.duration_minutes,
            "done": self.done,
            "is_must": self.is_must,
            "source_chunk_item_id": (
                str(self.source_chunk_item_id) if self.source_chunk_item_id else None
            ),
        }
