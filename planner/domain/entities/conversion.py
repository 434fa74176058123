"""
Conversion Entities - Petición, resultado y cursor de la saga chunk -> outcome.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from planner.domain.entities.preference import PostConversionAction


class ConversionStep(str, Enum):
    """
    Cursor persistido de la saga.

    El orden de declaración es el orden de ejecución. Una vez alcanzado
    OUTCOME_CREATED ese paso nunca se repite ni se deshace.
    """
    PENDING = "PENDING"
    OUTCOME_CREATED = "OUTCOME_CREATED"
    ACTIONS_CREATED = "ACTIONS_CREATED"
    CHUNK_UPDATED = "CHUNK_UPDATED"
    ITEMS_TRIAGED = "ITEMS_TRIAGED"
    DONE = "DONE"

    @property
    def index(self) -> int:
        return list(ConversionStep).index(self)

    def reached(self, other: "ConversionStep") -> bool:
        """True si este cursor ya completó `other`."""
        return self.index >= other.index


@dataclass
class ConversionRequest:
    """
    Datos del outcome a crear.

    `auto_create_actions` y `post_conversion_action` en None toman el
    valor de las preferencias del usuario. `token` permite reintentar
    la misma conversión de forma idempotente.
    """

    title: str
    purpose: str
    area_id: UUID | None
    description: str | None = None
    goal_id: UUID | None = None
    archive_after: bool = True
    auto_create_actions: bool | None = None
    post_conversion_action: PostConversionAction | None = None
    remember_settings: bool = False
    token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serializa para persistir junto al cursor de la saga."""
        return {
            "title": self.title,
            "purpose": self.purpose,
            "area_id": str(self.area_id) if self.area_id else None,
            "description": self.description,
            "goal_id": str(self.goal_id) if self.goal_id else None,
            "archive_after": self.archive_after,
            "auto_create_actions": self.auto_create_actions,
            "post_conversion_action": (
                self.post_conversion_action.value if self.post_conversion_action else None
            ),
            "remember_settings": self.remember_settings,
            "token": self.token,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversionRequest":
        post_action = data.get("post_conversion_action")
        return cls(
            title=data["title"],
            purpose=data["purpose"],
            area_id=UUID(data["area_id"]) if data.get("area_id") else None,
            description=data.get("description"),
            goal_id=UUID(data["goal_id"]) if data.get("goal_id") else None,
            archive_after=data.get("archive_after", True),
            auto_create_actions=data.get("auto_create_actions"),
            post_conversion_action=PostConversionAction(post_action) if post_action else None,
            remember_settings=data.get("remember_settings", False),
            token=data.get("token"),
        )


@dataclass
class ConversionState:
    """Fila de la saga: dónde quedó una conversión."""

    token: str
    chunk_id: UUID
    step: ConversionStep
    request: ConversionRequest
    outcome_id: UUID | None = None
    actions_created: int = 0
    last_error: str | None = None
    started_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_done(self) -> bool:
        return self.step == ConversionStep.DONE


@dataclass
class ConversionResult:
    """Resultado de convertir un chunk."""

    outcome_id: UUID
    navigate: bool = False
    actions_created: int = 0
    replayed: bool = False
    token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome_id": str(self.outcome_id),
            "navigate": self.navigate,
            "actions_created": self.actions_created,
            "replayed": self.replayed,
            "token": self.token,
        }
