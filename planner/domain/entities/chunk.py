"""
Chunk Entity - Agrupación ordenada de items candidata a outcome.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from planner.domain.entities.inbox import InboxItem
from planner.domain.entities.owner import Owner


class ChunkStatus(str, Enum):
    """Estado del chunk."""
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class ConvertedToType(str, Enum):
    """Tipo de entidad en la que se convirtió el chunk."""
    OUTCOME = "OUTCOME"


@dataclass
class ChunkItem:
    """Membresía de un item en un chunk, con su posición."""

    id: UUID
    chunk_id: UUID
    inbox_item_id: UUID
    sort_order: int
    inbox_item: InboxItem | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "chunk_id": str(self.chunk_id),
            "inbox_item_id": str(self.inbox_item_id),
            "sort_order": self.sort_order,
            "inbox_item": self.inbox_item.to_dict() if self.inbox_item else None,
        }


@dataclass
class Chunk:
    """
    Entidad de Chunk.

    `converted_to_type`, `converted_to_id` y `converted_at` se asignan
    juntos o ninguno. `conversion_token` marca una conversión en curso.
    """

    id: UUID
    owner: Owner
    name: str
    color: str = "#6366F1"
    description: str | None = None
    status: ChunkStatus = ChunkStatus.ACTIVE
    converted_to_type: ConvertedToType | None = None
    converted_to_id: UUID | None = None
    converted_at: datetime | None = None
    conversion_token: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_converted(self) -> bool:
        return self.converted_to_id is not None

    @property
    def is_locked(self) -> bool:
        """Convertido o con una conversión en curso."""
        return self.is_converted or self.conversion_token is not None

    @property
    def is_archived(self) -> bool:
        return self.status == ChunkStatus.ARCHIVED

    def to_dict(self) -> dict[str, Any]:
        """Convierte a diccionario para serialización."""
        return {
            "id": str(self.id),
            "user_id": str(self.owner.user_id),
            "organization_id": str(self.owner.organization_id),
            "name": self.name,
            "color": self.color,
            "description": self.description,
            "status": self.status.value,
            "converted_to_type": self.converted_to_type.value if self.converted_to_type else None,
            "converted_to_id": str(self.converted_to_id) if self.converted_to_id else None,
            "converted_at": self.converted_at.isoformat() if self.converted_at else None,
            "converting": self.conversion_token is not None and not self.is_converted,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ChunkWithItems(Chunk):
    """Chunk con sus items ordenados por sort_order."""

    items: list[ChunkItem] = field(default_factory=list)

    @property
    def item_ids(self) -> list[UUID]:
        return [ci.inbox_item_id for ci in self.items]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["items"] = [ci.to_dict() for ci in self.items]
        return data
