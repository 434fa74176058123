"""
Inbox Entity - Notas capturadas pendientes de triage.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from planner.domain.entities.owner import Owner


class InboxItemType(str, Enum):
    """Categoría del item."""
    NOTE = "NOTE"
    ACTION_IDEA = "ACTION_IDEA"
    OUTCOME_IDEA = "OUTCOME_IDEA"


@dataclass
class InboxItem:
    """
    Entidad de Inbox.

    Representa una nota capturada. `triaged` es monótono: una vez
    resuelto el item queda apuntando a su outcome para siempre.
    `chunk_id` refleja la membresía en chunk_items.
    """

    id: UUID
    owner: Owner
    content: str
    item_type: InboxItemType = InboxItemType.NOTE
    chunk_id: UUID | None = None
    triaged: bool = False
    triaged_to_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def is_chunked(self) -> bool:
        return self.chunk_id is not None

    def to_dict(self) -> dict[str, Any]:
        """Convierte a diccionario."""
        return {
            "id": str(self.id),
            "user_id": str(self.owner.user_id),
            "organization_id": str(self.owner.organization_id),
            "content": self.content,
            "item_type": self.item_type.value,
            "chunk_id": str(self.chunk_id) if self.chunk_id else None,
            "triaged": self.triaged,
            "triaged_to_id": str(self.triaged_to_id) if self.triaged_to_id else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class InboxFilter:
    """Filtros para listar items sin triage."""

    owner: Owner
    item_type: InboxItemType | None = None
    unchunked_only: bool = False
    search_text: str | None = None
    limit: int = 100
    offset: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convierte a dict para logging/debugging."""
        return {
            k: v for k, v in {
                "item_type": self.item_type,
                "unchunked_only": self.unchunked_only,
                "search_text": self.search_text,
                "limit": self.limit,
            }.items() if v is not None
        }
