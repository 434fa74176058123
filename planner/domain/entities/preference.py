"""UserPreference Entity - Defaults recordados para la conversión."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from planner.domain.entities.owner import Owner


class PostConversionAction(str, Enum):
    """Qué hacer tras convertir un chunk."""
    STAY = "STAY"
    NAVIGATE = "NAVIGATE"


@dataclass
class UserPreference:
    """Preferencias de conversión de un usuario dentro de una organización."""

    owner: Owner
    auto_create_actions_from_chunks: bool = False
    default_post_conversion_action: PostConversionAction = PostConversionAction.STAY

    def to_dict(self) -> dict[str, Any]:
        return {
            "auto_create_actions_from_chunks": self.auto_create_actions_from_chunks,
            "default_post_conversion_action": self.default_post_conversion_action.value,
        }
