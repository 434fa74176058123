"""
Mappers centralizados - Parseo de strings externos a enums del dominio.
"""

from planner.domain.entities import InboxItemType, PostConversionAction
from planner.utils.errors import ValidationError


# =============================================================================
# ITEM TYPE MAPPERS
# =============================================================================

ITEM_TYPE_STR_TO_ENUM: dict[str, InboxItemType] = {
    "note": InboxItemType.NOTE,
    "action": InboxItemType.ACTION_IDEA,
    "action_idea": InboxItemType.ACTION_IDEA,
    "outcome": InboxItemType.OUTCOME_IDEA,
    "outcome_idea": InboxItemType.OUTCOME_IDEA,
}

ITEM_TYPE_DISPLAY: dict[InboxItemType, str] = {
    InboxItemType.NOTE: "Note",
    InboxItemType.ACTION_IDEA: "Action",
    InboxItemType.OUTCOME_IDEA: "Outcome",
}


def parse_item_type(value: str | InboxItemType | None) -> InboxItemType:
    """Parsea string de tipo de item a enum. Falla con ValidationError si no se reconoce."""
    if isinstance(value, InboxItemType):
        return value
    if not value:
        raise ValidationError("Tipo de item requerido", field="item_type")
    item_type = ITEM_TYPE_STR_TO_ENUM.get(value.strip().lower())
    if item_type is None:
        raise ValidationError(f"Tipo de item desconocido: {value}", field="item_type")
    return item_type


def item_type_to_display(item_type: InboxItemType | None) -> str:
    """Convierte el tipo de item a texto para mostrar."""
    if not item_type:
        return "Note"
    return ITEM_TYPE_DISPLAY.get(item_type, "Note")


# =============================================================================
# POST-CONVERSION MAPPERS
# =============================================================================

POST_CONVERSION_STR_TO_ENUM: dict[str, PostConversionAction] = {
    "stay": PostConversionAction.STAY,
    "navigate": PostConversionAction.NAVIGATE,
}


def parse_post_conversion_action(
    value: str | PostConversionAction | None,
    default: PostConversionAction | None = None,
) -> PostConversionAction | None:
    """Parsea la acción post-conversión. Valores desconocidos usan el default."""
    if isinstance(value, PostConversionAction):
        return value
    if not value:
        return default
    return POST_CONVERSION_STR_TO_ENUM.get(value.strip().lower(), default)

