"""Conversión de modelos ORM a entidades del dominio."""

from planner.db.models import (
    ActionModel,
    ChunkConversionModel,
    ChunkItemModel,
    ChunkModel,
    InboxItemModel,
    OutcomeModel,
    UserPreferenceModel,
)
from planner.domain.entities import (
    Action,
    ChunkItem,
    ChunkStatus,
    ChunkWithItems,
    ConversionRequest,
    ConversionState,
    ConversionStep,
    ConvertedToType,
    InboxItem,
    InboxItemType,
    Outcome,
    OutcomeStatus,
    Owner,
    PostConversionAction,
    UserPreference,
)


def item_to_entity(model: InboxItemModel) -> InboxItem:
    return InboxItem(
        id=model.id,
        owner=Owner(model.user_id, model.organization_id),
        content=model.content,
        item_type=InboxItemType(model.item_type),
        chunk_id=model.chunk_id,
        triaged=model.triaged,
        triaged_to_id=model.triaged_to_id,
        created_at=model.created_at,
    )


def chunk_item_to_entity(model: ChunkItemModel, with_item: bool = True) -> ChunkItem:
    return ChunkItem(
        id=model.id,
        chunk_id=model.chunk_id,
        inbox_item_id=model.inbox_item_id,
        sort_order=model.sort_order,
        inbox_item=item_to_entity(model.inbox_item) if with_item and model.inbox_item else None,
        created_at=model.created_at,
    )


def _chunk_fields(model: ChunkModel) -> dict:
    return {
        "id": model.id,
        "owner": Owner(model.user_id, model.organization_id),
        "name": model.name,
        "color": model.color,
        "description": model.description,
        "status": ChunkStatus(model.status),
        "converted_to_type": (
            ConvertedToType(model.converted_to_type) if model.converted_to_type else None
        ),
        "converted_to_id": model.converted_to_id,
        "converted_at": model.converted_at,
        "conversion_token": model.conversion_token,
        "created_at": model.created_at,
        "updated_at": model.updated_at,
    }


def chunk_with_items_to_entity(
    model: ChunkModel, items: list[ChunkItemModel]
) -> ChunkWithItems:
    ordered = sorted(items, key=lambda ci: ci.sort_order)
    return ChunkWithItems(
        **_chunk_fields(model),
        items=[chunk_item_to_entity(ci) for ci in ordered],
    )


def outcome_to_entity(model: OutcomeModel) -> Outcome:
    return Outcome(
        id=model.id,
        owner=Owner(model.user_id, model.organization_id),
        title=model.title,
        purpose=model.purpose,
        description=model.description,
        area_id=model.area_id,
        goal_id=model.goal_id,
        status=OutcomeStatus(model.status),
        source_chunk_id=model.source_chunk_id,
        created_at=model.created_at,
    )


def action_to_entity(model: ActionModel) -> Action:
    return Action(
        id=model.id,
        outcome_id=model.outcome_id,
        title=model.title,
        sort_order=model.sort_order,
        priority=model.priority,
        duration_minutes=model.duration_minutes,
        done=model.done,
        is_must=model.is_must,
        notes=model.notes,
        user_id=model.user_id,
        source_chunk_item_id=model.source_chunk_item_id,
        created_at=model.created_at,
    )


def preference_to_entity(model: UserPreferenceModel) -> UserPreference:
    return UserPreference(
        owner=Owner(model.user_id, model.organization_id),
        auto_create_actions_from_chunks=model.auto_create_actions_from_chunks,
        default_post_conversion_action=PostConversionAction(model.default_post_conversion_action),
    )


def conversion_to_entity(model: ChunkConversionModel) -> ConversionState:
    return ConversionState(
        token=model.token,
        chunk_id=model.chunk_id,
        step=ConversionStep(model.step),
        request=ConversionRequest.from_dict(model.request),
        outcome_id=model.outcome_id,
        actions_created=model.actions_created,
        last_error=model.last_error,
        started_at=model.started_at,
        updated_at=model.updated_at,
        completed_at=model.completed_at,
    )
