"""
Inbox API endpoints.

Operaciones expuestas a la capa de presentación:
- Captura, listado, recategorización, eliminación y triage de items
- Chunks: crear, editar, membresía, orden, archivo, conversión
- Preferencias de conversión
- Sugerencias del oráculo (consultar y aplicar con confirmación)

El dueño llega en los headers X-User-Id / X-Organization-Id; la
autenticación se resuelve antes de llegar aquí.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Response
from pydantic import BaseModel, Field

from planner.domain.entities import (
    ChunkSuggestion,
    ConversionRequest,
    InboxFilter,
    Owner,
)
from planner.domain.services import (
    ChunkService,
    ConversionService,
    ItemService,
    PreferenceService,
    SuggestionService,
    get_chunk_service,
    get_conversion_service,
    get_item_service,
    get_preference_service,
    get_suggestion_service,
)
from planner.utils.errors import NotFoundError
from planner.utils.mappers import parse_item_type, parse_post_conversion_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inbox", tags=["inbox"])


def get_owner(
    x_user_id: UUID = Header(...),
    x_organization_id: UUID = Header(...),
) -> Owner:
    """Dueño de la petición tomado de los headers."""
    return Owner(user_id=x_user_id, organization_id=x_organization_id)


# ==================== MODELOS ====================


class CaptureRequest(BaseModel):
    """Nota nueva."""
    content: str
    item_type: str = "note"


class RecategorizeRequest(BaseModel):
    item_type: str


class TriageRequest(BaseModel):
    outcome_id: UUID


class ChunkCreateRequest(BaseModel):
    """Chunk nuevo, opcionalmente con items."""
    name: str
    color: str | None = None
    description: str | None = None
    item_ids: list[UUID] = Field(default_factory=list)


class ChunkUpdateRequest(BaseModel):
    name: str | None = None
    color: str | None = None
    description: str | None = None


class AddItemRequest(BaseModel):
    item_id: UUID


class MoveItemRequest(BaseModel):
    chunk_id: UUID


class ReorderRequest(BaseModel):
    item_ids: list[UUID]


class ConvertRequest(BaseModel):
    """Datos del outcome a crear desde el chunk."""
    title: str
    purpose: str
    area_id: UUID | None = None
    description: str | None = None
    goal_id: UUID | None = None
    archive_after: bool = True
    auto_create_actions: bool | None = None
    post_conversion_action: str | None = None
    remember_settings: bool = False
    token: str | None = None


class PreferenceRequest(BaseModel):
    auto_create_actions_from_chunks: bool | None = None
    default_post_conversion_action: str | None = None


class ApplySuggestionRequest(BaseModel):
    """Sugerencia confirmada por el usuario."""
    name: str
    description: str = ""
    item_ids: list[UUID]
    color: str | None = None


# ==================== ITEMS ====================


@router.post("/items", status_code=201)
async def capture_item(
    body: CaptureRequest,
    owner: Owner = Depends(get_owner),
    items: ItemService = Depends(get_item_service),
):
    """Captura una nota en el inbox."""
    item = await items.capture(owner, body.content, parse_item_type(body.item_type))
    return item.to_dict()


@router.get("/items")
async def list_items(
    item_type: str | None = None,
    unchunked_only: bool = False,
    search: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    owner: Owner = Depends(get_owner),
    items: ItemService = Depends(get_item_service),
):
    """Lista items sin triage, más recientes primero."""
    result = await items.list_untriaged(
        InboxFilter(
            owner=owner,
            item_type=parse_item_type(item_type) if item_type else None,
            unchunked_only=unchunked_only,
            search_text=search,
            limit=limit,
            offset=offset,
        )
    )
    return {"items": [i.to_dict() for i in result], "count": len(result)}


@router.get("/items/{item_id}")
async def get_item(item_id: UUID, items: ItemService = Depends(get_item_service)):
    return (await items.get(item_id)).to_dict()


@router.patch("/items/{item_id}")
async def recategorize_item(
    item_id: UUID,
    body: RecategorizeRequest,
    items: ItemService = Depends(get_item_service),
):
    item = await items.recategorize(item_id, parse_item_type(body.item_type))
    return item.to_dict()


@router.delete("/items/{item_id}", status_code=204)
async def delete_item(item_id: UUID, items: ItemService = Depends(get_item_service)):
    await items.delete(item_id)
    return Response(status_code=204)


@router.post("/items/{item_id}/triage")
async def triage_item(
    item_id: UUID,
    body: TriageRequest,
    items: ItemService = Depends(get_item_service),
):
    """Convierte un item suelto en acción de un outcome existente."""
    action = await items.triage_to_outcome(item_id, body.outcome_id)
    return action.to_dict()


@router.post("/items/{item_id}/move")
async def move_item(
    item_id: UUID,
    body: MoveItemRequest,
    chunks: ChunkService = Depends(get_chunk_service),
):
    chunk_item = await chunks.move_item(item_id, body.chunk_id)
    return chunk_item.to_dict()


# ==================== CHUNKS ====================


@router.post("/chunks", status_code=201)
async def create_chunk(
    body: ChunkCreateRequest,
    owner: Owner = Depends(get_owner),
    chunks: ChunkService = Depends(get_chunk_service),
):
    chunk = await chunks.create(
        owner,
        body.name,
        color=body.color,
        description=body.description,
        item_ids=body.item_ids,
    )
    return chunk.to_dict()


@router.get("/chunks")
async def list_chunks(
    include_archived: bool = False,
    owner: Owner = Depends(get_owner),
    chunks: ChunkService = Depends(get_chunk_service),
):
    result = await chunks.list_chunks(owner, include_archived=include_archived)
    return {"chunks": [c.to_dict() for c in result]}


@router.get("/chunks/{chunk_id}")
async def get_chunk(chunk_id: UUID, chunks: ChunkService = Depends(get_chunk_service)):
    return (await chunks.get(chunk_id)).to_dict()


@router.patch("/chunks/{chunk_id}")
async def update_chunk(
    chunk_id: UUID,
    body: ChunkUpdateRequest,
    chunks: ChunkService = Depends(get_chunk_service),
):
    """Renombra o edita un chunk. `description: null` la borra."""
    fields = body.model_dump(exclude_unset=True)
    chunk = await chunks.update(chunk_id, **fields)
    return chunk.to_dict()


@router.delete("/chunks/{chunk_id}", status_code=204)
async def delete_chunk(chunk_id: UUID, chunks: ChunkService = Depends(get_chunk_service)):
    await chunks.delete(chunk_id)
    return Response(status_code=204)


@router.post("/chunks/{chunk_id}/items", status_code=201)
async def add_chunk_item(
    chunk_id: UUID,
    body: AddItemRequest,
    chunks: ChunkService = Depends(get_chunk_service),
):
    chunk_item = await chunks.add_item(chunk_id, body.item_id)
    return chunk_item.to_dict()


@router.delete("/chunk-items/{chunk_item_id}")
async def remove_chunk_item(
    chunk_item_id: UUID,
    chunks: ChunkService = Depends(get_chunk_service),
):
    removed = await chunks.remove_item(chunk_item_id)
    return removed.to_dict()


@router.put("/chunks/{chunk_id}/order")
async def reorder_chunk(
    chunk_id: UUID,
    body: ReorderRequest,
    chunks: ChunkService = Depends(get_chunk_service),
):
    chunk = await chunks.reorder(chunk_id, body.item_ids)
    return chunk.to_dict()


@router.post("/chunks/{chunk_id}/archive")
async def archive_chunk(chunk_id: UUID, chunks: ChunkService = Depends(get_chunk_service)):
    return (await chunks.archive(chunk_id)).to_dict()


@router.post("/chunks/{chunk_id}/unarchive")
async def unarchive_chunk(chunk_id: UUID, chunks: ChunkService = Depends(get_chunk_service)):
    return (await chunks.unarchive(chunk_id)).to_dict()


# ==================== CONVERSIÓN ====================


@router.post("/chunks/{chunk_id}/convert")
async def convert_chunk(
    chunk_id: UUID,
    body: ConvertRequest,
    conversions: ConversionService = Depends(get_conversion_service),
):
    """
    Convierte el chunk en outcome.

    Responde 202 si el outcome quedó creado pero faltan pasos: el
    cliente debe reintentar con el mismo token o llamar a /resume.
    """
    result = await conversions.convert(
        chunk_id,
        ConversionRequest(
            title=body.title,
            purpose=body.purpose,
            area_id=body.area_id,
            description=body.description,
            goal_id=body.goal_id,
            archive_after=body.archive_after,
            auto_create_actions=body.auto_create_actions,
            post_conversion_action=parse_post_conversion_action(body.post_conversion_action),
            remember_settings=body.remember_settings,
            token=body.token,
        ),
    )
    return result.to_dict()


@router.post("/chunks/{chunk_id}/convert/resume")
async def resume_conversion(
    chunk_id: UUID,
    conversions: ConversionService = Depends(get_conversion_service),
):
    return (await conversions.resume(chunk_id)).to_dict()


@router.get("/chunks/{chunk_id}/conversion")
async def get_conversion_status(
    chunk_id: UUID,
    conversions: ConversionService = Depends(get_conversion_service),
):
    state = await conversions.get_status(chunk_id)
    if state is None:
        raise NotFoundError("ChunkConversion", chunk_id)
    return {
        "token": state.token,
        "step": state.step.value,
        "outcome_id": str(state.outcome_id) if state.outcome_id else None,
        "actions_created": state.actions_created,
        "last_error": state.last_error,
        "done": state.is_done,
    }


# ==================== PREFERENCIAS ====================


@router.get("/preferences")
async def get_preferences(
    owner: Owner = Depends(get_owner),
    preferences: PreferenceService = Depends(get_preference_service),
):
    return (await preferences.get(owner)).to_dict()


@router.put("/preferences")
async def set_preferences(
    body: PreferenceRequest,
    owner: Owner = Depends(get_owner),
    preferences: PreferenceService = Depends(get_preference_service),
):
    preference = await preferences.set(
        owner,
        auto_create_actions_from_chunks=body.auto_create_actions_from_chunks,
        default_post_conversion_action=parse_post_conversion_action(
            body.default_post_conversion_action
        ),
    )
    return preference.to_dict()


# ==================== SUGERENCIAS ====================


@router.get("/suggestions")
async def get_suggestions(
    limit: int = Query(50, ge=1, le=200),
    owner: Owner = Depends(get_owner),
    suggestions: SuggestionService = Depends(get_suggestion_service),
):
    """Sugerencias de agrupación para los items sueltos. Nunca modifica nada."""
    items, result = await suggestions.suggest_for_owner(owner, limit=limit)
    return {"items": [i.to_dict() for i in items], **result.to_dict()}


@router.post("/suggestions/apply", status_code=201)
async def apply_suggestion(
    body: ApplySuggestionRequest,
    owner: Owner = Depends(get_owner),
    items: ItemService = Depends(get_item_service),
    suggestions: SuggestionService = Depends(get_suggestion_service),
):
    """Crea el chunk de una sugerencia confirmada por el usuario."""
    resolved = []
    missing = []
    for item_id in body.item_ids:
        try:
            resolved.append(await items.get(item_id))
        except NotFoundError:
            missing.append(item_id)

    chunk, skipped = await suggestions.apply_suggestion(
        owner,
        ChunkSuggestion(
            name=body.name,
            description=body.description,
            item_indices=list(range(len(resolved))),
        ),
        resolved,
        color=body.color,
    )
    return {
        "chunk": chunk.to_dict(),
        "skipped_item_ids": [str(i) for i in skipped + missing],
    }
