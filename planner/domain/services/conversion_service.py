"""
Conversion Service - Convierte un chunk en un outcome con sus acciones.

La conversión es una saga con cursor persistido (chunk_conversions):

    PENDING -> OUTCOME_CREATED -> ACTIONS_CREATED -> CHUNK_UPDATED
            -> ITEMS_TRIAGED -> DONE

Cada paso hace su trabajo y avanza el cursor en la misma transacción,
así que reintentar nunca repite un paso ya completado. El reclamo del
chunk es un compare-and-swap sobre chunks.conversion_token, y la
restricción única outcomes.source_chunk_id garantiza a lo sumo un
outcome por chunk aunque dos procesos compitan.
"""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Any, Awaitable, Callable
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from planner.config import get_settings
from planner.db.database import session_scope
from planner.db.mappers import conversion_to_entity
from planner.db.models import ChunkConversionModel, ChunkModel, utcnow
from planner.db.repositories import (
    ChunkItemRepository,
    ChunkRepository,
    ConversionRepository,
    InboxItemRepository,
    NewAction,
    OutcomeRepository,
    PreferenceRepository,
)
from planner.domain.entities import (
    ConversionRequest,
    ConversionResult,
    ConversionState,
    ConversionStep,
    Owner,
    PostConversionAction,
)
from planner.domain.services.item_service import apply_triage
from planner.utils.errors import (
    BusinessRuleViolation,
    ConversionConflictError,
    ConversionIncompleteError,
    NotFoundError,
    PlannerError,
    TransientStoreError,
    ValidationError,
    log_error,
    retry_store,
)
from planner.utils.locks import KeyedLock, get_chunk_locks
from planner.utils.text import clean_optional, clean_text

logger = logging.getLogger(__name__)

StepWork = Callable[[AsyncSession, ChunkConversionModel], Awaitable[dict[str, Any] | None]]


def _owner(chunk: ChunkModel) -> Owner:
    return Owner(chunk.user_id, chunk.organization_id)


def _result(state: ConversionState, replayed: bool = False) -> ConversionResult:
    return ConversionResult(
        outcome_id=state.outcome_id,
        navigate=state.request.post_conversion_action == PostConversionAction.NAVIGATE,
        actions_created=state.actions_created,
        replayed=replayed,
        token=state.token,
    )


class ConversionService:
    """
    Servicio de conversión chunk -> outcome.

    Uso:
        service = get_conversion_service()
        result = await service.convert(chunk_id, ConversionRequest(
            title="Lanzar beta",
            purpose="Validar el producto con usuarios reales",
            area_id=area_id,
        ))
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        locks: KeyedLock | None = None,
    ):
        self._session_factory = session_factory
        self._locks = locks or get_chunk_locks()

    # ==================== API pública ====================

    async def convert(self, chunk_id: UUID, request: ConversionRequest) -> ConversionResult:
        """
        Convierte el chunk en un outcome.

        Reintentar con el mismo token retoma la saga donde quedó. Un chunk
        ya convertido devuelve el outcome original con `replayed=True`.

        Raises:
            ValidationError: título, propósito o área vacíos
            NotFoundError: el chunk no existe
            BusinessRuleViolation: el chunk no tiene items
            ConversionConflictError: otra conversión en curso tiene el chunk
            ConversionIncompleteError: el outcome existe pero faltan pasos
        """
        title = clean_text(request.title)
        purpose = clean_text(request.purpose)
        if not title:
            raise ValidationError("El título del outcome es requerido", field="title")
        if not purpose:
            raise ValidationError("El propósito del outcome es requerido", field="purpose")
        if request.area_id is None:
            raise ValidationError("El área del outcome es requerida", field="area_id")

        request = replace(
            request,
            title=title,
            purpose=purpose,
            description=clean_optional(request.description),
            token=request.token or uuid4().hex,
        )

        async with self._locks.hold(chunk_id):
            state = await self._claim(chunk_id, request)
            if state.is_done:
                logger.info(f"Chunk {chunk_id} ya convertido en {state.outcome_id}, replay")
                return _result(state, replayed=True)
            return await self._run(state)

    async def resume(self, chunk_id: UUID) -> ConversionResult:
        """Retoma la saga registrada para el chunk, sea cual sea su token."""
        async with self._locks.hold(chunk_id):
            state = await self.get_status(chunk_id)
            if state is None:
                raise NotFoundError("ChunkConversion", chunk_id)
            if state.is_done:
                return _result(state, replayed=True)
            logger.info(f"Retomando conversión {state.token} desde {state.step.value}")
            return await self._run(state)

    async def recover_stalled(
        self,
        older_than: timedelta = timedelta(minutes=5),
    ) -> list[ConversionResult]:
        """
        Retoma sagas sin avance reciente (proceso caído a mitad).

        Las que vuelven a fallar quedan registradas con su error y se
        siguen intentando en la próxima pasada.
        """
        async with session_scope(self._session_factory) as session:
            stalled = await ConversionRepository(session).list_stalled(utcnow() - older_than)
            chunk_ids = [c.chunk_id for c in stalled]

        if chunk_ids:
            logger.info(f"Recuperando {len(chunk_ids)} conversiones detenidas")

        results = []
        for chunk_id in chunk_ids:
            try:
                results.append(await self.resume(chunk_id))
            except PlannerError as e:
                log_error(e, "recover_stalled", extra={"chunk_id": str(chunk_id)})
        return results

    async def get_status(self, chunk_id: UUID) -> ConversionState | None:
        """Estado actual de la saga del chunk, si existe."""
        async with session_scope(self._session_factory) as session:
            conversion = await ConversionRepository(session).get_by_chunk(chunk_id)
            return conversion_to_entity(conversion) if conversion else None

    # ==================== Reclamo ====================

    @retry_store()
    async def _claim(self, chunk_id: UUID, request: ConversionRequest) -> ConversionState:
        """
        Reclama el chunk para `request.token` o devuelve la saga existente.

        Los valores None del request se resuelven aquí contra las
        preferencias del usuario y quedan fijos en la saga.
        """
        try:
            async with session_scope(self._session_factory) as session:
                conversions = ConversionRepository(session)
                existing = await conversions.get_by_chunk(chunk_id)
                if existing is not None:
                    state = conversion_to_entity(existing)
                    if state.is_done or state.token == request.token:
                        return state
                    raise ConversionConflictError(
                        chunk_id,
                        f"Chunk {chunk_id} tiene otra conversión en curso ({state.step.value})",
                        outcome_id=state.outcome_id,
                    )

                chunks = ChunkRepository(session)
                # El CAS va antes de cargar el chunk en esta sesión
                claimed = await chunks.claim_conversion(chunk_id, request.token)
                chunk = await chunks.get_by_id(chunk_id)
                if chunk is None:
                    raise NotFoundError("Chunk", chunk_id)
                if not claimed:
                    raise ConversionConflictError(
                        chunk_id,
                        f"Chunk {chunk_id} ya convertido o en conversión",
                        outcome_id=chunk.converted_to_id,
                    )

                members = await ChunkItemRepository(session).list_for_chunk(chunk_id)
                if not members:
                    raise BusinessRuleViolation(
                        f"Chunk {chunk_id} no tiene items, no se puede convertir",
                        {"chunk_id": str(chunk_id)},
                    )

                request = await self._resolve_defaults(session, _owner(chunk), request)
                conversion = await conversions.create(request.token, chunk_id, request)
                logger.info(
                    f"Chunk '{chunk.name}' reclamado para conversión "
                    f"({len(members)} items, token {request.token})"
                )
                return conversion_to_entity(conversion)
        except IntegrityError as e:
            # Otro proceso registró la saga primero; el reintento lo verá
            raise TransientStoreError(f"Carrera reclamando chunk {chunk_id}: {e.orig}") from e

    async def _resolve_defaults(
        self,
        session: AsyncSession,
        owner: Owner,
        request: ConversionRequest,
    ) -> ConversionRequest:
        if request.auto_create_actions is not None and request.post_conversion_action is not None:
            return request

        preference = await PreferenceRepository(session).get(owner)
        auto_create = request.auto_create_actions
        if auto_create is None:
            auto_create = preference.auto_create_actions_from_chunks if preference else False
        post_action = request.post_conversion_action
        if post_action is None:
            post_action = (
                PostConversionAction(preference.default_post_conversion_action)
                if preference
                else PostConversionAction.STAY
            )
        return replace(request, auto_create_actions=auto_create, post_conversion_action=post_action)

    # ==================== Saga ====================

    async def _run(self, state: ConversionState) -> ConversionResult:
        steps: list[tuple[ConversionStep, StepWork]] = [
            (ConversionStep.OUTCOME_CREATED, self._create_outcome),
            (ConversionStep.ACTIONS_CREATED, self._create_actions),
            (ConversionStep.CHUNK_UPDATED, self._update_chunk),
            (ConversionStep.ITEMS_TRIAGED, self._triage_items),
            (ConversionStep.DONE, self._finish),
        ]
        for step, work in steps:
            if state.step.reached(step):
                continue
            if step == ConversionStep.DONE:
                await self._remember_settings(state)
            try:
                state = await self._run_step(state, step, work)
            except Exception as e:
                await self._fail(state, step, e)
                raise

        logger.info(
            f"Chunk {state.chunk_id} convertido en outcome {state.outcome_id} "
            f"({state.actions_created} acciones)"
        )
        return _result(state)

    @retry_store()
    async def _run_step(
        self,
        state: ConversionState,
        step: ConversionStep,
        work: StepWork,
    ) -> ConversionState:
        """Ejecuta un paso y avanza el cursor en una sola transacción."""
        async with session_scope(self._session_factory) as session:
            conversions = ConversionRepository(session)
            conversion = await conversions.get_by_token(state.token, for_update=True)
            if conversion is None:
                raise ConversionConflictError(
                    state.chunk_id, f"La conversión {state.token} ya no existe"
                )
            if not ConversionStep(conversion.step).reached(step):
                changes = await work(session, conversion) or {}
                await conversions.advance(conversion, step, **changes)
            return conversion_to_entity(conversion)

    async def _fail(self, state: ConversionState, step: ConversionStep, error: Exception) -> None:
        """
        Registra la falla de un paso.

        Antes de existir el outcome se libera el reclamo y el error original
        sigue su curso. Después, la saga queda con su error y se traduce a
        ConversionIncompleteError.
        """
        log_error(error, f"conversion.{step.value}", extra={"token": state.token})

        if state.outcome_id is None:
            await self._release(state)
            return

        await self._record_error(state, str(error))
        raise ConversionIncompleteError(
            state.chunk_id,
            state.outcome_id,
            step.value,
            state.token,
            cause=str(error),
        ) from error

    @retry_store()
    async def _release(self, state: ConversionState) -> None:
        async with session_scope(self._session_factory) as session:
            await ConversionRepository(session).delete(state.token)
            await ChunkRepository(session).release_conversion(state.chunk_id, state.token)
        logger.warning(f"Reclamo del chunk {state.chunk_id} liberado tras fallar la conversión")

    async def _record_error(self, state: ConversionState, message: str) -> None:
        try:
            async with session_scope(self._session_factory) as session:
                await ConversionRepository(session).record_error(state.token, message)
        except TransientStoreError as e:
            logger.warning(f"No se pudo registrar el error de la conversión {state.token}: {e}")

    # ==================== Pasos ====================

    async def _create_outcome(
        self, session: AsyncSession, conversion: ChunkConversionModel
    ) -> dict[str, Any]:
        """Paso 1: crea el outcome (o adopta el que ya apunta al chunk)."""
        chunk = await ChunkRepository(session).get_by_id(conversion.chunk_id)
        if chunk is None:
            raise NotFoundError("Chunk", conversion.chunk_id)

        outcomes = OutcomeRepository(session)
        outcome = await outcomes.get_by_source_chunk(chunk.id)
        if outcome is None:
            request = ConversionRequest.from_dict(conversion.request)
            outcome = await outcomes.create(
                _owner(chunk),
                title=request.title,
                purpose=request.purpose,
                description=request.description,
                area_id=request.area_id,
                goal_id=request.goal_id,
                source_chunk_id=chunk.id,
            )
        else:
            logger.info(f"Outcome {outcome.id} ya existía para chunk {chunk.id}, se reutiliza")
        return {"outcome_id": outcome.id}

    async def _create_actions(
        self, session: AsyncSession, conversion: ChunkConversionModel
    ) -> dict[str, Any]:
        """Paso 2: una acción por item, en el orden del chunk."""
        request = ConversionRequest.from_dict(conversion.request)
        if not request.auto_create_actions:
            return {"actions_created": 0}

        settings = get_settings()
        members = await ChunkItemRepository(session).list_for_chunk(conversion.chunk_id)
        actions = [
            NewAction(
                title=member.inbox_item.content,
                sort_order=index,
                priority=settings.default_action_priority,
                duration_minutes=settings.default_action_duration_minutes,
                source_chunk_item_id=member.id,
                user_id=member.inbox_item.user_id,
            )
            for index, member in enumerate(members)
        ]
        await OutcomeRepository(session).create_actions(conversion.outcome_id, actions)
        return {"actions_created": len(actions)}

    async def _update_chunk(
        self, session: AsyncSession, conversion: ChunkConversionModel
    ) -> None:
        """Paso 3: marca el chunk como convertido y lo archiva si se pidió."""
        chunks = ChunkRepository(session)
        chunk = await chunks.get_by_id(conversion.chunk_id, for_update=True)
        if chunk is None:
            raise NotFoundError("Chunk", conversion.chunk_id)
        if chunk.converted_to_id is None:
            request = ConversionRequest.from_dict(conversion.request)
            await chunks.mark_converted(chunk, conversion.outcome_id, archive=request.archive_after)

    async def _triage_items(
        self, session: AsyncSession, conversion: ChunkConversionModel
    ) -> None:
        """Paso 4: resuelve todos los items del chunk hacia el outcome."""
        repo = InboxItemRepository(session)
        members = await ChunkItemRepository(session).list_for_chunk(conversion.chunk_id)
        triaged = 0
        for member in members:
            if await apply_triage(repo, member.inbox_item, conversion.outcome_id):
                triaged += 1
        logger.debug(f"{triaged} items resueltos hacia outcome {conversion.outcome_id}")

    async def _finish(
        self, session: AsyncSession, conversion: ChunkConversionModel
    ) -> None:
        """Paso 5: cierra la saga. Las preferencias ya se guardaron aparte."""
        logger.debug(f"Cerrando conversión {conversion.token}")

    async def _remember_settings(self, state: ConversionState) -> None:
        """Guarda los valores usados como preferencias. Su falla no bloquea la conversión."""
        request = state.request
        if not request.remember_settings:
            return

        try:
            async with session_scope(self._session_factory) as session:
                chunk = await ChunkRepository(session).get_by_id(state.chunk_id)
                await PreferenceRepository(session).upsert(
                    _owner(chunk),
                    auto_create_actions_from_chunks=request.auto_create_actions,
                    default_post_conversion_action=request.post_conversion_action,
                )
            logger.info(f"Preferencias de conversión guardadas desde chunk {state.chunk_id}")
        except Exception as e:
            logger.warning(f"No se pudieron guardar las preferencias de conversión: {e}")


_conversion_service: ConversionService | None = None


def get_conversion_service() -> ConversionService:
    """Obtiene el servicio de conversión (singleton)."""
    global _conversion_service
    if _conversion_service is None:
        _conversion_service = ConversionService()
    return _conversion_service
