"""Repository para el cursor persistido de la saga de conversión."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from planner.db.models import ChunkConversionModel, utcnow
from planner.domain.entities import ConversionRequest, ConversionStep

logger = logging.getLogger(__name__)


class ConversionRepository:
    """Repository para operaciones sobre ChunkConversion."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_token(self, token: str, for_update: bool = False) -> ChunkConversionModel | None:
        query = select(ChunkConversionModel).where(ChunkConversionModel.token == token)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_chunk(self, chunk_id: UUID) -> ChunkConversionModel | None:
        result = await self.session.execute(
            select(ChunkConversionModel).where(ChunkConversionModel.chunk_id == chunk_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        token: str,
        chunk_id: UUID,
        request: ConversionRequest,
    ) -> ChunkConversionModel:
        """Registra una saga nueva en PENDING."""
        conversion = ChunkConversionModel(
            token=token,
            chunk_id=chunk_id,
            step=ConversionStep.PENDING.value,
            request=request.to_dict(),
        )
        self.session.add(conversion)
        await self.session.flush()
        logger.info(f"Conversión {token} registrada para chunk {chunk_id}")
        return conversion

    async def advance(
        self,
        conversion: ChunkConversionModel,
        step: ConversionStep,
        outcome_id: UUID | None = None,
        actions_created: int | None = None,
    ) -> ChunkConversionModel:
        """Mueve el cursor al paso completado."""
        conversion.step = step.value
        conversion.last_error = None
        if outcome_id is not None:
            conversion.outcome_id = outcome_id
        if actions_created is not None:
            conversion.actions_created = actions_created
        if step == ConversionStep.DONE:
            conversion.completed_at = utcnow()
        await self.session.flush()
        logger.info(f"Conversión {conversion.token}: {step.value}")
        return conversion

    async def record_error(self, token: str, error: str) -> None:
        conversion = await self.get_by_token(token)
        if conversion:
            conversion.last_error = error[:2000]
            await self.session.flush()

    async def delete(self, token: str) -> None:
        await self.session.execute(
            delete(ChunkConversionModel).where(ChunkConversionModel.token == token)
        )

    async def list_stalled(self, older_than: datetime) -> list[ChunkConversionModel]:
        """Sagas sin terminar cuyo último avance es anterior a `older_than`."""
        result = await self.session.execute(
            select(ChunkConversionModel)
            .where(
                ChunkConversionModel.step != ConversionStep.DONE.value,
                ChunkConversionModel.updated_at < older_than,
            )
            .order_by(ChunkConversionModel.started_at.asc())
        )
        return list(result.scalars().all())
