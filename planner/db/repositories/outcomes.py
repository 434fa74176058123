"""Repository para outcomes y actions (subsistema de outcomes)."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from planner.db.models import ActionModel, OutcomeModel
from planner.domain.entities import OutcomeStatus, Owner

logger = logging.getLogger(__name__)


@dataclass
class NewAction:
    """Datos para insertar una acción."""

    title: str
    sort_order: int
    priority: int
    duration_minutes: int
    source_chunk_item_id: UUID | None = None
    user_id: UUID | None = None


class OutcomeRepository:
    """Repository para Outcome y sus Actions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, outcome_id: UUID) -> OutcomeModel | None:
        result = await self.session.execute(
            select(OutcomeModel).where(OutcomeModel.id == outcome_id)
        )
        return result.scalar_one_or_none()

    async def get_by_source_chunk(self, chunk_id: UUID) -> OutcomeModel | None:
        result = await self.session.execute(
            select(OutcomeModel).where(OutcomeModel.source_chunk_id == chunk_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        owner: Owner,
        title: str,
        purpose: str,
        description: str | None = None,
        area_id: UUID | None = None,
        goal_id: UUID | None = None,
        source_chunk_id: UUID | None = None,
    ) -> OutcomeModel:
        """Crea un outcome activo."""
        outcome = OutcomeModel(
            user_id=owner.user_id,
            organization_id=owner.organization_id,
            title=title,
            purpose=purpose,
            description=description,
            area_id=area_id,
            goal_id=goal_id,
            status=OutcomeStatus.ACTIVE.value,
            source_chunk_id=source_chunk_id,
        )
        self.session.add(outcome)
        await self.session.flush()
        logger.info(f"Outcome creado: {title}")
        return outcome

    async def create_actions(self, outcome_id: UUID, actions: list[NewAction]) -> list[ActionModel]:
        """Inserta varias acciones en un solo flush."""
        models = [
            ActionModel(
                outcome_id=outcome_id,
                user_id=action.user_id,
                title=action.title,
                sort_order=action.sort_order,
                priority=action.priority,
                duration_minutes=action.duration_minutes,
                done=False,
                is_must=False,
                source_chunk_item_id=action.source_chunk_item_id,
            )
            for action in actions
        ]
        self.session.add_all(models)
        await self.session.flush()
        return models

    async def list_actions(self, outcome_id: UUID) -> list[ActionModel]:
        """Acciones de un outcome en orden."""
        result = await self.session.execute(
            select(ActionModel)
            .where(ActionModel.outcome_id == outcome_id)
            .order_by(ActionModel.sort_order.asc())
        )
        return list(result.scalars().all())

    async def count_actions(self, outcome_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(ActionModel.id)).where(ActionModel.outcome_id == outcome_id)
        )
        return result.scalar_one()
