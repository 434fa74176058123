"""Repository para preferencias de usuario."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planner.db.models import UserPreferenceModel
from planner.domain.entities import Owner, PostConversionAction

logger = logging.getLogger(__name__)


class PreferenceRepository:
    """Repository para UserPreference."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, owner: Owner) -> UserPreferenceModel | None:
        result = await self.session.execute(
            select(UserPreferenceModel).where(
                UserPreferenceModel.user_id == owner.user_id,
                UserPreferenceModel.organization_id == owner.organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        owner: Owner,
        auto_create_actions_from_chunks: bool | None = None,
        default_post_conversion_action: PostConversionAction | None = None,
    ) -> UserPreferenceModel:
        """Crea o actualiza solo los campos indicados."""
        preference = await self.get(owner)
        if preference is None:
            preference = UserPreferenceModel(
                user_id=owner.user_id,
                organization_id=owner.organization_id,
                auto_create_actions_from_chunks=False,
                default_post_conversion_action=PostConversionAction.STAY.value,
            )
            self.session.add(preference)

        if auto_create_actions_from_chunks is not None:
            preference.auto_create_actions_from_chunks = auto_create_actions_from_chunks
        if default_post_conversion_action is not None:
            preference.default_post_conversion_action = default_post_conversion_action.value

        await self.session.flush()
        logger.debug(f"Preferencias guardadas para usuario {owner.user_id}")
        return preference
