"""Preference Service - Defaults recordados para la conversión de chunks."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from planner.db.database import session_scope
from planner.db.mappers import preference_to_entity
from planner.db.repositories import PreferenceRepository
from planner.domain.entities import Owner, PostConversionAction, UserPreference
from planner.utils.errors import retry_store

logger = logging.getLogger(__name__)


class PreferenceService:
    """Lectura y escritura de UserPreference por (usuario, organización)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    async def get(self, owner: Owner) -> UserPreference:
        """Preferencias guardadas, o los defaults si nunca se guardaron."""
        async with session_scope(self._session_factory) as session:
            preference = await PreferenceRepository(session).get(owner)
            if preference is None:
                return UserPreference(owner=owner)
            return preference_to_entity(preference)

    @retry_store()
    async def set(
        self,
        owner: Owner,
        auto_create_actions_from_chunks: bool | None = None,
        default_post_conversion_action: PostConversionAction | None = None,
    ) -> UserPreference:
        """Upsert de los campos indicados; los None no se tocan."""
        async with session_scope(self._session_factory) as session:
            preference = await PreferenceRepository(session).upsert(
                owner,
                auto_create_actions_from_chunks=auto_create_actions_from_chunks,
                default_post_conversion_action=default_post_conversion_action,
            )
            logger.info(f"Preferencias actualizadas para usuario {owner.user_id}")
            return preference_to_entity(preference)


_preference_service: PreferenceService | None = None


def get_preference_service() -> PreferenceService:
    """Obtiene el servicio de preferencias (singleton)."""
    global _preference_service
    if _preference_service is None:
        _preference_service = PreferenceService()
    return _preference_service
