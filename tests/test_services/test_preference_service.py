"""Tests for PreferenceService."""

from uuid import uuid4

import pytest

from planner.domain.entities import Owner, PostConversionAction


class TestPreferenceService:
    """Test suite for PreferenceService."""

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_stored(self, preference_service, owner):
        preference = await preference_service.get(owner)

        assert preference.owner == owner
        assert preference.auto_create_actions_from_chunks is False
        assert preference.default_post_conversion_action == PostConversionAction.STAY

    @pytest.mark.asyncio
    async def test_set_only_touches_given_fields(self, preference_service, owner):
        await preference_service.set(owner, auto_create_actions_from_chunks=True)
        await preference_service.set(
            owner, default_post_conversion_action=PostConversionAction.NAVIGATE
        )

        preference = await preference_service.get(owner)

        assert preference.auto_create_actions_from_chunks is True
        assert preference.default_post_conversion_action == PostConversionAction.NAVIGATE

    @pytest.mark.asyncio
    async def test_scoped_per_organization(self, preference_service, owner):
        """The same user in another organization keeps separate preferences."""
        await preference_service.set(owner, auto_create_actions_from_chunks=True)

        elsewhere = await preference_service.get(Owner(owner.user_id, uuid4()))

        assert elsewhere.auto_create_actions_from_chunks is False
