"""Tests for ConversionService (chunk -> outcome saga)."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from planner.db.database import session_scope
from planner.db.mappers import outcome_to_entity
from planner.db.models import OutcomeModel
from planner.db.repositories import ChunkRepository, OutcomeRepository
from planner.domain.entities import ChunkStatus, ConversionStep, OutcomeStatus, PostConversionAction
from planner.utils.errors import (
    BusinessRuleViolation,
    ConversionConflictError,
    ConversionIncompleteError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def outcomes(session_factory):
    """Read helpers over the outcomes/actions tables."""
    class _Outcomes:
        async def count(self):
            async with session_scope(session_factory) as session:
                result = await session.execute(select(func.count()).select_from(OutcomeModel))
                return result.scalar_one()

        async def get(self, outcome_id):
            async with session_scope(session_factory) as session:
                return await OutcomeRepository(session).get_by_id(outcome_id)

        async def actions(self, outcome_id):
            async with session_scope(session_factory) as session:
                return await OutcomeRepository(session).list_actions(outcome_id)

    return _Outcomes()


class TestConvert:
    """Happy path and validation."""

    @pytest.mark.asyncio
    async def test_full_conversion(
        self, chunk_service, item_service, conversion_service, owner, capture_items,
        convert_request, area_id, outcomes,
    ):
        """Create chunk, add two items, convert with actions and archive."""
        x, y = await capture_items("Write landing page", "Record demo")
        chunk = await chunk_service.create(owner, "Launch prep")
        await chunk_service.add_item(chunk.id, x.id)
        await chunk_service.add_item(chunk.id, y.id)

        result = await conversion_service.convert(
            chunk.id,
            convert_request(title="Launch product", archive_after=True, auto_create_actions=True),
        )

        outcome = outcome_to_entity(await outcomes.get(result.outcome_id))
        assert outcome.source_chunk_id == chunk.id
        assert outcome.title == "Launch product"
        assert outcome.area_id == area_id
        assert outcome.status == OutcomeStatus.ACTIVE

        actions = await outcomes.actions(result.outcome_id)
        assert [a.title for a in actions] == ["Write landing page", "Record demo"]
        assert [a.sort_order for a in actions] == [0, 1]
        assert all(a.priority == 2 and a.duration_minutes == 30 for a in actions)
        assert all(not a.done and not a.is_must for a in actions)
        assert result.actions_created == 2
        assert result.replayed is False

        converted = await chunk_service.get(chunk.id)
        assert converted.status == ChunkStatus.ARCHIVED
        assert converted.converted_to_id == result.outcome_id
        assert converted.converted_at is not None
        assert converted.converted_to_type is not None

        for item in (x, y):
            reloaded = await item_service.get(item.id)
            assert reloaded.triaged is True
            assert reloaded.triaged_to_id == result.outcome_id

    @pytest.mark.asyncio
    async def test_convert_empty_chunk_fails(
        self, chunk_service, conversion_service, owner, convert_request, outcomes
    ):
        """An empty chunk cannot be converted and nothing is created."""
        chunk = await chunk_service.create(owner, "Empty")

        with pytest.raises(BusinessRuleViolation):
            await conversion_service.convert(chunk.id, convert_request())

        assert await outcomes.count() == 0
        reloaded = await chunk_service.get(chunk.id)
        assert not reloaded.is_locked
        assert await conversion_service.get_status(chunk.id) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"title": "  "}, "title"),
            ({"purpose": ""}, "purpose"),
            ({"area_id": None}, "area_id"),
        ],
    )
    async def test_convert_validates_request(
        self, chunk_with_items, conversion_service, convert_request, outcomes, overrides, field
    ):
        chunk, _ = await chunk_with_items()

        with pytest.raises(ValidationError) as exc:
            await conversion_service.convert(chunk.id, convert_request(**overrides))

        assert exc.value.field == field
        assert await outcomes.count() == 0

    @pytest.mark.asyncio
    async def test_convert_missing_chunk(self, conversion_service, convert_request):
        with pytest.raises(NotFoundError):
            await conversion_service.convert(uuid4(), convert_request())

    @pytest.mark.asyncio
    async def test_without_actions_and_without_archive(
        self, chunk_with_items, chunk_service, conversion_service, convert_request, outcomes
    ):
        chunk, _ = await chunk_with_items()

        result = await conversion_service.convert(
            chunk.id, convert_request(auto_create_actions=False, archive_after=False)
        )

        assert result.actions_created == 0
        assert await outcomes.actions(result.outcome_id) == []
        reloaded = await chunk_service.get(chunk.id)
        assert reloaded.status == ChunkStatus.ACTIVE
        assert reloaded.is_converted

    @pytest.mark.asyncio
    async def test_actions_follow_curated_order(
        self, chunk_with_items, chunk_service, conversion_service, convert_request, outcomes
    ):
        """reorder([b, a, c]) then convert yields actions in exactly that order."""
        chunk, (a, b, c) = await chunk_with_items(contents=("a", "b", "c"))
        await chunk_service.reorder(chunk.id, [b.id, a.id, c.id])

        result = await conversion_service.convert(chunk.id, convert_request(auto_create_actions=True))

        actions = await outcomes.actions(result.outcome_id)
        assert [x.title for x in actions] == ["b", "a", "c"]
        assert [x.sort_order for x in actions] == [0, 1, 2]


class TestIdempotence:
    """Retries never create a second outcome."""

    @pytest.mark.asyncio
    async def test_second_convert_replays(
        self, chunk_with_items, conversion_service, convert_request, outcomes
    ):
        chunk, _ = await chunk_with_items()

        first = await conversion_service.convert(chunk.id, convert_request())
        second = await conversion_service.convert(chunk.id, convert_request(title="Other title"))

        assert second.outcome_id == first.outcome_id
        assert second.replayed is True
        assert await outcomes.count() == 1

    @pytest.mark.asyncio
    async def test_concurrent_converts_create_one_outcome(
        self, chunk_with_items, conversion_service, convert_request, outcomes
    ):
        chunk, _ = await chunk_with_items()

        results = await asyncio.gather(
            conversion_service.convert(chunk.id, convert_request(token="tab-1")),
            conversion_service.convert(chunk.id, convert_request(token="tab-2")),
            return_exceptions=True,
        )

        assert not any(
            isinstance(r, Exception) and not isinstance(r, ConversionConflictError)
            for r in results
        )
        # Both results and ConversionConflictError carry outcome_id
        outcome_ids = {r.outcome_id for r in results}
        assert len(outcome_ids - {None}) == 1
        assert await outcomes.count() == 1

    @pytest.mark.asyncio
    async def test_in_flight_conversion_with_other_token_conflicts(
        self, chunk_with_items, conversion_service, convert_request, session_factory
    ):
        """A chunk claimed by another token is reported as a conflict."""
        chunk, _ = await chunk_with_items()
        async with session_scope(session_factory) as session:
            assert await ChunkRepository(session).claim_conversion(chunk.id, "other-process")

        with pytest.raises(ConversionConflictError):
            await conversion_service.convert(chunk.id, convert_request(token="mine"))


class TestSaga:
    """Failure mid-saga and resume."""

    @pytest.mark.asyncio
    async def test_failure_after_outcome_is_incomplete_and_resumable(
        self, chunk_with_items, item_service, conversion_service, convert_request, outcomes
    ):
        chunk, items = await chunk_with_items()
        request = convert_request(token="retry-me", auto_create_actions=True)

        with patch.object(
            conversion_service, "_triage_items", AsyncMock(side_effect=RuntimeError("db went away"))
        ):
            with pytest.raises(ConversionIncompleteError) as exc:
                await conversion_service.convert(chunk.id, request)

        assert exc.value.step == ConversionStep.ITEMS_TRIAGED.value
        assert exc.value.token == "retry-me"
        state = await conversion_service.get_status(chunk.id)
        assert state.step == ConversionStep.CHUNK_UPDATED
        assert "db went away" in state.last_error
        # Triage is the last step: nothing triaged yet
        assert all([not (await item_service.get(i.id)).triaged for i in items])

        result = await conversion_service.convert(chunk.id, request)

        assert result.outcome_id == exc.value.outcome_id
        assert result.actions_created == 3
        assert await outcomes.count() == 1
        assert len(await outcomes.actions(result.outcome_id)) == 3
        assert all([(await item_service.get(i.id)).triaged for i in items])
        assert (await conversion_service.get_status(chunk.id)).step == ConversionStep.DONE

    @pytest.mark.asyncio
    async def test_resume_by_chunk(
        self, chunk_with_items, conversion_service, convert_request, outcomes
    ):
        chunk, _ = await chunk_with_items()

        with patch.object(
            conversion_service, "_update_chunk", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            with pytest.raises(ConversionIncompleteError):
                await conversion_service.convert(chunk.id, convert_request())

        result = await conversion_service.resume(chunk.id)

        assert result.replayed is False
        assert await outcomes.count() == 1

    @pytest.mark.asyncio
    async def test_other_token_conflict_carries_outcome(
        self, chunk_with_items, conversion_service, convert_request
    ):
        chunk, _ = await chunk_with_items()
        with patch.object(
            conversion_service, "_update_chunk", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            with pytest.raises(ConversionIncompleteError) as incomplete:
                await conversion_service.convert(chunk.id, convert_request(token="first"))

        with pytest.raises(ConversionConflictError) as conflict:
            await conversion_service.convert(chunk.id, convert_request(token="second"))

        assert conflict.value.outcome_id == incomplete.value.outcome_id

    @pytest.mark.asyncio
    async def test_failure_before_outcome_releases_claim(
        self, chunk_with_items, chunk_service, conversion_service, convert_request, outcomes
    ):
        """If the outcome was never created the chunk goes back to editable."""
        chunk, _ = await chunk_with_items()

        with patch.object(
            conversion_service, "_create_outcome", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            with pytest.raises(RuntimeError):
                await conversion_service.convert(chunk.id, convert_request())

        reloaded = await chunk_service.get(chunk.id)
        assert not reloaded.is_locked
        assert await conversion_service.get_status(chunk.id) is None
        assert await outcomes.count() == 0

        result = await conversion_service.convert(chunk.id, convert_request())
        assert result.outcome_id is not None

    @pytest.mark.asyncio
    async def test_recover_stalled(
        self, chunk_with_items, conversion_service, convert_request, item_service
    ):
        chunk, items = await chunk_with_items()
        with patch.object(
            conversion_service, "_create_actions", AsyncMock(side_effect=RuntimeError("crash"))
        ):
            with pytest.raises(ConversionIncompleteError):
                await conversion_service.convert(chunk.id, convert_request())

        recovered = await conversion_service.recover_stalled(older_than=timedelta(seconds=-1))

        assert len(recovered) == 1
        assert all([(await item_service.get(i.id)).triaged for i in items])


class TestPreferences:
    """Stored preferences as defaults and remember_settings."""

    @pytest.mark.asyncio
    async def test_defaults_come_from_preferences(
        self, chunk_with_items, conversion_service, preference_service, owner, convert_request
    ):
        await preference_service.set(
            owner,
            auto_create_actions_from_chunks=True,
            default_post_conversion_action=PostConversionAction.NAVIGATE,
        )
        chunk, _ = await chunk_with_items()

        result = await conversion_service.convert(chunk.id, convert_request())

        assert result.actions_created == 3
        assert result.navigate is True

    @pytest.mark.asyncio
    async def test_without_preferences_defaults_to_stay_and_no_actions(
        self, chunk_with_items, conversion_service, convert_request
    ):
        chunk, _ = await chunk_with_items()

        result = await conversion_service.convert(chunk.id, convert_request())

        assert result.actions_created == 0
        assert result.navigate is False

    @pytest.mark.asyncio
    async def test_remember_settings_persists_choices(
        self, chunk_with_items, conversion_service, preference_service, owner, convert_request
    ):
        chunk, _ = await chunk_with_items()

        await conversion_service.convert(
            chunk.id,
            convert_request(
                auto_create_actions=True,
                post_conversion_action=PostConversionAction.NAVIGATE,
                remember_settings=True,
            ),
        )

        preference = await preference_service.get(owner)
        assert preference.auto_create_actions_from_chunks is True
        assert preference.default_post_conversion_action == PostConversionAction.NAVIGATE

    @pytest.mark.asyncio
    async def test_preference_failure_does_not_block_conversion(
        self, chunk_with_items, conversion_service, convert_request
    ):
        chunk, _ = await chunk_with_items()

        with patch(
            "planner.domain.services.conversion_service.PreferenceRepository.upsert",
            AsyncMock(side_effect=RuntimeError("prefs down")),
        ):
            result = await conversion_service.convert(
                chunk.id, convert_request(remember_settings=True)
            )

        assert result.outcome_id is not None
        assert (await conversion_service.get_status(chunk.id)).step == ConversionStep.DONE
