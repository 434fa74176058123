"""Tests for the inbox HTTP router."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from planner.domain.entities import (
    ChunkItem,
    ChunkSuggestions,
    ChunkWithItems,
    ConversionResult,
    InboxItem,
    InboxItemType,
    Owner,
    PostConversionAction,
    UserPreference,
)
from planner.domain.services import (
    get_chunk_service,
    get_conversion_service,
    get_item_service,
    get_preference_service,
    get_suggestion_service,
)
from planner.utils.errors import (
    ConflictError,
    ConversionConflictError,
    ConversionIncompleteError,
    ConversionLockedError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)

USER_ID = uuid4()
ORG_ID = uuid4()
HEADERS = {"X-User-Id": str(USER_ID), "X-Organization-Id": str(ORG_ID)}
OWNER = Owner(USER_ID, ORG_ID)


def _item(content="Call dentist"):
    return InboxItem(id=uuid4(), owner=OWNER, content=content, created_at=datetime(2024, 11, 28))


def _chunk(name="Launch prep", items=None):
    return ChunkWithItems(id=uuid4(), owner=OWNER, name=name, items=items or [])


@pytest.fixture
def services():
    """Mocked domain services."""
    mocks = {
        "items": MagicMock(),
        "chunks": MagicMock(),
        "conversions": MagicMock(),
        "preferences": MagicMock(),
        "suggestions": MagicMock(),
    }
    return mocks


@pytest.fixture
def client(services):
    """Test client with services overridden."""
    from planner.main import app

    app.dependency_overrides[get_item_service] = lambda: services["items"]
    app.dependency_overrides[get_chunk_service] = lambda: services["chunks"]
    app.dependency_overrides[get_conversion_service] = lambda: services["conversions"]
    app.dependency_overrides[get_preference_service] = lambda: services["preferences"]
    app.dependency_overrides[get_suggestion_service] = lambda: services["suggestions"]
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestItemsApi:
    """Item endpoints."""

    def test_capture(self, client, services):
        item = _item()
        services["items"].capture = AsyncMock(return_value=item)

        response = client.post(
            "/inbox/items", json={"content": "Call dentist", "item_type": "action"}, headers=HEADERS
        )

        assert response.status_code == 201
        assert response.json()["id"] == str(item.id)
        services["items"].capture.assert_awaited_once_with(
            OWNER, "Call dentist", InboxItemType.ACTION_IDEA
        )

    def test_capture_requires_owner_headers(self, client, services):
        response = client.post("/inbox/items", json={"content": "x"})

        assert response.status_code == 422

    def test_capture_validation_error_keeps_input(self, client, services):
        services["items"].capture = AsyncMock(
            side_effect=ValidationError("El contenido no puede estar vacío", field="content")
        )

        response = client.post("/inbox/items", json={"content": " "}, headers=HEADERS)

        assert response.status_code == 422
        assert response.json()["details"]["field"] == "content"

    def test_capture_transient_error_is_503(self, client, services):
        services["items"].capture = AsyncMock(
            side_effect=TransientStoreError("down", {"content": "Call dentist"})
        )

        response = client.post("/inbox/items", json={"content": "Call dentist"}, headers=HEADERS)

        assert response.status_code == 503
        assert response.json()["details"]["content"] == "Call dentist"

    def test_list_items(self, client, services):
        services["items"].list_untriaged = AsyncMock(return_value=[_item("a"), _item("b")])

        response = client.get(
            "/inbox/items?unchunked_only=true&search=a&item_type=note", headers=HEADERS
        )

        assert response.status_code == 200
        assert response.json()["count"] == 2
        item_filter = services["items"].list_untriaged.call_args.args[0]
        assert item_filter.owner == OWNER
        assert item_filter.unchunked_only is True
        assert item_filter.search_text == "a"
        assert item_filter.item_type == InboxItemType.NOTE

    def test_get_missing_item_is_404(self, client, services):
        missing = uuid4()
        services["items"].get = AsyncMock(side_effect=NotFoundError("InboxItem", missing))

        response = client.get(f"/inbox/items/{missing}", headers=HEADERS)

        assert response.status_code == 404

    def test_recategorize_conflict_is_409(self, client, services):
        services["items"].recategorize = AsyncMock(side_effect=ConflictError("ya resuelto"))

        response = client.patch(
            f"/inbox/items/{uuid4()}", json={"item_type": "outcome"}, headers=HEADERS
        )

        assert response.status_code == 409

    def test_delete_item(self, client, services):
        services["items"].delete = AsyncMock(return_value=None)

        response = client.delete(f"/inbox/items/{uuid4()}", headers=HEADERS)

        assert response.status_code == 204


class TestChunksApi:
    """Chunk endpoints."""

    def test_create_chunk(self, client, services):
        chunk = _chunk()
        services["chunks"].create = AsyncMock(return_value=chunk)
        item_id = uuid4()

        response = client.post(
            "/inbox/chunks", json={"name": "Launch prep", "item_ids": [str(item_id)]}, headers=HEADERS
        )

        assert response.status_code == 201
        assert response.json()["name"] == "Launch prep"
        kwargs = services["chunks"].create.call_args.kwargs
        assert kwargs["item_ids"] == [item_id]

    def test_update_only_sends_given_fields(self, client, services):
        services["chunks"].update = AsyncMock(return_value=_chunk("New"))
        chunk_id = uuid4()

        response = client.patch(f"/inbox/chunks/{chunk_id}", json={"name": "New"}, headers=HEADERS)

        assert response.status_code == 200
        services["chunks"].update.assert_awaited_once_with(chunk_id, name="New")

    def test_add_item_to_converted_chunk_is_400(self, client, services):
        chunk_id = uuid4()
        services["chunks"].add_item = AsyncMock(
            side_effect=ConversionLockedError(chunk_id, "agregar items")
        )

        response = client.post(
            f"/inbox/chunks/{chunk_id}/items", json={"item_id": str(uuid4())}, headers=HEADERS
        )

        assert response.status_code == 400
        assert response.json()["error"] == "business_rule"

    def test_add_item(self, client, services):
        chunk_id, item_id = uuid4(), uuid4()
        services["chunks"].add_item = AsyncMock(
            return_value=ChunkItem(id=uuid4(), chunk_id=chunk_id, inbox_item_id=item_id, sort_order=0)
        )

        response = client.post(
            f"/inbox/chunks/{chunk_id}/items", json={"item_id": str(item_id)}, headers=HEADERS
        )

        assert response.status_code == 201
        assert response.json()["sort_order"] == 0

    def test_reorder(self, client, services):
        chunk_id = uuid4()
        order = [uuid4(), uuid4()]
        services["chunks"].reorder = AsyncMock(return_value=_chunk())

        response = client.put(
            f"/inbox/chunks/{chunk_id}/order",
            json={"item_ids": [str(i) for i in order]},
            headers=HEADERS,
        )

        assert response.status_code == 200
        services["chunks"].reorder.assert_awaited_once_with(chunk_id, order)

    def test_list_chunks(self, client, services):
        services["chunks"].list_chunks = AsyncMock(return_value=[_chunk("A"), _chunk("B")])

        response = client.get("/inbox/chunks?include_archived=true", headers=HEADERS)

        assert [c["name"] for c in response.json()["chunks"]] == ["A", "B"]
        services["chunks"].list_chunks.assert_awaited_once_with(OWNER, include_archived=True)


class TestConversionApi:
    """Conversion endpoints."""

    def test_convert(self, client, services):
        outcome_id = uuid4()
        services["conversions"].convert = AsyncMock(
            return_value=ConversionResult(outcome_id=outcome_id, navigate=True, actions_created=2)
        )
        chunk_id = uuid4()

        response = client.post(
            f"/inbox/chunks/{chunk_id}/convert",
            json={
                "title": "Launch product",
                "purpose": "Real users",
                "area_id": str(uuid4()),
                "post_conversion_action": "navigate",
                "token": "abc",
            },
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["outcome_id"] == str(outcome_id)
        request = services["conversions"].convert.call_args.args[1]
        assert request.post_conversion_action == PostConversionAction.NAVIGATE
        assert request.token == "abc"
        assert request.archive_after is True

    def test_convert_incomplete_is_202(self, client, services):
        chunk_id, outcome_id = uuid4(), uuid4()
        services["conversions"].convert = AsyncMock(
            side_effect=ConversionIncompleteError(chunk_id, outcome_id, "ITEMS_TRIAGED", "abc")
        )

        response = client.post(
            f"/inbox/chunks/{chunk_id}/convert",
            json={"title": "T", "purpose": "P", "area_id": str(uuid4())},
            headers=HEADERS,
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "incomplete"
        assert body["details"]["outcome_id"] == str(outcome_id)

    def test_convert_conflict_is_409(self, client, services):
        chunk_id = uuid4()
        services["conversions"].convert = AsyncMock(
            side_effect=ConversionConflictError(chunk_id, "en curso")
        )

        response = client.post(
            f"/inbox/chunks/{chunk_id}/convert",
            json={"title": "T", "purpose": "P", "area_id": str(uuid4())},
            headers=HEADERS,
        )

        assert response.status_code == 409

    def test_conversion_status_missing(self, client, services):
        services["conversions"].get_status = AsyncMock(return_value=None)

        response = client.get(f"/inbox/chunks/{uuid4()}/conversion", headers=HEADERS)

        assert response.status_code == 404


class TestPreferencesApi:

    def test_get_preferences(self, client, services):
        services["preferences"].get = AsyncMock(return_value=UserPreference(owner=OWNER))

        response = client.get("/inbox/preferences", headers=HEADERS)

        assert response.json() == {
            "auto_create_actions_from_chunks": False,
            "default_post_conversion_action": "STAY",
        }

    def test_put_preferences(self, client, services):
        services["preferences"].set = AsyncMock(
            return_value=UserPreference(
                owner=OWNER, default_post_conversion_action=PostConversionAction.NAVIGATE
            )
        )

        response = client.put(
            "/inbox/preferences",
            json={"default_post_conversion_action": "navigate"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        services["preferences"].set.assert_awaited_once_with(
            OWNER,
            auto_create_actions_from_chunks=None,
            default_post_conversion_action=PostConversionAction.NAVIGATE,
        )


class TestSuggestionsApi:

    def test_get_suggestions(self, client, services):
        items = [_item("a"), _item("b")]
        services["suggestions"].suggest_for_owner = AsyncMock(
            return_value=(items, ChunkSuggestions(available=False, ungrouped_items=[0, 1]))
        )

        response = client.get("/inbox/suggestions", headers=HEADERS)

        body = response.json()
        assert response.status_code == 200
        assert body["available"] is False
        assert len(body["items"]) == 2

    def test_apply_suggestion(self, client, services):
        item = _item("a")
        missing = uuid4()
        async def _get(item_id):
            if item_id == item.id:
                return item
            raise NotFoundError("InboxItem", item_id)

        services["items"].get = AsyncMock(side_effect=_get)
        services["suggestions"].apply_suggestion = AsyncMock(return_value=(_chunk("Auto"), []))

        response = client.post(
            "/inbox/suggestions/apply",
            json={"name": "Auto", "item_ids": [str(item.id), str(missing)]},
            headers=HEADERS,
        )

        assert response.status_code == 201
        assert response.json()["skipped_item_ids"] == [str(missing)]
        suggestion = services["suggestions"].apply_suggestion.call_args.args[1]
        assert suggestion.item_indices == [0]
