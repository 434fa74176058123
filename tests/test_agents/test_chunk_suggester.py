"""Tests for ChunkSuggesterAgent."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from planner.agents.chunk_suggester import ChunkSuggesterAgent
from planner.domain.entities import InboxItem, InboxItemType, Owner
from planner.utils.errors import OracleUnavailableError


def _item(content, item_type=InboxItemType.NOTE):
    return InboxItem(id=uuid4(), owner=Owner(uuid4(), uuid4()), content=content, item_type=item_type)


class TestChunkSuggesterAgent:
    """Test suite for ChunkSuggesterAgent."""

    @pytest.fixture
    def agent(self):
        """Create agent with mocked DSPy."""
        with patch("planner.agents.base.setup_dspy"):
            with patch("dspy.ChainOfThought") as mock_cot:
                mock_module = MagicMock()
                mock_cot.return_value = mock_module
                agent = ChunkSuggesterAgent()
                agent.suggester = mock_module
                return agent

    def test_format_items_zero_based(self, agent):
        """Items are numbered from 0 with their display type."""
        text = agent._format_items([_item("Buy paint"), _item("Ship beta", InboxItemType.ACTION_IDEA)])

        assert text.splitlines() == ["0. Buy paint (Note)", "1. Ship beta (Action)"]

    def test_parse_plain_json(self, agent):
        result = agent._parse(
            '{"suggested_chunks": [{"name": "Home", "description": "House stuff", '
            '"item_indices": [0, "2", "x"], "should_convert": true, "reasoning": "same room", '
            '"suggested_outcome_title": "Renovated kitchen"}], '
            '"ungrouped_items": [1], "overall_advice": "Start with home"}'
        )

        [chunk] = result.suggested_chunks
        assert chunk.name == "Home"
        assert chunk.item_indices == [0, 2]
        assert chunk.should_convert is True
        assert chunk.suggested_outcome_title == "Renovated kitchen"
        assert chunk.suggested_purpose is None
        assert result.ungrouped_items == [1]
        assert result.overall_advice == "Start with home"

    def test_parse_fenced_json(self, agent):
        """Markdown code fences around the JSON are tolerated."""
        result = agent._parse('```json\n{"suggested_chunks": [], "ungrouped_items": [0, 1]}\n```')

        assert result.suggested_chunks == []
        assert result.ungrouped_items == [0, 1]

    def test_parse_string_false_is_false(self, agent):
        result = agent._parse('{"suggested_chunks": [{"name": "A", "should_convert": "false"}]}')

        assert result.suggested_chunks[0].should_convert is False

    def test_parse_invalid_json(self, agent):
        with pytest.raises(OracleUnavailableError):
            agent._parse("Sure! Here are some groupings...")

    def test_parse_non_object(self, agent):
        with pytest.raises(OracleUnavailableError):
            agent._parse("[1, 2, 3]")

    @pytest.mark.asyncio
    async def test_execute_calls_dspy(self, agent):
        agent.suggester.return_value = MagicMock(
            suggestions_json='{"suggested_chunks": [{"name": "A", "item_indices": [0, 1]}]}'
        )

        result = await agent.execute([_item("one"), _item("two")])

        assert result.suggested_chunks[0].item_indices == [0, 1]
        agent.suggester.assert_called_once()
        assert "0. one" in agent.suggester.call_args.kwargs["items"]

    @pytest.mark.asyncio
    async def test_execute_wraps_llm_errors(self, agent):
        agent.suggester.side_effect = ValueError("quota exceeded")

        with pytest.raises(OracleUnavailableError):
            await agent.execute([_item("one"), _item("two")])

    @pytest.mark.asyncio
    async def test_execute_with_metrics(self, agent):
        agent.suggester.return_value = MagicMock(suggestions_json='{"suggested_chunks": []}')

        result, metrics = await agent.execute_with_metrics([_item("one"), _item("two")])

        assert result.suggested_chunks == []
        assert metrics["agent_name"] == "ChunkSuggester"
        assert metrics["success"] is True
