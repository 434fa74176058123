"""Agents DSPy - Oráculo de sugerencias."""

from planner.agents.base import BaseAgent, setup_dspy
from planner.agents.chunk_suggester import ChunkSuggesterAgent, SuggestChunks

__all__ = [
    "BaseAgent",
    "setup_dspy",
    "ChunkSuggesterAgent",
    "SuggestChunks",
]
