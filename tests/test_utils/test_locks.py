"""Tests for KeyedLock."""

import asyncio

import pytest

from planner.utils.locks import KeyedLock


class TestKeyedLock:
    """Test suite for per-key locks."""

    @pytest.mark.asyncio
    async def test_lock_is_held_only_inside_block(self):
        locks = KeyedLock()

        async with locks.hold("a"):
            assert locks.is_locked("a")
            assert not locks.is_locked("b")

        assert not locks.is_locked("a")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_same_key_serializes(self):
        """A second holder waits until the first releases."""
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("chunk"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("first"), worker("second"))

        assert order == ["first-in", "first-out", "second-in", "second-out"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        async with locks.hold("a"):
            async with locks.hold("b"):
                assert locks.is_locked("a") and locks.is_locked("b")
                assert len(locks) == 2
