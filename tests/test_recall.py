"""Tests for the startup recall and the recent-memories resource."""

import asyncio

import httpx
import pytest

from velixar_mcp.client import VelixarClient
from velixar_mcp.models import Memory
from velixar_mcp.recall import (
    RecallCache,
    RecallState,
    describe_recent_memories,
    format_memory,
    read_recent_memories,
)


MEMORIES = {
    "memories": [
        {"id": "m1", "content": "prefers tabs", "tags": ["style"], "tier": 0},
        {"id": "m2", "content": "staging is eu-west-1", "tags": [], "tier": 2},
    ],
    "count": 2,
}


class TestFetch:
    @pytest.mark.asyncio
    async def test_populates_snapshot(self, api, client):
        api.respond("/memory/list", MEMORIES)
        recall = RecallCache(client, "test-user", 10)

        await recall.fetch()

        assert recall.state is RecallState.POPULATED
        assert [m.id for m in recall.memories] == ["m1", "m2"]
        assert api.last.url.params["limit"] == "10"
        assert api.last.url.params["user_id"] == "test-user"

    @pytest.mark.asyncio
    async def test_failure_leaves_empty_snapshot(self, api, client):
        api.respond("/memory/list", {"error": "down"}, status=503)
        recall = RecallCache(client, "test-user", 10)

        await recall.fetch()

        assert recall.state is RecallState.FAILED
        assert recall.memories == []
        assert not recall.advertised

    @pytest.mark.asyncio
    async def test_disabled_does_nothing(self, api, client):
        recall = RecallCache(client, "test-user", 10, enabled=False)

        await recall.fetch()

        assert recall.start() is None
        assert recall.state is RecallState.UNFETCHED
        assert api.requests == []


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_waits_for_startup_task(self, api, client):
        api.respond("/memory/list", MEMORIES)
        recall = RecallCache(client, "test-user", 10)

        recall.start()
        memories = await recall.snapshot()

        assert len(memories) == 2
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_fetches_on_demand(self, api, client):
        api.respond("/memory/list", MEMORIES)
        recall = RecallCache(client, "test-user", 10)

        memories = await recall.snapshot()

        assert len(memories) == 2
        assert recall.state is RecallState.POPULATED

    @pytest.mark.asyncio
    async def test_no_refetch_after_failure(self, api, client):
        api.respond("/memory/list", {}, status=500)
        recall = RecallCache(client, "test-user", 10)

        await recall.fetch()
        await recall.snapshot()

        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending_task(self):
        async def handler(request):
            await asyncio.sleep(10)
            return httpx.Response(200, json=MEMORIES)

        client = VelixarClient("https://api.test", "k", transport=httpx.MockTransport(handler))
        recall = RecallCache(client, "test-user", 10)

        task = recall.start()
        await asyncio.sleep(0)
        await recall.aclose()

        assert task.cancelled()
        assert recall.state is RecallState.UNFETCHED


class TestRender:
    def test_format_memory(self):
        memory = Memory(content="prefers tabs", tags=["style", "editor"], tier=0)
        assert format_memory(memory) == "prefers tabs [style, editor] (tier 0)"

    def test_format_memory_without_tags_or_tier(self):
        assert format_memory(Memory(content="bare")) == "bare"

    @pytest.mark.asyncio
    async def test_read_joins_with_separator(self, api, client):
        api.respond("/memory/list", MEMORIES)
        recall = RecallCache(client, "test-user", 10)

        text = await read_recent_memories(recall)

        assert text == "prefers tabs [style] (tier 0)\n---\nstaging is eu-west-1 (tier 2)"
        assert describe_recent_memories(recall) == "2 most recent memories from your Velixar memory store"

    @pytest.mark.asyncio
    async def test_read_empty_placeholder(self, api, client):
        api.respond("/memory/list", {"memories": []})
        recall = RecallCache(client, "test-user", 10)

        assert await read_recent_memories(recall) == "No memories found."

    @pytest.mark.asyncio
    async def test_read_when_disabled(self, api, client):
        recall = RecallCache(client, "test-user", 10, enabled=False)

        assert await read_recent_memories(recall) == "No memories found."
        assert api.requests == []
