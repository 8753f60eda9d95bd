"""Startup recall of recent memories, exposed as a resource."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import List, Optional

from velixar_mcp.client import VelixarAPIError, VelixarClient
from velixar_mcp.models import Memory, MemoryPage

logger = logging.getLogger(__name__)

RECENT_MEMORIES_URI = "velixar://memories/recent"
RECENT_MEMORIES_NAME = "Velixar — Recent Memories"
NO_MEMORIES = "No memories found."


class RecallState(Enum):
    """Lifecycle of the recall snapshot; FAILED means empty after an error."""

    UNFETCHED = "unfetched"
    POPULATED = "populated"
    FAILED = "failed"


class RecallCache:
    """Single snapshot of recent memories, fetched once per process.

    The cache owns the startup task so a resource read can wait for it
    rather than race it. There is no refresh or expiry.
    """

    def __init__(self, client: VelixarClient, user_id: str, limit: int, enabled: bool = True):
        self._client = client
        self._user_id = user_id
        self._limit = limit
        self.enabled = enabled
        self.state = RecallState.UNFETCHED
        self.memories: List[Memory] = []
        self._task: Optional[asyncio.Task] = None

    async def fetch(self) -> None:
        """Fetch recent memories into the snapshot.

        Failures leave an empty snapshot in the FAILED state and are only
        logged; they never reach a client.
        """
        if not self.enabled:
            return

        try:
            result = await self._client.request(
                "/memory/list",
                params={"user_id": self._user_id, "limit": str(self._limit)},
            )
            page = MemoryPage.model_validate(result)
        except (VelixarAPIError, ValueError) as e:
            logger.warning("Recall of recent memories failed: %s", e)
            self.memories = []
            self.state = RecallState.FAILED
            return

        self.memories = page.memories
        self.state = RecallState.POPULATED
        logger.info("Recalled %d recent memories", len(self.memories))

    def start(self) -> Optional[asyncio.Task]:
        """Launch the startup fetch in the background without awaiting it."""
        if not self.enabled or self._task is not None:
            return self._task
        self._task = asyncio.create_task(self.fetch(), name="velixar-recall")
        return self._task

    async def snapshot(self) -> List[Memory]:
        """Return the snapshot, fetching first if it has not been populated."""
        if self.state is RecallState.UNFETCHED and self.enabled:
            if self._task is not None and not self._task.done():
                await self._task
            else:
                await self.fetch()
        return self.memories

    @property
    def advertised(self) -> bool:
        """Whether the recent-memories resource should be listed."""
        return self.enabled and bool(self.memories)

    async def aclose(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None


def format_memory(memory: Memory) -> str:
    """Render a memory as ``content [tag1, tag2] (tier N)``."""
    tags = f" [{', '.join(memory.tags)}]" if memory.tags else ""
    tier = f" (tier {memory.tier})" if memory.tier is not None else ""
    return f"{memory.content}{tags}{tier}"


async def read_recent_memories(recall: RecallCache) -> str:
    """Render the snapshot as resource text, fetching it first if needed."""
    memories = await recall.snapshot()
    text = "\n---\n".join(format_memory(m) for m in memories)
    return text or NO_MEMORIES


def describe_recent_memories(recall: RecallCache) -> str:
    """Resource description carrying the current snapshot size."""
    return f"{len(recall.memories)} most recent memories from your Velixar memory store"
