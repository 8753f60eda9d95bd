"""
Velixar Memory MCP Server

Exposes the Velixar memory API to MCP clients over stdio:
- Tools: velixar_store, velixar_search, velixar_list, velixar_update, velixar_delete
- Resource: velixar://memories/recent (recalled once at startup)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Annotated, Any, Dict, List, Optional

import httpx
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.middleware import Middleware, MiddlewareContext
from pydantic import Field

from velixar_mcp import __version__
from velixar_mcp.audit import AuditLog
from velixar_mcp.client import VelixarClient
from velixar_mcp.config import ConfigError, Settings, load_settings, setup_logging
from velixar_mcp.dispatcher import MemoryDispatcher, unknown_tool_output
from velixar_mcp.models import DEFAULT_TIER, ToolName
from velixar_mcp.recall import (
    RECENT_MEMORIES_NAME,
    RECENT_MEMORIES_URI,
    RecallCache,
    describe_recent_memories,
    read_recent_memories,
)

SERVER_NAME = "velixar-mcp-server"

logger = logging.getLogger(__name__)


# ============================================================================
# Middleware
# ============================================================================

class VelixarMiddleware(Middleware):
    """Handles unknown tool names and hides the recall resource until it has content."""

    def __init__(self, recall: RecallCache):
        self.recall = recall

    async def on_call_tool(self, context: MiddlewareContext, call_next):
        name = context.message.name
        if name not in {tool.value for tool in ToolName}:
            raise ToolError(unknown_tool_output(name).text)
        return await call_next(context)

    async def on_list_resources(self, context: MiddlewareContext, call_next):
        resources = await call_next(context)
        listed = []
        for resource in resources:
            if str(resource.uri) != RECENT_MEMORIES_URI:
                listed.append(resource)
            elif self.recall.advertised:
                listed.append(resource.model_copy(
                    update={"description": describe_recent_memories(self.recall)}
                ))
        return listed


# ============================================================================
# Server Factory
# ============================================================================

def create_server(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastMCP:
    """Build the MCP server and wire tools and the recall resource to one API client."""
    client = VelixarClient(settings.api_url, settings.api_key, transport=transport)
    audit = AuditLog(settings.audit_log, settings.user_id)
    dispatcher = MemoryDispatcher(client, settings.user_id, audit)
    recall = RecallCache(
        client,
        settings.user_id,
        settings.recall_limit,
        enabled=settings.auto_recall,
    )

    @asynccontextmanager
    async def lifespan(server: FastMCP):
        # Not awaited: requests are served while the recall is in flight
        recall.start()
        try:
            yield
        finally:
            await recall.aclose()
            await client.aclose()

    mcp = FastMCP(SERVER_NAME, version=__version__, lifespan=lifespan)
    mcp.add_middleware(VelixarMiddleware(recall))

    async def run(tool: ToolName, arguments: Dict[str, Any]) -> str:
        supplied = {key: value for key, value in arguments.items() if value is not None}
        output = await dispatcher.dispatch_raw(tool.value, supplied)
        if output.is_error:
            raise ToolError(output.text)
        return output.text

    # ========================================================================
    # MCP Tools
    # ========================================================================

    @mcp.tool(
        name=ToolName.STORE.value,
        description=(
            "Store a memory for later retrieval. Use for important facts, user preferences, "
            "project context, or anything worth remembering."
        ),
        annotations={
            "title": "Store Memory",
            "readOnlyHint": False,
            "destructiveHint": False,
            "idempotentHint": False,
            "openWorldHint": True
        }
    )
    async def velixar_store(
        content: Annotated[str, Field(description="The memory content to store")],
        tags: Annotated[Optional[List[str]], Field(description="Optional tags for categorization")] = None,
        tier: Annotated[int, Field(
            description="Memory tier: 0=pinned, 1=session, 2=semantic (default), 3=org"
        )] = DEFAULT_TIER,
    ) -> str:
        return await run(ToolName.STORE, {"content": content, "tags": tags, "tier": tier})

    @mcp.tool(
        name=ToolName.SEARCH.value,
        description=(
            "Search stored memories by semantic similarity. "
            "Use to recall past context, preferences, or facts."
        ),
        annotations={
            "title": "Search Memories",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": True
        }
    )
    async def velixar_search(
        query: Annotated[str, Field(description="Search query")],
        limit: Annotated[Optional[int], Field(description="Max results (default 5)")] = None,
    ) -> str:
        return await run(ToolName.SEARCH, {"query": query, "limit": limit})

    @mcp.tool(
        name=ToolName.LIST.value,
        description=(
            "List memories with pagination. Returns full metadata including IDs, tags, "
            "salience, and timestamps."
        ),
        annotations={
            "title": "List Memories",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": True
        }
    )
    async def velixar_list(
        limit: Annotated[Optional[int], Field(description="Max results (default 10)")] = None,
        cursor: Annotated[Optional[str], Field(description="Pagination cursor from previous response")] = None,
    ) -> str:
        return await run(ToolName.LIST, {"limit": limit, "cursor": cursor})

    @mcp.tool(
        name=ToolName.UPDATE.value,
        description=(
            "Update an existing memory's content or tags. "
            "Use velixar_list to find memory IDs first."
        ),
        annotations={
            "title": "Update Memory",
            "readOnlyHint": False,
            "destructiveHint": True,
            "idempotentHint": True,
            "openWorldHint": True
        }
    )
    async def velixar_update(
        id: Annotated[str, Field(description="Memory ID to update")],
        content: Annotated[Optional[str], Field(description="New content")] = None,
        tags: Annotated[Optional[List[str]], Field(description="New tags")] = None,
    ) -> str:
        return await run(ToolName.UPDATE, {"id": id, "content": content, "tags": tags})

    @mcp.tool(
        name=ToolName.DELETE.value,
        description="Delete a memory by ID. Use velixar_list to find memory IDs first.",
        annotations={
            "title": "Delete Memory",
            "readOnlyHint": False,
            "destructiveHint": True,
            "idempotentHint": True,
            "openWorldHint": True
        }
    )
    async def velixar_delete(
        id: Annotated[str, Field(description="Memory ID to delete")],
    ) -> str:
        return await run(ToolName.DELETE, {"id": id})

    # ========================================================================
    # MCP Resources
    # ========================================================================

    @mcp.resource(
        RECENT_MEMORIES_URI,
        name=RECENT_MEMORIES_NAME,
        description="Most recent memories from your Velixar memory store",
        mime_type="text/plain",
    )
    async def recent_memories() -> str:
        """Recent memories recalled at startup, fetched on demand if still pending."""
        return await read_recent_memories(recall)

    return mcp


# ============================================================================
# Server Entry Point
# ============================================================================

def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        print(e, file=sys.stderr)
        sys.exit(1)

    setup_logging(settings.log_level)
    logger.info("Starting %s %s against %s", SERVER_NAME, __version__, settings.api_url)

    mcp = create_server(settings)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
