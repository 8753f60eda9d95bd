"""Maps each tool call to a single memory API request and formats the reply.

Every outcome is returned as a ToolOutput. API failures, error fields in
responses and malformed arguments become flagged text results so a tool
call never faults at the protocol level.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
from urllib.parse import quote

from pydantic import ValidationError

from velixar_mcp.audit import AuditLog
from velixar_mcp.client import VelixarAPIError, VelixarClient
from velixar_mcp.models import (
    INPUT_MODELS,
    DeleteMemoryInput,
    ListMemoriesInput,
    MemoryPage,
    SearchMemoriesInput,
    StoreMemoryInput,
    ToolInput,
    ToolName,
    ToolOutput,
    UpdateMemoryInput,
)
from velixar_mcp.recall import NO_MEMORIES

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 120

UNKNOWN_TOOL_NOTE = (
    "Note: Velixar MCP tools are only available in the primary agent context. "
    "If you're seeing this in a subagent, memory operations must be handled by the primary agent."
)
SUBAGENT_HINT = (
    "Note: Velixar MCP tools are only available in the primary agent context. "
    "If you're using subagents, handle memory operations in the primary agent "
    "before/after delegating other tasks."
)


def unknown_tool_output(name: str) -> ToolOutput:
    return ToolOutput(text=f"Unknown tool: {name}\n\n{UNKNOWN_TOOL_NOTE}", is_error=True)


def error_output(message: str) -> ToolOutput:
    """Render a failure, adding the subagent hint where the message suggests it."""
    hint = f"\n\n{SUBAGENT_HINT}" if "tool" in message or "not found" in message else ""
    return ToolOutput(text=f"Error: {message}{hint}", is_error=True)


def raise_for_error_field(result: Any) -> Any:
    """Fail on an ``error`` field in a decoded response, whatever the HTTP status.

    Bodies that are not objects carry no error field and pass through.
    """
    if isinstance(result, dict) and result.get("error"):
        raise VelixarAPIError(str(result["error"]))
    return result


def preview(content: str, limit: int = PREVIEW_CHARS) -> str:
    return content[:limit] + "…" if len(content) > limit else content


class MemoryDispatcher:
    """Executes typed tool calls against the memory API."""

    def __init__(self, client: VelixarClient, user_id: str, audit: Optional[AuditLog] = None):
        self.client = client
        self.user_id = user_id
        self.audit = audit or AuditLog(None, user_id)
        self._handlers: Dict[ToolName, Callable[[Any], Awaitable[str]]] = {
            ToolName.STORE: self._store,
            ToolName.SEARCH: self._search,
            ToolName.LIST: self._list,
            ToolName.UPDATE: self._update,
            ToolName.DELETE: self._delete,
        }

    async def dispatch(self, call: ToolInput) -> ToolOutput:
        """Run one tool call. Never raises for API or contract failures."""
        tool = call.tool
        logger.debug("Dispatching %s", tool.value)
        try:
            text = await self._handlers[tool](call)
        except VelixarAPIError as e:
            logger.warning("%s failed: %s", tool.value, e.message)
            await self.audit.record(tool.value, f"error | {e.message}")
            return error_output(e.message)

        await self.audit.record(tool.value, "ok")
        return ToolOutput(text=text)

    async def dispatch_raw(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolOutput:
        """Validate a name and argument mapping into a typed call, then run it."""
        try:
            tool = ToolName(name)
        except ValueError:
            logger.warning("Unknown tool requested: %s", name)
            return unknown_tool_output(name)

        try:
            call = INPUT_MODELS[tool].model_validate(dict(arguments or {}))
        except ValidationError as e:
            return error_output(f"Invalid arguments for {name}: {e}")

        return await self.dispatch(call)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _store(self, params: StoreMemoryInput) -> str:
        result = await self.client.request(
            "/memory",
            method="POST",
            json_body={
                "content": params.content,
                "user_id": self.user_id,
                "tier": params.tier,
                "tags": params.tags,
            },
        )
        result = raise_for_error_field(result)
        if not isinstance(result, dict) or not result.get("id"):
            raise VelixarAPIError("Store succeeded but no ID returned")
        return f"✓ Stored memory (id: {result['id']})"

    async def _search(self, params: SearchMemoriesInput) -> str:
        query = {"q": params.query, "user_id": self.user_id}
        if params.limit:
            query["limit"] = str(params.limit)

        result = raise_for_error_field(await self.client.request("/memory/search", params=query))
        page = _parse_page(result)
        if not page.memories:
            return NO_MEMORIES

        lines = []
        for memory in page.memories:
            score = f" (score: {memory.score})" if memory.score is not None else ""
            lines.append(f"• {memory.content}{score}")
        return f"Found {page.total} memories:\n" + "\n".join(lines)

    async def _list(self, params: ListMemoriesInput) -> str:
        query = {"user_id": self.user_id}
        if params.limit:
            query["limit"] = str(params.limit)
        if params.cursor:
            query["cursor"] = params.cursor

        result = raise_for_error_field(await self.client.request("/memory/list", params=query))
        page = _parse_page(result)
        if not page.memories:
            return NO_MEMORIES

        lines = []
        for memory in page.memories:
            tags = f" [{', '.join(memory.tags)}]" if memory.tags else ""
            lines.append(f"• {memory.id}: {preview(memory.content)}{tags}")

        text = f"{page.total} memories:\n" + "\n".join(lines)
        if page.cursor:
            text += f"\nNext cursor: {page.cursor}"
        return text

    async def _update(self, params: UpdateMemoryInput) -> str:
        body: Dict[str, Any] = {"user_id": self.user_id}
        body.update(params.model_dump(exclude={"id"}, exclude_none=True))

        result = await self.client.request(
            f"/memory/{quote(params.id, safe='')}",
            method="PATCH",
            json_body=body,
        )
        raise_for_error_field(result)
        return f"✓ Updated memory: {params.id}"

    async def _delete(self, params: DeleteMemoryInput) -> str:
        result = await self.client.request(f"/memory/{quote(params.id, safe='')}", method="DELETE")
        raise_for_error_field(result)
        return f"✓ Deleted memory: {params.id}"


def _parse_page(result: Any) -> MemoryPage:
    try:
        return MemoryPage.model_validate(result)
    except ValidationError as e:
        raise VelixarAPIError(f"Unexpected API response: {e}") from e
