"""Data models and tool argument records."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TIER = 2


# ============================================================================
# Data Models
# ============================================================================

class Memory(BaseModel):
    """A memory as returned by the remote API.

    Only the fields rendered here are modelled; anything else the service
    sends is ignored.
    """
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    tier: Optional[int] = None
    score: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MemoryPage(BaseModel):
    """Body of a search or list response."""
    model_config = ConfigDict(extra="ignore")

    memories: List[Memory] = Field(default_factory=list)
    count: Optional[int] = None
    cursor: Optional[str] = None

    @property
    def total(self) -> int:
        return self.count if self.count is not None else len(self.memories)


class ToolName(str, Enum):
    """The closed set of tools this server exposes."""

    STORE = "velixar_store"
    SEARCH = "velixar_search"
    LIST = "velixar_list"
    UPDATE = "velixar_update"
    DELETE = "velixar_delete"


# ============================================================================
# Input Models for Tools
# ============================================================================

class StoreMemoryInput(BaseModel):
    """Input for storing a new memory."""
    model_config = ConfigDict(extra="forbid")
    tool: ClassVar[ToolName] = ToolName.STORE

    content: str = Field(..., description="The memory content to store", min_length=1)
    tags: List[str] = Field(default_factory=list, description="Optional tags for categorization")
    tier: int = Field(
        default=DEFAULT_TIER,
        description="Memory tier: 0=pinned, 1=session, 2=semantic (default), 3=org",
        ge=0,
        le=3,
    )


class SearchMemoriesInput(BaseModel):
    """Input for semantic search."""
    model_config = ConfigDict(extra="forbid")
    tool: ClassVar[ToolName] = ToolName.SEARCH

    query: str = Field(..., description="Search query", min_length=1)
    limit: Optional[int] = Field(None, description="Max results (default 5)", ge=1)


class ListMemoriesInput(BaseModel):
    """Input for paginated listing."""
    model_config = ConfigDict(extra="forbid")
    tool: ClassVar[ToolName] = ToolName.LIST

    limit: Optional[int] = Field(None, description="Max results (default 10)", ge=1)
    cursor: Optional[str] = Field(None, description="Pagination cursor from previous response")


class UpdateMemoryInput(BaseModel):
    """Input for a partial update; unset fields are never sent."""
    model_config = ConfigDict(extra="forbid")
    tool: ClassVar[ToolName] = ToolName.UPDATE

    id: str = Field(..., description="Memory ID to update", min_length=1)
    content: Optional[str] = Field(None, description="New content")
    tags: Optional[List[str]] = Field(None, description="New tags")


class DeleteMemoryInput(BaseModel):
    """Input for deleting a memory."""
    model_config = ConfigDict(extra="forbid")
    tool: ClassVar[ToolName] = ToolName.DELETE

    id: str = Field(..., description="Memory ID to delete", min_length=1)


ToolInput = Union[
    StoreMemoryInput,
    SearchMemoriesInput,
    ListMemoriesInput,
    UpdateMemoryInput,
    DeleteMemoryInput,
]

INPUT_MODELS = {
    model.tool: model
    for model in (
        StoreMemoryInput,
        SearchMemoriesInput,
        ListMemoriesInput,
        UpdateMemoryInput,
        DeleteMemoryInput,
    )
}


class ToolOutput(BaseModel):
    """Text payload returned for a tool call."""

    text: str
    is_error: bool = False
