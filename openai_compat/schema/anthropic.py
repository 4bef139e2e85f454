"""Anthropic Messages API request schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class TextBlock(BaseModel):
    """Anthropic text content block."""

    type: Literal["text"] = "text"
    text: str


class Base64ImageSource(BaseModel):
    """Inline base64 image payload."""

    type: Literal["base64"] = "base64"
    media_type: str
    data: str


class URLImageSource(BaseModel):
    """Image referenced by URL."""

    type: Literal["url"] = "url"
    url: str


class ImageBlock(BaseModel):
    """Anthropic image content block."""

    type: Literal["image"] = "image"
    source: Union[Base64ImageSource, URLImageSource]


class ToolUseBlock(BaseModel):
    """Anthropic tool use content block."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """Anthropic tool result content block."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str


ContentBlock = Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock]


class Message(BaseModel):
    """Anthropic message entry."""

    role: Literal["user", "assistant"]
    content: Union[str, List[ContentBlock]]


class ToolDefinition(BaseModel):
    """Anthropic tool definition."""

    name: str = Field(min_length=1)
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object"})


class ToolChoice(BaseModel):
    """Anthropic tool_choice object."""

    type: Literal["auto", "none", "any", "tool"] = "auto"
    name: Optional[str] = None
    disable_parallel_tool_use: Optional[bool] = None


class ThinkingConfig(BaseModel):
    """Extended reasoning configuration."""

    type: Literal["enabled"] = "enabled"
    budget_tokens: int


class RequestMetadata(BaseModel):
    """Anthropic request metadata."""

    user_id: Optional[str] = None


class MessagesRequest(BaseModel):
    """Anthropic /v1/messages request model."""

    model: Optional[str] = None
    messages: List[Message]
    max_tokens: int
    stream: bool = False
    system: Optional[str] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    tools: Optional[List[ToolDefinition]] = None
    tool_choice: Optional[ToolChoice] = None
    thinking: Optional[ThinkingConfig] = None
    metadata: Optional[RequestMetadata] = None
