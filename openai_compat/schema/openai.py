"""OpenAI Chat Completions request schemas."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TextPart(BaseModel):
    """OpenAI text content part."""

    type: Literal["text"] = "text"
    text: str


class ImageURL(BaseModel):
    """Image reference inside an image_url content part."""

    model_config = ConfigDict(extra="allow")

    url: str
    detail: Optional[str] = None


class ImageURLPart(BaseModel):
    """OpenAI image_url content part."""

    type: Literal["image_url"] = "image_url"
    image_url: Union[ImageURL, str]

    @property
    def url(self) -> str:
        if isinstance(self.image_url, ImageURL):
            return self.image_url.url
        return self.image_url


# Unknown part types (audio, files, ...) are kept as raw dicts and dropped later.
ContentPart = Annotated[
    Union[TextPart, ImageURLPart, Dict[str, Any]],
    Field(union_mode="left_to_right"),
]


class FunctionCall(BaseModel):
    """Function name and JSON-encoded arguments of a tool call."""

    name: str
    arguments: Optional[str] = None


class ToolCall(BaseModel):
    """Tool call issued by an assistant message."""

    id: str
    type: str = "function"
    function: FunctionCall


class ChatMessage(BaseModel):
    """OpenAI chat message."""

    model_config = ConfigDict(extra="allow")

    role: Literal["system", "developer", "user", "assistant", "tool"]
    content: Optional[Union[str, List[ContentPart]]] = None
    name: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None

    @model_validator(mode="after")
    def _tool_message_has_call_id(self) -> "ChatMessage":
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("tool messages require tool_call_id")
        return self


class FunctionDefinition(BaseModel):
    """Function definition wrapped by a function tool."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class ToolDefinition(BaseModel):
    """OpenAI tool definition.

    The flat ``name``/``description``/``parameters`` fields cover the legacy
    shape some clients still send instead of ``{"type": "function",
    "function": {...}}``.
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    function: Optional[FunctionDefinition] = None
    name: Optional[str] = None
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class ChatCompletionRequest(BaseModel):
    """OpenAI /v1/chat/completions request model."""

    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    messages: List[ChatMessage]
    max_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop: Optional[Union[str, List[str]]] = None
    stream: Optional[bool] = None
    tools: Optional[List[ToolDefinition]] = None
    tool_choice: Optional[Any] = None
    parallel_tool_calls: Optional[bool] = None
    user: Optional[str] = None

    # Accepted but not forwarded.
    n: Optional[int] = None
    logprobs: Optional[bool] = None
    top_logprobs: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    response_format: Optional[Dict[str, Any]] = None
    seed: Optional[int] = None
