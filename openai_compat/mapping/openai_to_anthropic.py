"""Map OpenAI Chat Completions requests to Anthropic Messages requests."""

from __future__ import annotations

import json
import re
from typing import Any, List, Literal, Mapping, Optional, Tuple, Union

import structlog
from pydantic import ValidationError

from openai_compat.errors.openai_error import MalformedRequest
from openai_compat.mapping.constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_THINKING_RULES,
    ThinkingRules,
    thinking_budget_for_model,
)
from openai_compat.schema.anthropic import (
    Base64ImageSource,
    ContentBlock,
    ImageBlock,
    Message,
    MessagesRequest,
    RequestMetadata,
    TextBlock,
    ThinkingConfig,
    ToolChoice,
    ToolDefinition as AnthropicToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    URLImageSource,
)
from openai_compat.schema.openai import (
    ChatCompletionRequest,
    ChatMessage,
    ImageURLPart,
    TextPart,
    ToolDefinition,
)

logger = structlog.get_logger(__name__)

DATA_URI_RE = re.compile(r"^data:([^;]+);base64,(.+)$")

SYSTEM_ROLES = frozenset({"system", "developer"})


def _extract_text_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(part.text for part in content if isinstance(part, TextPart))
    return ""


def _parse_tool_arguments(arguments: Optional[str], call_id: str) -> dict:
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except (TypeError, json.JSONDecodeError) as exc:
        logger.warning(
            "tool_arguments_unparseable",
            tool_call_id=call_id,
            error=str(exc),
        )
        return {}
    if not isinstance(parsed, dict):
        logger.warning(
            "tool_arguments_not_object",
            tool_call_id=call_id,
            value_type=type(parsed).__name__,
        )
        return {}
    return parsed


def _image_part_to_block(part: ImageURLPart) -> Optional[ImageBlock]:
    url = part.url
    if url.startswith("data:"):
        match = DATA_URI_RE.match(url)
        if match is None:
            logger.debug("image_data_uri_malformed", prefix=url[:32])
            return None
        return ImageBlock(
            source=Base64ImageSource(media_type=match.group(1), data=match.group(2))
        )
    return ImageBlock(source=URLImageSource(url=url))


def _collapse_content(blocks: List[ContentBlock]) -> Union[str, List[ContentBlock]]:
    if len(blocks) == 1 and isinstance(blocks[0], TextBlock):
        return blocks[0].text
    return blocks


def _user_content(content: Any) -> Union[str, List[ContentBlock]]:
    if content is None:
        return ""
    if isinstance(content, str):
        return content

    blocks: List[ContentBlock] = []
    for part in content:
        if isinstance(part, TextPart):
            blocks.append(TextBlock(text=part.text))
            continue
        if isinstance(part, ImageURLPart):
            image = _image_part_to_block(part)
            if image is not None:
                blocks.append(image)
            continue
        part_type = part.get("type") if isinstance(part, dict) else None
        logger.debug("content_part_dropped", part_type=part_type)
    return _collapse_content(blocks)


def _assistant_content(message: ChatMessage) -> Union[str, List[ContentBlock]]:
    blocks: List[ContentBlock] = []
    if message.content:
        text = _extract_text_content(message.content)
        if text:
            blocks.append(TextBlock(text=text))

    for tool_call in message.tool_calls or []:
        if tool_call.type != "function":
            continue
        blocks.append(
            ToolUseBlock(
                id=tool_call.id,
                name=tool_call.function.name,
                input=_parse_tool_arguments(tool_call.function.arguments, tool_call.id),
            )
        )

    if not blocks:
        return ""
    return _collapse_content(blocks)


class PendingToolResults:
    """Buffer for consecutive ``tool`` messages.

    ``idle`` while empty, ``accumulating`` once a result is added. Results are
    released as one synthetic user message by :meth:`flush`, which happens
    before any non-tool message and once at the end of the conversation.
    """

    def __init__(self) -> None:
        self._results: List[ToolResultBlock] = []

    @property
    def state(self) -> Literal["idle", "accumulating"]:
        return "accumulating" if self._results else "idle"

    def add(self, message: ChatMessage) -> None:
        self._results.append(
            ToolResultBlock(
                tool_use_id=message.tool_call_id or "",
                content=_extract_text_content(message.content),
            )
        )

    def flush(self) -> Optional[Message]:
        if not self._results:
            return None
        results: List[ContentBlock] = list(self._results)
        self._results = []
        return Message(role="user", content=results)


def _convert_messages(messages: List[ChatMessage]) -> List[Message]:
    converted: List[Message] = []
    pending = PendingToolResults()

    for message in messages:
        if message.role == "tool":
            pending.add(message)
            continue

        flushed = pending.flush()
        if flushed is not None:
            converted.append(flushed)

        if message.role == "user":
            converted.append(Message(role="user", content=_user_content(message.content)))
        elif message.role == "assistant":
            converted.append(
                Message(role="assistant", content=_assistant_content(message))
            )

    flushed = pending.flush()
    if flushed is not None:
        converted.append(flushed)
    return converted


def _split_system(
    messages: List[ChatMessage],
) -> Tuple[Optional[str], List[ChatMessage]]:
    system_texts: List[str] = []
    rest: List[ChatMessage] = []
    for message in messages:
        if message.role in SYSTEM_ROLES:
            system_texts.append(_extract_text_content(message.content))
        else:
            rest.append(message)
    system = "\n\n".join(system_texts)
    return (system or None), rest


def _convert_tool(tool: ToolDefinition) -> AnthropicToolDefinition:
    function = tool.function
    if tool.type == "function" and function is not None:
        name = function.name
        description = function.description
        parameters = function.parameters
    else:
        name = tool.name or (function.name if function else None)
        description = tool.description or (function.description if function else None)
        parameters = tool.parameters or (function.parameters if function else None)

    if not name:
        raise MalformedRequest("tool definitions require a non-empty name")
    return AnthropicToolDefinition(
        name=name,
        description=description or "",
        input_schema=parameters or {"type": "object"},
    )


def _convert_tool_choice(tool_choice: Any) -> ToolChoice:
    if tool_choice == "auto":
        return ToolChoice(type="auto")
    if tool_choice == "none":
        return ToolChoice(type="none")
    if tool_choice == "required":
        return ToolChoice(type="any")
    if isinstance(tool_choice, Mapping) and tool_choice.get("type") == "function":
        function = tool_choice.get("function")
        name = function.get("name") if isinstance(function, Mapping) else None
        if isinstance(name, str) and name:
            return ToolChoice(type="tool", name=name)
    return ToolChoice(type="auto")


def _normalize_stop(stop: Union[str, List[str], None]) -> Optional[List[str]]:
    if not stop:
        return None
    if isinstance(stop, str):
        return [stop]
    return list(stop)


def _log_unsupported(request: ChatCompletionRequest) -> None:
    if request.n is not None and request.n > 1:
        logger.info("unsupported_feature", feature="n", value=request.n)
    if request.logprobs or request.top_logprobs:
        logger.info("unsupported_feature", feature="logprobs")
    if request.frequency_penalty or request.presence_penalty:
        logger.info(
            "unsupported_feature",
            feature="frequency_penalty/presence_penalty",
        )
    if request.response_format:
        logger.info(
            "unsupported_feature",
            feature="response_format",
            value=request.response_format.get("type"),
        )


def parse_chat_request(
    request: Union[ChatCompletionRequest, Mapping[str, Any]],
) -> ChatCompletionRequest:
    """Validate a raw request body, raising ``MalformedRequest`` on failure."""

    if isinstance(request, ChatCompletionRequest):
        return request
    if not isinstance(request, Mapping):
        raise MalformedRequest("request body must be a JSON object")
    messages = request.get("messages")
    if messages is None:
        raise MalformedRequest("'messages' is required")
    if not isinstance(messages, (list, tuple)):
        raise MalformedRequest("'messages' must be an array")
    try:
        return ChatCompletionRequest.model_validate(dict(request))
    except ValidationError as exc:
        raise MalformedRequest(str(exc)) from exc


def map_openai_request_to_anthropic(
    request: Union[ChatCompletionRequest, Mapping[str, Any]],
    thinking_rules: ThinkingRules = DEFAULT_THINKING_RULES,
) -> MessagesRequest:
    """Convert an OpenAI Chat Completions request into an Anthropic request."""

    chat_request = parse_chat_request(request)
    system, conversation = _split_system(chat_request.messages)

    if chat_request.max_completion_tokens is not None:
        max_tokens = chat_request.max_completion_tokens
    elif chat_request.max_tokens is not None:
        max_tokens = chat_request.max_tokens
    else:
        max_tokens = DEFAULT_MAX_TOKENS

    tools: Optional[List[AnthropicToolDefinition]] = None
    if chat_request.tools:
        tools = [_convert_tool(tool) for tool in chat_request.tools]

    tool_choice: Optional[ToolChoice] = None
    if chat_request.tool_choice:
        tool_choice = _convert_tool_choice(chat_request.tool_choice)
    if chat_request.parallel_tool_calls is False and tools:
        tool_choice = tool_choice or ToolChoice(type="auto")
        if tool_choice.type != "none":
            tool_choice.disable_parallel_tool_use = True

    thinking: Optional[ThinkingConfig] = None
    budget = thinking_budget_for_model(chat_request.model, thinking_rules)
    if budget is not None:
        thinking = ThinkingConfig(budget_tokens=budget)

    metadata: Optional[RequestMetadata] = None
    if chat_request.user:
        metadata = RequestMetadata(user_id=chat_request.user)

    _log_unsupported(chat_request)

    return MessagesRequest(
        model=chat_request.model,
        messages=_convert_messages(conversation),
        max_tokens=max_tokens,
        stream=bool(chat_request.stream),
        system=system,
        temperature=chat_request.temperature,
        top_p=chat_request.top_p,
        stop_sequences=_normalize_stop(chat_request.stop),
        tools=tools,
        tool_choice=tool_choice,
        thinking=thinking,
        metadata=metadata,
    )
