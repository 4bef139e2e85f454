from typing import Any, Dict, List, Tuple

import pytest

from openai_compat.errors.openai_error import MalformedRequest
from openai_compat.mapping import openai_to_anthropic
from openai_compat.mapping.openai_to_anthropic import (
    PendingToolResults,
    map_openai_request_to_anthropic,
)
from openai_compat.schema.openai import ChatMessage


class _RecordingLogger:
    def __init__(self) -> None:
        self.records: List[Tuple[str, str, Dict[str, Any]]] = []

    def _record(self, level: str, event: str, **kwargs: Any) -> None:
        self.records.append((level, event, kwargs))

    def debug(self, event: str, **kwargs: Any) -> None:
        self._record("debug", event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._record("warning", event, **kwargs)


def _map(request: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
    return map_openai_request_to_anthropic(request, **kwargs).model_dump(
        exclude_none=True
    )


def _tool_call(call_id: str, name: str, arguments: str) -> Dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


def test_system_message_is_lifted_out_of_conversation() -> None:
    mapped = _map(
        {
            "messages": [
                {"role": "system", "content": "Be terse."},
                {"role": "user", "content": "Hi"},
            ]
        }
    )

    assert mapped["system"] == "Be terse."
    assert mapped["messages"] == [{"role": "user", "content": "Hi"}]


def test_multiple_system_messages_are_joined() -> None:
    mapped = _map(
        {
            "messages": [
                {"role": "system", "content": "A"},
                {"role": "user", "content": "Hi"},
                {"role": "developer", "content": [{"type": "text", "text": "B"}]},
            ]
        }
    )

    assert mapped["system"] == "A\n\nB"
    assert [message["role"] for message in mapped["messages"]] == ["user"]


def test_no_system_message_omits_system() -> None:
    mapped = _map({"messages": [{"role": "user", "content": "Hi"}]})

    assert "system" not in mapped


def test_consecutive_tool_results_merge_into_one_user_message() -> None:
    mapped = _map(
        {
            "model": "claude-sonnet-4-5",
            "messages": [
                {"role": "user", "content": "Weather in Paris and Rome?"},
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        _tool_call("call_1", "get_weather", '{"city": "Paris"}'),
                        _tool_call("call_2", "get_weather", '{"city": "Rome"}'),
                    ],
                },
                {"role": "tool", "tool_call_id": "call_1", "content": "sunny"},
                {"role": "tool", "tool_call_id": "call_2", "content": "rainy"},
                {"role": "user", "content": "Thanks"},
            ],
        }
    )

    messages = mapped["messages"]
    assert [message["role"] for message in messages] == [
        "user",
        "assistant",
        "user",
        "user",
    ]
    assert messages[1]["content"] == [
        {
            "type": "tool_use",
            "id": "call_1",
            "name": "get_weather",
            "input": {"city": "Paris"},
        },
        {
            "type": "tool_use",
            "id": "call_2",
            "name": "get_weather",
            "input": {"city": "Rome"},
        },
    ]
    assert messages[2]["content"] == [
        {"type": "tool_result", "tool_use_id": "call_1", "content": "sunny"},
        {"type": "tool_result", "tool_use_id": "call_2", "content": "rainy"},
    ]
    assert messages[3]["content"] == "Thanks"


def test_trailing_tool_results_are_flushed() -> None:
    mapped = _map(
        {
            "messages": [
                {"role": "user", "content": "Go"},
                {
                    "role": "assistant",
                    "tool_calls": [_tool_call("call_1", "run", "{}")],
                },
                {"role": "tool", "tool_call_id": "call_1", "content": "done"},
            ]
        }
    )

    last = mapped["messages"][-1]
    assert last["role"] == "user"
    assert last["content"] == [
        {"type": "tool_result", "tool_use_id": "call_1", "content": "done"}
    ]


def test_assistant_text_and_tool_calls_become_blocks() -> None:
    mapped = _map(
        {
            "messages": [
                {"role": "user", "content": "Go"},
                {
                    "role": "assistant",
                    "content": "Let me check.",
                    "tool_calls": [_tool_call("call_1", "lookup", '{"q": 1}')],
                },
            ]
        }
    )

    assert mapped["messages"][1]["content"] == [
        {"type": "text", "text": "Let me check."},
        {"type": "tool_use", "id": "call_1", "name": "lookup", "input": {"q": 1}},
    ]


def test_invalid_tool_arguments_become_empty_object(monkeypatch) -> None:
    recorder = _RecordingLogger()
    monkeypatch.setattr(openai_to_anthropic, "logger", recorder)

    mapped = _map(
        {
            "messages": [
                {"role": "user", "content": "Go"},
                {"role": "assistant", "tool_calls": [_tool_call("call_1", "run", "{")]},
            ]
        }
    )

    assert mapped["messages"][1]["content"][0]["input"] == {}
    assert [record[1] for record in recorder.records] == ["tool_arguments_unparseable"]


def test_non_object_tool_arguments_become_empty_object(monkeypatch) -> None:
    recorder = _RecordingLogger()
    monkeypatch.setattr(openai_to_anthropic, "logger", recorder)

    mapped = _map(
        {
            "messages": [
                {"role": "user", "content": "Go"},
                {"role": "assistant", "tool_calls": [_tool_call("call_1", "run", "[1]")]},
            ]
        }
    )

    assert mapped["messages"][1]["content"][0]["input"] == {}
    assert recorder.records[0][1] == "tool_arguments_not_object"


def test_image_url_maps_to_url_source() -> None:
    mapped = _map(
        {
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "What is this?"},
                        {"type": "image_url", "image_url": {"url": "https://x/y.png"}},
                    ],
                }
            ]
        }
    )

    assert mapped["messages"][0]["content"] == [
        {"type": "text", "text": "What is this?"},
        {"type": "image", "source": {"type": "url", "url": "https://x/y.png"}},
    ]


def test_data_uri_maps_to_base64_source() -> None:
    mapped = _map(
        {
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {"url": "data:image/png;base64,iVBORw0KGgo="},
                        }
                    ],
                }
            ]
        }
    )

    assert mapped["messages"][0]["content"] == [
        {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": "image/png",
                "data": "iVBORw0KGgo=",
            },
        }
    ]


def test_malformed_data_uri_is_dropped() -> None:
    mapped = _map(
        {
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "look"},
                        {"type": "image_url", "image_url": {"url": "data:image/png,abc"}},
                    ],
                }
            ]
        }
    )

    assert mapped["messages"][0]["content"] == "look"


def test_unknown_content_parts_are_dropped() -> None:
    mapped = _map(
        {
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_audio", "input_audio": {"data": "..."}},
                        {"type": "text", "text": "hello"},
                    ],
                }
            ]
        }
    )

    assert mapped["messages"][0]["content"] == "hello"


@pytest.mark.parametrize(
    ("fields", "expected"),
    [
        ({}, 4096),
        ({"max_tokens": 100}, 100),
        ({"max_completion_tokens": 200}, 200),
        ({"max_tokens": 100, "max_completion_tokens": 200}, 200),
        ({"max_completion_tokens": 0, "max_tokens": 100}, 0),
    ],
)
def test_max_tokens_precedence(fields: Dict[str, Any], expected: int) -> None:
    request = {"messages": [{"role": "user", "content": "Hi"}], **fields}

    assert _map(request)["max_tokens"] == expected


def test_sampling_fields_are_copied() -> None:
    mapped = _map(
        {
            "messages": [{"role": "user", "content": "Hi"}],
            "temperature": 0.2,
            "top_p": 0.9,
            "stream": True,
            "user": "user-123",
        }
    )

    assert mapped["temperature"] == 0.2
    assert mapped["top_p"] == 0.9
    assert mapped["stream"] is True
    assert mapped["metadata"] == {"user_id": "user-123"}


@pytest.mark.parametrize(
    ("stop", "expected"),
    [("END", ["END"]), (["a", "b"], ["a", "b"])],
)
def test_stop_becomes_stop_sequences(stop: Any, expected: List[str]) -> None:
    mapped = _map({"messages": [{"role": "user", "content": "Hi"}], "stop": stop})

    assert mapped["stop_sequences"] == expected


def test_function_tools_are_converted() -> None:
    parameters = {"type": "object", "properties": {"city": {"type": "string"}}}
    mapped = _map(
        {
            "messages": [{"role": "user", "content": "Hi"}],
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": "get_weather",
                        "description": "Look up weather",
                        "parameters": parameters,
                    },
                },
                {"type": "function", "function": {"name": "ping"}},
            ],
        }
    )

    assert mapped["tools"] == [
        {
            "name": "get_weather",
            "description": "Look up weather",
            "input_schema": parameters,
        },
        {"name": "ping", "description": "", "input_schema": {"type": "object"}},
    ]


def test_legacy_flat_tool_shape_is_accepted() -> None:
    mapped = _map(
        {
            "messages": [{"role": "user", "content": "Hi"}],
            "tools": [{"name": "search", "parameters": {"type": "object"}}],
        }
    )

    assert mapped["tools"][0]["name"] == "search"


def test_tool_without_name_is_rejected() -> None:
    with pytest.raises(MalformedRequest):
        map_openai_request_to_anthropic(
            {
                "messages": [{"role": "user", "content": "Hi"}],
                "tools": [{"type": "function", "function": {"description": "x"}}],
            }
        )


@pytest.mark.parametrize(
    ("tool_choice", "expected"),
    [
        ("auto", {"type": "auto"}),
        ("none", {"type": "none"}),
        ("required", {"type": "any"}),
        (
            {"type": "function", "function": {"name": "get_weather"}},
            {"type": "tool", "name": "get_weather"},
        ),
        ({"type": "function", "function": {}}, {"type": "auto"}),
    ],
)
def test_tool_choice_mapping(tool_choice: Any, expected: Dict[str, Any]) -> None:
    mapped = _map(
        {
            "messages": [{"role": "user", "content": "Hi"}],
            "tools": [{"type": "function", "function": {"name": "get_weather"}}],
            "tool_choice": tool_choice,
        }
    )

    assert mapped["tool_choice"] == expected


def test_parallel_tool_calls_false_disables_parallel_use() -> None:
    mapped = _map(
        {
            "messages": [{"role": "user", "content": "Hi"}],
            "tools": [{"type": "function", "function": {"name": "get_weather"}}],
            "parallel_tool_calls": False,
        }
    )

    assert mapped["tool_choice"] == {
        "type": "auto",
        "disable_parallel_tool_use": True,
    }


@pytest.mark.parametrize(
    ("model", "budget"),
    [
        ("claude-sonnet-4-5-thinking", 10000),
        ("gemini-3-pro", 10000),
        ("claude-sonnet-4-5", None),
        (None, None),
    ],
)
def test_reasoning_enabled_by_model_name(model: Any, budget: Any) -> None:
    mapped = _map({"model": model, "messages": [{"role": "user", "content": "Hi"}]})

    if budget is None:
        assert "thinking" not in mapped
    else:
        assert mapped["thinking"] == {"type": "enabled", "budget_tokens": budget}


def test_reasoning_rules_can_be_overridden() -> None:
    mapped = _map(
        {"model": "my-reasoner", "messages": [{"role": "user", "content": "Hi"}]},
        thinking_rules=(("reasoner", 2048),),
    )

    assert mapped["thinking"] == {"type": "enabled", "budget_tokens": 2048}


def test_unsupported_fields_are_logged_not_forwarded(monkeypatch) -> None:
    recorder = _RecordingLogger()
    monkeypatch.setattr(openai_to_anthropic, "logger", recorder)

    mapped = _map(
        {
            "messages": [{"role": "user", "content": "Hi"}],
            "n": 3,
            "logprobs": True,
            "presence_penalty": 0.5,
            "response_format": {"type": "json_object"},
            "seed": 7,
        }
    )

    features = [
        record[2]["feature"]
        for record in recorder.records
        if record[1] == "unsupported_feature"
    ]
    assert features == [
        "n",
        "logprobs",
        "frequency_penalty/presence_penalty",
        "response_format",
    ]
    for key in ("n", "logprobs", "presence_penalty", "response_format", "seed"):
        assert key not in mapped


@pytest.mark.parametrize(
    "request_body",
    [
        {},
        {"messages": "hello"},
        {"messages": [{"role": "tool", "content": "orphan"}]},
        {"messages": [{"role": "robot", "content": "beep"}]},
        ["not", "an", "object"],
    ],
)
def test_malformed_requests_are_rejected(request_body: Any) -> None:
    with pytest.raises(MalformedRequest):
        map_openai_request_to_anthropic(request_body)


def test_pending_tool_results_flush_states() -> None:
    pending = PendingToolResults()
    assert pending.state == "idle"
    assert pending.flush() is None

    pending.add(ChatMessage(role="tool", tool_call_id="call_1", content="one"))
    pending.add(ChatMessage(role="tool", tool_call_id="call_2", content="two"))
    assert pending.state == "accumulating"

    flushed = pending.flush()
    assert flushed is not None
    assert flushed.role == "user"
    assert [block.tool_use_id for block in flushed.content] == ["call_1", "call_2"]
    assert pending.state == "idle"
    assert pending.flush() is None


def test_output_never_has_more_messages_than_input() -> None:
    request = {
        "messages": [
            {"role": "system", "content": "S"},
            {"role": "user", "content": "Q"},
            {"role": "assistant", "tool_calls": [_tool_call("c1", "f", "{}")]},
            {"role": "tool", "tool_call_id": "c1", "content": "r1"},
            {"role": "tool", "tool_call_id": "c1", "content": "r2"},
        ]
    }

    mapped = _map(request)

    assert len(mapped["messages"]) <= len(request["messages"])
    assert all(message["role"] != "system" for message in mapped["messages"])
