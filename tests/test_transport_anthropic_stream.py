import asyncio
from typing import Any, AsyncIterator, Dict, List

from openai_compat.transport.anthropic_stream import iter_sse_frames


async def _iter_lines(lines: List[str]) -> AsyncIterator[str]:
    for line in lines:
        yield line


def _collect(lines: List[str]) -> List[Dict[str, Any]]:
    async def _run() -> List[Dict[str, Any]]:
        return [frame async for frame in iter_sse_frames(_iter_lines(lines))]

    return asyncio.run(_run())


def test_frames_are_grouped_by_blank_lines() -> None:
    frames = _collect(
        [
            "event: message_start",
            'data: {"type": "message_start", "message": {"id": "msg_1"}}',
            "",
            ": keep-alive",
            "event: ping",
            'data: {"type": "ping"}',
            "",
        ]
    )

    assert frames == [
        {
            "event": "message_start",
            "data": {"type": "message_start", "message": {"id": "msg_1"}},
        },
        {"event": "ping", "data": {"type": "ping"}},
    ]


def test_trailing_frame_without_blank_line_is_flushed() -> None:
    frames = _collect(["event: message_stop", 'data: {"type": "message_stop"}'])

    assert frames == [{"event": "message_stop", "data": {"type": "message_stop"}}]


def test_unparseable_data_is_returned_raw() -> None:
    frames = _collect(["data: not json", ""])

    assert frames == [{"event": "message", "data": "not json"}]
