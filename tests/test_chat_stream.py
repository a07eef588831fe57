import asyncio

import pytest

from ollama_stream.domain.errors import BackendError, DecodeError, StreamClosedError
from ollama_stream.domain.models.chat import ChatResult, TextEvent, ThinkingEvent, ToolCallsEvent
from ollama_stream.domain.models.usage import TokenUsage
from ollama_stream.domain.services.stream_processor import ChatEventStream, StreamState, consume_stream
from ollama_stream.runtime.signal import AbortSignal


async def records_of(*records):
    for record in records:
        yield record


def msg(content="", **extra):
    return {"message": {"role": "assistant", "content": content, **extra}, "done": False}


@pytest.mark.asyncio
async def test_hi_scenario_emits_text_then_result():
    stream = ChatEventStream(records_of(
        msg("H"),
        msg("i"),
        {"message": {"role": "assistant", "content": ""}, "done": True, "prompt_eval_count": 5, "eval_count": 2},
    ))

    steps = []
    while True:
        step = await stream.next()
        steps.append(step)
        if step.done:
            break

    assert [s.value for s in steps[:-1]] == [TextEvent("H"), TextEvent("i")]
    result = steps[-1].value
    assert result == ChatResult(text="Hi", usage=TokenUsage(prompt_tokens=5, completion_tokens=2))
    assert result.usage.total_tokens == 7
    assert result.thinking is None and result.tool_calls is None
    assert stream.state is StreamState.TERMINAL
    assert stream.result is result


@pytest.mark.asyncio
async def test_pulling_after_terminal_raises():
    stream = ChatEventStream(records_of(msg("x")))
    assert await consume_stream(stream) == ChatResult(text="x", usage=TokenUsage())
    with pytest.raises(StreamClosedError):
        await stream.next()


@pytest.mark.asyncio
async def test_events_within_a_record_are_ordered_text_thinking_tool_calls():
    call = {"id": "call_1", "function": {"name": "search", "arguments": {"query": "q"}}}
    stream = ChatEventStream(records_of(
        msg("a", thinking="t1", tool_calls=[call]),
        msg("", thinking="t2"),
        {"done": True},
    ))
    events = [event async for event in stream]

    assert [type(e) for e in events] == [TextEvent, ThinkingEvent, ToolCallsEvent, ThinkingEvent]
    assert events[2].tool_calls[0].name == "search"
    assert stream.result.thinking == "t1t2"
    assert stream.result.text == "a"


@pytest.mark.asyncio
async def test_result_aggregates_all_deltas():
    calls_a = [{"id": "a", "function": {"name": "one", "arguments": {}}}]
    calls_b = [{"id": "b", "function": {"name": "two", "arguments": '{"n": 1}'}}]
    stream = ChatEventStream(records_of(
        msg("Hel", tool_calls=calls_a),
        msg("lo", thinking="hmm", tool_calls=calls_b),
        {"message": {}, "done": True, "prompt_eval_count": 1, "eval_count": 1},
    ))
    result = await consume_stream(stream)

    assert result.text == "Hello"
    assert result.thinking == "hmm"
    assert [c.id for c in result.tool_calls] == ["a", "b"]
    assert result.tool_calls[1].arguments == {"n": 1}
    assert result.usage.total_tokens == 2


@pytest.mark.asyncio
async def test_records_without_events_are_skipped_transparently():
    stream = ChatEventStream(records_of(msg(""), {"message": {"role": "assistant"}}, msg("z")))
    step = await stream.next()
    assert step.done is False and step.value == TextEvent("z")


@pytest.mark.asyncio
async def test_structured_mode_accumulates_text_without_emitting_it():
    stream = ChatEventStream(records_of(msg('{"a"', thinking="plan"), msg(": 1}")), emit_text=False)
    seen = []
    result = await consume_stream(stream, seen.append)
    assert seen == [ThinkingEvent("plan")]
    assert result.text == '{"a": 1}'


@pytest.mark.asyncio
async def test_in_band_error_is_terminal():
    stream = ChatEventStream(records_of(msg("partial"), {"error": "model not found"}))
    assert (await stream.next()).value == TextEvent("partial")
    with pytest.raises(BackendError, match="model not found"):
        await stream.next()
    assert stream.result is None
    with pytest.raises(StreamClosedError):
        await stream.next()


@pytest.mark.asyncio
async def test_non_object_record_is_a_decode_error():
    stream = ChatEventStream(records_of([1, 2]))
    with pytest.raises(DecodeError):
        await stream.next()


@pytest.mark.asyncio
async def test_async_handler_is_awaited():
    seen = []

    async def handler(event):
        await asyncio.sleep(0)
        seen.append(event.content)

    await consume_stream(ChatEventStream(records_of(msg("a"), msg("b"))), handler)
    assert seen == ["a", "b"]


@pytest.mark.asyncio
async def test_aborted_signal_stops_the_stream_before_next_record():
    signal = AbortSignal()
    stream = ChatEventStream(records_of(msg("a"), msg("b")), signal=signal)
    assert (await stream.next()).value == TextEvent("a")
    signal.abort()
    with pytest.raises(asyncio.CancelledError):
        await stream.next()
