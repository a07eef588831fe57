import asyncio
import json

import httpx
import pytest
from pydantic import BaseModel

from ollama_stream.application.chat_service import ChatService, ChatSession, TurnCallbacks
from ollama_stream.domain.errors import BackendError
from ollama_stream.domain.models.conversation import Message, MessageRole
from ollama_stream.domain.models.result import Err, Ok
from ollama_stream.domain.models.tool import ToolCall, define_tool
from ollama_stream.domain.models.usage import UsageState
from ollama_stream.infrastructure.tools.registry import create_tool_registry
from ollama_stream.infrastructure.tools.schemas import JsonSchema, ModelSchema
from ollama_stream.plugins import build_default_registry
from ollama_stream.runtime.spinner import SPINNER_CLEAR

from fakes import ScriptedBackend, make_client, ndjson, text_turn, tool_turn


class Answer(BaseModel):
    answer: str


@pytest.mark.asyncio
async def test_hi_end_to_end_over_http(sink):
    def handler(request):
        return httpx.Response(200, content=ndjson(*text_turn("Hi", prompt=5, completion=2)))

    client = make_client(handler)
    service = ChatService(client, usage=UsageState.initial(8192), sink=sink, spinner_interval=0.01)
    history = [Message.user("hello")]
    texts = []
    usages = []

    outcome = await service.run_turn(
        history, callbacks=TurnCallbacks(on_text=texts.append, on_usage=usages.append)
    )

    assert texts == ["H", "i"]
    assert outcome.text == "Hi"
    assert outcome.messages == [Message.assistant("Hi")]
    assert outcome.iterations == 1 and not outcome.limit_hit
    assert history == [Message.user("hello")]
    assert service.usage.cumulative.total_tokens == 7
    assert usages[-1] is service.usage
    assert sink.writes[-1] == SPINNER_CLEAR


@pytest.mark.asyncio
async def test_tool_round_appends_assistant_and_tool_messages():
    backend = ScriptedBackend(
        tool_turn({"id": "c1", "name": "calculator", "arguments": {"expression": "2+2"}}),
        text_turn("4", prompt=20, completion=1),
    )
    service = ChatService(backend, build_default_registry(), usage=UsageState.initial(1000))
    seen_calls = []
    seen_results = []

    outcome = await service.run_turn(
        [Message.user("what is 2+2?")],
        callbacks=TurnCallbacks(
            on_tool_calls=seen_calls.append,
            on_tool_results=lambda calls, outcomes: seen_results.extend(outcomes),
        ),
    )

    call = ToolCall(id="c1", name="calculator", arguments={"expression": "2+2"})
    assert outcome.messages[0] == Message.assistant("", [call])
    assert outcome.messages[1].role is MessageRole.TOOL
    assert outcome.messages[1].tool_call_id == "c1"
    assert json.loads(outcome.messages[1].content) == {"expression": "2+2", "result": 4}
    assert outcome.messages[2] == Message.assistant("4")
    assert outcome.iterations == 2
    assert [c.name for c in seen_calls[0]] == ["calculator"]
    assert isinstance(seen_results[0], Ok)

    second_request = backend.requests[1]["messages"]
    assert [m.role for m in second_request] == [MessageRole.USER, MessageRole.ASSISTANT, MessageRole.TOOL]
    assert backend.requests[0]["tools"] == ["get_weather", "calculator", "search"]

    assert service.usage.turns == 2
    assert service.usage.cumulative.total_tokens == 13 + 21


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_back_to_the_model():
    backend = ScriptedBackend(
        tool_turn({"id": "x", "name": "frobnicate"}),
        text_turn("sorry"),
    )
    outcome = await ChatService(backend, build_default_registry()).run_turn([Message.user("go")])

    tool_message = outcome.messages[1]
    assert tool_message.content == "Error: Unknown tool: frobnicate"
    assert isinstance(outcome.tool_outcomes[0], Err)
    assert outcome.text == "sorry"


@pytest.mark.asyncio
async def test_iteration_limit_stops_the_loop():
    backend = ScriptedBackend(
        tool_turn({"name": "calculator", "arguments": {"expression": "1"}}),
        tool_turn({"name": "calculator", "arguments": {"expression": "2"}}),
        text_turn("never reached"),
    )
    service = ChatService(backend, build_default_registry(), max_tool_iterations=2)
    outcome = await service.run_turn([Message.user("loop")])

    assert outcome.limit_hit
    assert outcome.iterations == 2
    assert len(backend.requests) == 2
    assert len(outcome.messages) == 4
    assert outcome.result.tool_calls


@pytest.mark.asyncio
async def test_structured_chat_parses_and_validates():
    backend = ScriptedBackend(text_turn('{"answer": "yes"}'))
    texts = []
    service = ChatService(backend)

    parsed = await service.structured_chat(
        [Message.user("yes or no?")], ModelSchema(Answer), callbacks=TurnCallbacks(on_text=texts.append)
    )

    assert isinstance(parsed, Ok)
    assert parsed.value.data == Answer(answer="yes")
    assert parsed.value.raw == '{"answer": "yes"}'
    assert parsed.value.usage.total_tokens == 7
    assert texts == []
    assert backend.requests[0]["format"] == Answer.model_json_schema()


@pytest.mark.asyncio
async def test_structured_chat_reports_invalid_json():
    service = ChatService(ScriptedBackend(text_turn("not json")))
    parsed = await service.structured_chat([Message.user("q")], ModelSchema(Answer))
    assert isinstance(parsed, Err)
    assert parsed.error.phase == "json"
    assert parsed.error.message.startswith("Invalid JSON")
    assert parsed.error.raw == "not json"


@pytest.mark.asyncio
async def test_structured_chat_reports_schema_violation():
    schema = JsonSchema({"type": "object", "properties": {"n": {"type": "integer"}}, "required": ["n"]})
    service = ChatService(ScriptedBackend(text_turn('{"n": "three"}')))
    parsed = await service.structured_chat([Message.user("q")], schema)
    assert isinstance(parsed, Err)
    assert parsed.error.phase == "validation"
    assert parsed.error.message.startswith("Validation failed: n:")


@pytest.mark.asyncio
async def test_structured_chat_iteration_limit():
    backend = ScriptedBackend(tool_turn({"name": "calculator", "arguments": {"expression": "1"}}))
    service = ChatService(backend, build_default_registry(), max_tool_iterations=1)
    parsed = await service.structured_chat([Message.user("q")], ModelSchema(Answer))
    assert isinstance(parsed, Err)
    assert parsed.error.phase == "json"
    assert parsed.error.message == "Max iterations (1) reached"


@pytest.mark.asyncio
async def test_session_appends_turn_to_history():
    session = ChatSession(ChatService(ScriptedBackend(text_turn("Hi"))), system_prompt="be brief")
    outcome = await session.submit("hello")

    assert outcome.text == "Hi"
    assert session.history == [Message.system("be brief"), Message.user("hello"), Message.assistant("Hi")]
    assert not session.busy
    session.clear()
    assert session.history == [Message.system("be brief")]


@pytest.mark.asyncio
async def test_session_failure_discards_user_message():
    backend = ScriptedBackend([{"error": "model is overloaded"}])
    session = ChatSession(ChatService(backend))
    with pytest.raises(BackendError, match="overloaded"):
        await session.submit("hello")
    assert session.history == []


@pytest.mark.asyncio
async def test_session_retries_whole_turn():
    backend = ScriptedBackend([{"error": "model is overloaded"}], text_turn("ok"))
    session = ChatSession(ChatService(backend), turn_retries=1)
    outcome = await session.submit("hello")

    assert outcome.text == "ok"
    assert len(backend.requests) == 2
    assert backend.requests[1]["messages"] == [Message.user("hello")]
    assert session.history == [Message.user("hello"), Message.assistant("ok")]


@pytest.mark.asyncio
async def test_cancel_turn_while_streaming():
    partial = [{"message": {"role": "assistant", "content": "par"}, "done": False}]
    backend = ScriptedBackend(partial, hang_after=True)
    session = ChatSession(ChatService(backend))
    texts = []

    assert session.cancel_turn() is False
    task = asyncio.create_task(session.submit("hello", TurnCallbacks(on_text=texts.append)))
    await backend.waiting.wait()
    assert session.busy
    assert session.cancel_turn() is True

    assert await task is None
    assert texts == ["par"]
    assert session.history == []
    assert not session.busy


@pytest.mark.asyncio
async def test_cancel_turn_while_tools_run():
    started = asyncio.Event()
    finished = []

    async def wait_forever(args):
        started.set()
        try:
            await asyncio.sleep(3600)
        finally:
            finished.append(True)

    registry = create_tool_registry([define_tool("wait", "", JsonSchema({"type": "object"}), wait_forever)])
    backend = ScriptedBackend(tool_turn({"name": "wait"}), text_turn("unused"))
    session = ChatSession(ChatService(backend, registry))

    task = asyncio.create_task(session.submit("hello"))
    await started.wait()
    session.cancel_turn()

    assert await task is None
    assert finished == [True]
    assert session.history == []
    assert len(backend.requests) == 1
