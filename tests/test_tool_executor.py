import asyncio
import json

import pytest
from pydantic import BaseModel

from ollama_stream.domain.errors import ToolRegistrationError
from ollama_stream.domain.models.result import Err, Ok
from ollama_stream.domain.models.tool import ToolCall, ToolErrorPhase, define_tool
from ollama_stream.domain.services.tool_orchestrator import (
    create_tool_execution_summary,
    execute_tool_call,
    execute_tool_calls,
    format_tool_results_for_conversation,
    serialize_tool_output,
)
from ollama_stream.infrastructure.tools.registry import create_tool_registry
from ollama_stream.infrastructure.tools.schemas import JsonSchema, ModelSchema
from ollama_stream.plugins import build_default_registry
from ollama_stream.plugins.calc import evaluate
from ollama_stream.runtime.scope import Scope


class EchoArgs(BaseModel):
    text: str
    delay: float = 0.0


async def echo(args: EchoArgs):
    await asyncio.sleep(args.delay)
    return {"echo": args.text}


def shout(args):
    return args["text"].upper()


def explode(args):
    raise RuntimeError("kaboom")


def build_registry():
    return create_tool_registry([
        define_tool("echo", "Echo text back", ModelSchema(EchoArgs), echo),
        define_tool(
            "shout",
            "Upper-case text",
            JsonSchema({"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]}),
            shout,
        ),
        define_tool("explode", "Always fails", JsonSchema({"type": "object"}), explode),
    ])


@pytest.mark.asyncio
async def test_unknown_tool_is_not_found():
    outcome = await execute_tool_call(build_registry(), ToolCall(id="c1", name="frobnicate", arguments={}))
    assert isinstance(outcome, Err)
    assert outcome.error.phase is ToolErrorPhase.NOT_FOUND
    assert outcome.error.message == "Unknown tool: frobnicate"
    assert outcome.error.call_id == "c1"


@pytest.mark.asyncio
async def test_validation_failure_never_runs_handler():
    calls = []

    def handler(args):
        calls.append(args)
        return "ran"

    registry = create_tool_registry([
        define_tool("strict", "", JsonSchema({"type": "object", "required": ["x"]}), handler),
    ])
    outcome = await execute_tool_call(registry, ToolCall(id="c", name="strict", arguments={"y": 1}))
    assert isinstance(outcome, Err)
    assert outcome.error.phase is ToolErrorPhase.VALIDATION
    assert outcome.error.message.startswith("Validation failed: ")
    assert "'x' is a required property" in outcome.error.message
    assert calls == []


@pytest.mark.asyncio
async def test_model_schema_validation_message_names_the_field():
    outcome = await execute_tool_call(build_registry(), ToolCall(id="c", name="echo", arguments={}))
    assert isinstance(outcome, Err)
    assert outcome.error.phase is ToolErrorPhase.VALIDATION
    assert "text" in outcome.error.message


@pytest.mark.asyncio
async def test_handler_exception_is_execution_error_with_cause():
    outcome = await execute_tool_call(build_registry(), ToolCall(id="c", name="explode", arguments={}))
    assert isinstance(outcome, Err)
    assert outcome.error.phase is ToolErrorPhase.EXECUTION
    assert outcome.error.message == "kaboom"
    assert isinstance(outcome.error.cause, RuntimeError)


@pytest.mark.asyncio
async def test_success_serializes_non_string_output():
    registry = build_registry()
    ok_async = await execute_tool_call(registry, ToolCall(id="a", name="echo", arguments={"text": "hi"}))
    ok_sync = await execute_tool_call(registry, ToolCall(id="b", name="shout", arguments={"text": "hi"}))
    assert ok_async == Ok(ok_async.value)
    assert json.loads(ok_async.value.content) == {"echo": "hi"}
    assert ok_async.value.id == "a" and ok_async.value.ok
    assert ok_sync.value.content == "HI"


def test_serialize_tool_output():
    assert serialize_tool_output("plain") == "plain"
    assert serialize_tool_output({"a": "é"}) == '{"a": "é"}'
    assert json.loads(serialize_tool_output(EchoArgs(text="t"))) == {"text": "t", "delay": 0.0}


@pytest.mark.asyncio
async def test_batch_keeps_submission_order_with_validation_failure():
    registry = build_registry()
    calls = [
        ToolCall(id="slow", name="echo", arguments={"text": "first", "delay": 0.05}),
        ToolCall(id="bad", name="shout", arguments={"text": 5}),
        ToolCall(id="fast", name="echo", arguments={"text": "third"}),
    ]
    async with Scope("batch") as scope:
        outcomes = await execute_tool_calls(scope, registry, calls)

    assert [type(o) for o in outcomes] == [Ok, Err, Ok]
    assert outcomes[0].value.id == "slow"
    assert outcomes[1].error.call_id == "bad"
    assert outcomes[1].error.phase is ToolErrorPhase.VALIDATION
    assert outcomes[2].value.id == "fast"
    assert create_tool_execution_summary(outcomes) == "Executed 3 tool(s): 2 succeeded, 1 failed (shout)"


@pytest.mark.asyncio
async def test_batch_runs_calls_concurrently():
    registry = build_registry()
    calls = [ToolCall(id=str(i), name="echo", arguments={"text": str(i), "delay": 0.2}) for i in range(5)]
    loop = asyncio.get_running_loop()
    started = loop.time()
    async with Scope("batch") as scope:
        outcomes = await execute_tool_calls(scope, registry, calls)
    assert all(isinstance(o, Ok) for o in outcomes)
    assert loop.time() - started < 0.8


@pytest.mark.asyncio
async def test_registry_is_locked_during_batch():
    registry = build_registry()
    errors = []

    async def register_during_run(args):
        try:
            registry.register(define_tool("late", "", JsonSchema({}), shout))
        except ToolRegistrationError as e:
            errors.append(e)
        return "done"

    registry.register(define_tool("registrar", "", JsonSchema({"type": "object"}), register_during_run))
    async with Scope("batch") as scope:
        await execute_tool_calls(scope, registry, [ToolCall(id="r", name="registrar", arguments={})])

    assert len(errors) == 1
    assert not registry.is_locked
    registry.register(define_tool("late", "", JsonSchema({}), shout))
    assert "late" in registry


def test_registry_rejects_duplicate_names():
    registry = build_registry()
    with pytest.raises(ToolRegistrationError):
        registry.register(define_tool("echo", "again", ModelSchema(EchoArgs), echo))


def test_registry_descriptors():
    descriptors = build_registry().to_ollama_format()
    echo_descriptor = descriptors[0]
    assert echo_descriptor["type"] == "function"
    assert echo_descriptor["function"]["name"] == "echo"
    assert echo_descriptor["function"]["parameters"]["required"] == ["text"]


def test_tool_messages_for_conversation():
    calls = [ToolCall(id="a", name="x"), ToolCall(id="b", name="y")]
    outcomes = [
        Ok(type("R", (), {"content": "fine"})()),
        Err(type("E", (), {"message": "broken"})()),
    ]
    messages = format_tool_results_for_conversation(calls, outcomes)
    assert [(m.tool_call_id, m.content) for m in messages] == [("a", "fine"), ("b", "Error: broken")]


def test_calculator_evaluates_plain_arithmetic():
    assert evaluate("2 + 3 * (4 - 1)") == 11
    assert evaluate("7 / 2") == 3.5
    for bad in ("__import__('os')", "2 ** 99999", "1 / 0", "(("):
        with pytest.raises(ValueError, match="Could not evaluate"):
            evaluate(bad)


@pytest.mark.asyncio
async def test_builtin_calculator_through_executor():
    registry = build_default_registry()
    assert registry.names() == ["get_weather", "calculator", "search"]
    outcome = await execute_tool_call(
        registry, ToolCall(id="c", name="calculator", arguments={"expression": "6 * 7"})
    )
    assert json.loads(outcome.value.content) == {"expression": "6 * 7", "result": 42}

    failed = await execute_tool_call(
        registry, ToolCall(id="d", name="calculator", arguments={"expression": "rm -rf"})
    )
    assert failed.error.phase is ToolErrorPhase.EXECUTION
    assert failed.error.message == "Could not evaluate: rm -rf"
