"""
Tool orchestrator service - Domain service managing tool execution flow.

Every call resolves to exactly one ``ToolResult`` or ``ToolError``; failures
are values, never exceptions. A batch runs concurrently inside a scope and
its results come back in submission order.
"""

from __future__ import annotations
import asyncio
import inspect
import json
import logging
import time
from typing import Any, List, Optional, Sequence, TYPE_CHECKING

from pydantic import BaseModel

from ..interfaces.tool_plugin import ToolRegistry
from ..models.conversation import Message
from ..models.result import Err, Ok, Result, err, ok
from ..models.tool import ToolCall, ToolError, ToolErrorPhase, ToolResult

if TYPE_CHECKING:
    from ...runtime.scope import Scope

ToolOutcome = Result[ToolResult, ToolError]

logger = logging.getLogger(__name__)


def serialize_tool_output(value: Any) -> str:
    """Strings pass through; everything else is rendered as JSON."""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, ensure_ascii=False, default=str)


async def execute_tool_call(registry: ToolRegistry, call: ToolCall) -> ToolOutcome:
    """Look up, validate and run a single tool call."""
    tool = registry.get(call.name)
    if tool is None:
        logger.warning(f"Model requested unknown tool: {call.name}")
        return err(ToolError(
            call_id=call.id,
            tool_name=call.name,
            message=f"Unknown tool: {call.name}",
            phase=ToolErrorPhase.NOT_FOUND,
        ))

    validated = tool.parameters.validate(dict(call.arguments))
    if isinstance(validated, Err):
        violation = validated.error
        return err(ToolError(
            call_id=call.id,
            tool_name=call.name,
            message=f"Validation failed: {violation.message}",
            phase=ToolErrorPhase.VALIDATION,
            cause=violation,
        ))

    start_time = time.time()
    try:
        if inspect.iscoroutinefunction(tool.execute):
            output = await tool.execute(validated.value)
        else:
            # Run sync handlers in a thread to avoid blocking the loop
            output = await asyncio.to_thread(tool.execute, validated.value)
            if inspect.isawaitable(output):
                output = await output
        content = serialize_tool_output(output)
    except Exception as e:
        logger.error(f"Tool {call.name} execution failed: {e}")
        return err(ToolError(
            call_id=call.id,
            tool_name=call.name,
            message=str(e) or e.__class__.__name__,
            phase=ToolErrorPhase.EXECUTION,
            cause=e,
        ))

    logger.debug(f"Tool {call.name} succeeded in {(time.time() - start_time) * 1000:.1f}ms")
    return ok(ToolResult(id=call.id, content=content))


async def execute_tool_calls(
    scope: "Scope",
    registry: ToolRegistry,
    calls: Sequence[ToolCall]
) -> List[ToolOutcome]:
    """Run a batch concurrently as children of ``scope``; results keep call order."""
    if not calls:
        return []
    with registry.locked():
        return await scope.all(execute_tool_call(registry, call) for call in calls)


def format_tool_results_for_conversation(
    calls: Sequence[ToolCall],
    outcomes: Sequence[ToolOutcome]
) -> List[Message]:
    """One tool message per call; failures read ``Error: <message>``."""
    messages = []
    for call, outcome in zip(calls, outcomes):
        if isinstance(outcome, Ok):
            messages.append(Message.tool(call.id, outcome.value.content))
        else:
            messages.append(Message.tool(call.id, f"Error: {outcome.error.message}"))
    return messages


def create_tool_execution_summary(outcomes: Sequence[ToolOutcome]) -> str:
    """Create a human-readable summary of a batch."""
    if not outcomes:
        return "No tools executed"
    succeeded = sum(1 for outcome in outcomes if isinstance(outcome, Ok))
    failed = len(outcomes) - succeeded
    summary = f"Executed {len(outcomes)} tool(s): {succeeded} succeeded"
    if failed:
        names = ", ".join(outcome.error.tool_name for outcome in outcomes if isinstance(outcome, Err))
        summary += f", {failed} failed ({names})"
    return summary


class ToolOrchestrator:
    """Domain service for orchestrating tool execution across multiple rounds."""

    def __init__(
        self,
        tool_registry: ToolRegistry,
        logger: Optional[logging.Logger] = None
    ):
        self._registry = tool_registry
        self._logger = logger or logging.getLogger(__name__)

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def run_batch(self, scope: "Scope", calls: Sequence[ToolCall]) -> List[ToolOutcome]:
        """Execute a batch and log its summary."""
        self._logger.debug(f"Executing {len(calls)} tool call(s): {[call.name for call in calls]}")
        outcomes = await execute_tool_calls(scope, self._registry, calls)
        self._logger.info(create_tool_execution_summary(outcomes))
        return outcomes

    def to_messages(self, calls: Sequence[ToolCall], outcomes: Sequence[ToolOutcome]) -> List[Message]:
        return format_tool_results_for_conversation(calls, outcomes)
