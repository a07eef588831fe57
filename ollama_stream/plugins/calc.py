"""Calculator tool plugin with safe expression evaluator"""
from __future__ import annotations

import re
from typing import Any, Dict, Union

from ..domain.models.tool import ToolDefinition, define_tool
from ..infrastructure.tools.schemas import JsonSchema

PARAMETERS = {
    "type": "object",
    "properties": {
        "expression": {
            "type": "string",
            "description": 'A mathematical expression, e.g. "2 + 2"'
        }
    },
    "required": ["expression"]
}

# Digits, whitespace, + - * / and parentheses only; no exponentiation
ALLOWED_EXPRESSION = re.compile(r"^[\d\s+\-*/().]+$")


def evaluate(expression: str) -> Union[int, float]:
    """Evaluate plain arithmetic. Raises ValueError for anything else."""
    if not ALLOWED_EXPRESSION.match(expression) or "**" in expression:
        raise ValueError(f"Could not evaluate: {expression}")
    try:
        result = eval(expression, {"__builtins__": {}}, {})
    except (SyntaxError, ZeroDivisionError, TypeError) as e:
        raise ValueError(f"Could not evaluate: {expression}") from e
    if not isinstance(result, (int, float)):
        raise ValueError(f"Could not evaluate: {expression}")

    # Format result nicely
    if isinstance(result, float):
        if abs(result - round(result)) < 1e-10:
            result = int(round(result))
        else:
            result = round(result, 8)
    return result


def calculator(args: Dict[str, Any]) -> Dict[str, Any]:
    """Perform basic arithmetic calculations."""
    expression = args["expression"]
    return {"expression": expression, "result": evaluate(expression)}


TOOL: ToolDefinition = define_tool(
    name="calculator",
    description="Perform basic arithmetic calculations",
    parameters=JsonSchema(PARAMETERS),
    execute=calculator,
)
