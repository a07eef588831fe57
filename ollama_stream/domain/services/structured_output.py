"""
Structured output - parse a turn's aggregated text against a parameter schema.
"""

from __future__ import annotations
import json
from typing import Any

from ..interfaces.tool_plugin import ParameterSchema
from ..models.chat import ChatResult, ParseError, StructuredResult
from ..models.result import Err, Result, err, ok


def parse_structured(
    result: ChatResult,
    schema: ParameterSchema
) -> Result[StructuredResult[Any], ParseError]:
    """JSON-decode ``result.text`` and validate it.

    Returns ``ParseError(phase="json")`` for text that is not JSON and
    ``ParseError(phase="validation")`` for JSON the schema rejects.
    """
    raw = result.text
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        return err(ParseError(phase="json", message=f"Invalid JSON: {e}", raw=raw, cause=e))

    validated = schema.validate(parsed)
    if isinstance(validated, Err):
        violation = validated.error
        return err(ParseError(
            phase="validation",
            message=f"Validation failed: {violation.message}",
            raw=raw,
            cause=violation,
        ))

    return ok(StructuredResult(
        data=validated.value,
        raw=raw,
        usage=result.usage,
        thinking=result.thinking,
    ))
