"""
Parameter schemas - validate raw tool arguments and describe them as JSON Schema.

Two flavours are provided:
- ``ModelSchema`` wraps a pydantic model; handlers receive the model instance.
- ``JsonSchema`` wraps a plain JSON Schema dict (validated with jsonschema);
  handlers receive the argument dict unchanged.
"""

from __future__ import annotations
import copy
from typing import Any, Dict, Generic, Type, TypeVar

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match
from pydantic import BaseModel, ValidationError

from ...domain.interfaces.tool_plugin import SchemaViolation
from ...domain.models.result import Result, err, ok

M = TypeVar("M", bound=BaseModel)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "(root)"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


class ModelSchema(Generic[M]):
    """Parameter schema backed by a pydantic model."""

    def __init__(self, model: Type[M]):
        self.model = model

    def validate(self, raw: Any) -> Result[M, SchemaViolation]:
        try:
            return ok(self.model.model_validate(raw))
        except ValidationError as e:
            return err(SchemaViolation(_format_validation_error(e), e))

    def describe(self) -> Dict[str, Any]:
        return self.model.model_json_schema()

    def __repr__(self) -> str:
        return f"ModelSchema({self.model.__name__})"


class JsonSchema:
    """Parameter schema backed by a JSON Schema (draft 2020-12) document."""

    def __init__(self, schema: Dict[str, Any]):
        Draft202012Validator.check_schema(schema)
        self.schema = schema
        self._validator = Draft202012Validator(schema)

    def validate(self, raw: Any) -> Result[Any, SchemaViolation]:
        error = best_match(self._validator.iter_errors(raw))
        if error is None:
            return ok(raw)
        path = ".".join(str(p) for p in error.absolute_path)
        message = f"{path}: {error.message}" if path else error.message
        return err(SchemaViolation(message, error))

    def describe(self) -> Dict[str, Any]:
        return copy.deepcopy(self.schema)
