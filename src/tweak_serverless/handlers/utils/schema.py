"""
Schema validation engine for events and contexts.

Pydantic models (or any type a `TypeAdapter` accepts) and JSON schema
dictionaries are both supported. JSON schemas are checked with the
powertools validation utility.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from aws_lambda_powertools.utilities.validation import validate as validate_json_schema
from aws_lambda_powertools.utilities.validation.exceptions import SchemaValidationError
from pydantic import TypeAdapter, ValidationError

from tweak_serverless.handlers.utils.errors import ValidationFailure


@dataclass(frozen=True)
class SchemaResult:
    """Outcome of a validation: either ``error`` is set or ``value`` is canonical."""

    value: Any
    error: Optional[ValidationFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@lru_cache(maxsize=128)
def _type_adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


class SchemaEngine:
    """Validate data against a declared schema without raising on invalid data."""

    def validate(self, data: Any, schema: Any) -> SchemaResult:
        if isinstance(schema, Mapping):
            return self._validate_json_schema(data, schema)
        return self._validate_model(data, schema)

    def _validate_model(self, data: Any, schema: Any) -> SchemaResult:
        adapter = _type_adapter(schema)
        try:
            # Lambda contexts are plain objects, read their attributes
            value = adapter.validate_python(data, from_attributes=not isinstance(data, Mapping))
        except ValidationError as exc:
            failure = ValidationFailure(
                message=f'{exc.error_count()} validation error(s) for {exc.title}',
                details=[
                    {'loc': list(error['loc']), 'msg': error['msg'], 'type': error['type']}
                    for error in exc.errors(include_url=False)
                ],
            )
            return SchemaResult(value=data, error=failure)
        return SchemaResult(value=value)

    def _validate_json_schema(self, data: Any, schema: Mapping) -> SchemaResult:
        try:
            validate_json_schema(event=data, schema=dict(schema))
        except SchemaValidationError as exc:
            failure = ValidationFailure(
                message=exc.validation_message or str(exc),
                details=[{
                    'loc': [exc.name] if exc.name else [],
                    'msg': exc.validation_message or str(exc),
                    'type': exc.rule or 'schema',
                }],
            )
            return SchemaResult(value=data, error=failure)
        return SchemaResult(value=data)
