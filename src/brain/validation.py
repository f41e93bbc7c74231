#!/usr/bin/env python3
"""
TA Agent Brain Module: Validation

Argument checks run by the tool registry before a handler is called.
Failures go back to the model as a tool result so it can retry.
"""
from typing import Any, Dict, Mapping

from .types import ValidationResult


SUPPORTED_TYPES = ("string", "integer", "number", "array", "object")


def _matches_type(value: Any, expected: str) -> bool:
    # bool is an int subclass; never accept it as a number
    if expected == "string":
        return isinstance(value, str)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "array":
        return isinstance(value, (list, tuple))
    if expected == "object":
        return isinstance(value, dict)
    return False


def check_schema(params: Mapping[str, Mapping[str, Any]]) -> None:
    """
    Reject parameter schemas that use unsupported types.

    Raises:
        ValueError: On an unknown type
    """
    for name, spec in params.items():
        kind = spec.get("type")
        if kind not in SUPPORTED_TYPES:
            raise ValueError(
                f"Parameter '{name}' has unsupported type '{kind}'. "
                f"Supported: {', '.join(SUPPORTED_TYPES)}"
            )


def validate_arguments(
    params: Mapping[str, Mapping[str, Any]],
    arguments: Dict[str, Any],
) -> ValidationResult:
    """
    Validate tool arguments against a parameter schema.

    Args:
        params: {name: {"type": ..., "required": bool, "enum": [...]}}
        arguments: Arguments supplied by the model

    Returns:
        ValidationResult with one error per offending parameter
    """
    result = ValidationResult(valid=True)

    if not isinstance(arguments, dict):
        result.add_error(f"INVALID_ARGUMENTS: expected an object, got {type(arguments).__name__}")
        return result

    for name, spec in params.items():
        if name not in arguments or arguments[name] is None:
            if spec.get("required"):
                result.add_error(f"MISSING_REQUIRED_FIELD: {name} is required")
            continue

        value = arguments[name]
        expected = spec.get("type")
        if not _matches_type(value, expected):
            result.add_error(
                f"INVALID_TYPE: {name} must be {expected}, got {type(value).__name__}"
            )
            continue

        allowed = spec.get("enum")
        if allowed and value not in allowed:
            result.add_error(f"INVALID_VALUE: {name} must be one of {list(allowed)}, got {value!r}")

    return result
