from __future__ import annotations

from typing import Any

_TYPE_CHECKS: dict[str, Any] = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
    "null": lambda v: v is None,
}


def _check_value(path: str, value: Any, schema: dict, errors: list[str]) -> None:
    expected = schema.get("type")
    if expected is not None:
        types = expected if isinstance(expected, list) else [expected]
        known = [t for t in types if t in _TYPE_CHECKS]
        if known and not any(_TYPE_CHECKS[t](value) for t in known):
            errors.append(f"{path}: expected {' or '.join(known)}, got {type(value).__name__}")
            return

    enum = schema.get("enum")
    if enum is not None and value not in enum:
        errors.append(f"{path}: must be one of {enum}")

    if isinstance(value, dict):
        _check_object(path, value, schema, errors)
    elif isinstance(value, list) and isinstance(schema.get("items"), dict):
        for i, item in enumerate(value):
            _check_value(f"{path}[{i}]", item, schema["items"], errors)


def _check_object(path: str, value: dict, schema: dict, errors: list[str]) -> None:
    properties = schema.get("properties") or {}
    for key in schema.get("required") or []:
        if key not in value or value[key] is None:
            errors.append(f"{path}.{key}: missing required property" if path else f"{key}: missing required property")

    for key, item in value.items():
        prop_path = f"{path}.{key}" if path else key
        prop_schema = properties.get(key)
        if isinstance(prop_schema, dict):
            _check_value(prop_path, item, prop_schema, errors)
        elif schema.get("additionalProperties") is False:
            errors.append(f"{prop_path}: unexpected property")


def validate_tool_input(tool_input: Any, schema: dict | None) -> list[str]:
    """Check tool arguments against the subset of JSON Schema tools declare.

    Covers type, enum, required, properties, items and additionalProperties=false.
    Returns a list of human-readable problems; empty means valid.
    """
    if not isinstance(tool_input, dict):
        return [f"arguments must be a JSON object, got {type(tool_input).__name__}"]
    errors: list[str] = []
    _check_object("", tool_input, schema or {}, errors)
    return errors
