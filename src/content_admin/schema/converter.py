"""JSON Schema conversion for validation-schema nodes.

Conversion is delegated to pydantic (`model_json_schema` for models,
`TypeAdapter.json_schema` for any other type expression). Pydantic emits shared
sub-schemas under `$defs` and points at them with `$ref`; the form UI wants one
self-contained tree, so every reference is inlined and `$defs` dropped.
"""

import copy
from typing import Any

from loguru import logger
from pydantic import BaseModel, TypeAdapter

from content_admin.schema.errors import SchemaConversionError
from content_admin.schema.models import JsonSchemaDoc, empty_object_schema

DEFS_KEY = "$defs"
REF_PREFIX = "#/$defs/"


def _is_model_class(value: Any) -> bool:
    return isinstance(value, type) and issubclass(value, BaseModel)


def inline_refs(document: JsonSchemaDoc) -> JsonSchemaDoc:
    """Return a copy of document with every local `$ref` replaced by its target.

    A reference back to a definition that is already being inlined (a recursive
    model) becomes an empty object schema. Sibling keys next to a `$ref` (for
    example `description` or `default`) are kept and win over the target's.
    Discriminator `mapping` entries point into `$defs` and are removed.
    """
    definitions = document.get(DEFS_KEY, {})

    def resolve(node: Any, active: frozenset[str]) -> Any:
        if isinstance(node, list):
            return [resolve(item, active) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith(REF_PREFIX):
            name = ref[len(REF_PREFIX) :]
            if name in active or name not in definitions:
                target = empty_object_schema()
            else:
                target = resolve(definitions[name], active | {name})
            siblings = {
                k: resolve(v, active) for k, v in node.items() if k not in ("$ref", DEFS_KEY)
            }
            return {**target, **siblings}

        result = {}
        for key, value in node.items():
            if key == DEFS_KEY:
                continue
            if key == "discriminator" and isinstance(value, dict):
                value = {k: v for k, v in value.items() if k != "mapping"}
            result[key] = resolve(value, active)
        return result

    return resolve(copy.deepcopy(document), frozenset())


def to_json_schema(node: Any) -> JsonSchemaDoc:
    """Convert a model class or type expression to a self-contained JSON Schema.

    Raises:
        SchemaConversionError: If pydantic cannot build a schema for the node.
    """
    try:
        if _is_model_class(node):
            raw = node.model_json_schema()
        else:
            raw = TypeAdapter(node).json_schema()
    except Exception as e:
        raise SchemaConversionError(f"Could not convert {node!r} to JSON Schema: {e}") from e
    return inline_refs(raw)


def to_json_schema_or_fallback(node: Any, where: str = "") -> JsonSchemaDoc:
    """Convert node, falling back to an empty object schema on failure."""
    try:
        return to_json_schema(node)
    except SchemaConversionError as e:
        location = f" at {where}" if where else ""
        logger.warning(f"Schema conversion failed{location}, using empty object schema: {e}")
        return empty_object_schema()
