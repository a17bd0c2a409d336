"""Block-type enrichment for form schemas.

Merges discriminated-union metadata into a collection's JSON Schema so the form
renderer can offer "add block" choices: every array property that holds a
discriminated union gets a `blockTypes` map of discriminator value to option
schema. Enrichment is best-effort and never raises.
"""

import copy
from collections.abc import Iterable
from typing import Any

from loguru import logger

from content_admin.schema.models import (
    ARRAY_MARKER,
    DiscriminatedUnion,
    JsonSchemaDoc,
    empty_object_schema,
)

BLOCK_TYPES_KEY = "blockTypes"


def unwrap_nullable(node: Any) -> Any:
    """Return X for an `anyOf: [X, {"type": "null"}]` property, else node."""
    if not isinstance(node, dict) or "type" in node:
        return node
    variants = node.get("anyOf")
    if not isinstance(variants, list):
        return node
    non_null = [v for v in variants if not (isinstance(v, dict) and v.get("type") == "null")]
    if len(non_null) == 1 and isinstance(non_null[0], dict):
        return non_null[0]
    return node


def _resolve(schema: JsonSchemaDoc, path: Iterable[str]) -> dict | None:
    target: Any = schema
    for key in path:
        if key == ARRAY_MARKER:
            continue
        properties = target.get("properties") if isinstance(target, dict) else None
        if not isinstance(properties, dict) or key not in properties:
            return None
        target = unwrap_nullable(properties[key])
    return target if isinstance(target, dict) else None


def enrich_schema_with_block_types(
    schema: JsonSchemaDoc, discriminated_unions: list[DiscriminatedUnion] | None
) -> JsonSchemaDoc:
    """Attach `blockTypes` to array properties holding discriminated unions.

    Args:
        schema: Collection JSON Schema; never modified.
        discriminated_unions: Unions found by the walker for that schema.

    Returns:
        An enriched deep copy of schema. Without unions the copy is unchanged.
    """
    enriched = copy.deepcopy(schema)
    for union in discriminated_unions or []:
        try:
            target = _resolve(enriched, union.path)
            if target is None or target.get("type") != "array":
                logger.debug(f"No array property at {union.path}, skipping block types")
                continue
            target[BLOCK_TYPES_KEY] = {
                option.value: copy.deepcopy(option.schema) or empty_object_schema()
                for option in union.options
            }
        except (AttributeError, TypeError) as e:
            logger.debug(f"Could not enrich union at {getattr(union, 'path', None)}: {e}")
    return enriched
