"""Data model for compiled collection schemas.

These are plain dataclasses so that the compiled output stays independent of
the validation library that produced it. Everything except
`CollectionDeclaration.raw_schema` is JSON-serializable via `dataclasses.asdict`.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

JsonSchemaDoc: TypeAlias = dict[str, Any]
CollectionType: TypeAlias = Literal["content", "data"]

COLLECTION_TYPES: frozenset[str] = frozenset({"content", "data"})

# Path segment recorded when the walker descends into array items
ARRAY_MARKER = "[]"


def empty_object_schema() -> JsonSchemaDoc:
    """Fallback schema used whenever a node cannot be converted."""
    return {"type": "object", "properties": {}}


@dataclass
class CollectionDeclaration:
    """One entry of the user module's `collections` mapping."""

    name: str
    type: CollectionType
    raw_schema: Any


@dataclass
class UnionOption:
    """One variant of a discriminated union, e.g. a block type."""

    value: Any  # The literal discriminator value
    label: str  # Human-readable form of value
    schema: JsonSchemaDoc


@dataclass
class DiscriminatedUnion:
    """A discriminated union found while walking a collection schema.

    `path` lists the field names from the collection root, with ARRAY_MARKER
    for every hop through array items.
    """

    path: list[str]
    discriminator: str
    options: list[UnionOption] = field(default_factory=list)


@dataclass
class CollectionSchema:
    """Compiled, cacheable schema for one collection."""

    name: str
    type: CollectionType
    schema: JsonSchemaDoc
    discriminated_unions: list[DiscriminatedUnion] = field(default_factory=list)
