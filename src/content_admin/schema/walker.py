"""Schema walker: JSON Schema conversion plus discriminated-union discovery.

A collection's raw schema is a pydantic model class (or any type expression
pydantic accepts). The walker never relies on the class hierarchy of the nodes
it visits. Each node is classified into one of a closed set of kinds, and
anything it does not recognise is an opaque leaf:

  OBJECT               pydantic model, pydantic dataclass, TypedDict
  ARRAY                list, set, frozenset, Sequence, tuple[X, ...]
  DISCRIMINATED_UNION  Union[...] carrying a string discriminator
  LITERAL              Literal[...]
  OPTIONAL             NotRequired[...]
  NULLABLE             Union[..., None]
  DEFAULT              a field that has a default value
  UNKNOWN              everything else

Unions are located by path: field names from the collection root, with "[]"
for every step into array items. Wrapper kinds and `Annotated` do not add a
path segment.
"""

import re
import types
from collections.abc import MutableSequence, MutableSet, Sequence, Set
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import (
    Annotated,
    Any,
    ForwardRef,
    Literal,
    NotRequired,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    is_typeddict,
)

from loguru import logger
from pydantic import BaseModel, Discriminator
from pydantic.dataclasses import is_pydantic_dataclass, rebuild_dataclass
from pydantic.fields import FieldInfo

from content_admin.schema.converter import to_json_schema_or_fallback
from content_admin.schema.models import (
    ARRAY_MARKER,
    DiscriminatedUnion,
    JsonSchemaDoc,
    UnionOption,
)

ARRAY_ORIGINS = frozenset({list, set, frozenset, tuple, Sequence, MutableSequence, Set, MutableSet})


class NodeKind(Enum):
    """Closed set of node kinds the walker knows how to handle."""

    OBJECT = auto()
    ARRAY = auto()
    DISCRIMINATED_UNION = auto()
    LITERAL = auto()
    OPTIONAL = auto()
    NULLABLE = auto()
    DEFAULT = auto()
    UNKNOWN = auto()


WRAPPER_KINDS = frozenset({NodeKind.OPTIONAL, NodeKind.NULLABLE, NodeKind.DEFAULT})


@dataclass(frozen=True)
class SchemaNode:
    """One position in a schema tree.

    Field-level facts that pydantic keeps outside the type expression (the
    discriminator and whether a default exists) travel with the annotation.
    """

    annotation: Any
    discriminator: str | None = None
    has_default: bool = False


# --- Classification ---


def split_annotated(annotation: Any) -> tuple[Any, list[Any]]:
    """Strip (possibly nested) Annotated[...] and collect its metadata."""
    metadata: list[Any] = []
    while get_origin(annotation) is Annotated:
        base, *extra = get_args(annotation)
        metadata.extend(extra)
        annotation = base
    return annotation, metadata


def discriminator_name(value: Any) -> str | None:
    """Return a string discriminator from a FieldInfo, Discriminator or str.

    Callable discriminators cannot be introspected and yield None.
    """
    if isinstance(value, FieldInfo):
        value = value.discriminator
    if isinstance(value, Discriminator):
        value = value.discriminator
    return value if isinstance(value, str) else None


def _metadata_discriminator(metadata: list[Any]) -> str | None:
    for item in metadata:
        if isinstance(item, (FieldInfo, Discriminator)):
            name = discriminator_name(item)
            if name:
                return name
    return None


def _is_union(origin: Any) -> bool:
    return origin is Union or origin is types.UnionType


def _is_object_type(annotation: Any) -> bool:
    if not isinstance(annotation, type):
        return False
    return (
        issubclass(annotation, BaseModel)
        or is_pydantic_dataclass(annotation)
        or is_typeddict(annotation)
    )


def node_kind(node: SchemaNode) -> NodeKind:
    """Classify a node."""
    if node.has_default:
        return NodeKind.DEFAULT

    base, metadata = split_annotated(node.annotation)
    origin = get_origin(base)

    if origin is NotRequired:
        return NodeKind.OPTIONAL
    if _is_union(origin):
        if type(None) in get_args(base):
            return NodeKind.NULLABLE
        if node.discriminator or _metadata_discriminator(metadata):
            return NodeKind.DISCRIMINATED_UNION
        return NodeKind.UNKNOWN
    if origin is Literal:
        return NodeKind.LITERAL
    if origin in ARRAY_ORIGINS:
        args = get_args(base)
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            return NodeKind.UNKNOWN
        return NodeKind.ARRAY
    if _is_object_type(base):
        return NodeKind.OBJECT
    return NodeKind.UNKNOWN


def unwrap(node: SchemaNode) -> SchemaNode:
    """Return the node inside a wrapper kind; other kinds are returned unchanged."""
    kind = node_kind(node)
    if kind is NodeKind.DEFAULT:
        return replace(node, has_default=False)

    base, metadata = split_annotated(node.annotation)
    discriminator = node.discriminator or _metadata_discriminator(metadata)

    if kind is NodeKind.OPTIONAL:
        return SchemaNode(get_args(base)[0], discriminator)
    if kind is NodeKind.NULLABLE:
        members = tuple(arg for arg in get_args(base) if arg is not type(None))
        inner = members[0] if len(members) == 1 else Union[members]
        return SchemaNode(inner, discriminator)
    return node


def has_forward_ref(annotation: Any) -> bool:
    """Whether an annotation still holds unevaluated string references."""
    if isinstance(annotation, (str, ForwardRef)):
        return True
    origin = get_origin(annotation)
    if origin is Literal:
        return False
    args = get_args(annotation)
    if origin is Annotated:
        args = args[:1]
    return any(has_forward_ref(arg) for arg in args)


def _rebuild_pending(annotation: Any) -> None:
    """Retry building a model whose field annotations are still forward references."""
    if getattr(annotation, "__pydantic_complete__", True):
        return
    if is_pydantic_dataclass(annotation):
        rebuild_dataclass(annotation, raise_errors=False)
    else:
        annotation.model_rebuild(raise_errors=False)


def _resolved_hints(annotation: type) -> dict[str, Any]:
    try:
        return get_type_hints(annotation, include_extras=True)
    except (NameError, TypeError) as e:
        logger.warning(f"Could not resolve fields of {annotation.__name__}: {e}")
        return {}


def object_fields(annotation: Any) -> list[tuple[str, str, SchemaNode]] | None:
    """List (attribute name, schema key, node) for an object-shaped type.

    The schema key is the alias used in the JSON Schema `properties`.
    Returns None when the type is not object-shaped.
    """
    is_model = isinstance(annotation, type) and issubclass(annotation, BaseModel)
    if is_model or is_pydantic_dataclass(annotation):
        fields: dict[str, FieldInfo] = annotation.__pydantic_fields__
        if any(has_forward_ref(info.annotation) for info in fields.values()):
            _rebuild_pending(annotation)
            fields = annotation.__pydantic_fields__

        result = []
        for name, info in fields.items():
            alias = info.validation_alias if isinstance(info.validation_alias, str) else info.alias
            if has_forward_ref(info.annotation):
                logger.warning(f"Unresolved annotation for {annotation.__name__}.{name}")
            node = SchemaNode(
                annotation=info.annotation,
                discriminator=discriminator_name(info),
                has_default=not info.is_required(),
            )
            result.append((name, alias or name, node))
        return result

    if isinstance(annotation, type) and is_typeddict(annotation):
        hints = _resolved_hints(annotation)
        return [(name, name, SchemaNode(hint)) for name, hint in hints.items()]

    return None


def literal_values(annotation: Any) -> list[Any]:
    """Values of a Literal[...] annotation (enum members become their values)."""
    base, _ = split_annotated(annotation)
    if get_origin(base) is not Literal:
        return []
    return [value.value if isinstance(value, Enum) else value for value in get_args(base)]


def format_label(value: Any) -> str:
    """Turn a discriminator value into a label, e.g. 'heroBlock' -> 'Hero Block'."""
    if not isinstance(value, str):
        return str(value)
    spaced = re.sub(r"([A-Z])", r" \1", value)
    return (spaced[:1].upper() + spaced[1:]).strip()


# --- Union extraction ---


def _union_options(option: Any, discriminator: str, path: list[str]) -> list[UnionOption]:
    model, _ = split_annotated(option)
    where = "/".join(path) or "<root>"

    fields = object_fields(model)
    if fields is None:
        logger.warning(f"Skipping union option {model!r} at {where}: not an object schema")
        return []

    tag_node = next(
        (node for name, key, node in fields if discriminator in (name, key)),
        None,
    )
    values = literal_values(tag_node.annotation) if tag_node is not None else []
    if not values:
        logger.warning(
            f"Skipping union option {getattr(model, '__name__', model)!r} at {where}: "
            f'discriminator "{discriminator}" is not a literal'
        )
        return []

    schema = to_json_schema_or_fallback(model, where)
    return [UnionOption(value=value, label=format_label(value), schema=schema) for value in values]


def extract_union(node: SchemaNode, path: list[str]) -> DiscriminatedUnion:
    """Build the DiscriminatedUnion record for a DISCRIMINATED_UNION node."""
    base, metadata = split_annotated(node.annotation)
    discriminator = node.discriminator or _metadata_discriminator(metadata)

    options: list[UnionOption] = []
    for option in get_args(base):
        options.extend(_union_options(option, discriminator, path))

    logger.debug(f"Found discriminated union on '{discriminator}' at {path} ({len(options)} options)")
    return DiscriminatedUnion(path=list(path), discriminator=discriminator, options=options)


def find_discriminated_unions(
    node: Any,
    path: list[str] | tuple[str, ...] = (),
    _ancestors: frozenset = frozenset(),
) -> list[DiscriminatedUnion]:
    """Depth-first search for discriminated unions, in declaration order.

    Args:
        node: A SchemaNode or a raw type expression.
        path: Path of node from the collection root.

    Returns:
        Every union reachable through objects, arrays and wrappers.
    """
    if not isinstance(node, SchemaNode):
        node = SchemaNode(node)
    path = list(path)
    kind = node_kind(node)

    if kind in WRAPPER_KINDS:
        return find_discriminated_unions(unwrap(node), path, _ancestors)

    if kind is NodeKind.DISCRIMINATED_UNION:
        return [extract_union(node, path)]

    base, _ = split_annotated(node.annotation)

    if kind is NodeKind.ARRAY:
        args = get_args(base)
        item = args[0] if args else Any
        return find_discriminated_unions(item, [*path, ARRAY_MARKER], _ancestors)

    if kind is NodeKind.OBJECT:
        # A model already on the current path is a recursive reference
        if base in _ancestors:
            return []
        unions: list[DiscriminatedUnion] = []
        for _, key, child in object_fields(base) or []:
            unions.extend(find_discriminated_unions(child, [*path, key], _ancestors | {base}))
        return unions

    return []


def walk_schema(
    raw_schema: Any, path: list[str] | tuple[str, ...] = ()
) -> tuple[JsonSchemaDoc, list[DiscriminatedUnion]]:
    """Convert a raw schema and collect its discriminated unions.

    Conversion failures fall back to an empty object schema; they are logged
    but never raised.

    Args:
        raw_schema: Model class or type expression from a collection declaration.
        path: Path prefix for the recorded unions.

    Returns:
        Tuple of (JSON Schema document, discriminated unions).
    """
    annotation = raw_schema.annotation if isinstance(raw_schema, SchemaNode) else raw_schema
    schema = to_json_schema_or_fallback(annotation, "/".join(path) or "<root>")
    return schema, find_discriminated_unions(raw_schema, path)
