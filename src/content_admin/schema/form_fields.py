"""Conversion of JSON Schema properties into form field descriptors."""

from typing import Any

from content_admin.schema.enrichment import unwrap_nullable
from content_admin.schema.models import JsonSchemaDoc
from content_admin.schema.walker import format_label

INPUT_TYPES = {
    "email": "email",
    "uri": "url",
    "url": "url",
    "date": "date",
    "date-time": "datetime-local",
}


def schema_to_form_field(name: str, prop: JsonSchemaDoc, required: bool = False) -> dict[str, Any]:
    """Describe one schema property as a form field.

    Args:
        name: Property name.
        prop: The property's JSON Schema.
        required: Whether the property is listed as required.

    Returns:
        Field descriptor with name, label, required and, where the property
        type is known, type plus type-specific keys (options, inputType,
        min/max, items, properties).
    """
    prop = unwrap_nullable(prop)
    field: dict[str, Any] = {
        "name": name,
        "required": required,
        "label": format_label(name),
    }

    prop_type = prop.get("type")
    if prop_type == "string":
        field["type"] = "string"
        if "enum" in prop:
            field["type"] = "enum"
            field["options"] = prop["enum"]
        input_type = INPUT_TYPES.get(prop.get("format"))
        if input_type:
            field["inputType"] = input_type
    elif prop_type in ("number", "integer"):
        field["type"] = "number"
        if "minimum" in prop:
            field["min"] = prop["minimum"]
        if "maximum" in prop:
            field["max"] = prop["maximum"]
    elif prop_type == "boolean":
        field["type"] = "boolean"
    elif prop_type == "array":
        field["type"] = "array"
        field["items"] = prop.get("items")
    elif prop_type == "object":
        field["type"] = "object"
        field["properties"] = prop.get("properties")

    if prop.get("description"):
        field["description"] = prop["description"]
    if "default" in prop:
        field["default"] = prop["default"]

    return field


def schema_to_form_fields(schema: JsonSchemaDoc) -> list[dict[str, Any]]:
    """Form fields for every property of an object schema, in property order."""
    required = set(schema.get("required", []))
    return [
        schema_to_form_field(name, prop, name in required)
        for name, prop in schema.get("properties", {}).items()
    ]
