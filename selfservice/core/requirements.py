"""Helpers for the JSON-Schema shaped requirement documents stages hand out."""
from typing import Any, Dict, Iterable, Optional

SCHEMA_URI = "http://json-schema.org/draft-04/schema#"


def string_property(description: str, **extra: Any) -> Dict[str, Any]:
    prop: Dict[str, Any] = {"description": description, "type": "string"}
    prop.update(extra)
    return prop


def boolean_property(description: str, **extra: Any) -> Dict[str, Any]:
    prop: Dict[str, Any] = {"description": description, "type": "boolean"}
    prop.update(extra)
    return prop


def object_schema(
    properties: Dict[str, Any],
    required: Iterable[str] = (),
    description: Optional[str] = None,
    additional_properties: Optional[bool] = None,
) -> Dict[str, Any]:
    schema: Dict[str, Any] = {}
    if description:
        schema["description"] = description
    schema["type"] = "object"
    schema["required"] = list(required)
    schema["properties"] = properties
    if additional_properties is not None:
        schema["additionalProperties"] = additional_properties
    return schema


def ref(definition: str) -> Dict[str, str]:
    return {"$ref": f"#/definitions/{definition}"}


def build_requirements(
    description: str,
    properties: Dict[str, Any],
    required: Iterable[str] = (),
    definitions: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Top-level requirements document returned to the caller."""
    doc: Dict[str, Any] = {"$schema": SCHEMA_URI}
    doc.update(object_schema(properties, required, description=description))
    if definitions:
        doc["definitions"] = definitions
    return doc


def empty_requirements(description: str = "") -> Dict[str, Any]:
    return build_requirements(description, {})
