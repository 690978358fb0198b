"""Schema Object to structural type mapping."""

import json

from openapi_stub.errors import UnsupportedSchemaError
from openapi_stub.generator.refs import resolve_ref
from openapi_stub.parser.base import (
    ArrayType,
    IntersectionType,
    LiteralType,
    PrimitiveType,
    Property,
    RecordType,
    UnionType,
)
from openapi_stub.parser.openapi import is_reference

PRIMITIVES = {
    "string": "string",
    "integer": "number",
    "number": "number",
    "boolean": "boolean",
}


def map_type(schema: dict):
    """Map a Schema or Reference Object to a type node.

    References become names and are never expanded, so recursive schemas
    map in one pass.
    """
    if is_reference(schema):
        return resolve_ref(schema)

    if "allOf" in schema:
        return IntersectionType(members=[map_type(s) for s in schema["allOf"]])
    if "oneOf" in schema:
        return UnionType(members=[map_type(s) for s in schema["oneOf"]])
    if "anyOf" in schema:
        raise UnsupportedSchemaError("anyOf is not supported: " + _dump(schema))

    schema_type = schema.get("type")

    if "properties" in schema or schema_type == "object":
        required = set(schema.get("required") or [])
        return RecordType(
            properties=[
                Property(name=name, type=map_type(prop), required=name in required)
                for name, prop in (schema.get("properties") or {}).items()
            ]
        )
    if schema_type == "array" and "items" in schema:
        return ArrayType(item=map_type(schema["items"]))
    if schema.get("enum"):
        return LiteralType(values=list(schema["enum"]))
    if schema_type in PRIMITIVES:
        return PrimitiveType(name=PRIMITIVES[schema_type])

    raise UnsupportedSchemaError("Unknown property type: " + _dump(schema))


def _dump(schema) -> str:
    try:
        return json.dumps(schema, sort_keys=True)
    except (TypeError, ValueError):
        return repr(schema)
