"""Validate values against OpenAPI schemas with jsonschema.

OpenAPI 3.0 Schema Objects are a draft-04 dialect with a few extra
keywords. They are translated to plain JSON Schema, compiled once per
schema object and cached for the life of the process.
"""

import logging
import threading
from typing import Any

from jsonschema import Draft4Validator

from openapi_stub.errors import ValidationError

logger = logging.getLogger(__name__)

OPENAPI_ONLY_KEYWORDS = ("discriminator", "readOnly", "writeOnly", "xml", "externalDocs", "example", "deprecated")

# Keywords whose value is a schema, a list of schemas or a map of schemas.
_SUBSCHEMA = ("items", "not", "additionalProperties")
_SUBSCHEMA_LISTS = ("allOf", "oneOf", "anyOf")
_SUBSCHEMA_MAPS = ("properties", "patternProperties")


def to_json_schema(schema: dict) -> dict:
    """Convert an OpenAPI Schema Object to a JSON Schema document.

    Cycles left by dereferencing are kept as cycles in the result.
    """
    converted = _convert(schema, {})
    if isinstance(converted, dict):
        converted.pop("$schema", None)
    return converted


def _convert(schema, seen: dict):
    if not isinstance(schema, dict):
        return schema
    if id(schema) in seen:
        return seen[id(schema)]
    result = seen[id(schema)] = {}
    for key, value in schema.items():
        if key in OPENAPI_ONLY_KEYWORDS or key == "nullable":
            continue
        if key in _SUBSCHEMA:
            result[key] = _convert(value, seen)
        elif key in _SUBSCHEMA_LISTS and isinstance(value, list):
            result[key] = [_convert(s, seen) for s in value]
        elif key in _SUBSCHEMA_MAPS and isinstance(value, dict):
            result[key] = {name: _convert(s, seen) for name, s in value.items()}
        else:
            result[key] = value

    if schema.get("nullable") is True:
        _allow_null(result)
    return result


def _allow_null(schema: dict):
    schema_type = schema.get("type")
    if isinstance(schema_type, str):
        schema["type"] = [schema_type, "null"]
    elif isinstance(schema_type, list) and "null" not in schema_type:
        schema["type"] = schema_type + ["null"]
    if "enum" in schema and None not in schema["enum"]:
        schema["enum"] = list(schema["enum"]) + [None]


class ValidatorCache:
    """Compiled validators keyed by the identity of their schema object.

    Entries are never evicted. The schema itself is kept alongside its
    validator so that its id() can never be reused by another object.
    """

    def __init__(self):
        self._entries: dict[int, tuple[Any, Draft4Validator]] = {}
        self._lock = threading.Lock()

    def get(self, schema) -> Draft4Validator | None:
        with self._lock:
            entry = self._entries.get(id(schema))
        return entry[1] if entry is not None else None

    def set_default(self, schema, validator: Draft4Validator) -> Draft4Validator:
        """Store validator unless one is already cached; return the cached one."""
        with self._lock:
            return self._entries.setdefault(id(schema), (schema, validator))[1]

    def __len__(self):
        with self._lock:
            return len(self._entries)


class SchemaValidator:
    """Validates values against OpenAPI schemas, compiling each schema once."""

    def __init__(self, cache: ValidatorCache | None = None):
        self.cache = cache if cache is not None else ValidatorCache()

    def compile(self, schema: dict, component_schemas: dict | None = None) -> Draft4Validator:
        json_schema = to_json_schema(schema)
        root = dict(json_schema)
        root["components"] = {
            "schemas": {name: to_json_schema(s) for name, s in (component_schemas or {}).items()}
        }
        return Draft4Validator(root, format_checker=Draft4Validator.FORMAT_CHECKER)

    def validator_for(self, schema: dict, component_schemas: dict | None = None) -> Draft4Validator:
        validator = self.cache.get(schema)
        if validator is None:
            # Two threads may both compile; the first stored result wins.
            validator = self.cache.set_default(schema, self.compile(schema, component_schemas))
            logger.debug("Compiled validator for schema %#x", id(schema))
        return validator

    def validate(self, value, schema: dict, component_schemas: dict | None = None) -> None:
        """Raise ValidationError listing every violation of schema by value."""
        validator = self.validator_for(schema, component_schemas)
        details = [_detail(error) for error in validator.iter_errors(value)]
        if details:
            raise ValidationError(details)


def _detail(error) -> dict:
    path = "".join("/" + str(part).replace("~", "~0").replace("/", "~1") for part in error.absolute_path)
    return {
        "path": path,
        "code": error.validator,
        "message": error.message,
        "info": _info(error),
    }


def _info(error) -> dict:
    if error.validator == "required" and isinstance(error.instance, dict):
        missing = [name for name in error.validator_value if name not in error.instance]
        for name in missing:
            if error.message.startswith(repr(name)):
                return {"missingProperty": name}
        return {"missingProperty": missing[0] if missing else None}
    return {error.validator: error.validator_value}
