"""Coerce raw HTTP parameter values to the types their schema declares.

Query strings and path segments arrive as text. Each declared parameter is
converted according to its schema `type` and `format`:

    string + byte       -> bytes (base64 decoded)
    string + date       -> datetime.date
    string + date-time  -> datetime.datetime
    string (any other)  -> str, unchanged
    number              -> float
    integer + int64     -> int, any whole number
    integer             -> int within the safe integer range
    boolean             -> bool
    object              -> dict (JSON decoded first for deepObject queries)

Anything else is returned as received.
"""

import base64
import binascii
import json
import math
import re
from datetime import date, datetime

from openapi_stub.errors import CoercionError, MissingRequiredParameterError
from openapi_stub.parser.openapi import is_reference

MAX_SAFE_INTEGER = 2**53 - 1

REGEX_RFC3339_DATE = re.compile(r"^(-?(?:[1-9][0-9]*)?[0-9]{4})-(1[0-2]|0[1-9])-(3[01]|0[1-9]|[12][0-9])$")

REGEX_RFC3339_DATE_TIME = re.compile(
    r"^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])"
    r"[Tt ]([01]\d|2[0-3]):[0-5]\d:([0-5]\d|60)(\.\d+)?"
    r"([Zz]|[+-]([01]\d|2[0-3]):[0-5]\d)$"
)

# Decimal numbers as written in URLs: ASCII digits only, no digit separators.
NUMBER_PATTERN = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$", re.ASCII)

TRUE_VALUES = ("TRUE", "1")
FALSE_VALUES = ("FALSE", "0")


def primitive_kind(schema_type: str | None, schema_format: str | None = None) -> str | None:
    """Return the coercion kind for an OpenAPI type and format."""
    if schema_type in ("object", "array"):
        return schema_type
    if schema_type == "string":
        if schema_format in ("byte", "binary", "date", "date-time", "password"):
            return schema_format
        return "string"
    if schema_type == "boolean":
        return "boolean"
    if schema_type == "number":
        return schema_format if schema_format in ("float", "double") else "number"
    if schema_type == "integer":
        return "long" if schema_format == "int64" else "integer"
    return None


def is_empty(data) -> bool:
    return data == ""


def is_absent(data, schema: dict) -> bool:
    if data is None or data == "":
        return True
    return schema.get("type") == "object" and data == "null"


def coerce_parameter(data, spec: dict):
    """Coerce the raw value of one parameter according to its Parameter Object.

    Raises MissingRequiredParameterError or CoercionError.
    """
    schema = spec.get("schema")
    name = spec.get("name", "")
    if not schema or is_reference(schema):
        return data

    if spec.get("required") and is_absent(data, schema):
        raise MissingRequiredParameterError(name, spec.get("in"))
    if data is None:
        return data

    kind = primitive_kind(schema.get("type"), schema.get("format"))
    if kind == "byte":
        return _coerce_bytes(data, name)
    if kind == "date":
        return _coerce_datetime(data, name, date_only=True)
    if kind == "date-time":
        return _coerce_datetime(data, name)
    if kind in ("float", "double", "number"):
        return _coerce_number(data, name, kind)
    if kind == "long":
        return _coerce_integer(data, name, is_long=True)
    if kind == "integer":
        return _coerce_integer(data, name)
    if kind == "boolean":
        return _coerce_boolean(data, name)
    if kind == "object":
        return _coerce_object(data, spec)
    if kind in ("string", "password"):
        return _coerce_string(data, name)
    return data


def coerce(raw, declared_type: str, declared_format: str | None = None, required: bool = False, name: str = "value"):
    """Coerce a single value given just its declared type and format."""
    schema = {"type": declared_type}
    if declared_format is not None:
        schema["format"] = declared_format
    return coerce_parameter(raw, {"name": name, "in": "query", "required": required, "schema": schema})


def _coerce_string(data, name: str) -> str:
    if not isinstance(data, str):
        raise CoercionError("string", name, data)
    return data


def _coerce_bytes(data, name: str) -> bytes:
    if not isinstance(data, str) or is_empty(data):
        raise CoercionError("byte", name, data)
    try:
        return base64.b64decode(data + "=" * (-len(data) % 4))
    except (binascii.Error, ValueError):
        raise CoercionError("byte", name, data)


def _coerce_datetime(data, name: str, date_only: bool = False) -> date | datetime:
    kind = "date" if date_only else "date-time"
    if not isinstance(data, str) or is_empty(data):
        raise CoercionError(kind, name, data)

    pattern = REGEX_RFC3339_DATE if date_only else REGEX_RFC3339_DATE_TIME
    if not pattern.match(data):
        raise CoercionError(kind, name, data)

    # The patterns accept dates such as 2021-02-30; parsing rejects them.
    try:
        if date_only:
            return date.fromisoformat(data)
        value = data.replace("t", "T").replace("z", "Z")
        if value[10] == " ":
            value = value[:10] + "T" + value[11:]
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except ValueError:
        raise CoercionError(kind, name, data)


def _coerce_number(data, name: str, kind: str = "number") -> float:
    if not isinstance(data, str) or is_empty(data):
        raise CoercionError(kind, name, data)
    if not NUMBER_PATTERN.match(data):
        raise CoercionError(kind, name, data)
    try:
        value = float(data)
    except ValueError:
        raise CoercionError(kind, name, data)
    if math.isnan(value):
        raise CoercionError(kind, name, data)
    return value


def _coerce_integer(data, name: str, is_long: bool = False) -> int:
    kind = "long" if is_long else "integer"
    if not isinstance(data, str) or is_empty(data):
        raise CoercionError(kind, name, data)
    if not NUMBER_PATTERN.match(data):
        raise CoercionError(kind, name, data)

    try:
        value = int(data, 10)
    except ValueError:
        # Also accept forms such as '1e3' that still denote a whole number.
        try:
            number = float(data)
        except ValueError:
            raise CoercionError(kind, name, data)
        if not math.isfinite(number) or not number.is_integer():
            raise CoercionError(kind, name, data)
        value = int(number)

    if not is_long and abs(value) > MAX_SAFE_INTEGER:
        raise CoercionError(kind, name, data)
    return value


def _coerce_boolean(data, name: str) -> bool:
    if not isinstance(data, str) or is_empty(data):
        raise CoercionError("boolean", name, data)
    if data.upper() in TRUE_VALUES:
        return True
    if data.upper() in FALSE_VALUES:
        return False
    raise CoercionError("boolean", name, data)


def _coerce_object(data, spec: dict):
    name = spec.get("name", "")
    value = _parse_json_if_needed(data, spec)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise CoercionError("object", name, data)
    return value


def _parse_json_if_needed(data, spec: dict):
    if not isinstance(data, str):
        return data
    if spec.get("in") != "query" or spec.get("style") != "deepObject":
        return data
    if data == "":
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError as err:
        raise CoercionError("object", spec.get("name", ""), data, {"syntaxError": err.msg})
