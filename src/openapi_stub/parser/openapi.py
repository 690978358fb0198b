"""OpenAPI 3 document loading and local reference inlining."""

import copy
from pathlib import Path
from typing import Iterator

import yaml

from openapi_stub.errors import UnresolvedReferenceError, UnsupportedDocumentError
from openapi_stub.parser.detect import detect_format

HTTP_METHODS = ("get", "put", "delete", "post", "patch")


def load_document(file_path: Path) -> dict:
    """Read an OpenAPI 3 document from a YAML or JSON file."""
    text = file_path.read_text(encoding="utf-8")
    fmt = detect_format(text)
    if fmt == "swagger":
        raise UnsupportedDocumentError(
            f"{file_path} is a Swagger 2.0 document; convert it to OpenAPI 3 first"
        )
    if fmt != "openapi":
        raise UnsupportedDocumentError(f"{file_path} is not an OpenAPI document")
    return yaml.safe_load(text)


def iter_operations(document: dict) -> Iterator[tuple[str, str, dict]]:
    """Yield (path, method, operation) for every supported method of every path."""
    paths = document.get("paths") or {}
    for path, path_item in paths.items():
        for method in HTTP_METHODS:
            operation = (path_item or {}).get(method)
            if operation is not None:
                yield path, method, operation


def is_reference(obj) -> bool:
    return isinstance(obj, dict) and "$ref" in obj


def resolve_pointer(document: dict, ref: str):
    """Follow a local JSON pointer such as '#/components/schemas/Pet'."""
    if not ref.startswith("#"):
        raise UnresolvedReferenceError(ref)
    target = document
    for token in ref[1:].split("/")[1:]:
        token = token.replace("~1", "/").replace("~0", "~")
        if isinstance(target, dict) and token in target:
            target = target[token]
        elif isinstance(target, list) and token.isdigit() and int(token) < len(target):
            target = target[int(token)]
        else:
            raise UnresolvedReferenceError(ref)
    return target


def dereference(document: dict) -> dict:
    """Return a copy of the document with every local $ref inlined.

    All refs to the same target share one object, and cyclic refs produce
    a cyclic structure.
    """
    source = copy.deepcopy(document)
    resolved: dict[str, object] = {}

    def walk(node):
        if is_reference(node):
            ref = node["$ref"]
            if ref not in resolved:
                target = resolve_pointer(source, ref)
                if is_reference(target):
                    resolved[ref] = walk(target)
                    return resolved[ref]
                # Register the container before descending so cycles close on it.
                placeholder = type(target)() if isinstance(target, (dict, list)) else target
                resolved[ref] = placeholder
                filled = walk_children(target, placeholder)
                resolved[ref] = filled
            return resolved[ref]
        return walk_children(node, None)

    def walk_children(node, into):
        if isinstance(node, dict):
            out = {} if into is None else into
            for key, value in node.items():
                out[key] = walk(value)
            return out
        if isinstance(node, list):
            out = [] if into is None else into
            out.extend(walk(item) for item in node)
            return out
        return node

    return walk(source)
