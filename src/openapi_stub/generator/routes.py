"""Route registration emitter.

Walks every path and method of a document and produces the CodeUnit that
the renderer prints: component models, one handler contract per operation
and one route registration per operation.
"""

import logging
import re

from openapi_stub.errors import DuplicateOperationIdError, InvalidOperationIdError
from openapi_stub.generator.contracts import build_contract
from openapi_stub.generator.models import map_type
from openapi_stub.parser.base import CodeUnit, RouteRegistration, TypeDeclaration
from openapi_stub.parser.openapi import iter_operations

logger = logging.getLogger(__name__)

# Checked by the runtime binder on every dispatch.
PROTOCOL_VERSION = 1

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")


def convert_path(openapi_path: str) -> str:
    """OpenAPI paths use {name} while the router uses :name."""
    return _PLACEHOLDER.sub(r":\1", openapi_path)


def unit_name(document: dict) -> str:
    title = (document.get("info") or {}).get("title") or "Api"
    return title.replace(" ", "")


def emit(document: dict, dereferenced: dict) -> CodeUnit:
    """Build the code unit for a document and its fully dereferenced copy."""
    schemas = (document.get("components") or {}).get("schemas") or {}
    models = [TypeDeclaration(name=name, type=map_type(schema)) for name, schema in schemas.items()]

    contracts = []
    routes = []
    seen: dict[str, str] = {}
    deref_paths = dereferenced.get("paths") or {}

    for path, method, operation in iter_operations(document):
        contract = build_contract(operation, method, path)
        if not contract.type_name.isidentifier():
            raise InvalidOperationIdError(contract.operation_id, contract.type_name)
        if contract.type_name in seen:
            raise DuplicateOperationIdError(contract.type_name, seen[contract.type_name], contract.operation_id)
        seen[contract.type_name] = contract.operation_id
        contracts.append(contract)

        # Embed the dereferenced operation so no $ref survives into the output.
        routes.append(
            RouteRegistration(
                method=method,
                path=convert_path(path),
                operation_id=contract.operation_id,
                type_name=contract.type_name,
                operation=deref_paths[path][method],
            )
        )
        logger.debug("Emitted %s %s as %s", method.upper(), path, contract.type_name)

    return CodeUnit(
        name=unit_name(document),
        title=(document.get("info") or {}).get("title") or "",
        version=PROTOCOL_VERSION,
        models=models,
        contracts=contracts,
        routes=routes,
    )
