"""Stub generator: OpenAPI document in, Python module text out."""

import logging

from openapi_stub.errors import GenerationError
from openapi_stub.generator.render import render_module
from openapi_stub.generator.routes import emit
from openapi_stub.generator.validator import validate_files
from openapi_stub.parser.openapi import dereference

logger = logging.getLogger(__name__)


class StubGenerator:
    """Generates the handler contract module for one OpenAPI document."""

    def __init__(self, module_filename: str = "api.py"):
        self.module_filename = module_filename

    def generate(self, document: dict, dereferenced: dict | None = None) -> str:
        """Return the source of the generated module.

        Raises GenerationError (and produces nothing) on any unsupported
        construct or if the rendered module fails its checks.
        """
        if dereferenced is None:
            dereferenced = dereference(document)

        unit = emit(document, dereferenced)
        source = render_module(unit)
        logger.debug(
            "Rendered %s: %d models, %d operations", unit.name, len(unit.models), len(unit.contracts)
        )

        errors = validate_files({self.module_filename: source})
        if errors:
            raise GenerationError("; ".join(f"{name}: {msg}" for name, msg in errors.items()))
        return source


def generate_module(document: dict, dereferenced: dict | None = None) -> str:
    return StubGenerator().generate(document, dereferenced)
