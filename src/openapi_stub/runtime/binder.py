"""Dispatch live requests to user handlers according to an embedded operation.

Generated route adapters call `wire_handler` with the fully dereferenced
Operation Object they carry. For each request the binder

1. checks the protocol version,
2. validates a required JSON body (422 on failure),
3. coerces path and query parameters (400 on failure),
4. builds the request context with one `send<Code>` function per response,
5. calls the handler, or reports that the operation is not implemented.
"""

import logging
import os
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import make_dataclass
from functools import lru_cache
from typing import Any, Callable

from openapi_stub.errors import (
    MissingRequiredParameterError,
    OperationNotImplementedError,
    ProtocolVersionError,
    RequestError,
    ValidationError,
)
from openapi_stub.generator.contracts import json_schema_of, sender_name
from openapi_stub.runtime.coercion import coerce_parameter
from openapi_stub.runtime.validation import SchemaValidator

logger = logging.getLogger(__name__)

SUPPORTED_VERSION = 1
STRICT_RESPONSES_ENV = "OPENAPI_STUB_STRICT_RESPONSES"

# Where each bindable parameter location is read from on the host request.
PARAMETER_SOURCES = {"query": "query", "path": "params"}


@lru_cache(maxsize=None)
def context_class(operation_id: str, senders: tuple[str, ...]) -> type:
    """The request context record for one operation shape."""
    name = "".join(c for c in operation_id.title() if c.isalnum()) or "Operation"
    fields = [("parameters", dict), ("body", Any)]
    fields.extend((sender, Callable) for sender in senders)
    return make_dataclass(name + "Context", fields, frozen=True)


class RequestBinder:
    """Binds requests for generated route adapters.

    One binder owns one SchemaValidator, and with it the compiled-validator
    cache shared by every request it handles.
    """

    def __init__(
        self,
        validator: SchemaValidator | None = None,
        executor: Executor | None = None,
        strict_responses: bool = False,
    ):
        self.validator = validator or SchemaValidator()
        self.strict_responses = strict_responses
        self._executor = executor
        self._executor_lock = threading.Lock()

    @property
    def executor(self) -> Executor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="response-validation")
            return self._executor

    def shutdown(self, wait: bool = True):
        with self._executor_lock:
            executor = self._executor
        if executor is not None:
            executor.shutdown(wait=wait)

    def wire(self, version, operation: dict, request, response, report_error, handler) -> None:
        if version != SUPPORTED_VERSION:
            raise ProtocolVersionError(version)

        operation_id = operation.get("operationId", "")
        try:
            self._validate_body(operation, request.body)
            parameters = self.bind_parameters(operation, request)
        except RequestError as err:
            logger.debug("Rejected %s with %d: %s", operation_id, err.status_code, err.message)
            response.respond(err.status_code, err.to_payload())
            return

        context = self.build_context(operation, parameters, request.body, response)

        # The handler function can be left undefined.
        if handler is None:
            report_error(OperationNotImplementedError(operation_id))
            return

        try:
            handler(context)
        except Exception as err:
            logger.debug("Handler for %s raised %r", operation_id, err)
            report_error(err)

    def _validate_body(self, operation: dict, body) -> None:
        request_body = operation.get("requestBody") or {}
        if request_body.get("required") is not True:
            return
        schema = json_schema_of(request_body)
        if schema is not None:
            self.validator.validate(body, schema)

    def bind_parameters(self, operation: dict, request) -> dict:
        """Coerce every query and path parameter, keyed by its declared name."""
        parameters = {}
        for param in operation.get("parameters") or []:
            source = PARAMETER_SOURCES.get(param.get("in"))
            if source is None:
                continue
            values = getattr(request, source, None) or {}
            raw = values.get(param["name"])
            if param.get("required") and raw in (None, ""):
                raise MissingRequiredParameterError(param["name"], param.get("in"))
            parameters[param["name"]] = coerce_parameter(raw, param)
        return parameters

    def build_context(self, operation: dict, parameters: dict, body, response):
        responses = operation.get("responses") or {}
        senders = {
            sender_name(code): self._make_sender(operation, spec, response) for code, spec in responses.items()
        }
        cls = context_class(operation.get("operationId", ""), tuple(senders))
        return cls(parameters=parameters, body=body, **senders)

    def _make_sender(self, operation: dict, response_spec: dict, response) -> Callable[[int, Any], None]:
        schema = json_schema_of(response_spec)
        operation_id = operation.get("operationId", "")

        def send(status_code: int, payload: Any) -> None:
            if schema is None:
                response.respond(status_code, payload)
            elif self.strict_responses:
                try:
                    self.validator.validate(payload, schema)
                except ValidationError as err:
                    logger.error("Response for %s violates its schema: %s", operation_id, err.details)
                    response.respond(500, {"message": "invalid response", "code": err.code, "details": err.details})
                    return
                response.respond(status_code, payload)
            else:
                response.respond(status_code, payload)
                self.executor.submit(self._check_response, operation_id, status_code, payload, schema)

        return send

    def _check_response(self, operation_id: str, status_code: int, payload, schema: dict) -> None:
        try:
            self.validator.validate(payload, schema)
        except ValidationError as err:
            logger.warning(
                "Response %d for %s violates its schema: %s", status_code, operation_id, err.details
            )
        except Exception:
            logger.exception("Could not validate response %d for %s", status_code, operation_id)


_default_binder: RequestBinder | None = None
_default_lock = threading.Lock()


def default_binder() -> RequestBinder:
    """The process-wide binder used when route adapters are given none."""
    global _default_binder
    with _default_lock:
        if _default_binder is None:
            strict = os.getenv(STRICT_RESPONSES_ENV, "").lower() in ("1", "true", "yes")
            _default_binder = RequestBinder(strict_responses=strict)
    return _default_binder


def wire_handler(version, operation, request, response, report_error, handler, binder: RequestBinder | None = None):
    """Entry point called by generated route adapters."""
    (binder or default_binder()).wire(version, operation, request, response, report_error, handler)
