"""Error types raised while generating stubs and while binding requests."""


class OpenApiStubError(Exception):
    """Base class for every error raised by openapi-stub."""


# -- document loading ---------------------------------------------------------


class UnsupportedDocumentError(OpenApiStubError):
    """The input is not an OpenAPI 3 document."""


class UnresolvedReferenceError(OpenApiStubError):
    """A local $ref points at nothing."""

    def __init__(self, ref: str):
        super().__init__(f"Cannot resolve reference: {ref}")
        self.ref = ref


# -- generation ---------------------------------------------------------------


class GenerationError(OpenApiStubError):
    """Aborts a generation run. No output is written."""


class UnsupportedSchemaError(GenerationError):
    pass


class MissingOperationIdError(GenerationError):
    def __init__(self, method: str = "", path: str = ""):
        where = f" ({method.upper()} {path})" if path else ""
        super().__init__(f"Missing operation ID{where}")


class UnsupportedParameterRefError(GenerationError):
    def __init__(self, operation_id: str, ref: str):
        super().__init__(f"Can't handle parameter refs ({operation_id}: {ref})")


class UnsupportedRequestBodyRefError(GenerationError):
    def __init__(self, operation_id: str, ref: str):
        super().__init__(f"Ref object not supported for request body ({operation_id}: {ref})")


class DuplicateOperationIdError(GenerationError):
    def __init__(self, type_name: str, first: str, second: str):
        super().__init__(
            f"Operation IDs {first!r} and {second!r} both normalize to {type_name!r}"
        )
        self.type_name = type_name


class InvalidOperationIdError(GenerationError):
    def __init__(self, operation_id: str, type_name: str):
        super().__init__(
            f"Operation ID {operation_id!r} normalizes to {type_name!r}, which is not a valid identifier"
        )


class LiteralConversionError(GenerationError):
    pass


class RenderError(GenerationError):
    pass


# -- request time -------------------------------------------------------------


class RequestError(OpenApiStubError):
    """A client-fault error that is answered with a structured 4xx response."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_payload(self) -> dict:
        return {"message": self.message, "code": self.code, "details": self.details}


class ParameterError(RequestError):
    def __init__(self, message: str, parameter_name: str, details: list[dict] | None = None):
        super().__init__(message, details)
        self.parameter_name = parameter_name


class MissingRequiredParameterError(ParameterError):
    code = "MISSING_REQUIRED_PARAMETER"

    def __init__(self, parameter_name: str, location: str | None = None):
        where = f" {location}" if location else ""
        super().__init__(
            f"Missing required{where} parameter: {parameter_name}",
            parameter_name,
            [{"path": parameter_name, "code": "required", "message": "is required", "info": {}}],
        )


class CoercionError(ParameterError):
    code = "INVALID_PARAMETER_VALUE"

    def __init__(self, kind: str, parameter_name: str, value=None, extra: dict | None = None):
        info = {"kind": kind, "value": value if isinstance(value, (str, int, float, bool)) else repr(value)}
        info.update(extra or {})
        super().__init__(
            f"Invalid data {value!r} for parameter {parameter_name!r}",
            parameter_name,
            [{"path": parameter_name, "code": "type", "message": f"expected {kind}", "info": info}],
        )
        self.kind = kind


class ValidationError(RequestError):
    status_code = 422
    code = "VALIDATION_FAILED"

    def __init__(self, details: list[dict], message: str = "validation error"):
        super().__init__(message, details)


class OperationNotImplementedError(OpenApiStubError):
    def __init__(self, operation_id: str):
        super().__init__(f"Operation {operation_id} not yet implemented.")
        self.operation_id = operation_id


class ProtocolVersionError(OpenApiStubError):
    def __init__(self, version):
        super().__init__(f"Invalid version number: {version}")
        self.version = version
