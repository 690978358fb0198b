"""Per-operation handler contracts.

For GET /pets with an operationId of findPets this derives everything the
renderer needs to emit

    class FindPetsParam(Protocol):
        parameters: FindPetsParamParameters
        def send200(self, status_code: int, response: list["Pet"]) -> None: ...
        def sendDefault(self, status_code: int, response: "Error") -> None: ...
"""

from openapi_stub.errors import (
    MissingOperationIdError,
    UnsupportedParameterRefError,
    UnsupportedRequestBodyRefError,
)
from openapi_stub.generator.models import map_type
from openapi_stub.parser.base import (
    ANY,
    BodyContract,
    OperationContract,
    ParameterContract,
    SenderContract,
)
from openapi_stub.parser.openapi import is_reference

CONTEXT_SUFFIX = "Param"
JSON_MEDIA_TYPE = "application/json"


def upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def sender_name(code: str) -> str:
    """Response code token to sender name: 200 -> send200, default -> sendDefault."""
    return "send" + upper_first(str(code))


def context_type_name(operation_id: str) -> str:
    """Normalize an operation ID into its context type name.

    'findPets' -> 'FindPetsParam', 'find pets' -> 'FindPetsParam'.
    """
    return "".join(upper_first(part) for part in operation_id.split(" ")) + CONTEXT_SUFFIX


def json_schema_of(obj: dict | None) -> dict | None:
    """The application/json schema of a Response or Request Body Object, if any."""
    content = (obj or {}).get("content") or {}
    media = content.get(JSON_MEDIA_TYPE) or {}
    return media.get("schema")


def build_contract(operation: dict, method: str = "", path: str = "") -> OperationContract:
    operation_id = operation.get("operationId")
    if not operation_id:
        raise MissingOperationIdError(method, path)

    return OperationContract(
        operation_id=operation_id,
        type_name=context_type_name(operation_id),
        parameters=_build_parameters(operation_id, operation.get("parameters") or []),
        body=_build_body(operation_id, operation.get("requestBody")),
        senders=_build_senders(operation.get("responses") or {}),
    )


def _build_parameters(operation_id: str, params: list[dict]) -> list[ParameterContract]:
    result = []
    for param in params:
        if is_reference(param):
            raise UnsupportedParameterRefError(operation_id, param["$ref"])
        schema = param.get("schema")
        result.append(
            ParameterContract(
                name=param["name"],
                location=param.get("in"),
                type=map_type(schema) if schema is not None else None,
                required=bool(param.get("required", False)),
            )
        )
    return result


def _build_body(operation_id: str, body: dict | None) -> BodyContract | None:
    if body is None:
        return None
    if is_reference(body):
        raise UnsupportedRequestBodyRefError(operation_id, body["$ref"])
    schema = json_schema_of(body)
    return BodyContract(
        type=map_type(schema) if schema is not None else ANY,
        required=body.get("required") is True,
    )


def _build_senders(responses: dict) -> list[SenderContract]:
    senders = []
    for code, response in responses.items():
        code = str(code)
        schema = None if is_reference(response) else json_schema_of(response)
        senders.append(
            SenderContract(
                code=code,
                name=sender_name(code),
                type=map_type(schema) if schema is not None else ANY,
            )
        )
    return senders
