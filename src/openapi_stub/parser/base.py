"""Structural models shared by the generator stages.

The schema mapper and the contract builder produce these trees; the
renderer turns them into Python source. Nothing here knows about the
output language, so the hard part of generation stays testable on its own.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


class RefType(_Node):
    """A named reference to a component schema."""

    kind: Literal["ref"] = "ref"
    name: str


class PrimitiveType(_Node):
    kind: Literal["primitive"] = "primitive"
    name: Literal["string", "number", "boolean", "any"]


class ArrayType(_Node):
    kind: Literal["array"] = "array"
    item: "TypeNode"


class Property(_Node):
    name: str
    type: "TypeNode"
    required: bool = False


class RecordType(_Node):
    kind: Literal["record"] = "record"
    properties: list[Property] = []


class UnionType(_Node):
    kind: Literal["union"] = "union"
    members: list["TypeNode"]


class IntersectionType(_Node):
    kind: Literal["intersection"] = "intersection"
    members: list["TypeNode"]


class LiteralType(_Node):
    """Union of literal values, produced from `enum`."""

    kind: Literal["literal"] = "literal"
    values: list[str | bool | int | float | None]


TypeNode = Annotated[
    Union[RefType, PrimitiveType, ArrayType, RecordType, UnionType, IntersectionType, LiteralType],
    Field(discriminator="kind"),
]

ANY = PrimitiveType(name="any")

for _model in (ArrayType, Property, RecordType, UnionType, IntersectionType):
    _model.model_rebuild()


class ParameterContract(_Node):
    name: str
    location: str | None  # query / path / header / cookie
    type: TypeNode | None = None
    required: bool = False


class BodyContract(_Node):
    type: TypeNode
    required: bool = False


class SenderContract(_Node):
    """One `send<Code>` function of a request context."""

    code: str  # 200 / 404 / default
    name: str  # send200 / sendDefault
    type: TypeNode


class OperationContract(_Node):
    operation_id: str
    type_name: str  # FindPetsParam
    parameters: list[ParameterContract]
    body: BodyContract | None = None
    senders: list[SenderContract]


class TypeDeclaration(_Node):
    name: str
    type: TypeNode


class RouteRegistration(_Node):
    method: str  # get / put / delete / post / patch
    path: str  # router path, /pets/:petId
    operation_id: str
    type_name: str
    operation: Any  # fully dereferenced Operation Object, embedded verbatim


class CodeUnit(_Node):
    name: str  # document title with spaces stripped
    title: str
    version: int
    models: list[TypeDeclaration]
    contracts: list[OperationContract]
    routes: list[RouteRegistration]
