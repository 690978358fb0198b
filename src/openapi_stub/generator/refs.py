"""Reference Object to type name resolution."""

from openapi_stub.parser.base import RefType


def ref_name(ref: str) -> str:
    """Return the component name a $ref points at.

    Assumes the ref targets a top-level entry of components/schemas, so the
    name is whatever follows the last '/'. Whether that component exists is
    not checked here.
    """
    return ref[ref.rfind("/") + 1:]


def resolve_ref(reference: dict) -> RefType:
    return RefType(name=ref_name(reference["$ref"]))
