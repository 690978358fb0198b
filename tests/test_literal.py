import ast

import pytest

from openapi_stub.errors import LiteralConversionError
from openapi_stub.generator.literal import MISSING, decode_literal, embed_literal, render_literal

SCENARIOS = [
    MISSING,
    None,
    0,
    42,
    True,
    False,
    "foo",
    [],
    ["a", 1, True],
    {},
    {"a": {"b": [1, 2, {"c": False}]}, 2: ["x"], False: [], "n": None},
]


class TestEmbedLiteral:
    @pytest.mark.parametrize("value", SCENARIOS)
    def test_decodes_back_to_value(self, value):
        assert decode_literal(embed_literal(value)) == value

    @pytest.mark.parametrize("value", SCENARIOS)
    def test_reembedding_renders_identically(self, value):
        once = embed_literal(value)
        assert ast.unparse(embed_literal(decode_literal(once))) == ast.unparse(once)

    def test_booleans_stay_booleans(self):
        decoded = decode_literal(embed_literal([True, 1]))
        assert decoded[0] is True
        assert decoded[1] == 1 and decoded[1] is not True

    def test_missing_renders_as_ellipsis(self):
        assert render_literal(MISSING) == "..."
        assert decode_literal(embed_literal(MISSING)) is MISSING

    def test_nested_render(self):
        assert render_literal({"in": "path", "required": True}) == "{'in': 'path', 'required': True}"


class TestEmbedErrors:
    def test_unknown_type(self):
        with pytest.raises(LiteralConversionError, match="Unknown type"):
            embed_literal({1, 2})

    def test_non_finite_number(self):
        with pytest.raises(LiteralConversionError):
            embed_literal(float("nan"))

    def test_circular_structure(self):
        node = {"name": "loop"}
        node["self"] = node
        with pytest.raises(LiteralConversionError, match="Circular"):
            embed_literal(node)

    def test_shared_but_acyclic_is_fine(self):
        shared = {"type": "string"}
        assert decode_literal(embed_literal([shared, shared])) == [shared, shared]
