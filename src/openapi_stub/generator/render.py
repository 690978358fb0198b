"""Render a CodeUnit as Python source.

Statements are assembled as `ast` nodes and printed with `ast.unparse`.
Python has no inline structural record type, so every record is hoisted
into a named TypedDict class and referenced by name; intersections become
TypedDict classes that inherit from each member.

Named types are written as string forward references. Annotations stay
eagerly evaluated so TypedDict still sees NotRequired at runtime.
"""

import ast
import keyword

from openapi_stub.errors import RenderError
from openapi_stub.generator.contracts import CONTEXT_SUFFIX, upper_first
from openapi_stub.generator.literal import embed_literal
from openapi_stub.parser.base import ANY, CodeUnit, OperationContract, RecordType, RouteRegistration

GENERATOR_VERSION = "0.1.0"
GENERATOR_MARKER = f"Generated by openapi-stub {GENERATOR_VERSION}"

PRIMITIVE_NAMES = {"string": "str", "number": "float", "boolean": "bool", "any": "Any"}

TYPING_NAMES = [
    "Any",
    "Callable",
    "Literal",
    "NotRequired",
    "Optional",
    "Protocol",
    "TypeAlias",
    "TypedDict",
    "Union",
]

# Names the generated module defines or imports itself.
RESERVED_NAMES = frozenset(
    TYPING_NAMES
    + ["Handlers", "API_NAME", "register_handlers", "wire_handler", "host", "RequestBinder"]
    + ["list", "str", "float", "bool"]
)


def _collapse(node):
    """An allOf with a single member is just that member."""
    while node.kind == "intersection" and len(node.members) == 1:
        node = node.members[0]
    return node


def _is_identifier(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name)


def _name(identifier: str) -> ast.Name:
    return ast.Name(id=identifier, ctx=ast.Load())


def _store(identifier: str) -> ast.Name:
    return ast.Name(id=identifier, ctx=ast.Store())


def _ref(identifier: str) -> ast.Constant:
    return ast.Constant(value=identifier)


def _subscript(base: str, items: list[ast.expr]) -> ast.Subscript:
    index = items[0] if len(items) == 1 else ast.Tuple(elts=items, ctx=ast.Load())
    return ast.Subscript(value=_name(base), slice=index, ctx=ast.Load())


def _call(func: ast.expr, args: list[ast.expr], keywords: list[ast.keyword] | None = None) -> ast.Call:
    return ast.Call(func=func, args=args, keywords=keywords or [])


def _attr(owner: str, attr: str) -> ast.Attribute:
    return ast.Attribute(value=_name(owner), attr=attr, ctx=ast.Load())


def _field(name: str, annotation: ast.expr) -> ast.AnnAssign:
    return ast.AnnAssign(target=_name(name), annotation=annotation, value=None, simple=1)


def _class(name: str, bases: list[ast.expr], body: list[ast.stmt], keywords=None) -> ast.ClassDef:
    return ast.ClassDef(
        name=name,
        bases=bases,
        keywords=keywords or [],
        body=body or [ast.Pass()],
        decorator_list=[],
        type_params=[],
    )


def _function(name: str, args: list[ast.arg], body: list[ast.stmt], returns=None, defaults=None) -> ast.FunctionDef:
    arguments = ast.arguments(
        posonlyargs=[],
        args=args,
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=defaults or [],
    )
    return ast.FunctionDef(
        name=name,
        args=arguments,
        body=body,
        decorator_list=[],
        returns=returns,
        type_params=[],
    )


def _docstring(text: str) -> str:
    return '"""' + text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"') + '"""'


class _Declaration:
    def __init__(self, name: str, node: ast.stmt, bases: list[str] | None = None):
        self.name = name
        self.node = node
        self.bases = bases or []


class ModuleRenderer:
    """Turns one CodeUnit into the text of one Python module."""

    def __init__(self, unit: CodeUnit):
        self.unit = unit
        self._declarations: list[_Declaration] = []
        self._taken: set[str] = {m.name for m in unit.models} | {c.type_name for c in unit.contracts}
        self._taken.update(RESERVED_NAMES)
        self._models = {m.name: m.type for m in unit.models}
        self._contract_names = {c.type_name for c in unit.contracts}

    def _claim(self, hint: str) -> str:
        name = hint if _is_identifier(hint) else "".join(c if c.isalnum() else "_" for c in hint)
        candidate, counter = name, 2
        while candidate in self._taken:
            candidate = f"{name}{counter}"
            counter += 1
        self._taken.add(candidate)
        return candidate

    # -- type annotations -----------------------------------------------------

    def annotation(self, node, hint: str) -> ast.expr:
        node = _collapse(node)
        kind = node.kind
        if kind == "ref":
            return _ref(node.name)
        if kind == "primitive":
            return _name(PRIMITIVE_NAMES[node.name])
        if kind == "array":
            return _subscript("list", [self.annotation(node.item, hint + "Item")])
        if kind == "literal":
            return _subscript("Literal", [ast.Constant(value=v) for v in node.values])
        if kind == "union":
            return _subscript(
                "Union", [self.annotation(m, f"{hint}Option{i}") for i, m in enumerate(node.members, 1)]
            )
        if kind == "record":
            return _ref(self.declare_record(self._claim(hint), node))
        if kind == "intersection":
            return _ref(self.declare_intersection(self._claim(hint), node))
        raise RenderError(f"Cannot render type node {kind!r}")

    def _field_annotation(self, type_node, hint: str, required: bool) -> ast.expr:
        ann = self.annotation(type_node, hint)
        return ann if required else _subscript("NotRequired", [ann])

    # -- declarations ---------------------------------------------------------

    def declare_record(self, name: str, record: RecordType) -> str:
        self._declare_typed_dict(name, [(p.name, p.type, p.required) for p in record.properties])
        return name

    def _declare_typed_dict(self, name: str, fields: list[tuple]):
        annotations = [
            (field_name, self._field_annotation(type_node, name + upper_first(field_name), required))
            for field_name, type_node, required in fields
        ]
        if all(_is_identifier(field_name) for field_name, _ in annotations):
            node = _class(name, [_name("TypedDict")], [_field(n, ann) for n, ann in annotations])
        else:
            # Keys that are not identifiers need the functional syntax.
            mapping = ast.Dict(keys=[ast.Constant(value=n) for n, _ in annotations], values=[a for _, a in annotations])
            node = ast.Assign(targets=[_store(name)], value=_call(_name("TypedDict"), [ast.Constant(value=name), mapping]))
        self._declarations.append(_Declaration(name, node))

    def declare_intersection(self, name: str, node) -> str:
        bases: list[str] = []
        for i, member in enumerate(node.members, 1):
            member = _collapse(member)
            if member.kind == "ref":
                base = self._base_model(name, member.name)
            elif member.kind == "record":
                base = self.declare_record(self._claim(f"{name}Part{i}"), member)
            elif member.kind == "intersection":
                base = self.declare_intersection(self._claim(f"{name}Part{i}"), member)
            else:
                raise RenderError(f"{name}: allOf members must be objects or references, got {member.kind}")
            if base not in bases:
                bases.append(base)
        self._declarations.append(_Declaration(name, _class(name, [_name(b) for b in bases], []), bases))
        return name

    def _is_class(self, type_node) -> bool:
        type_node = _collapse(type_node)
        return type_node.kind in ("record", "intersection")

    def _base_model(self, owner: str, name: str) -> str:
        if name not in self._models:
            raise RenderError(f"{owner}: allOf references unknown schema {name!r}")
        if not self._is_class(self._models[name]):
            raise RenderError(f"{owner}: allOf member {name!r} is not an object schema")
        return name

    def declare_model(self, name: str, type_node):
        if not _is_identifier(name):
            raise RenderError(f"Component schema name {name!r} is not a valid identifier")
        if name in RESERVED_NAMES:
            raise RenderError(f"Component schema name {name!r} clashes with a name the module defines")
        if name in self._contract_names:
            raise RenderError(f"Component schema name {name!r} clashes with an operation context type")
        type_node = _collapse(type_node)
        if type_node.kind == "record":
            self.declare_record(name, type_node)
        elif type_node.kind == "intersection":
            self.declare_intersection(name, type_node)
        else:
            alias = ast.AnnAssign(
                target=_store(name),
                annotation=_name("TypeAlias"),
                value=self.annotation(type_node, name),
                simple=1,
            )
            self._declarations.append(_Declaration(name, alias))

    def declare_contract(self, contract: OperationContract):
        name = contract.type_name
        params_name = self._claim(name + "Parameters")
        self._declare_typed_dict(params_name, [(p.name, p.type or ANY, p.required) for p in contract.parameters])

        body: list[ast.stmt] = [_field("parameters", _ref(params_name))]
        if contract.body is not None:
            ann = self.annotation(contract.body.type, name + "Body")
            if not contract.body.required:
                ann = _subscript("Optional", [ann])
            body.append(_field("body", ann))
        for sender in contract.senders:
            args = [
                ast.arg(arg="self"),
                ast.arg(arg="status_code", annotation=_name("int")),
                ast.arg(arg="response", annotation=self.annotation(sender.type, name + upper_first(sender.name))),
            ]
            body.append(_function(sender.name, args, [ast.Expr(value=ast.Constant(value=...))], ast.Constant(value=None)))
        self._declarations.append(_Declaration(name, _class(name, [_name("Protocol")], body)))

    def declare_handlers(self):
        fields = []
        for contract in self.unit.contracts:
            signature = ast.List(elts=[_ref(contract.type_name)], ctx=ast.Load())
            fields.append((contract.operation_id, _subscript("Callable", [signature, ast.Constant(value=None)])))

        total = [ast.keyword(arg="total", value=ast.Constant(value=False))]
        if all(_is_identifier(op_id) for op_id, _ in fields):
            node = _class("Handlers", [_name("TypedDict")], [_field(k, v) for k, v in fields], total)
        else:
            mapping = ast.Dict(keys=[ast.Constant(value=k) for k, _ in fields], values=[v for _, v in fields])
            node = ast.Assign(
                targets=[_store("Handlers")],
                value=_call(_name("TypedDict"), [ast.Constant(value="Handlers"), mapping], total),
            )
        self._declarations.append(_Declaration("Handlers", node))

    # -- registration ---------------------------------------------------------

    def _route_statements(self, route: RouteRegistration) -> list[ast.stmt]:
        stem = route.type_name.removesuffix(CONTEXT_SUFFIX) or route.type_name
        operation_var = f"operation_{stem}"
        adapter = f"handle_{stem}"
        handler = _call(_attr("handlers", "get"), [ast.Constant(value=route.operation_id)])
        dispatch = _call(
            _name("wire_handler"),
            [
                ast.Constant(value=self.unit.version),
                _name(operation_var),
                _name("request"),
                _name("response"),
                _name("report_error"),
                handler,
            ],
            [ast.keyword(arg="binder", value=_name("binder"))],
        )
        adapter_args = [ast.arg(arg="request"), ast.arg(arg="response"), ast.arg(arg="report_error")]
        return [
            ast.Assign(targets=[_store(operation_var)], value=embed_literal(route.operation)),
            _function(adapter, adapter_args, [ast.Expr(value=dispatch)]),
            ast.Expr(value=_call(_attr("router", route.method), [ast.Constant(value=route.path), _name(adapter)])),
        ]

    def register_function(self) -> ast.FunctionDef:
        body: list[ast.stmt] = []
        for route in self.unit.routes:
            body.extend(self._route_statements(route))
        args = [
            ast.arg(arg="router", annotation=_attr("host", "Router")),
            ast.arg(arg="handlers", annotation=_name("Handlers")),
            ast.arg(arg="binder", annotation=_subscript("Optional", [_name("RequestBinder")])),
        ]
        return _function(
            "register_handlers",
            args,
            body or [ast.Pass()],
            returns=ast.Constant(value=None),
            defaults=[ast.Constant(value=None)],
        )

    # -- module ---------------------------------------------------------------

    def _ordered(self) -> list[_Declaration]:
        """Declarations with every base class ahead of its subclasses."""
        names = {d.name for d in self._declarations}
        done: set[str] = set()
        pending = list(self._declarations)
        ordered = []
        while pending:
            for decl in pending:
                if all(b in done or b not in names for b in decl.bases):
                    break
            else:
                raise RenderError("Circular allOf inheritance: " + ", ".join(d.name for d in pending))
            ordered.append(decl)
            done.add(decl.name)
            pending.remove(decl)
        return ordered

    def render(self) -> str:
        for model in self.unit.models:
            self.declare_model(model.name, model.type)
        for contract in self.unit.contracts:
            self.declare_contract(contract)
        self.declare_handlers()

        imports = [
            ast.ImportFrom(module="typing", names=[ast.alias(name=n) for n in TYPING_NAMES], level=0),
            ast.ImportFrom(module="openapi_stub.runtime", names=[ast.alias(name="host")], level=0),
            ast.ImportFrom(
                module="openapi_stub.runtime.binder",
                names=[ast.alias(name="RequestBinder"), ast.alias(name="wire_handler")],
                level=0,
            ),
        ]
        api_name = ast.Assign(targets=[_store("API_NAME")], value=ast.Constant(value=self.unit.name))
        declarations = [d.node for d in self._ordered()] + [self.register_function()]

        module = ast.Module(body=imports + [api_name] + declarations, type_ignores=[])
        ast.fix_missing_locations(module)

        chunks = [
            _docstring(f"{self.unit.title} handler contracts.\n\n{GENERATOR_MARKER}. Do not edit.\n"),
            ast.unparse(imports[0]) + "\n\n" + "\n".join(ast.unparse(i) for i in imports[1:]),
            ast.unparse(api_name),
        ]
        return "\n\n".join(chunks) + "\n\n\n" + "\n\n\n".join(ast.unparse(d) for d in declarations) + "\n"


def render_module(unit: CodeUnit) -> str:
    return ModuleRenderer(unit).render()
