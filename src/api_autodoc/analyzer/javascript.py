"""JavaScript/TypeScript handler analyzer built on tree-sitter.

Parses handler source and extracts, for every function-like node:
- parameter shapes
- req.body / req.query / req.params / req.headers field access
- res.json / res.send payload shapes and res.status codes
- thrown errors
- returned values
"""

import logging
from pathlib import Path
from typing import Iterator

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser

from .base import (
    ALL_FIELDS,
    ExportInfo,
    FunctionAnalysis,
    FunctionParameter,
    ImportInfo,
    SourceAnalysis,
    ThrownError,
)
from .shapes import (
    WRAPPER_TYPES,
    extract_literal_value,
    extract_object_structure,
    node_text,
    property_key,
    string_value,
    unwrap,
)

REQUEST_NAMES = {"req", "request"}
RESPONSE_NAMES = {"res", "response"}
USAGE_KEYS = ("body", "query", "params", "headers")

FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
FUNCTION_EXPRESSIONS = {"arrow_function", "function_expression", "function", "generator_function"}

_LANGUAGES = {
    "javascript": lambda: Language(tsjs.language()),
    "typescript": lambda: Language(tsts.language_typescript()),
    "tsx": lambda: Language(tsts.language_tsx()),
}

_SUFFIX_DIALECTS = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}


class SyntaxAnalyzer:
    """Pattern-based analyzer for Express-style handler code."""

    def __init__(self, dialect: str = "javascript", logger: logging.Logger | None = None):
        if dialect not in _LANGUAGES:
            raise ValueError(f"Unsupported dialect: {dialect}")
        self.dialect = dialect
        self._parsers: dict[str, Parser] = {}
        self.parser = self._parser(dialect)
        self.logger = logger or logging.getLogger("api_autodoc.analyzer")

    def _parser(self, dialect: str) -> Parser:
        if dialect not in self._parsers:
            self._parsers[dialect] = Parser(_LANGUAGES[dialect]())
        return self._parsers[dialect]

    def analyze_file(self, file_path: Path) -> SourceAnalysis:
        file_path = Path(file_path)
        code = file_path.read_text(encoding="utf-8")
        dialect = _SUFFIX_DIALECTS.get(file_path.suffix.lower(), self.dialect)
        return self.analyze(code, file_name=str(file_path), dialect=dialect)

    def analyze(self, source: str, file_name: str = "unknown", dialect: str | None = None) -> SourceAnalysis:
        """Analyze a source text. Parse failures are reported, never raised.

        JavaScript that does not parse is retried as TypeScript, so handlers
        with type annotations still yield their functions.
        """
        dialect = dialect or self.dialect
        root = self._parser(dialect).parse(source.encode("utf-8")).root_node
        if root.has_error and dialect == "javascript":
            typed = self._parser("typescript").parse(source.encode("utf-8")).root_node
            if not typed.has_error:
                root = typed

        if root.has_error:
            message = _syntax_error_message(root)
            self.logger.debug("Could not parse %s: %s", file_name, message)
            return SourceAnalysis(file_name=file_name, errors=[message])

        analysis = SourceAnalysis(file_name=file_name)
        for node in _walk(root):
            function = self._function_at(node)
            if function is not None:
                fn_node, name, is_class_method = function
                analysis.functions.append(self._analyze_function(fn_node, name, is_class_method))

            if node.type == "import_statement":
                analysis.imports.append(_import_info(node))
            elif node.type == "export_statement":
                export = _export_info(node)
                if export is not None:
                    analysis.exports.append(export)
        return analysis

    def analyze_handler(self, source: str, name: str = "anonymous") -> SourceAnalysis:
        """Analyze the source text of a single route handler.

        Handler sources come from ``Function.prototype.toString`` and are not
        always valid statements on their own (anonymous function expressions,
        method shorthand), so they are retried as expressions.
        """
        first = self.analyze(source, file_name=name)
        if first.functions and not first.errors:
            return first

        for wrapped in (f"(\n{source}\n)", f"({{\n{source}\n}})"):
            retry = self.analyze(wrapped, file_name=name)
            if retry.functions and not retry.errors:
                return retry
        return first

    def analyze_function_by_name(self, source: str, function_name: str) -> FunctionAnalysis | None:
        analysis = self.analyze(source)
        for function in analysis.functions:
            if function.name == function_name:
                return function
        return None

    def _function_at(self, node: Node) -> tuple[Node, str, bool] | None:
        """Return (function node, name, is class method) if node declares one."""
        kind = node.type
        if kind in FUNCTION_DECLARATIONS:
            return node, _name_of(node.child_by_field_name("name")), False

        if kind == "variable_declarator":
            value = unwrap(node.child_by_field_name("value"))
            if value is not None and value.type in FUNCTION_EXPRESSIONS:
                target = node.child_by_field_name("name")
                name = node_text(target) if target is not None and target.type == "identifier" else "anonymous"
                return value, name, False
            return None

        if kind == "method_definition":
            return node, _name_of(node.child_by_field_name("name")), _in_class(node)

        if kind in ("field_definition", "public_field_definition"):
            value = unwrap(node.child_by_field_name("value"))
            if value is not None and value.type in FUNCTION_EXPRESSIONS:
                target = node.child_by_field_name("property") or node.child_by_field_name("name")
                return value, _name_of(target), True
            return None

        if kind == "expression_statement" and node.parent is not None and node.parent.type == "program":
            expression = unwrap(_first_named(node))
            if expression is not None and expression.type in FUNCTION_EXPRESSIONS:
                return expression, _name_of(expression.child_by_field_name("name")), False
            return None

        if kind == "export_statement":
            value = unwrap(node.child_by_field_name("value"))
            if value is not None and value.type in FUNCTION_EXPRESSIONS:
                return value, _name_of(value.child_by_field_name("name")), False
        return None

    def _analyze_function(self, node: Node, name: str, is_class_method: bool) -> FunctionAnalysis:
        analysis = FunctionAnalysis(
            name=name,
            is_async=any(child.type == "async" for child in node.children),
            is_arrow=node.type == "arrow_function",
            is_class_method=is_class_method,
            parameters=_extract_parameters(node),
        )

        for child in node.children:
            for descendant in _walk(child):
                kind = descendant.type
                if kind in ("member_expression", "subscript_expression"):
                    self._analyze_member_expression(descendant, analysis)
                elif kind == "variable_declarator":
                    self._analyze_destructuring(descendant, analysis)
                elif kind == "call_expression":
                    self._analyze_call_expression(descendant, analysis)
                elif kind == "throw_statement":
                    self._analyze_throw_statement(descendant, analysis)
                elif kind == "return_statement":
                    self._analyze_return_statement(descendant, analysis)
        return analysis

    def _analyze_member_expression(self, node: Node, analysis: FunctionAnalysis) -> None:
        target = node.child_by_field_name("object")
        if target is None:
            return

        # req.body.field / req.body["field"]
        usage_key = _request_usage_key(unwrap(target))
        if usage_key is not None:
            # req.body[key] with a computed key reads an unknown field
            field = _member_field(node) or ALL_FIELDS
            getattr(analysis.request_usage, usage_key).append(field)
            return

        # req.body on its own
        if node.type == "member_expression" and _request_usage_key(node) is not None:
            if _has_further_access(node) or _is_destructured(node):
                return
            getattr(analysis.request_usage, _request_usage_key(node)).append(ALL_FIELDS)

    def _analyze_destructuring(self, node: Node, analysis: FunctionAnalysis) -> None:
        pattern = node.child_by_field_name("name")
        value = unwrap(node.child_by_field_name("value"))
        if pattern is None or value is None or pattern.type != "object_pattern":
            return

        # const { a, b } = req.body
        usage_key = _request_usage_key(value)
        if usage_key is not None:
            fields = [p for p in _pattern_properties(pattern) if not p.startswith("...")]
            getattr(analysis.request_usage, usage_key).extend(fields or [ALL_FIELDS])
            return

        # const { body, query: { page } } = req
        if value.type == "identifier" and node_text(value) in REQUEST_NAMES:
            for prop in pattern.named_children:
                key, inner = _pattern_entry(prop)
                if key not in USAGE_KEYS:
                    continue
                fields = []
                if inner is not None and inner.type == "object_pattern":
                    fields = [p for p in _pattern_properties(inner) if not p.startswith("...")]
                getattr(analysis.request_usage, key).extend(fields or [ALL_FIELDS])

    def _analyze_call_expression(self, node: Node, analysis: FunctionAnalysis) -> None:
        callee = node.child_by_field_name("function")
        if callee is None or callee.type != "member_expression":
            return

        target = callee.child_by_field_name("object")
        method = _property_name(callee)
        args = _arguments(node)
        usage = analysis.response_usage

        if _is_response(target):
            if method == "json" and args:
                structure = extract_object_structure(args[0])
                usage.json_calls.append(structure)
                usage.structures.append(structure)
            elif method == "status" and args:
                code = extract_literal_value(args[0])
                if _is_status_code(code):
                    usage.status_codes.append(int(code))
            elif method == "send" and args:
                usage.send_calls.append(extract_object_structure(args[0]))
            return

        # res.status(code).json(payload)
        if method == "json" and target is not None and target.type == "call_expression":
            inner = target.child_by_field_name("function")
            if (
                inner is None
                or inner.type != "member_expression"
                or _property_name(inner) != "status"
                or not _is_response(inner.child_by_field_name("object"))
            ):
                return

            inner_args = _arguments(target)
            code = extract_literal_value(inner_args[0]) if inner_args else None
            if _is_status_code(code):
                usage.status_codes.append(int(code))

            structure = extract_object_structure(args[0]) if args else None
            merged = {"status": code}
            if isinstance(structure, dict):
                merged.update(structure)
            elif structure is not None:
                merged["body"] = structure
            usage.structures.append(merged)

    def _analyze_throw_statement(self, node: Node, analysis: FunctionAnalysis) -> None:
        argument = unwrap(_first_named(node))
        if argument is None:
            return

        if argument.type == "new_expression":
            constructor = argument.child_by_field_name("constructor")
            args = _arguments(argument)
            message = extract_literal_value(args[0]) if args else None
            analysis.thrown_errors.append(
                ThrownError(
                    kind=node_text(constructor) if constructor is not None else "Error",
                    message=message if message not in (None, "") else "unknown",
                )
            )
        elif argument.type == "identifier":
            analysis.thrown_errors.append(ThrownError(kind=node_text(argument), message="unknown"))

    def _analyze_return_statement(self, node: Node, analysis: FunctionAnalysis) -> None:
        argument = _first_named(node)
        if argument is not None:
            analysis.returned_shapes.append(extract_object_structure(argument))


def _walk(node: Node) -> Iterator[Node]:
    """Depth-first, source-order traversal (the node itself first)."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _syntax_error_message(root: Node) -> str:
    for node in _walk(root):
        if node.type == "ERROR" or node.is_missing:
            row, column = node.start_point
            message = f"Syntax error at line {row + 1}, column {column + 1}"
            if node.is_missing:
                message += f": missing {node.type!r}"
            return message
    return "Syntax error"


def _first_named(node: Node) -> Node | None:
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def _name_of(node: Node | None) -> str:
    if node is None:
        return "anonymous"
    return property_key(node)


def _in_class(node: Node) -> bool:
    return node.parent is not None and node.parent.type == "class_body"


def _arguments(call: Node) -> list[Node]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return [a for a in args.named_children if a.type != "comment"]


def _property_name(member: Node) -> str | None:
    prop = member.child_by_field_name("property")
    return node_text(prop) if prop is not None else None


def _is_response(node: Node | None) -> bool:
    return node is not None and node.type == "identifier" and node_text(node) in RESPONSE_NAMES


def _is_status_code(value: object) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and value.is_integer())


def _request_usage_key(node: Node | None) -> str | None:
    """'body' for ``req.body`` (etc.), otherwise None."""
    if node is None or node.type != "member_expression":
        return None
    target = node.child_by_field_name("object")
    if target is None or target.type != "identifier" or node_text(target) not in REQUEST_NAMES:
        return None
    prop = _property_name(node)
    return prop if prop in USAGE_KEYS else None


def _member_field(node: Node) -> str | None:
    if node.type == "member_expression":
        return _property_name(node)
    index = unwrap(node.child_by_field_name("index"))
    if index is not None and index.type == "string":
        return string_value(index)
    return None


def _has_further_access(node: Node) -> bool:
    child, parent = node, node.parent
    while parent is not None and parent.type in WRAPPER_TYPES:
        child, parent = parent, parent.parent
    return (
        parent is not None
        and parent.type in ("member_expression", "subscript_expression")
        and parent.child_by_field_name("object") == child
    )


def _is_destructured(node: Node) -> bool:
    parent = node.parent
    while parent is not None and parent.type in WRAPPER_TYPES:
        parent = parent.parent
    if parent is None or parent.type != "variable_declarator":
        return False
    pattern = parent.child_by_field_name("name")
    return pattern is not None and pattern.type == "object_pattern"


def _pattern_entry(prop: Node) -> tuple[str, Node | None]:
    """Key name and value pattern of one object-pattern entry."""
    kind = prop.type
    if kind == "shorthand_property_identifier_pattern":
        return node_text(prop), None
    if kind == "pair_pattern":
        return property_key(prop.child_by_field_name("key")), prop.child_by_field_name("value")
    if kind == "object_assignment_pattern":
        left = prop.child_by_field_name("left")
        return (node_text(left) if left is not None else "unknown"), None
    if kind == "rest_pattern":
        inner = _first_named(prop)
        return "..." + (node_text(inner) if inner is not None else ""), None
    return "unknown", None


def _pattern_properties(pattern: Node) -> list[str]:
    return [_pattern_entry(prop)[0] for prop in pattern.named_children if prop.type != "comment"]


def _classify_parameter(param: Node) -> FunctionParameter:
    kind = param.type
    if kind in ("required_parameter", "optional_parameter"):
        pattern = param.child_by_field_name("pattern")
        return _classify_parameter(pattern) if pattern is not None else FunctionParameter(name="unknown", kind="unknown")
    if kind == "assignment_pattern":
        left = param.child_by_field_name("left")
        return _classify_parameter(left) if left is not None else FunctionParameter(name="unknown", kind="unknown")
    if kind == "identifier":
        return FunctionParameter(name=node_text(param), kind="identifier")
    if kind == "object_pattern":
        return FunctionParameter(
            name="destructured",
            kind="destructured-object",
            properties=_pattern_properties(param),
        )
    if kind == "array_pattern":
        elements = [c for c in param.named_children if c.type != "comment"]
        return FunctionParameter(name="destructured", kind="destructured-array", elements=len(elements))
    if kind == "rest_pattern":
        inner = _first_named(param)
        return FunctionParameter(name=node_text(inner) if inner is not None else "unknown", kind="rest")
    return FunctionParameter(name="unknown", kind="unknown")


def _extract_parameters(node: Node) -> list[FunctionParameter]:
    single = node.child_by_field_name("parameter")
    if single is not None:
        return [_classify_parameter(single)]

    params = node.child_by_field_name("parameters")
    if params is None:
        return []
    return [
        _classify_parameter(p)
        for p in params.named_children
        if p.type not in ("comment", "decorator")
    ]


def _import_info(node: Node) -> ImportInfo:
    source = node.child_by_field_name("source")
    specifiers: list[dict[str, str]] = []

    for clause in node.named_children:
        if clause.type != "import_clause":
            continue
        for item in clause.named_children:
            if item.type == "identifier":
                specifiers.append({"name": node_text(item), "imported": "default"})
            elif item.type == "namespace_import":
                inner = _first_named(item)
                if inner is not None:
                    specifiers.append({"name": node_text(inner), "imported": "*"})
            elif item.type == "named_imports":
                for spec in item.named_children:
                    if spec.type != "import_specifier":
                        continue
                    imported = node_text(spec.child_by_field_name("name"))
                    alias = spec.child_by_field_name("alias")
                    specifiers.append({
                        "name": node_text(alias) if alias is not None else imported,
                        "imported": imported,
                    })

    return ImportInfo(
        source=string_value(source) if source is not None else "unknown",
        specifiers=specifiers,
    )


def _export_info(node: Node) -> ExportInfo | None:
    is_default = any(child.type == "default" for child in node.children)
    declaration = node.child_by_field_name("declaration")

    if is_default:
        target = declaration or unwrap(node.child_by_field_name("value"))
        if target is None:
            return ExportInfo(type="default", name="unknown")
        if target.type == "identifier":
            return ExportInfo(type="default", name=node_text(target))
        name = target.child_by_field_name("name")
        if target.type in FUNCTION_DECLARATIONS | FUNCTION_EXPRESSIONS | {"class_declaration", "class"}:
            return ExportInfo(type="default", name=node_text(name) if name is not None else "anonymous")
        return ExportInfo(type="default", name="unknown")

    if declaration is None:
        return None
    if declaration.type in FUNCTION_DECLARATIONS:
        return ExportInfo(type="function", name=_name_of(declaration.child_by_field_name("name")))
    if declaration.type in ("lexical_declaration", "variable_declaration"):
        declarator = _first_named(declaration)
        target = declarator.child_by_field_name("name") if declarator is not None else None
        return ExportInfo(type="variable", name=node_text(target) if target is not None else "unknown")
    if declaration.type == "class_declaration":
        return ExportInfo(type="class", name=_name_of(declaration.child_by_field_name("name")))
    return ExportInfo(type="unknown", name="unknown")
