"""Documentation assembly.

Combines route reflection with handler analysis and hand-written schema
overrides into one Documentation record per route. A route that cannot be
fully documented still yields a minimal record; endpoints are never dropped.
"""

import logging
from pathlib import Path
from typing import Any, Sequence

from api_autodoc.analyzer.base import ALL_FIELDS, FunctionAnalysis
from api_autodoc.analyzer.javascript import SyntaxAnalyzer
from api_autodoc.analyzer.shapes import COMPLEX_EXPRESSION, SPREAD_KEY, TEMPLATE_STRING, VAR_PREFIX
from api_autodoc.builder.base import Documentation, ParameterDescriptor
from api_autodoc.builder.schemas import FileSchemaLookup, SchemaLookup, route_to_schema_name
from api_autodoc.reflect.base import RouteDescriptor, RouteStatistics, RoutingTree
from api_autodoc.reflect.reflector import RouteReflector

UNDETERMINED_BODY = {"type": "object", "description": "body structure not determined"}

# requestUsage key => (parameter location, parameter type, description prefix)
_USAGE_LOCATIONS = {
    "body": ("body", "unknown", "Body parameter"),
    "query": ("query", "string", "Query parameter"),
    "headers": ("header", "string", "Header"),
}


class DocumentationAssembler:
    """Turns one RouteDescriptor (+ its analysis) into Documentation."""

    def __init__(self, schema_lookup: SchemaLookup | None = None, logger: logging.Logger | None = None):
        self.schema_lookup = schema_lookup
        self.logger = logger or logging.getLogger("api_autodoc.builder")

    def assemble(
        self,
        route: RouteDescriptor,
        analysis: FunctionAnalysis | None = None,
        parse_errors: Sequence[str] = (),
    ) -> Documentation:
        try:
            doc = self._assemble(route, analysis)
        except Exception as e:
            self.logger.warning("Error documenting %s %s: %s", route.method, route.path, e)
            return create_minimal_doc(route, e)

        if parse_errors:
            doc.metadata["error"] = "; ".join(parse_errors)
            doc.metadata["partial"] = True
        return doc

    def _assemble(self, route: RouteDescriptor, analysis: FunctionAnalysis | None) -> Documentation:
        doc = Documentation(
            method=route.method,
            path=route.path,
            handler_name=route.handler_name,
            handler_type=route.handler_type,
            middleware=list(route.middleware),
            parameters=_path_parameters(route),
            metadata={"is_async": route.is_async},
        )

        if analysis is not None:
            self._extract_request_parameters(analysis, doc)
            self._extract_response_structure(analysis, doc)
            doc.status_codes = list(dict.fromkeys(analysis.response_usage.status_codes))

        self._load_schemas(doc)
        return doc

    def _extract_request_parameters(self, analysis: FunctionAnalysis, doc: Documentation) -> None:
        usage = analysis.request_usage
        seen = {(p.name, p.location) for p in doc.parameters}

        def add(param: ParameterDescriptor) -> None:
            if (param.name, param.location) not in seen:
                seen.add((param.name, param.location))
                doc.parameters.append(param)

        for key, (location, param_type, label) in _USAGE_LOCATIONS.items():
            used = getattr(usage, key)
            fields = [f for f in used if f != ALL_FIELDS]
            for field in fields:
                add(ParameterDescriptor(
                    name=field,
                    location=location,
                    type=param_type,
                    required=False,
                    description=f"{label}: {field}",
                ))

            # Only the whole object was touched; its fields are unknown
            if not fields and ALL_FIELDS in used:
                if key == "body":
                    doc.request_schema = dict(UNDETERMINED_BODY)
                else:
                    doc.metadata.setdefault("undetermined", []).append(location)

        for field in usage.params:
            if field == ALL_FIELDS:
                continue
            add(ParameterDescriptor(
                name=field,
                location="path",
                type="string",
                required=True,
                description=f"Path parameter: {field}",
            ))

    def _extract_response_structure(self, analysis: FunctionAnalysis, doc: Documentation) -> None:
        structures = analysis.response_usage.structures
        if structures:
            primary = structures[0]
            if isinstance(primary, list):
                doc.response_schema = {"type": "array", "items": _items_schema(primary), "example": primary}
            else:
                doc.response_schema = {
                    "type": "object",
                    "properties": convert_to_schema_properties(primary),
                    "example": primary,
                }
            doc.examples["response"] = primary
            return

        if analysis.returned_shapes and doc.response_schema is None:
            returned = analysis.returned_shapes[0]
            doc.response_schema = {"type": json_type(returned), "example": returned}

    def _load_schemas(self, doc: Documentation) -> None:
        if self.schema_lookup is None:
            return

        name = route_to_schema_name(doc.method, doc.path)

        request_schema = self.schema_lookup.load("request", name)
        if request_schema is not None:
            doc.request_schema = request_schema

        response_schema = self.schema_lookup.load("response", name)
        if response_schema is not None:
            # Merge with the auto-detected schema
            doc.response_schema = {**(doc.response_schema or {}), **response_schema}


def create_minimal_doc(route: RouteDescriptor, error: BaseException | str) -> Documentation:
    """Documentation carrying only route-derived data and an error marker."""
    return Documentation(
        method=route.method,
        path=route.path,
        handler_name=route.handler_name,
        handler_type=route.handler_type,
        middleware=list(route.middleware),
        parameters=_path_parameters(route),
        metadata={"error": str(error), "partial": True},
    )


def _path_parameters(route: RouteDescriptor) -> list[ParameterDescriptor]:
    return [
        ParameterDescriptor(
            name=name,
            location="path",
            type="string",
            required=True,
            description=f"Path parameter: {name}",
        )
        for name in route.path_parameters
    ]


def json_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def convert_to_schema_properties(structure: Any) -> dict[str, Any]:
    """Turn an abstracted shape into JSON-schema style properties.

    The synthetic ``status`` key added for ``res.status(code).json(...)`` is
    not part of the payload and is dropped.
    """
    if not isinstance(structure, dict):
        return {}
    return {key: _spread_or_leaf(key, value) for key, value in structure.items() if key != "status"}


def _leaf_schema(value: Any) -> dict[str, Any]:
    if isinstance(value, str):
        if value.startswith(VAR_PREFIX):
            return {"type": "unknown", "description": f"Variable: {value[len(VAR_PREFIX):]}"}
        if value == TEMPLATE_STRING:
            return {"type": "string", "description": "Template string"}
        if value == COMPLEX_EXPRESSION:
            return {"type": "unknown", "description": "Complex expression"}
    if isinstance(value, list):
        return {"type": "array", "items": _items_schema(value)}
    if isinstance(value, dict):
        return {
            "type": "object",
            "properties": {k: _spread_or_leaf(k, v) for k, v in value.items()},
        }
    if value is None:
        return {"type": "null", "example": None}
    return {"type": json_type(value), "example": value}


def _spread_or_leaf(key: str, value: Any) -> dict[str, Any]:
    if key == SPREAD_KEY:
        return {"type": "object", "description": "Spread properties"}
    return _leaf_schema(value)


def _items_schema(items: list) -> dict[str, Any]:
    if not items:
        return {}
    return _leaf_schema(items[0])


class DocumentationBuilder:
    """Builds documentation for a whole routing tree."""

    def __init__(
        self,
        schema_dir: Path | str | None = None,
        schema_lookup: SchemaLookup | None = None,
        analyzer: SyntaxAnalyzer | None = None,
        reflector: RouteReflector | None = None,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or logging.getLogger("api_autodoc.builder")
        if schema_lookup is None and schema_dir is not None:
            schema_lookup = FileSchemaLookup(schema_dir)
        self.reflector = reflector or RouteReflector(logger=self.logger)
        self.analyzer = analyzer or SyntaxAnalyzer(logger=self.logger)
        self.assembler = DocumentationAssembler(schema_lookup, logger=self.logger)

    def build_documentation(self, tree: RoutingTree) -> list[Documentation]:
        self.logger.info("Starting documentation build")
        routes = self.reflector.extract_routes(tree)

        documentation = [self.build_route_documentation(route) for route in routes]
        self.logger.info("Documentation built for %d endpoints", len(documentation))
        return documentation

    def build_route_documentation(self, route: RouteDescriptor) -> Documentation:
        try:
            analysis, errors = self._analyze_handler(route)
        except Exception as e:
            self.logger.warning("Error analyzing %s %s: %s", route.method, route.path, e)
            return create_minimal_doc(route, e)

        if errors:
            self.logger.warning("Could not parse handler of %s %s: %s", route.method, route.path, errors[0])
        return self.assembler.assemble(route, analysis, parse_errors=errors)

    def _analyze_handler(self, route: RouteDescriptor) -> tuple[FunctionAnalysis | None, list[str]]:
        if not route.handler_source:
            return None, []

        result = self.analyzer.analyze_handler(route.handler_source, route.handler_name)
        if result.functions:
            return result.functions[0], list(result.errors)
        return None, list(result.errors)

    def get_statistics(self) -> RouteStatistics:
        return self.reflector.get_statistics()
