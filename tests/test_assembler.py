from pathlib import Path

from api_autodoc.analyzer.base import ALL_FIELDS, FunctionAnalysis, RequestUsage, ResponseUsage
from api_autodoc.builder.assembler import (
    UNDETERMINED_BODY,
    DocumentationAssembler,
    DocumentationBuilder,
    convert_to_schema_properties,
    create_minimal_doc,
)
from api_autodoc.builder.schemas import DictSchemaLookup, SchemaLookup
from api_autodoc.reflect.base import RouteDescriptor
from api_autodoc.reflect.express import load_express_tree
from api_autodoc.reflect.paths import extract_parameters

FIXTURES = Path(__file__).parent / "fixtures"


def _route(method="GET", path="/users/:id/posts/:postId", **kwargs) -> RouteDescriptor:
    return RouteDescriptor(method=method, path=path, path_parameters=extract_parameters(path), **kwargs)


def _analysis(body=(), query=(), params=(), headers=(), structures=(), status_codes=(), returned=()):
    return FunctionAnalysis(
        request_usage=RequestUsage(body=list(body), query=list(query), params=list(params), headers=list(headers)),
        response_usage=ResponseUsage(structures=list(structures), status_codes=list(status_codes)),
        returned_shapes=list(returned),
    )


class TestPathParameters:
    def test_without_analysis(self):
        doc = DocumentationAssembler().assemble(_route())
        assert [(p.name, p.location, p.required) for p in doc.parameters] == [
            ("id", "path", True),
            ("postId", "path", True),
        ]
        assert "error" not in doc.metadata

    def test_with_parse_error(self):
        doc = DocumentationAssembler().assemble(_route(), None, parse_errors=["Syntax error at line 1, column 5"])
        assert [p.name for p in doc.parameters] == ["id", "postId"]
        assert all(p.required for p in doc.parameters)
        assert doc.metadata["error"] == "Syntax error at line 1, column 5"
        assert doc.metadata["partial"] is True

    def test_params_usage_not_duplicated(self):
        doc = DocumentationAssembler().assemble(_route(), _analysis(params=["id", "id", "postId"]))
        assert [p.name for p in doc.parameters] == ["id", "postId"]


class TestRequestParameters:
    def test_body_fields(self):
        doc = DocumentationAssembler().assemble(_route("POST", "/users"), _analysis(body=["a", "b", "a"]))
        body = [p for p in doc.parameters if p.location == "body"]
        assert [p.name for p in body] == ["a", "b"]
        assert body[0].type == "unknown"
        assert body[0].required is False
        assert body[0].description == "Body parameter: a"

    def test_query_and_headers(self):
        doc = DocumentationAssembler().assemble(_route("GET", "/users"), _analysis(query=["page"], headers=["x-token"]))
        assert [(p.name, p.location, p.type) for p in doc.parameters] == [
            ("page", "query", "string"),
            ("x-token", "header", "string"),
        ]

    def test_same_name_different_locations(self):
        doc = DocumentationAssembler().assemble(_route("POST", "/users/:id"), _analysis(body=["id"], query=["id"]))
        assert [(p.name, p.location) for p in doc.parameters] == [("id", "path"), ("id", "body"), ("id", "query")]

    def test_whole_body_only(self):
        doc = DocumentationAssembler().assemble(_route("POST", "/users"), _analysis(body=[ALL_FIELDS]))
        assert doc.request_schema == UNDETERMINED_BODY
        assert doc.parameters == []

    def test_whole_body_with_fields(self):
        doc = DocumentationAssembler().assemble(_route("POST", "/users"), _analysis(body=[ALL_FIELDS, "name"]))
        assert doc.request_schema is None
        assert [p.name for p in doc.parameters] == ["name"]

    def test_whole_query(self):
        doc = DocumentationAssembler().assemble(_route("GET", "/users"), _analysis(query=[ALL_FIELDS]))
        assert doc.metadata["undetermined"] == ["query"]
        assert doc.parameters == []


class TestResponse:
    def test_object_structure(self):
        doc = DocumentationAssembler().assemble(_route("GET", "/x"), _analysis(structures=[{"x": 1}]))
        assert doc.response_schema == {
            "type": "object",
            "properties": {"x": {"type": "number", "example": 1}},
            "example": {"x": 1},
        }
        assert doc.examples["response"] == {"x": 1}

    def test_status_key_dropped(self):
        doc = DocumentationAssembler().assemble(
            _route("POST", "/x"),
            _analysis(structures=[{"status": 201, "ok": True}], status_codes=[201, 201]),
        )
        assert list(doc.response_schema["properties"]) == ["ok"]
        assert doc.response_schema["properties"]["ok"] == {"type": "boolean", "example": True}
        assert doc.status_codes == [201]

    def test_array_structure(self):
        doc = DocumentationAssembler().assemble(_route("GET", "/x"), _analysis(structures=[[{"id": 1}]]))
        assert doc.response_schema["type"] == "array"
        assert doc.response_schema["items"] == {"type": "object", "properties": {"id": {"type": "number", "example": 1}}}

    def test_returned_shape_fallback(self):
        doc = DocumentationAssembler().assemble(_route("GET", "/x"), _analysis(returned=[[1, 2]]))
        assert doc.response_schema == {"type": "array", "example": [1, 2]}

    def test_no_response(self):
        doc = DocumentationAssembler().assemble(_route("GET", "/x"), _analysis())
        assert doc.response_schema is None
        assert doc.status_codes == []


class TestConvertToSchemaProperties:
    def test_placeholders(self):
        props = convert_to_schema_properties({
            "name": "var:name",
            "label": "template_string",
            "id": "complex_expression",
            "...spread": "object",
            "tags": ["a"],
            "meta": {"deleted": None},
        })
        assert props == {
            "name": {"type": "unknown", "description": "Variable: name"},
            "label": {"type": "string", "description": "Template string"},
            "id": {"type": "unknown", "description": "Complex expression"},
            "...spread": {"type": "object", "description": "Spread properties"},
            "tags": {"type": "array", "items": {"type": "string", "example": "a"}},
            "meta": {"type": "object", "properties": {"deleted": {"type": "null", "example": None}}},
        }

    def test_not_an_object(self):
        assert convert_to_schema_properties(["a"]) == {}


class TestSchemaOverrides:
    def test_request_replaced_response_merged(self):
        lookup = DictSchemaLookup({
            "request": {"users.post": {"type": "object", "required": ["name"]}},
            "response": {"users.post": {"description": "Created user"}},
        })
        doc = DocumentationAssembler(lookup).assemble(
            _route("POST", "/api/users"),
            _analysis(body=[ALL_FIELDS], structures=[{"id": 1}]),
        )
        assert doc.request_schema == {"type": "object", "required": ["name"]}
        assert doc.response_schema["description"] == "Created user"
        assert doc.response_schema["properties"] == {"id": {"type": "number", "example": 1}}

    def test_failure_yields_minimal_doc(self):
        class BrokenLookup(SchemaLookup):
            def load(self, kind, name):
                raise RuntimeError("boom")

        doc = DocumentationAssembler(BrokenLookup()).assemble(_route(), _analysis(body=["a"]))
        assert doc.metadata == {"error": "boom", "partial": True}
        assert [p.name for p in doc.parameters] == ["id", "postId"]


class TestCreateMinimalDoc:
    def test_keeps_route_data(self):
        route = _route("DELETE", "/items/:itemId", handler_name="remove", middleware=["auth"])
        doc = create_minimal_doc(route, "bad handler")
        assert doc.key == "DELETE /items/:itemId"
        assert doc.handler_name == "remove"
        assert doc.middleware == ["auth"]
        assert doc.required_parameters() == ["itemId"]
        assert doc.metadata["error"] == "bad handler"


class TestDocumentationBuilder:
    def _build(self):
        builder = DocumentationBuilder(schema_dir=FIXTURES / "schemas")
        docs = builder.build_documentation(load_express_tree(FIXTURES / "express_app.json"))
        return builder, {doc.key: doc for doc in docs}, docs

    def test_every_route_documented(self):
        _, by_key, docs = self._build()
        assert len(docs) == 6
        assert list(by_key) == [
            "GET /api/users",
            "GET /api/users/:id",
            "POST /api/users",
            "PUT /api/users/:id",
            "DELETE /api/products/:productId",
            "GET /health",
        ]

    def test_query_parameters(self):
        _, by_key, _ = self._build()
        doc = by_key["GET /api/users"]
        assert [(p.name, p.location) for p in doc.parameters] == [("page", "query"), ("limit", "query")]
        assert set(doc.response_schema["properties"]) == {"users", "page", "limit"}

    def test_response_override_merged(self):
        _, by_key, _ = self._build()
        doc = by_key["GET /api/users/:id"]
        assert doc.required_parameters() == ["id"]
        assert doc.status_codes == [404]
        assert doc.response_schema["description"] == "A single user"
        assert "email" in doc.response_schema["properties"]
        assert doc.response_schema["schemaFile"].endswith("users.id.get.json")

    def test_request_override_and_body(self):
        _, by_key, _ = self._build()
        doc = by_key["POST /api/users"]
        assert doc.middleware == ["authenticate"]
        assert [p.name for p in doc.parameters if p.location == "body"] == ["name", "email"]
        assert doc.request_schema["required"] == ["name", "email"]
        assert 201 in doc.status_codes

    def test_unparseable_handler_still_documented(self):
        _, by_key, _ = self._build()
        doc = by_key["PUT /api/users/:id"]
        assert doc.metadata["partial"] is True
        assert doc.metadata["error"].startswith("Syntax error")
        assert doc.required_parameters() == ["id"]
        assert doc.middleware == ["authenticate", "validate"]

    def test_handler_without_source(self):
        _, by_key, _ = self._build()
        doc = by_key["DELETE /api/products/:productId"]
        assert doc.handler_name == "deleteProduct"
        assert "error" not in doc.metadata
        assert doc.required_parameters() == ["productId"]

    def test_statistics(self):
        builder, _, _ = self._build()
        stats = builder.get_statistics()
        assert stats.total_routes == 6
        assert stats.unique_paths == 4
