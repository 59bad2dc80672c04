import json

import pytest
import yaml

from api_autodoc.builder.base import Documentation, ParameterDescriptor
from api_autodoc.generator.openapi import (
    OpenApiGenerator,
    collect_tags,
    operation_id,
    schema_name,
    to_openapi_path,
)


def _get_user() -> Documentation:
    return Documentation(
        method="GET",
        path="/users/:id",
        summary="Get a user",
        parameters=[ParameterDescriptor(name="id", location="path", required=True)],
        status_codes=[200, 404],
        response_schema={
            "type": "object",
            "properties": {
                "id": {"type": "number", "example": 1},
                "deletedAt": {"type": "null", "example": None},
                "extra": {"type": "unknown"},
            },
            "schemaFile": "schemas/response/users.id.get.json",
        },
    )


def _create_user() -> Documentation:
    return Documentation(
        method="POST",
        path="/users",
        parameters=[
            ParameterDescriptor(name="name", location="body", required=True),
            ParameterDescriptor(name="email", location="body"),
        ],
        status_codes=[201],
    )


class TestHelpers:
    def test_to_openapi_path(self):
        assert to_openapi_path("/users/:id/posts/:postId") == "/users/{id}/posts/{postId}"
        assert to_openapi_path("/health") == "/health"

    def test_operation_id(self):
        assert operation_id(_get_user()) == "getusersByid"
        assert operation_id(_create_user()) == "postusers"

    def test_schema_name(self):
        assert schema_name(_get_user(), "Response") == "users_id_GET_Response"

    def test_collect_tags(self):
        docs = [_get_user(), _create_user(), Documentation(method="GET", path="/orders", tags=["billing"])]
        assert collect_tags(docs) == ["users", "billing"]


class TestGenerateSpec:
    def test_document_shape(self):
        spec = OpenApiGenerator().generate_spec([_get_user()], title="Users API", api_version="2.0.0")
        assert spec["openapi"] == "3.0.3"
        assert spec["info"]["title"] == "Users API"
        assert spec["info"]["version"] == "2.0.0"
        assert spec["info"]["license"] == {"name": "MIT"}
        assert spec["servers"][0]["url"] == "http://localhost:3000"
        assert spec["tags"] == [{"name": "users", "description": "users operations"}]

    def test_defaults(self):
        spec = OpenApiGenerator(info={"title": "From config"}).generate_spec([])
        assert spec["info"]["title"] == "From config"
        assert spec["info"]["version"] == "1.0.0"
        assert spec["paths"] == {}

    def test_operation(self):
        spec = OpenApiGenerator().generate_spec([_get_user()])
        operation = spec["paths"]["/users/{id}"]["get"]
        assert operation["summary"] == "Get a user"
        assert operation["operationId"] == "getusersByid"
        assert operation["tags"] == ["users"]
        assert operation["parameters"] == [{
            "name": "id",
            "in": "path",
            "description": "",
            "required": True,
            "schema": {"type": "string"},
        }]
        assert "requestBody" not in operation

    def test_responses(self):
        responses = OpenApiGenerator().generate_spec([_get_user()])["paths"]["/users/{id}"]["get"]["responses"]
        assert set(responses) == {"200", "404"}
        assert responses["404"]["description"] == "Not Found"

        schema = responses["200"]["content"]["application/json"]["schema"]
        assert "schemaFile" not in schema
        assert schema["properties"]["deletedAt"] == {"example": None, "nullable": True}
        assert schema["properties"]["extra"] == {}

    def test_default_error_responses(self):
        responses = OpenApiGenerator().generate_spec([_create_user()])["paths"]["/users"]["post"]["responses"]
        assert set(responses) == {"201", "400", "500"}
        assert "content" not in responses["201"]

    def test_request_body_from_parameters(self):
        operation = OpenApiGenerator().generate_spec([_create_user()])["paths"]["/users"]["post"]
        assert operation["parameters"] == []
        schema = operation["requestBody"]["content"]["application/json"]["schema"]
        assert set(schema["properties"]) == {"name", "email"}
        assert schema["required"] == ["name"]

    def test_request_schema_preferred(self):
        doc = _create_user()
        doc.request_schema = {"type": "object", "required": ["name", "email"]}
        spec = OpenApiGenerator().generate_spec([doc])
        body = spec["paths"]["/users"]["post"]["requestBody"]
        assert body["content"]["application/json"]["schema"]["required"] == ["name", "email"]
        assert "users_POST_Request" in spec["components"]["schemas"]

    def test_components_and_methods_share_path(self):
        delete = Documentation(method="DELETE", path="/users/:id", deprecated=True)
        spec = OpenApiGenerator().generate_spec([_get_user(), delete])
        assert set(spec["paths"]["/users/{id}"]) == {"get", "delete"}
        assert spec["paths"]["/users/{id}"]["delete"]["deprecated"] is True
        assert list(spec["components"]["schemas"]) == ["users_id_GET_Response"]

    def test_response_example(self):
        doc = _create_user()
        doc.examples["response"] = {"id": 7}
        content = OpenApiGenerator().generate_spec([doc])["paths"]["/users"]["post"]["responses"]["201"]["content"]
        assert content["application/json"] == {"schema": {"type": "object"}, "example": {"id": 7}}


class TestExport:
    def test_json(self, tmp_path):
        generator = OpenApiGenerator()
        spec = generator.generate_spec([_get_user()])
        path = generator.export(spec, tmp_path / "out" / "openapi.json")
        assert json.loads(path.read_text(encoding="utf-8")) == spec

    def test_yaml(self, tmp_path):
        generator = OpenApiGenerator()
        spec = generator.generate_spec([_create_user()])
        path = generator.export(spec, tmp_path / "openapi.yaml", "yaml")
        assert yaml.safe_load(path.read_text(encoding="utf-8")) == spec

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(ValueError):
            OpenApiGenerator().export({}, tmp_path / "openapi.xml", "xml")
