"""OpenAPI 3.0 projection of Documentation records.

Paths are grouped by their Express path, converted to OpenAPI templating
(``/users/:id`` becomes ``/users/{id}``).
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable

import yaml

from api_autodoc.builder.base import Documentation, ParameterDescriptor

logger = logging.getLogger("api_autodoc.generator.openapi")

EXPORT_FORMATS = ("json", "yaml")
BODY_METHODS = ("POST", "PUT", "PATCH")
SUCCESS_CODES = (200, 201, 204)

ERROR_DESCRIPTIONS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}

ERROR_SCHEMA = {
    "type": "object",
    "properties": {
        "error": {"type": "string"},
        "message": {"type": "string"},
        "statusCode": {"type": "number"},
    },
}

# Types the OpenAPI schema vocabulary does not have
_NON_OPENAPI_TYPES = {"unknown", "null"}


def to_openapi_path(path: str) -> str:
    return re.sub(r":(\w+)", r"{\1}", path)


class OpenApiGenerator:
    def __init__(
        self,
        version: str = "3.0.3",
        info: dict[str, Any] | None = None,
        servers: list[dict[str, Any]] | None = None,
    ):
        self.version = version
        self.info = info or {}
        self.servers = servers or []

    def generate_spec(
        self,
        docs: Iterable[Documentation],
        title: str | None = None,
        description: str | None = None,
        api_version: str | None = None,
    ) -> dict[str, Any]:
        docs = list(docs)
        spec: dict[str, Any] = {
            "openapi": self.version,
            "info": self._info(title, description, api_version),
            "servers": self.servers or [{"url": "http://localhost:3000", "description": "Development server"}],
            "paths": {},
            "components": {"schemas": {}},
            "tags": [],
        }

        for doc in docs:
            path_item = spec["paths"].setdefault(to_openapi_path(doc.path), {})
            path_item[doc.method.lower()] = self._operation(doc)

        for doc in docs:
            if doc.request_schema:
                spec["components"]["schemas"][schema_name(doc, "Request")] = _clean_schema(doc.request_schema)
            if doc.response_schema:
                spec["components"]["schemas"][schema_name(doc, "Response")] = _clean_schema(doc.response_schema)

        spec["tags"] = [{"name": tag, "description": f"{tag} operations"} for tag in collect_tags(docs)]

        logger.info("Generated OpenAPI %s spec with %d paths", self.version, len(spec["paths"]))
        return spec

    def export(self, spec: dict[str, Any], output_path: Path | str, fmt: str = "json") -> Path:
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported format: {fmt}")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if fmt == "json":
            text = json.dumps(spec, indent=2, ensure_ascii=False)
        else:
            text = yaml.safe_dump(spec, sort_keys=False, allow_unicode=True)
        output_path.write_text(text, encoding="utf-8")
        logger.info("Exported OpenAPI spec to %s", output_path)
        return output_path

    def _info(self, title, description, api_version) -> dict[str, Any]:
        return {
            "title": title or self.info.get("title") or "API Documentation",
            "description": description or self.info.get("description") or "Auto-generated API documentation",
            "version": api_version or self.info.get("version") or "1.0.0",
            "contact": self.info.get("contact", {}),
            "license": self.info.get("license", {"name": "MIT"}),
        }

    def _operation(self, doc: Documentation) -> dict[str, Any]:
        operation: dict[str, Any] = {
            "summary": doc.summary or doc.key,
            "description": doc.description,
            "operationId": operation_id(doc),
            "tags": doc.tags or path_tags(doc.path),
            "parameters": [_parameter(p) for p in doc.parameters if p.location != "body"],
            "responses": self._responses(doc),
        }

        if doc.method in BODY_METHODS:
            request_body = self._request_body(doc)
            if request_body:
                operation["requestBody"] = request_body

        if doc.deprecated:
            operation["deprecated"] = True
        return operation

    def _request_body(self, doc: Documentation) -> dict[str, Any] | None:
        body_params = [p for p in doc.parameters if p.location == "body"]
        if not doc.request_schema and not body_params:
            return None

        schema = _clean_schema(doc.request_schema) if doc.request_schema else _schema_from_params(body_params)
        return {
            "description": "Request payload",
            "required": True,
            "content": {
                "application/json": {
                    "schema": schema,
                    "example": doc.examples.get("request", {}),
                }
            },
        }

    def _responses(self, doc: Documentation) -> dict[str, Any]:
        codes = doc.status_codes
        success = next((code for code in SUCCESS_CODES if code in codes), 200)

        responses: dict[str, Any] = {str(success): {"description": "Successful operation"}}
        example = doc.examples.get("response")
        if doc.response_schema or example is not None:
            content: dict[str, Any] = {"schema": _clean_schema(doc.response_schema) if doc.response_schema else {"type": "object"}}
            if example is not None:
                content["example"] = example
            responses[str(success)]["content"] = {"application/json": content}

        error_codes = [code for code in dict.fromkeys(codes) if code >= 400] or [400, 500]
        for code in error_codes:
            responses[str(code)] = {
                "description": ERROR_DESCRIPTIONS.get(code, "Error"),
                "content": {"application/json": {"schema": ERROR_SCHEMA}},
            }
        return responses


def operation_id(doc: Documentation) -> str:
    """GET /users/:id => getusersByid"""
    path = re.sub(r":(\w+)", r"By\1", doc.path.strip("/"))
    parts = [part for part in path.split("/") if part]
    words = [part.lower() if i == 0 else part[:1].upper() + part[1:].lower() for i, part in enumerate(parts)]
    return doc.method.lower() + "".join(words)


def schema_name(doc: Documentation, suffix: str) -> str:
    base = doc.path.lstrip("/").replace("/", "_").replace(":", "")
    base = re.sub(r"_+", "_", base)
    return f"{base}_{doc.method}_{suffix}"


def path_tags(path: str) -> list[str]:
    literal = [part for part in path.split("/") if part and not part.startswith(":")]
    return literal[:1]


def collect_tags(docs: Iterable[Documentation]) -> list[str]:
    tags: dict[str, None] = {}
    for doc in docs:
        for tag in doc.tags or path_tags(doc.path):
            tags[tag] = None
    return list(tags)


def _parameter(param: ParameterDescriptor) -> dict[str, Any]:
    param_type = "string" if param.type in _NON_OPENAPI_TYPES else param.type
    return {
        "name": param.name,
        "in": param.location,
        "description": param.description,
        # Path parameters are always required in OpenAPI
        "required": param.required or param.location == "path",
        "schema": {"type": param_type},
    }


def _schema_from_params(params: list[ParameterDescriptor]) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            p.name: {"type": "string" if p.type in _NON_OPENAPI_TYPES else p.type, "description": p.description}
            for p in params
        },
    }
    required = [p.name for p in params if p.required]
    if required:
        schema["required"] = required
    return schema


def _clean_schema(schema: Any) -> Any:
    """Drop bookkeeping keys and map the inferred placeholder types."""
    if isinstance(schema, list):
        return [_clean_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    result = {}
    for key, value in schema.items():
        if key == "schemaFile" or (key == "type" and value == "unknown"):
            continue
        if key == "type" and value == "null":
            result["nullable"] = True
            continue
        if key == "properties" and isinstance(value, dict):
            value = {name: _clean_schema(prop) for name, prop in value.items()}
        elif key != "example" and isinstance(value, (dict, list)):
            value = _clean_schema(value)
        result[key] = value
    return result
