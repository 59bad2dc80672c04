"""Unified documentation models.

Every endpoint the builder sees ends up as one ``Documentation`` record.
Snapshots of these records are what the change analyzer, the snapshot store
and the OpenAPI generator consume.
"""

from typing import Any

from pydantic import BaseModel, field_validator


class ParameterDescriptor(BaseModel):
    """A single API parameter (path, query, body or header)."""

    name: str
    location: str  # path / query / body / header
    type: str = "string"
    required: bool = False
    description: str = ""


class Documentation(BaseModel):
    """The assembled description of one endpoint, keyed by (method, path)."""

    method: str
    path: str
    handler_name: str = "anonymous"
    handler_type: str = "function"
    middleware: list[str] = []
    parameters: list[ParameterDescriptor] = []
    request_schema: dict[str, Any] | None = None
    response_schema: dict[str, Any] | None = None
    status_codes: list[int] = []
    examples: dict[str, Any] = {}
    metadata: dict[str, Any] = {}
    breaking_change: bool = False
    breaking_change_description: str | None = None

    # Filled in by the enhancer or by hand
    summary: str = ""
    description: str = ""
    tags: list[str] = []
    deprecated: bool = False
    edge_cases: list[str] = []
    validation_rules: list[str] = []
    ai_enhanced: bool = False
    ai_enhancement_error: str | None = None

    @field_validator(
        "middleware", "parameters", "status_codes", "tags", "edge_cases", "validation_rules",
        mode="before",
    )
    @classmethod
    def _none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("examples", "metadata", mode="before")
    @classmethod
    def _none_as_empty_dict(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def key(self) -> str:
        return f"{self.method} {self.path}"

    def required_parameters(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]
