"""Static analysis results for handler source code."""

from typing import Any

from pydantic import BaseModel, Field

ALL_FIELDS = "__ALL__"  # whole request object used, fields not known


class FunctionParameter(BaseModel):
    """A declared function parameter, classified by shape."""

    name: str
    kind: str  # identifier / destructured-object / destructured-array / rest / unknown
    properties: list[str] = []
    elements: int | None = None


class RequestUsage(BaseModel):
    body: list[str] = []
    query: list[str] = []
    params: list[str] = []
    headers: list[str] = []


class ResponseUsage(BaseModel):
    status_codes: list[int] = []
    json_calls: list[Any] = []
    send_calls: list[Any] = []
    structures: list[Any] = []


class ThrownError(BaseModel):
    kind: str
    message: Any = "unknown"


class FunctionAnalysis(BaseModel):
    """What one handler function reads from the request and sends back."""

    name: str = "anonymous"
    is_async: bool = False
    is_arrow: bool = False
    is_class_method: bool = False
    parameters: list[FunctionParameter] = []
    request_usage: RequestUsage = Field(default_factory=RequestUsage)
    response_usage: ResponseUsage = Field(default_factory=ResponseUsage)
    thrown_errors: list[ThrownError] = []
    returned_shapes: list[Any] = []


class ImportInfo(BaseModel):
    source: str
    specifiers: list[dict[str, str]] = []


class ExportInfo(BaseModel):
    type: str  # function / variable / class / default / unknown
    name: str


class SourceAnalysis(BaseModel):
    """Analysis of one source text: every function found plus module info."""

    file_name: str = "unknown"
    functions: list[FunctionAnalysis] = []
    imports: list[ImportInfo] = []
    exports: list[ExportInfo] = []
    errors: list[str] = []
