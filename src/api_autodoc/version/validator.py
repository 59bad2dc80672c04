"""Drift check between stored documentation and the current implementation."""

from typing import Any, Iterable

from pydantic import BaseModel

from api_autodoc.builder.base import Documentation
from api_autodoc.version.changes import coerce_documentation

ISSUE_TYPES = ("missing", "undocumented", "mismatch")


class ValidationIssue(BaseModel):
    type: str  # missing / undocumented / mismatch
    message: str


def validate_documentation(
    stored: Iterable[Documentation | dict[str, Any]],
    current: Iterable[Documentation | dict[str, Any]],
) -> list[ValidationIssue]:
    stored_map = _key_map(stored)
    current_map = _key_map(current)
    issues: list[ValidationIssue] = []

    for key in stored_map:
        if key not in current_map:
            issues.append(ValidationIssue(
                type="missing",
                message=f"Endpoint documented but not found in implementation: {key}",
            ))

    for key in current_map:
        if key not in stored_map:
            issues.append(ValidationIssue(
                type="undocumented",
                message=f"Endpoint exists but not documented: {key}",
            ))

    for key, current_doc in current_map.items():
        stored_doc = stored_map.get(key)
        if stored_doc is None:
            continue
        documented, actual = len(stored_doc.parameters), len(current_doc.parameters)
        if documented != actual:
            issues.append(ValidationIssue(
                type="mismatch",
                message=f"Parameter count mismatch for {key}: documented={documented}, actual={actual}",
            ))

    return issues


def _key_map(docs: Iterable[Documentation | dict[str, Any]]) -> dict[str, Documentation]:
    result = {}
    for entry in docs or []:
        doc = coerce_documentation(entry)
        # Deprecated records are no longer promised to clients
        if doc is not None and not doc.deprecated:
            result[doc.key] = doc
    return result
