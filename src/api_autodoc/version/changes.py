"""Semantic change analysis between two documentation snapshots.

Breaking changes bump major, new endpoints bump minor, anything else is a
patch. Patch is the floor: a release never goes out without a bump.
"""

import logging
import re
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from api_autodoc.builder.base import Documentation

BUMP_TYPES = ("major", "minor", "patch")

_VERSION = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


class ChangeSet(BaseModel):
    breaking_changes: list[str] = []
    new_endpoints: list[str] = []
    modified_endpoints: list[str] = []
    deprecated_endpoints: list[str] = []
    internal_changes: list[str] = []


class ChangeAnalysis(BaseModel):
    bump_type: str = "patch"
    bump_reason: str = ""
    changes: ChangeSet = ChangeSet()


class Modifications(BaseModel):
    """Per-endpoint outcome of detect_modifications."""

    has_changes: bool = False
    has_breaking_changes: bool = False
    has_internal_changes: bool = False
    breaking_changes: list[str] = []


class ChangeAnalyzer:
    """Diffs a previous and a current documentation snapshot."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("api_autodoc.version")

    def analyze(
        self,
        previous: Iterable[Documentation | dict[str, Any]],
        current: Iterable[Documentation | dict[str, Any]],
    ) -> ChangeAnalysis:
        old_map = self._key_map(previous)
        new_map = self._key_map(current)
        changes = ChangeSet()

        for key, new_doc in new_map.items():
            if key not in old_map:
                changes.new_endpoints.append(new_doc.key)

        # Removed endpoints break existing consumers
        for key, old_doc in old_map.items():
            if key not in new_map:
                changes.deprecated_endpoints.append(old_doc.key)
                changes.breaking_changes.append(f"Removed endpoint: {old_doc.key}")

        for key, new_doc in new_map.items():
            old_doc = old_map.get(key)
            if old_doc is None:
                continue
            modifications = detect_modifications(old_doc, new_doc)
            changes.breaking_changes.extend(modifications.breaking_changes)
            if modifications.has_changes:
                changes.modified_endpoints.append(new_doc.key)
            if modifications.has_internal_changes:
                changes.internal_changes.append(new_doc.key)

        bump_type, bump_reason = determine_bump(changes)
        self.logger.info("Change analysis: %s (%s)", bump_type, bump_reason)
        return ChangeAnalysis(bump_type=bump_type, bump_reason=bump_reason, changes=changes)

    def _key_map(self, docs: Iterable[Documentation | dict[str, Any]]) -> dict[tuple[str, str], Documentation]:
        result: dict[tuple[str, str], Documentation] = {}
        for entry in docs or []:
            doc = coerce_documentation(entry)
            if doc is None:
                self.logger.warning("Ignoring snapshot entry without method/path: %r", entry)
                continue
            result[(doc.method, doc.path)] = doc
        return result


def coerce_documentation(entry: Documentation | dict[str, Any]) -> Documentation | None:
    """Read a snapshot entry leniently. Missing fields mean absent data."""
    if isinstance(entry, Documentation):
        return entry
    if not isinstance(entry, dict):
        return None
    try:
        return Documentation.model_validate(entry)
    except ValidationError:
        pass

    # Keep what identifies the endpoint, drop what does not validate
    method, path = entry.get("method"), entry.get("path")
    if not isinstance(method, str) or not isinstance(path, str):
        return None
    salvaged = {"method": method, "path": path}
    for name in Documentation.model_fields:
        if name in salvaged or name not in entry:
            continue
        try:
            Documentation.model_validate({**salvaged, name: entry[name]})
        except ValidationError:
            continue
        salvaged[name] = entry[name]
    return Documentation.model_validate(salvaged)


def detect_modifications(old_doc: Documentation, new_doc: Documentation) -> Modifications:
    result = Modifications()
    label = new_doc.key

    # New required parameters
    old_required = set(old_doc.required_parameters())
    for param in dict.fromkeys(new_doc.required_parameters()):
        if param not in old_required:
            result.breaking_changes.append(f"{label}: New required parameter '{param}'")

    if has_response_schema_changed(old_doc.response_schema, new_doc.response_schema):
        result.breaking_changes.append(f"{label}: Response schema changed")

    new_codes = set(new_doc.status_codes)
    removed_codes = [code for code in dict.fromkeys(old_doc.status_codes) if code not in new_codes]
    if removed_codes:
        result.breaking_changes.append(
            f"{label}: Removed status codes: {', '.join(str(c) for c in removed_codes)}"
        )

    if new_doc.breaking_change:
        result.breaking_changes.append(
            f"{label}: {new_doc.breaking_change_description or 'Marked as breaking change'}"
        )

    result.has_breaking_changes = bool(result.breaking_changes)

    if len(new_doc.parameters) != len(old_doc.parameters) and not result.has_breaking_changes:
        result.has_changes = True

    if list(old_doc.middleware) != list(new_doc.middleware):
        result.has_internal_changes = True

    return result


def has_response_schema_changed(old_schema: dict | None, new_schema: dict | None) -> bool:
    """True when a response property disappeared, or one side has no schema."""
    if old_schema is None and new_schema is None:
        return False
    if old_schema is None or new_schema is None:
        return True

    old_props = old_schema.get("properties") or {}
    new_props = new_schema.get("properties") or {}
    if not isinstance(old_props, dict):
        old_props = {}
    if not isinstance(new_props, dict):
        new_props = {}
    return any(prop not in new_props for prop in old_props)


def determine_bump(changes: ChangeSet) -> tuple[str, str]:
    if changes.breaking_changes:
        count = len(changes.breaking_changes)
        return "major", f"Breaking changes detected: {count} breaking change(s)"
    if changes.new_endpoints:
        count = len(changes.new_endpoints)
        return "minor", f"New features: {count} new endpoint(s)"
    if changes.modified_endpoints or changes.internal_changes:
        return "patch", "Internal changes and improvements"
    return "patch", "No functional changes detected"


def bump_version(current_version: str, bump_type: str) -> str:
    """Increment MAJOR.MINOR.PATCH. A leading "v" is dropped, not restored."""
    if bump_type not in BUMP_TYPES:
        raise ValueError(f"Unknown bump type: {bump_type}")

    match = _VERSION.match(current_version.strip().lstrip("vV")) if current_version else None
    if not match:
        raise ValueError(f"Invalid version: {current_version!r}")

    major, minor, patch = (int(part) for part in match.groups())
    if bump_type == "major":
        return f"{major + 1}.0.0"
    if bump_type == "minor":
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"
