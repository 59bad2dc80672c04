"""Hand-written request/response schema overrides.

Schemas live on disk as ``<schema_dir>/request/<name>.json`` and
``<schema_dir>/response/<name>.json`` where ``name`` is derived from the
route, e.g. POST /api/users/:id => ``users.id.post``.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger("api_autodoc.builder.schemas")

SCHEMA_KINDS = ("request", "response")


def route_to_schema_name(method: str, path: str) -> str:
    """Canonical schema name for a route: /api/users/:id, GET => users.id.get"""
    name = re.sub(r"^/api/", "", path)
    name = re.sub(r"^/", "", name)
    name = name.replace("/", ".")
    name = re.sub(r":(\w+)", r"\1", name)
    name = re.sub(r"\.$", "", name)
    return f"{name}.{method.lower()}"


class SchemaLookup(ABC):
    """Source of schema overrides. Lookups never raise."""

    @abstractmethod
    def load(self, kind: str, name: str) -> dict[str, Any] | None:
        """Return the parsed schema, or None if there is none."""


class FileSchemaLookup(SchemaLookup):
    """Reads schema overrides from a directory tree."""

    def __init__(self, schema_dir: Path | str):
        self.schema_dir = Path(schema_dir)

    def load(self, kind: str, name: str) -> dict[str, Any] | None:
        if kind not in SCHEMA_KINDS:
            return None

        schema_path = self.schema_dir / kind / f"{name}.json"
        try:
            schema = json.loads(schema_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable schema %s: %s", schema_path, e)
            return None

        if not isinstance(schema, dict):
            logger.warning("Ignoring schema %s: top level is not an object", schema_path)
            return None
        schema["schemaFile"] = str(schema_path)
        return schema


class DictSchemaLookup(SchemaLookup):
    """In-memory lookup: {"request": {name: schema}, "response": {...}}."""

    def __init__(self, schemas: dict[str, dict[str, dict[str, Any]]] | None = None):
        self.schemas = schemas or {}

    def load(self, kind: str, name: str) -> dict[str, Any] | None:
        schema = self.schemas.get(kind, {}).get(name)
        return dict(schema) if schema is not None else None
