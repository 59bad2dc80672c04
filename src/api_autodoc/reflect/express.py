"""Express routing-tree adapter.

Reads a JSON dump of an Express 4 application's router stack, i.e. what
``app._router.stack`` looks like once its layers are serialized:

    {"_router": {"stack": [
        {"name": "router", "regexp": "^\\/api\\/?(?=\\/|$)", "keys": [],
         "handle": {"stack": [...]}},
        {"name": "bound dispatch", "route": {
            "path": "/users/:id", "methods": {"get": true},
            "stack": [{"name": "authenticate"},
                      {"name": "getUser", "handle": {"async": true, "source": "..."}}]}}
    ]}}

A bare ``{"stack": [...]}`` router or a plain list of layers is accepted as
well.
"""

import json
import re
from pathlib import Path
from typing import Any, Sequence

from .base import HandlerInfo, InvalidTreeError, NodeKind, RoutingTree

# Express compiles ":name" segments in mount paths to this group.
_PARAM_GROUP = re.compile(r"^\(\?:\(\[\^\\?/\]\+\?\)\)")
_LITERAL = re.compile(r"[A-Za-z0-9_\-~%@!,;=.]")


def load_express_tree(file_path: Path) -> "ExpressStackTree":
    """Load an Express router-stack dump from a JSON file."""
    data = json.loads(file_path.read_text(encoding="utf-8"))
    return ExpressStackTree(data)


class ExpressStackTree(RoutingTree):
    """RoutingTree over a serialized Express router stack."""

    def __init__(self, app: Any):
        self.app = app

    def root_nodes(self) -> Sequence[Any]:
        app = self.app
        if isinstance(app, list):
            return app
        if not isinstance(app, dict):
            raise InvalidTreeError("Invalid Express application provided")

        router = app.get("_router", app.get("router", app))
        if not isinstance(router, dict) or not isinstance(router.get("stack"), list):
            raise InvalidTreeError("Invalid Express application provided: no router stack")
        return router["stack"]

    def node_kind(self, node: Any) -> NodeKind:
        if not isinstance(node, dict):
            return NodeKind.OTHER
        if node.get("route"):
            return NodeKind.ROUTE

        handle = node.get("handle")
        has_stack = isinstance(handle, dict) and isinstance(handle.get("stack"), list)
        if node.get("name") == "router" and has_stack:
            return NodeKind.MOUNT
        if node.get("name") == "bound dispatch" and has_stack:
            return NodeKind.DISPATCH
        return NodeKind.OTHER

    def route_path(self, node: Any) -> str | list[str]:
        return node["route"].get("path") or ""

    def route_methods(self, node: Any) -> list[str]:
        methods = node["route"].get("methods") or {}
        return [method.upper() for method, enabled in methods.items() if enabled and method != "_all"]

    def handler_chain(self, node: Any) -> list[HandlerInfo]:
        stack = node["route"].get("stack") or []
        return [self._handler_info(layer) for layer in stack]

    def prefix(self, node: Any) -> str:
        for key in ("mountpath", "path"):
            if isinstance(node.get(key), str):
                return node[key]
        return prefix_from_regexp(node.get("regexp") or "", node.get("keys") or [])

    def children(self, node: Any) -> Sequence[Any]:
        return node["handle"]["stack"]

    def _handler_info(self, layer: Any) -> HandlerInfo:
        handle = layer.get("handle")
        if not isinstance(handle, dict):
            handle = {}

        name = handle.get("name") or layer.get("name") or "anonymous"
        if name == "<anonymous>":
            name = "anonymous"
        is_async = bool(handle.get("async")) or handle.get("constructor") == "AsyncFunction"
        source = handle.get("source")
        return HandlerInfo(
            name=name,
            is_async=is_async,
            source=source if isinstance(source, str) else None,
        )


def prefix_from_regexp(source: str, keys: list | None = None) -> str:
    """Recover the literal mount prefix from an Express layer regexp.

    ``^\\/api\\/v1\\/?(?=\\/|$)`` => "/api/v1". Parameter groups are mapped
    back to ``:name`` using the layer keys. Anything that does not look like
    a compiled mount path yields "".
    """
    if not source.startswith("^"):
        return ""

    keys = list(keys or [])
    parts: list[str] = []
    i = 1
    while i < len(source):
        rest = source[i:]
        group = _PARAM_GROUP.match(rest)
        if group:
            key = keys.pop(0) if keys else {}
            name = key.get("name") if isinstance(key, dict) else key
            parts.append(f":{name}" if name is not None else ":param")
            i += group.end()
        elif rest.startswith("\\") and len(rest) > 1:
            parts.append(rest[1])
            i += 2
        elif _LITERAL.match(rest[0]):
            parts.append(rest[0])
            i += 1
        else:
            break

    prefix = "".join(parts).rstrip("/")
    if not prefix.startswith("/"):
        return ""
    return prefix
