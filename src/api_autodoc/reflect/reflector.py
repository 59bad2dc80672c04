"""Route reflection engine.

Walks a routing tree depth-first and emits one RouteDescriptor per
(method, path) registration, following nested routers and their prefixes.
"""

import logging
import re
from typing import Any

from .base import (
    InvalidTreeError,
    NodeKind,
    RouteDescriptor,
    RouteStatistics,
    RoutingTree,
)
from .paths import clean, extract_parameters


class RouteReflector:
    """Discovers registered routes from a RoutingTree adapter."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("api_autodoc.reflect")
        self.routes: list[RouteDescriptor] = []

    def extract_routes(self, tree: RoutingTree) -> list[RouteDescriptor]:
        """Walk the whole tree and return the routes found, in walk order."""
        if tree is None or not isinstance(tree, RoutingTree):
            raise InvalidTreeError("Invalid routing tree provided")

        self.routes = []
        self._walk(tree, tree.root_nodes(), "", frozenset())
        self.logger.info("Reflected %d routes", len(self.routes))
        return self.routes

    def _walk(self, tree: RoutingTree, nodes: Any, base_path: str, ancestors: frozenset[int]) -> None:
        if not isinstance(nodes, (list, tuple)):
            return

        for node in nodes:
            try:
                kind = tree.node_kind(node)
            except Exception as e:
                self.logger.warning("Could not classify routing node: %s", e)
                continue

            if kind is NodeKind.ROUTE:
                self._process_route(tree, node, base_path)
                continue
            if kind is NodeKind.OTHER:
                continue

            # A router may be mounted twice, but never inside itself.
            if id(node) in ancestors:
                self.logger.warning("Routing tree refers back to itself under %r, not descending", base_path or "/")
                continue

            nested_path = base_path
            if kind is NodeKind.MOUNT:
                nested_path = clean(base_path + self._node_prefix(tree, node))
            self._walk(tree, self._children(tree, node), nested_path, ancestors | {id(node)})

    def _node_prefix(self, tree: RoutingTree, node: Any) -> str:
        try:
            return tree.prefix(node) or ""
        except Exception as e:
            self.logger.warning("Could not determine mount prefix, using none: %s", e)
            return ""

    def _children(self, tree: RoutingTree, node: Any) -> Any:
        try:
            return tree.children(node)
        except Exception as e:
            self.logger.warning("Could not read nested routing nodes: %s", e)
            return []

    def _process_route(self, tree: RoutingTree, node: Any, base_path: str) -> None:
        try:
            route_path = tree.route_path(node)
            methods = tree.route_methods(node)
        except Exception as e:
            self.logger.warning("Skipping unreadable route under %r: %s", base_path or "/", e)
            return

        # Express accepts an array of paths for one route
        raw_paths = route_path if isinstance(route_path, (list, tuple)) else [route_path]

        try:
            chain = tree.handler_chain(node)
        except Exception as e:
            self.logger.warning("Could not read handler chain under %r: %s", base_path or "/", e)
            chain = []

        middleware = [entry.name or "anonymous" for entry in chain[:-1]]
        if chain:
            handler = chain[-1]
            handler_name = handler.name or "anonymous"
            handler_type = "async" if handler.is_async else "function"
            is_async = handler.is_async
            source = handler.source
        else:
            handler_name, handler_type, is_async, source = "unknown", "unknown", False, None

        for raw_path in raw_paths:
            if not isinstance(raw_path, str):
                self.logger.warning("Skipping non-string route path %r under %r", raw_path, base_path or "/")
                continue
            path = clean(base_path + raw_path)
            for method in methods:
                self.routes.append(
                    RouteDescriptor(
                        method=method,
                        path=path,
                        base_path=base_path,
                        handler_name=handler_name,
                        handler_type=handler_type,
                        is_async=is_async,
                        middleware=list(middleware),
                        path_parameters=extract_parameters(path),
                        handler_source=source,
                    )
                )

    def get_routes_by_method(self, method: str) -> list[RouteDescriptor]:
        return [r for r in self.routes if r.method == method.upper()]

    def get_routes_by_path(self, pattern: str) -> list[RouteDescriptor]:
        regex = re.compile(pattern)
        return [r for r in self.routes if regex.search(r.path)]

    def get_unique_paths(self) -> list[str]:
        return list(dict.fromkeys(r.path for r in self.routes))

    def get_statistics(self) -> RouteStatistics:
        """Aggregate counts over the last extract_routes result."""
        method_counts: dict[str, int] = {}
        for route in self.routes:
            method_counts[route.method] = method_counts.get(route.method, 0) + 1

        return RouteStatistics(
            total_routes=len(self.routes),
            unique_paths=len(self.get_unique_paths()),
            method_breakdown=method_counts,
            async_handlers=sum(1 for r in self.routes if r.is_async),
            routes_with_middleware=sum(1 for r in self.routes if r.middleware),
            routes_with_parameters=sum(1 for r in self.routes if r.path_parameters),
        )
