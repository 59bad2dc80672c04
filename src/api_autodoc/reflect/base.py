"""Routing-tree contract and the route models it produces.

The reflector never looks at framework objects directly. Each supported
framework ships a ``RoutingTree`` adapter that answers a handful of questions
about its nodes; the reflector walks whatever the adapter exposes.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD")


class InvalidTreeError(ValueError):
    """The routing tree handle itself is missing or not walkable."""


class NodeKind(str, Enum):
    ROUTE = "route"  # terminal route: methods + handler chain
    MOUNT = "mount"  # nested router under a path prefix
    DISPATCH = "dispatch"  # nested stack without a prefix of its own
    OTHER = "other"  # plain middleware, skipped


class HandlerInfo(BaseModel):
    """One entry of a route's handler chain."""

    name: str = "anonymous"
    is_async: bool = False
    source: str | None = None


class RouteDescriptor(BaseModel):
    """A single (method, path) registration discovered in a routing tree."""

    method: str
    path: str
    base_path: str = ""
    handler_name: str = "anonymous"
    handler_type: str = "function"  # function / async / unknown
    is_async: bool = False
    middleware: list[str] = []
    path_parameters: list[str] = []
    handler_source: str | None = None

    @property
    def key(self) -> str:
        return f"{self.method} {self.path}"


class RouteStatistics(BaseModel):
    total_routes: int = 0
    unique_paths: int = 0
    method_breakdown: dict[str, int] = {}
    async_handlers: int = 0
    routes_with_middleware: int = 0
    routes_with_parameters: int = 0


class RoutingTree(ABC):
    """Read-only view of a framework's routing tree."""

    @abstractmethod
    def root_nodes(self) -> Sequence[Any]:
        """Top-level nodes. Raises InvalidTreeError if the root is unusable."""

    @abstractmethod
    def node_kind(self, node: Any) -> NodeKind:
        ...

    @abstractmethod
    def route_path(self, node: Any) -> str | list[str]:
        """Raw path of a ROUTE node, or a list of paths when several share it."""
        ...

    @abstractmethod
    def route_methods(self, node: Any) -> list[str]:
        """Declared HTTP methods of a ROUTE node, uppercased, in order."""

    @abstractmethod
    def handler_chain(self, node: Any) -> list[HandlerInfo]:
        """Middleware entries followed by the terminal handler."""

    @abstractmethod
    def prefix(self, node: Any) -> str:
        """Literal path prefix a MOUNT node contributes."""

    @abstractmethod
    def children(self, node: Any) -> Sequence[Any]:
        """Nested nodes of a MOUNT or DISPATCH node."""
