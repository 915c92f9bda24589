"""Explicit registry of the application's (method, path, handler) routes.

Built once from the FastAPI app's declared routes, so the permission
scanner never has to look at source files.
"""

from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from fastapi import FastAPI
from fastapi.routing import APIRoute

from estate_admin.core.config import settings

# HEAD and OPTIONS are transport-level and never get a button.
HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class RouteDefinition:
    method: str
    path: str
    handler: Optional[Callable] = None

    @property
    def key(self):
        return self.method, self.path


class RouteRegistry:
    """Ordered, de-duplicated collection of route definitions."""

    def __init__(self, routes: Optional[List[RouteDefinition]] = None):
        self._routes = {}
        for route in routes or ():
            self.register(route.method, route.path, route.handler)

    def register(self, method: str, path: str, handler: Optional[Callable] = None) -> RouteDefinition:
        definition = RouteDefinition(method.upper(), path, handler)
        self._routes[definition.key] = definition
        return definition

    def __iter__(self) -> Iterator[RouteDefinition]:
        return iter(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)

    @classmethod
    def from_app(cls, app: FastAPI, api_prefix: Optional[str] = None) -> "RouteRegistry":
        """Collect every API operation of ``app`` under ``api_prefix``.

        Operations are read from the app's OpenAPI paths, which list routes of
        included routers at their full path. Handlers are attached where the
        route is reachable as a plain ``APIRoute`` on ``app.routes``.
        """
        prefix = (api_prefix if api_prefix is not None else settings.API_PREFIX).rstrip("/")
        handlers = {
            (method, route.path): route.endpoint
            for route in app.routes
            if isinstance(route, APIRoute)
            for method in route.methods or ()
        }

        registry = cls()
        for path, operations in sorted(app.openapi().get("paths", {}).items()):
            if prefix and not (path == prefix or path.startswith(prefix + "/")):
                continue
            for method in sorted(m.upper() for m in operations if m.upper() in HTTP_METHODS):
                registry.register(method, path, handlers.get((method, path)))
        return registry
