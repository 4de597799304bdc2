"""Minimal fetch-style application used by the examples and the local emulator.

Any object with ``fetch`` and ``use`` can be wrapped by the adapter; this
one only provides method/path routing with ``:name`` parameters and an
ordered middleware chain.
"""

import inspect
import logging
import re
from typing import Any, Callable, Dict, List, Optional

import httpx

from core.interfaces import Middleware

logger = logging.getLogger(__name__)

_PARAM_PATTERN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def json_response(data: Any, status: int = 200, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    """Build a JSON response."""
    return httpx.Response(status, json=data, headers=headers)


class Route:
    """A single method + path pattern bound to a handler."""

    def __init__(self, method: str, path: str, handler: Callable[..., Any]) -> None:
        self.method = method.upper()
        self.path = path
        self.handler = handler
        self._regex = re.compile(
            "^" + _PARAM_PATTERN.sub(r"(?P<\1>[^/]+)", re.escape(path)) + "$"
        )

    def match(self, path: str) -> Optional[Dict[str, str]]:
        m = self._regex.match(path)
        return m.groupdict() if m else None

    def accepts(self, method: str) -> bool:
        return self.method == method or (self.method == "GET" and method == "HEAD")


class FetchApp:
    """Routes requests to handlers through a middleware chain.

    Handlers are called as ``handler(request, **path_params)`` and may be
    plain functions or coroutine functions returning an httpx.Response.
    """

    def __init__(self) -> None:
        self.routes: List[Route] = []
        self.middlewares: List[Middleware] = []

    def use(self, middleware: Middleware) -> Middleware:
        """Append a middleware; middlewares run in registration order."""
        self.middlewares.append(middleware)
        return middleware

    def route(self, method: str, path: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        def decorator(handler: Callable[..., Any]) -> Callable[..., Any]:
            self.routes.append(Route(method, path, handler))
            return handler

        return decorator

    def get(self, path: str):
        return self.route("GET", path)

    def post(self, path: str):
        return self.route("POST", path)

    def put(self, path: str):
        return self.route("PUT", path)

    def delete(self, path: str):
        return self.route("DELETE", path)

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        """Run the middleware chain and the matching route."""
        call_next = self._dispatch
        for middleware in reversed(self.middlewares):
            call_next = self._wrap(middleware, call_next)
        return await call_next(request)

    @staticmethod
    def _wrap(middleware: Middleware, call_next):
        async def handler(request: httpx.Request) -> httpx.Response:
            return await middleware(request, call_next)

        return handler

    async def _dispatch(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        allowed = []

        for route in self.routes:
            params = route.match(path)
            if params is None:
                continue
            if not route.accepts(request.method):
                allowed.append(route.method)
                continue

            result = route.handler(request, **params)
            if inspect.isawaitable(result):
                result = await result
            return result

        if allowed:
            return json_response(
                {"error": f"Method '{request.method}' not allowed"},
                status=405,
                headers={"Allow": ", ".join(allowed)},
            )

        logger.debug(f"No route for {request.method} {path}")
        return json_response({"error": f"Path '{path}' not found"}, status=404)
