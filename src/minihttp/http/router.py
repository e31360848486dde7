"""
=============================================================================
ROUTER
=============================================================================

Maps (method, path) to a handler. The route table is small and fixed, so
matching is plain string comparison, no regular expressions.

=============================================================================
PATTERNS
=============================================================================

    "/user-agent"       EXACT   path must be equal
    "/echo/*value"      PREFIX  path must start with "/echo/";
                                the rest is captured verbatim as "value"
    "/files/*name"      PREFIX  "/files/a/b.txt" → {"name": "a/b.txt"}

A wildcard segment ("*name") may only be the last segment of a pattern.
The captured remainder is not split further and not URL-decoded.

=============================================================================
MATCH ORDER
=============================================================================

Deterministic, independent of how clever the prefixes are:

    1. EXACT routes, in registration order
    2. PREFIX routes, longest prefix first (ties: registration order)

So "/" never falls into "/echo/*value", and a more specific prefix always
beats a shorter one. The method must match too; there is no 405 here, a
wrong method is simply "no route" and gets a 404.

=============================================================================
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple

from ..storage import StorageError
from .request import HTTPRequest, Method
from .response import HTTPResponse, internal_error, not_found

logger = logging.getLogger(__name__)

# A handler takes the routed request and returns a complete response
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        Route(path="/files/*name", method=Method.GET, handler=read_file)
    """

    path: str                        # Pattern as registered
    method: Method                   # Method filter
    handler: Handler
    name: Optional[str] = None

    # Internal: set for wildcard patterns
    _prefix: Optional[str] = field(default=None, repr=False)
    _param_name: Optional[str] = field(default=None, repr=False)

    @property
    def is_prefix(self) -> bool:
        return self._prefix is not None

    def match_path(self, path: str) -> Optional[Dict[str, str]]:
        """Return captured params if the path matches, else None."""
        if self._prefix is None:
            return {} if path == self.path else None

        if path.startswith(self._prefix):
            return {self._param_name: path[len(self._prefix):]}
        return None


@dataclass
class RouteMatch:
    """Matched route plus the captured path parameters."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Method-qualified exact/prefix router.

        router = Router()

        @router.get("/echo/*value")
        def echo(request):
            return ok(request.path_params["value"])

        router.handle(request)   # always returns an HTTPResponse
    """

    def __init__(self):
        self._routes: List[Route] = []          # Registration order

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Method = Method.GET,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            path: Exact path or prefix pattern ending in "*param".
            handler: Callable(request) -> HTTPResponse.
            method: Method the route answers to.
            name: Optional route name.

        Raises:
            ValueError: For patterns not starting with "/" or with a
                        wildcard anywhere but the last segment.
        """
        prefix, param_name = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method,
            handler=handler,
            name=name,
            _prefix=prefix,
            _param_name=param_name,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Split a pattern into (prefix, param name).

            "/user-agent"   → (None, None)
            "/echo/*value"  → ("/echo/", "value")
        """
        if not path.startswith("/"):
            raise ValueError(f"Route pattern must start with '/': {path!r}")

        segments = path.split("/")
        last = segments[-1]

        if not last.startswith("*"):
            if any(segment.startswith("*") for segment in segments):
                raise ValueError(f"Wildcard must be the last segment: {path!r}")
            return None, None

        if any(segment.startswith("*") for segment in segments[:-1]):
            raise ValueError(f"Only one wildcard segment is allowed: {path!r}")

        param_name = last[1:] or "wildcard"
        prefix = "/".join(segments[:-1]) + "/"
        return prefix, param_name

    # ─────────────────────────────────────────────────────────────────────
    # DECORATORS
    # ─────────────────────────────────────────────────────────────────────

    def route(self, path: str, method: Method = Method.GET, name: Optional[str] = None):
        """Decorator form of add_route()."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method=method, name=name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None):
        return self.route(path, Method.GET, name)

    def post(self, path: str, name: Optional[str] = None):
        return self.route(path, Method.POST, name)

    # =========================================================================
    # MATCHING
    # =========================================================================

    def _match_order(self) -> List[Route]:
        exact = [r for r in self._routes if not r.is_prefix]
        # sorted() is stable, so equal-length prefixes keep registration order
        prefixed = sorted(
            (r for r in self._routes if r.is_prefix),
            key=lambda r: len(r._prefix),
            reverse=True,
        )
        return exact + prefixed

    def match(self, method: Method, path: str) -> Optional[RouteMatch]:
        """Find the route for a request, or None."""
        for route in self._match_order():
            if route.method is not method:
                continue

            params = route.match_path(path)
            if params is not None:
                return RouteMatch(route=route, params=params)

        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request. Never raises for routing or storage conditions.

            no route            → 404
            StorageError        → 500 (logged)
            otherwise           → whatever the handler returned
        """
        match = self.match(request.method, request.path)
        if match is None:
            logger.debug(f"No route for {request.method.value} {request.path}")
            return not_found()

        routed = replace(request, path_params=match.params)

        try:
            return match.route.handler(routed)
        except StorageError as e:
            logger.error(f"Storage failure on {request.method.value} {request.path}: {e}")
            return internal_error()

    @property
    def routes(self) -> List[Route]:
        """Registered routes, in registration order."""
        return list(self._routes)
