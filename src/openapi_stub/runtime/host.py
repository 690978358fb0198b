"""What the binder needs from the HTTP host, and a small in-memory host.

Any router with express-style `get/put/delete/post/patch(path, callback)`
registration can host generated modules. Callbacks receive a request
exposing `query`, `params` and `body`, a response exposing
`respond(status_code, payload)`, and a `report_error(err)` callable.
"""

import logging
import re
from typing import Any, Callable, Protocol
from urllib.parse import unquote

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class HostRequest(Protocol):
    query: Any
    params: Any
    body: Any


class HostResponse(Protocol):
    def respond(self, status_code: int, payload: Any) -> None: ...


ReportError = Callable[[BaseException], None]
RouteCallback = Callable[[HostRequest, HostResponse, ReportError], None]


class Router(Protocol):
    def get(self, path: str, callback: RouteCallback) -> Any: ...

    def put(self, path: str, callback: RouteCallback) -> Any: ...

    def delete(self, path: str, callback: RouteCallback) -> Any: ...

    def post(self, path: str, callback: RouteCallback) -> Any: ...

    def patch(self, path: str, callback: RouteCallback) -> Any: ...


class Request(BaseModel):
    method: str = "GET"
    path: str = "/"
    query: dict[str, Any] = {}
    params: dict[str, str] = {}
    body: Any = None


class Response(BaseModel):
    status_code: int | None = None
    payload: Any = None
    errors: list[Any] = []

    @property
    def sent(self) -> bool:
        return self.status_code is not None

    def respond(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self.payload = payload

    def report_error(self, err: BaseException) -> None:
        self.errors.append(err)


_PARAM = re.compile(r":([^/]+)")


def compile_route(path: str) -> tuple[re.Pattern, list[str]]:
    """Turn '/pets/:petId' into a matching regex and its parameter names."""
    names = _PARAM.findall(path)
    pattern = "".join(
        "([^/]+)" if i % 2 else re.escape(part) for i, part in enumerate(_PARAM.split(path))
    )
    return re.compile(f"^{pattern}/?$"), names


class MemoryRouter:
    """Express-style router that dispatches in-process requests."""

    def __init__(self):
        self.routes: list[tuple[str, str, re.Pattern, list[str], RouteCallback]] = []

    def _add(self, method: str, path: str, callback: RouteCallback):
        pattern, names = compile_route(path)
        self.routes.append((method.upper(), path, pattern, names, callback))
        logger.debug("Registered %s %s", method.upper(), path)

    def get(self, path: str, callback: RouteCallback):
        self._add("get", path, callback)

    def put(self, path: str, callback: RouteCallback):
        self._add("put", path, callback)

    def delete(self, path: str, callback: RouteCallback):
        self._add("delete", path, callback)

    def post(self, path: str, callback: RouteCallback):
        self._add("post", path, callback)

    def patch(self, path: str, callback: RouteCallback):
        self._add("patch", path, callback)

    def dispatch(self, method: str, path: str, query: dict | None = None, body: Any = None) -> Response:
        """Route one request. Unmatched requests are answered with 404."""
        response = Response()
        for route_method, _, pattern, names, callback in self.routes:
            if route_method != method.upper():
                continue
            match = pattern.match(path)
            if match is None:
                continue
            params = {name: unquote(value) for name, value in zip(names, match.groups())}
            request = Request(method=method.upper(), path=path, query=query or {}, params=params, body=body)
            try:
                callback(request, response, response.report_error)
            except Exception as err:
                response.report_error(err)
            return response
        response.respond(404, {"message": f"Cannot {method.upper()} {path}"})
        return response
