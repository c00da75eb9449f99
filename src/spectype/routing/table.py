from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD")


@dataclass(frozen=True)
class Endpoint:
    method: str                 # GET, POST, ...
    path: str                   # router template, e.g. /users/:id
    handler: Any                # controller object the action is looked up on
    action: str                 # method name on the handler

    @property
    def handler_name(self) -> str:
        cls = self.handler if isinstance(self.handler, type) else type(self.handler)
        return cls.__name__


class RouteTable:
    """
    Ordered list of endpoints, as a router would declare them.

    Matching requests against it belongs to the transport; this only records
    what is routed where.
    """

    def __init__(self) -> None:
        self._endpoints: list[Endpoint] = []

    def add(self, method: str, path: str, handler: Any, action: str) -> Endpoint:
        m = method.upper().strip()
        if m not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method: {method}")
        p = (path or "").strip()
        if not p.startswith("/"):
            p = "/" + p
        endpoint = Endpoint(method=m, path=p, handler=handler, action=action)
        self._endpoints.append(endpoint)
        return endpoint

    def get(self, path: str, handler: Any, action: str) -> Endpoint:
        return self.add("GET", path, handler, action)

    def post(self, path: str, handler: Any, action: str) -> Endpoint:
        return self.add("POST", path, handler, action)

    def put(self, path: str, handler: Any, action: str) -> Endpoint:
        return self.add("PUT", path, handler, action)

    def patch(self, path: str, handler: Any, action: str) -> Endpoint:
        return self.add("PATCH", path, handler, action)

    def delete(self, path: str, handler: Any, action: str) -> Endpoint:
        return self.add("DELETE", path, handler, action)

    def endpoints(self) -> list[Endpoint]:
        return list(self._endpoints)

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(list(self._endpoints))

    def __len__(self) -> int:
        return len(self._endpoints)
