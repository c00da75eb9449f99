"""Controllers shared by the test modules."""

from dataclasses import dataclass, field
from typing import Literal, NotRequired, Optional, TypedDict, Union

from pydantic import BaseModel, Field

from spectype.routing.table import RouteTable
from spectype.types.introspect import NoFields, TypedController


class ItemPath(TypedDict):
    id: int


ApiKeyHeaders = TypedDict("ApiKeyHeaders", {"x-api-key": str})
TraceHeaders = TypedDict("TraceHeaders", {"x-api-key": str, "x-trace-id": NotRequired[str]})
CountHeaders = TypedDict("CountHeaders", {"x-count": int})


@dataclass
class Item:
    """A stored item"""

    name: str
    price: float
    id: Optional[int] = None


@dataclass
class ItemInput:
    name: str
    price: float


@dataclass
class Problem:
    message: str


@dataclass
class Note:
    text: Optional[str]


@dataclass
class Node:
    label: str
    children: list["Node"] = field(default_factory=list)


class Tag(BaseModel):
    tag_name: str = Field(alias="tagName")
    color: Optional[str] = None


class ItemController(TypedController):
    def __init__(self) -> None:
        self.items: dict[int, Item] = {1: Item(id=1, name="Widget", price=9.5)}
        self.last_headers: Optional[dict] = None

    def index(self, path_args: NoFields, headers: NoFields, body: None) -> tuple[Literal[200], CountHeaders, list[Item]]:
        items = list(self.items.values())
        return 200, {"x-count": len(items)}, items

    def show(
        self, path_args: ItemPath, headers: NoFields, body: None
    ) -> Union[tuple[Literal[200], NoFields, Item], tuple[Literal[404], NoFields, Problem]]:
        item = self.items.get(path_args["id"])
        if item is None:
            return 404, {}, Problem(message=f"Item {path_args['id']} not found")
        return 200, {}, item

    def create(
        self, path_args: NoFields, headers: TraceHeaders, body: ItemInput
    ) -> Union[tuple[Literal[201], NoFields, Item], tuple[Literal[422], NoFields, Problem]]:
        self.last_headers = dict(headers)
        if body.price < 0:
            return 422, {}, Problem(message="price must not be negative")
        item = Item(id=max(self.items) + 1, name=body.name, price=body.price)
        self.items[item.id] = item
        return 201, {}, item

    def remove(self, path_args: ItemPath, headers: ApiKeyHeaders, body: None) -> tuple[Literal[204], NoFields, None]:
        self.items.pop(path_args["id"], None)
        return 204, {}, None

    def _lookup(self, path_args, headers, body):
        return None


class CatalogController(TypedController):
    """Tags and trees."""

    def tag(self, path_args: NoFields, headers: NoFields, body: Tag) -> tuple[Literal[200], NoFields, Tag]:
        return 200, {}, body

    def tree(self, path_args: NoFields, headers: NoFields, body: Node) -> tuple[Literal[200], NoFields, Node]:
        return 200, {}, body

    def annotate(self, path_args: NoFields, headers: NoFields, body: Note) -> tuple[Literal[200], NoFields, Note]:
        return 200, {}, body

    def upload(self, path_args: NoFields, headers: NoFields, body: bytes) -> tuple[Literal[200], NoFields, int]:
        return 200, {}, len(body)

    def by_slug(self, path_args: ItemPath, headers: NoFields, body: None) -> tuple[Literal[200], NoFields, None]:
        return 200, {}, None


class FaultyController(TypedController):
    def wrong_shape(self, path_args: NoFields, headers: NoFields, body: None) -> tuple[Literal[200], NoFields, None]:
        return {"status": 200}  # type: ignore[return-value]

    def undeclared(self, path_args: NoFields, headers: NoFields, body: None) -> tuple[Literal[200], NoFields, None]:
        return 418, {}, None  # type: ignore[return-value]

    def bad_count(self, path_args: NoFields, headers: NoFields, body: None) -> tuple[Literal[200], CountHeaders, list[Item]]:
        return 200, {"x-count": "not-an-integer"}, []  # type: ignore[dict-item]

    def no_count(self, path_args: NoFields, headers: NoFields, body: None) -> tuple[Literal[200], CountHeaders, list[Item]]:
        return 200, {}, []  # type: ignore[typeddict-item]

    def bad_body(self, path_args: NoFields, headers: NoFields, body: None) -> tuple[Literal[200], NoFields, Item]:
        return 200, {}, {"price": 1.0}  # type: ignore[return-value]


class Unannotated(TypedController):
    def show(self, path_args, headers, body):
        return 200, {}, None


class PlainHandler:
    def ping(self, path_args, headers, body):
        return 200, {}, None


def build_routes() -> RouteTable:
    items = ItemController()
    routes = RouteTable()
    routes.get("/items", items, "index")
    routes.get("/items/:id", items, "show")
    routes.post("/items", items, "create")
    routes.delete("/items/:id", items, "remove")
    routes.get("/ping", PlainHandler(), "ping")
    return routes


routes = build_routes()

broken_routes = RouteTable()
broken_routes.get("/catalog/:slug", CatalogController(), "by_slug")
