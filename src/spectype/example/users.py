"""
A small users API wired end to end.

    spectype openapi spectype.example.users:router --title "Example API" --version 1.0.0
"""

from dataclasses import dataclass
from typing import Literal, Optional, TypedDict, Union

from spectype.dispatch.pipeline import Dispatcher, RawRequest, Response
from spectype.openapi.service import OpenAPIService
from spectype.routing.table import RouteTable
from spectype.store.doc_cache import InMemoryDocumentCache
from spectype.types.introspect import AnnotationSignatureSource, NoFields, TypedController


@dataclass
class User:
    """A user resource"""

    name: str
    id: Optional[int] = None
    email: Optional[str] = None


@dataclass
class UserInput:
    """Input for creating or updating a user"""

    name: str
    email: str


@dataclass
class Error:
    """An error response"""

    message: str


class UserPath(TypedDict):
    id: str


WriteHeaders = TypedDict("WriteHeaders", {"x-api-key": str})
CountHeaders = TypedDict("CountHeaders", {"x-total-count": int})


class UserController(TypedController):
    def __init__(self) -> None:
        # in-memory store for demo purposes
        self.users: dict[str, User] = {
            "1": User(id=1, name="Andreas", email="andreas@example.com"),
            "2": User(id=2, name="Hasse", email="hasse@example.com"),
        }

    def index(self, path_args: NoFields, headers: NoFields, body: None) -> tuple[Literal[200], CountHeaders, list[User]]:
        users = list(self.users.values())
        return 200, {"x-total-count": len(users)}, users

    def show(
        self, path_args: UserPath, headers: NoFields, body: None
    ) -> Union[tuple[Literal[200], NoFields, User], tuple[Literal[404], NoFields, Error]]:
        user = self.users.get(path_args["id"])
        if user is None:
            return 404, {}, Error(message=f"User {path_args['id']} not found")
        return 200, {}, user

    def create(
        self, path_args: NoFields, headers: WriteHeaders, body: UserInput
    ) -> Union[tuple[Literal[201], NoFields, User], tuple[Literal[422], NoFields, Error]]:
        if not body.name.strip():
            return 422, {}, Error(message="name must not be blank")
        new_id = max((u.id or 0 for u in self.users.values()), default=0) + 1
        user = User(id=new_id, name=body.name, email=body.email)
        self.users[str(new_id)] = user
        return 201, {}, user

    def update(
        self, path_args: UserPath, headers: WriteHeaders, body: UserInput
    ) -> Union[
        tuple[Literal[200], NoFields, User],
        tuple[Literal[404], NoFields, Error],
        tuple[Literal[422], NoFields, Error],
    ]:
        user = self.users.get(path_args["id"])
        if user is None:
            return 404, {}, Error(message=f"User {path_args['id']} not found")
        if not body.name.strip():
            return 422, {}, Error(message="name must not be blank")
        updated = User(id=user.id, name=body.name, email=body.email)
        self.users[path_args["id"]] = updated
        return 200, {}, updated

    def delete(self, path_args: UserPath, headers: WriteHeaders, body: None) -> tuple[Literal[204], NoFields, None]:
        self.users.pop(path_args["id"], None)
        return 204, {}, None


source = AnnotationSignatureSource()
users = UserController()

router = RouteTable()

openapi = OpenAPIService(
    router,
    source,
    title="Example API",
    version="1.0.0",
    cache=InMemoryDocumentCache(),
)


class OpenAPIController:
    """Plain route target: serves the document, is not itself documented."""

    def show(self, request: RawRequest) -> Response:
        return openapi.show()

    def swagger(self, request: RawRequest) -> Response:
        return openapi.swagger()


router.get("/openapi", OpenAPIController(), "show")
router.get("/swagger", OpenAPIController(), "swagger")
router.get("/users", users, "index")
router.get("/users/:id", users, "show")
router.post("/users", users, "create")
router.put("/users/:id", users, "update")
router.delete("/users/:id", users, "delete")

dispatcher = Dispatcher(source)
