import pytest

from spectype.openapi.projector import (
    generate_openapi,
    openapi_path,
    path_variables,
    status_description,
)
from spectype.routing.table import RouteTable
from spectype.types.introspect import AnnotationSignatureSource
from spectype.types.model import Reference, Union, primitive

from sample_api import CatalogController, FaultyController, Unannotated, build_routes

INFO = {"title": "Items", "version": "2.0.0"}


def generate(routes):
    result = generate_openapi(routes, AnnotationSignatureSource(), INFO)
    assert result.ok, result.errors
    return result.document


def test_document_shape():
    doc = generate(build_routes())

    assert doc["openapi"] == "3.0.3"
    assert doc["info"] == {"title": "Items", "version": "2.0.0"}
    assert set(doc["paths"]) == {"/items", "/items/{id}"}
    assert set(doc["paths"]["/items"]) == {"get", "post"}
    assert set(doc["paths"]["/items/{id}"]) == {"get", "delete"}


def test_undocumented_handlers_are_left_out():
    doc = generate(build_routes())
    assert "/ping" not in doc["paths"]


def test_union_return_projects_one_response_per_variant():
    doc = generate(build_routes())
    show = doc["paths"]["/items/{id}"]["get"]

    assert set(show["responses"]) == {"200", "404"}
    assert show["responses"]["200"]["description"] == "OK"
    assert show["responses"]["404"]["description"] == "Not Found"
    assert show["responses"]["404"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/Problem"
    }
    assert show["operationId"] == "ItemController.show"


def test_single_return_projects_one_response_with_headers():
    doc = generate(build_routes())
    index = doc["paths"]["/items"]["get"]

    assert list(index["responses"]) == ["200"]
    ok = index["responses"]["200"]
    assert ok["headers"] == {"x-count": {"required": True, "schema": {"type": "integer"}}}
    assert ok["content"]["application/json"]["schema"] == {
        "type": "array",
        "items": {"$ref": "#/components/schemas/Item"},
    }
    assert "requestBody" not in index
    assert index["parameters"] == []


def test_path_and_header_parameters():
    doc = generate(build_routes())
    show = doc["paths"]["/items/{id}"]["get"]
    create = doc["paths"]["/items"]["post"]

    assert show["parameters"] == [{"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}]
    assert [(p["name"], p["in"], p["required"]) for p in create["parameters"]] == [
        ("x-api-key", "header", True),
        ("x-trace-id", "header", False),
    ]


def test_request_body_only_for_body_methods():
    doc = generate(build_routes())
    create = doc["paths"]["/items"]["post"]
    remove = doc["paths"]["/items/{id}"]["delete"]

    assert create["requestBody"] == {
        "required": True,
        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/ItemInput"}}},
    }
    assert "requestBody" not in remove
    assert remove["responses"] == {"204": {"description": "No Content"}}


def test_components_carry_struct_schemas():
    schemas = generate(build_routes())["components"]["schemas"]

    assert list(schemas) == sorted(schemas)
    item = schemas["Item"]
    assert item["type"] == "object"
    assert item["title"] == "Item"
    assert item["description"] == "A stored item"
    assert item["required"] == ["name", "price"]
    assert item["properties"]["price"] == {"type": "number"}
    assert item["properties"]["id"] == {"type": "integer", "nullable": True}


def test_recursive_and_aliased_types():
    routes = RouteTable()
    catalog = CatalogController()
    routes.post("/tree", catalog, "tree")
    routes.post("/tags", catalog, "tag")
    routes.post("/uploads", catalog, "upload")
    doc = generate(routes)
    schemas = doc["components"]["schemas"]

    assert schemas["Node"]["properties"]["children"] == {
        "type": "array",
        "items": {"$ref": "#/components/schemas/Node"},
    }
    assert schemas["Tag"]["properties"]["tagName"] == {"type": "string"}
    assert schemas["Tag"]["required"] == ["tagName"]
    upload = doc["paths"]["/uploads"]["post"]
    assert upload["requestBody"]["content"]["application/json"]["schema"] == {"type": "string", "format": "byte"}


def test_missing_path_variable_is_a_generation_error():
    routes = RouteTable()
    routes.get("/catalog/:slug", CatalogController(), "by_slug")
    result = generate_openapi(routes, AnnotationSignatureSource(), INFO)

    assert not result.ok
    assert result.document is None
    [error] = result.errors
    assert (error.method, error.path) == ("GET", "/catalog/{slug}")
    assert "slug" in error.message


def test_contract_violations_are_collected_not_raised():
    routes = RouteTable()
    routes.get("/a", Unannotated(), "show")
    routes.get("/b", FaultyController(), "undeclared")
    result = generate_openapi(routes, AnnotationSignatureSource(), INFO)

    assert result.document is None
    assert [e.path for e in result.errors] == ["/a"]


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/users/:id", "/users/{id}"),
        ("/users/:user_id/posts/:id", "/users/{user_id}/posts/{id}"),
        ("/users/<int:id>", "/users/{id}"),
        ("/users/<name>", "/users/{name}"),
        ("/users", "/users"),
    ],
)
def test_path_rewrite(path, expected):
    assert openapi_path(path) == expected
    assert openapi_path(openapi_path(path)) == openapi_path(path)


def test_path_variables():
    assert path_variables("/orgs/:org/members/<int:id>") == ["org", "id"]


def test_status_description_fallback():
    assert status_description(201) == "Created"
    assert status_description(299) == "Response 299"


def test_nullable_field_without_default_is_required_in_schema():
    routes = RouteTable()
    routes.post("/notes", CatalogController(), "annotate")
    note = generate(routes)["components"]["schemas"]["Note"]

    assert note["required"] == ["text"]
    assert note["properties"]["text"] == {"type": "string", "nullable": True}


def test_invalid_info_is_a_generation_error():
    result = generate_openapi(build_routes(), AnnotationSignatureSource(), {"title": "t", "version": "1", "x": 1})

    assert result.document is None
    [error] = result.errors
    assert "info" in error.message


def test_unguarded_type_loop_is_a_generation_error():
    source = AnnotationSignatureSource()
    source.registry.define("Loop", Union((Reference("Loop"), primitive("integer"))))
    result = generate_openapi(build_routes(), source, INFO)

    assert result.document is None
    assert any(e.message.startswith("Loop/0") for e in result.errors)
