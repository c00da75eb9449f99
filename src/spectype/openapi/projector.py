from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from spectype.errors import ContractViolation
from spectype.openapi.document import (
    Components,
    Header,
    Info,
    MediaType,
    OpenAPIDocument,
    Operation,
    Parameter,
    RequestBody,
    ResponseObject,
)
from spectype.openapi.schema import SchemaBuilder
from spectype.routing.table import Endpoint
from spectype.types.introspect import ACTION_ARITY, SignatureSource
from spectype.types.model import Literal, Signature, Struct, TypeDescriptor, status_of
from spectype.types.registry import admits_none, resolve

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"

_PARAM_COLON = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")
_PARAM_ANGLE = re.compile(r"<(?:[A-Za-z_][A-Za-z0-9_]*:)?([A-Za-z_][A-Za-z0-9_]*)>")
_PARAM_BRACE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

STATUS_PHRASES = {
    200: "OK",
    201: "Created",
    204: "No Content",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


@dataclass(frozen=True)
class GenerationError:
    method: str
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.method} {self.path}: {self.message}"


@dataclass(frozen=True)
class GenerationResult:
    document: Optional[dict[str, Any]] = None
    errors: tuple[GenerationError, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.document is not None and not self.errors


def openapi_path(path: str) -> str:
    """
    Rewrite router parameter markers into OpenAPI placeholders.

    /users/:id -> /users/{id}, /users/<int:id> -> /users/{id}. Already
    rewritten templates come back unchanged.
    """
    p = _PARAM_ANGLE.sub(r"{\1}", path)
    return _PARAM_COLON.sub(r"{\1}", p)


def path_variables(path: str) -> list[str]:
    return _PARAM_BRACE.findall(openapi_path(path))


def status_description(status: int) -> str:
    return STATUS_PHRASES.get(status, f"Response {status}")


def generate_openapi(
    endpoints: Iterable[Endpoint],
    source: SignatureSource,
    info: Info | Mapping[str, Any],
) -> GenerationResult:
    """
    Build an OpenAPI document from every endpoint whose handler has a signature.

    Endpoints without a signature are left out. Contract violations found
    while projecting an endpoint are collected instead of raised; any error
    means no document.
    """
    try:
        info_model = info if isinstance(info, Info) else Info.model_validate(dict(info))
    except ValidationError as exc:
        error = GenerationError("-", "-", f"invalid info object: {exc}")
        logger.error("OpenAPI generation error: %s", error)
        return GenerationResult(document=None, errors=(error,))

    builder = SchemaBuilder(source.registry)
    paths: dict[str, dict[str, Operation]] = {}
    errors: list[GenerationError] = []

    for ep in endpoints:
        path = openapi_path(ep.path)
        try:
            signature = source.lookup_signature(ep.handler, ep.action, ACTION_ARITY)
            if signature is None:
                continue
            operation = _operation(ep, path, signature, builder)
        except ContractViolation as exc:
            errors.append(GenerationError(ep.method, path, str(exc)))
            continue
        paths.setdefault(path, {})[ep.method.lower()] = operation

    for problem in source.registry.validate():
        errors.append(GenerationError("-", "-", problem))

    if errors:
        for e in errors:
            logger.error("OpenAPI generation error: %s", e)
        return GenerationResult(document=None, errors=tuple(errors))

    doc = OpenAPIDocument(
        info=info_model,
        paths=paths,
        components=Components(schemas=dict(sorted(builder.components.items()))),
    )
    return GenerationResult(document=doc.to_dict())


def _operation(ep: Endpoint, path: str, signature: Signature, builder: SchemaBuilder) -> Operation:
    registry = builder.registry
    parameters: list[Parameter] = []

    path_record = _record(signature.path_args_type, registry, "path args")
    for name in path_variables(path):
        f = _by_wire_name(path_record, name)
        if f is None:
            raise ContractViolation(f"path parameter {name!r} is not declared in the path args type")
        parameters.append(Parameter(name=name, in_="path", required=True, schema_=builder.schema(f.type)))

    headers_record = _record(signature.headers_type, registry, "headers")
    for f in headers_record.fields:
        parameters.append(
            Parameter(name=f.wire_name, in_="header", required=f.required, schema_=builder.schema(f.type))
        )

    request_body = None
    if ep.method.upper() in BODY_METHODS and not _is_none(signature.body_type, registry):
        request_body = RequestBody(
            required=not admits_none(signature.body_type, registry),
            content={JSON_MEDIA_TYPE: MediaType(schema_=builder.schema(signature.body_type))},
        )

    responses: dict[str, ResponseObject] = {}
    for variant in signature.response_variants():
        status = status_of(variant)
        _, headers_type, body_type = variant.elements
        responses[str(status)] = ResponseObject(
            description=status_description(status),  # type: ignore[arg-type]
            headers=_response_headers(headers_type, builder),
            content=None
            if _is_none(body_type, registry)
            else {JSON_MEDIA_TYPE: MediaType(schema_=builder.schema(body_type))},
        )

    return Operation(
        operation_id=f"{ep.handler_name}.{ep.action}",
        parameters=parameters,
        request_body=request_body,
        responses=responses,
    )


def _response_headers(descriptor: TypeDescriptor, builder: SchemaBuilder) -> Optional[dict[str, Header]]:
    record = _record(descriptor, builder.registry, "response headers")
    if not record.fields:
        return None
    return {f.wire_name: Header(required=f.required, schema_=builder.schema(f.type)) for f in record.fields}


def _record(descriptor: TypeDescriptor, registry, what: str) -> Struct:
    resolved = resolve(descriptor, registry)
    if not isinstance(resolved, Struct):
        raise ContractViolation(f"{what} type must be a record, got {resolved!r}")
    return resolved


def _by_wire_name(record: Struct, wire_name: str):
    for f in record.fields:
        if f.wire_name == wire_name:
            return f
    return None


def _is_none(descriptor: TypeDescriptor, registry) -> bool:
    resolved = resolve(descriptor, registry)
    return isinstance(resolved, Literal) and resolved.value is None
