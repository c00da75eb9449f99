from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from spectype.codec.decode import DecodeError, ErrorKind, FieldError, WireForm, decode
from spectype.codec.encode import encode
from spectype.errors import (
    ContractViolation,
    EncodeError,
    InvalidHandlerResult,
    MissingSignature,
    UndeclaredStatus,
)
from spectype.routing.table import Endpoint
from spectype.types.introspect import ACTION_ARITY, SignatureSource
from spectype.types.model import Literal, Primitive, PrimitiveKind, Struct, TupleOf, TypeDescriptor
from spectype.types.registry import TypeRegistry, resolve

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


class DispatchState(str, Enum):
    RESOLVING_SIGNATURE = "resolving_signature"
    DECODING_PATH_ARGS = "decoding_path_args"
    DECODING_HEADERS = "decoding_headers"
    DECODING_BODY = "decoding_body"
    INVOKING = "invoking"
    SELECTING_RESPONSE_VARIANT = "selecting_response_variant"
    ENCODING_RESPONSE = "encoding_response"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class RawRequest:
    """What the transport hands over: untyped strings and an optionally parsed body."""

    path_params: Mapping[str, str] = field(default_factory=dict)
    headers: Sequence[tuple[str, str]] = ()
    body: Any = None


@dataclass(frozen=True)
class Response:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


class Dispatcher:
    """
    Runs one handler action per request: decode -> invoke -> encode.

    Bad input becomes a 400 with every collected FieldError. Defects in the
    handler or its declared types raise ContractViolation, except a body that
    fails to encode, which degrades to a generic 500.
    """

    def __init__(self, source: SignatureSource):
        self.source = source

    @property
    def registry(self) -> TypeRegistry:
        return self.source.registry

    def dispatch_endpoint(self, endpoint: Endpoint, request: RawRequest) -> Response:
        return self.dispatch(endpoint.handler, endpoint.action, request)

    def dispatch(self, handler: Any, action: str, request: RawRequest) -> Response:
        label = f"{_handler_label(handler)}.{action}"
        _enter(label, DispatchState.RESOLVING_SIGNATURE)
        signature = self.source.lookup_signature(handler, action, ACTION_ARITY)
        if signature is None:
            raise MissingSignature(f"no signature declared for {label}/{ACTION_ARITY}")

        try:
            state = _enter(label, DispatchState.DECODING_PATH_ARGS)
            path_args = self._decode_path_args(request.path_params, signature.path_args_type)
            state = _enter(label, DispatchState.DECODING_HEADERS)
            headers = self._decode_headers(request.headers, signature.headers_type)
            state = _enter(label, DispatchState.DECODING_BODY)
            body = self._decode_body(request.body, signature.body_type)
        except DecodeError as exc:
            _enter(label, DispatchState.ABORTED)
            logger.warning(
                "%s aborted while %s: %s",
                label,
                state.value,
                exc,
                extra={"handler": _handler_label(handler), "action": action, "status": 400},
            )
            return bad_request(exc.errors)

        _enter(label, DispatchState.INVOKING)
        result = getattr(handler, action)(path_args, headers, body)
        status, response_headers, response_body = _unpack_result(result, label)

        _enter(label, DispatchState.SELECTING_RESPONSE_VARIANT)
        variant = signature.variant_for_status(status)
        if variant is None:
            raise UndeclaredStatus(f"{label} returned status {status}, which its return type does not declare")

        _enter(label, DispatchState.ENCODING_RESPONSE)
        out_headers = self._encode_headers(response_headers, variant, label)
        try:
            out_body = self._encode_body(response_body, variant.elements[2])
        except (ContractViolation, TypeError, ValueError):
            _enter(label, DispatchState.ABORTED)
            logger.error(
                "%s: response body for status %s failed to encode",
                label,
                status,
                exc_info=True,
                extra={"handler": _handler_label(handler), "action": action, "status": status},
            )
            return server_error()

        if out_body is not None:
            out_headers.setdefault("content-type", JSON_CONTENT_TYPE)
        _enter(label, DispatchState.DONE)
        logger.debug("%s -> %s", label, status)
        return Response(status=status, headers=out_headers, body=out_body)

    # ----------------------------
    # decoding
    # ----------------------------

    def _record(self, descriptor: TypeDescriptor, what: str) -> Struct:
        resolved = resolve(descriptor, self.registry)
        if not isinstance(resolved, Struct):
            raise ContractViolation(f"{what} type must be a record, got {resolved!r}")
        return resolved

    def _decode_path_args(self, raw: Mapping[str, str], descriptor: TypeDescriptor) -> Any:
        self._record(descriptor, "path args")
        return decode(dict(raw), descriptor, self.registry, WireForm.STRING)

    def _decode_headers(self, raw: Sequence[tuple[str, str]], descriptor: TypeDescriptor) -> Any:
        record = self._record(descriptor, "headers")
        lowered: dict[str, str] = {}
        for name, value in raw:
            # first occurrence wins
            lowered.setdefault(name.lower(), value)
        by_wire_name = {
            f.wire_name: lowered[f.wire_name.lower()]
            for f in record.fields
            if f.wire_name.lower() in lowered
        }
        return decode(by_wire_name, descriptor, self.registry, WireForm.STRING)

    def _decode_body(self, raw: Any, descriptor: TypeDescriptor) -> Any:
        if isinstance(raw, (bytes, bytearray)):
            resolved = resolve(descriptor, self.registry)
            if not raw:
                raw = None
            elif not (isinstance(resolved, Primitive) and resolved.kind is PrimitiveKind.BINARY):
                try:
                    raw = json.loads(raw)
                except (UnicodeDecodeError, ValueError):
                    raise DecodeError([FieldError(ErrorKind.TYPE_MISMATCH, ())]) from None
        return decode(raw, descriptor, self.registry, WireForm.JSON)

    # ----------------------------
    # encoding
    # ----------------------------

    def _encode_headers(self, values: Mapping[str, Any], variant: TupleOf, label: str) -> dict[str, str]:
        record = self._record(variant.elements[1], "response headers")
        out: dict[str, str] = {}
        for f in record.fields:
            if f.name in values:
                value = values[f.name]
            elif f.wire_name in values:
                value = values[f.wire_name]
            elif f.required:
                raise EncodeError(f"{label} did not supply required response header {f.wire_name!r}", (f.name,))
            else:
                continue
            out[f.wire_name] = encode(value, f.type, self.registry, WireForm.STRING)
        return out

    def _encode_body(self, value: Any, descriptor: TypeDescriptor) -> Optional[bytes]:
        resolved = resolve(descriptor, self.registry)
        if value is None and isinstance(resolved, Literal) and resolved.value is None:
            return None
        wire = encode(value, descriptor, self.registry, WireForm.JSON)
        return json.dumps(wire, separators=(",", ":"), allow_nan=False).encode("utf-8")


def _enter(label: str, state: DispatchState) -> DispatchState:
    logger.debug("%s: %s", label, state.value)
    return state


def _unpack_result(result: Any, label: str) -> tuple[int, Mapping[str, Any], Any]:
    if not isinstance(result, tuple) or len(result) != 3:
        raise InvalidHandlerResult(f"{label} must return (status, headers, body), got: {result!r}")
    status, headers, body = result
    if isinstance(status, bool) or not isinstance(status, int):
        raise InvalidHandlerResult(f"{label} returned a non-integer status: {status!r}")
    if not isinstance(headers, Mapping):
        raise InvalidHandlerResult(f"{label} returned non-mapping headers: {headers!r}")
    return status, headers, body


def _handler_label(handler: Any) -> str:
    cls = handler if isinstance(handler, type) else type(handler)
    return cls.__name__


def _json_response(status: int, payload: dict[str, Any]) -> Response:
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return Response(status=status, headers={"content-type": JSON_CONTENT_TYPE}, body=body)


def bad_request(errors: list[FieldError]) -> Response:
    return _json_response(400, {"error": "Bad Request", "details": [e.to_dict() for e in errors]})


def server_error() -> Response:
    return _json_response(500, {"error": "Internal Server Error", "message": "Response encoding failed"})
