from __future__ import annotations

import base64
import math
from collections.abc import Mapping
from typing import Any

from spectype.codec.decode import Location, WireForm
from spectype.errors import ContractViolation, CyclicReference, EncodeError
from spectype.types.model import (
    ListOf,
    Literal,
    Primitive,
    PrimitiveKind,
    Reference,
    Struct,
    TupleOf,
    TypeDescriptor,
    Union,
)
from spectype.types.registry import MAX_RESOLVE_DEPTH, TypeRegistry, resolve

_ABSENT = object()


def encode(
    value: Any,
    descriptor: TypeDescriptor,
    registry: TypeRegistry,
    form: WireForm = WireForm.JSON,
) -> Any:
    """
    Render a server-side value in its wire form.

    The value comes from handler code, so any mismatch with its descriptor is
    an EncodeError (a ContractViolation); nothing is coerced.
    """
    return _encode(value, descriptor, registry, form, ())


def _encode(
    value: Any,
    descriptor: TypeDescriptor,
    registry: TypeRegistry,
    form: WireForm,
    loc: Location,
    hops: int = 0,
) -> Any:
    if isinstance(descriptor, Reference):
        if hops >= MAX_RESOLVE_DEPTH:
            raise CyclicReference(descriptor.name, MAX_RESOLVE_DEPTH)
        return _encode(value, resolve(descriptor, registry), registry, form, loc, hops + 1)
    if isinstance(descriptor, Primitive):
        return _encode_primitive(value, descriptor.kind, form, loc)
    if isinstance(descriptor, Literal):
        if type(value) is not type(descriptor.value) or value != descriptor.value:
            raise EncodeError(f"expected literal {descriptor.value!r}, got {value!r}", loc)
        if form is WireForm.STRING:
            return _scalar_text(value)
        return value
    if isinstance(descriptor, Struct):
        if form is WireForm.STRING:
            raise EncodeError("records have no string form", loc)
        return _encode_struct(value, descriptor, registry, loc)
    if isinstance(descriptor, ListOf):
        if form is WireForm.STRING:
            raise EncodeError("lists have no string form", loc)
        if not isinstance(value, (list, tuple)):
            raise EncodeError(f"expected a list, got {type(value).__name__}", loc)
        return [_encode(item, descriptor.element, registry, form, loc + (i,)) for i, item in enumerate(value)]
    if isinstance(descriptor, TupleOf):
        if form is WireForm.STRING:
            raise EncodeError("tuples have no string form", loc)
        if not isinstance(value, (list, tuple)) or len(value) != len(descriptor.elements):
            raise EncodeError(f"expected a {len(descriptor.elements)}-tuple, got {value!r}", loc)
        return [
            _encode(item, d, registry, form, loc + (i,))
            for i, (item, d) in enumerate(zip(value, descriptor.elements))
        ]
    if isinstance(descriptor, Union):
        for variant in descriptor.variants:
            try:
                return _encode(value, variant, registry, form, loc, hops + 1)
            except EncodeError:
                continue
        raise EncodeError(f"{value!r} matches no variant of the union", loc)
    raise ContractViolation(f"not a type descriptor: {descriptor!r}")


def _encode_primitive(value: Any, kind: PrimitiveKind, form: WireForm, loc: Location) -> Any:
    if kind is PrimitiveKind.ANY:
        if form is not WireForm.STRING:
            return value
        if isinstance(value, float) and not math.isfinite(value):
            raise EncodeError(f"non-finite number {value!r} has no string form", loc)
        if not isinstance(value, (str, int, float)):
            raise EncodeError(f"{type(value).__name__} has no string form", loc)
        return _scalar_text(value)

    if kind is PrimitiveKind.BINARY:
        if not isinstance(value, (bytes, bytearray)):
            raise EncodeError(f"expected bytes, got {type(value).__name__}", loc)
        return base64.b64encode(bytes(value)).decode("ascii")

    ok = False
    if kind is PrimitiveKind.BOOLEAN:
        ok = isinstance(value, bool)
    elif kind is PrimitiveKind.STRING:
        ok = isinstance(value, str)
    elif kind is PrimitiveKind.INTEGER:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif kind is PrimitiveKind.FLOAT:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
    if not ok:
        raise EncodeError(f"expected {kind.value}, got {type(value).__name__} {value!r}", loc)

    if kind is PrimitiveKind.FLOAT:
        value = float(value)
    if form is WireForm.STRING:
        return _scalar_text(value)
    return value


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    return str(value)


def _encode_struct(value: Any, descriptor: Struct, registry: TypeRegistry, loc: Location) -> dict[str, Any]:
    if value is None or isinstance(value, (str, bytes, int, float, list, tuple)):
        raise EncodeError(f"expected a record, got {type(value).__name__}", loc)

    out: dict[str, Any] = {}
    for f in descriptor.fields:
        field_loc = loc + (f.name,)
        item = _field_value(value, f.name)
        if item is _ABSENT:
            if f.required:
                raise EncodeError("required field is missing", field_loc)
            continue
        out[f.wire_name] = _encode(item, f.type, registry, WireForm.JSON, field_loc)
    return out


def _field_value(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name, _ABSENT)
    return getattr(value, name, _ABSENT)
