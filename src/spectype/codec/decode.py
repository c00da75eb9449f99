from __future__ import annotations

import base64
import binascii
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union as TypingUnion

from spectype.errors import ContractViolation, CyclicReference, SpectypeError
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

Location = tuple[TypingUnion[str, int], ...]

_INT_TEXT = re.compile(r"[+-]?[0-9]+")
_FLOAT_TEXT = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")


class WireForm(str, Enum):
    """How values travel on the wire."""

    JSON = "json"      # structurally typed (parsed JSON bodies)
    STRING = "string"  # string carriers (path params, header values)


class ErrorKind(str, Enum):
    MISSING_FIELD = "missing_field"
    TYPE_MISMATCH = "type_mismatch"


@dataclass(frozen=True)
class FieldError:
    kind: ErrorKind
    location: Location = ()

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind.value, "location": [str(p) for p in self.location]}


class DecodeError(SpectypeError):
    """Raw input did not match its declared type. Recoverable: report it to the caller."""

    def __init__(self, errors: list[FieldError]):
        super().__init__(", ".join(f"{e.kind.value} at {list(e.location)}" for e in errors))
        self.errors = list(errors)


def decode(
    raw: Any,
    descriptor: TypeDescriptor,
    registry: TypeRegistry,
    form: WireForm = WireForm.JSON,
) -> Any:
    """
    Validate `raw` against `descriptor` and build the typed value.

    Raises DecodeError with every FieldError found. Struct siblings are all
    visited; a field that fails is not explored any further.
    """
    value, errors = _decode(raw, descriptor, registry, form, ())
    if errors:
        raise DecodeError(errors)
    return value


def _decode(
    raw: Any,
    descriptor: TypeDescriptor,
    registry: TypeRegistry,
    form: WireForm,
    loc: Location,
    hops: int = 0,
) -> tuple[Any, list[FieldError]]:
    # hops counts references and unions entered since the last record, list or tuple
    if isinstance(descriptor, Reference):
        if hops >= MAX_RESOLVE_DEPTH:
            raise CyclicReference(descriptor.name, MAX_RESOLVE_DEPTH)
        return _decode(raw, resolve(descriptor, registry), registry, form, loc, hops + 1)
    if isinstance(descriptor, Primitive):
        return _decode_primitive(raw, descriptor.kind, form, loc)
    if isinstance(descriptor, Literal):
        return _decode_literal(raw, descriptor.value, form, loc)
    if isinstance(descriptor, Struct):
        return _decode_struct(raw, descriptor, registry, form, loc)
    if isinstance(descriptor, ListOf):
        if not isinstance(raw, list):
            return None, [_mismatch(loc)]
        return _decode_items(raw, [descriptor.element] * len(raw), registry, form, loc)
    if isinstance(descriptor, TupleOf):
        if not isinstance(raw, (list, tuple)) or len(raw) != len(descriptor.elements):
            return None, [_mismatch(loc)]
        items, errors = _decode_items(list(raw), list(descriptor.elements), registry, form, loc)
        return (tuple(items) if not errors else None), errors
    if isinstance(descriptor, Union):
        return _decode_union(raw, descriptor, registry, form, loc, hops + 1)
    raise ContractViolation(f"not a type descriptor: {descriptor!r}")


def _mismatch(loc: Location) -> FieldError:
    return FieldError(ErrorKind.TYPE_MISMATCH, loc)


def _decode_primitive(raw: Any, kind: PrimitiveKind, form: WireForm, loc: Location) -> tuple[Any, list[FieldError]]:
    if kind is PrimitiveKind.ANY:
        return raw, []

    if kind is PrimitiveKind.BINARY:
        if isinstance(raw, bytes):
            return raw, []
        if isinstance(raw, str):
            try:
                return base64.b64decode(raw, validate=True), []
            except (binascii.Error, ValueError):
                return None, [_mismatch(loc)]
        return None, [_mismatch(loc)]

    if form is WireForm.STRING and isinstance(raw, str):
        return _coerce_text(raw, kind, loc)

    if kind is PrimitiveKind.STRING and isinstance(raw, str):
        return raw, []
    if kind is PrimitiveKind.BOOLEAN and isinstance(raw, bool):
        return raw, []
    if isinstance(raw, bool):
        return None, [_mismatch(loc)]
    if kind is PrimitiveKind.INTEGER and isinstance(raw, int):
        return raw, []
    if kind is PrimitiveKind.FLOAT and isinstance(raw, (int, float)):
        return float(raw), []
    return None, [_mismatch(loc)]


def _coerce_text(raw: str, kind: PrimitiveKind, loc: Location) -> tuple[Any, list[FieldError]]:
    if kind is PrimitiveKind.STRING:
        return raw, []
    if kind is PrimitiveKind.INTEGER:
        if _INT_TEXT.fullmatch(raw):
            return int(raw), []
        return None, [_mismatch(loc)]
    if kind is PrimitiveKind.FLOAT:
        if _FLOAT_TEXT.fullmatch(raw):
            value = float(raw)
            if math.isfinite(value):
                return value, []
        return None, [_mismatch(loc)]
    if kind is PrimitiveKind.BOOLEAN:
        if raw == "true":
            return True, []
        if raw == "false":
            return False, []
    return None, [_mismatch(loc)]


def _decode_literal(raw: Any, expected: Any, form: WireForm, loc: Location) -> tuple[Any, list[FieldError]]:
    if form is WireForm.STRING and isinstance(raw, str) and not isinstance(expected, str):
        if expected is None:
            return None, [_mismatch(loc)]
        if isinstance(expected, bool):
            kind = PrimitiveKind.BOOLEAN
        elif isinstance(expected, int):
            kind = PrimitiveKind.INTEGER
        else:
            kind = PrimitiveKind.FLOAT
        raw, errors = _coerce_text(raw, kind, loc)
        if errors:
            return None, errors

    # bool is an int subclass: True must not match Literal(1)
    if type(raw) is type(expected) and raw == expected:
        return expected, []
    return None, [_mismatch(loc)]


def _decode_struct(
    raw: Any,
    descriptor: Struct,
    registry: TypeRegistry,
    form: WireForm,
    loc: Location,
) -> tuple[Any, list[FieldError]]:
    if not isinstance(raw, Mapping):
        return None, [_mismatch(loc)]

    values: dict[str, Any] = {}
    errors: list[FieldError] = []

    for f in descriptor.fields:
        field_loc = loc + (f.name,)
        if f.wire_name not in raw:
            if not f.required:
                continue
            errors.append(FieldError(ErrorKind.MISSING_FIELD, field_loc))
            continue

        value, field_errors = _decode(raw[f.wire_name], f.type, registry, form, field_loc)
        if field_errors:
            errors.extend(field_errors)
        else:
            values[f.name] = value

    if errors:
        return None, errors
    if descriptor.constructor is None:
        return values, []
    return descriptor.constructor(**values), []


def _decode_items(
    raw_items: list[Any],
    descriptors: list[TypeDescriptor],
    registry: TypeRegistry,
    form: WireForm,
    loc: Location,
) -> tuple[Any, list[FieldError]]:
    out: list[Any] = []
    errors: list[FieldError] = []
    for index, (item, d) in enumerate(zip(raw_items, descriptors)):
        value, item_errors = _decode(item, d, registry, form, loc + (index,))
        errors.extend(item_errors)
        out.append(value)
    if errors:
        return None, errors
    return out, []


def _decode_union(
    raw: Any,
    descriptor: Union,
    registry: TypeRegistry,
    form: WireForm,
    loc: Location,
    hops: int,
) -> tuple[Any, list[FieldError]]:
    first_errors: list[FieldError] | None = None
    for variant in descriptor.variants:
        value, errors = _decode(raw, variant, registry, form, loc, hops)
        if not errors:
            return value, []
        if first_errors is None:
            first_errors = errors
    # no variant matched: only the first variant's errors are reported
    return None, first_errors or [_mismatch(loc)]
