from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from spectype.errors import ContractViolation


class PrimitiveKind(str, Enum):
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    STRING = "string"
    BINARY = "binary"
    ANY = "any"


class Requirement(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass(frozen=True)
class Primitive:
    kind: PrimitiveKind


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class ListOf:
    element: "TypeDescriptor"


@dataclass(frozen=True)
class Field:
    name: str
    wire_name: str
    requirement: Requirement
    type: "TypeDescriptor"

    @property
    def required(self) -> bool:
        return self.requirement is Requirement.REQUIRED


@dataclass(frozen=True)
class Struct:
    """
    A record with a fixed, ordered set of fields.

    `constructor` builds the typed value from a mapping keyed by field name;
    None means a plain dict. It takes no part in equality.
    """

    fields: tuple[Field, ...]
    name: Optional[str] = None
    description: Optional[str] = None
    constructor: Optional[Callable[..., Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class TupleOf:
    elements: tuple["TypeDescriptor", ...]


@dataclass(frozen=True)
class Union:
    variants: tuple["TypeDescriptor", ...]


@dataclass(frozen=True)
class Reference:
    name: str
    arity: int = 0


TypeDescriptor = Primitive | Literal | ListOf | Struct | TupleOf | Union | Reference

DESCRIPTOR_TYPES = (Primitive, Literal, ListOf, Struct, TupleOf, Union, Reference)

NONE = Literal(None)


def primitive(kind: PrimitiveKind | str) -> Primitive:
    return Primitive(PrimitiveKind(kind))


def required(name: str, type_: TypeDescriptor, wire_name: str | None = None) -> Field:
    return Field(name=name, wire_name=wire_name or name, requirement=Requirement.REQUIRED, type=type_)


def optional(name: str, type_: TypeDescriptor, wire_name: str | None = None) -> Field:
    return Field(name=name, wire_name=wire_name or name, requirement=Requirement.OPTIONAL, type=type_)


def struct(*fields: Field, name: str | None = None, description: str | None = None) -> Struct:
    return Struct(fields=tuple(fields), name=name, description=description)


@dataclass(frozen=True)
class Signature:
    """Declared types of one handler action: (path_args, headers, body) -> return."""

    argument_types: tuple[TypeDescriptor, TypeDescriptor, TypeDescriptor]
    return_type: TypeDescriptor

    def __post_init__(self) -> None:
        if len(self.argument_types) != 3:
            raise ContractViolation(
                f"signature needs (path_args, headers, body) argument types, got {len(self.argument_types)}"
            )
        seen: set[int] = set()
        for v in self.response_variants():
            status = status_of(v)
            if status is None:
                raise ContractViolation(
                    f"return variant must be (Literal[status], headers, body), got {v!r}"
                )
            if status in seen:
                raise ContractViolation(f"status {status} declared more than once")
            seen.add(status)

    @property
    def path_args_type(self) -> TypeDescriptor:
        return self.argument_types[0]

    @property
    def headers_type(self) -> TypeDescriptor:
        return self.argument_types[1]

    @property
    def body_type(self) -> TypeDescriptor:
        return self.argument_types[2]

    def response_variants(self) -> tuple[TupleOf, ...]:
        rt = self.return_type
        if isinstance(rt, Union):
            return tuple(rt.variants)  # type: ignore[arg-type]
        return (rt,)  # type: ignore[return-value]

    def variant_for_status(self, status: int) -> Optional[TupleOf]:
        for v in self.response_variants():
            if status_of(v) == status:
                return v
        return None


def status_of(variant: TypeDescriptor) -> Optional[int]:
    """Discriminant status code of a `(Literal(status), headers, body)` tuple, if well-formed."""
    if not isinstance(variant, TupleOf) or len(variant.elements) != 3:
        return None
    head = variant.elements[0]
    if not isinstance(head, Literal):
        return None
    if isinstance(head.value, bool) or not isinstance(head.value, int):
        return None
    return head.value
