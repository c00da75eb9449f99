from __future__ import annotations

from typing import Any

from spectype.errors import ContractViolation
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
from spectype.types.registry import TypeRegistry, resolve

COMPONENT_PREFIX = "#/components/schemas/"

_PRIMITIVE_SCHEMAS: dict[PrimitiveKind, dict[str, Any]] = {
    PrimitiveKind.INTEGER: {"type": "integer"},
    PrimitiveKind.FLOAT: {"type": "number"},
    PrimitiveKind.BOOLEAN: {"type": "boolean"},
    PrimitiveKind.STRING: {"type": "string"},
    PrimitiveKind.BINARY: {"type": "string", "format": "byte"},
    PrimitiveKind.ANY: {},
}


def _literal_type(value: Any) -> str | None:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    return None


class SchemaBuilder:
    """
    OpenAPI 3.0 schema objects for type descriptors.

    Every Reference reached is emitted once under components/schemas and
    pointed at with $ref, so recursive types stay finite.
    """

    def __init__(self, registry: TypeRegistry):
        self.registry = registry
        self.components: dict[str, dict[str, Any]] = {}
        self._pending: set[str] = set()

    def schema(self, descriptor: TypeDescriptor) -> dict[str, Any]:
        if isinstance(descriptor, Reference):
            return self._ref(descriptor)
        if isinstance(descriptor, Primitive):
            return dict(_PRIMITIVE_SCHEMAS[descriptor.kind])
        if isinstance(descriptor, Literal):
            if descriptor.value is None:
                return {"nullable": True, "enum": [None]}
            out: dict[str, Any] = {"enum": [descriptor.value]}
            lt = _literal_type(descriptor.value)
            if lt:
                out["type"] = lt
            return out
        if isinstance(descriptor, ListOf):
            return {"type": "array", "items": self.schema(descriptor.element)}
        if isinstance(descriptor, TupleOf):
            return self._tuple(descriptor)
        if isinstance(descriptor, Struct):
            return self._struct(descriptor)
        if isinstance(descriptor, Union):
            return self._union(descriptor)
        raise ContractViolation(f"not a type descriptor: {descriptor!r}")

    def _ref(self, ref: Reference) -> dict[str, Any]:
        name = ref.name if ref.arity == 0 else f"{ref.name}_{ref.arity}"
        if name not in self.components and name not in self._pending:
            self._pending.add(name)
            try:
                resolved = resolve(ref, self.registry)
                self.components[name] = self.schema(resolved)
            finally:
                self._pending.discard(name)
        return {"$ref": COMPONENT_PREFIX + name}

    def _struct(self, descriptor: Struct) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        required: list[str] = []
        for f in descriptor.fields:
            properties[f.wire_name] = self.schema(f.type)
            if f.required:
                required.append(f.wire_name)
        out: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            out["required"] = required
        if descriptor.name:
            out["title"] = descriptor.name
        if descriptor.description:
            out["description"] = descriptor.description
        return out

    def _tuple(self, descriptor: TupleOf) -> dict[str, Any]:
        n = len(descriptor.elements)
        element_schemas = _dedupe([self.schema(e) for e in descriptor.elements])
        items = element_schemas[0] if len(element_schemas) == 1 else {"oneOf": element_schemas}
        return {"type": "array", "items": items, "minItems": n, "maxItems": n}

    def _union(self, descriptor: Union) -> dict[str, Any]:
        variants = list(descriptor.variants)
        nullable = any(isinstance(v, Literal) and v.value is None for v in variants)
        rest = [v for v in variants if not (isinstance(v, Literal) and v.value is None)]

        if not rest:
            return {"nullable": True, "enum": [None]}

        if all(isinstance(v, Literal) for v in rest):
            values = [v.value for v in rest]  # type: ignore[union-attr]
            out: dict[str, Any] = {"enum": values}
            kinds = {_literal_type(v) for v in values}
            if len(kinds) == 1 and None not in kinds:
                out["type"] = kinds.pop()
        elif len(rest) == 1:
            out = self.schema(rest[0])
            if "$ref" in out and nullable:
                # siblings of $ref are ignored in 3.0
                out = {"allOf": [out]}
        else:
            out = {"oneOf": _dedupe([self.schema(v) for v in rest])}

        if nullable:
            out["nullable"] = True
            if "enum" in out:
                out["enum"] = out["enum"] + [None]
        return out


def _dedupe(schemas: list[dict[str, Any]]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for s in schemas:
        if s not in out:
            out.append(s)
    return out
