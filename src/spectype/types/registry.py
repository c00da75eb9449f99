from __future__ import annotations

from typing import Iterator, Optional

from spectype.errors import CyclicReference, UnresolvedReference
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

MAX_RESOLVE_DEPTH = 64


class TypeRegistry:
    """
    Named type definitions, keyed by (name, arity).

    Definitions are write-once: redefining a name with a different descriptor
    is refused so cached signatures never see a type change under them.
    """

    def __init__(self) -> None:
        self._types: dict[tuple[str, int], TypeDescriptor] = {}

    def define(self, name: str, descriptor: TypeDescriptor, arity: int = 0) -> Reference:
        key = (name, arity)
        existing = self._types.get(key)
        if existing is not None and existing != descriptor:
            raise ValueError(f"type {name}/{arity} is already defined differently")
        self._types[key] = descriptor
        return Reference(name, arity)

    def lookup(self, name: str, arity: int = 0) -> Optional[TypeDescriptor]:
        return self._types.get((name, arity))

    def __contains__(self, key: object) -> bool:
        if isinstance(key, Reference):
            key = (key.name, key.arity)
        return key in self._types

    def __iter__(self) -> Iterator[tuple[tuple[str, int], TypeDescriptor]]:
        # stable order = declaration order
        return iter(list(self._types.items()))

    def __len__(self) -> int:
        return len(self._types)

    def resolve(self, descriptor: TypeDescriptor) -> TypeDescriptor:
        return resolve(descriptor, self)

    def validate(self) -> list[str]:
        """
        Return a message for every reference reachable from a definition that
        does not resolve, and for every definition that loops back to itself
        through references and unions alone.
        """
        problems: list[str] = []
        for (name, arity), descriptor in self:
            found = len(problems)
            for ref in _references_in(descriptor):
                try:
                    resolve(ref, self)
                except (UnresolvedReference, CyclicReference) as exc:
                    problems.append(f"{name}/{arity}: {exc}")
            if len(problems) == found:
                looped = _unguarded_cycle(Reference(name, arity), self, ())
                if looped is not None:
                    problems.append(f"{name}/{arity}: {CyclicReference(looped.name, MAX_RESOLVE_DEPTH)}")
        return problems


def resolve(descriptor: TypeDescriptor, registry: TypeRegistry) -> TypeDescriptor:
    """
    Follow Reference nodes until a concrete descriptor is reached.

    Only the head of the descriptor is resolved; references nested inside it
    are resolved when a walker reaches them, which keeps recursive types finite.
    """
    current = descriptor
    depth = 0
    while isinstance(current, Reference):
        if depth >= MAX_RESOLVE_DEPTH:
            raise CyclicReference(descriptor.name, MAX_RESOLVE_DEPTH)  # type: ignore[union-attr]
        found = registry.lookup(current.name, current.arity)
        if found is None:
            raise UnresolvedReference(current.name, current.arity)
        current = found
        depth += 1
    return current


def admits_none(descriptor: TypeDescriptor, registry: TypeRegistry, _hops: int = 0) -> bool:
    if isinstance(descriptor, Reference) and _hops >= MAX_RESOLVE_DEPTH:
        raise CyclicReference(descriptor.name, MAX_RESOLVE_DEPTH)
    d = resolve(descriptor, registry)
    if isinstance(d, Literal):
        return d.value is None
    if isinstance(d, Primitive):
        return d.kind is PrimitiveKind.ANY
    if isinstance(d, Union):
        return any(admits_none(v, registry, _hops + 1) for v in d.variants)
    return False


def _unguarded_cycle(
    descriptor: TypeDescriptor, registry: TypeRegistry, trail: tuple[Reference, ...]
) -> Optional[Reference]:
    """
    A reference reached again through references and unions alone.

    Records, lists and tuples guard recursion; a loop without one of them
    can never be decoded or encoded.
    """
    if isinstance(descriptor, Reference):
        if descriptor in trail:
            return descriptor
        found = registry.lookup(descriptor.name, descriptor.arity)
        if found is None:
            return None
        return _unguarded_cycle(found, registry, trail + (descriptor,))
    if isinstance(descriptor, Union):
        for v in descriptor.variants:
            looped = _unguarded_cycle(v, registry, trail)
            if looped is not None:
                return looped
    return None


def _references_in(descriptor: TypeDescriptor) -> Iterator[Reference]:
    if isinstance(descriptor, Reference):
        yield descriptor
    elif isinstance(descriptor, ListOf):
        yield from _references_in(descriptor.element)
    elif isinstance(descriptor, Struct):
        for f in descriptor.fields:
            yield from _references_in(f.type)
    elif isinstance(descriptor, TupleOf):
        for e in descriptor.elements:
            yield from _references_in(e)
    elif isinstance(descriptor, Union):
        for v in descriptor.variants:
            yield from _references_in(v)
