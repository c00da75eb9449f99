from __future__ import annotations

import dataclasses
import inspect
import logging
import types
import typing
from collections.abc import Sequence
from typing import Any, Callable, Optional, Protocol, TypedDict, get_args, get_origin

from pydantic import BaseModel

from spectype.errors import UnsupportedAnnotation
from spectype.types import model as t
from spectype.types.registry import TypeRegistry

logger = logging.getLogger(__name__)

ACTION_ARITY = 3

# Empty path args / headers.
NoFields = TypedDict("NoFields", {})

_PRIMITIVES: dict[Any, t.PrimitiveKind] = {
    bool: t.PrimitiveKind.BOOLEAN,
    int: t.PrimitiveKind.INTEGER,
    float: t.PrimitiveKind.FLOAT,
    str: t.PrimitiveKind.STRING,
    bytes: t.PrimitiveKind.BINARY,
    Any: t.PrimitiveKind.ANY,
    object: t.PrimitiveKind.ANY,
    dict: t.PrimitiveKind.ANY,
}


class TypedController:
    """
    Base class for controllers whose actions are validated and documented.

    An action is a method taking `(path_args, headers, body)` and returning
    `(status, headers, body)`; its annotations are the contract.
    """


class SignatureSource(Protocol):
    registry: TypeRegistry

    def lookup_signature(self, handler: Any, action: str, arity: int = ACTION_ARITY) -> Optional[t.Signature]:
        ...


class StaticSignatureSource:
    """Signatures registered by hand, for handlers that are not annotated controllers."""

    def __init__(self, registry: TypeRegistry | None = None):
        self.registry = registry if registry is not None else TypeRegistry()
        self._signatures: dict[tuple[Any, str, int], t.Signature] = {}

    def register(self, handler: Any, action: str, signature: t.Signature, arity: int = ACTION_ARITY) -> None:
        self._signatures[(handler, action, arity)] = signature

    def lookup_signature(self, handler: Any, action: str, arity: int = ACTION_ARITY) -> Optional[t.Signature]:
        return self._signatures.get((handler, action, arity))


class AnnotationSignatureSource:
    """
    Derives signatures from the annotations on TypedController actions.

    Named classes (dataclasses, TypedDicts, pydantic models) become Reference
    nodes whose Struct definitions live in `registry`. Results are cached per
    (controller class, action, arity) for the life of the source.
    """

    def __init__(self, registry: TypeRegistry | None = None):
        self.registry = registry if registry is not None else TypeRegistry()
        self._signatures: dict[tuple[type, str, int], Optional[t.Signature]] = {}
        self._names: dict[type, str] = {}

    def lookup_signature(self, handler: Any, action: str, arity: int = ACTION_ARITY) -> Optional[t.Signature]:
        cls = handler if isinstance(handler, type) else type(handler)
        if not issubclass(cls, TypedController):
            return None

        key = (cls, action, arity)
        if key in self._signatures:
            return self._signatures[key]

        sig = self._build_signature(cls, action, arity)
        self._signatures[key] = sig
        return sig

    def describe(self, tp: Any) -> t.TypeDescriptor:
        """Translate one Python annotation into a type descriptor."""
        if tp is None or tp is type(None):
            return t.NONE
        if tp in _PRIMITIVES:
            return t.Primitive(_PRIMITIVES[tp])
        if tp is list:
            return t.ListOf(t.Primitive(t.PrimitiveKind.ANY))

        origin = get_origin(tp)
        args = get_args(tp)

        if origin is typing.Literal:
            literals = tuple(t.Literal(a) for a in args)
            return literals[0] if len(literals) == 1 else t.Union(literals)
        if origin is typing.Union or origin is types.UnionType:
            return t.Union(tuple(self.describe(a) for a in args))
        if origin is typing.Annotated:
            return self.describe(args[0])
        if origin is list or origin is Sequence:
            return t.ListOf(self.describe(args[0]) if args else t.Primitive(t.PrimitiveKind.ANY))
        if origin is tuple:
            if len(args) == 2 and args[1] is Ellipsis:
                return t.ListOf(self.describe(args[0]))
            return t.TupleOf(tuple(self.describe(a) for a in args))
        if origin is dict:
            return t.Primitive(t.PrimitiveKind.ANY)

        if isinstance(tp, type) and (
            typing.is_typeddict(tp) or dataclasses.is_dataclass(tp) or issubclass(tp, BaseModel)
        ):
            return self._named(tp)

        raise UnsupportedAnnotation(f"cannot describe annotation {tp!r}")

    # ----------------------------
    # signatures
    # ----------------------------

    def _build_signature(self, cls: type, action: str, arity: int) -> Optional[t.Signature]:
        if arity != ACTION_ARITY or action.startswith("_"):
            return None
        fn, skip = _unwrap_action(cls, action)
        if fn is None:
            return None

        params = list(inspect.signature(fn).parameters.values())[skip:]
        if len(params) != arity:
            return None

        try:
            hints = typing.get_type_hints(fn)
        except NameError as exc:
            raise UnsupportedAnnotation(f"{cls.__name__}.{action}: {exc}") from exc

        missing = [p.name for p in params if p.name not in hints]
        if "return" not in hints:
            missing.append("return")
        if missing:
            raise UnsupportedAnnotation(
                f"{cls.__name__}.{action} is missing annotations for: {', '.join(missing)}"
            )

        arg_types = tuple(self.describe(hints[p.name]) for p in params)
        return_type = self.describe(hints["return"])

        sig = t.Signature(argument_types=arg_types, return_type=return_type)  # type: ignore[arg-type]
        logger.debug("derived signature for %s.%s", cls.__name__, action)
        return sig

    # ----------------------------
    # named types
    # ----------------------------

    def _named(self, cls: type) -> t.Reference:
        name = self._names.get(cls)
        if name is not None:
            return t.Reference(name)

        name = self._unique_name(cls)
        # claimed before the fields are walked so self-referencing classes terminate
        self._names[cls] = name
        try:
            descriptor = self._struct_for(cls, name)
        except NameError as exc:
            del self._names[cls]
            raise UnsupportedAnnotation(f"{cls.__name__}: {exc}") from exc
        except Exception:
            del self._names[cls]
            raise
        return self.registry.define(name, descriptor)

    def _unique_name(self, cls: type) -> str:
        name = cls.__name__
        taken = name in self._names.values() or (name, 0) in self.registry
        if taken:
            name = f"{cls.__module__}.{cls.__qualname__}"
        return name

    def _struct_for(self, cls: type, name: str) -> t.Struct:
        description = _class_doc(cls)

        if typing.is_typeddict(cls):
            hints = typing.get_type_hints(cls)
            required_keys = getattr(cls, "__required_keys__", frozenset(hints))
            fields = tuple(
                t.Field(
                    name=key,
                    wire_name=key,
                    requirement=t.Requirement.REQUIRED if key in required_keys else t.Requirement.OPTIONAL,
                    type=self.describe(tp),
                )
                for key, tp in hints.items()
            )
            return t.Struct(fields=fields, name=name, description=description)

        if dataclasses.is_dataclass(cls):
            hints = typing.get_type_hints(cls)
            fields = []
            for f in dataclasses.fields(cls):
                if not f.init:
                    continue
                has_default = f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
                fields.append(
                    t.Field(
                        name=f.name,
                        wire_name=f.metadata.get("wire_name", f.name),
                        requirement=t.Requirement.OPTIONAL if has_default else t.Requirement.REQUIRED,
                        type=self.describe(hints[f.name]),
                    )
                )
            return t.Struct(fields=tuple(fields), name=name, description=description, constructor=cls)

        # pydantic model
        fields = []
        aliases: dict[str, str] = {}
        for field_name, info in cls.model_fields.items():  # type: ignore[attr-defined]
            wire = info.alias or field_name
            aliases[field_name] = wire
            fields.append(
                t.Field(
                    name=field_name,
                    wire_name=wire,
                    requirement=t.Requirement.REQUIRED if info.is_required() else t.Requirement.OPTIONAL,
                    type=self.describe(info.annotation),
                )
            )
        return t.Struct(
            fields=tuple(fields),
            name=name,
            description=description,
            constructor=_model_constructor(cls, aliases),
        )


def _unwrap_action(cls: type, action: str) -> tuple[Optional[Callable[..., Any]], int]:
    """Return (function, number of leading bound parameters) for an action attribute."""
    try:
        raw = inspect.getattr_static(cls, action)
    except AttributeError:
        return None, 0
    if isinstance(raw, staticmethod):
        return raw.__func__, 0
    if isinstance(raw, classmethod):
        return raw.__func__, 1
    if inspect.isfunction(raw):
        return raw, 1
    return None, 0


def _model_constructor(cls: type[BaseModel], aliases: dict[str, str]) -> Callable[..., BaseModel]:
    # values are already validated; model_construct looks fields up by alias
    def construct(**values: Any) -> BaseModel:
        return cls.model_construct(**{aliases.get(k, k): v for k, v in values.items()})

    return construct


def _class_doc(cls: type) -> Optional[str]:
    doc = cls.__dict__.get("__doc__")
    if not doc:
        return None
    # dataclasses synthesize "Name(field: type, ...)" when no docstring is written
    if dataclasses.is_dataclass(cls) and doc.startswith(f"{cls.__name__}("):
        return None
    return inspect.cleandoc(doc)
