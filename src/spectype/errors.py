from __future__ import annotations


class SpectypeError(Exception):
    """Base class for everything raised by spectype."""


class ContractViolation(SpectypeError):
    """
    A defect in handler code or in its declared types.

    Never caused by client input; callers should let it propagate.
    """


class UnresolvedReference(ContractViolation):
    def __init__(self, name: str, arity: int = 0):
        super().__init__(f"unknown type reference {name}/{arity}")
        self.name = name
        self.arity = arity


class CyclicReference(ContractViolation):
    def __init__(self, name: str, depth: int):
        super().__init__(f"type reference {name} did not resolve within {depth} steps")
        self.name = name
        self.depth = depth


class UnsupportedAnnotation(ContractViolation):
    pass


class MissingSignature(ContractViolation):
    pass


class InvalidHandlerResult(ContractViolation):
    pass


class UndeclaredStatus(ContractViolation):
    pass


class EncodeError(ContractViolation):
    def __init__(self, message: str, location: tuple = ()):
        where = "/".join(str(p) for p in location) or "<root>"
        super().__init__(f"{message} at {where}")
        self.location = tuple(location)


class DocumentGenerationError(ContractViolation):
    def __init__(self, errors: list):
        lines = "; ".join(str(e) for e in errors)
        super().__init__(f"OpenAPI generation failed: {lines}")
        self.errors = list(errors)
