import pytest

from spectype.errors import CyclicReference, UnresolvedReference
from spectype.types.model import (
    NONE,
    ListOf,
    Primitive,
    PrimitiveKind,
    Reference,
    Union,
    optional,
    primitive,
    required,
    struct,
)
from spectype.types.registry import TypeRegistry, admits_none, resolve


def test_resolve_follows_reference_chain():
    reg = TypeRegistry()
    reg.define("UserId", Reference("Id"))
    reg.define("Id", primitive("integer"))

    assert resolve(Reference("UserId"), reg) == Primitive(PrimitiveKind.INTEGER)
    assert reg.resolve(primitive("string")) == Primitive(PrimitiveKind.STRING)


def test_arity_is_part_of_the_key():
    reg = TypeRegistry()
    reg.define("Page", ListOf(primitive("any")), arity=1)

    assert Reference("Page", 1) in reg
    assert ("Page", 1) in reg
    assert Reference("Page") not in reg
    with pytest.raises(UnresolvedReference) as exc:
        resolve(Reference("Page"), reg)
    assert exc.value.name == "Page"
    assert exc.value.arity == 0


def test_unknown_reference_fails():
    with pytest.raises(UnresolvedReference):
        resolve(Reference("Missing"), TypeRegistry())


def test_reference_cycle_fails_fast():
    reg = TypeRegistry()
    reg.define("A", Reference("B"))
    reg.define("B", Reference("A"))

    with pytest.raises(CyclicReference):
        resolve(Reference("A"), reg)


def test_recursive_struct_resolves_head_only():
    reg = TypeRegistry()
    node = struct(
        required("label", primitive("string")),
        optional("children", ListOf(Reference("Node"))),
        name="Node",
    )
    reg.define("Node", node)

    assert resolve(Reference("Node"), reg) is node
    assert reg.validate() == []


def test_validate_reports_dangling_references():
    reg = TypeRegistry()
    reg.define("Order", struct(required("customer", Reference("Customer"))))
    reg.define("Loop", Reference("Loop"))

    problems = reg.validate()
    assert len(problems) == 2
    assert any("Order/0" in p and "Customer" in p for p in problems)
    assert any(p.startswith("Loop/0") for p in problems)


def test_define_is_write_once():
    reg = TypeRegistry()
    ref = reg.define("Id", primitive("integer"))
    assert ref == Reference("Id")

    # identical redefinition is a no-op
    reg.define("Id", primitive("integer"))
    assert len(reg) == 1

    with pytest.raises(ValueError):
        reg.define("Id", primitive("string"))


def test_registry_iterates_in_declaration_order():
    reg = TypeRegistry()
    reg.define("B", primitive("string"))
    reg.define("A", primitive("integer"))

    assert [key for key, _ in reg] == [("B", 0), ("A", 0)]


def test_admits_none():
    reg = TypeRegistry()
    reg.define("MaybeInt", Union((primitive("integer"), NONE)))

    assert admits_none(NONE, reg)
    assert admits_none(primitive("any"), reg)
    assert admits_none(Reference("MaybeInt"), reg)
    assert not admits_none(primitive("integer"), reg)
    assert not admits_none(struct(), reg)


def test_validate_reports_loops_through_unions():
    reg = TypeRegistry()
    reg.define("A", Union((Reference("A"), primitive("integer"))))
    reg.define("Tree", Union((primitive("integer"), ListOf(Reference("Tree")))))

    problems = reg.validate()
    assert len(problems) == 1
    assert problems[0].startswith("A/0")


def test_admits_none_fails_fast_on_union_loop():
    reg = TypeRegistry()
    reg.define("A", Union((Reference("A"), primitive("integer"))))

    with pytest.raises(CyclicReference):
        admits_none(Reference("A"), reg)
