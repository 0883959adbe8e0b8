"""Tests for propexpect.beans -- attribute discovery and accessor resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Final, NamedTuple

import pytest

from propexpect.beans import (
    AttributeDescriptor,
    declared_type_of,
    declaring_type,
    discover_attributes,
    resolve_accessor,
)
from propexpect.errors import AccessorResolutionFailure


# ---------------------------------------------------------------------------
# Fixture types
# ---------------------------------------------------------------------------

@dataclass
class Point:
    x: int = 0
    y: int = 0
    LIMIT: ClassVar[int] = 10
    SCALE: Final = 2
    RATE: float = 1.5


class Account:
    MAX_BALANCE = 100
    owner: str

    def __init__(self, owner: str = "ann", balance: int = 0) -> None:
        self.owner = owner
        self._balance = balance
        self._id = 7
        self._label = "main"
        self._active = True

    @property
    def balance(self) -> int:
        return self._balance

    @balance.setter
    def balance(self, value: int) -> None:
        self._balance = value

    @property
    def id(self) -> int:
        return self._id

    def get_label(self) -> str:
        return self._label

    def set_label(self, value: str) -> None:
        self._label = value

    def is_active(self) -> bool:
        return self._active

    def set_active(self, value: bool) -> None:
        self._active = value

    def get_summary(self, verbose: bool) -> str:
        return f"{self.owner}: {self._balance}" if verbose else self.owner


class Base:
    name: str

    def __init__(self) -> None:
        self.name = "base"


class Derived(Base):
    size: int

    def __init__(self) -> None:
        super().__init__()
        self.size = 1


class Redeclared(Base):
    name: str


@dataclass(frozen=True)
class Frozen:
    value: int = 0


class Pair(NamedTuple):
    left: int
    right: int


class Slotted:
    __slots__ = ("width",)

    def __init__(self) -> None:
        self.width = 3


class Counter:
    def __init__(self) -> None:
        self._count = 0

    def read_count(self) -> int:
        return self._count

    def write_count(self, value: int) -> None:
        self._count = value


class Engine:
    power: int

    def __init__(self) -> None:
        self.power = 100


class Car:
    engine: Engine
    spare: Any

    def __init__(self) -> None:
        self.engine = Engine()
        self.spare = Engine()


def _names(owner: type, target: object = None, **kwargs: Any) -> list[str]:
    return [d.name for d, _ in discover_attributes(owner, target=target, **kwargs)]


# ---------------------------------------------------------------------------
# AttributeDescriptor
# ---------------------------------------------------------------------------

class TestAttributeDescriptor:
    """Identity and validation of descriptors."""

    def test_equality_by_owner_and_name(self) -> None:
        first = AttributeDescriptor(int, "x", owner=Point)
        second = AttributeDescriptor(str, "x", field=None, getter="get_x", setter="set_x", owner=Point)

        assert first == second
        assert hash(first) == hash(second)
        assert first != AttributeDescriptor(int, "x", owner=Account)

    def test_empty_name_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="name must not be null or empty"):
            AttributeDescriptor(int, "")

    def test_incomplete_accessors_are_rejected(self) -> None:
        with pytest.raises(ValueError, match="incomplete property"):
            AttributeDescriptor(int, "x", field=None, getter=None)

    def test_repr(self) -> None:
        descriptor = AttributeDescriptor(int, "x")

        assert repr(descriptor) == "Property[type=int, name=x, field=*, getter=*, setter=*]"


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

class TestResolveAccessor:
    """Binding descriptors to fields, properties and methods."""

    def test_field_binding(self) -> None:
        point = Point(1, 2)
        accessor = resolve_accessor(Point, AttributeDescriptor(int, "x"))

        assert accessor is not None
        assert accessor.field == "x"
        assert accessor.get(point) == 1
        assert accessor.set(point, 5) == 1
        assert point.x == 5

    def test_property_binding(self) -> None:
        account = Account(balance=10)
        accessor = resolve_accessor(Account, AttributeDescriptor(int, "balance"))

        assert accessor is not None
        assert accessor.field is None
        assert accessor.set(account, 20) == 10
        assert account.balance == 20

    def test_method_pair_binding(self) -> None:
        account = Account()
        accessor = resolve_accessor(Account, AttributeDescriptor(bool, "active"))

        assert accessor is not None
        assert accessor.set(account, False) is True
        assert account.is_active() is False

    def test_explicit_accessor_names(self) -> None:
        counter = Counter()
        descriptor = AttributeDescriptor(
            int, "count", field=None, getter="read_count", setter="write_count",
        )

        accessor = resolve_accessor(Counter, descriptor)

        assert accessor is not None
        assert accessor.set(counter, 3) == 0
        assert counter.read_count() == 3

    def test_explicit_field_needs_instance(self) -> None:
        descriptor = AttributeDescriptor(int, "count", field="_count", getter=None, setter=None)

        assert resolve_accessor(Counter, descriptor) is None
        accessor = resolve_accessor(Counter, descriptor, target=Counter())
        assert accessor is not None
        assert accessor.field == "_count"

    def test_read_only_property_is_not_resolved(self) -> None:
        assert resolve_accessor(Account, AttributeDescriptor(int, "id")) is None

    def test_strict_resolution_raises(self) -> None:
        with pytest.raises(AccessorResolutionFailure, match="owner=Account, property=id"):
            resolve_accessor(Account, AttributeDescriptor(int, "id"), strict=True)

    def test_getter_with_arguments_is_ignored(self) -> None:
        descriptor = AttributeDescriptor(str, "summary", field=None)

        assert resolve_accessor(Account, descriptor) is None

    def test_frozen_dataclass_has_no_field_binding(self) -> None:
        assert resolve_accessor(Frozen, AttributeDescriptor(int, "value")) is None

    def test_nested_attribute(self) -> None:
        car = Car()
        accessor = resolve_accessor(Car, AttributeDescriptor(int, "engine.power"))

        assert accessor is not None
        assert accessor.parent is not None
        assert accessor.get(car) == 100
        assert accessor.set(car, 150) == 100
        assert car.engine.power == 150

    def test_nested_attribute_uses_runtime_type(self) -> None:
        descriptor = AttributeDescriptor(int, "spare.power")

        assert resolve_accessor(Car, descriptor) is None
        accessor = resolve_accessor(Car, descriptor, target=Car())
        assert accessor is not None


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

class TestDiscoverAttributes:
    """Enumeration of checkable attributes."""

    def test_dataclass_fields_without_constants(self) -> None:
        assert _names(Point) == ["x", "y"]

    def test_properties_and_method_pairs(self) -> None:
        """Read-only ``id`` and argument-taking ``get_summary`` are skipped."""
        assert _names(Account, Account()) == ["owner", "balance", "label", "active"]

    def test_private_attributes_on_request(self) -> None:
        names = _names(Account, Account(), include_private=True)

        assert names[:4] == ["owner", "balance", "label", "active"]
        assert set(names[4:]) == {"_balance", "_id", "_label", "_active"}

    def test_base_attributes_come_first(self) -> None:
        discovered = discover_attributes(Derived, target=Derived())

        assert [(d.owner, d.name) for d, _ in discovered] == [(Base, "name"), (Derived, "size")]

    def test_redeclared_attribute_appears_once(self) -> None:
        discovered = discover_attributes(Redeclared)

        assert [(d.owner, d.name) for d, _ in discovered] == [(Redeclared, "name")]

    def test_immutable_types_have_no_attributes(self) -> None:
        assert _names(Frozen) == []
        assert _names(Pair) == []

    def test_slots(self) -> None:
        assert _names(Slotted) == ["width"]

    def test_unannotated_instance_attributes(self) -> None:
        class Plain:
            def __init__(self) -> None:
                self.colour = "red"

        assert _names(Plain) == []
        assert _names(Plain, Plain()) == ["colour"]

    def test_exclude(self) -> None:
        names = _names(Point, exclude=frozenset({(Point, "x")}))

        assert names == ["y"]

    def test_declared_types(self) -> None:
        types = {d.name: d.declared_type for d, _ in discover_attributes(Account, target=Account())}

        assert types == {"owner": str, "balance": int, "label": str, "active": bool}

    def test_declared_type_helpers(self) -> None:
        assert declared_type_of(Car, "engine") is Engine
        assert declared_type_of(Car, "missing") is Any
        assert declaring_type(Derived, "name") is Base
        assert declaring_type(Derived, "unknown") is Derived
