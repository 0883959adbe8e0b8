"""Mutation value synthesis for property round-trip checks.

:func:`next_value` produces, for a declared type and the value an
attribute currently holds, a candidate that differs from the current value
whenever the type admits more than one value.  Dispatch happens over a
closed :class:`TypeCategory`; the open-ended fallback is a zero-argument
constructor call.

Usage::

    next_value(int, 5)            # 6
    next_value(bool, True)        # False
    next_value(list[str], None)   # ["test"]
"""

from __future__ import annotations

import inspect
import logging
import types
import typing
from collections.abc import Callable, Mapping, MutableMapping, MutableSequence, MutableSet, Sequence, Set
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum, Flag, IntEnum, IntFlag, StrEnum
from typing import Annotated, Any, Literal, NewType, Self, TypeVar, Union
from unittest import mock

from propexpect.errors import SynthesisFailure

logger = logging.getLogger(__name__)

Char = NewType("Char", str)
"""Single-character text; toggles between two fixed letters."""

_OPEN_ENUMS = (Enum, Flag, IntEnum, IntFlag, StrEnum)

# Concrete containers used for abstract collection types.
_CONCRETE: dict[type, type] = {
    Sequence: list,
    MutableSequence: list,
    Set: set,
    MutableSet: set,
    Mapping: dict,
    MutableMapping: dict,
}


class AnyEnum(Enum):
    """Placeholder members for attributes declared as an open enum type."""
    VALUE = "value"
    OTHER = "other"


class TypeCategory(Enum):
    """Closed set of type categories the synthesizer dispatches on."""
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    INTERFACE = "interface"
    ENUM = "enum"
    OPEN_ENUM = "open_enum"
    LITERAL = "literal"
    TEXT = "text"
    BYTES = "bytes"
    INTEGRAL = "integral"
    FLOATING = "floating"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    CHARACTER = "character"
    TYPE_REFERENCE = "type_reference"
    TIMESTAMP = "timestamp"
    DATE = "date"
    OBJECT = "object"


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------

def _is_union(tp: object) -> bool:
    return typing.get_origin(tp) in (Union, types.UnionType)


def _strip(tp: object) -> object:
    """Remove ``Annotated``, ``Optional`` and ``NewType`` wrappers."""
    while True:
        if tp is Char:
            return tp
        origin = typing.get_origin(tp)
        if origin is Annotated:
            tp = typing.get_args(tp)[0]
        elif _is_union(tp):
            members = [arg for arg in typing.get_args(tp) if arg is not type(None)]
            if len(members) != 1:
                return typing.Union[tuple(members)] if members else Any
            tp = members[0]
        elif hasattr(tp, "__supertype__"):
            tp = tp.__supertype__
        else:
            return tp


def _is_unresolved(tp: object) -> bool:
    return (
        tp is Any
        or tp is object
        or tp is None
        or tp is type(None)
        or isinstance(tp, (str, TypeVar, typing.ForwardRef))
    )


def _is_interface(base: type) -> bool:
    return bool(getattr(base, "_is_protocol", False)) or inspect.isabstract(base)


def categorize(declared_type: object) -> TypeCategory:
    """Return the category :func:`next_value` dispatches ``declared_type`` to."""
    tp = _strip(declared_type)
    if tp is Char:
        return TypeCategory.CHARACTER
    origin = typing.get_origin(tp)
    if origin is Literal:
        return TypeCategory.LITERAL
    if tp is type or origin is type:
        return TypeCategory.TYPE_REFERENCE

    base = origin or tp
    if not isinstance(base, type):
        return TypeCategory.OBJECT
    if issubclass(base, Enum):
        if base in _OPEN_ENUMS:
            return TypeCategory.OPEN_ENUM
        return TypeCategory.ENUM
    if base is bool:
        return TypeCategory.BOOLEAN
    if issubclass(base, str):
        return TypeCategory.TEXT
    if issubclass(base, (bytes, bytearray)):
        return TypeCategory.BYTES
    if issubclass(base, int):
        return TypeCategory.INTEGRAL
    if issubclass(base, float):
        return TypeCategory.FLOATING
    if issubclass(base, Decimal):
        return TypeCategory.DECIMAL
    if issubclass(base, datetime):
        return TypeCategory.TIMESTAMP
    if issubclass(base, date):
        return TypeCategory.DATE
    if issubclass(base, Mapping):
        return TypeCategory.MAPPING
    if issubclass(base, (Sequence, Set)):
        return TypeCategory.SEQUENCE
    if _is_interface(base):
        return TypeCategory.INTERFACE
    return TypeCategory.OBJECT


# ---------------------------------------------------------------------------
# MutationValueSynthesizer
# ---------------------------------------------------------------------------

class MutationValueSynthesizer:
    """Produces guaranteed-different values per declared type.

    Factories registered with :meth:`register` take precedence over the
    built-in categories; they receive the current value and return the
    candidate.
    """

    def __init__(self) -> None:
        self._factories: dict[object, Callable[[object], object]] = {}
        self._handlers: dict[TypeCategory, Callable[[object, object, object], object]] = {
            TypeCategory.SEQUENCE: self._sequence,
            TypeCategory.MAPPING: self._mapping,
            TypeCategory.INTERFACE: self._interface,
            TypeCategory.ENUM: self._enum,
            TypeCategory.OPEN_ENUM: self._open_enum,
            TypeCategory.LITERAL: self._literal,
            TypeCategory.TEXT: self._text,
            TypeCategory.BYTES: self._bytes,
            TypeCategory.INTEGRAL: self._integral,
            TypeCategory.FLOATING: self._floating,
            TypeCategory.DECIMAL: self._decimal,
            TypeCategory.BOOLEAN: self._boolean,
            TypeCategory.CHARACTER: self._character,
            TypeCategory.TYPE_REFERENCE: self._type_reference,
            TypeCategory.TIMESTAMP: self._timestamp,
            TypeCategory.DATE: self._date,
            TypeCategory.OBJECT: self._object,
        }

    def register(self, declared_type: object, factory: Callable[[object], object]) -> Self:
        """Use ``factory(current)`` for ``declared_type`` and its subclasses."""
        self._factories[declared_type] = factory
        return self

    def _factory(self, tp: object) -> Callable[[object], object] | None:
        if tp in self._factories:
            return self._factories[tp]
        base = typing.get_origin(tp) or tp
        for klass in getattr(base, "__mro__", (base,)):
            if klass in self._factories:
                return self._factories[klass]
        return None

    def next_value(self, declared_type: object, current: object, *, attribute: object = None) -> object:
        """Return a value of ``declared_type`` different from ``current``.

        Args:
            declared_type: Declared type of the attribute.  Unresolved types
                (``Any``, ``object``, forward references, type variables)
                fall back to the runtime type of ``current``.
            current: The value the attribute holds now, ``None`` if absent.
            attribute: Attribute name, used in error reports only.

        Raises:
            SynthesisFailure: If no category applies and the type has no
                zero-argument constructor, or if a factory or category
                handler fails on ``current``.
        """
        tp = _strip(declared_type)
        if _is_union(tp):
            tp = type(current) if current is not None else _strip(typing.get_args(tp)[0])
        if _is_unresolved(tp):
            if current is None:
                return object()
            tp = type(current)

        factory = self._factory(tp)
        try:
            if factory is not None:
                return factory(current)
            category = categorize(tp)
            logger.debug("Synthesizing %s value for %s (current=%r)", category.value, attribute, current)
            return self._handlers[category](tp, current, attribute)
        except SynthesisFailure:
            raise
        except Exception as exc:
            raise SynthesisFailure(tp, attribute, str(exc)) from exc

    # -- Category handlers ---------------------------------------------------

    def _sequence(self, tp: object, current: object, attribute: object) -> object:
        base = typing.get_origin(tp) or tp
        container = _CONCRETE.get(base, base)
        args = typing.get_args(tp)
        if container is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
            if isinstance(current, tuple) and len(current) == len(args):
                previous = current
            else:
                previous = (None,) * len(args)
            return tuple(
                self.next_value(arg, old, attribute=attribute) for arg, old in zip(args, previous)
            )
        element = self.next_value(args[0], None, attribute=attribute) if args else None
        candidate = container([element])
        if candidate == current:
            return container()
        return candidate

    def _mapping(self, tp: object, current: object, attribute: object) -> object:
        base = typing.get_origin(tp) or tp
        container = _CONCRETE.get(base, base)
        args = typing.get_args(tp)
        key = self.next_value(args[0], None, attribute=attribute) if args else "test"
        candidate = container({key: None})
        if candidate == current:
            return container()
        return candidate

    def _interface(self, tp: object, current: object, attribute: object) -> object:
        base = typing.get_origin(tp) or tp
        return mock.create_autospec(base, instance=True)

    def _enum(self, tp: object, current: object, attribute: object) -> object:
        for member in tp:  # type: ignore[attr-defined]
            if member is not current:
                return member
        return _placeholder(tp, current)  # type: ignore[arg-type]

    def _open_enum(self, tp: object, current: object, attribute: object) -> object:
        return AnyEnum.OTHER if current is AnyEnum.VALUE else AnyEnum.VALUE

    def _literal(self, tp: object, current: object, attribute: object) -> object:
        values = typing.get_args(tp)
        for value in values:
            if value != current:
                return value
        if values:
            return values[0]
        raise SynthesisFailure(tp, attribute, "empty literal")

    def _text(self, tp: object, current: object, attribute: object) -> object:
        return f"{current}-test" if current else "test"

    def _bytes(self, tp: object, current: object, attribute: object) -> object:
        base = typing.get_origin(tp) or tp
        return base(current + b"-test") if current else base(b"test")  # type: ignore[operator]

    def _integral(self, tp: object, current: object, attribute: object) -> object:
        return current + 1 if current is not None else 1  # type: ignore[operator]

    def _floating(self, tp: object, current: object, attribute: object) -> object:
        if current is None:
            return 1.0
        value = current + 1.0  # type: ignore[operator]
        return value if value != current else 0.0

    def _decimal(self, tp: object, current: object, attribute: object) -> object:
        return current + 1 if current is not None else Decimal(1)  # type: ignore[operator]

    def _boolean(self, tp: object, current: object, attribute: object) -> object:
        return not current if current is not None else True

    def _character(self, tp: object, current: object, attribute: object) -> object:
        return Char("y") if current is None or current == "Y" else Char("Y")

    def _type_reference(self, tp: object, current: object, attribute: object) -> object:
        return str if current is object else object

    def _timestamp(self, tp: object, current: object, attribute: object) -> object:
        tz = current.tzinfo if isinstance(current, datetime) else None
        return tp.now(tz)  # type: ignore[attr-defined]

    def _date(self, tp: object, current: object, attribute: object) -> object:
        today = tp.today()  # type: ignore[attr-defined]
        return today + timedelta(days=1) if today == current else today

    def _object(self, tp: object, current: object, attribute: object) -> object:
        base = typing.get_origin(tp) or tp
        if not callable(base):
            raise SynthesisFailure(tp, attribute, "not constructible")
        try:
            return base()
        except Exception as exc:
            raise SynthesisFailure(tp, attribute, str(exc)) from exc


def _placeholder(enum_type: type[Enum], current: Enum | None) -> Enum:
    """Create an out-of-band member for enums without an alternative."""
    name = f"{current.name}*" if current is not None else "*"
    member_type = getattr(enum_type, "_member_type_", object)
    if member_type is object:
        member = object.__new__(enum_type)
    else:
        member = member_type.__new__(enum_type)
    member._name_ = name
    member._value_ = name
    return member


_DEFAULT = MutationValueSynthesizer()


def next_value(declared_type: object, current: object, *, attribute: object = None) -> object:
    """Return a candidate of ``declared_type`` distinct from ``current``."""
    return _DEFAULT.next_value(declared_type, current, attribute=attribute)
