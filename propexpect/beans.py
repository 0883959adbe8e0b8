"""Attribute descriptors and accessor resolution for property verification.

An :class:`AttributeDescriptor` names one attribute of a type together
with how it should be accessed.  :func:`resolve_accessor` binds it to a
concrete :class:`ResolvedAccessor` (a direct field, a ``property``, or a
``get_``/``set_`` method pair) and :func:`discover_attributes` enumerates
every checkable attribute of a class, walking its MRO from the most base
class to the most derived one.

Only attributes with a direct field binding, or with both a getter and a
setter, are actionable.  Anything else (a read-only ``property``, a
``get_`` method without ``set_``) is skipped silently.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import typing
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, ClassVar, Final

from propexpect.errors import AccessorResolutionFailure

logger = logging.getLogger(__name__)

# Accessor name resolved by naming convention.
AUTO = "*"

_GETTER_PREFIXES = ("get_", "is_")
_SETTER_PREFIX = "set_"


# ---------------------------------------------------------------------------
# Type introspection helpers
# ---------------------------------------------------------------------------

def _own_annotations(klass: type) -> dict[str, object]:
    try:
        return dict(inspect.get_annotations(klass))
    except (NameError, TypeError):
        return {}


def _type_hints(owner: object) -> dict[str, object]:
    """Resolved type hints, falling back to raw annotations."""
    try:
        return typing.get_type_hints(owner)
    except (NameError, TypeError, AttributeError):
        if isinstance(owner, type):
            merged: dict[str, object] = {}
            for klass in reversed(owner.__mro__):
                merged.update(_own_annotations(klass))
            return merged
        return dict(getattr(owner, "__annotations__", {}))


def _clean_hint(hint: object) -> object:
    """Map unresolvable (string) annotations to ``Any``."""
    if hint is None or isinstance(hint, (str, typing.ForwardRef)):
        return Any
    return hint


def _is_constant(name: str, hint: object) -> bool:
    if name.isupper():
        return True
    if isinstance(hint, str):
        return hint.startswith(("ClassVar", "Final", "typing.ClassVar", "typing.Final"))
    return hint in (ClassVar, Final) or typing.get_origin(hint) in (ClassVar, Final)


def _slots(klass: type) -> tuple[str, ...]:
    slots = klass.__dict__.get("__slots__", ())
    if isinstance(slots, str):
        return (slots,)
    return tuple(slots)


def _is_immutable(klass: type) -> bool:
    """Frozen dataclasses and tuples have no writable fields."""
    if issubclass(klass, tuple):
        return True
    params = getattr(klass, "__dataclass_params__", None)
    return dataclasses.is_dataclass(klass) and params is not None and params.frozen


def _static(owner: type, name: str) -> object:
    return inspect.getattr_static(owner, name, None)


def _function(owner: type, name: str) -> Callable[..., Any] | None:
    raw = _static(owner, name)
    if inspect.isfunction(raw):
        return raw
    return None


def _positional_count(func: Callable[..., Any]) -> int:
    try:
        params = inspect.signature(func).parameters.values()
    except (TypeError, ValueError):
        return -1
    return sum(
        1 for p in params
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD) and p.default is p.empty
    )


def _accessor_name(method_name: str) -> str | None:
    """Attribute name of a ``get_x``/``is_x``/``set_x`` method, else None."""
    for prefix in (*_GETTER_PREFIXES, _SETTER_PREFIX):
        if method_name.startswith(prefix) and len(method_name) > len(prefix):
            return method_name[len(prefix):]
    return None


# ---------------------------------------------------------------------------
# AttributeDescriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class AttributeDescriptor:
    """Identifies one inspectable, mutable attribute of a type.

    Attributes:
        declared_type: Declared type of the attribute (``Any`` if unknown).
        name: Attribute name; dotted names address nested attributes.
        field: Name of the directly accessed field, :data:`AUTO` for
            ``name``, or ``None`` to disable direct access.
        getter: Getter name (a ``property`` or method), :data:`AUTO` for
            convention lookup, or ``None``.
        setter: Setter name, :data:`AUTO` for convention lookup, or ``None``.
        owner: The class declaring the attribute.

    Descriptors are equal when they share ``owner`` and ``name``.
    """
    declared_type: object
    name: str
    field: str | None = AUTO
    getter: str | None = AUTO
    setter: str | None = AUTO
    owner: type | None = None

    def __post_init__(self) -> None:
        if not self.name:
            msg = f"name must not be null or empty [{self.name!r}]"
            raise ValueError(msg)
        if self.field is None and (not self.getter or not self.setter):
            msg = (
                f"incomplete property [field={self.field}, getter={self.getter}, "
                f"setter={self.setter}]"
            )
            raise ValueError(msg)

    @property
    def key(self) -> tuple[type | None, str]:
        return (self.owner, self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AttributeDescriptor):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        type_label = getattr(self.declared_type, "__qualname__", repr(self.declared_type))
        return (
            f"Property[type={type_label}, name={self.name}, field={self.field}, "
            f"getter={self.getter}, setter={self.setter}]"
        )


# ---------------------------------------------------------------------------
# ResolvedAccessor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolvedAccessor:
    """Bound get/set operations for one attribute on one concrete type.

    ``set`` always returns the value held immediately before the call.
    """
    descriptor: AttributeDescriptor
    field: str | None = None
    getter: Callable[[Any], Any] | None = None
    setter: Callable[[Any, Any], Any] | None = None
    parent: ResolvedAccessor | None = None

    @property
    def is_valid(self) -> bool:
        """Usable only with a field binding or a getter and setter pair."""
        return self.field is not None or (self.getter is not None and self.setter is not None)

    def _holder(self, target: object) -> object:
        return self.parent.get(target) if self.parent is not None else target

    def _read(self, holder: object) -> object:
        if self.getter is not None:
            return self.getter(holder)
        if self.field is not None:
            return getattr(holder, self.field)
        msg = f"access without getter [field={self.field}, getter={self.getter}]"
        raise AttributeError(msg)

    def get(self, target: object) -> object:
        return self._read(self._holder(target))

    def set(self, target: object, value: object) -> object:
        holder = self._holder(target)
        if self.setter is not None:
            before = self._read(holder)
            self.setter(holder, value)
            return before
        if self.field is not None:
            before = getattr(holder, self.field)
            setattr(holder, self.field, value)
            return before
        msg = f"access without setter [field={self.field}, setter={self.setter}]"
        raise AttributeError(msg)

    def __repr__(self) -> str:
        getter = getattr(self.getter, "__qualname__", None)
        setter = getattr(self.setter, "__qualname__", None)
        parent = self.parent.descriptor.name if self.parent is not None else None
        return (
            f"Accessor[property={self.descriptor.name}, parent={parent}, "
            f"field={self.field}, getter={getter}, setter={setter}]"
        )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def _has_field(owner: type, name: str, holder: object = None) -> bool:
    """True if ``name`` is a directly writable instance attribute."""
    if name.startswith("__") and name.endswith("__"):
        return False
    if _is_immutable(owner):
        return False
    raw = _static(owner, name)
    if isinstance(raw, (property, staticmethod, classmethod)) or inspect.isfunction(raw):
        return False
    if holder is not None and name in getattr(holder, "__dict__", {}):
        return True
    for klass in owner.__mro__:
        if name in _slots(klass):
            return True
        annotations = _own_annotations(klass)
        if name in annotations:
            return not _is_constant(name, annotations[name])
    return False


def _resolve_getter(owner: type, name: str, getter: str | None) -> Callable[[Any], Any] | None:
    if getter is None:
        return None
    if getter != AUTO:
        raw = _static(owner, getter)
        if isinstance(raw, property):
            return raw.fget
        if inspect.isfunction(raw) and _positional_count(raw) == 1:
            return raw
        return None
    raw = _static(owner, name)
    if isinstance(raw, property):
        return raw.fget
    for prefix in _GETTER_PREFIXES:
        func = _function(owner, prefix + name)
        if func is not None and _positional_count(func) == 1:
            return func
    return None


def _resolve_setter(owner: type, name: str, setter: str | None) -> Callable[[Any, Any], Any] | None:
    if setter is None:
        return None
    if setter != AUTO:
        raw = _static(owner, setter)
        if isinstance(raw, property):
            return raw.fset
        if inspect.isfunction(raw) and _positional_count(raw) == 2:
            return raw
        return None
    raw = _static(owner, name)
    if isinstance(raw, property):
        return raw.fset
    func = _function(owner, _SETTER_PREFIX + name)
    if func is not None and _positional_count(func) == 2:
        return func
    return None


def declared_type_of(owner: type, name: str) -> object:
    """Declared type of attribute ``name`` on ``owner`` (``Any`` if unknown)."""
    hints = _type_hints(owner)
    if name in hints:
        return _clean_hint(hints[name])
    raw = _static(owner, name)
    if isinstance(raw, property) and raw.fget is not None:
        return _clean_hint(_type_hints(raw.fget).get("return"))
    for prefix in _GETTER_PREFIXES:
        func = _function(owner, prefix + name)
        if func is not None:
            return _clean_hint(_type_hints(func).get("return"))
    func = _function(owner, _SETTER_PREFIX + name)
    if func is not None:
        params = [p for p in inspect.signature(func).parameters if p != "self"]
        if params:
            return _clean_hint(_type_hints(func).get(params[0]))
    return Any


def declaring_type(owner: type, name: str) -> type:
    """The most derived class of ``owner``'s MRO that declares ``name``."""
    head = name.split(".", 1)[0]
    candidates = (head, *(prefix + head for prefix in (*_GETTER_PREFIXES, _SETTER_PREFIX)))
    for klass in owner.__mro__:
        if klass is object:
            break
        if head in _own_annotations(klass) or head in _slots(klass):
            return klass
        if any(candidate in klass.__dict__ for candidate in candidates):
            return klass
    return owner


def _bind(
    owner: type,
    descriptor: AttributeDescriptor,
    name: str,
    field: str | None,
    getter: str | None,
    setter: str | None,
    parent: ResolvedAccessor | None,
    holder: object,
) -> ResolvedAccessor:
    field_name = name if field == AUTO else field
    bound_field = field_name if field_name is not None and _has_field(owner, field_name, holder) else None
    return ResolvedAccessor(
        descriptor=descriptor,
        field=bound_field,
        getter=_resolve_getter(owner, name, getter),
        setter=_resolve_setter(owner, name, setter),
        parent=parent,
    )


def resolve_accessor(
    owner: type,
    descriptor: AttributeDescriptor,
    *,
    target: object = None,
    strict: bool = False,
) -> ResolvedAccessor | None:
    """Bind ``descriptor`` to concrete operations on ``owner``.

    Dotted names are resolved segment by segment; intermediate segments
    only need to be readable.  When the declared type of an intermediate
    attribute is unknown, the runtime type read from ``target`` is used.

    Args:
        owner: The class the accessor is resolved against.
        descriptor: The attribute to bind.
        target: Optional instance, used for instance attributes without
            annotations and for nested runtime types.
        strict: Raise instead of returning ``None`` when unresolvable.

    Returns:
        The accessor, or ``None`` if no usable binding exists.

    Raises:
        AccessorResolutionFailure: If ``strict`` and nothing resolves.
    """
    segments = descriptor.name.split(".")
    parent: ResolvedAccessor | None = None
    current_type = owner
    holder = target

    for index, segment in enumerate(segments):
        if index == len(segments) - 1:
            accessor = _bind(
                current_type, descriptor, segment,
                descriptor.field, descriptor.getter, descriptor.setter,
                parent, holder,
            )
            if accessor.is_valid:
                return accessor
            break

        step = AttributeDescriptor(
            declared_type=declared_type_of(current_type, segment),
            name=segment,
            owner=current_type,
        )
        accessor = _bind(current_type, step, segment, AUTO, AUTO, AUTO, parent, holder)
        if accessor.field is None and accessor.getter is None:
            break
        parent = accessor

        next_type = step.declared_type
        if holder is not None:
            try:
                holder = accessor._read(holder)
            except AttributeError:
                holder = None
        if not isinstance(next_type, type) or next_type is object:
            if holder is None:
                break
            next_type = type(holder)
        current_type = next_type

    logger.debug("No usable accessor for %s on %s", descriptor.name, owner.__qualname__)
    if strict:
        raise AccessorResolutionFailure(owner, descriptor.name)
    return None


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def _candidate_names(klass: type) -> Iterator[tuple[str, object]]:
    """Attribute names declared directly on ``klass`` with their raw hints."""
    annotations = _own_annotations(klass)
    yield from annotations.items()
    for slot in _slots(klass):
        yield slot, annotations.get(slot)
    for attr, value in klass.__dict__.items():
        if isinstance(value, property):
            yield attr, None
        elif inspect.isfunction(value):
            name = _accessor_name(attr)
            if name is not None:
                yield name, None


def _skip_name(name: str, hint: object, include_private: bool) -> bool:
    if name.startswith("__"):
        return True
    if name.startswith("_") and not include_private:
        return True
    return _is_constant(name, hint)


def discover_attributes(
    owner: type,
    *,
    target: object = None,
    include_private: bool = False,
    exclude: frozenset[tuple[type | None, str]] = frozenset(),
) -> list[tuple[AttributeDescriptor, ResolvedAccessor]]:
    """Enumerate the checkable attributes of ``owner``.

    Classes are visited from the most base one to the most derived one;
    each attribute appears once, keyed by ``(declaring type, name)``.
    Instance attributes of ``target`` that no class declares are appended
    last.  Keys in ``exclude`` (already covered elsewhere) are skipped.

    Returns:
        ``(descriptor, accessor)`` pairs for every actionable attribute.
    """
    found: dict[tuple[type | None, str], tuple[AttributeDescriptor, ResolvedAccessor]] = {}
    skipped: set[tuple[type | None, str]] = set(exclude)

    def consider(name: str, hint: object) -> None:
        if _skip_name(name, hint, include_private):
            return
        declaring = declaring_type(owner, name)
        key = (declaring, name)
        if key in found or key in skipped:
            return
        descriptor = AttributeDescriptor(
            declared_type=declared_type_of(owner, name),
            name=name,
            owner=declaring,
        )
        accessor = resolve_accessor(owner, descriptor, target=target)
        if accessor is None:
            logger.debug("Skipping %s.%s: not accessible", owner.__qualname__, name)
            skipped.add(key)
            return
        found[key] = (descriptor, accessor)

    for klass in reversed(owner.__mro__):
        if klass is object:
            continue
        for name, hint in _candidate_names(klass):
            consider(name, hint)

    if target is not None:
        for name in list(getattr(target, "__dict__", {})):
            consider(name, None)

    return list(found.values())
