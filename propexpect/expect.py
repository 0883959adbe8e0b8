"""Failure expectation model for the propexpect matching engine.

An :class:`Expectation` describes the failure a piece of code is expected
to raise: an exception kind (or any), a message pattern with its
:class:`~propexpect.match.MatchMode`, and an ordered list of
:class:`Cause` expectations checked against the exception's cause chain.

Expectations are immutable.  Build them with :class:`ExpectationBuilder`
or declare them on a test function with the :func:`expect` decorator.
All types are JSON-serializable so expectations can live in static
metadata.
"""

from __future__ import annotations

import importlib
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Self, TypeVar

from propexpect.match import MESSAGE_NULL, MESSAGE_UNCHECKED, MatchMode

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., object])

# Attribute used by the :func:`expect` decorator.
EXPECTATION_ATTR = "__expectation__"

_KEEP = object()


def _normalize(
    message: str | None,
    mode: MatchMode | None,
) -> tuple[str | None, MatchMode]:
    """Map the null sentinel to ``None`` and force EQUALS for absent messages."""
    if message == MESSAGE_NULL:
        message = None
    if mode is None or message is None:
        mode = MatchMode.EQUALS
    return message, mode


def type_name(kind: type | None) -> str:
    """Dotted name of a type; builtins are rendered without module."""
    if kind is None:
        return "None"
    if kind.__module__ == "builtins":
        return kind.__qualname__
    return f"{kind.__module__}.{kind.__qualname__}"


def _kind_to_str(kind: type[BaseException] | None) -> str | None:
    if kind is None:
        return None
    return f"{kind.__module__}.{kind.__qualname__}"


def resolve_kind(path: str | None) -> type[BaseException] | None:
    """Resolve a dotted import path to an exception class.

    Raises:
        ValueError: If the path cannot be imported or is not an exception.
    """
    if path is None or path == "":
        return None
    parts = path.split(".")
    if len(parts) == 1:
        parts = ["builtins", *parts]

    obj: object = None
    # Longest importable module prefix wins; the rest is a qualname.
    for split in range(len(parts) - 1, 0, -1):
        try:
            obj = importlib.import_module(".".join(parts[:split]))
        except ImportError:
            continue
        try:
            for part in parts[split:]:
                obj = getattr(obj, part)
        except AttributeError as exc:
            raise ValueError(f"unknown failure kind: {path}") from exc
        break
    else:
        msg = f"unknown failure kind: {path}"
        raise ValueError(msg)

    if not (isinstance(obj, type) and issubclass(obj, BaseException)):
        msg = f"failure kind is not an exception type: {path}"
        raise ValueError(msg)
    return obj


# ---------------------------------------------------------------------------
# Cause
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Cause:
    """Expectation for one position of the cause chain.

    Attributes:
        kind: Expected exception class, ``None`` for any.
        message: Expected message pattern, ``None`` for "no message", or
            :data:`~propexpect.match.MESSAGE_UNCHECKED` to skip the check.
        mode: How ``message`` is compared with the actual message.
    """
    kind: type[BaseException] | None = None
    message: str | None = MESSAGE_UNCHECKED
    mode: MatchMode = MatchMode.EQUALS

    def __post_init__(self) -> None:
        message, mode = _normalize(self.message, self.mode)
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "mode", mode)

    @property
    def is_neutral(self) -> bool:
        """True if neither kind nor message is constrained."""
        return self.kind is None and self.message == MESSAGE_UNCHECKED

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {
            "kind": _kind_to_str(self.kind),
            "message": self.message,
            "mode": self.mode.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Self:
        """Deserialize from a plain dict."""
        raw_kind = data.get("kind")
        raw_message = data.get("message", MESSAGE_UNCHECKED)
        return cls(
            kind=resolve_kind(str(raw_kind) if raw_kind is not None else None),
            message=str(raw_message) if raw_message is not None else None,
            mode=MatchMode(str(data.get("mode", MatchMode.EQUALS.value))),
        )

    def __repr__(self) -> str:
        return f"Cause[kind={type_name(self.kind)}, message={self.message}, mode={self.mode.name}]"


# ---------------------------------------------------------------------------
# Expectation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Expectation:
    """Immutable description of an acceptable failure.

    The top-level ``kind``/``message``/``mode`` are checked against the
    raised exception itself; ``causes`` are checked positionally against
    its cause chain.
    """
    kind: type[BaseException] | None = None
    message: str | None = MESSAGE_UNCHECKED
    mode: MatchMode = MatchMode.EQUALS
    causes: tuple[Cause, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        message, mode = _normalize(self.message, self.mode)
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "mode", mode)
        object.__setattr__(self, "causes", tuple(self.causes))

    @property
    def is_neutral(self) -> bool:
        """True if this expectation constrains nothing at any position.

        A neutral expectation never arms an
        :class:`~propexpect.rule.ExpectationRule`.
        """
        if self.kind is not None or self.message != MESSAGE_UNCHECKED:
            return False
        return all(cause.is_neutral for cause in self.causes)

    def with_kind(self, kind: type[BaseException] | None) -> Expectation:
        """Return a copy expecting ``kind`` at the top level."""
        return replace(self, kind=kind)

    def describe(self) -> str:
        """Human-readable description, as used in assertion messages."""
        from propexpect.matcher import ExpectationMatcher

        return ExpectationMatcher(self).describe()

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {
            "kind": _kind_to_str(self.kind),
            "message": self.message,
            "mode": self.mode.value,
            "causes": [c.to_dict() for c in self.causes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Self:
        """Deserialize from a plain dict."""
        raw_kind = data.get("kind")
        raw_message = data.get("message", MESSAGE_UNCHECKED)

        raw_causes = data.get("causes", [])
        causes: list[Cause] = []
        if isinstance(raw_causes, list):
            causes = [Cause.from_dict(c) for c in raw_causes]  # type: ignore[arg-type]

        return cls(
            kind=resolve_kind(str(raw_kind) if raw_kind is not None else None),
            message=str(raw_message) if raw_message is not None else None,
            mode=MatchMode(str(data.get("mode", MatchMode.EQUALS.value))),
            causes=tuple(causes),
        )

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize from a JSON string."""
        data: dict[str, object] = json.loads(json_str)
        return cls.from_dict(data)

    def __repr__(self) -> str:
        return (
            f"Expectation[kind={type_name(self.kind)}, message={self.message}, "
            f"mode={self.mode.name}, causes={list(self.causes)}]"
        )


NEUTRAL = Expectation()


# ---------------------------------------------------------------------------
# ExpectationBuilder
# ---------------------------------------------------------------------------

class ExpectationBuilder:
    """Fluent constructor for :class:`Expectation` values.

    Usage::

        expectation = (
            ExpectationBuilder.create(RuntimeError, "runtime")
            .cause(ValueError, "argument")
            .cause(KeyError)
            .build()
        )
    """

    def __init__(self) -> None:
        self._expectation = NEUTRAL
        self._causes: list[Cause] = []

    @classmethod
    def create(
        cls,
        kind: type[BaseException] | None = None,
        message: str | None = MESSAGE_UNCHECKED,
        mode: MatchMode | None = None,
    ) -> ExpectationBuilder:
        """Start a builder with the given top-level expectation."""
        return cls().expect(kind, message, mode)

    def expect(
        self,
        kind: type[BaseException] | None | object = _KEEP,
        message: str | None | object = _KEEP,
        mode: MatchMode | None | object = _KEEP,
    ) -> Self:
        """Replace the given parts of the top-level expectation.

        Parts that are not passed keep their current value; passing
        ``None`` explicitly resets the kind to "any" or requires the
        message to be absent.
        """
        current = self._expectation
        self._expectation = Expectation(
            kind=current.kind if kind is _KEEP else kind,  # type: ignore[arg-type]
            message=current.message if message is _KEEP else message,  # type: ignore[arg-type]
            mode=current.mode if mode is _KEEP else mode,  # type: ignore[arg-type]
        )
        return self

    def cause(
        self,
        kind: type[BaseException] | None = None,
        message: str | None = MESSAGE_UNCHECKED,
        mode: MatchMode | None = MatchMode.EQUALS,
    ) -> Self:
        """Append an expectation for the next position of the cause chain."""
        self._causes.append(Cause(kind=kind, message=message, mode=mode))  # type: ignore[arg-type]
        return self

    def clear(self) -> Self:
        """Reset the builder to the neutral expectation."""
        self._expectation = NEUTRAL
        self._causes.clear()
        return self

    def build(self) -> Expectation:
        """Return the immutable expectation built so far."""
        return replace(self._expectation, causes=tuple(self._causes))

    def __repr__(self) -> str:
        return f"Builder[expect={self._expectation!r}, causes={self._causes!r}]"


# ---------------------------------------------------------------------------
# Declarative expectations
# ---------------------------------------------------------------------------

def expect(
    kind: type[BaseException] | None = None,
    message: str | None = MESSAGE_UNCHECKED,
    mode: MatchMode = MatchMode.EQUALS,
    causes: Iterable[Cause] = (),
) -> Callable[[F], F]:
    """Decorator attaching an :class:`Expectation` to a test function.

    The expectation is interpreted exactly like a programmatically built
    one once a rule reads it back with :func:`expectation_of`.
    """
    expectation = Expectation(kind=kind, message=message, mode=mode, causes=tuple(causes))

    def decorate(func: F) -> F:
        setattr(func, EXPECTATION_ATTR, expectation)
        return func

    return decorate


def expectation_of(func: object) -> Expectation | None:
    """Return the expectation declared on ``func`` with :func:`expect`."""
    value = getattr(func, EXPECTATION_ATTR, None)
    if value is None or isinstance(value, Expectation):
        return value
    msg = f"invalid expectation metadata on {func!r}: {value!r}"
    raise TypeError(msg)
