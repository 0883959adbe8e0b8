"""Error types raised by the propexpect engines.

Assertion-like outcomes (a failure that does not match, a run that
should have failed, a broken property round trip) subclass
:class:`AssertionError` so test runners report them as test failures.
Problems with the verification setup itself subclass
:class:`PropExpectError`.

An unexpected failure of a run without registered expectations is not
wrapped: the original exception propagates unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from propexpect.matcher import MatchResult
    from propexpect.verify import PropertyResult


class PropExpectError(Exception):
    """Base class for non-assertion errors of the engines."""


class AccessorResolutionFailure(PropExpectError):
    """An attribute could not be bound to a usable accessor."""

    def __init__(self, owner: type, name: str) -> None:
        self.owner = owner
        self.name = name
        super().__init__(f"no usable accessor [owner={owner.__qualname__}, property={name}]")


class SynthesisFailure(PropExpectError):
    """No mutation value could be produced for a declared type."""

    def __init__(self, declared_type: object, attribute: object = None, reason: str = "") -> None:
        self.declared_type = declared_type
        self.attribute = attribute
        type_label = getattr(declared_type, "__qualname__", repr(declared_type))
        message = f"unable to create value [type={type_label}, property={attribute}]"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MatchMismatch(AssertionError):
    """The actual failure does not satisfy the registered expectations."""

    def __init__(self, message: str, result: MatchResult | None = None) -> None:
        self.result = result
        super().__init__(message)


class UnexpectedSuccess(AssertionError):
    """A run completed although a failure was expected."""

    def __init__(self, description: str) -> None:
        self.description = description
        super().__init__(f"expected a failure matching: {description}")


class RoundTripViolation(AssertionError):
    """A get/set/restore invariant of a property does not hold.

    Attributes:
        step: Which invariant failed: ``"returns original value"``,
            ``"value is changed"`` or ``"value changed back"``.
        attribute: Name of the property.
        target: The object under verification.
        expected: Value the invariant required.
        actual: Value that was observed.
    """

    def __init__(
        self,
        step: str,
        attribute: str,
        target: object,
        value: object,
        expected: object,
        actual: object,
    ) -> None:
        self.step = step
        self.attribute = attribute
        self.target = target
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{step} [property={attribute}, target={target!r}, value={value!r}]: "
            f"expected {expected!r} but was {actual!r}"
        )


class PropertyVerificationError(AssertionError):
    """Combined error of a property verification run."""

    def __init__(self, target_type: str, failures: list[PropertyResult]) -> None:
        self.target_type = target_type
        self.failures = failures
        lines = [f"{len(failures)} property check(s) failed for {target_type}:"]
        for result in failures:
            lines.append(f"  - {result.name}: {result.failure_reason}")
        super().__init__("\n".join(lines))
