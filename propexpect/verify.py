"""Round-trip verification of mutable object properties.

The :class:`PropertyVerifier` discovers the attributes of a target object,
builds one :class:`VerificationAtom` per attribute and runs the
get/set/restore protocol on each of them:

1. read the current value,
2. write a synthesized (or explicitly configured) candidate and require
   the write to report the previous value,
3. require the candidate to be visible afterwards,
4. write the original value back and require the write to report the
   candidate.

Attributes may carry a failure :class:`~propexpect.expect.Expectation`
(a setter that is supposed to reject the candidate).  Every atom is
attempted and the outcome is collected in a :class:`PropertyReport`.

Usage::

    verifier = PropertyVerifier()
    report = verifier.verify(Account(owner="ann", balance=10))
    print(report.summary())
    report.raise_for_failures()
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from propexpect.beans import (
    AUTO,
    AttributeDescriptor,
    ResolvedAccessor,
    declared_type_of,
    declaring_type,
    discover_attributes,
    resolve_accessor,
)
from propexpect.config import DEFAULT_CONFIG, VerifierConfig
from propexpect.errors import (
    AccessorResolutionFailure,
    PropertyVerificationError,
    RoundTripViolation,
    SynthesisFailure,
)
from propexpect.expect import Expectation, ExpectationBuilder, type_name
from propexpect.rule import ExpectationRule
from propexpect.synth import MutationValueSynthesizer

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks an override without an explicit mutation value.
UNSET: Any = _Unset()


def _same(left: object, right: object) -> bool:
    return left is right or left == right


# ---------------------------------------------------------------------------
# PropertyOverride
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PropertyOverride:
    """Explicit configuration for one attribute.

    Attributes:
        name: Attribute name (dotted for nested attributes).  Left as
            :data:`~propexpect.beans.AUTO` when declared as a class
            attribute; :func:`overrides_of` names it after the attribute.
        value: Mutation candidate to use instead of a synthesized one.
        expect: Failure the setter is expected to raise for ``value``.
        declared_type: Declared type used for synthesis, if not inferable.
        field: Field name for direct access (``None`` disables it).
        getter: Getter name, or ``None`` to disable.
        setter: Setter name, or ``None`` to disable.
    """
    name: str = AUTO
    value: object = UNSET
    expect: Expectation | ExpectationBuilder | None = None
    declared_type: object = None
    field: str | None = AUTO
    getter: str | None = AUTO
    setter: str | None = AUTO

    def __post_init__(self) -> None:
        if isinstance(self.expect, ExpectationBuilder):
            object.__setattr__(self, "expect", self.expect.build())

    @property
    def has_value(self) -> bool:
        return self.value is not UNSET

    def named(self, name: str) -> PropertyOverride:
        """Return this override named ``name`` unless it already has a name."""
        if self.name != AUTO:
            return self
        return replace(self, name=name)


def overrides_of(config: object) -> list[PropertyOverride]:
    """Collect the :class:`PropertyOverride` attributes of ``config``.

    Class attributes are collected from the most base class to the most
    derived one, then instance attributes; later definitions of the same
    attribute replace earlier ones.
    """
    owner = config if isinstance(config, type) else type(config)
    found: dict[str, PropertyOverride] = {}
    for klass in reversed(owner.__mro__):
        for attr, value in vars(klass).items():
            if isinstance(value, PropertyOverride):
                found[attr] = value.named(attr)
    if not isinstance(config, type):
        for attr, value in getattr(config, "__dict__", {}).items():
            if isinstance(value, PropertyOverride):
                found[attr] = value.named(attr)
    return list(found.values())


def _as_overrides(
    overrides: Iterable[PropertyOverride] | Mapping[str, object] | None,
) -> list[PropertyOverride]:
    if overrides is None:
        return []
    if isinstance(overrides, Mapping):
        result: list[PropertyOverride] = []
        for name, value in overrides.items():
            if isinstance(value, PropertyOverride):
                result.append(value.named(name))
            else:
                result.append(PropertyOverride(name=name, value=value))
        return result
    result = list(overrides)
    for override in result:
        if not isinstance(override, PropertyOverride):
            msg = f"expected PropertyOverride, got {type(override).__name__}: {override!r}"
            raise TypeError(msg)
        if override.name == AUTO:
            msg = f"override without attribute name: {override!r}"
            raise ValueError(msg)
    return result


# ---------------------------------------------------------------------------
# VerificationAtom
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VerificationAtom:
    """One attribute, its accessor, its expectation rule and its candidate."""
    descriptor: AttributeDescriptor
    accessor: ResolvedAccessor
    rule: ExpectationRule
    value: object

    @property
    def name(self) -> str:
        return self.descriptor.name

    def check(self, target: object) -> None:
        """Run the get/set/restore protocol on ``target``.

        A failure raised by the first write is handed to the rule, which
        accepts it only if it was expected; the remaining steps are then
        skipped and the target stays mutated.

        Raises:
            RoundTripViolation: If a write does not report the previous
                value or the candidate is not visible after the write.
            MatchMismatch: If the write failed differently than expected.
            UnexpectedSuccess: If the write succeeded although a failure
                was expected.
        """
        logger.info(
            "Checking property %s of %s with value %r",
            self.name,
            type(target).__qualname__,
            self.value,
        )
        try:
            before = self.accessor.get(target)
            try:
                previous = self.accessor.set(target, self.value)
            except Exception as exc:
                self.rule.on_failure(exc)
                return

            if not _same(previous, before):
                raise RoundTripViolation(
                    "returns original value", self.name, target, self.value, before, previous,
                )
            self.rule.on_success()

            actual = self.accessor.get(target)
            if not _same(actual, self.value):
                raise RoundTripViolation(
                    "value is changed", self.name, target, self.value, self.value, actual,
                )

            restored = self.accessor.set(target, before)
            if not _same(restored, self.value):
                raise RoundTripViolation(
                    "value changed back", self.name, target, self.value, self.value, restored,
                )
        finally:
            self.rule.reset()

    def __repr__(self) -> str:
        return (
            f"Atom[property={self.name}, value={self.value!r}, "
            f"rule={self.rule.describe()}]"
        )


# ---------------------------------------------------------------------------
# PropertyResult
# ---------------------------------------------------------------------------

@dataclass
class PropertyResult:
    """The verification result for a single attribute.

    Attributes:
        name: Attribute name.
        passed: Whether the round trip (or the expected failure) held.
        failure_reason: Human-readable explanation when ``passed`` is False.
        value: The mutation candidate, if one was produced.
        error: The exception that failed the attribute.
    """
    name: str
    passed: bool
    failure_reason: str = ""
    value: object = None
    error: BaseException | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {
            "name": self.name,
            "passed": self.passed,
            "failure_reason": self.failure_reason,
            "value": repr(self.value),
            "error": type_name(type(self.error)) if self.error is not None else None,
        }


# ---------------------------------------------------------------------------
# PropertyReport
# ---------------------------------------------------------------------------

@dataclass
class PropertyReport:
    """Aggregate result of verifying every attribute of one target.

    Attributes:
        target_type: Dotted name of the verified object's type.
        results: Per-attribute results, in verification order.
        skipped: Attribute names excluded by configuration.
        wall_time_ms: Wall-clock time spent on verification in milliseconds.
    """
    target_type: str
    results: list[PropertyResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    wall_time_ms: float = 0.0

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed(self) -> int:
        return len(self.results) - self.passed

    @property
    def all_passed(self) -> bool:
        """True if every checked attribute passed."""
        return self.failed == 0

    def failures(self) -> list[PropertyResult]:
        """Return only the failed attribute results."""
        return [r for r in self.results if not r.passed]

    def summary(self) -> str:
        """Generate a human-readable summary of the report."""
        lines: list[str] = []
        lines.append(f"Property Report: {self.target_type}")
        lines.append(f"  Total: {len(self.results)}  Passed: {self.passed}  Failed: {self.failed}")
        if self.skipped:
            lines.append(f"  Skipped: {', '.join(self.skipped)}")
        lines.append("")

        for r in self.results:
            status = "PASS" if r.passed else "FAIL"
            lines.append(f"  [{status}] {r.name}")
            if not r.passed:
                lines.append(f"         Reason: {r.failure_reason}")

        status_line = "ALL PASSED" if self.all_passed else f"{self.failed} FAILED"
        lines.append("")
        lines.append(f"  Result: {status_line}")
        return "\n".join(lines)

    def raise_for_failures(self) -> None:
        """Raise the combined error if any attribute failed.

        Raises:
            PropertyVerificationError: Listing every failed attribute.
        """
        failures = self.failures()
        if failures:
            raise PropertyVerificationError(self.target_type, failures) from failures[0].error

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {
            "target_type": self.target_type,
            "passed": self.passed,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
            "skipped": list(self.skipped),
            "wall_time_ms": self.wall_time_ms,
            "all_passed": self.all_passed,
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# ---------------------------------------------------------------------------
# PropertyVerifier
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Planned:
    name: str
    descriptor: AttributeDescriptor | None
    accessor: ResolvedAccessor | None
    override: PropertyOverride | None = None
    error: Exception | None = None


class PropertyVerifier:
    """Verifies get/set/restore round trips of a target's attributes.

    Usage::

        verifier = PropertyVerifier(VerifierConfig(skip=("id",)))
        report = verifier.verify(order, [
            PropertyOverride("quantity", value=-1,
                             expect=ExpectationBuilder.create(ValueError)),
        ])
        report.raise_for_failures()
    """

    def __init__(
        self,
        config: VerifierConfig | None = None,
        synthesizer: MutationValueSynthesizer | None = None,
    ) -> None:
        self.config = config if config is not None else DEFAULT_CONFIG
        self.synthesizer = synthesizer if synthesizer is not None else MutationValueSynthesizer()

    # -- Planning ------------------------------------------------------------

    def _plan(
        self,
        target: object,
        overrides: Iterable[PropertyOverride] | Mapping[str, object] | None,
    ) -> tuple[list[_Planned], list[str]]:
        owner = type(target)
        skip = set(self.config.skip)
        planned: list[_Planned] = []
        skipped: list[str] = []
        covered: set[tuple[type | None, str]] = set()

        for override in _as_overrides(overrides):
            if override.name in skip:
                skipped.append(override.name)
                continue
            declared = override.declared_type
            if declared is None:
                declared = Any if "." in override.name else declared_type_of(owner, override.name)
            descriptor = AttributeDescriptor(
                declared_type=declared,
                name=override.name,
                field=override.field,
                getter=override.getter,
                setter=override.setter,
                owner=declaring_type(owner, override.name),
            )
            covered.add(descriptor.key)
            try:
                accessor = resolve_accessor(owner, descriptor, target=target, strict=True)
            except AccessorResolutionFailure as exc:
                planned.append(_Planned(override.name, descriptor, None, override, exc))
                continue
            planned.append(_Planned(override.name, descriptor, accessor, override))

        discovered = discover_attributes(
            owner,
            target=target,
            include_private=self.config.include_private,
            exclude=frozenset(covered),
        )
        for descriptor, accessor in discovered:
            if descriptor.name in skip:
                skipped.append(descriptor.name)
                continue
            planned.append(_Planned(descriptor.name, descriptor, accessor))

        return planned, skipped

    def _atom(self, target: object, step: _Planned) -> VerificationAtom:
        descriptor, accessor, override = step.descriptor, step.accessor, step.override
        if descriptor is None or accessor is None:
            msg = f"attribute {step.name} has no accessor"
            raise ValueError(msg)
        if override is not None and override.has_value:
            value = override.value
        else:
            current = accessor.get(target)
            value = self.synthesizer.next_value(
                descriptor.declared_type, current, attribute=step.name,
            )
        rule = ExpectationRule(override.expect if override is not None else None)
        atom = VerificationAtom(descriptor, accessor, rule, value)
        logger.debug("Created %r", atom)
        return atom

    def atoms(
        self,
        target: object,
        overrides: Iterable[PropertyOverride] | Mapping[str, object] | None = None,
    ) -> list[VerificationAtom]:
        """Build the verification atoms for ``target`` without running them.

        Overridden attributes come first, followed by discovered ones.

        Raises:
            AccessorResolutionFailure: If an override names an attribute
                without a usable accessor.
            SynthesisFailure: If no candidate value can be produced.
        """
        planned, _ = self._plan(target, overrides)
        atoms: list[VerificationAtom] = []
        for step in planned:
            if step.error is not None:
                raise step.error
            atoms.append(self._atom(target, step))
        return atoms

    # -- Verification --------------------------------------------------------

    def verify(
        self,
        target: object,
        overrides: Iterable[PropertyOverride] | Mapping[str, object] | None = None,
    ) -> PropertyReport:
        """Verify every attribute of ``target``.

        Args:
            target: The object whose attributes are checked in place.
            overrides: Explicit per-attribute configuration, either as
                :class:`PropertyOverride` objects or as a mapping of
                attribute name to override or candidate value.

        Returns:
            A :class:`PropertyReport` with one result per attribute.
        """
        if target is None:
            msg = "target must not be None"
            raise ValueError(msg)

        start_time = time.monotonic()
        planned, skipped = self._plan(target, overrides)
        results: list[PropertyResult] = []
        for step in planned:
            result = self._run(target, step)
            results.append(result)
            if self.config.fail_fast and not result.passed:
                break

        elapsed_ms = (time.monotonic() - start_time) * 1000.0
        report = PropertyReport(
            target_type=type_name(type(target)),
            results=results,
            skipped=skipped,
            wall_time_ms=elapsed_ms,
        )
        logger.info(
            "Property verification complete: %s -- %d/%d passed in %.1fms",
            report.target_type,
            report.passed,
            len(results),
            elapsed_ms,
        )
        return report

    def check(
        self,
        target: object,
        overrides: Iterable[PropertyOverride] | Mapping[str, object] | None = None,
    ) -> PropertyReport:
        """Verify ``target`` and raise if any attribute failed.

        Raises:
            PropertyVerificationError: Listing every failed attribute.
        """
        report = self.verify(target, overrides)
        report.raise_for_failures()
        return report

    def _run(self, target: object, step: _Planned) -> PropertyResult:
        if step.error is not None:
            return PropertyResult(step.name, False, str(step.error), error=step.error)
        try:
            atom = self._atom(target, step)
        except SynthesisFailure as exc:
            logger.warning("Cannot verify %s: %s", step.name, exc)
            return PropertyResult(step.name, False, str(exc), error=exc)
        except Exception as exc:
            logger.warning("Cannot read %s: %s", step.name, exc)
            return PropertyResult(step.name, False, _reason(exc), error=exc)

        try:
            atom.check(target)
        except Exception as exc:
            return PropertyResult(step.name, False, _reason(exc), value=atom.value, error=exc)
        return PropertyResult(step.name, True, value=atom.value)


def _reason(exc: Exception) -> str:
    if isinstance(exc, AssertionError):
        return str(exc)
    return f"unexpected {type_name(type(exc))}: {exc}"
