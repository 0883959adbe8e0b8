"""Per-run accumulation of failure expectations.

An :class:`ExpectationRule` collects the expectations registered for one
execution and is notified exactly once when the execution finishes:
:meth:`~ExpectationRule.on_success` when it returned normally,
:meth:`~ExpectationRule.on_failure` when it raised.  Both hooks leave the
rule reset, so a rule never carries state from one run into the next.

:class:`ExpectRule` adds the harness side: it runs a callable (or a
``with`` block), feeds the outcome to the hooks, and optionally compares
an expected result value with the actual one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from types import TracebackType
from typing import Self

from propexpect.errors import MatchMismatch, UnexpectedSuccess
from propexpect.expect import Expectation, ExpectationBuilder, expectation_of
from propexpect.matcher import AllOfMatcher, ExpectationMatcher

logger = logging.getLogger(__name__)


class RuleState(Enum):
    """Lifecycle state of an :class:`ExpectationRule`."""
    IDLE = "idle"
    ARMED = "armed"


# ---------------------------------------------------------------------------
# ExpectationRule
# ---------------------------------------------------------------------------

class ExpectationRule:
    """Accumulator of failure expectations for a single run.

    With no expectations registered the run must succeed, and a failure
    propagates unchanged.  With one or more expectations the run must
    fail, and its single failure must satisfy every expectation.
    """

    def __init__(self, *expectations: Expectation | ExpectationBuilder | None) -> None:
        self._expectations: list[Expectation] = []
        self._matchers: list[ExpectationMatcher] = []
        for expectation in expectations:
            self.register(expectation)

    # -- Registration --------------------------------------------------------

    def register(self, expectation: Expectation | ExpectationBuilder | None) -> Self:
        """Register an expectation; neutral expectations are ignored."""
        if isinstance(expectation, ExpectationBuilder):
            expectation = expectation.build()
        if expectation is None or expectation.is_neutral:
            return self
        logger.debug("Registering expectation %r", expectation)
        self._expectations.append(expectation)
        self._matchers.append(ExpectationMatcher(expectation))
        return self

    def register_expected(
        self,
        expected_kind: type[BaseException] | None,
        expectation: Expectation | ExpectationBuilder | None = None,
    ) -> Self:
        """Register a harness-supplied failure kind joined with an expectation.

        A declared expectation without a kind inherits ``expected_kind``;
        a declared kind takes precedence over ``expected_kind``.
        """
        if isinstance(expectation, ExpectationBuilder):
            expectation = expectation.build()
        if expected_kind is not None:
            if expectation is None:
                return self.register(Expectation(kind=expected_kind))
            if expectation.kind is None:
                return self.register(expectation.with_kind(expected_kind))
        return self.register(expectation)

    # -- Inspection ----------------------------------------------------------

    @property
    def state(self) -> RuleState:
        return RuleState.ARMED if self._matchers else RuleState.IDLE

    @property
    def expectations(self) -> list[Expectation]:
        return list(self._expectations)

    @property
    def matchers(self) -> list[ExpectationMatcher]:
        return list(self._matchers)

    def matcher(self) -> ExpectationMatcher | AllOfMatcher:
        """The single registered matcher, or the conjunction of all."""
        if len(self._matchers) == 1:
            return self._matchers[0]
        return AllOfMatcher(self._matchers)

    def describe(self) -> str:
        if not self._matchers:
            return "()"
        return self.matcher().describe()

    # -- Lifecycle hooks -----------------------------------------------------

    def on_success(self) -> None:
        """Hook for a run that completed without raising.

        Raises:
            UnexpectedSuccess: If at least one expectation was registered.
        """
        try:
            if self._matchers:
                raise UnexpectedSuccess(self.describe())
        finally:
            self.reset()

    def on_failure(self, failure: BaseException) -> None:
        """Hook for a run that raised ``failure``.

        Re-raises ``failure`` unchanged when nothing was expected.

        Raises:
            MatchMismatch: If the failure does not satisfy every
                registered expectation.
        """
        try:
            if not self._matchers:
                raise failure
            result = self.matcher().match(failure)
            if not result.matched:
                raise MatchMismatch(result.message(), result) from failure
            logger.debug("Expected failure matched: %r", failure)
        finally:
            self.reset()

    def reset(self) -> None:
        """Drop all registered expectations (back to IDLE)."""
        self._expectations.clear()
        self._matchers.clear()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExpectationRule):
            return NotImplemented
        return self._expectations == other._expectations

    def __hash__(self) -> int:
        return hash(tuple(self._expectations))

    def __repr__(self) -> str:
        return f"ExpectationRule[message={self.describe()}]"


# ---------------------------------------------------------------------------
# ExpectRule
# ---------------------------------------------------------------------------

_UNSET = object()


def _check_result(expected: object, actual: object) -> None:
    """Compare a recorded result with the expected value or matcher."""
    if actual is _UNSET:
        return
    if expected is _UNSET:
        msg = "missing value [expect]"
        raise AssertionError(msg)
    if isinstance(expected, (Expectation, ExpectationBuilder)):
        return
    matches = getattr(expected, "matches", None)
    if callable(matches):
        if not matches(actual):
            describe = getattr(expected, "describe", None)
            label = describe() if callable(describe) else repr(expected)
            raise AssertionError(f"Expected: {label}\n     but: was {actual!r}")
    elif actual != expected:
        raise AssertionError(f"Expected: {expected!r}\n     but: was {actual!r}")


class ExpectRule(ExpectationRule):
    """Run-scoped rule that also checks an expected result value.

    Usage::

        rule = ExpectRule()
        rule.expect(ExpectationBuilder.create(ValueError, "bad"))
        rule.run(parse, "bad input")

        with ExpectRule() as rule:
            rule.expect(4)
            rule.actual(2 + 2)

    Functions decorated with :func:`~propexpect.expect.expect` have their
    declared expectation registered by :meth:`run`.
    """

    def __init__(self, *expectations: Expectation | ExpectationBuilder | None) -> None:
        super().__init__(*expectations)
        self._expect: object = _UNSET
        self._actual: object = _UNSET

    def expect(self, value: object) -> object:
        """Set what the run should produce.

        Expectations and builders register a failure expectation; any
        other value is the expected result.  Objects with a ``matches``
        method are applied as matchers, plain values compare by equality.
        """
        if isinstance(value, (Expectation, ExpectationBuilder)):
            self.register(value)
        self._expect = value
        return value

    def actual(self, value: object) -> object:
        """Record the value the run produced."""
        self._actual = value
        return value

    @property
    def expected_value(self) -> object:
        return None if self._expect is _UNSET else self._expect

    @property
    def actual_value(self) -> object:
        return None if self._actual is _UNSET else self._actual

    def on_success(self) -> None:
        expected, actual = self._expect, self._actual
        try:
            super().on_success()
            _check_result(expected, actual)
        finally:
            self.reset()

    def reset(self) -> None:
        super().reset()
        self._expect = _UNSET
        self._actual = _UNSET

    def run(self, func: Callable[..., object], *args: object, **kwargs: object) -> object:
        """Run ``func`` under this rule and return its result.

        The declared expectation of ``func`` (if any) is registered before
        the call.  The rule is reset afterwards on every path.
        """
        self.register(expectation_of(func))
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            self.on_failure(exc)
            return None
        except BaseException:
            self.reset()
            raise
        self.on_success()
        return result

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is None:
            self.on_success()
            return False
        if not isinstance(exc, Exception) or self.state is RuleState.IDLE:
            self.reset()
            return False
        self.on_failure(exc)
        return True

    def __repr__(self) -> str:
        expect = "UNSET" if self._expect is _UNSET else repr(self._expect)
        actual = "UNSET" if self._actual is _UNSET else repr(self._actual)
        return f"ExpectRule[expect={expect}, actual={actual}, message={self.describe()}]"
