"""Matching of raised exceptions against :class:`~propexpect.expect.Expectation`.

The :class:`ExpectationMatcher` walks an exception's cause chain
positionally against the expected causes and produces a
:class:`MatchResult` carrying a human-readable description of what was
expected and what actually happened.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from propexpect.expect import Expectation, type_name
from propexpect.match import MESSAGE_UNCHECKED, MatchMode, describe_pattern, describe_value

logger = logging.getLogger(__name__)


def failure_message(failure: BaseException) -> str | None:
    """Return the message of an exception, ``None`` if raised without one."""
    if not failure.args:
        return None
    if len(failure.args) == 1 and isinstance(failure.args[0], str):
        return failure.args[0]
    return str(failure)


def failure_cause(failure: BaseException) -> BaseException | None:
    """Return the next link of the cause chain, as tracebacks display it."""
    if failure.__cause__ is not None:
        return failure.__cause__
    if failure.__suppress_context__:
        return None
    return failure.__context__


def assertion_message(expected: str, actual: str) -> str:
    """Format an expected-vs-actual assertion message."""
    return f"Expected: {expected}\n     but: {actual}"


def _matches(
    failure: BaseException | None,
    kind: type[BaseException] | None,
    message: str | None,
    mode: MatchMode,
) -> bool:
    if failure is None:
        return False
    if kind is not None and not isinstance(failure, kind):
        return False
    if message != MESSAGE_UNCHECKED and not mode.match(message, failure_message(failure)):
        return False
    return True


def _describe_message(message: str | None, mode: MatchMode) -> str:
    if message == MESSAGE_UNCHECKED:
        return ""
    return f" with message {describe_pattern(message, mode)}"


# ---------------------------------------------------------------------------
# MatchResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one item against an expectation.

    Attributes:
        matched: Whether the item satisfied the expectation.
        expected: Description of the expectation.
        actual: Description of the item (mismatch description).
        position: ``0`` for the top-level failure, ``n`` for the n-th
            cause, ``None`` when the item matched.
        mismatch: The exception at the failing position, ``None`` if the
            chain ended before it (or the item matched).
    """
    matched: bool
    expected: str
    actual: str
    position: int | None = None
    mismatch: BaseException | None = None

    def message(self) -> str:
        """The assertion message reported for a failed match."""
        return assertion_message(self.expected, self.actual)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {
            "matched": self.matched,
            "expected": self.expected,
            "actual": self.actual,
            "position": self.position,
            "mismatch": repr(self.mismatch) if self.mismatch is not None else None,
        }


# ---------------------------------------------------------------------------
# ExpectationMatcher
# ---------------------------------------------------------------------------

class ExpectationMatcher:
    """Matcher checking an exception and its cause chain.

    Usage::

        matcher = ExpectationMatcher(expectation)
        result = matcher.match(exc)
        if not result.matched:
            raise AssertionError(result.message())
    """

    def __init__(self, expectation: Expectation) -> None:
        self.expectation = expectation

    def matches(self, item: object) -> bool:
        return self.match(item).matched

    def match(self, item: object) -> MatchResult:
        """Match ``item`` and describe the first failing position."""
        if not isinstance(item, BaseException):
            return MatchResult(False, self.describe(), self.describe_mismatch(item), 0, None)

        expectation = self.expectation
        if not _matches(item, expectation.kind, expectation.message, expectation.mode):
            return self._failed(item, 0, item)

        current: BaseException | None = item
        for position, cause in enumerate(expectation.causes, start=1):
            current = failure_cause(current) if current is not None else None
            if not _matches(current, cause.kind, cause.message, cause.mode):
                return self._failed(item, position, current)

        return MatchResult(True, self.describe(), self.describe_mismatch(item))

    def _failed(
        self,
        item: BaseException,
        position: int,
        mismatch: BaseException | None,
    ) -> MatchResult:
        logger.debug("Expectation mismatch at position %d: %r", position, mismatch)
        partial = MatchResult(False, "", "", position, mismatch)
        return MatchResult(
            matched=False,
            expected=self.describe(partial),
            actual=self.describe_mismatch(item),
            position=position,
            mismatch=mismatch,
        )

    def describe(self, result: MatchResult | None = None) -> str:
        """Describe the expectation, plus the failing position of ``result``."""
        expectation = self.expectation
        if expectation.kind is not None:
            parts = [f"exception <{type_name(expectation.kind)}>"]
        else:
            parts = ["any exception"]
        parts.append(_describe_message(expectation.message, expectation.mode))

        for cause in expectation.causes:
            if cause.kind is not None:
                parts.append(f"\n    caused by <{type_name(cause.kind)}>")
            else:
                parts.append("\n    caused by any exception")
            parts.append(_describe_message(cause.message, cause.mode))

        if result is not None and not result.matched:
            parts.append(f"\n    mismatch in ({describe_value(result.mismatch)})")
        return "".join(parts)

    def describe_mismatch(self, item: object) -> str:
        """Describe what was actually raised, including every real cause."""
        if item is None:
            return "was null"
        if not isinstance(item, BaseException):
            return f"was instance-of <{type_name(type(item))}> {describe_value(item)}"

        parts = [
            f"was exception <{type_name(type(item))}> with message "
            f"{describe_value(failure_message(item))}"
        ]
        seen = {id(item)}
        cause = failure_cause(item)
        while cause is not None and id(cause) not in seen:
            seen.add(id(cause))
            parts.append(
                f"\n    caused by <{type_name(type(cause))}> with message "
                f"{describe_value(failure_message(cause))}"
            )
            cause = failure_cause(cause)
        return "".join(parts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExpectationMatcher):
            return NotImplemented
        return self.expectation == other.expectation

    def __hash__(self) -> int:
        return hash(self.expectation)

    def __repr__(self) -> str:
        return f"ExpectationMatcher[expect={self.expectation!r}]"


# ---------------------------------------------------------------------------
# AllOfMatcher
# ---------------------------------------------------------------------------

class AllOfMatcher:
    """Conjunction of matchers: the single failure must satisfy all of them."""

    def __init__(self, matchers: Sequence[ExpectationMatcher]) -> None:
        self.matchers = list(matchers)

    def matches(self, item: object) -> bool:
        return self.match(item).matched

    def match(self, item: object) -> MatchResult:
        for matcher in self.matchers:
            result = matcher.match(item)
            if not result.matched:
                return MatchResult(
                    matched=False,
                    expected=self.describe(),
                    actual=f"{result.expected} {result.actual}",
                    position=result.position,
                    mismatch=result.mismatch,
                )
        return MatchResult(True, self.describe(), "")

    def describe(self, result: MatchResult | None = None) -> str:
        return "(" + " and ".join(m.describe() for m in self.matchers) + ")"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AllOfMatcher):
            return NotImplemented
        return self.matchers == other.matchers

    def __hash__(self) -> int:
        return hash(tuple(self.matchers))

    def __repr__(self) -> str:
        return f"AllOfMatcher[{self.matchers!r}]"


def match_failure(expectation: Expectation, failure: object) -> MatchResult:
    """Match ``failure`` against ``expectation`` (convenience wrapper)."""
    return ExpectationMatcher(expectation).match(failure)
