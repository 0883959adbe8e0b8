"""Tests for propexpect.rule -- expectation accumulation and run hooks."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from propexpect.errors import MatchMismatch, UnexpectedSuccess
from propexpect.expect import NEUTRAL, Cause, Expectation, ExpectationBuilder, expect
from propexpect.match import MatchMode, MessageMatcher
from propexpect.rule import ExpectationRule, ExpectRule, RuleState


class Interrupt(BaseException):
    """Non-``Exception`` failure that must never be matched."""


def _contains(fragment: str) -> Expectation:
    return Expectation(message=fragment, mode=MatchMode.CONTAINS)


# ---------------------------------------------------------------------------
# ExpectationRule
# ---------------------------------------------------------------------------

class TestExpectationRule:
    """State machine and hook semantics."""

    def test_neutral_registration_keeps_rule_idle(self) -> None:
        rule = ExpectationRule()

        rule.register(NEUTRAL)
        rule.register(None)
        rule.register(ExpectationBuilder())

        assert rule.state is RuleState.IDLE
        assert rule.matchers == []

    @given(count=st.integers(min_value=0, max_value=5))
    def test_neutral_registration_never_arms(self, count: int) -> None:
        rule = ExpectationRule()
        for _ in range(count):
            rule.register(Expectation(causes=(Cause(),)))

        assert rule.state is RuleState.IDLE
        rule.on_success()

    def test_registration_arms_rule(self) -> None:
        rule = ExpectationRule(ExpectationBuilder.create(ValueError))

        assert rule.state is RuleState.ARMED
        assert rule.expectations == [Expectation(ValueError)]

    def test_idle_success_is_noop(self) -> None:
        rule = ExpectationRule()

        rule.on_success()

        assert rule.state is RuleState.IDLE

    def test_idle_failure_propagates_unchanged(self) -> None:
        rule = ExpectationRule()
        failure = KeyError("unexpected")

        with pytest.raises(KeyError) as info:
            rule.on_failure(failure)

        assert info.value is failure

    def test_all_expectations_must_match_the_same_failure(self) -> None:
        """Three substring checks against one message -- all satisfied."""
        # Arrange
        rule = ExpectationRule(_contains(":x:"), _contains(":y:"), _contains(":z:"))

        # Act
        rule.on_failure(ValueError(":x:a:y:b:z:"))

        # Assert
        assert rule.state is RuleState.IDLE

    def test_armed_success_fails(self) -> None:
        rule = ExpectationRule(_contains(":x:"), _contains(":y:"), _contains(":z:"))

        with pytest.raises(UnexpectedSuccess, match="expected a failure matching: \\(any exception"):
            rule.on_success()

        assert rule.state is RuleState.IDLE

    def test_unexpected_success_names_single_expectation(self) -> None:
        rule = ExpectationRule(Expectation(ValueError, "bad"))

        with pytest.raises(UnexpectedSuccess) as info:
            rule.on_success()

        assert str(info.value) == 'expected a failure matching: exception <ValueError> with message "bad"'

    def test_mismatch_raises_assertion(self) -> None:
        rule = ExpectationRule(_contains(":x:"), _contains(":y:"))
        failure = ValueError(":x:")

        with pytest.raises(MatchMismatch) as info:
            rule.on_failure(failure)

        assert info.value.__cause__ is failure
        assert info.value.result is not None
        assert info.value.result.mismatch is failure
        assert str(info.value).startswith("Expected: (any exception with message <^.*:x:.*$> and")
        assert rule.state is RuleState.IDLE

    def test_kind_mismatch(self) -> None:
        rule = ExpectationRule(Expectation(KeyError))

        with pytest.raises(MatchMismatch, match="but: was exception <ValueError>"):
            rule.on_failure(ValueError("bad"))

    def test_rule_is_reusable_after_each_hook(self) -> None:
        rule = ExpectationRule(Expectation(ValueError))
        rule.on_failure(ValueError("first"))

        rule.on_success()
        rule.register(Expectation(KeyError))
        rule.on_failure(KeyError("second"))

        assert rule.state is RuleState.IDLE

    def test_describe(self) -> None:
        assert ExpectationRule().describe() == "()"
        assert ExpectationRule(Expectation(ValueError)).describe() == "exception <ValueError>"
        assert ExpectationRule(Expectation(ValueError), Expectation(KeyError)).describe() == (
            "(exception <ValueError> and exception <KeyError>)"
        )

    def test_equality_and_repr(self) -> None:
        first = ExpectationRule(Expectation(ValueError))
        second = ExpectationRule(ExpectationBuilder.create(ValueError))

        assert first == second
        assert first != ExpectationRule()
        assert repr(first) == "ExpectationRule[message=exception <ValueError>]"

    def test_matchers_are_copies(self) -> None:
        rule = ExpectationRule(Expectation(ValueError))

        rule.matchers.clear()
        rule.expectations.clear()

        assert rule.state is RuleState.ARMED


class TestRegisterExpected:
    """Joining a harness-supplied kind with declared expectations."""

    def test_kind_only(self) -> None:
        rule = ExpectationRule().register_expected(ValueError)

        assert rule.expectations == [Expectation(ValueError)]

    def test_declared_without_kind_inherits_kind(self) -> None:
        rule = ExpectationRule().register_expected(ValueError, Expectation(message="bad"))

        assert rule.expectations == [Expectation(ValueError, "bad")]

    def test_declared_kind_takes_precedence(self) -> None:
        rule = ExpectationRule().register_expected(ValueError, Expectation(KeyError, "bad"))

        assert rule.expectations == [Expectation(KeyError, "bad")]

    def test_nothing_expected(self) -> None:
        rule = ExpectationRule().register_expected(None, None)

        assert rule.state is RuleState.IDLE


# ---------------------------------------------------------------------------
# ExpectRule
# ---------------------------------------------------------------------------

@expect(ValueError, "invalid", MatchMode.STARTS_WITH)
def _parse_invalid() -> int:
    raise ValueError("invalid input")


@expect(ValueError, "other")
def _parse_wrong_message() -> int:
    raise ValueError("invalid input")


@expect(ValueError)
def _parse_succeeds() -> int:
    return 1


class TestExpectRuleRun:
    """Running callables under the rule."""

    def test_success_returns_result(self) -> None:
        rule = ExpectRule()

        assert rule.run(lambda a, b: a + b, 2, b=3) == 5

    def test_declared_expectation_is_registered(self) -> None:
        rule = ExpectRule()

        assert rule.run(_parse_invalid) is None
        assert rule.state is RuleState.IDLE

    def test_declared_expectation_mismatch(self) -> None:
        rule = ExpectRule()

        with pytest.raises(MatchMismatch, match='message "other"'):
            rule.run(_parse_wrong_message)

        assert rule.state is RuleState.IDLE

    def test_declared_expectation_unexpected_success(self) -> None:
        rule = ExpectRule()

        with pytest.raises(UnexpectedSuccess):
            rule.run(_parse_succeeds)

        assert rule.state is RuleState.IDLE

    def test_unexpected_failure_propagates(self) -> None:
        rule = ExpectRule()

        with pytest.raises(ZeroDivisionError):
            rule.run(lambda: 1 / 0)

    def test_base_exception_resets_and_propagates(self) -> None:
        rule = ExpectRule(Expectation(ValueError))

        def interrupted() -> None:
            raise Interrupt

        with pytest.raises(Interrupt):
            rule.run(interrupted)

        assert rule.state is RuleState.IDLE

    def test_programmatic_expectation(self) -> None:
        rule = ExpectRule()
        rule.expect(ExpectationBuilder.create(KeyError, "missing"))

        rule.run(lambda: {}["missing"])

        assert rule.state is RuleState.IDLE


class TestExpectRuleContext:
    """The ``with`` form and expected result values."""

    def test_expected_failure_is_suppressed(self) -> None:
        with ExpectRule() as rule:
            rule.expect(Expectation(ValueError, "bad"))
            raise ValueError("bad")

        assert rule.state is RuleState.IDLE

    def test_unexpected_failure_propagates(self) -> None:
        with pytest.raises(KeyError):
            with ExpectRule():
                raise KeyError("boom")

    def test_mismatching_failure_raises_assertion(self) -> None:
        with pytest.raises(MatchMismatch):
            with ExpectRule() as rule:
                rule.expect(Expectation(ValueError, "bad"))
                raise ValueError("worse")

    def test_success_with_expectation_fails(self) -> None:
        with pytest.raises(UnexpectedSuccess):
            with ExpectRule() as rule:
                rule.expect(Expectation(ValueError))

    def test_base_exception_is_not_matched(self) -> None:
        with pytest.raises(Interrupt):
            with ExpectRule() as rule:
                rule.expect(Expectation())
                rule.expect(Expectation(BaseException))
                raise Interrupt

        assert rule.state is RuleState.IDLE

    def test_expected_value_matches(self) -> None:
        with ExpectRule() as rule:
            rule.expect(4)
            rule.actual(2 + 2)

        assert rule.expected_value is None
        assert rule.actual_value is None

    def test_expected_value_mismatch(self) -> None:
        with pytest.raises(AssertionError, match="Expected: 4\n     but: was 5"):
            with ExpectRule() as rule:
                rule.expect(4)
                rule.actual(5)

    def test_matcher_as_expected_value(self) -> None:
        with ExpectRule() as rule:
            rule.expect(MessageMatcher("fail", MatchMode.STARTS_WITH))
            rule.actual("failure")

        with pytest.raises(AssertionError, match="Expected: <\\^fail\\.\\*>"):
            with ExpectRule() as rule:
                rule.expect(MessageMatcher("fail", MatchMode.STARTS_WITH))
                rule.actual("success")

    def test_actual_without_expected_value(self) -> None:
        with pytest.raises(AssertionError, match="missing value \\[expect\\]"):
            with ExpectRule() as rule:
                rule.actual(1)

        assert rule.actual_value is None

    def test_values_are_reset_after_failure(self) -> None:
        rule = ExpectRule()
        rule.expect(Expectation(ValueError))
        rule.actual(1)

        rule.on_failure(ValueError("bad"))

        assert rule.expected_value is None
        assert rule.actual_value is None
        assert repr(rule) == "ExpectRule[expect=UNSET, actual=UNSET, message=()]"
