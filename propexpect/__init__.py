"""propexpect -- failure expectations and property round-trip verification.

Provides an expectation model for raised exceptions (kind, message
pattern, cause chain) with a per-run expectation rule, and a verifier
that checks get/set/restore round trips of object attributes.
"""

__version__ = "0.1.0"

# Re-export key types for convenience.
from propexpect.config import VerifierConfig
from propexpect.errors import (
    AccessorResolutionFailure,
    MatchMismatch,
    PropertyVerificationError,
    PropExpectError,
    RoundTripViolation,
    SynthesisFailure,
    UnexpectedSuccess,
)
from propexpect.expect import Cause, Expectation, ExpectationBuilder, expect, expectation_of
from propexpect.match import MESSAGE_NULL, MESSAGE_UNCHECKED, MatchMode
from propexpect.matcher import ExpectationMatcher, MatchResult
from propexpect.rule import ExpectationRule, ExpectRule
from propexpect.synth import Char, next_value
from propexpect.theory import PropertyTheory
from propexpect.verify import PropertyOverride, PropertyReport, PropertyVerifier

__all__ = [
    "MESSAGE_NULL",
    "MESSAGE_UNCHECKED",
    "AccessorResolutionFailure",
    "Cause",
    "Char",
    "ExpectRule",
    "Expectation",
    "ExpectationBuilder",
    "ExpectationMatcher",
    "ExpectationRule",
    "MatchMismatch",
    "MatchMode",
    "MatchResult",
    "PropExpectError",
    "PropertyOverride",
    "PropertyReport",
    "PropertyTheory",
    "PropertyVerificationError",
    "PropertyVerifier",
    "RoundTripViolation",
    "SynthesisFailure",
    "UnexpectedSuccess",
    "VerifierConfig",
    "expect",
    "expectation_of",
    "next_value",
]
