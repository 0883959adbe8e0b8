"""Message matching strategies used by failure expectations.

A :class:`MatchMode` compares an expected message pattern against the
message of an actual failure.  The diagnostic rendering produced by
:func:`describe_pattern` is part of the assertion messages raised by
:mod:`propexpect.rule`, so its format is stable.
"""

from __future__ import annotations

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)

# Message sentinel meaning "do not check the message at all".
MESSAGE_UNCHECKED = "<%message not available%>"

# Message sentinel meaning "the message must be absent".
MESSAGE_NULL = "<%null%>"


# ---------------------------------------------------------------------------
# MatchMode
# ---------------------------------------------------------------------------

class MatchMode(Enum):
    """String comparison strategies for failure messages."""
    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    PATTERN = "pattern"

    def match(self, pattern: str | None, text: str | None) -> bool:
        """Return True if ``text`` satisfies ``pattern`` under this mode.

        Two absent values match each other; an absent value never matches
        a present one.  ``PATTERN`` requires the regular expression to
        match the whole text.
        """
        if pattern == MESSAGE_NULL:
            pattern = None
        if text is None and pattern is None:
            return True
        if text is None or pattern is None:
            return False

        if self is MatchMode.EQUALS:
            return text == pattern
        if self is MatchMode.CONTAINS:
            return pattern in text
        if self is MatchMode.STARTS_WITH:
            return text.startswith(pattern)
        if self is MatchMode.ENDS_WITH:
            return text.endswith(pattern)
        if self is MatchMode.PATTERN:
            return re.fullmatch(pattern, text) is not None
        msg = f"matcher not supported [{self}]"
        raise ValueError(msg)


def describe_pattern(pattern: str | None, mode: MatchMode) -> str:
    """Render an expected message pattern for diagnostics."""
    if pattern is None or pattern == MESSAGE_NULL:
        return "null"
    if mode is MatchMode.EQUALS:
        return describe_value(pattern)
    if mode is MatchMode.CONTAINS:
        return f"<^.*{pattern}.*$>"
    if mode is MatchMode.STARTS_WITH:
        return f"<^{pattern}.*>"
    if mode is MatchMode.ENDS_WITH:
        return f"<.*{pattern}$>"
    if mode is MatchMode.PATTERN:
        return f"<{pattern}>"
    msg = f"matcher not supported [{mode}]"
    raise ValueError(msg)


def describe_value(value: object) -> str:
    """Render an actual value for diagnostics (strings are double quoted)."""
    if value is None:
        return "null"
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return f"<{value!r}>"


# ---------------------------------------------------------------------------
# MessageMatcher
# ---------------------------------------------------------------------------

class MessageMatcher:
    """Matcher applying a :class:`MatchMode` to the string form of an item.

    Usage::

        matcher = MessageMatcher("failure-", MatchMode.STARTS_WITH)
        assert matcher.matches("failure-abc")
        print(matcher.describe())   # <^failure-.*>
    """

    def __init__(self, pattern: str | None, mode: MatchMode = MatchMode.EQUALS) -> None:
        self.pattern = pattern
        self.mode = mode

    def matches(self, item: object) -> bool:
        return self.mode.match(self.pattern, None if item is None else str(item))

    def describe(self) -> str:
        return describe_pattern(self.pattern, self.mode)

    def describe_mismatch(self, item: object) -> str:
        return f"was {describe_value(None if item is None else str(item))}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MessageMatcher):
            return NotImplemented
        return (self.pattern, self.mode) == (other.pattern, other.mode)

    def __hash__(self) -> int:
        return hash((self.pattern, self.mode))

    def __repr__(self) -> str:
        return f"MessageMatcher[mode={self.mode.name}, pattern={self.pattern}]"
