"""pytest mixin running property verification over a set of targets.

Usage::

    class TestAccount(PropertyTheory):
        balance = PropertyOverride(value=-1, expect=ExpectationBuilder.create(ValueError))

        def property_targets(self):
            return [Account(), Account(owner="ann")]

The inherited ``test_properties_valid`` verifies every target, applying
the :class:`~propexpect.verify.PropertyOverride` attributes declared on
the test class.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import ClassVar

from propexpect.config import DEFAULT_CONFIG, VerifierConfig
from propexpect.verify import PropertyVerifier, overrides_of

logger = logging.getLogger(__name__)


class PropertyTheory:
    """Base class for test classes checking property round trips."""

    verifier_config: ClassVar[VerifierConfig] = DEFAULT_CONFIG

    def property_targets(self) -> Iterable[object]:
        """Return the objects whose properties are verified."""
        msg = f"{type(self).__name__} must implement property_targets()"
        raise NotImplementedError(msg)

    def test_properties_valid(self) -> None:
        verifier = PropertyVerifier(self.verifier_config)
        overrides = overrides_of(self)
        for target in self.property_targets():
            report = verifier.check(target, overrides)
            logger.debug("%s", report.summary())
