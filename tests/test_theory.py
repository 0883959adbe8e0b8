"""Tests for propexpect.theory -- the pytest property mixin."""

from __future__ import annotations

from collections.abc import Iterable

import pytest

from propexpect.config import VerifierConfig
from propexpect.errors import PropertyVerificationError
from propexpect.expect import ExpectationBuilder
from propexpect.theory import PropertyTheory
from propexpect.verify import PropertyOverride


class Temperature:
    unit: str

    def __init__(self, celsius: float = 20.0, unit: str = "C") -> None:
        self._celsius = celsius
        self.unit = unit

    @property
    def celsius(self) -> float:
        return self._celsius

    @celsius.setter
    def celsius(self, value: float) -> None:
        if value < -273.15:
            raise ValueError("below absolute zero")
        self._celsius = value


class Forgetful:
    def __init__(self) -> None:
        self._size = 1

    def get_size(self) -> int:
        return self._size

    def set_size(self, value: int) -> None:
        self._size = 0


class TestTemperatureProperties(PropertyTheory):
    """Inherited ``test_properties_valid`` runs against every target."""

    celsius = PropertyOverride(value=-300.0, expect=ExpectationBuilder.create(ValueError, "below absolute zero"))

    def property_targets(self) -> Iterable[object]:
        return [Temperature(), Temperature(-10.5, "F")]


class TestSkippedProperties(PropertyTheory):
    verifier_config = VerifierConfig(skip=("size",))

    def property_targets(self) -> Iterable[object]:
        return [Forgetful()]


class TestPropertyTheory:
    """Behaviour of the mixin outside of collection."""

    def test_failing_target_raises(self) -> None:
        class Checks(PropertyTheory):
            def property_targets(self) -> Iterable[object]:
                return [Forgetful()]

        with pytest.raises(PropertyVerificationError, match="size: value is changed"):
            Checks().test_properties_valid()

    def test_targets_must_be_provided(self) -> None:
        with pytest.raises(NotImplementedError, match="must implement property_targets"):
            PropertyTheory().test_properties_valid()
