"""Configuration for :class:`~propexpect.verify.PropertyVerifier` runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Self


@dataclass(frozen=True)
class VerifierConfig:
    """Options controlling attribute discovery and failure handling.

    Attributes:
        include_private: Also discover ``_underscored`` attributes.
        skip: Attribute names never checked (neither discovered nor
            overridden).
        fail_fast: Stop after the first failed attribute instead of
            attempting every atom.
    """
    include_private: bool = False
    skip: tuple[str, ...] = field(default_factory=tuple)
    fail_fast: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.skip, str):
            msg = f"skip must be a collection of names, not a string: {self.skip!r}"
            raise TypeError(msg)
        object.__setattr__(self, "skip", tuple(self.skip))

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {
            "include_private": self.include_private,
            "skip": list(self.skip),
            "fail_fast": self.fail_fast,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Self:
        """Deserialize from a plain dict."""
        raw_skip = data.get("skip", [])
        skip: tuple[str, ...] = ()
        if isinstance(raw_skip, list):
            skip = tuple(str(name) for name in raw_skip)
        return cls(
            include_private=bool(data.get("include_private", False)),
            skip=skip,
            fail_fast=bool(data.get("fail_fast", False)),
        )

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize from a JSON string."""
        data: dict[str, object] = json.loads(json_str)
        return cls.from_dict(data)


DEFAULT_CONFIG = VerifierConfig()
