#!/usr/bin/env python3
"""Property Check Demo -- End-to-End Round-Trip Verification.

Demonstrates both halves of propexpect: declarative failure expectations
matched against raised exceptions and their causes, and property
round-trip verification of mutable objects.

Flow:
  Phase 1: Buggy    -- verify an inventory item whose setters drop writes
                       and accept invalid values -> failures detected
  Phase 2: Fixed    -- verify the corrected item, with an override that
                       expects the quantity setter to reject -1 -> passes
  Phase 3: Expect   -- match failures with cause chains against
                       expectations, including a deliberate mismatch
  Phase 4: Report   -- structured summary of the full cycle

Design notes:
  - Uses print() for structured demo output (not logging) because this
    is a user-facing CLI demo with formatted tables and progress lines.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from propexpect.errors import MatchMismatch
from propexpect.expect import ExpectationBuilder
from propexpect.match import MatchMode
from propexpect.rule import ExpectRule
from propexpect.verify import PropertyOverride, PropertyReport, PropertyVerifier

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Demo targets
# ---------------------------------------------------------------------------

class BuggyItem:
    """Inventory item with two broken accessors."""
    sku: str

    def __init__(self, sku: str = "A-100", quantity: int = 3, price: float = 9.5) -> None:
        self.sku = sku
        self._quantity = quantity
        self._price = price

    @property
    def quantity(self) -> int:
        return self._quantity

    @quantity.setter
    def quantity(self, value: int) -> None:
        self._quantity = value

    @property
    def price(self) -> float:
        return self._price

    @price.setter
    def price(self, value: float) -> None:
        # Rounds away the candidate value.
        self._price = round(value / 10) * 10.0


class FixedItem(BuggyItem):
    """Inventory item with validated quantity and exact price."""

    @property
    def quantity(self) -> int:
        return self._quantity

    @quantity.setter
    def quantity(self, value: int) -> None:
        if value < 0:
            msg = f"quantity must not be negative: {value}"
            raise ValueError(msg)
        self._quantity = value

    @property
    def price(self) -> float:
        return self._price

    @price.setter
    def price(self, value: float) -> None:
        self._price = value


QUANTITY_CHECK = PropertyOverride(
    "quantity",
    value=-1,
    expect=ExpectationBuilder.create(ValueError, "quantity must not be negative", MatchMode.STARTS_WITH),
)


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

def run_buggy() -> PropertyReport:
    """Verify the buggy item; the verifier should report failures."""
    print("\n" + "=" * 70)
    print("PHASE 1: BUGGY ITEM")
    print("=" * 70)

    report = PropertyVerifier().verify(BuggyItem(), [QUANTITY_CHECK])
    print(f"\n  --- Verification Result ---")
    print(report.summary())
    return report


def run_fixed() -> PropertyReport:
    """Verify the fixed item; every attribute should pass."""
    print("\n" + "=" * 70)
    print("PHASE 2: FIXED ITEM")
    print("=" * 70)

    item = FixedItem()
    report = PropertyVerifier().verify(item, [QUANTITY_CHECK])
    print(f"\n  --- Verification Result ---")
    print(report.summary())
    print(f"\n  Item after verification: sku={item.sku} quantity={item.quantity} price={item.price}")
    return report


def _load_config(raw: str) -> dict[str, object]:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"invalid config: {raw!r}"
        raise RuntimeError(msg) from exc


def run_expectations() -> bool:
    """Match raised failures against expectations with cause chains."""
    print("\n" + "=" * 70)
    print("PHASE 3: FAILURE EXPECTATIONS")
    print("=" * 70)

    expectation = (
        ExpectationBuilder.create(RuntimeError, "invalid config", MatchMode.STARTS_WITH)
        .cause(json.JSONDecodeError, "Expecting value", MatchMode.CONTAINS)
    )
    rule = ExpectRule()
    rule.expect(expectation)
    rule.run(_load_config, "not json")
    print("  Matched: RuntimeError caused by JSONDecodeError")

    rule.expect(ExpectationBuilder.create(RuntimeError).cause(KeyError))
    try:
        rule.run(_load_config, "not json")
    except MatchMismatch as exc:
        print("  Mismatch reported as expected:")
        for line in str(exc).splitlines():
            print(f"    {line}")
        return True
    print("  ERROR: mismatching cause was not reported")
    return False


def print_final_report(buggy_report: PropertyReport, fixed_report: PropertyReport) -> None:
    """Print structured summary comparing buggy vs fixed."""
    print("\n" + "=" * 70)
    print("PHASE 4: FINAL REPORT")
    print("=" * 70)

    print(f"\n  {'Property':<35} {'Buggy':>8} {'Fixed':>8}")
    print(f"  {'-' * 35} {'-' * 8} {'-' * 8}")

    buggy_map = {r.name: r.passed for r in buggy_report.results}
    fixed_map = {r.name: r.passed for r in fixed_report.results}

    for name in buggy_map:
        b = "PASS" if buggy_map.get(name) else "FAIL"
        f = "PASS" if fixed_map.get(name) else "FAIL"
        marker = " <-- FIXED" if b == "FAIL" and f == "PASS" else ""
        print(f"  {name:<35} {b:>8} {f:>8}{marker}")

    bp, bf = buggy_report.passed, buggy_report.failed
    fp, ff = fixed_report.passed, fixed_report.failed
    print(f"\n  {'TOTALS':<35} {bp}P/{bf}F    {fp}P/{ff}F")

    report_data = {
        "demo": "property_check",
        "buggy_run": buggy_report.to_dict(),
        "fixed_run": fixed_report.to_dict(),
        "improvement": fp - bp,
    }
    report_path = Path(__file__).parent / "demo_report.json"
    report_path.write_text(json.dumps(report_data, indent=2), encoding="utf-8")
    print(f"\n  JSON report: {report_path}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    """Run the complete property check demo."""
    print("=" * 70)
    print("  PROPEXPECT -- Property Round-Trip Demo")
    print("=" * 70)

    buggy_report = run_buggy()
    fixed_report = run_fixed()
    expectations_ok = run_expectations()
    print_final_report(buggy_report, fixed_report)

    print("\n" + "=" * 70)
    print("  Demo complete.")
    print("=" * 70)

    if buggy_report.all_passed:
        print("  EXIT: Buggy item was not detected.")
        return 1
    if not fixed_report.all_passed:
        print("  EXIT: Fixed item has failures.")
        return 1
    if not expectations_ok:
        print("  EXIT: Expectation mismatch was not reported.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
