#!/usr/bin/env python3
"""Validate local memberdesk environment readiness."""

from __future__ import annotations

import importlib
import sys
from datetime import date, datetime, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from memberdesk.domain.models import Member, MembershipPlan
from memberdesk.domain.values import DateRange, TimeSlot
from memberdesk.repository.memory_repository import (
    InMemoryMemberRepository,
    InMemoryPlanRepository,
    InMemoryResourceRepository,
)
from memberdesk.services.reservation_service import ReservationService
from memberdesk.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable with versions
    package_specs = [
        ("pydantic", "pydantic"),
        ("numpy", "numpy"),
        ("pandas", "pandas"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    from importlib.metadata import PackageNotFoundError, version

    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    settings = get_settings()
    plans = InMemoryPlanRepository()
    resources = InMemoryResourceRepository()
    members = InMemoryMemberRepository()

    # CHECK 3: Catalogue seeding
    try:
        seeded_plans = plans.seed_defaults()
        seeded_resources = resources.seed_defaults(settings.default_currency)
        if seeded_plans != 3 or seeded_resources != 4:
            raise RuntimeError(f"expected 3 plans and 4 resources, got {seeded_plans} and {seeded_resources}")
        ok, line = _print_result("Catalogue seeding", True, f": {seeded_plans} plans, {seeded_resources} resources")
    except (RuntimeError, ValueError) as exc:
        ok, line = _print_result("Catalogue seeding", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    now = datetime.now().replace(minute=0, second=0, microsecond=0)
    member = Member(
        "VALIDATE-01",
        "Validation Member",
        "validate@example.com",
        "010-0000-0000",
        plan=MembershipPlan.premium_monthly(),
        membership_period=DateRange.of_days(date.today(), 30),
    )
    members.save(member)
    service = ReservationService(members, resources, settings=settings)
    slot = TimeSlot.of_minutes(now + timedelta(days=1, hours=2), 60)

    # CHECK 4: Eligibility evaluation
    try:
        decision = service.check_eligibility(member.member_id, "GYM-01", slot, now=now)
        if not decision.allowed:
            raise RuntimeError(decision.reason)
        ok, line = _print_result("Eligibility evaluation", True, f": {decision.reason}")
    except (RuntimeError, ValueError) as exc:
        ok, line = _print_result("Eligibility evaluation", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 5: Discount pricing
    try:
        quote = service.quote_price(member, resources.get("GYM-01"), slot)
        if quote.final_price > quote.base_price:
            raise RuntimeError(f"final price {quote.final_price} exceeds base {quote.base_price}")
        ok, line = _print_result(
            "Discount pricing",
            True,
            f": {quote.base_price} -> {quote.final_price}",
        )
    except (RuntimeError, ValueError) as exc:
        ok, line = _print_result("Discount pricing", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    print(SEPARATOR_LINE)
    print(" memberdesk Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
