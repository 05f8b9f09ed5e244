from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from quoting.services.errors import PackageDataError
from quoting.services.pricing.periods import MONTH_NAMES
from quoting.services.pricing.types import PackageSnapshot, PeriodType

MAX_TIERS = 10
MAX_DURATIONS = 20
MAX_PERIODS = 50


@dataclass
class PackageValidationReport:
    snapshot: PackageSnapshot
    warnings: list[str] = field(default_factory=list)


def validate_package_payload(payload: dict[str, Any]) -> PackageValidationReport:
    """Check a package's pricing data before a version is published.

    Structural problems raise ``PackageDataError``. Overlapping ranges and
    missing matrix cells are only reported as warnings: at lookup time they
    resolve by first match or fail for the affected parameters.
    """
    snapshot = PackageSnapshot.from_payload(payload)
    errors: list[str] = []
    warnings: list[str] = []

    if not 1 <= len(snapshot.tiers) <= MAX_TIERS:
        errors.append(f"A package needs between 1 and {MAX_TIERS} group size tiers.")
    if not 1 <= len(snapshot.durations) <= MAX_DURATIONS:
        errors.append(f"A package needs between 1 and {MAX_DURATIONS} duration options.")
    if not 1 <= len(snapshot.periods) <= MAX_PERIODS:
        errors.append(f"A package needs between 1 and {MAX_PERIODS} pricing periods.")

    for index, tier in enumerate(snapshot.tiers):
        if not tier.label:
            errors.append(f"Tier {index} has no label.")
        if tier.min_people < 1:
            errors.append(f'Tier "{tier.label}" must start at 1 person or more.')
        if tier.max_people < tier.min_people:
            errors.append(f'Tier "{tier.label}" has max_people below min_people.')

    if any(nights < 1 for nights in snapshot.durations):
        errors.append("Duration options must be positive numbers of nights.")
    if len(set(snapshot.durations)) != len(snapshot.durations):
        errors.append("Duration options contain duplicates.")

    for period in snapshot.periods:
        if period.period_type == PeriodType.SPECIAL and period.start_date and period.end_date:
            if period.end_date < period.start_date:
                errors.append(f'Special period "{period.period}" ends before it starts.')
        if period.period_type == PeriodType.MONTH and period.period.strip().title() not in MONTH_NAMES:
            warnings.append(f'Month period "{period.period}" is not a month name and will never match a date.')

        seen: set[tuple[int, int]] = set()
        for point in period.price_points:
            cell = (point.tier_index, point.nights)
            if cell in seen:
                errors.append(f'Period "{period.period}" has more than one price for tier {cell[0]}, {cell[1]} nights.')
            seen.add(cell)
            if not 0 <= point.tier_index < len(snapshot.tiers):
                errors.append(f'Period "{period.period}" references unknown tier index {point.tier_index}.')
            if point.nights not in snapshot.durations:
                warnings.append(f'Period "{period.period}" prices {point.nights} nights, which is not a duration option.')

        missing = [
            (tier_index, nights)
            for tier_index in range(len(snapshot.tiers))
            for nights in snapshot.durations
            if (tier_index, nights) not in seen
        ]
        if missing:
            warnings.append(f'Period "{period.period}" is missing {len(missing)} price point(s).')

    warnings.extend(_overlap_warnings(snapshot))

    if errors:
        raise PackageDataError("Package pricing data is invalid", context={"errors": errors})
    return PackageValidationReport(snapshot=snapshot, warnings=warnings)


def _overlap_warnings(snapshot: PackageSnapshot) -> list[str]:
    warnings: list[str] = []
    tiers = list(snapshot.tiers)
    for left_index, left in enumerate(tiers):
        for right in tiers[left_index + 1 :]:
            if left.min_people <= right.max_people and right.min_people <= left.max_people:
                warnings.append(f'Tiers "{left.label}" and "{right.label}" overlap; the first one wins.')

    specials = [period for period in snapshot.periods if period.period_type == PeriodType.SPECIAL]
    for left_index, left in enumerate(specials):
        for right in specials[left_index + 1 :]:
            if left.start_date <= right.end_date and right.start_date <= left.end_date:
                warnings.append(f'Special periods "{left.period}" and "{right.period}" overlap; "{left.period}" wins.')
    return warnings
