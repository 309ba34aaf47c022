"""
Module: invoicing_engines.expansion
Responsibility:
    Expand one employee's allocation map ``{target -> raw percent}`` into a
    flat ``{property -> fraction of the employee's pay}``.

    Three fan-outs compose multiplicatively:

        direct property       p
        group                 p * share(regime, group, property)
        marketing             p * cascade(group) * share(NON_RECOVERABLE, group, property)

    Each redistribution step is normalized independently, so a fan-out can
    never hand out more than the percent that entered it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - sum(output) <= sum(normalize_percent(v) for v in allocations.values()),
      up to Decimal precision.  Shares only go missing (zero-sum splits,
      unknown targets); they are never redistributed elsewhere.
    - Output keys keep first-contribution order; repeated contributions to
      the same property add up.
    - Never raises on well-typed input.

Usage:
    from invoicing_engines.expansion import expand_allocation
    from invoicing_engines.redistribution import TargetCatalog

    fractions = expand_allocation(
        {"PROP1": "50%", "marketing": 0.5},
        recoverable=False,
        tables=tables,
        cascade=cascade,
        catalog=TargetCatalog(property_keys={"PROP1", "PROP2"}, groups={"GROUPX"}),
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from invoicing_engines.percent import DEFAULT_SCALE_THRESHOLD, normalize_percent
from invoicing_engines.redistribution import (
    GroupTarget,
    MarketingTarget,
    PropertyTarget,
    TargetCatalog,
    UnknownTarget,
    group_split,
    marketing_splits,
)
from invoicing_engines.tracer import traced_engine
from invoicing_engines.types import (
    ZERO,
    MarketingCascade,
    RedistributionTables,
    Regime,
)
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.expansion")


def _add(out: dict[str, Decimal], key: str, amount: Decimal) -> None:
    if amount > ZERO:
        out[key] = out.get(key, ZERO) + amount


@traced_engine(
    "allocation_expansion",
    "1.0",
    fingerprint_fields=("allocations", "recoverable"),
)
def expand_allocation(
    allocations: Mapping[str, Any],
    recoverable: bool,
    *,
    tables: RedistributionTables,
    cascade: MarketingCascade,
    catalog: TargetCatalog,
    scale_threshold: Decimal = DEFAULT_SCALE_THRESHOLD,
) -> dict[str, Decimal]:
    """
    Resolve an allocation map to property fractions.

    Args:
        allocations: Raw ``{target key -> percent}`` from the allocation sheet.
        recoverable: The employee's recoverable flag; selects the PRS regime
            for group targets (marketing ignores it).
        tables: PRS tables.
        cascade: Marketing cascade.
        catalog: Known property keys, groups and aliases.
        scale_threshold: Percent-scale threshold for ``normalize_percent``.

    Returns:
        ``{property key -> fraction}``; empty when nothing resolves.
    """
    regime = Regime.for_flag(recoverable)
    out: dict[str, Decimal] = {}

    for raw_key, raw_percent in allocations.items():
        p = normalize_percent(raw_percent, scale_threshold)
        if p == ZERO:
            continue

        match catalog.classify(raw_key):
            case PropertyTarget(property_key=prop):
                _add(out, prop, p)
            case GroupTarget(group=group):
                for prop, share in group_split(tables, regime, group).items():
                    _add(out, prop, p * share)
            case MarketingTarget():
                for _group, group_share, split in marketing_splits(cascade, tables, catalog):
                    for prop, share in split.items():
                        _add(out, prop, p * group_share * share)
            case UnknownTarget(raw_key=unknown):
                logger.debug("allocation_target_ignored", extra={
                    "target": unknown,
                    "percent": str(p),
                })

    return out


def allocated_percent(
    allocations: Mapping[str, Any],
    scale_threshold: Decimal = DEFAULT_SCALE_THRESHOLD,
) -> Decimal:
    """Sum of the normalized raw percents: the ceiling on any expansion's total."""
    return sum(
        (normalize_percent(v, scale_threshold) for v in allocations.values()),
        ZERO,
    )
