"""
Module: invoicing_engines.redistribution
Responsibility:
    Classify allocation-sheet target keys into a closed set of kinds and
    resolve the redistribution splits that groups and the marketing target
    fan out through.

        PropertyTarget   -- a direct property key (after alias resolution)
        GroupTarget      -- a named group, expanded through a PRS table
        MarketingTarget  -- the marketing column, expanded through the
                            marketing cascade and then the NON-RECOVERABLE
                            PRS table of each group
        UnknownTarget    -- anything else (stray sheet columns); ignored

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Tables are injected; this
    module holds no process-wide state.

Invariants enforced:
    - Classification precedence is property, then group, then marketing.
    - Every split handed to the expansion engine is normalized to sum to 1
      or is empty.
    - Marketing always redistributes through ``Regime.NON_RECOVERABLE``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from invoicing_engines.percent import normalize_split
from invoicing_engines.types import (
    AllocationTable,
    MarketingCascade,
    RedistributionTables,
    Regime,
    group_key,
)
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.redistribution")

DEFAULT_MARKETING_TARGET = "marketing"


@dataclass(frozen=True)
class PropertyTarget:
    property_key: str


@dataclass(frozen=True)
class GroupTarget:
    group: str


@dataclass(frozen=True)
class MarketingTarget:
    pass


@dataclass(frozen=True)
class UnknownTarget:
    raw_key: str


AllocationTarget = PropertyTarget | GroupTarget | MarketingTarget | UnknownTarget


@dataclass(frozen=True)
class TargetCatalog:
    """
    What a target key can refer to for one invocation.

    Contract:
        Immutable; built from the allocation table (or directly in tests).
    Guarantees:
        - ``classify`` is total: every key maps to exactly one target kind.
        - When ``open_properties`` is set (the allocation table listed no
          properties), any key that is neither a group nor marketing is read
          as a property key.
    """

    property_keys: frozenset[str] = frozenset()
    groups: frozenset[str] = frozenset()
    property_aliases: Mapping[str, str] = field(default_factory=dict)
    group_aliases: Mapping[str, str] = field(default_factory=dict)
    marketing_target: str = DEFAULT_MARKETING_TARGET
    open_properties: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "property_keys", frozenset(self.property_keys))
        object.__setattr__(self, "groups", frozenset(group_key(g) for g in self.groups))
        object.__setattr__(
            self, "property_aliases", MappingProxyType(dict(self.property_aliases))
        )
        object.__setattr__(
            self,
            "group_aliases",
            MappingProxyType(
                {group_key(k): group_key(v) for k, v in self.group_aliases.items()}
            ),
        )

    @classmethod
    def for_table(
        cls,
        table: AllocationTable,
        marketing_target: str = DEFAULT_MARKETING_TARGET,
    ) -> TargetCatalog:
        return cls(
            property_keys=frozenset(p.key for p in table.properties),
            groups=table.tables.groups,
            property_aliases=table.property_aliases,
            group_aliases=table.group_aliases,
            marketing_target=marketing_target,
            open_properties=not table.properties,
        )

    def canonical_group(self, name: str) -> str:
        key = group_key(name)
        return self.group_aliases.get(key, key)

    def classify(self, raw_key: str) -> AllocationTarget:
        """Classify one allocation-sheet target key."""
        key = (raw_key or "").strip()
        prop = self.property_aliases.get(key, key)
        if prop in self.property_keys:
            return PropertyTarget(prop)

        group = self.canonical_group(key)
        if group in self.groups:
            return GroupTarget(group)
        if group == group_key(self.marketing_target):
            return MarketingTarget()

        if self.open_properties and key:
            return PropertyTarget(prop)
        return UnknownTarget(raw_key)


def group_split(
    tables: RedistributionTables,
    regime: Regime,
    group: str,
) -> dict[str, Decimal]:
    """Normalized PRS split for ``(regime, group)``; empty when none or zero-sum."""
    split = normalize_split(tables.split_for(regime, group))
    if not split:
        logger.info("split_map_empty", extra={"regime": regime.value, "group": group})
    return split


def marketing_splits(
    cascade: MarketingCascade,
    tables: RedistributionTables,
    catalog: TargetCatalog,
) -> list[tuple[str, Decimal, dict[str, Decimal]]]:
    """``(group, group_share, property_split)`` for each leg of the marketing cascade.

    Group shares are normalized across the cascade; each group's property
    split comes from the non-recoverable PRS table whatever the employee's
    own flag.  Legs whose group split is empty are kept so the caller can
    see that their share vanished.
    """
    legs: list[tuple[str, Decimal, dict[str, Decimal]]] = []
    for raw_group, share in normalize_split(cascade.shares).items():
        group = catalog.canonical_group(raw_group)
        legs.append((group, share, group_split(tables, Regime.NON_RECOVERABLE, group)))
    return legs


def seed_property_keys(
    table: AllocationTable, catalog: TargetCatalog | None = None
) -> tuple[str, ...]:
    """Property keys an invoice batch must cover, in sheet order.

    Sheet properties first, then properties that only appear inside PRS
    splits.  Property keys reached through aliases are already sheet keys.

    A sheet that lists no properties treats direct targets as properties;
    given the ``catalog``, every allocation key that classifies as a
    property is seeded too, zero-percent cells and off-payroll rows included.
    """
    keys: dict[str, None] = {p.key: None for p in table.properties}
    if catalog is not None and not table.properties:
        for emp in table.employees:
            for raw in emp.allocations:
                target = catalog.classify(raw)
                if isinstance(target, PropertyTarget):
                    keys.setdefault(target.property_key, None)
    for key in table.tables.referenced_properties():
        keys.setdefault(key, None)
    return tuple(keys)


def unknown_targets(catalog: TargetCatalog, raw_keys: Iterable[str]) -> list[str]:
    """The keys in ``raw_keys`` that classify as unknown."""
    return [k for k in raw_keys if isinstance(catalog.classify(k), UnknownTarget)]
