"""
Tests for allocation expansion.

Covers:
- Direct, group and marketing fan-outs and their composition
- Regime selection by the recoverable flag (marketing ignores it)
- Shares that vanish: zero-sum splits, unknown targets, unreadable percents
- The expansion never hands out more than the allocated percent
"""

from decimal import Decimal

from invoicing_engines.expansion import allocated_percent, expand_allocation
from invoicing_engines.redistribution import TargetCatalog
from invoicing_engines.types import MarketingCascade, RedistributionTables

TABLES = RedistributionTables(
    recoverable={"SC": {"A": 60, "B": 40}, "GROUPX": {"PROP2": 1}},
    non_recoverable={"SC": {"A": 50, "B": 50}, "GROUPX": {"PROP2": 1}, "EMPTY": {"A": 0}},
)
CASCADE = MarketingCascade({"GROUPX": 1})
CATALOG = TargetCatalog(
    property_keys={"PROP1", "PROP2", "A", "B"},
    groups=TABLES.groups,
)


def _expand(allocations, recoverable=False, cascade=CASCADE, tables=TABLES, catalog=CATALOG):
    return expand_allocation(
        allocations,
        recoverable,
        tables=tables,
        cascade=cascade,
        catalog=catalog,
    )


class TestDirectTargets:
    def test_direct_property(self):
        assert _expand({"PROP1": 100}) == {"PROP1": Decimal("1")}

    def test_repeated_contributions_add_up(self):
        result = _expand({"A": 20, "SC": 50})
        assert result == {"A": Decimal("0.45"), "B": Decimal("0.25")}

    def test_zero_and_junk_percents_skipped(self):
        assert _expand({"PROP1": 0, "PROP2": "n/a"}) == {}


class TestGroupTargets:
    def test_recoverable_uses_recoverable_table(self):
        assert _expand({"SC": 100}, recoverable=True) == {
            "A": Decimal("0.6"),
            "B": Decimal("0.4"),
        }

    def test_non_recoverable_uses_non_recoverable_table(self):
        assert _expand({"SC": 100}, recoverable=False) == {
            "A": Decimal("0.5"),
            "B": Decimal("0.5"),
        }

    def test_zero_sum_group_share_vanishes(self):
        assert _expand({"PROP1": 50, "EMPTY": 50}) == {"PROP1": Decimal("0.5")}

    def test_group_missing_in_regime_vanishes(self):
        assert _expand({"EMPTY": 100}, recoverable=True) == {}


class TestMarketing:
    def test_marketing_cascades_through_group(self):
        """PROP1 50% + marketing 50% -> GROUPX -> PROP2."""
        assert _expand({"PROP1": Decimal("0.5"), "marketing": Decimal("0.5")}) == {
            "PROP1": Decimal("0.5"),
            "PROP2": Decimal("0.5"),
        }

    def test_marketing_ignores_recoverable_flag(self):
        cascade = MarketingCascade({"SC": 1})
        assert _expand({"Marketing": 100}, recoverable=True, cascade=cascade) == {
            "A": Decimal("0.5"),
            "B": Decimal("0.5"),
        }

    def test_multi_leg_cascade(self):
        cascade = MarketingCascade({"SC": 40, "GROUPX": 60})
        result = _expand({"marketing": 100}, cascade=cascade)
        assert result == {
            "A": Decimal("0.2"),
            "B": Decimal("0.2"),
            "PROP2": Decimal("0.6"),
        }

    def test_empty_cascade_vanishes(self):
        assert _expand({"marketing": 100}, cascade=MarketingCascade()) == {}


class TestUnknownTargets:
    def test_unknown_target_ignored(self):
        assert _expand({"PROP1": 50, "Notes": 50}) == {"PROP1": Decimal("0.5")}

    def test_sum_bounded_by_allocated_percent(self):
        allocations = {"PROP1": 30, "SC": 30, "EMPTY": 20, "Notes": 20}
        result = _expand(allocations)
        assert sum(result.values()) <= allocated_percent(allocations)
        assert sum(result.values()) == Decimal("0.6")


class TestAllocatedPercent:
    def test_sum_of_normalized_percents(self):
        assert allocated_percent({"A": 50, "B": "25%", "C": 0.25, "D": "x"}) == Decimal("1")
