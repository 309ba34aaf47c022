"""
Module: invoicing_engines.types
Responsibility:
    Immutable data model shared by the allocation and invoicing engines:
    payroll inputs, allocation inputs, redistribution (PRS) tables, the
    marketing cascade, and the invoice output records.

Architecture position:
    Engines -- pure value objects, zero I/O.

Invariants enforced:
    - Every value object is a frozen dataclass; mappings are wrapped in
      read-only proxies and sequences are stored as tuples, so tables can be
      shared between concurrent invocations.
    - Monetary amounts and fractions are ``Decimal``.  Numbers supplied as
      int/float/str are converted through ``str`` so floats never leak binary
      noise into invoice figures.
    - Payroll amounts are non-negative.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any

ZERO = Decimal("0")

_WS = re.compile(r"\s+")


def to_decimal(value: Any) -> Decimal:
    """Convert a numeric input to ``Decimal`` (``None`` becomes zero).

    Raises:
        ValueError: if ``value`` is not a finite number.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Expected a number, got {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Expected a finite number, got {value!r}")
    return result


def group_key(name: str) -> str:
    """Canonical lookup key for a group name: trimmed, single-spaced, upper case."""
    return _WS.sub(" ", name or "").strip().upper()


def _freeze(mapping: Mapping[Any, Any] | None) -> Mapping[Any, Any]:
    return MappingProxyType(dict(mapping or {}))


class Regime(str, Enum):
    """Which PRS table applies: the employee's recoverable flag picks one."""

    RECOVERABLE = "recoverable"
    NON_RECOVERABLE = "non_recoverable"

    @classmethod
    def for_flag(cls, recoverable: bool) -> Regime:
        return cls.RECOVERABLE if recoverable else cls.NON_RECOVERABLE


class InvoiceLine(str, Enum):
    """Financial line categories on a property invoice. ``total`` is derived."""

    SALARY_RECOVERABLE = "salary_recoverable"
    SALARY_NON_RECOVERABLE = "salary_non_recoverable"
    OVERTIME = "overtime"
    HOLIDAY_RECOVERABLE = "holiday_recoverable"
    HOLIDAY_NON_RECOVERABLE = "holiday_non_recoverable"
    EMPLOYER_RETIREMENT = "employer_retirement"


INVOICE_LINES: tuple[InvoiceLine, ...] = tuple(InvoiceLine)


# ---------------------------------------------------------------------------
# Payroll inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PayrollEmployee:
    """
    One payroll register row for a pay period.

    Contract:
        Frozen; amounts coerced to ``Decimal``.
    Guarantees:
        - ``salary``, ``overtime``, ``holiday`` and ``employer_retirement``
          are non-negative.
    Non-goals:
        - Hours are carried for display only; the engine allocates dollars.
    """

    name: str
    salary: Decimal = ZERO
    overtime: Decimal = ZERO
    holiday: Decimal = ZERO
    employer_retirement: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    holiday_hours: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in (
            "salary",
            "overtime",
            "holiday",
            "employer_retirement",
            "overtime_hours",
            "holiday_hours",
        ):
            amount = to_decimal(getattr(self, name))
            if amount < ZERO:
                raise ValueError(f"{name} cannot be negative for {self.name!r}: {amount}")
            object.__setattr__(self, name, amount)

    @property
    def gross(self) -> Decimal:
        """Sum of the four allocatable pay components."""
        return self.salary + self.overtime + self.holiday + self.employer_retirement


@dataclass(frozen=True)
class PayrollReportTotals:
    """Totals printed on the payroll register, when the parser found them."""

    salary: Decimal | None = None
    overtime: Decimal | None = None
    holiday: Decimal | None = None
    employer_retirement: Decimal | None = None

    def __post_init__(self) -> None:
        for name in ("salary", "overtime", "holiday", "employer_retirement"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))


@dataclass(frozen=True)
class PayrollParseResult:
    """Pay-period label plus the employees found on the register."""

    employees: tuple[PayrollEmployee, ...] = ()
    pay_date: str | None = None
    report_totals: PayrollReportTotals | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "employees", tuple(self.employees))


# ---------------------------------------------------------------------------
# Allocation inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Property:
    """An invoiceable property (cost center). ``label`` defaults to ``key``."""

    key: str
    label: str = ""
    name: str | None = None

    def __post_init__(self) -> None:
        if not self.label:
            object.__setattr__(self, "label", self.key)


@dataclass(frozen=True)
class AllocationEmployee:
    """
    One allocation-sheet row.

    ``allocations`` maps a target key (property key, group name or the
    marketing target) to a raw percent exactly as authored; values are
    interpreted later by ``invoicing_engines.percent``.
    """

    name: str
    allocations: Mapping[str, Any] = field(default_factory=dict)
    recoverable: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "allocations", _freeze(self.allocations))
        object.__setattr__(self, "recoverable", bool(self.recoverable))


@dataclass(frozen=True)
class RedistributionTables:
    """
    PRS tables: ``(regime, group) -> {property -> raw percent}``.

    Group names are matched on ``group_key`` so "NI LLC " and "ni llc" are
    the same group.  Split maps are stored raw; callers normalize them.
    """

    recoverable: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    non_recoverable: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("recoverable", "non_recoverable"):
            frozen = {
                group_key(group): _freeze(split)
                for group, split in (getattr(self, name) or {}).items()
            }
            object.__setattr__(self, name, MappingProxyType(frozen))

    @classmethod
    def from_shared(
        cls,
        shared: Mapping[str, Mapping[str, Any]],
        recoverable: Mapping[str, Mapping[str, Any]] | None = None,
        non_recoverable: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> RedistributionTables:
        """Build tables where ``shared`` groups use the same split in both regimes."""
        rec = {**shared, **(recoverable or {})}
        nr = {**shared, **(non_recoverable or {})}
        return cls(recoverable=rec, non_recoverable=nr)

    def split_for(self, regime: Regime, group: str) -> Mapping[str, Any]:
        """Raw split for ``(regime, group)``; empty when the table has no such group."""
        table = self.recoverable if regime is Regime.RECOVERABLE else self.non_recoverable
        return table.get(group_key(group), MappingProxyType({}))

    @property
    def groups(self) -> frozenset[str]:
        """Canonical keys of every group present in either regime."""
        return frozenset(self.recoverable) | frozenset(self.non_recoverable)

    def referenced_properties(self) -> tuple[str, ...]:
        """Every property key named by any split, in first-seen order."""
        seen: dict[str, None] = {}
        for table in (self.recoverable, self.non_recoverable):
            for split in table.values():
                for prop in split:
                    seen.setdefault(prop, None)
        return tuple(seen)


@dataclass(frozen=True)
class MarketingCascade:
    """How a marketing percent is divided across groups (``{group -> raw percent}``)."""

    shares: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "shares", _freeze(self.shares))


@dataclass(frozen=True)
class AllocationTable:
    """
    Everything parsed from the allocation workbook.

    ``property_aliases`` maps alternative target keys (sheet column headers
    such as "LIK") to property keys; ``group_aliases`` maps alternative group
    spellings to the group name used in the PRS tables.
    """

    properties: tuple[Property, ...] = ()
    employees: tuple[AllocationEmployee, ...] = ()
    tables: RedistributionTables = field(default_factory=RedistributionTables)
    cascade: MarketingCascade = field(default_factory=MarketingCascade)
    property_aliases: Mapping[str, str] = field(default_factory=dict)
    group_aliases: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", tuple(self.properties))
        object.__setattr__(self, "employees", tuple(self.employees))
        object.__setattr__(self, "property_aliases", _freeze(self.property_aliases))
        object.__setattr__(
            self,
            "group_aliases",
            MappingProxyType(
                {group_key(k): group_key(v) for k, v in (self.group_aliases or {}).items()}
            ),
        )


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Contribution:
    """One employee's dollars flowing into one property's line category."""

    employee: str
    amount: Decimal
    allocated_fraction: Decimal
    base_amount: Decimal


@dataclass(frozen=True)
class PropertyInvoice:
    """
    Invoice for one property.

    Contract:
        Line fields are rounded to cents; ``total`` is the sum of the six
        rounded line fields.
    Guarantees:
        - ``breakdown`` lists only lines that received contributions.
    """

    property_key: str
    property_label: str
    property_name: str | None = None
    salary_recoverable: Decimal = ZERO
    salary_non_recoverable: Decimal = ZERO
    overtime: Decimal = ZERO
    holiday_recoverable: Decimal = ZERO
    holiday_non_recoverable: Decimal = ZERO
    employer_retirement: Decimal = ZERO
    total: Decimal = ZERO
    breakdown: Mapping[InvoiceLine, tuple[Contribution, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "breakdown", _freeze(self.breakdown))

    def amount(self, line: InvoiceLine) -> Decimal:
        return getattr(self, line.value)

    def contributions(self, line: InvoiceLine) -> tuple[Contribution, ...]:
        return self.breakdown.get(line, ())

    def employee_totals(self) -> dict[str, Decimal]:
        """Unrounded dollars per employee across all lines, in first-seen order."""
        totals: dict[str, Decimal] = {}
        for line in INVOICE_LINES:
            for c in self.contributions(line):
                totals[c.employee] = totals.get(c.employee, ZERO) + c.amount
        return totals

    @property
    def is_empty(self) -> bool:
        return self.total == ZERO and not self.breakdown


class MatchMethod(str, Enum):
    """How a payroll name was tied to an allocation record."""

    EXACT = "exact"
    LAST_NAME = "last_name"
    FIRST_INITIAL = "first_initial"
    MOST_ALLOCATIONS = "most_allocations"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class EmployeeMatch:
    """Audit record of one identity resolution."""

    payroll_name: str
    allocation_name: str | None
    method: MatchMethod
    candidate_count: int = 0

    @property
    def matched(self) -> bool:
        return self.allocation_name is not None
