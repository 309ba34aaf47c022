"""
Module: invoicing_engines.accumulator
Responsibility:
    Apply resolved property fractions to an employee's four pay components
    and accumulate the dollars per property per invoice line, keeping one
    ``Contribution`` per (property, line, employee) for audit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  One accumulator per
    invocation; never shared.

Line routing:
    salary        -> SALARY_RECOVERABLE  | SALARY_NON_RECOVERABLE   (by flag)
    holiday       -> HOLIDAY_RECOVERABLE | HOLIDAY_NON_RECOVERABLE  (by flag)
    overtime      -> OVERTIME
    employer 401k -> EMPLOYER_RETIREMENT

Invariants enforced:
    - Amounts below the contribution threshold (default half a cent) are
      dropped from both the line total and the breakdown, so every dollar
      in a line total has a contribution behind it.
    - Line totals are kept at full precision; rounding happens at assembly.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from invoicing_engines.types import (
    INVOICE_LINES,
    ZERO,
    Contribution,
    InvoiceLine,
    PayrollEmployee,
)
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.accumulator")

DEFAULT_CONTRIBUTION_THRESHOLD = Decimal("0.005")


def salary_line(recoverable: bool) -> InvoiceLine:
    return InvoiceLine.SALARY_RECOVERABLE if recoverable else InvoiceLine.SALARY_NON_RECOVERABLE


def holiday_line(recoverable: bool) -> InvoiceLine:
    return InvoiceLine.HOLIDAY_RECOVERABLE if recoverable else InvoiceLine.HOLIDAY_NON_RECOVERABLE


def line_bases(employee: PayrollEmployee, recoverable: bool) -> tuple[tuple[InvoiceLine, Decimal], ...]:
    """The (line, base amount) pairs an employee's pay is split into."""
    return (
        (salary_line(recoverable), employee.salary),
        (InvoiceLine.OVERTIME, employee.overtime),
        (holiday_line(recoverable), employee.holiday),
        (InvoiceLine.EMPLOYER_RETIREMENT, employee.employer_retirement),
    )


@dataclass
class PropertyLedger:
    """Running, unrounded totals for one property."""

    property_key: str
    totals: dict[InvoiceLine, Decimal] = field(
        default_factory=lambda: {line: ZERO for line in INVOICE_LINES}
    )
    breakdown: dict[InvoiceLine, list[Contribution]] = field(default_factory=dict)

    def post(self, line: InvoiceLine, contribution: Contribution) -> None:
        self.totals[line] += contribution.amount
        self.breakdown.setdefault(line, []).append(contribution)


class InvoiceAccumulator:
    """
    Per-property accumulation of allocated payroll dollars.

    Contract:
        Mutable only through ``seed`` and ``add_employee``; callers read the
        result through ``ledgers``.
    Guarantees:
        - Ledgers keep insertion order: seeded keys first, then keys first
          reached by an employee.
    Non-goals:
        - Does not round; see ``invoicing_engines.assembler``.
    """

    def __init__(self, threshold: Decimal = DEFAULT_CONTRIBUTION_THRESHOLD):
        self._threshold = threshold
        self._ledgers: dict[str, PropertyLedger] = {}
        self._dropped = ZERO

    def seed(self, property_keys: Iterable[str]) -> None:
        for key in property_keys:
            self._ledger(key)

    def _ledger(self, key: str) -> PropertyLedger:
        ledger = self._ledgers.get(key)
        if ledger is None:
            ledger = self._ledgers[key] = PropertyLedger(key)
        return ledger

    def add_employee(
        self,
        employee: PayrollEmployee,
        recoverable: bool,
        fractions: Mapping[str, Decimal],
    ) -> Decimal:
        """Post one employee's allocated pay. Returns the dollars posted."""
        posted = ZERO
        bases = line_bases(employee, recoverable)
        for prop, fraction in fractions.items():
            ledger = self._ledger(prop)
            for line, base in bases:
                amount = base * fraction
                if amount == ZERO or abs(amount) < self._threshold:
                    self._dropped += amount
                    continue
                ledger.post(
                    line,
                    Contribution(
                        employee=employee.name,
                        amount=amount,
                        allocated_fraction=fraction,
                        base_amount=base,
                    ),
                )
                posted += amount

        logger.debug("employee_posted", extra={
            "employee": employee.name,
            "recoverable": recoverable,
            "property_count": len(fractions),
            "posted": str(posted),
        })
        return posted

    @property
    def ledgers(self) -> tuple[PropertyLedger, ...]:
        return tuple(self._ledgers.values())

    @property
    def dropped(self) -> Decimal:
        """Sub-threshold dust that was not posted anywhere."""
        return self._dropped
