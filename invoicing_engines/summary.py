"""
Module: invoicing_engines.summary
Responsibility:
    Whole-batch totals across a set of property invoices, reconciled against
    the payroll register they were built from.

    For each pay component the summary reports what payroll paid, what the
    register's own report totals say (when the parser found them), what was
    invoiced, and the unallocated remainder.  A remainder is expected when
    employees are missing from the allocation sheet, allocations sum below
    100%, or a group split was empty; it is reported, not corrected.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType

from invoicing_engines.assembler import round_money
from invoicing_engines.tracer import traced_engine
from invoicing_engines.types import (
    INVOICE_LINES,
    ZERO,
    InvoiceLine,
    PayrollParseResult,
    PropertyInvoice,
)
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.summary")


class PayComponent(str, Enum):
    SALARY = "salary"
    OVERTIME = "overtime"
    HOLIDAY = "holiday"
    EMPLOYER_RETIREMENT = "employer_retirement"


COMPONENT_LINES: Mapping[PayComponent, tuple[InvoiceLine, ...]] = MappingProxyType({
    PayComponent.SALARY: (
        InvoiceLine.SALARY_RECOVERABLE,
        InvoiceLine.SALARY_NON_RECOVERABLE,
    ),
    PayComponent.OVERTIME: (InvoiceLine.OVERTIME,),
    PayComponent.HOLIDAY: (
        InvoiceLine.HOLIDAY_RECOVERABLE,
        InvoiceLine.HOLIDAY_NON_RECOVERABLE,
    ),
    PayComponent.EMPLOYER_RETIREMENT: (InvoiceLine.EMPLOYER_RETIREMENT,),
})


@dataclass(frozen=True)
class ComponentReconciliation:
    """Payroll versus invoiced dollars for one pay component."""

    component: PayComponent
    payroll_total: Decimal
    invoiced_total: Decimal
    report_total: Decimal | None = None

    @property
    def unallocated(self) -> Decimal:
        return self.payroll_total - self.invoiced_total

    @property
    def report_difference(self) -> Decimal | None:
        """Employee rows versus the register's printed total; None if not printed."""
        if self.report_total is None:
            return None
        return self.payroll_total - self.report_total


@dataclass(frozen=True)
class BatchSummary:
    """Totals for one invoice batch."""

    pay_date: str | None
    invoice_count: int
    line_totals: Mapping[InvoiceLine, Decimal]
    grand_total: Decimal
    components: tuple[ComponentReconciliation, ...]
    unmatched_employees: tuple[str, ...] = ()
    employee_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "line_totals", MappingProxyType(dict(self.line_totals)))

    @property
    def payroll_total(self) -> Decimal:
        return sum((c.payroll_total for c in self.components), ZERO)

    @property
    def unallocated_total(self) -> Decimal:
        return sum((c.unallocated for c in self.components), ZERO)

    def component(self, component: PayComponent) -> ComponentReconciliation:
        return next(c for c in self.components if c.component is component)


@traced_engine("batch_summary", "1.0", fingerprint_fields=("unmatched_employees",))
def summarize_batch(
    payroll: PayrollParseResult,
    invoices: Sequence[PropertyInvoice],
    unmatched_employees: Sequence[str] = (),
    places: int = 2,
) -> BatchSummary:
    """Build the batch summary for ``invoices`` produced from ``payroll``."""
    line_totals = {
        line: sum((inv.amount(line) for inv in invoices), ZERO)
        for line in INVOICE_LINES
    }
    report = payroll.report_totals

    components = []
    for component, lines in COMPONENT_LINES.items():
        paid = sum(
            (getattr(emp, component.value) for emp in payroll.employees),
            ZERO,
        )
        components.append(
            ComponentReconciliation(
                component=component,
                payroll_total=round_money(paid, places),
                invoiced_total=sum((line_totals[line] for line in lines), ZERO),
                report_total=getattr(report, component.value) if report else None,
            )
        )

    summary = BatchSummary(
        pay_date=payroll.pay_date,
        invoice_count=len(invoices),
        line_totals=line_totals,
        grand_total=sum((inv.total for inv in invoices), ZERO),
        components=tuple(components),
        unmatched_employees=tuple(unmatched_employees),
        employee_count=len(payroll.employees),
    )

    for c in summary.components:
        if c.report_difference:
            logger.warning("payroll_report_total_mismatch", extra={
                "component": c.component.value,
                "employee_total": str(c.payroll_total),
                "report_total": str(c.report_total),
            })
    logger.info("batch_summarized", extra={
        "pay_date": payroll.pay_date,
        "grand_total": str(summary.grand_total),
        "payroll_total": str(summary.payroll_total),
        "unallocated_total": str(summary.unallocated_total),
        "unmatched_count": len(summary.unmatched_employees),
    })
    return summary
