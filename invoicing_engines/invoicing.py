"""
Module: invoicing_engines.invoicing
Responsibility:
    Entry points of the allocation and invoice aggregation engine.  Wires
    identity resolution, allocation expansion, accumulation, assembly and
    the batch summary into one deterministic fold over the payroll register.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The only inputs are the
    two parse results and the settings; nothing persists between calls.

Invariants enforced:
    - Never raises on well-typed input.  Unmatched employees, employees
      whose allocation resolves to nothing, zero-sum splits, unparseable
      percents and unknown targets reduce what is invoiced; they do not
      abort the run.
    - Identical inputs produce identical invoices, matches and serialized
      output (``run_to_dict``).

Usage:
    from invoicing_engines.invoicing import build_invoices, run_invoicing

    invoices = build_invoices(payroll, allocation)
    run = run_invoicing(payroll, allocation)
    run.summary.unallocated_total
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from invoicing_config.schema import InvoicingSettings
from invoicing_engines.accumulator import InvoiceAccumulator
from invoicing_engines.assembler import assemble_invoices
from invoicing_engines.expansion import expand_allocation
from invoicing_engines.identity import EmployeeResolver
from invoicing_engines.redistribution import (
    TargetCatalog,
    seed_property_keys,
    unknown_targets,
)
from invoicing_engines.summary import BatchSummary, summarize_batch
from invoicing_engines.tracer import compute_input_fingerprint, traced_engine
from invoicing_engines.types import (
    INVOICE_LINES,
    AllocationTable,
    Contribution,
    EmployeeMatch,
    PayrollParseResult,
    PropertyInvoice,
)
from invoicing_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.invoicing")


@dataclass(frozen=True)
class InvoiceRun:
    """
    Everything one invocation produced.

    ``matches`` has one entry per payroll employee in register order, so the
    name pairing behind every contribution can be audited.
    """

    invoices: tuple[PropertyInvoice, ...]
    matches: tuple[EmployeeMatch, ...]
    summary: BatchSummary
    unknown_targets: tuple[str, ...] = ()
    input_fingerprint: str = ""

    @property
    def unmatched(self) -> tuple[str, ...]:
        return tuple(m.payroll_name for m in self.matches if not m.matched)

    def invoice_for(self, property_key: str) -> PropertyInvoice | None:
        return next((inv for inv in self.invoices if inv.property_key == property_key), None)


@traced_engine("invoicing", "1.0", fingerprint_fields=("payroll", "allocation"))
def run_invoicing(
    payroll: PayrollParseResult,
    allocation: AllocationTable,
    settings: InvoicingSettings | None = None,
) -> InvoiceRun:
    """Build invoices for one pay period together with their audit trail."""
    settings = settings or InvoicingSettings()
    fingerprint = compute_input_fingerprint(
        ("payroll", "allocation", "settings"),
        {"payroll": payroll, "allocation": allocation, "settings": settings},
    )

    with LogContext.bind(run_id=fingerprint, pay_date=payroll.pay_date):
        logger.info("invoice_run_started", extra={
            "payroll_employee_count": len(payroll.employees),
            "allocation_employee_count": len(allocation.employees),
            "property_count": len(allocation.properties),
            "group_count": len(allocation.tables.groups),
        })

        catalog = TargetCatalog.for_table(allocation, settings.marketing_target)
        resolver = EmployeeResolver(allocation.employees)
        accumulator = InvoiceAccumulator(settings.contribution_threshold)
        accumulator.seed(seed_property_keys(allocation, catalog))

        matches: list[EmployeeMatch] = []
        for employee in payroll.employees:
            match, record = resolver.resolve_record(employee.name)
            matches.append(match)
            if record is None:
                continue

            fractions = expand_allocation(
                record.allocations,
                record.recoverable,
                tables=allocation.tables,
                cascade=allocation.cascade,
                catalog=catalog,
                scale_threshold=settings.percent_scale_threshold,
            )
            if not fractions:
                logger.info("employee_without_allocation", extra={
                    "payroll_name": employee.name,
                    "allocation_name": record.name,
                })
                continue
            accumulator.add_employee(employee, record.recoverable, fractions)

        invoices = assemble_invoices(
            accumulator.ledgers,
            {p.key: p for p in allocation.properties},
            settings.currency_places,
        )
        unmatched = [m.payroll_name for m in matches if not m.matched]
        summary = summarize_batch(
            payroll, invoices, unmatched, settings.currency_places
        )

        ignored: dict[str, None] = {}
        for record in allocation.employees:
            for key in unknown_targets(catalog, record.allocations):
                ignored.setdefault(key, None)
        if ignored:
            logger.info("allocation_columns_ignored", extra={"targets": list(ignored)})

        logger.info("invoice_run_completed", extra={
            "invoice_count": len(invoices),
            "matched_count": len(matches) - len(unmatched),
            "unmatched_count": len(unmatched),
            "dropped_dust": str(accumulator.dropped),
            "grand_total": str(summary.grand_total),
        })

    return InvoiceRun(
        invoices=tuple(invoices),
        matches=tuple(matches),
        summary=summary,
        unknown_targets=tuple(ignored),
        input_fingerprint=fingerprint,
    )


def build_invoices(
    payroll: PayrollParseResult,
    allocation: AllocationTable,
    settings: InvoicingSettings | None = None,
) -> list[PropertyInvoice]:
    """One invoice per property, sorted by property key."""
    return list(run_invoicing(payroll, allocation, settings).invoices)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _contribution_to_dict(c: Contribution) -> dict[str, Any]:
    return {
        "employee": c.employee,
        "amount": str(c.amount),
        "allocated_fraction": str(c.allocated_fraction),
        "base_amount": str(c.base_amount),
    }


def invoice_to_dict(invoice: PropertyInvoice) -> dict[str, Any]:
    """JSON-safe dict; Decimals become strings so no precision is lost."""
    data: dict[str, Any] = {
        "property_key": invoice.property_key,
        "property_label": invoice.property_label,
        "property_name": invoice.property_name,
    }
    for line in INVOICE_LINES:
        data[line.value] = str(invoice.amount(line))
    data["total"] = str(invoice.total)
    data["breakdown"] = {
        line.value: [_contribution_to_dict(c) for c in invoice.contributions(line)]
        for line in INVOICE_LINES
        if invoice.contributions(line)
    }
    return data


def _optional(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def run_to_dict(run: InvoiceRun) -> dict[str, Any]:
    """JSON-safe dict of a whole run: invoices, matches, summary."""
    summary = run.summary
    return {
        "input_fingerprint": run.input_fingerprint,
        "pay_date": summary.pay_date,
        "invoices": [invoice_to_dict(inv) for inv in run.invoices],
        "matches": [
            {
                "payroll_name": m.payroll_name,
                "allocation_name": m.allocation_name,
                "method": m.method.value,
                "candidate_count": m.candidate_count,
            }
            for m in run.matches
        ],
        "unknown_targets": list(run.unknown_targets),
        "summary": {
            "invoice_count": summary.invoice_count,
            "employee_count": summary.employee_count,
            "grand_total": str(summary.grand_total),
            "line_totals": {
                line.value: str(amount) for line, amount in summary.line_totals.items()
            },
            "components": [
                {
                    "component": c.component.value,
                    "payroll_total": str(c.payroll_total),
                    "invoiced_total": str(c.invoiced_total),
                    "unallocated": str(c.unallocated),
                    "report_total": _optional(c.report_total),
                }
                for c in summary.components
            ],
            "unmatched_employees": list(summary.unmatched_employees),
        },
    }
