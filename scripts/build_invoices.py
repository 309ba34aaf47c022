#!/usr/bin/env python3
"""
Build per-property payroll invoices for one pay period.

Reads the payroll parse result (JSON) and the allocation table (YAML),
allocates every employee's pay across properties and prints one invoice per
property, either as a text table or as JSON.

Usage:
  python3 scripts/build_invoices.py --payroll payroll.json --allocation allocation.yaml
  python3 scripts/build_invoices.py --payroll payroll.json --allocation allocation.yaml --summary
  python3 scripts/build_invoices.py --payroll payroll.json --allocation allocation.yaml --json > run.json

Exit status is 0 on success, 2 when an input document is rejected.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import TextIO

_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from invoicing_config.loader import load_allocation_document
from invoicing_engines.invoicing import InvoiceRun, run_invoicing, run_to_dict
from invoicing_engines.types import INVOICE_LINES, MatchMethod, PropertyInvoice
from invoicing_ingestion.payroll_reader import read_payroll
from invoicing_kernel.exceptions import InvoicingError
from invoicing_kernel.logging_config import configure_logging, get_logger

logger = get_logger("scripts.build_invoices")

_HEADERS = ("Property", "Sal REC", "Sal NR", "Overtime", "Hol REC", "Hol NR", "ER 401k", "Total")


def _row(invoice: PropertyInvoice) -> tuple[str, ...]:
    return (
        invoice.property_label,
        *(f"{invoice.amount(line):,.2f}" for line in INVOICE_LINES),
        f"{invoice.total:,.2f}",
    )


def print_invoices(run: InvoiceRun, out: TextIO) -> None:
    """Text table: one row per property plus a totals row."""
    summary = run.summary
    rows = [_row(inv) for inv in run.invoices]
    rows.append((
        "TOTAL",
        *(f"{summary.line_totals[line]:,.2f}" for line in INVOICE_LINES),
        f"{summary.grand_total:,.2f}",
    ))
    widths = [
        max(len(_HEADERS[i]), *(len(r[i]) for r in rows))
        for i in range(len(_HEADERS))
    ]

    def fmt(cells: tuple[str, ...]) -> str:
        first = cells[0].ljust(widths[0])
        rest = (c.rjust(w) for c, w in zip(cells[1:], widths[1:]))
        return "  ".join((first, *rest))

    if summary.pay_date:
        print(f"Pay date: {summary.pay_date}", file=out)
    print(fmt(_HEADERS), file=out)
    print("  ".join("-" * w for w in widths), file=out)
    for r in rows[:-1]:
        print(fmt(r), file=out)
    print("  ".join("-" * w for w in widths), file=out)
    print(fmt(rows[-1]), file=out)


def print_summary(run: InvoiceRun, out: TextIO) -> None:
    """Payroll versus invoiced dollars per pay component, then unmatched names."""
    summary = run.summary
    print("", file=out)
    print(f"{'Component':<22}{'Payroll':>14}{'Invoiced':>14}{'Unallocated':>14}{'Report':>14}", file=out)
    for c in summary.components:
        report = "" if c.report_total is None else f"{c.report_total:,.2f}"
        print(
            f"{c.component.value:<22}{c.payroll_total:>14,.2f}{c.invoiced_total:>14,.2f}"
            f"{c.unallocated:>14,.2f}{report:>14}",
            file=out,
        )
    if summary.unmatched_employees:
        print("", file=out)
        print("Not on the allocation sheet:", file=out)
        for name in summary.unmatched_employees:
            print(f"  {name}", file=out)
    heuristic = [m for m in run.matches if m.matched and m.method is not MatchMethod.EXACT]
    if heuristic:
        print("", file=out)
        print("Matched by name heuristics (review):", file=out)
        for m in heuristic:
            print(f"  {m.payroll_name} -> {m.allocation_name} [{m.method.value}]", file=out)
    if run.unknown_targets:
        print("", file=out)
        print("Ignored allocation columns: " + ", ".join(run.unknown_targets), file=out)


def main(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    out = out or sys.stdout
    parser = argparse.ArgumentParser(
        description="Allocate payroll to properties and print per-property invoices.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--payroll",
        "-p",
        required=True,
        type=Path,
        help="Payroll parse result JSON (employees, payDate, reportTotals)",
    )
    parser.add_argument(
        "--allocation",
        "-a",
        required=True,
        type=Path,
        help="Allocation table YAML (properties, employees, redistribution, marketing)",
    )
    parser.add_argument("--json", action="store_true", help="Print the whole run as JSON")
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Append payroll reconciliation and name-matching notes to the table",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Structured log level (logs go to stderr)",
    )
    args = parser.parse_args(argv)

    configure_logging(level=getattr(logging, args.log_level), stream=sys.stderr)

    try:
        payroll = read_payroll(args.payroll)
        allocation, settings = load_allocation_document(args.allocation)
    except InvoicingError as e:
        logger.error("input_rejected", extra={"error_code": e.code, "detail": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return 2

    run = run_invoicing(payroll, allocation, settings)

    if args.json:
        json.dump(run_to_dict(run), out, indent=2)
        out.write("\n")
        return 0

    print_invoices(run, out)
    if args.summary:
        print_summary(run, out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
