"""
Module: invoicing_engines.assembler
Responsibility:
    Turn accumulated property ledgers into finished ``PropertyInvoice``
    records: attach display metadata, round to cents, derive the total and
    order the output.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Each line is rounded ROUND_HALF_UP to ``places`` decimals.
    - ``total`` is the sum of the rounded lines, never a separately rounded
      running total, so an invoice always foots.
    - Output is sorted by property key (label when the key is empty) using
      ordinal, case-sensitive string order.
    - Properties without sheet metadata are labelled with their key.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal

from invoicing_engines.accumulator import PropertyLedger
from invoicing_engines.types import (
    INVOICE_LINES,
    ZERO,
    Property,
    PropertyInvoice,
)
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.assembler")


def round_money(amount: Decimal, places: int = 2) -> Decimal:
    """Round half-up on the cent boundary (``places`` decimals)."""
    return amount.quantize(Decimal(10) ** -places, rounding=ROUND_HALF_UP)


def _sort_key(invoice: PropertyInvoice) -> str:
    return invoice.property_key or invoice.property_label


def assemble_invoice(
    ledger: PropertyLedger,
    prop: Property | None,
    places: int = 2,
) -> PropertyInvoice:
    """One finished invoice from a ledger and its (optional) sheet metadata."""
    lines = {line: round_money(ledger.totals[line], places) for line in INVOICE_LINES}
    return PropertyInvoice(
        property_key=ledger.property_key,
        property_label=prop.label if prop else ledger.property_key,
        property_name=prop.name if prop else None,
        **{line.value: amount for line, amount in lines.items()},
        total=sum(lines.values(), ZERO),
        breakdown={
            line: tuple(ledger.breakdown[line])
            for line in INVOICE_LINES
            if ledger.breakdown.get(line)
        },
    )


def assemble_invoices(
    ledgers: Iterable[PropertyLedger],
    properties: Mapping[str, Property],
    places: int = 2,
) -> list[PropertyInvoice]:
    """Finished invoices for every ledger, deterministically ordered."""
    invoices = [
        assemble_invoice(ledger, properties.get(ledger.property_key), places)
        for ledger in ledgers
    ]
    invoices.sort(key=_sort_key)

    logger.info("invoices_assembled", extra={
        "invoice_count": len(invoices),
        "active_count": sum(1 for inv in invoices if not inv.is_empty),
        "grand_total": str(sum((inv.total for inv in invoices), ZERO)),
    })
    return invoices
