"""
Module: invoicing_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the allocation
    and invoice aggregation engine sub-modules.  This is the canonical
    import surface for the CLI and for callers embedding the engine.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import invoicing_kernel, invoicing_config.schema and sibling
    engine modules.  MUST NOT import invoicing_ingestion or the loaders.

Invariants enforced:
    - Purity: engines never read files, the clock or the environment.
      Pay dates and tables arrive as explicit parameters.
    - Decimal-only arithmetic: all monetary amounts and fractions use
      ``Decimal``; floats are converted through ``str`` at the edges.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - ValueError from the value objects in ``types`` on invalid input
      (negative payroll amounts, non-numeric values).
    - Nothing else: the engine degrades instead of raising.

Audit relevance:
    Engine entry points are traced via the ``@traced_engine`` decorator
    (see ``invoicing_engines.tracer``), emitting INVOICING_ENGINE_TRACE log
    records with engine name, version, input fingerprint and duration.
    Every invoice line keeps its per-employee ``Contribution`` provenance.

Usage:
    from invoicing_engines import build_invoices, run_invoicing
    from invoicing_engines.percent import normalize_percent
    from invoicing_engines.identity import EmployeeResolver
"""

from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines")

from invoicing_engines.accumulator import (
    DEFAULT_CONTRIBUTION_THRESHOLD,
    InvoiceAccumulator,
    PropertyLedger,
)
from invoicing_engines.assembler import (
    assemble_invoice,
    assemble_invoices,
    round_money,
)
from invoicing_engines.expansion import (
    allocated_percent,
    expand_allocation,
)
from invoicing_engines.identity import (
    EmployeeResolver,
    NameKey,
    name_key,
    normalize_name,
)
from invoicing_engines.invoicing import (
    InvoiceRun,
    build_invoices,
    invoice_to_dict,
    run_invoicing,
    run_to_dict,
)
from invoicing_engines.percent import (
    DEFAULT_SCALE_THRESHOLD,
    normalize_percent,
    normalize_split,
    parse_number,
)
from invoicing_engines.redistribution import (
    AllocationTarget,
    GroupTarget,
    MarketingTarget,
    PropertyTarget,
    TargetCatalog,
    UnknownTarget,
)
from invoicing_engines.summary import (
    BatchSummary,
    ComponentReconciliation,
    PayComponent,
    summarize_batch,
)
from invoicing_engines.tracer import (
    compute_input_fingerprint,
    traced_engine,
)
from invoicing_engines.types import (
    INVOICE_LINES,
    AllocationEmployee,
    AllocationTable,
    Contribution,
    EmployeeMatch,
    InvoiceLine,
    MarketingCascade,
    MatchMethod,
    PayrollEmployee,
    PayrollParseResult,
    PayrollReportTotals,
    Property,
    PropertyInvoice,
    RedistributionTables,
    Regime,
)

__all__ = [
    # Types
    "AllocationEmployee",
    "AllocationTable",
    "Contribution",
    "EmployeeMatch",
    "INVOICE_LINES",
    "InvoiceLine",
    "MarketingCascade",
    "MatchMethod",
    "PayrollEmployee",
    "PayrollParseResult",
    "PayrollReportTotals",
    "Property",
    "PropertyInvoice",
    "RedistributionTables",
    "Regime",
    # Percent normalization
    "DEFAULT_SCALE_THRESHOLD",
    "normalize_percent",
    "normalize_split",
    "parse_number",
    # Identity
    "EmployeeResolver",
    "NameKey",
    "name_key",
    "normalize_name",
    # Targets
    "AllocationTarget",
    "GroupTarget",
    "MarketingTarget",
    "PropertyTarget",
    "TargetCatalog",
    "UnknownTarget",
    # Expansion, accumulation, assembly
    "DEFAULT_CONTRIBUTION_THRESHOLD",
    "InvoiceAccumulator",
    "PropertyLedger",
    "allocated_percent",
    "assemble_invoice",
    "assemble_invoices",
    "expand_allocation",
    "round_money",
    # Summary
    "BatchSummary",
    "ComponentReconciliation",
    "PayComponent",
    "summarize_batch",
    # Entry points
    "InvoiceRun",
    "build_invoices",
    "invoice_to_dict",
    "run_invoicing",
    "run_to_dict",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
