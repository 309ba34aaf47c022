"""
Hypothesis-based property tests for the invoicing engine.

Property-based testing using Hypothesis to generate allocation tables and
payroll registers and verify the engine's invariants hold.

Properties checked:
- Expansion never hands out more than the allocated percent
- Every invoice foots: total is the sum of its rounded lines
- Contributions reconcile with each line to within one cent
- Identical input gives identical serialized output
- Nothing raises, whatever the percent encodings
"""

import json
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from invoicing_engines.expansion import allocated_percent, expand_allocation
from invoicing_engines.invoicing import run_invoicing, run_to_dict
from invoicing_engines.redistribution import TargetCatalog
from invoicing_engines.types import (
    INVOICE_LINES,
    AllocationEmployee,
    AllocationTable,
    MarketingCascade,
    PayrollEmployee,
    PayrollParseResult,
    Property,
    RedistributionTables,
)

PROPERTIES = ("P1", "P2", "P3", "P4")
GROUPS = ("G1", "G2")
TARGETS = PROPERTIES + GROUPS + ("marketing", "Notes")
NAMES = ("Alice Smith", "Bob Smith", "Carol Jones", "Dan Brown", "Eve Adams")

# Tolerance for Decimal context rounding in chained divisions
EPSILON = Decimal("1e-20")

raw_percents = st.one_of(
    st.integers(min_value=0, max_value=100),
    st.decimals(min_value=0, max_value=1, places=4),
    st.integers(min_value=0, max_value=100).map(lambda n: f"{n}%"),
    st.sampled_from(["", "n/a", None, "-5"]),
)

weights = st.integers(min_value=0, max_value=100)
amounts = st.decimals(min_value=0, max_value=20000, places=2)


@st.composite
def splits(draw):
    return draw(st.dictionaries(st.sampled_from(PROPERTIES), weights, max_size=4))


@st.composite
def allocation_tables(draw):
    employees = tuple(
        AllocationEmployee(
            name,
            draw(st.dictionaries(st.sampled_from(TARGETS), raw_percents, max_size=5)),
            recoverable=draw(st.booleans()),
        )
        for name in draw(st.lists(st.sampled_from(NAMES), unique=True, max_size=5))
    )
    return AllocationTable(
        properties=tuple(Property(key) for key in PROPERTIES),
        employees=employees,
        tables=RedistributionTables(
            recoverable={g: draw(splits()) for g in GROUPS},
            non_recoverable={g: draw(splits()) for g in GROUPS},
        ),
        cascade=MarketingCascade(draw(st.dictionaries(st.sampled_from(GROUPS), weights, max_size=2))),
    )


@st.composite
def payrolls(draw):
    employees = tuple(
        PayrollEmployee(
            name,
            salary=draw(amounts),
            overtime=draw(amounts),
            holiday=draw(amounts),
            employer_retirement=draw(amounts),
        )
        for name in draw(st.lists(st.sampled_from(NAMES), unique=True, max_size=5))
    )
    return PayrollParseResult(employees=employees, pay_date="01/15/2026")


FUZZ_SETTINGS = settings(
    max_examples=60,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)


class TestExpansionProperties:
    @FUZZ_SETTINGS
    @given(table=allocation_tables())
    def test_expansion_bounded_by_allocated_percent(self, table):
        catalog = TargetCatalog.for_table(table)
        for emp in table.employees:
            fractions = expand_allocation(
                emp.allocations,
                emp.recoverable,
                tables=table.tables,
                cascade=table.cascade,
                catalog=catalog,
            )
            assert all(f > 0 for f in fractions.values())
            assert sum(fractions.values(), Decimal("0")) <= allocated_percent(emp.allocations) + EPSILON
            assert set(fractions) <= set(PROPERTIES)


class TestInvoiceProperties:
    @FUZZ_SETTINGS
    @given(payroll=payrolls(), table=allocation_tables())
    def test_invoices_foot(self, payroll, table):
        run = run_invoicing(payroll, table)
        for invoice in run.invoices:
            assert invoice.total == sum(
                (invoice.amount(line) for line in INVOICE_LINES), Decimal("0")
            )

    @FUZZ_SETTINGS
    @given(payroll=payrolls(), table=allocation_tables())
    def test_contributions_reconcile(self, payroll, table):
        run = run_invoicing(payroll, table)
        for invoice in run.invoices:
            for line in INVOICE_LINES:
                contributed = sum((c.amount for c in invoice.contributions(line)), Decimal("0"))
                assert abs(contributed - invoice.amount(line)) <= Decimal("0.01")

    @FUZZ_SETTINGS
    @given(payroll=payrolls(), table=allocation_tables())
    def test_one_invoice_per_property(self, payroll, table):
        run = run_invoicing(payroll, table)
        assert [inv.property_key for inv in run.invoices] == sorted(PROPERTIES)
        assert len(run.matches) == len(payroll.employees)

    @FUZZ_SETTINGS
    @given(payroll=payrolls(), table=allocation_tables())
    def test_idempotent(self, payroll, table):
        first = json.dumps(run_to_dict(run_invoicing(payroll, table)), sort_keys=True)
        second = json.dumps(run_to_dict(run_invoicing(payroll, table)), sort_keys=True)
        assert first == second
