"""
Pytest fixtures for the invoicing test suite.

Provides:
- A small allocation table with direct properties, a PRS group, a shared
  group and the marketing cascade
- Payroll registers built from plain rows
- Logging reset between tests so ``caplog`` sees engine records
"""

from decimal import Decimal

import pytest

from invoicing_engines.types import (
    AllocationEmployee,
    AllocationTable,
    MarketingCascade,
    PayrollEmployee,
    PayrollParseResult,
    Property,
    RedistributionTables,
)
from invoicing_kernel.logging_config import LogContext, reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def make_payroll(*rows, pay_date="01/15/2026", report_totals=None) -> PayrollParseResult:
    """Payroll from ``(name, salary[, overtime, holiday, employer_retirement])`` rows."""
    employees = []
    for row in rows:
        name, *amounts = row
        amounts = list(amounts) + [0] * (4 - len(amounts))
        employees.append(
            PayrollEmployee(
                name=name,
                salary=Decimal(str(amounts[0])),
                overtime=Decimal(str(amounts[1])),
                holiday=Decimal(str(amounts[2])),
                employer_retirement=Decimal(str(amounts[3])),
            )
        )
    return PayrollParseResult(
        employees=tuple(employees), pay_date=pay_date, report_totals=report_totals
    )


@pytest.fixture
def marketing_table() -> AllocationTable:
    """PROP1/PROP2 with GROUPX -> PROP2 and marketing -> GROUPX."""
    return AllocationTable(
        properties=(Property("PROP1", "Prop One"), Property("PROP2", "Prop Two")),
        employees=(
            AllocationEmployee(
                "Alice Smith", {"PROP1": Decimal("0.5"), "marketing": Decimal("0.5")}
            ),
        ),
        tables=RedistributionTables(
            recoverable={"GROUPX": {"PROP2": Decimal("1.0")}},
            non_recoverable={"GROUPX": {"PROP2": Decimal("1.0")}},
        ),
        cascade=MarketingCascade({"GROUPX": Decimal("1.0")}),
    )


@pytest.fixture
def portfolio_table() -> AllocationTable:
    """Three properties, a regime-specific group, a shared group and a two-leg cascade."""
    return AllocationTable(
        properties=(
            Property("2010", "LIK (2010)", "Lakeside Industrial"),
            Property("3001", "SC North"),
            Property("3002", "SC South"),
            Property("5001", "JV Tower"),
        ),
        employees=(
            AllocationEmployee("Winig, Drew", {"LIK": 50, "SC": 50}, recoverable=True),
            AllocationEmployee("Jane Doe", {"3001": "100%"}),
            AllocationEmployee("Mark Keting", {"Marketing": 100}),
            AllocationEmployee("Vera Venture", {"JV IIII": 1.0}),
        ),
        tables=RedistributionTables.from_shared(
            {"JV III": {"5001": 100}},
            recoverable={"SC": {"3001": 60, "3002": 40}},
            non_recoverable={"SC": {"3001": 50, "3002": 50}},
        ),
        cascade=MarketingCascade({"SC": 40, "JV III": 60}),
        property_aliases={"LIK": "2010"},
        group_aliases={"JV IIII": "JV III"},
    )


@pytest.fixture
def payroll_factory():
    """The ``make_payroll`` builder, for tests that need several registers."""
    return make_payroll
