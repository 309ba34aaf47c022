"""
Tests for the batch summary and payroll reconciliation.
"""

import logging
from decimal import Decimal

from invoicing_engines.invoicing import build_invoices
from invoicing_engines.summary import PayComponent, summarize_batch
from invoicing_engines.types import InvoiceLine, PayrollReportTotals


class TestBatchSummary:
    def test_line_totals_across_properties(self, marketing_table, payroll_factory):
        payroll = payroll_factory(("Alice Smith", 1000, 20, 0, 30))
        invoices = build_invoices(payroll, marketing_table)
        summary = summarize_batch(payroll, invoices)

        assert summary.invoice_count == 2
        assert summary.employee_count == 1
        assert summary.line_totals[InvoiceLine.SALARY_NON_RECOVERABLE] == Decimal("1000.00")
        assert summary.line_totals[InvoiceLine.OVERTIME] == Decimal("20.00")
        assert summary.grand_total == Decimal("1050.00")
        assert summary.payroll_total == Decimal("1050.00")
        assert summary.unallocated_total == Decimal("0")

    def test_component_reconciliation(self, marketing_table, payroll_factory):
        payroll = payroll_factory(("Alice Smith", 1000, 0, 80), ("Carol Jones", 500))
        invoices = build_invoices(payroll, marketing_table)
        summary = summarize_batch(payroll, invoices, ["Carol Jones"])

        salary = summary.component(PayComponent.SALARY)
        assert salary.payroll_total == Decimal("1500.00")
        assert salary.invoiced_total == Decimal("1000.00")
        assert salary.unallocated == Decimal("500.00")
        assert salary.report_total is None
        assert salary.report_difference is None

        holiday = summary.component(PayComponent.HOLIDAY)
        assert holiday.invoiced_total == Decimal("80.00")
        assert summary.unmatched_employees == ("Carol Jones",)

    def test_report_total_mismatch_logged(self, marketing_table, payroll_factory, caplog):
        payroll = payroll_factory(
            ("Alice Smith", 1000),
            report_totals=PayrollReportTotals(salary="1200", overtime="0"),
        )
        invoices = build_invoices(payroll, marketing_table)
        caplog.clear()
        with caplog.at_level(logging.WARNING, logger="invoicing"):
            summary = summarize_batch(payroll, invoices)

        salary = summary.component(PayComponent.SALARY)
        assert salary.report_total == Decimal("1200")
        assert salary.report_difference == Decimal("-200.00")
        assert summary.component(PayComponent.OVERTIME).report_difference == Decimal("0")
        mismatches = [r for r in caplog.records if r.message == "payroll_report_total_mismatch"]
        assert [r.component for r in mismatches] == ["salary"]

    def test_pay_date_carried(self, marketing_table, payroll_factory):
        payroll = payroll_factory(("Alice Smith", 10), pay_date="02/01/2026")
        summary = summarize_batch(payroll, build_invoices(payroll, marketing_table))
        assert summary.pay_date == "02/01/2026"
