"""
JSON payroll reader.

Reads the payroll parse result emitted by the register parser: a pay date,
optional report totals printed on the register, and one record per
employee.  A bare JSON array is read as the employee list.

Key casing is tolerant: keys are lowercased, and the parser's camelCase
names (``salaryAmt``, ``holAmt``, ``er401kAmt``, ``payDate``,
``reportTotals.salaryTotal`` ...) are accepted next to the snake_case ones.
Amount strings may carry ``$`` and thousands separators.  Floats are read
as ``Decimal`` directly so no binary noise reaches invoice figures.
"""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Any

from invoicing_engines.types import (
    ZERO,
    PayrollEmployee,
    PayrollParseResult,
    PayrollReportTotals,
)
from invoicing_kernel.exceptions import InvalidPayrollDataError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("ingestion.payroll_reader")

EMPLOYEE_FIELDS: dict[str, tuple[str, ...]] = {
    "salary": ("salary", "salaryamt", "salary_amt"),
    "overtime": ("overtime", "overtimeamt", "overtime_amt"),
    "holiday": ("holiday", "holamt", "hol_amt", "holiday_amt"),
    "employer_retirement": ("employer_retirement", "er401k", "er401kamt", "er401k_amt"),
    "overtime_hours": ("overtime_hours", "overtimehours", "othours"),
    "holiday_hours": ("holiday_hours", "holhours", "hol_hours"),
}

REPORT_TOTAL_FIELDS: dict[str, tuple[str, ...]] = {
    "salary": ("salary", "salarytotal", "salary_total"),
    "overtime": ("overtime", "overtimeamttotal", "overtime_total"),
    "holiday": ("holiday", "holamttotal", "holiday_total"),
    "employer_retirement": ("employer_retirement", "er401ktotal", "employer_retirement_total"),
}


def _normalize_keys(item: dict[str, Any]) -> dict[str, Any]:
    """Return a copy with string keys lowercased so field aliases match regardless of JSON casing."""
    return {str(k).strip().lower(): v for k, v in item.items() if isinstance(k, str)}


def _first(row: dict[str, Any], aliases: tuple[str, ...]) -> Any:
    for alias in aliases:
        if row.get(alias) is not None:
            return row[alias]
    return None


def parse_amount(value: Any) -> Any:
    """Strip currency decoration from amount strings; other values pass through."""
    if isinstance(value, str):
        cleaned = value.replace("$", "").replace(",", "").strip()
        return cleaned or None
    return value


def parse_employee(item: Any, source: str, index: int) -> PayrollEmployee:
    """One employee record.

    Raises:
        InvalidPayrollDataError: missing name, non-numeric or negative amount.
    """
    if not isinstance(item, dict):
        raise InvalidPayrollDataError(source, "employee record must be an object", index)
    row = _normalize_keys(item)
    name = str(row.get("name") or "").strip()
    if not name:
        raise InvalidPayrollDataError(source, "employee record has no name", index)

    values: dict[str, Any] = {}
    for field_name, aliases in EMPLOYEE_FIELDS.items():
        values[field_name] = parse_amount(_first(row, aliases))
    try:
        return PayrollEmployee(name=name, **values)
    except ValueError as exc:
        raise InvalidPayrollDataError(source, str(exc), index) from exc


def parse_report_totals(data: Any, source: str) -> PayrollReportTotals | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise InvalidPayrollDataError(source, "report totals must be an object")
    row = _normalize_keys(data)
    values = {
        field_name: parse_amount(_first(row, aliases))
        for field_name, aliases in REPORT_TOTAL_FIELDS.items()
    }
    try:
        return PayrollReportTotals(**values)
    except ValueError as exc:
        raise InvalidPayrollDataError(source, f"report totals: {exc}") from exc


def parse_payroll(data: Any, source: str = "<memory>") -> PayrollParseResult:
    """
    Build a ``PayrollParseResult`` from a decoded JSON document.

    Raises:
        InvalidPayrollDataError: on structural problems.
    """
    if isinstance(data, list):
        data = {"employees": data}
    if not isinstance(data, dict):
        raise InvalidPayrollDataError(source, "document must be an object or an array")
    doc = _normalize_keys(data)

    records = doc.get("employees")
    if records is None:
        records = []
    if not isinstance(records, list):
        raise InvalidPayrollDataError(source, "employees must be an array")

    employees = tuple(parse_employee(item, source, i) for i, item in enumerate(records))
    pay_date = _first(doc, ("pay_date", "paydate"))
    result = PayrollParseResult(
        employees=employees,
        pay_date=str(pay_date).strip() if pay_date else None,
        report_totals=parse_report_totals(
            _first(doc, ("report_totals", "reporttotals")), source
        ),
    )

    logger.info("payroll_loaded", extra={
        "source": source,
        "pay_date": result.pay_date,
        "employee_count": len(employees),
        "gross": str(sum((e.gross for e in employees), ZERO)),
    })
    return result


def read_payroll(path: Path, encoding: str = "utf-8") -> PayrollParseResult:
    """
    Read a payroll JSON file.

    Raises:
        FileNotFoundError: if the file does not exist.
        json.JSONDecodeError: if the file is not valid JSON.
        InvalidPayrollDataError: if the document is structurally invalid.
    """
    path = Path(path)
    with path.open("r", encoding=encoding) as f:
        data = json.load(f, parse_float=Decimal)
    return parse_payroll(data, source=str(path))
