"""
invoicing_ingestion -- Payroll register ingestion.

Reads the JSON payroll parse result produced by the upstream register parser
into ``PayrollParseResult``.

Architecture:
    invoicing_ingestion/ is a top-level package. Nothing in kernel/ or
    engines/ imports from ingestion.
"""
