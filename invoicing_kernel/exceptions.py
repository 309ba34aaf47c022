"""
Typed exception hierarchy for the invoicing packages.

The allocation engine itself never raises on well-typed input: unmatched
employees, empty split maps, unparseable percents and unknown targets all
degrade to "contributes nothing".  These exceptions belong to the boundary
layers that turn files into typed inputs (``invoicing_config``,
``invoicing_ingestion``) and to settings validation.

    InvoicingError (base)
    |
    +-- ConfigurationError
    |   +-- InvalidSettingsError
    |   +-- InvalidAllocationTableError
    |
    +-- InputError
        +-- InvalidPayrollDataError

Every class carries a ``code`` class attribute (machine-readable) and stores
its context as instance attributes so the structured log formatter can emit
them as ``exc_*`` fields.

Handling pattern:

    try:
        table = load_allocation_table(path)
    except InvalidAllocationTableError as e:
        log.error("allocation_table_rejected", extra={"source": e.source})
"""


class InvoicingError(Exception):
    """Base exception for all invoicing errors."""

    code: str = "INVOICING_ERROR"


# Configuration


class ConfigurationError(InvoicingError):
    """Base exception for configuration problems."""

    code: str = "CONFIGURATION_ERROR"


class InvalidSettingsError(ConfigurationError):
    """A settings value is outside its allowed range."""

    code: str = "INVALID_SETTINGS"

    def __init__(self, setting: str, value: object, reason: str):
        self.setting = setting
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid setting {setting}={value!r}: {reason}")


class InvalidAllocationTableError(ConfigurationError):
    """An allocation table document is structurally invalid."""

    code: str = "INVALID_ALLOCATION_TABLE"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid allocation table {source}: {reason}")


# Input data


class InputError(InvoicingError):
    """Base exception for malformed input documents."""

    code: str = "INPUT_ERROR"


class InvalidPayrollDataError(InputError):
    """A payroll parse result document is structurally invalid."""

    code: str = "INVALID_PAYROLL_DATA"

    def __init__(self, source: str, reason: str, record_index: int | None = None):
        self.source = source
        self.reason = reason
        self.record_index = record_index
        where = f" (record {record_index})" if record_index is not None else ""
        super().__init__(f"Invalid payroll data {source}{where}: {reason}")
