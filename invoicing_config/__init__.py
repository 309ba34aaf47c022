"""
invoicing_config -- Settings and allocation-table configuration.

Responsibility:
    ``schema`` holds ``InvoicingSettings``, the engine's tunable constants.
    ``loader`` reads allocation-table YAML documents into the frozen
    dataclasses of ``invoicing_engines.types``.

Architecture position:
    Configuration -- sits above ``invoicing_kernel``.  The kernel MUST NEVER
    import from ``invoicing_config``.

Usage:
    from invoicing_config.loader import load_allocation_document
    from invoicing_config.schema import InvoicingSettings
"""
