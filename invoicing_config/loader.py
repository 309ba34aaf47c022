"""
Allocation-table loader (``invoicing_config.loader``).

Responsibility
--------------
Loads an allocation-table YAML document -- properties, target aliases,
employee allocation rows, PRS redistribution tables and the marketing
cascade -- and parses it into the frozen dataclasses of
``invoicing_engines.types``.  This is the boundary between hand-maintained
(or parser-generated) configuration and the pure engine.

Document shape
--------------
::

    settings:                   # optional, see InvoicingSettings
      marketing_target: Marketing
    properties:
      - {key: "2010", label: "LIK (2010)", name: "Lakeside Industrial"}
    property_aliases:           # sheet header -> property key
      LIK: "2010"
    group_aliases:              # alternative spelling -> PRS group
      JV IIII: JV III
    redistribution:             # group -> regime -> {property: percent}
      SC:
        recoverable: {"3001": 60, "3002": 40}
        non_recoverable: {"3001": 50, "3002": 50}
      JV III:
        shared: {"5001": 1.0}   # same split in both regimes
    marketing:                  # group -> percent
      SC: 40
      JV III: 60
    employees:
      - name: "Winig, Drew"
        recoverable: true
        allocations: {LIK: 50, SC: 50}

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Structurally invalid document  -> ``InvalidAllocationTableError``.
* Invalid settings  -> ``InvalidSettingsError``.

Percent values are NOT validated here: the engine reads anything it cannot
interpret as zero, the same as a blank spreadsheet cell.

Audit relevance
---------------
``compute_checksum`` identifies the exact allocation document an invoice
batch was produced from; every ``allocation_table_loaded`` record carries it.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from invoicing_config.schema import InvoicingSettings
from invoicing_engines.types import (
    AllocationEmployee,
    AllocationTable,
    MarketingCascade,
    Property,
    RedistributionTables,
)
from invoicing_kernel.exceptions import InvalidAllocationTableError
from invoicing_kernel.logging_config import get_logger

logger = get_logger("config.loader")

_REGIME_KEYS = frozenset({"recoverable", "non_recoverable", "shared"})
_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "x", "checked"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        InvalidAllocationTableError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidAllocationTableError(str(path), "top level must be a mapping")
    return data


def parse_flag(value: Any) -> bool:
    """Read a checkbox-style cell: booleans, non-zero numbers, "yes"/"x"/"checked"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _mapping(value: Any, source: str, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidAllocationTableError(source, f"{where} must be a mapping")
    return value


def _sequence(value: Any, source: str, where: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidAllocationTableError(source, f"{where} must be a list")
    return value


def _split(value: Any, source: str, where: str) -> dict[str, Any]:
    return {str(k).strip(): v for k, v in _mapping(value, source, where).items()}


def parse_property(data: Any, source: str, index: int) -> Property:
    """Parse one ``properties`` entry (a mapping, or a bare key)."""
    if isinstance(data, (str, int)):
        return Property(key=str(data))
    entry = _mapping(data, source, f"properties[{index}]")
    if entry.get("key") in (None, ""):
        raise InvalidAllocationTableError(source, f"properties[{index}] has no key")
    name = entry.get("name")
    return Property(
        key=str(entry["key"]).strip(),
        label=str(entry.get("label") or "").strip(),
        name=str(name).strip() if name else None,
    )


def parse_employee(data: Any, source: str, index: int) -> AllocationEmployee:
    """Parse one ``employees`` entry."""
    entry = _mapping(data, source, f"employees[{index}]")
    name = str(entry.get("name") or "").strip()
    if not name:
        raise InvalidAllocationTableError(source, f"employees[{index}] has no name")
    return AllocationEmployee(
        name=name,
        allocations=_split(entry.get("allocations"), source, f"employees[{index}].allocations"),
        recoverable=parse_flag(entry.get("recoverable", False)),
    )


def parse_redistribution(data: Any, source: str) -> RedistributionTables:
    """Parse the ``redistribution`` block into PRS tables."""
    shared: dict[str, dict[str, Any]] = {}
    recoverable: dict[str, dict[str, Any]] = {}
    non_recoverable: dict[str, dict[str, Any]] = {}

    for group, regimes in _mapping(data, source, "redistribution").items():
        where = f"redistribution[{group}]"
        regimes = _mapping(regimes, source, where)
        unknown = sorted(set(regimes) - _REGIME_KEYS)
        if unknown:
            raise InvalidAllocationTableError(
                source, f"{where} has unknown regime {unknown[0]!r}"
            )
        name = str(group)
        if "shared" in regimes:
            shared[name] = _split(regimes["shared"], source, f"{where}.shared")
        if "recoverable" in regimes:
            recoverable[name] = _split(regimes["recoverable"], source, f"{where}.recoverable")
        if "non_recoverable" in regimes:
            non_recoverable[name] = _split(
                regimes["non_recoverable"], source, f"{where}.non_recoverable"
            )

    return RedistributionTables.from_shared(shared, recoverable, non_recoverable)


def _json_ready(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_ready(v) for v in value]
    return value


def compute_checksum(data: Mapping[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON serialization of a loaded document.

    Identical documents always produce identical checksums regardless of
    key order in the source file.  Keys are compared as strings, so YAML
    that mixes ``3001:`` and ``"3002":`` in one mapping still hashes.
    """
    canonical = json.dumps(_json_ready(data), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_allocation_table(data: Mapping[str, Any], source: str = "<memory>") -> AllocationTable:
    """
    Parse an ``AllocationTable`` from a loaded document.

    Raises:
        InvalidAllocationTableError: on structural problems.
    """
    properties = tuple(
        parse_property(p, source, i)
        for i, p in enumerate(_sequence(data.get("properties"), source, "properties"))
    )
    employees = tuple(
        parse_employee(e, source, i)
        for i, e in enumerate(_sequence(data.get("employees"), source, "employees"))
    )
    table = AllocationTable(
        properties=properties,
        employees=employees,
        tables=parse_redistribution(data.get("redistribution"), source),
        cascade=MarketingCascade(_split(data.get("marketing"), source, "marketing")),
        property_aliases={
            str(k).strip(): str(v).strip()
            for k, v in _mapping(data.get("property_aliases"), source, "property_aliases").items()
        },
        group_aliases={
            str(k): str(v)
            for k, v in _mapping(data.get("group_aliases"), source, "group_aliases").items()
        },
    )

    logger.info("allocation_table_loaded", extra={
        "source": source,
        "property_count": len(table.properties),
        "employee_count": len(table.employees),
        "group_count": len(table.tables.groups),
        "marketing_groups": len(table.cascade.shares),
        "checksum": compute_checksum(data),
    })
    return table


def load_allocation_document(path: Path) -> tuple[AllocationTable, InvoicingSettings]:
    """Load an allocation-table YAML file and its optional ``settings`` block."""
    data = load_yaml_file(path)
    settings = InvoicingSettings.from_dict(
        dict(_mapping(data.get("settings"), str(path), "settings"))
    )
    return parse_allocation_table(data, source=str(path)), settings


def load_allocation_table(path: Path) -> AllocationTable:
    """Load just the allocation table from a YAML file."""
    table, _ = load_allocation_document(path)
    return table

