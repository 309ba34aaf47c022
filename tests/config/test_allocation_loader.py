"""
Tests for the allocation-table YAML loader.

Covers:
- Full documents: properties, aliases, employees, regime and shared PRS
  splits, marketing cascade and the settings block
- Structural errors raise InvalidAllocationTableError
- Missing files and malformed YAML propagate
- Checksums identify a document independent of key order and are logged
  with every load
"""

import logging
from decimal import Decimal
from textwrap import dedent

import pytest
import yaml

from invoicing_config.loader import (
    compute_checksum,
    load_allocation_document,
    load_allocation_table,
    load_yaml_file,
    parse_allocation_table,
    parse_flag,
)
from invoicing_engines.invoicing import build_invoices
from invoicing_engines.types import PayrollEmployee, PayrollParseResult, Regime
from invoicing_kernel.exceptions import InvalidAllocationTableError, InvalidSettingsError

DOCUMENT = dedent(
    """
    settings:
      marketing_target: Marketing
      currency_places: 2
    properties:
      - {key: "2010", label: "LIK (2010)", name: "Lakeside Industrial"}
      - {key: 3001, label: "SC North"}
      - "3002"
      - key: "5001"
    property_aliases:
      LIK: "2010"
    group_aliases:
      JV IIII: JV III
    redistribution:
      SC:
        recoverable: {"3001": 60, "3002": 40}
        non_recoverable: {"3001": 50, "3002": 50}
      JV III:
        shared: {"5001": 1.0}
    marketing:
      SC: 40
      JV III: 60
    employees:
      - name: "Winig, Drew"
        recoverable: true
        allocations: {LIK: 50, SC: 50}
      - name: Jane Doe
        recoverable: "no"
        allocations: {"3001": "100%"}
      - name: Vera Venture
        allocations: {JV IIII: 1}
    """
)


@pytest.fixture
def allocation_file(tmp_path):
    path = tmp_path / "allocation.yaml"
    path.write_text(DOCUMENT, encoding="utf-8")
    return path


class TestLoadAllocationDocument:
    def test_properties(self, allocation_file):
        table = load_allocation_table(allocation_file)
        assert [p.key for p in table.properties] == ["2010", "3001", "3002", "5001"]
        assert table.properties[0].label == "LIK (2010)"
        assert table.properties[0].name == "Lakeside Industrial"
        assert table.properties[2].label == "3002"

    def test_employees(self, allocation_file):
        table = load_allocation_table(allocation_file)
        drew, jane, vera = table.employees
        assert drew.name == "Winig, Drew"
        assert drew.recoverable
        assert dict(drew.allocations) == {"LIK": 50, "SC": 50}
        assert not jane.recoverable
        assert not vera.recoverable

    def test_redistribution(self, allocation_file):
        tables = load_allocation_table(allocation_file).tables
        assert dict(tables.split_for(Regime.RECOVERABLE, "SC")) == {"3001": 60, "3002": 40}
        assert dict(tables.split_for(Regime.NON_RECOVERABLE, "jv iii")) == {"5001": 1.0}
        assert dict(tables.split_for(Regime.RECOVERABLE, "JV III")) == {"5001": 1.0}

    def test_aliases_and_cascade(self, allocation_file):
        table = load_allocation_table(allocation_file)
        assert dict(table.property_aliases) == {"LIK": "2010"}
        assert dict(table.group_aliases) == {"JV IIII": "JV III"}
        assert dict(table.cascade.shares) == {"SC": 40, "JV III": 60}

    def test_settings_block(self, allocation_file):
        _, settings = load_allocation_document(allocation_file)
        assert settings.marketing_target == "Marketing"

    def test_loaded_table_builds_invoices(self, allocation_file):
        table, settings = load_allocation_document(allocation_file)
        payroll = PayrollParseResult(
            employees=(PayrollEmployee("Drew Winig", salary=Decimal("1000")),)
        )
        invoices = {inv.property_key: inv for inv in build_invoices(payroll, table, settings)}
        assert invoices["2010"].salary_recoverable == Decimal("500.00")
        assert invoices["3001"].salary_recoverable == Decimal("300.00")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        table, settings = load_allocation_document(path)
        assert table.properties == ()
        assert table.employees == ()
        assert settings.currency_places == 2


class TestErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_allocation_table(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("properties: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml_file(path)

    def test_top_level_list_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(InvalidAllocationTableError):
            load_yaml_file(path)

    @pytest.mark.parametrize(
        "data, reason",
        [
            ({"properties": {"key": "P1"}}, "properties must be a list"),
            ({"properties": [{"label": "no key"}]}, "properties[0] has no key"),
            ({"employees": [{"allocations": {}}]}, "employees[0] has no name"),
            ({"employees": [{"name": "A", "allocations": [1, 2]}]}, "must be a mapping"),
            ({"redistribution": {"SC": {"recoverble": {}}}}, "unknown regime"),
            ({"redistribution": ["SC"]}, "redistribution must be a mapping"),
            ({"marketing": 40}, "marketing must be a mapping"),
        ],
    )
    def test_structural_errors(self, data, reason):
        with pytest.raises(InvalidAllocationTableError) as exc_info:
            parse_allocation_table(data, source="test.yaml")
        assert reason in exc_info.value.reason
        assert exc_info.value.source == "test.yaml"

    def test_bad_settings(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("settings:\n  currency_places: 12\n", encoding="utf-8")
        with pytest.raises(InvalidSettingsError):
            load_allocation_document(path)


class TestParseFlag:
    @pytest.mark.parametrize("value", [True, 1, "yes", "Y", " x ", "checked", "TRUE"])
    def test_true(self, value):
        assert parse_flag(value) is True

    @pytest.mark.parametrize("value", [False, 0, "no", "", None, "maybe"])
    def test_false(self, value):
        assert parse_flag(value) is False


class TestComputeChecksum:
    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": {"c": 2}}) == compute_checksum({"b": {"c": 2}, "a": 1})

    def test_content_sensitive(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_loaded_document(self, allocation_file):
        data = load_yaml_file(allocation_file)
        assert len(compute_checksum(data)) == 64

    def test_mixed_key_types(self):
        assert compute_checksum({3001: 60, "3002": 40}) == compute_checksum({"3002": 40, "3001": 60})

    def test_load_logs_document_checksum(self, allocation_file, caplog):
        with caplog.at_level(logging.INFO, logger="invoicing"):
            load_allocation_document(allocation_file)
        loaded = [r for r in caplog.records if r.message == "allocation_table_loaded"]
        assert len(loaded) == 1
        assert loaded[0].checksum == compute_checksum(load_yaml_file(allocation_file))
        assert loaded[0].source == str(allocation_file)
