"""Tests for the business-layout remapper (prepayment_tool/remapper.py)."""

import csv

import pandas as pd
import pytest

from prepayment_tool.errors import InputDataError
from prepayment_tool.remapper import (
    DISPLAY_HEADERS,
    TECHNICAL_HEADERS,
    ColumnRemapper,
    write_remapped,
)


def report_row(**overrides):
    row = {
        "Company Code": "SAC1",
        "Data Source": "LOCAL",
        "SO Number": "1000451",
        "Record Index": "2",
        "Billing Number": "90001202",
        "Prepayment Request Number": "PR-SA-0002",
        "Amount": "820",
        "Assigned Case": "UnderDelivery-Happy",
        "Assigned Scenario": "OneToOne",
        "OneToMany Number": "",
        "ZFSN": "611",
        "Processed": "true",
        "TransactionOrderNumbers": "4500001",
    }
    row.update(overrides)
    return row


class TestRemapRow:

    def test_one_to_one(self):
        rows = ColumnRemapper().remap_row(pd.Series(report_row()))

        assert len(rows) == 1
        row = rows[0]
        assert row["Reference Number (Prepayment SO)"] == "PR-SA-0002"
        assert row["Sold to Party"] == "HS58M1PTWJ"
        assert row["Prepayment SO Number"] == "1000451"
        assert row["Prepayment SO Line Item Number"] == "20"
        assert row["Prepayment SO Amount"] == "820"
        assert row["Prepayment SO Currency"] == "SAR"
        assert row["Billing Document (Prepayment Tax Invoice)"] == "90001202"
        assert row["Reference Number (Delivery SO)"] == "PR-SA-0002"
        assert row["Delivery SO Number"] == "4500001"
        assert row["Delivery SO Line Item Number"] == "10"
        assert row["Delivery SO Amount"] == "611"
        assert row["Amount to Apply"] == "611"
        assert row["Sales Organization"] == "SAC1"
        assert row["Number Of Case"] == "1"

    def test_one_to_many_expands_per_line(self):
        source = report_row(**{
            "Assigned Case": "OverDelivery-Happy",
            "Assigned Scenario": "OneToMany",
            "OneToMany Number": "3",
            "ZFSN": "300, 310, 400",
            "TransactionOrderNumbers": "4500001, FAILED, 4500003",
        })

        rows = ColumnRemapper().remap_row(pd.Series(source))

        assert len(rows) == 3
        assert [r["Delivery SO Amount"] for r in rows] == ["300", "310", "400"]
        assert [r["Delivery SO Number"] for r in rows] == ["4500001", "FAILED", "4500003"]
        assert all(r["Number Of Case"] == "3" for r in rows)
        assert all(r["Prepayment SO Line Item Number"] == "20" for r in rows)
        assert [r["Reference Number (Delivery SO)"] for r in rows] == ["PR-SA-0002"] * 3

    def test_generated_references_split_per_line(self):
        source = report_row(**{
            "Original Prepayment Request Number": "PR-OLD",
            "Generated Prepayment Request Number": "PR-A, PR-B",
            "Assigned Scenario": "OneToMany",
            "OneToMany Number": "2",
            "ZFSN": "5, 6",
        })

        rows = ColumnRemapper().remap_row(pd.Series(source))

        assert [r["Reference Number (Delivery SO)"] for r in rows] == ["PR-A", "PR-B"]
        assert all(r["Reference Number (Prepayment SO)"] == "PR-OLD" for r in rows)

    def test_repeated_generated_reference_on_every_line(self):
        source = report_row(**{
            "Generated Prepayment Request Number": "PR-A, PR-A",
            "Assigned Scenario": "OneToMany",
            "OneToMany Number": "3",
            "ZFSN": "5, 6, 7",
        })

        rows = ColumnRemapper().remap_row(pd.Series(source))

        assert [r["Reference Number (Delivery SO)"] for r in rows] == ["PR-A", "PR-A", "PR-A"]

    def test_unassigned_rows_are_dropped(self):
        source = report_row(**{"Assigned Scenario": "No scenario assigned", "Processed": "false"})
        assert ColumnRemapper().remap_row(pd.Series(source)) == []

    def test_unknown_company_defaults(self):
        rows = ColumnRemapper().remap_row(pd.Series(report_row(**{"Company Code": "ZZC9"})))
        assert rows[0]["Prepayment SO Currency"] == "USD"
        assert rows[0]["Delivery SO Currency"] == "USD"
        assert rows[0]["Sold to Party"] == "Unknown"

    def test_company_profiles_override_defaults(self):
        remapper = ColumnRemapper({"ZZC9": {"Currency": "EUR", "SoldToParty": "P-1"}, "SAC1": {}})
        rows = remapper.remap_row(pd.Series(report_row(**{"Company Code": "ZZC9"})))
        assert rows[0]["Prepayment SO Currency"] == "EUR"
        assert rows[0]["Sold to Party"] == "P-1"
        assert remapper.currency("SAC1") == "SAR"

    def test_stage_one_report_without_order_numbers(self):
        source = report_row()
        del source["TransactionOrderNumbers"]
        rows = ColumnRemapper().remap_row(pd.Series(source))
        assert rows[0]["Delivery SO Number"] == ""


def test_remap_report_skips_rows_without_company():
    report = pd.DataFrame([
        report_row(),
        report_row(**{"Company Code": "", "Assigned Scenario": "OneToOne"}),
        report_row(**{"Company Code": "MAC1", "Record Index": "1"}),
    ])

    remapped = ColumnRemapper().remap_report(report)

    assert list(remapped.columns) == DISPLAY_HEADERS
    assert list(remapped["Sales Organization"]) == ["SAC1", "MAC1"]
    assert list(remapped["Prepayment SO Currency"]) == ["SAR", "MAD"]


def test_remap_report_requires_scenario_column():
    report = pd.DataFrame([{"Company Code": "SAC1", "ZFSN": "5"}])

    with pytest.raises(InputDataError, match="Assigned Scenario"):
        ColumnRemapper().remap_report(report)


class TestWriteRemapped:

    def test_two_header_rows_and_quoting(self, temp_dir):
        remapped = ColumnRemapper().remap_report(pd.DataFrame([report_row()]))
        output = write_remapped(remapped, temp_dir / "out" / "remapped.csv")

        text = output.read_text(encoding="utf-8")
        lines = text.split("\n")
        assert lines[0].startswith('"Reference Number (Prepayment SO)","Sold to Party"')
        assert lines[1].startswith('"I_Salesdocument-YY1_PrepaymentReqNum"')

        with open(output, newline="", encoding="utf-8") as f:
            parsed = list(csv.reader(f))
        assert parsed[0] == DISPLAY_HEADERS
        assert parsed[1] == TECHNICAL_HEADERS
        assert len(parsed) == 3
        assert all(len(r) == 18 for r in parsed)

    def test_rerun_is_byte_identical(self, temp_dir):
        report = pd.DataFrame([
            report_row(),
            report_row(**{"Assigned Scenario": "OneToMany", "OneToMany Number": "2", "ZFSN": "1, 2"}),
        ])
        first = write_remapped(ColumnRemapper().remap_report(report), temp_dir / "a.csv")
        second = write_remapped(ColumnRemapper().remap_report(report), temp_dir / "b.csv")
        assert first.read_bytes() == second.read_bytes()

    def test_empty_report_writes_headers_only(self, temp_dir):
        remapped = ColumnRemapper().remap_report(pd.DataFrame([report_row(**{"Assigned Scenario": "x"})]))
        output = write_remapped(remapped, temp_dir / "empty.csv")
        with open(output, newline="", encoding="utf-8") as f:
            assert len(list(csv.reader(f))) == 2
