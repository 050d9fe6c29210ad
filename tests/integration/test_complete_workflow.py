"""
Integration test: complete workflow from source collections to the
business-layout spreadsheet.

This test verifies the entire workflow on a temporary workspace:
1. Load config.yaml
2. Assign cases and scenarios (stage 1)
3. Render payloads per company (stage 2)
4. Dispatch payloads to a fake order API (stage 2, optional)
5. Remap the report (stage 3)
"""

import csv
import json
import random

import pytest

from prepayment_tool import pipeline
from prepayment_tool.config import load_config
from prepayment_tool.models import Scenario
from prepayment_tool.report import read_report

pytestmark = pytest.mark.integration


class SequentialOrderClient:
    """Fake order API that hands out increasing order numbers."""

    def __init__(self, start=4500000):
        self.next_number = start
        self.bodies = []

    def create_order(self, body):
        self.bodies.append(body)
        self.next_number += 1
        return str(self.next_number)


@pytest.fixture
def config(workspace, monkeypatch):
    monkeypatch.delenv("PREPAYMENT_API_URL", raising=False)
    return load_config(workspace / "config.yaml")


def expected_line_count(report_df):
    total = 0
    for _, row in report_df.iterrows():
        if row["Assigned Scenario"] == Scenario.ONE_TO_ONE.value:
            total += 1
        elif row["Assigned Scenario"] == Scenario.ONE_TO_MANY.value:
            total += int(row["OneToMany Number"])
    return total


def test_full_workflow_with_dispatch(config, workspace):
    run = pipeline.run_assignment(config, random.Random(config.seed))

    assert len(run.results) == 5
    assert run.assigned_count == 5
    assert (workspace / "processing-results.csv").exists()
    trace = (workspace / "processing-log.txt").read_text(encoding="utf-8")
    assert "=== Processing SAC1 from LOCAL ===" in trace
    assert "=== Processing SAC1 from USD ===" in trace

    report_df = read_report(workspace / "processing-results.csv")
    assert list(report_df["Company Code"]) == ["SAC1", "SAC1", "SAC1", "SAC1", "MAC1"]
    assert list(report_df["Data Source"]) == ["LOCAL", "LOCAL", "LOCAL", "USD", "LOCAL"]

    client = SequentialOrderClient()
    updated = pipeline.run_dispatch(config, client=client, sleep=lambda _: None)

    amount_count = sum(len(cell.split(",")) for cell in report_df["ZFSN"])
    assert len(client.bodies) == amount_count
    for _, row in updated.iterrows():
        assert len(row["TransactionOrderNumbers"].split(", ")) == len(row["ZFSN"].split(", "))

    generated = json.loads((workspace / "output" / "SAC1_generated.json").read_text(encoding="utf-8"))
    assert len(generated) == sum(
        len(cell.split(",")) for cell in report_df[report_df["Company Code"] == "SAC1"]["ZFSN"]
    )

    remapped = pipeline.run_remap(config)
    assert len(remapped) == expected_line_count(report_df)
    assert set(remapped["Delivery SO Number"]) <= {str(n) for n in range(4500001, client.next_number + 1)}

    with open(workspace / "transformed-prepayment-scenarios.csv", newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0][0] == "Reference Number (Prepayment SO)"
    assert rows[1][0] == "I_Salesdocument-YY1_PrepaymentReqNum"
    assert len(rows) == 2 + len(remapped)


def test_same_seed_gives_identical_reports(config, workspace):
    pipeline.run_assignment(config, random.Random(config.seed))
    first = (workspace / "processing-results.csv").read_bytes()

    pipeline.run_assignment(config, random.Random(config.seed))
    second = (workspace / "processing-results.csv").read_bytes()

    assert first == second


def test_render_and_remap_without_dispatch(config, workspace):
    pipeline.run_assignment(config)
    result = pipeline.run_render(config)

    assert sorted(result.records) == ["MAC1", "SAC1"]
    assert (workspace / "output" / "MAC1_generated.json").exists()
    assert not (workspace / "processing-results-updated.csv").exists()

    remapped = pipeline.run_remap(config)
    assert set(remapped["Delivery SO Number"]) == {""}
    assert set(remapped["Prepayment SO Currency"]) == {"SAR", "MAD"}


def test_company_without_template_is_skipped(config, workspace):
    (workspace / "Sample" / "MAC1.json").unlink()

    pipeline.run_assignment(config)
    result = pipeline.run_render(config)

    assert list(result.records) == ["SAC1"]
    assert "MAC1" in result.failed_companies
    assert not (workspace / "output" / "MAC1_generated.json").exists()


def test_interrupted_dispatch_still_writes_updated_report(config, workspace):
    class StoppingClient(SequentialOrderClient):
        def create_order(self, body):
            if len(self.bodies) == 1:
                raise KeyboardInterrupt
            return super().create_order(body)

    pipeline.run_assignment(config)

    with pytest.raises(KeyboardInterrupt):
        pipeline.run_dispatch(config, client=StoppingClient(), sleep=lambda _: None)

    updated = read_report(workspace / "processing-results-updated.csv")
    assert "4500001" in set(updated["TransactionOrderNumbers"])
